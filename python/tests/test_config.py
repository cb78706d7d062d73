"""Tests for parser settings (environment loading and archive safety limits)."""

import pytest
from pydantic import ValidationError

from epubkit.config import Settings, clear_settings_cache, get_settings


class TestDefaults:
    """Tests for default settings and environment loading."""

    def test_defaults(self, monkeypatch):
        """Unset environment yields the documented defaults."""
        monkeypatch.delenv("EPUBKIT_DEFAULT_ROOTFILE_PATH", raising=False)
        monkeypatch.delenv("MAX_EPUB_ARCHIVE_ENTRIES", raising=False)

        s = Settings(_env_file=None)

        assert s.default_rootfile_path == "OEBPS/content.opf"
        assert s.require_valid_documents is False
        assert s.load_manifest_items is True
        assert s.max_epub_archive_entries == 10_000
        assert s.max_epub_archive_total_uncompressed_bytes == 536_870_912
        assert s.max_epub_archive_single_entry_uncompressed_bytes == 67_108_864
        assert s.max_epub_archive_compression_ratio == 100
        assert s.log_json is True
        assert s.log_level == "INFO"

    def test_environment_aliases(self, monkeypatch):
        """EPUBKIT_ prefixed variables populate settings."""
        monkeypatch.setenv("EPUBKIT_DEFAULT_ROOTFILE_PATH", "content.opf")
        monkeypatch.setenv("EPUBKIT_REQUIRE_VALID_DOCUMENTS", "true")
        monkeypatch.setenv("EPUBKIT_LOAD_MANIFEST_ITEMS", "false")
        monkeypatch.setenv("MAX_EPUB_ARCHIVE_ENTRIES", "500")
        monkeypatch.setenv("EPUBKIT_LOG_LEVEL", "debug")

        s = Settings(_env_file=None)

        assert s.default_rootfile_path == "content.opf"
        assert s.require_valid_documents is True
        assert s.load_manifest_items is False
        assert s.max_epub_archive_entries == 500
        assert s.log_level == "debug"


class TestArchiveLimits:
    """Tests for archive safety limit validation."""

    def test_stricter_overrides_accepted(self):
        """Limits tighter than the defaults are accepted."""
        s = Settings(
            MAX_EPUB_ARCHIVE_ENTRIES=5000,
            MAX_EPUB_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES=268_435_456,
            MAX_EPUB_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES=33_554_432,
            MAX_EPUB_ARCHIVE_COMPRESSION_RATIO=50,
        )

        assert s.max_epub_archive_entries == 5000
        assert s.max_epub_archive_total_uncompressed_bytes == 268_435_456
        assert s.max_epub_archive_single_entry_uncompressed_bytes == 33_554_432
        assert s.max_epub_archive_compression_ratio == 50

    @pytest.mark.parametrize(
        ("alias", "value"),
        [
            ("MAX_EPUB_ARCHIVE_ENTRIES", 20_000),
            ("MAX_EPUB_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES", 1_000_000_000),
            ("MAX_EPUB_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES", 100_000_000),
            ("MAX_EPUB_ARCHIVE_COMPRESSION_RATIO", 1000),
        ],
    )
    def test_weaker_limits_rejected(self, alias, value):
        """Limits looser than the hard ceilings are rejected."""
        with pytest.raises(ValidationError, match=alias):
            Settings(**{alias: value})

    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_rejected(self, value):
        """Zero or negative limits are rejected."""
        with pytest.raises(ValidationError, match="must be >= 1"):
            Settings(MAX_EPUB_ARCHIVE_COMPRESSION_RATIO=value)


class TestOtherValidation:
    """Tests for the remaining field validators."""

    @pytest.mark.parametrize("path", ["", "   ", "/OEBPS/content.opf", "../content.opf"])
    def test_rootfile_path_must_stay_inside_archive(self, path):
        """Fallback rootfile paths may not escape the archive."""
        with pytest.raises(ValidationError, match="EPUBKIT_DEFAULT_ROOTFILE_PATH"):
            Settings(EPUBKIT_DEFAULT_ROOTFILE_PATH=path)

    def test_unknown_log_level_rejected(self):
        """Unknown log level names are rejected."""
        with pytest.raises(ValidationError, match="EPUBKIT_LOG_LEVEL"):
            Settings(EPUBKIT_LOG_LEVEL="chatty")

    def test_field_names_are_accepted(self):
        """Settings accept field names as well as aliases."""
        s = Settings(default_rootfile_path="book/package.opf", log_level="warning")

        assert s.default_rootfile_path == "book/package.opf"


class TestCaching:
    """Tests for the cached settings accessor."""

    def test_settings_are_cached_until_cleared(self, monkeypatch):
        """get_settings returns one instance until the cache is cleared."""
        monkeypatch.setenv("MAX_EPUB_ARCHIVE_ENTRIES", "100")
        first = get_settings()

        monkeypatch.setenv("MAX_EPUB_ARCHIVE_ENTRIES", "200")
        assert get_settings() is first
        assert get_settings().max_epub_archive_entries == 100

        clear_settings_cache()
        assert get_settings().max_epub_archive_entries == 200
