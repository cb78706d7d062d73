"""Parser settings loaded from environment variables.

Parsing Configuration:
    EPUBKIT_DEFAULT_ROOTFILE_PATH: Package path assumed when container.xml is unusable
    EPUBKIT_REQUIRE_VALID_DOCUMENTS: Withhold documents that fail structural validation
    EPUBKIT_LOAD_MANIFEST_ITEMS: Load every manifest item during parse_epub

Archive Safety Configuration:
    MAX_EPUB_ARCHIVE_ENTRIES: Maximum number of zip entries
    MAX_EPUB_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES: Maximum total uncompressed size
    MAX_EPUB_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES: Maximum size of any one entry
    MAX_EPUB_ARCHIVE_COMPRESSION_RATIO: Maximum uncompressed/compressed ratio per entry

Logging Configuration:
    EPUBKIT_LOG_JSON: Emit JSON logs (false for console output)
    EPUBKIT_LOG_LEVEL: Root log level name
"""

import logging
import posixpath
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

DEFAULT_ROOTFILE_PATH = "OEBPS/content.opf"

_ARCHIVE_LIMIT_DEFAULTS = {
    "max_epub_archive_entries": 10_000,
    "max_epub_archive_total_uncompressed_bytes": 512 * 1024 * 1024,
    "max_epub_archive_single_entry_uncompressed_bytes": 64 * 1024 * 1024,
    "max_epub_archive_compression_ratio": 100,
}


class Settings(BaseSettings):
    """Parser configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - archive limits must be positive and no looser than their defaults
    - EPUBKIT_DEFAULT_ROOTFILE_PATH must be a non-empty relative archive path
    - EPUBKIT_LOG_LEVEL must name a stdlib logging level
    """

    default_rootfile_path: str = Field(
        default=DEFAULT_ROOTFILE_PATH, alias="EPUBKIT_DEFAULT_ROOTFILE_PATH"
    )
    require_valid_documents: bool = Field(default=False, alias="EPUBKIT_REQUIRE_VALID_DOCUMENTS")
    load_manifest_items: bool = Field(default=True, alias="EPUBKIT_LOAD_MANIFEST_ITEMS")

    # Archive safety limits
    max_epub_archive_entries: int = Field(default=10_000, alias="MAX_EPUB_ARCHIVE_ENTRIES")
    max_epub_archive_total_uncompressed_bytes: int = Field(
        default=512 * 1024 * 1024, alias="MAX_EPUB_ARCHIVE_TOTAL_UNCOMPRESSED_BYTES"
    )  # 512 MB
    max_epub_archive_single_entry_uncompressed_bytes: int = Field(
        default=64 * 1024 * 1024, alias="MAX_EPUB_ARCHIVE_SINGLE_ENTRY_UNCOMPRESSED_BYTES"
    )  # 64 MB
    max_epub_archive_compression_ratio: int = Field(
        default=100, alias="MAX_EPUB_ARCHIVE_COMPRESSION_RATIO"
    )

    # Logging
    log_json: bool = Field(default=True, alias="EPUBKIT_LOG_JSON")
    log_level: str = Field(default="INFO", alias="EPUBKIT_LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject unsafe archive limits and unusable paths."""
        for name, ceiling in _ARCHIVE_LIMIT_DEFAULTS.items():
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name.upper()} must be >= 1, got {value}")
            if value > ceiling:
                raise ValueError(f"{name.upper()} must be <= {ceiling}, got {value}")

        path = self.default_rootfile_path.strip()
        if not path or path.startswith("/") or posixpath.normpath(path).startswith(".."):
            raise ValueError(
                "EPUBKIT_DEFAULT_ROOTFILE_PATH must be a relative path inside the archive"
            )

        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ValueError(f"EPUBKIT_LOG_LEVEL is not a known level: {self.log_level}")

        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached parser settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
