"""File-access provider abstraction.

Provides a clean interface for reading files out of an EPUB with:
- Text reads (UTF-8 decoded)
- Binary reads
- Provider-side findings reported through the caller's Diagnostics scope

Absence is not an error at this layer: a missing path returns None without a
diagnostic. Whether absence matters is the caller's policy.
"""

from __future__ import annotations

import asyncio
import io
import zipfile
import zlib
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path

from epubkit.config import Settings, get_settings
from epubkit.diagnostics import Diagnostics
from epubkit.errors import ArchiveError, EpubErrorCode
from epubkit.logging import get_logger

logger = get_logger(__name__)


class FileProviderBase(ABC):
    """Abstract base class for file provider implementations."""

    @abstractmethod
    async def read_text(self, path: str, diags: Diagnostics) -> str | None:
        """Read a file as UTF-8 text.

        Args:
            path: Archive path (no leading slash).
            diags: Scope for provider findings such as decode failures.

        Returns:
            The decoded text, or None if the file is absent or unreadable.
        """
        ...

    @abstractmethod
    async def read_binary(self, path: str, diags: Diagnostics) -> bytes | None:
        """Read a file as raw bytes.

        Args:
            path: Archive path (no leading slash).
            diags: Scope for provider findings such as archive corruption.

        Returns:
            The file content, or None if the file is absent or unreadable.
        """
        ...


def check_archive_safety(zf: zipfile.ZipFile, settings: Settings) -> None:
    """Reject archives that are too large or carry unsafe entry names.

    Raises:
        ArchiveError: With code E_ARCHIVE_UNSAFE on the first violated limit.
    """
    infos = zf.infolist()

    if len(infos) > settings.max_epub_archive_entries:
        raise ArchiveError(
            EpubErrorCode.E_ARCHIVE_UNSAFE,
            f"Archive has {len(infos)} entries (limit {settings.max_epub_archive_entries})",
        )

    total_uncompressed = 0
    for info in infos:
        # path safety: reject absolute, traversal, drive-qualified
        name = info.filename
        if name.startswith("/") or name.startswith("\\"):
            raise ArchiveError(EpubErrorCode.E_ARCHIVE_UNSAFE, f"Absolute path in archive: {name}")
        if ".." in name.replace("\\", "/").split("/"):
            raise ArchiveError(
                EpubErrorCode.E_ARCHIVE_UNSAFE, f"Path traversal in archive: {name}"
            )
        if len(name) > 1 and name[1] == ":":
            raise ArchiveError(
                EpubErrorCode.E_ARCHIVE_UNSAFE, f"Drive-qualified path in archive: {name}"
            )

        uncompressed = info.file_size
        compressed = info.compress_size

        if uncompressed > settings.max_epub_archive_single_entry_uncompressed_bytes:
            raise ArchiveError(
                EpubErrorCode.E_ARCHIVE_UNSAFE,
                f"Entry '{name}' uncompressed size {uncompressed} "
                f"exceeds limit {settings.max_epub_archive_single_entry_uncompressed_bytes}",
            )

        total_uncompressed += uncompressed

        ratio_limit = settings.max_epub_archive_compression_ratio
        if compressed > 0 and uncompressed / compressed > ratio_limit:
            raise ArchiveError(
                EpubErrorCode.E_ARCHIVE_UNSAFE,
                f"Entry '{name}' compression ratio {uncompressed / compressed:.1f} "
                f"exceeds limit {ratio_limit}",
            )

    if total_uncompressed > settings.max_epub_archive_total_uncompressed_bytes:
        raise ArchiveError(
            EpubErrorCode.E_ARCHIVE_UNSAFE,
            f"Total uncompressed {total_uncompressed} "
            f"exceeds limit {settings.max_epub_archive_total_uncompressed_bytes}",
        )


class ZipFileProvider(FileProviderBase):
    """Provider reading entries from an in-memory zip archive.

    Blocking zip reads run in worker threads via asyncio.to_thread.
    """

    def __init__(self, zf: zipfile.ZipFile, name: str = "<bytes>"):
        """Initialize the provider.

        Args:
            zf: An open zip archive. The provider takes ownership and closes it.
            name: Display name used in logs.
        """
        self._zf = zf
        self.name = name

    @classmethod
    def open(
        cls, source: str | Path | bytes, settings: Settings | None = None
    ) -> ZipFileProvider:
        """Open an archive from a filesystem path or raw bytes.

        Raises:
            ArchiveError: E_ARCHIVE_INVALID if the data is not a zip archive,
                E_ARCHIVE_UNSAFE if it breaks the archive safety limits.
            OSError: If a filesystem path cannot be read.
        """
        settings = settings or get_settings()
        if isinstance(source, bytes):
            data, name = source, "<bytes>"
        else:
            path = Path(source)
            data, name = path.read_bytes(), path.name

        try:
            zf = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise ArchiveError(EpubErrorCode.E_ARCHIVE_INVALID, f"Invalid archive: {exc}") from exc

        try:
            check_archive_safety(zf, settings)
        except ArchiveError:
            zf.close()
            raise

        logger.debug("zip_archive_opened", archive=name, entries=len(zf.infolist()))
        return cls(zf, name=name)

    def names(self) -> list[str]:
        return [info.filename for info in self._zf.infolist() if not info.is_dir()]

    def close(self) -> None:
        self._zf.close()

    def __enter__(self) -> ZipFileProvider:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def read_binary(self, path: str, diags: Diagnostics) -> bytes | None:
        try:
            return await asyncio.to_thread(self._zf.read, path)
        except KeyError:
            return None
        except (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, OSError) as exc:
            diags.error(f"failed to read {path} from archive: {exc}")
            return None

    async def read_text(self, path: str, diags: Diagnostics) -> str | None:
        data = await self.read_binary(path, diags)
        if data is None:
            return None
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            diags.error(f"failed to decode {path} as utf-8: {exc.reason}")
            return None


class FakeFileProvider(FileProviderBase):
    """Fake provider for testing without a real archive.

    Stores files in memory and provides deterministic behavior for unit tests.
    Per-path delays let tests force a particular completion order.
    """

    def __init__(
        self,
        files: dict[str, str | bytes] | None = None,
        delays: dict[str, float] | None = None,
    ):
        self._files: dict[str, str | bytes] = dict(files or {})
        self._delays: dict[str, float] = dict(delays or {})
        self._broken: dict[str, str] = {}
        self.reads: Counter[str] = Counter()

    async def _fetch(self, path: str, diags: Diagnostics) -> str | bytes | None:
        self.reads[path] += 1
        delay = self._delays.get(path)
        if delay:
            await asyncio.sleep(delay)
        if path in self._broken:
            diags.error(self._broken[path])
            return None
        return self._files.get(path)

    async def read_text(self, path: str, diags: Diagnostics) -> str | None:
        content = await self._fetch(path, diags)
        if isinstance(content, bytes):
            try:
                return content.decode("utf-8")
            except UnicodeDecodeError as exc:
                diags.error(f"failed to decode {path} as utf-8: {exc.reason}")
                return None
        return content

    async def read_binary(self, path: str, diags: Diagnostics) -> bytes | None:
        content = await self._fetch(path, diags)
        if isinstance(content, str):
            return content.encode("utf-8")
        return content

    # Test helper methods

    def put_file(self, path: str, content: str | bytes) -> None:
        """Store a file directly (test helper)."""
        self._files[path] = content

    def remove_file(self, path: str) -> None:
        """Delete a file (test helper)."""
        self._files.pop(path, None)

    def break_file(self, path: str, message: str = "archive entry is corrupt") -> None:
        """Make reads of ``path`` report ``message`` and return None (test helper)."""
        self._broken[path] = message

    def set_delay(self, path: str, seconds: float) -> None:
        """Delay reads of ``path`` (test helper)."""
        self._delays[path] = seconds
