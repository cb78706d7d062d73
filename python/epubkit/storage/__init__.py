"""Storage module for reading files out of an EPUB.

Provides:
- FileProviderBase, the file-access contract the parser consumes
- ZipFileProvider for real archives, with archive safety checks
- FakeFileProvider for tests
- Path resolution utilities for consistent archive paths
"""

from epubkit.storage.client import (
    FakeFileProvider,
    FileProviderBase,
    ZipFileProvider,
    check_archive_safety,
)
from epubkit.storage.paths import get_base_path, resolve_href, strip_fragment

__all__ = [
    "FileProviderBase",
    "ZipFileProvider",
    "FakeFileProvider",
    "check_archive_safety",
    "get_base_path",
    "resolve_href",
    "strip_fragment",
]
