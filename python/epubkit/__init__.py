"""Lenient EPUB parser.

Every stage reports problems as scoped diagnostics and keeps going with the
best structure it can build.
"""

from epubkit.diagnostics import Diagnostic, Diagnostics, Severity
from epubkit.errors import ArchiveError, ContractViolationError, EpubError, EpubErrorCode
from epubkit.results import Result
from epubkit.schemas import Epub, PackageDocument, Toc, TocItem
from epubkit.services import EpubHandle, open_epub, parse_epub, parse_epub_archive
from epubkit.storage import FakeFileProvider, FileProviderBase, ZipFileProvider

__all__ = [
    "ArchiveError",
    "ContractViolationError",
    "Diagnostic",
    "Diagnostics",
    "Epub",
    "EpubError",
    "EpubErrorCode",
    "EpubHandle",
    "FakeFileProvider",
    "FileProviderBase",
    "PackageDocument",
    "Result",
    "Severity",
    "Toc",
    "TocItem",
    "ZipFileProvider",
    "open_epub",
    "parse_epub",
    "parse_epub_archive",
]
