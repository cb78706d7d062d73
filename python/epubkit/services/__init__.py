"""Parsing services.

Loading, validation, package resolution, navigation extraction and content
loading. ``epub`` composes them into the public entry points.
"""

from epubkit.services.epub import EpubHandle, open_epub, parse_epub, parse_epub_archive

__all__ = [
    "EpubHandle",
    "open_epub",
    "parse_epub",
    "parse_epub_archive",
]
