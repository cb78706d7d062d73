"""Pydantic schemas for parser output models.

All schemas are re-exported here for convenient imports.
"""

from epubkit.schemas.documents import (
    DocumentKind,
    UnvalidatedDocument,
    ValidatedDocument,
    XmlTree,
)
from epubkit.schemas.epub import Epub
from epubkit.schemas.items import ItemKind, PackageItem
from epubkit.schemas.package import (
    PACKAGE_MEDIA_TYPE,
    Collection,
    Container,
    GuideReference,
    ManifestItem,
    MetadataEntry,
    PackageDocument,
    RootFile,
    SpineItemRef,
)
from epubkit.schemas.toc import Toc, TocItem, TocSource

__all__ = [
    # Documents
    "DocumentKind",
    "UnvalidatedDocument",
    "ValidatedDocument",
    "XmlTree",
    # Package
    "PACKAGE_MEDIA_TYPE",
    "Collection",
    "Container",
    "GuideReference",
    "ManifestItem",
    "MetadataEntry",
    "PackageDocument",
    "RootFile",
    "SpineItemRef",
    # Navigation
    "Toc",
    "TocItem",
    "TocSource",
    # Items
    "ItemKind",
    "PackageItem",
    # Epub
    "Epub",
]
