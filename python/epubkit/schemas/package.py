"""Container and package document schemas.

Resolved, typed output of the package resolver. All paths in ``full_path``
fields are archive paths; ``href`` fields keep the value as written in the
package document.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

PACKAGE_MEDIA_TYPE = "application/oebps-package+xml"


class RootFile(BaseModel):
    """A container.xml pointer to a package document."""

    full_path: str
    media_type: str | None = None

    model_config = ConfigDict(frozen=True)


class Container(BaseModel):
    """Resolved META-INF/container.xml.

    ``is_fallback`` is set when the archive's container.xml was missing or
    unusable and the conventional rootfile path was assumed instead.
    """

    version: str | None = None
    root_files: list[RootFile] = Field(default_factory=list)
    is_fallback: bool = False

    @property
    def package_root_files(self) -> list[RootFile]:
        return [r for r in self.root_files if r.media_type == PACKAGE_MEDIA_TYPE]


class ManifestItem(BaseModel):
    id: str
    href: str
    media_type: str | None = None
    properties: list[str] = Field(default_factory=list)
    fallback: str | None = None
    media_overlay: str | None = None
    full_path: str

    model_config = ConfigDict(frozen=True)


class SpineItemRef(BaseModel):
    idref: str
    linear: bool = True
    id: str | None = None
    properties: list[str] = Field(default_factory=list)


class MetadataEntry(BaseModel):
    """One metadata value plus its attributes.

    Attributes keep their source spelling (``@id``, ``@xml:lang``). OPF3
    refinements are added under their property name (``role``, ``file-as``).
    """

    value: str
    attributes: dict[str, str] = Field(default_factory=dict)


class GuideReference(BaseModel):
    type: str
    title: str | None = None
    href: str


class Collection(BaseModel):
    role: str
    id: str | None = None
    links: list[str] = Field(default_factory=list)
    collections: list[Collection] = Field(default_factory=list)


class PackageDocument(BaseModel):
    """Resolved OPF package document.

    Invariants: manifest ids are unique and every spine idref names a manifest
    item. The resolver drops offending entries with a diagnostic to keep them.
    """

    full_path: str
    base_path: str
    version: str | None = None
    unique_identifier: str | None = None
    unique_identifier_ref: str | None = None
    metadata: dict[str, list[MetadataEntry]] = Field(default_factory=dict)
    manifest: list[ManifestItem] = Field(default_factory=list)
    spine: list[SpineItemRef] = Field(default_factory=list)
    spine_toc: str | None = None
    page_progression_direction: str | None = None
    guide: list[GuideReference] | None = None
    collections: list[Collection] | None = None
    cover_item_id: str | None = None

    def item_for_id(self, item_id: str) -> ManifestItem | None:
        for item in self.manifest:
            if item.id == item_id:
                return item
        return None

    def first_metadata(self, name: str) -> str | None:
        entries = self.metadata.get(name)
        return entries[0].value if entries else None
