"""Loaded manifest item content."""

from enum import Enum

from pydantic import BaseModel

from epubkit.schemas.package import ManifestItem


class ItemKind(str, Enum):
    """How a manifest item's content was fetched.

    UNKNOWN items have an unrecognized media type and are fetched as bytes.
    """

    TEXT = "text"
    BINARY = "binary"
    UNKNOWN = "unknown"


class PackageItem(BaseModel):
    item: ManifestItem
    kind: ItemKind
    media_type: str | None = None
    full_path: str
    content: str | bytes

    @property
    def is_text(self) -> bool:
        return self.kind == ItemKind.TEXT
