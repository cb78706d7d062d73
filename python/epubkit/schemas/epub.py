"""Fully resolved EPUB model returned by parse_epub."""

from pydantic import BaseModel, Field

from epubkit.schemas.documents import DocumentKind
from epubkit.schemas.items import PackageItem
from epubkit.schemas.package import Container, ManifestItem, PackageDocument
from epubkit.schemas.toc import Toc


class Epub(BaseModel):
    """Parsed EPUB.

    ``validation`` maps each checked document kind to whether it passed
    structural validation. With best-effort parsing (the default) documents
    that failed are still used; with ``require_valid`` they are withheld.
    """

    mimetype: str | None = None
    container: Container
    package_path: str
    package: PackageDocument
    packages: list[PackageDocument] = Field(default_factory=list)
    spine_items: list[ManifestItem] = Field(default_factory=list)
    toc: Toc | None = None
    navigations: list[Toc] = Field(default_factory=list)
    items: list[PackageItem] = Field(default_factory=list)
    validation: dict[DocumentKind, bool] = Field(default_factory=dict)
    cover_item: ManifestItem | None = None

    @property
    def title(self) -> str | None:
        return self.package.first_metadata("title")
