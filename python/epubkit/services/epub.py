"""Public entry points.

``open_epub`` returns a lazy handle: each accessor loads only what it needs,
at most once, and concurrent callers share one in-flight load.
``parse_epub`` drives a handle through the whole pipeline and returns a
Result[Epub]. ``parse_epub_archive`` does the same for a zip file on disk or
in memory.

Diagnostics from every stage land in one tree rooted at "epub", so the
flattened list is the same regardless of fetch timing.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from epubkit.config import Settings, get_settings
from epubkit.diagnostics import Diagnostic, Diagnostics, count_by_severity
from epubkit.errors import ArchiveError
from epubkit.logging import clear_parse_context, get_logger, set_parse_context
from epubkit.results import Result, failure, success
from epubkit.schemas.documents import DocumentKind, UnvalidatedDocument, ValidatedDocument
from epubkit.schemas.epub import Epub
from epubkit.schemas.items import PackageItem
from epubkit.schemas.package import Container, ManifestItem, MetadataEntry, PackageDocument
from epubkit.schemas.toc import Toc, TocSource
from epubkit.services.documents import DocumentLoader
from epubkit.services.epub_schemas import (
    validate_container,
    validate_document,
    validate_package,
    violations_for,
)
from epubkit.services.manifest import (
    load_manifest_item,
    load_manifest_items,
    manifest_item_for_href,
)
from epubkit.services.package import PackageResolver
from epubkit.services.single_flight import SingleFlight
from epubkit.services.toc import (
    extract_navigations_from_nav,
    extract_toc_from_nav,
    extract_toc_from_ncx,
)
from epubkit.storage.client import FileProviderBase, ZipFileProvider
from epubkit.storage.paths import resolve_href

logger = get_logger(__name__)


class EpubHandle:
    """Lazy view over one EPUB.

    Args:
        provider: File-access collaborator.
        diags: Root diagnostics scope. A fresh "epub" scope by default.
        settings: Parser settings.
        require_valid: Withhold navigation documents that fail validation.
            Defaults to ``settings.require_valid_documents``.
    """

    def __init__(
        self,
        provider: FileProviderBase,
        diags: Diagnostics | None = None,
        settings: Settings | None = None,
        *,
        require_valid: bool | None = None,
    ):
        self.provider = provider
        self.settings = settings or get_settings()
        self.require_valid = (
            self.settings.require_valid_documents if require_valid is None else require_valid
        )
        self._diags = diags or Diagnostics("epub")
        self.loader = DocumentLoader(provider, self._diags)
        self.resolver = PackageResolver(self.loader, self._diags, self.settings)
        self._validation: SingleFlight[dict[DocumentKind, bool]] = SingleFlight(
            self._validate, "validation"
        )
        self._toc: SingleFlight[Toc | None] = SingleFlight(self._extract_toc, "toc")
        self._navigations: SingleFlight[list[Toc]] = SingleFlight(
            self._extract_navigations, "navigations"
        )
        self._validated: dict[DocumentKind, ValidatedDocument] = {}
        self._scopes: dict[str, Diagnostics] = {}

    def _scope(self, name: str) -> Diagnostics:
        if name not in self._scopes:
            self._scopes[name] = self._diags.scope(name)
        return self._scopes[name]

    # ------------------------------------------------------------------
    # Package graph
    # ------------------------------------------------------------------

    @property
    def documents(self) -> DocumentLoader:
        """Raw document loader (META-INF extras, arbitrary XML by path)."""
        return self.loader

    async def mimetype(self) -> str | None:
        return await self.loader.mimetype()

    async def container(self) -> Container:
        return await self.resolver.container()

    async def package_path(self) -> str:
        return await self.resolver.package_path()

    async def package(self) -> PackageDocument | None:
        return await self.resolver.package()

    async def packages(self) -> list[PackageDocument]:
        return await self.resolver.packages()

    async def version(self) -> str | None:
        package = await self.package()
        return package.version if package else None

    async def unique_identifier(self) -> str | None:
        package = await self.package()
        return package.unique_identifier if package else None

    async def metadata(self) -> dict[str, list[MetadataEntry]]:
        package = await self.package()
        return package.metadata if package else {}

    async def cover_item(self) -> ManifestItem | None:
        package = await self.package()
        if package is None or package.cover_item_id is None:
            return None
        return package.item_for_id(package.cover_item_id)

    async def manifest(self) -> list[ManifestItem]:
        package = await self.package()
        return list(package.manifest) if package else []

    async def spine(self) -> list[ManifestItem]:
        """Manifest items in reading order."""
        package = await self.package()
        if package is None:
            return []
        items = (package.item_for_id(ref.idref) for ref in package.spine)
        return [item for item in items if item is not None]

    async def item_for_id(self, item_id: str) -> ManifestItem | None:
        package = await self.package()
        return package.item_for_id(item_id) if package else None

    async def item_for_href(self, href: str) -> ManifestItem | None:
        """Manifest item for an href relative to the package document."""
        package = await self.package()
        if package is None:
            return None
        return manifest_item_for_href(package.manifest, href, package.base_path)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def toc(self) -> Toc | None:
        return await self._toc.get()

    async def navigations(self) -> list[Toc]:
        return await self._navigations.get()

    def _usable(
        self, document: UnvalidatedDocument | None, scope: Diagnostics
    ) -> UnvalidatedDocument | None:
        if document is None or not self.require_valid:
            return document
        if violations_for(document):
            scope.warning(f"{document.kind.value} document failed validation, withheld")
            return None
        return document

    async def _extract_toc(self) -> Toc | None:
        source = await self.resolver.toc_source()
        if source is None:
            return None
        scope = self._scope("toc")

        if source.kind == DocumentKind.NAV:
            nav = self._usable(await self.resolver.nav(), scope)
            toc = extract_toc_from_nav(nav.tree, scope) if nav else None
            if toc is not None:
                return toc
            if await self.resolver.ncx_item() is None:
                return None
            scope.warning("nav document is unusable, falling back to ncx")

        ncx = self._usable(await self.resolver.ncx(), scope)
        return extract_toc_from_ncx(ncx.tree, scope) if ncx else None

    async def _extract_navigations(self) -> list[Toc]:
        toc = await self.toc()
        if toc is None:
            return []
        if toc.source != TocSource.NAV:
            return [toc]
        nav = await self.resolver.nav()
        others = extract_navigations_from_nav(
            nav.tree if nav else None, self._scope("navigations"), exclude_types=("toc",)
        )
        if toc.type == "toc":
            return [toc, *others]
        # toc came from the first nav; it heads the list in place of its copy
        return [toc, *others[1:]]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate(self) -> dict[DocumentKind, bool]:
        """Validate container, package and the preferred navigation document.

        Returns a map of document kind to pass/fail. A missing container is
        absent from the map; the fallback rootfile was already reported.
        """
        return await self._validation.get()

    def validated(self, kind: DocumentKind) -> ValidatedDocument | None:
        """The validated copy of a document, once ``validate()`` has passed it."""
        return self._validated.get(kind)

    def _record(self, kind: DocumentKind, document: ValidatedDocument | None) -> bool:
        if document is None:
            return False
        self._validated[kind] = document
        return True

    async def _validate(self) -> dict[DocumentKind, bool]:
        # container.xml findings belong to the resolver's container scope
        await self.resolver.container()
        scope = self._scope("validation")
        results: dict[DocumentKind, bool] = {}

        container = await self.loader.container()
        if container is not None:
            results[DocumentKind.CONTAINER] = self._record(
                DocumentKind.CONTAINER, validate_container(container, scope)
            )
        package = await self.resolver.package_document()
        results[DocumentKind.PACKAGE] = self._record(
            DocumentKind.PACKAGE, validate_package(package, scope)
        )
        toc_document = await self.resolver.toc_document()
        if toc_document is not None:
            results[toc_document.kind] = self._record(
                toc_document.kind, validate_document(toc_document, scope)
            )

        logger.debug(
            "documents_validated",
            results={kind.value: passed for kind, passed in results.items()},
        )
        return results

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def load_item(self, item: ManifestItem) -> PackageItem | None:
        package = await self.package()
        base_path = package.base_path if package else ""
        return await load_manifest_item(item, base_path, self.provider, self._scope("items"))

    async def load_items(self, items: list[ManifestItem] | None = None) -> list[PackageItem]:
        """Load manifest items concurrently (all of them by default)."""
        package = await self.package()
        if package is None:
            return []
        if items is None:
            items = list(package.manifest)
        return await load_manifest_items(
            items, package.base_path, self.provider, self._scope("items")
        )

    async def _file_path(self, href: str) -> str:
        package = await self.package()
        return resolve_href(package.base_path if package else "", href)

    async def load_text_file(self, href: str) -> str | None:
        """Read a file by href relative to the package document."""
        path = await self._file_path(href)
        return await self.loader.read_text(path, required=True, diags=self._scope("files"))

    async def load_binary_file(self, href: str) -> bytes | None:
        path = await self._file_path(href)
        return await self.loader.read_binary(path, required=True, diags=self._scope("files"))

    def diagnostics(self) -> list[Diagnostic]:
        return self._diags.all()


def open_epub(
    provider: FileProviderBase,
    diags: Diagnostics | None = None,
    settings: Settings | None = None,
    *,
    require_valid: bool | None = None,
) -> EpubHandle:
    """Open an EPUB lazily. Nothing is read until an accessor is awaited."""
    return EpubHandle(provider, diags, settings, require_valid=require_valid)


async def parse_epub(
    provider: FileProviderBase,
    *,
    load_items: bool | None = None,
    require_valid: bool | None = None,
    settings: Settings | None = None,
) -> Result[Epub]:
    """Parse a whole EPUB.

    Args:
        provider: File-access collaborator.
        load_items: Also fetch every manifest item. Defaults to
            ``settings.load_manifest_items``.
        require_valid: Fail when the container or package document fails
            validation, and withhold invalid navigation documents. Defaults to
            ``settings.require_valid_documents``.
        settings: Parser settings.

    Returns:
        Result with the Epub, or without a value when no package document
        could be resolved.

    Raises:
        ContractViolationError: If the provider breaks its return contract.
    """
    settings = settings or get_settings()
    if load_items is None:
        load_items = settings.load_manifest_items

    set_parse_context(uuid.uuid4().hex, source=getattr(provider, "name", None))
    try:
        diags = Diagnostics("epub")
        handle = open_epub(provider, diags, settings, require_valid=require_valid)
        logger.info("epub_parse_started", require_valid=handle.require_valid)

        mimetype = await handle.mimetype()
        container = await handle.container()
        package_path = await handle.package_path()
        package = await handle.package()
        if package is None:
            logger.warning("epub_parse_failed", package_path=package_path)
            return failure(diags.all())

        validation = await handle.validate()
        if handle.require_valid:
            rejected = [
                kind.value
                for kind in (DocumentKind.CONTAINER, DocumentKind.PACKAGE)
                if validation.get(kind) is False
            ]
            if rejected:
                diags.critical(f"invalid documents rejected: {', '.join(rejected)}")
                logger.warning("epub_parse_failed", rejected=rejected)
                return failure(diags.all())

        packages = await handle.packages()
        toc = await handle.toc()
        navigations = await handle.navigations()
        items = await handle.load_items() if load_items else []

        epub = Epub(
            mimetype=mimetype,
            container=container,
            package_path=package_path,
            package=package,
            packages=packages,
            spine_items=await handle.spine(),
            toc=toc,
            navigations=navigations,
            items=items,
            validation=validation,
            cover_item=await handle.cover_item(),
        )
        diagnostics = diags.all()
        counts = count_by_severity(diagnostics)
        logger.info(
            "epub_parse_finished",
            version=package.version,
            spine_items=len(epub.spine_items),
            toc_items=len(toc.items) if toc else 0,
            diagnostics={severity.value: count for severity, count in counts.items()},
        )
        return success(epub, diagnostics)
    finally:
        clear_parse_context()


async def parse_epub_archive(
    source: str | Path | bytes,
    *,
    load_items: bool | None = None,
    require_valid: bool | None = None,
    settings: Settings | None = None,
) -> Result[Epub]:
    """Parse an EPUB zip from a filesystem path or raw bytes.

    Archives that are not zips, or that break the safety limits, produce a
    failed Result with one critical diagnostic instead of raising.
    """
    settings = settings or get_settings()
    try:
        provider = ZipFileProvider.open(source, settings)
    except ArchiveError as exc:
        logger.warning("epub_archive_rejected", error_code=exc.code.value, reason=exc.message)
        diags = Diagnostics("epub")
        diags.push(Diagnostic(exc.message, exc.severity, {"code": exc.code.value}))
        return failure(diags.all())

    with provider:
        return await parse_epub(
            provider, load_items=load_items, require_valid=require_valid, settings=settings
        )
