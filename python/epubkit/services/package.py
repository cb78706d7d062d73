"""Package resolver.

Walks container -> rootfile(s) -> package document -> manifest/spine -> nav/ncx
over a DocumentLoader, applying the fallback policy:

- container.xml missing or unusable: assume the default rootfile, warn
- container declares no rootfiles: diagnose, assume the default rootfile
- package document missing or not a package: critical, no value
- malformed manifest items and unresolvable itemrefs: dropped with a diagnostic
- TOC source: nav item, else spine @toc, else the first NCX-typed item

Only the preferred navigation document is loaded by ``toc_document()``; the
other stays available on demand through ``nav()`` / ``ncx()``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from epubkit.config import Settings, get_settings
from epubkit.diagnostics import Diagnostics
from epubkit.logging import get_logger
from epubkit.schemas.documents import DocumentKind, UnvalidatedDocument
from epubkit.schemas.package import (
    PACKAGE_MEDIA_TYPE,
    Container,
    ManifestItem,
    PackageDocument,
    RootFile,
    SpineItemRef,
)
from epubkit.services.documents import DocumentLoader
from epubkit.services.epub_schemas import CONTAINER_NAMESPACE, NCX_MEDIA_TYPE
from epubkit.services.metadata import (
    extract_collections,
    extract_cover_item,
    extract_guide,
    extract_metadata,
    extract_unique_identifier,
    extract_version,
)
from epubkit.services.single_flight import SingleFlight, SingleFlightMap
from epubkit.services.xml import attribute, children
from epubkit.storage.paths import get_base_path, resolve_href

logger = get_logger(__name__)


@dataclass(frozen=True)
class TocSourceRef:
    """The manifest item chosen as navigation source."""

    kind: DocumentKind
    item: ManifestItem


@dataclass
class _ResolvedPackage:
    document: UnvalidatedDocument
    package: PackageDocument
    scope: Diagnostics
    nav_item: ManifestItem | None
    ncx_item: ManifestItem | None


class PackageResolver:
    """Resolves the package graph of one EPUB.

    Args:
        loader: Memoized raw document loader.
        diags: Scope receiving resolver findings.
        settings: Parser settings (default rootfile path).
    """

    def __init__(
        self,
        loader: DocumentLoader,
        diags: Diagnostics,
        settings: Settings | None = None,
    ):
        self.loader = loader
        self._diags = diags
        self._settings = settings or get_settings()
        self._container: SingleFlight[tuple[Container, str]] = SingleFlight(
            self._resolve_container, "container"
        )
        self._packages: dict[str, SingleFlight[_ResolvedPackage | None]] = {}
        self._navs: SingleFlightMap[UnvalidatedDocument | None] = SingleFlightMap(
            lambda path: self._load_navigation(path, DocumentKind.NAV)
        )
        self._ncxs: SingleFlightMap[UnvalidatedDocument | None] = SingleFlightMap(
            lambda path: self._load_navigation(path, DocumentKind.NCX)
        )

    # ------------------------------------------------------------------
    # Container
    # ------------------------------------------------------------------

    async def container(self) -> Container:
        container, _ = await self._container.get()
        return container

    async def package_path(self) -> str:
        _, path = await self._container.get()
        return path

    async def _resolve_container(self) -> tuple[Container, str]:
        scope = self._diags.scope("container")
        default_path = self._settings.default_rootfile_path
        document = await self.loader.container(diags=scope)
        node = document.root("container") if document else None

        if node is None:
            if document is not None:
                scope.warning("container.xml has no container root element")
            scope.warning(f"container is unavailable, assuming rootfile {default_path}")
            logger.info("container_fallback_used", rootfile=default_path)
            fallback = Container(
                root_files=[RootFile(full_path=default_path, media_type=PACKAGE_MEDIA_TYPE)],
                is_fallback=True,
            )
            return fallback, default_path

        version = attribute(node, "version")
        if version != "1.0":
            scope.warning(f"container version should be 1.0, got: {version}")
        xmlns = attribute(node, "xmlns")
        if xmlns != CONTAINER_NAMESPACE:
            scope.warning(f"container xmlns should be {CONTAINER_NAMESPACE}, got: {xmlns}")

        root_files: list[RootFile] = []
        for rootfiles in children(node, "rootfiles"):
            for rootfile in children(rootfiles, "rootfile"):
                full_path = attribute(rootfile, "full-path")
                if not full_path:
                    scope.error("rootfile is missing @full-path")
                    continue
                media_type = attribute(rootfile, "media-type")
                if media_type != PACKAGE_MEDIA_TYPE:
                    scope.warning(
                        f"rootfile media-type should be {PACKAGE_MEDIA_TYPE}, got: {media_type}"
                    )
                root_files.append(RootFile(full_path=full_path.lstrip("/"), media_type=media_type))

        container = Container(version=version, root_files=root_files)
        candidates = container.package_root_files or container.root_files
        if not candidates:
            scope.error(f"container declares no rootfiles, assuming {default_path}")
            return container, default_path
        return container, candidates[0].full_path

    # ------------------------------------------------------------------
    # Package documents
    # ------------------------------------------------------------------

    def _package_flight(self, path: str) -> SingleFlight[_ResolvedPackage | None]:
        flight = self._packages.get(path)
        if flight is None:
            scope = self._diags.scope(f"package: {path}")
            flight = SingleFlight(lambda: self._resolve_package(path, scope), name=path)
            self._packages[path] = flight
        return flight

    async def _resolved(self, path: str | None) -> _ResolvedPackage | None:
        if path is None:
            path = await self.package_path()
        return await self._package_flight(path).get()

    async def package(self, path: str | None = None) -> PackageDocument | None:
        """Resolve the package at ``path`` (default: the container's first rootfile)."""
        resolved = await self._resolved(path)
        return resolved.package if resolved else None

    async def package_document(self, path: str | None = None) -> UnvalidatedDocument | None:
        """The raw package document behind ``package(path)``."""
        resolved = await self._resolved(path)
        return resolved.document if resolved else None

    async def packages(self) -> list[PackageDocument]:
        """Resolve every package rootfile concurrently, in rootfile order."""
        container = await self.container()
        paths = list(dict.fromkeys(r.full_path for r in container.package_root_files))
        if not paths:
            paths = [await self.package_path()]
        # scopes are created here, in rootfile order, before any fetch starts
        flights = [self._package_flight(path) for path in paths]
        results = await asyncio.gather(*(flight.get() for flight in flights))
        return [resolved.package for resolved in results if resolved is not None]

    async def _resolve_package(self, path: str, scope: Diagnostics) -> _ResolvedPackage | None:
        document = await self.loader.xml_at(
            path, required=True, kind=DocumentKind.PACKAGE, diags=scope
        )
        if document is None:
            scope.critical(f"failed to load package document: {path}")
            logger.warning("package_document_missing", path=path)
            return None
        node = document.root("package")
        if node is None:
            scope.critical(f"package document has no package root element: {path}")
            logger.warning("package_document_invalid_root", path=path)
            return None

        base_path = get_base_path(path)
        metadata = extract_metadata(node, scope.scope("metadata"))
        manifest = _extract_manifest(node, base_path, scope.scope("manifest"))
        spine_scope = scope.scope("spine")
        spine_node = next(iter(children(node, "spine")), None)
        spine = _extract_spine(spine_node, {item.id for item in manifest}, spine_scope)
        version = extract_version(node, scope)
        unique_identifier, unique_identifier_ref = extract_unique_identifier(node, metadata, scope)
        cover = extract_cover_item(manifest, metadata, scope.scope("cover"))

        package = PackageDocument(
            full_path=path,
            base_path=base_path,
            version=version,
            unique_identifier=unique_identifier,
            unique_identifier_ref=unique_identifier_ref,
            metadata=metadata,
            manifest=manifest,
            spine=spine,
            spine_toc=attribute(spine_node, "toc"),
            page_progression_direction=attribute(spine_node, "page-progression-direction"),
            guide=extract_guide(node, scope.scope("guide")),
            collections=extract_collections(node, scope.scope("collections")),
            cover_item_id=cover.id if cover else None,
        )
        nav_item, ncx_item = _select_navigation_items(package, scope.scope("navigation"))
        logger.debug(
            "package_resolved",
            path=path,
            version=version,
            manifest_items=len(manifest),
            spine_items=len(spine),
        )
        return _ResolvedPackage(
            document=document,
            package=package,
            scope=scope,
            nav_item=nav_item,
            ncx_item=ncx_item,
        )

    # ------------------------------------------------------------------
    # Navigation documents
    # ------------------------------------------------------------------

    async def toc_source(self, path: str | None = None) -> TocSourceRef | None:
        """Preferred navigation source: EPUB3 nav, else EPUB2 NCX."""
        resolved = await self._resolved(path)
        if resolved is None:
            return None
        if resolved.nav_item is not None:
            return TocSourceRef(kind=DocumentKind.NAV, item=resolved.nav_item)
        if resolved.ncx_item is not None:
            return TocSourceRef(kind=DocumentKind.NCX, item=resolved.ncx_item)
        return None

    async def nav_item(self, path: str | None = None) -> ManifestItem | None:
        resolved = await self._resolved(path)
        return resolved.nav_item if resolved else None

    async def ncx_item(self, path: str | None = None) -> ManifestItem | None:
        resolved = await self._resolved(path)
        return resolved.ncx_item if resolved else None

    async def nav(self, path: str | None = None) -> UnvalidatedDocument | None:
        return await self._navs.get(path or await self.package_path())

    async def ncx(self, path: str | None = None) -> UnvalidatedDocument | None:
        return await self._ncxs.get(path or await self.package_path())

    async def toc_document(self, path: str | None = None) -> UnvalidatedDocument | None:
        """Load only the preferred navigation document."""
        source = await self.toc_source(path)
        if source is None:
            return None
        if source.kind == DocumentKind.NAV:
            return await self.nav(path)
        return await self.ncx(path)

    async def _load_navigation(self, path: str, kind: DocumentKind) -> UnvalidatedDocument | None:
        resolved = await self._resolved(path)
        if resolved is None:
            return None
        item = resolved.nav_item if kind == DocumentKind.NAV else resolved.ncx_item
        if item is None:
            return None
        return await self.loader.xml_at(
            item.full_path, required=True, kind=kind, diags=resolved.scope.scope(kind.value)
        )


def _extract_manifest(
    package: dict[str, Any], base_path: str, diags: Diagnostics
) -> list[ManifestItem]:
    manifests = children(package, "manifest")
    if not manifests:
        diags.error("package is missing manifest")
        return []

    items: list[ManifestItem] = []
    seen: set[str] = set()
    for manifest in manifests:
        for node in children(manifest, "item"):
            item_id = attribute(node, "id")
            href = attribute(node, "href")
            if not item_id:
                diags.error("manifest item is missing @id", data={"href": href})
                continue
            if not href:
                diags.error(f"manifest item is missing @href: {item_id}")
                continue
            if item_id in seen:
                diags.error(f"duplicate manifest item id: {item_id}")
                continue
            seen.add(item_id)
            media_type = attribute(node, "media-type")
            if not media_type:
                diags.warning(f"manifest item is missing @media-type: {item_id}")
            items.append(
                ManifestItem(
                    id=item_id,
                    href=href,
                    media_type=media_type or None,
                    properties=(attribute(node, "properties") or "").split(),
                    fallback=attribute(node, "fallback"),
                    media_overlay=attribute(node, "media-overlay"),
                    full_path=resolve_href(base_path, href),
                )
            )
    return items


def _extract_spine(
    spine: dict[str, Any] | None, manifest_ids: set[str], diags: Diagnostics
) -> list[SpineItemRef]:
    if spine is None:
        diags.error("package is missing spine")
        return []

    refs: list[SpineItemRef] = []
    for node in children(spine, "itemref"):
        idref = attribute(node, "idref")
        if not idref:
            diags.error("spine item is missing idref")
            continue
        if idref not in manifest_ids:
            diags.error("spine item is not in manifest", data={"idref": idref})
            continue
        refs.append(
            SpineItemRef(
                idref=idref,
                linear=attribute(node, "linear") != "no",
                id=attribute(node, "id"),
                properties=(attribute(node, "properties") or "").split(),
            )
        )
    return refs


def _select_navigation_items(
    package: PackageDocument, diags: Diagnostics
) -> tuple[ManifestItem | None, ManifestItem | None]:
    nav_item = next((item for item in package.manifest if "nav" in item.properties), None)

    ncx_item = None
    if package.spine_toc:
        ncx_item = package.item_for_id(package.spine_toc)
        if ncx_item is None:
            diags.error(f"failed to find manifest ncx item for id: {package.spine_toc}")
    if ncx_item is None:
        ncx_item = next(
            (item for item in package.manifest if item.media_type == NCX_MEDIA_TYPE), None
        )
        if ncx_item is not None and nav_item is None:
            diags.warning(f"spine has no usable @toc, using ncx manifest item: {ncx_item.id}")

    if nav_item is None and ncx_item is None:
        diags.warning("package has no navigation document")
    return nav_item, ncx_item
