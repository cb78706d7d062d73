"""Manifest item loader.

Resolves a manifest item's href against its package base path and fetches the
content according to its declared media type. Unknown media types are not an
error: the content is fetched as bytes and tagged UNKNOWN.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from epubkit.diagnostics import Diagnostics
from epubkit.errors import ContractViolationError
from epubkit.logging import get_logger
from epubkit.schemas.items import ItemKind, PackageItem
from epubkit.schemas.package import ManifestItem
from epubkit.storage.client import FileProviderBase
from epubkit.storage.paths import resolve_href

logger = get_logger(__name__)

TEXT_MEDIA_TYPES = frozenset(
    {
        "application/xhtml+xml",
        "application/x-dtbncx+xml",
        "application/smil+xml",
        "application/oebps-package+xml",
        "text/css",
        "text/html",
        "text/plain",
        "text/javascript",
        "application/javascript",
    }
)

BINARY_MEDIA_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
        "application/x-font-ttf",
        "application/vnd.ms-opentype",
        "application/font-woff",
        "font/ttf",
        "font/otf",
        "font/woff",
        "font/woff2",
        "audio/mpeg",
        "audio/mp4",
        "video/mp4",
    }
)


def classify_media_type(media_type: str | None) -> ItemKind:
    if media_type in TEXT_MEDIA_TYPES:
        return ItemKind.TEXT
    if media_type in BINARY_MEDIA_TYPES:
        return ItemKind.BINARY
    return ItemKind.UNKNOWN


async def load_manifest_item(
    item: ManifestItem,
    base_path: str,
    provider: FileProviderBase,
    diags: Diagnostics,
) -> PackageItem | None:
    """Fetch one manifest item.

    Args:
        item: The manifest entry.
        base_path: Directory of the package document that declares it.
        provider: File-access collaborator.
        diags: Scope for this item's findings (a child is opened per item).

    Returns:
        The loaded item, or None if the content could not be read.

    Raises:
        ContractViolationError: If the provider returns the wrong type.
    """
    scope = diags.scope(f"manifest item: {item.id}")
    return await _load(item, base_path, provider, scope)


async def _load(
    item: ManifestItem,
    base_path: str,
    provider: FileProviderBase,
    scope: Diagnostics,
) -> PackageItem | None:
    full_path = resolve_href(base_path, item.href)
    kind = classify_media_type(item.media_type)

    if kind == ItemKind.TEXT:
        content: str | bytes | None = await provider.read_text(full_path, scope)
        expected: type = str
    else:
        if kind == ItemKind.UNKNOWN:
            scope.info(f"unknown media type {item.media_type}, reading as binary: {item.id}")
        content = await provider.read_binary(full_path, scope)
        expected = bytes

    if content is not None and not isinstance(content, expected):
        raise ContractViolationError(
            f"provider returned {type(content).__name__} for {full_path}, "
            f"expected {expected.__name__} or None"
        )
    if content is None:
        scope.error(
            f"failed to read manifest item {item.id}: {full_path}",
            data={"id": item.id, "path": full_path},
        )
        return None

    return PackageItem(
        item=item,
        kind=kind,
        media_type=item.media_type,
        full_path=full_path,
        content=content,
    )


async def load_manifest_items(
    items: Iterable[ManifestItem],
    base_path: str,
    provider: FileProviderBase,
    diags: Diagnostics,
) -> list[PackageItem]:
    """Fetch manifest items concurrently.

    Each item gets its own scope, created in manifest order before any fetch
    starts, so the flattened diagnostics do not depend on completion order.
    Items that fail to load are dropped.
    """
    items = list(items)
    scopes = [diags.scope(f"manifest item: {item.id}") for item in items]
    loaded = await asyncio.gather(
        *(_load(item, base_path, provider, scope) for item, scope in zip(items, scopes))
    )
    result = [item for item in loaded if item is not None]
    logger.debug("manifest_items_loaded", requested=len(items), loaded=len(result))
    return result


def manifest_item_for_id(manifest: Iterable[ManifestItem], item_id: str) -> ManifestItem | None:
    return next((item for item in manifest if item.id == item_id), None)


def manifest_item_for_href(
    manifest: Iterable[ManifestItem], href: str, base_path: str = ""
) -> ManifestItem | None:
    """Find the item an href (relative to ``base_path``) points at.

    Fragments and trailing slashes are ignored.
    """
    full_path = resolve_href(base_path, href)
    return next((item for item in manifest if item.full_path == full_path), None)
