"""Package metadata, identifier, cover, guide and collection extraction.

All functions take the raw ``package`` root node and report through the given
scope. Nothing here raises for malformed input.
"""

from __future__ import annotations

from typing import Any

from epubkit.diagnostics import Diagnostics
from epubkit.schemas.package import Collection, GuideReference, ManifestItem, MetadataEntry
from epubkit.services.epub_schemas import PACKAGE_VERSIONS
from epubkit.services.xml import attribute, children, first_child, text_content

PackageMetadata = dict[str, list[MetadataEntry]]

GUIDE_REFERENCE_TYPES = frozenset(
    {
        "cover",
        "title-page",
        "toc",
        "index",
        "glossary",
        "acknowledgements",
        "bibliography",
        "colophon",
        "copyright-page",
        "dedication",
        "epigraph",
        "foreword",
        "loi",
        "lot",
        "notes",
        "preface",
        "text",
    }
)

_SKIPPED_METADATA_KEYS = frozenset({"meta", "link", "#text"})


def _entry(node: dict[str, Any]) -> MetadataEntry:
    attributes = {
        key: value
        for key, value in node.items()
        if key.startswith("@") and not key.startswith("@xmlns") and isinstance(value, str)
    }
    return MetadataEntry(value=text_content(node), attributes=attributes)


def extract_metadata(package: dict[str, Any] | None, diags: Diagnostics) -> PackageMetadata:
    """Collect Dublin Core elements and OPF2/OPF3 meta entries.

    Entries are keyed by element local name (``title``, ``creator``), OPF2
    meta ``@name`` or OPF3 meta ``@property``. OPF3 metas with ``@refines``
    are attached to the entry they refine instead of being added.
    """
    metadata = first_child(package, "metadata")
    if metadata is None:
        diags.error("package is missing metadata")
        return {}

    result: PackageMetadata = {}
    for key, value in metadata.items():
        if key in _SKIPPED_METADATA_KEYS or key.startswith("@"):
            continue
        for node in value if isinstance(value, list) else []:
            if isinstance(node, dict):
                result.setdefault(key, []).append(_entry(node))

    refinements: list[tuple[str, str, str]] = []
    for meta in children(metadata, "meta"):
        name, content = attribute(meta, "name"), attribute(meta, "content")
        if name is not None and content is not None:
            result.setdefault(name, []).append(MetadataEntry(value=content))
            continue
        prop = attribute(meta, "property")
        if prop is None:
            diags.warning("meta element is missing property")
            continue
        text = text_content(meta)
        if not text:
            diags.warning(f"meta element is missing text: {prop}")
            continue
        refines = attribute(meta, "refines")
        if refines:
            refinements.append((prop, refines, text))
        else:
            result.setdefault(prop, []).append(_entry(meta))

    for prop, refines, text in refinements:
        _refine(result, prop, refines, text, diags)

    return result


def _refine(
    result: PackageMetadata, prop: str, refines: str, text: str, diags: Diagnostics
) -> None:
    if not refines.startswith("#"):
        diags.warning(f"refines attribute is not a valid id: {refines}")
        return
    target_id = refines[1:]
    name = prop.split(":", 1)[1] if ":" in prop else prop
    for entries in result.values():
        for entry in entries:
            if entry.attributes.get("@id") == target_id:
                if name in entry.attributes:
                    diags.warning(f"metadata item already has property {name}: {target_id}")
                else:
                    entry.attributes[name] = text
                return
    diags.warning(f"failed to find metadata item for id: {target_id}")


def extract_version(package: dict[str, Any] | None, diags: Diagnostics) -> str | None:
    version = attribute(package, "version")
    if version is None:
        diags.error("package is missing version")
    elif version not in PACKAGE_VERSIONS:
        diags.warning(f"package version should be 2.0 or 3.0, got: {version}")
    return version


def extract_unique_identifier(
    package: dict[str, Any] | None, metadata: PackageMetadata, diags: Diagnostics
) -> tuple[str | None, str | None]:
    """Return ``(identifier, identifier_id)``.

    EPUB3 and conforming EPUB2 point ``@unique-identifier`` at a
    ``dc:identifier`` id; packages without it fall back to ``dtb:id`` meta.
    """
    ref = attribute(package, "unique-identifier")
    if ref is None:
        diags.error("package is missing unique-identifier")
        dtb = metadata.get("dtb:id")
        return (dtb[0].value if dtb else None), None

    for entry in metadata.get("identifier", []):
        if entry.attributes.get("@id") == ref:
            return entry.value, ref
    diags.error(f"failed to find identifier with id: {ref}")
    return None, ref


def extract_cover_item(
    manifest: list[ManifestItem], metadata: PackageMetadata, diags: Diagnostics
) -> ManifestItem | None:
    for item in manifest:
        if "cover-image" in item.properties:
            return item

    cover = metadata.get("cover")
    if cover:
        cover_id = cover[0].value
        for item in manifest:
            if item.id == cover_id:
                return item
        diags.warning(f"failed to find manifest item for cover id: {cover_id}")
        return None

    diags.info("package has no cover item")
    return None


def extract_guide(
    package: dict[str, Any] | None, diags: Diagnostics
) -> list[GuideReference] | None:
    guide = first_child(package, "guide")
    if guide is None:
        return None

    references: list[GuideReference] = []
    for node in children(guide, "reference"):
        ref_type = attribute(node, "type")
        href = attribute(node, "href")
        if not ref_type:
            diags.error("reference element is missing type")
            continue
        if not href:
            diags.error("reference element is missing href")
            continue
        if ref_type not in GUIDE_REFERENCE_TYPES and not ref_type.startswith("other."):
            diags.warning(f"unknown reference type: {ref_type}")
            ref_type = f"-unknown-{ref_type}"
        references.append(GuideReference(type=ref_type, title=attribute(node, "title"), href=href))
    return references


def extract_collections(
    package: dict[str, Any] | None, diags: Diagnostics
) -> list[Collection] | None:
    nodes = children(package, "collection")
    if not nodes:
        return None
    return [c for c in (_collection(node, diags) for node in nodes) if c is not None]


def _collection(node: dict[str, Any], diags: Diagnostics) -> Collection | None:
    role = attribute(node, "role")
    if not role:
        diags.error("collection element is missing role")
        return None
    links = [href for link in children(node, "link") if (href := attribute(link, "href"))]
    nested = [c for c in (_collection(child, diags) for child in children(node, "collection")) if c]
    if not links and not nested:
        diags.warning(f"collection element is missing links: {role}")
    return Collection(role=role, id=attribute(node, "id"), links=links, collections=nested)
