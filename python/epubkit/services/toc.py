"""Table of contents extraction.

Normalizes EPUB2 NCX (navMap/navPoint, pageList/pageTarget) and EPUB3 Nav
(nav/ol/li/a) into the same flat Toc: items in pre-order, parent before its
children, with ``level`` the zero-based nesting depth.

An entry that cannot produce an item (no label, no href, no anchor) is skipped
with a diagnostic; its nested entries are still visited one level deeper.
Extraction is pure over the tree it is given.
"""

from __future__ import annotations

from typing import Any

from epubkit.diagnostics import Diagnostics
from epubkit.schemas.documents import XmlTree, root_node
from epubkit.schemas.toc import Toc, TocItem, TocSource
from epubkit.services.xml import attribute, children, find_all, first_child, text_content

NCX_VERSION = "2005-1"

_HEADINGS = ("h1", "h2", "h3", "h4", "h5", "h6")


# ---------------------------------------------------------------------------
# NCX
# ---------------------------------------------------------------------------


def extract_toc_from_ncx(tree: XmlTree | None, diags: Diagnostics) -> Toc | None:
    ncx = root_node(tree, "ncx")
    if ncx is None:
        diags.error("ncx document has no ncx root element")
        return None

    version = attribute(ncx, "version")
    if version != NCX_VERSION:
        diags.warning(f"ncx version should be {NCX_VERSION}, got: {version}")

    title = _ncx_label(first_child(ncx, "docTitle")) or None

    nav_map = first_child(ncx, "navMap")
    nav_points = children(nav_map, "navPoint")
    if nav_points:
        items: list[TocItem] = []
        _walk_ncx_navpoints(nav_points, items, diags, depth=0)
        return Toc(title=title, items=items, source=TocSource.NCX, type="navMap")

    page_list = first_child(ncx, "pageList")
    if page_list is not None:
        items = []
        for target in children(page_list, "pageTarget"):
            item = _ncx_item(target, 0, "pageTarget", diags)
            if item is not None:
                items.append(item)
        return Toc(
            title=title or _ncx_label(first_child(page_list, "navLabel")) or None,
            items=items,
            source=TocSource.NCX,
            type="pageList",
        )

    diags.warning("ncx has no navMap entries and no pageList")
    return Toc(title=title, items=[], source=TocSource.NCX, type="navMap")


def _ncx_label(label_parent: Any) -> str:
    """Text of ``navLabel/text`` (or ``docTitle/text``)."""
    if label_parent is None:
        return ""
    label = first_child(label_parent, "navLabel") or label_parent
    return text_content(first_child(label, "text"))


def _ncx_item(
    node: dict[str, Any], depth: int, what: str, diags: Diagnostics
) -> TocItem | None:
    label = _ncx_label(node)
    src = attribute(first_child(node, "content"), "src")
    if not label:
        diags.error(f"{what} is missing label", data={"id": attribute(node, "id")})
        return None
    if not src:
        diags.error(f"{what} is missing content src", data={"label": label})
        return None
    return TocItem(label=label, href=src, level=depth)


def _walk_ncx_navpoints(
    nav_points: list[dict[str, Any]],
    items: list[TocItem],
    diags: Diagnostics,
    depth: int,
) -> None:
    for nav_point in nav_points:
        item = _ncx_item(nav_point, depth, "navPoint", diags)
        if item is not None:
            items.append(item)
        _walk_ncx_navpoints(children(nav_point, "navPoint"), items, diags, depth + 1)


# ---------------------------------------------------------------------------
# Nav
# ---------------------------------------------------------------------------


def _nav_types(nav: dict[str, Any]) -> list[str]:
    return (attribute(nav, "epub:type") or "").split()


def _nav_elements(tree: XmlTree | None, diags: Diagnostics) -> list[dict[str, Any]]:
    html = root_node(tree, "html")
    if html is None:
        diags.error("nav document has no html root element")
        return []
    navs = find_all(first_child(html, "body"), "nav")
    if not navs:
        diags.error("nav document has no nav element")
    return navs


def extract_toc_from_nav(tree: XmlTree | None, diags: Diagnostics) -> Toc | None:
    navs = _nav_elements(tree, diags)
    if not navs:
        return None
    toc_nav = next((nav for nav in navs if "toc" in _nav_types(nav)), None)
    if toc_nav is None:
        diags.warning("nav document has no toc nav, using the first nav element")
        toc_nav = navs[0]
    return _nav_to_toc(toc_nav, diags)


def extract_navigations_from_nav(
    tree: XmlTree | None,
    diags: Diagnostics,
    exclude_types: tuple[str, ...] = (),
) -> list[Toc]:
    """Every nav element (toc, landmarks, page-list, ...) as a Toc.

    Navs whose ``epub:type`` includes one of ``exclude_types`` are skipped.
    Navs without an ``ol`` yield no Toc.
    """
    navs = _nav_elements(tree, diags)
    tocs = [
        _nav_to_toc(nav, diags.scope(f"nav[{index}]"))
        for index, nav in enumerate(navs)
        if not set(_nav_types(nav)) & set(exclude_types)
    ]
    return [toc for toc in tocs if toc is not None]


def _nav_to_toc(nav: dict[str, Any], diags: Diagnostics) -> Toc | None:
    title = None
    for heading in _HEADINGS:
        node = first_child(nav, heading)
        if node is not None:
            title = text_content(node) or None
            break

    ol = first_child(nav, "ol")
    if ol is None:
        diags.error("nav is missing ol")
        return None

    items: list[TocItem] = []
    _walk_nav_ol(ol, items, diags, depth=0)

    types = _nav_types(nav)
    return Toc(
        title=title,
        items=items,
        source=TocSource.NAV,
        type=types[0] if types else None,
    )


def _walk_nav_ol(
    ol: dict[str, Any],
    items: list[TocItem],
    diags: Diagnostics,
    depth: int,
) -> None:
    for li in children(ol, "li"):
        anchor = first_child(li, "a")
        if anchor is None:
            label = text_content(first_child(li, "span"))
            diags.warning("nav ol li is missing anchor", data={"label": label or None})
        else:
            href = attribute(anchor, "href")
            label = text_content(anchor)
            if not href:
                diags.error("nav ol li is missing href", data={"label": label or None})
            elif not label:
                diags.error("nav ol li is missing label", data={"href": href})
            else:
                items.append(TocItem(label=label, href=href, level=depth))

        nested = first_child(li, "ol")
        if nested is not None:
            _walk_nav_ol(nested, items, diags, depth + 1)
