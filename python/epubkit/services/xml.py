"""XML parsing into the loose document tree.

Turns markup into the permissive ``{root_name: [node]}`` representation:

- element names are namespace-local (``{http://www.idpf.org/2007/opf}item`` -> ``item``)
- attributes are keyed ``@name``; namespaced attributes keep a prefix
  (``@epub:type``, ``@xml:lang``, ``@opf:role``)
- namespace declarations made on an element appear as ``@xmlns`` / ``@xmlns:prefix``
- ``#text`` holds the element's whitespace-collapsed text content, including
  descendants, and is present only when non-empty
- child elements are grouped by local name, each group a list in document order
- every element node is an ``XmlNode`` (a dict) carrying its document position,
  so searches across groups can restore document order

Parsing never raises for malformed markup. External entities, DTDs and network
access are disabled.
"""

from __future__ import annotations

from itertools import count
from typing import Any, Iterator

from lxml import etree

from epubkit.diagnostics import Diagnostics
from epubkit.schemas.documents import XmlTree

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

# Prefixes used when an attribute's namespace has no prefix in scope
_WELL_KNOWN_PREFIXES = {
    "http://www.idpf.org/2007/ops": "epub",
    "http://www.idpf.org/2007/opf": "opf",
    "http://purl.org/dc/elements/1.1/": "dc",
    "http://www.w3.org/2001/XMLSchema-instance": "xsi",
    "http://www.w3.org/1999/xlink": "xlink",
}


class XmlNode(dict):
    """An element node. ``position`` is its index in document order."""

    def __init__(self, *args: Any, position: int = 0, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.position = position


def _make_parser() -> etree.XMLParser:
    return etree.XMLParser(
        encoding="utf-8",
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        remove_comments=True,
        remove_pis=True,
        huge_tree=False,
    )


def parse_xml(text: str, diags: Diagnostics) -> XmlTree | None:
    """Parse ``text`` into a loose tree.

    Returns:
        ``{root_local_name: [root_node]}``, or None after pushing an
        ``xml syntax error`` diagnostic.
    """
    try:
        root = etree.fromstring(text.encode("utf-8"), _make_parser())
    except etree.XMLSyntaxError as exc:
        diags.error(f"xml syntax error: {exc}")
        return None
    if root is None:
        diags.error("xml syntax error: document is empty")
        return None
    return {_local_name(root.tag): [_to_node(root, {}, count())]}


def _local_name(tag: str) -> str:
    return etree.QName(tag).localname


def _attribute_key(name: str, nsmap: dict[str | None, str]) -> str:
    if not name.startswith("{"):
        return f"@{name}"
    qname = etree.QName(name)
    namespace, local = qname.namespace, qname.localname
    if namespace == XML_NAMESPACE:
        return f"@xml:{local}"
    for prefix, uri in nsmap.items():
        if prefix and uri == namespace:
            return f"@{prefix}:{local}"
    prefix = _WELL_KNOWN_PREFIXES.get(namespace)
    return f"@{prefix}:{local}" if prefix else f"@{local}"


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _to_node(
    element: etree._Element, parent_nsmap: dict[str | None, str], positions: Iterator[int]
) -> XmlNode:
    node = XmlNode(position=next(positions))
    nsmap = element.nsmap

    for prefix, uri in nsmap.items():
        if parent_nsmap.get(prefix) != uri:
            node["@xmlns" if prefix is None else f"@xmlns:{prefix}"] = uri

    for name, value in element.attrib.items():
        node[_attribute_key(name, nsmap)] = value

    text = _collapse("".join(element.itertext()))
    if text:
        node["#text"] = text

    for child in element:
        if not isinstance(child.tag, str):
            continue
        node.setdefault(_local_name(child.tag), []).append(_to_node(child, nsmap, positions))

    return node


def text_content(node: Any) -> str:
    """Return a node's collapsed text content, or "" for non-nodes."""
    if not isinstance(node, dict):
        return ""
    text = node.get("#text")
    return text if isinstance(text, str) else ""


def children(node: Any, name: str) -> list[dict[str, Any]]:
    """Return the child elements named ``name``, skipping malformed entries."""
    if not isinstance(node, dict):
        return []
    value = node.get(name)
    if not isinstance(value, list):
        return []
    return [child for child in value if isinstance(child, dict)]


def first_child(node: Any, name: str) -> dict[str, Any] | None:
    found = children(node, name)
    return found[0] if found else None


def find_all(node: Any, name: str) -> list[dict[str, Any]]:
    """Return descendant elements named ``name``.

    Matches are not searched for further nested matches. Results are in
    document order for parsed trees; hand-built dicts keep traversal order.
    """
    found: list[dict[str, Any]] = []
    if not isinstance(node, dict):
        return found
    for key, value in node.items():
        if key.startswith(("@", "#")) or not isinstance(value, list):
            continue
        for child in value:
            if key == name and isinstance(child, dict):
                found.append(child)
            else:
                found.extend(find_all(child, name))
    return sorted(found, key=lambda child: getattr(child, "position", 0))


def attribute(node: Any, name: str) -> str | None:
    """Return attribute ``name`` (without the ``@``) as a stripped string, if present."""
    if not isinstance(node, dict):
        return None
    value = node.get(f"@{name}")
    if not isinstance(value, str):
        return None
    return value.strip()
