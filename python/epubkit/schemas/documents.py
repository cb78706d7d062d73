"""Raw and validated document wrappers.

A parsed XML document is a loose tree: ``{root_name: [node]}`` where each node is
a dict holding attributes under ``"@name"``, direct text under ``"#text"``, and
child elements under their local name as a list in document order. Any key may
be absent.

UnvalidatedDocument and ValidatedDocument are two views of the same logical
document. Only the schema validator produces a ValidatedDocument, and it hands
over its own deep copy of the tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

XmlTree = dict[str, Any]


class DocumentKind(str, Enum):
    """Well-known documents in the EPUB document graph."""

    CONTAINER = "container"
    PACKAGE = "package"
    NCX = "ncx"
    NAV = "nav"
    ENCRYPTION = "encryption"
    MANIFEST = "manifest"
    METADATA = "metadata"
    RIGHTS = "rights"
    SIGNATURES = "signatures"
    XML = "xml"


@dataclass(frozen=True)
class UnvalidatedDocument:
    kind: DocumentKind
    full_path: str
    tree: XmlTree

    def root(self, name: str) -> XmlTree | None:
        return root_node(self.tree, name)


@dataclass(frozen=True)
class ValidatedDocument:
    """A document whose required fields are known to be present.

    Construct through ``epubkit.services.epub_schemas.validate_document``.
    """

    kind: DocumentKind
    full_path: str
    tree: XmlTree

    def root(self, name: str) -> XmlTree | None:
        return root_node(self.tree, name)


def root_node(tree: XmlTree | None, name: str) -> XmlTree | None:
    """Return the single root element named ``name``, if present."""
    if not tree:
        return None
    nodes = tree.get(name)
    if not isinstance(nodes, list) or not nodes or not isinstance(nodes[0], dict):
        return None
    return nodes[0]
