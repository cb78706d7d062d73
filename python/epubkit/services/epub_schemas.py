"""Structural schemas for the EPUB documents this library consumes.

Each ``validate_*`` function checks a freshly parsed document, pushes every
violation as ``failed validation: <path>: <message>`` into a scope named after
the document kind, and returns a ValidatedDocument only when there are none.
Only fields the model consumes are constrained; unknown namespaced attributes
and text are tolerated.
"""

from __future__ import annotations

import copy
from collections import Counter
from collections.abc import Iterable
from typing import Any

from epubkit.diagnostics import Diagnostics
from epubkit.schemas.documents import DocumentKind, UnvalidatedDocument, ValidatedDocument
from epubkit.schemas.package import PACKAGE_MEDIA_TYPE
from epubkit.services.validator import (
    Schema,
    any_value,
    array,
    custom,
    obj,
    one_of,
    optional,
    string,
    validate,
)
from epubkit.services.xml import attribute, children, find_all

EPUB_MIMETYPE = "application/epub+zip"
CONTAINER_NAMESPACE = "urn:oasis:names:tc:opendocument:xmlns:container"
OPF_NAMESPACE = "http://www.idpf.org/2007/opf"
XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
PACKAGE_VERSIONS = ("2.0", "3.0")

__all__ = [
    "CONTAINER",
    "CONTAINER_NAMESPACE",
    "EPUB_MIMETYPE",
    "NAV_DOCUMENT",
    "NCX",
    "NCX_MEDIA_TYPE",
    "OPF_NAMESPACE",
    "PACKAGE",
    "PACKAGE_MEDIA_TYPE",
    "PACKAGE_REFERENCES",
    "PACKAGE_VERSIONS",
    "validate_container",
    "validate_document",
    "validate_nav",
    "validate_ncx",
    "validate_package",
]

_HEADINGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def _xml_extra(key: str) -> bool:
    return key == "#text" or key.startswith(("@xmlns", "@opf:", "@xsi:", "@xml:"))


def _html_extra(key: str) -> bool:
    return key.startswith(("@", "#"))


def field(fields: dict[str, Schema], extra_key=_xml_extra) -> Schema:
    """Exactly one child element."""
    return array(obj(fields, extra_key), 1, 1)


def collection(fields: dict[str, Schema], extra_key=_xml_extra) -> Schema:
    """One or more child elements."""
    return array(obj(fields, extra_key), 1)


def opt_field(fields: dict[str, Schema], extra_key=_xml_extra) -> Schema:
    return optional(field(fields, extra_key))


def opt_collection(fields: dict[str, Schema], extra_key=_xml_extra) -> Schema:
    return optional(collection(fields, extra_key))


def opt_string() -> Schema:
    return optional(string())


def number_string() -> Schema:
    def check(value: Any) -> list[str]:
        try:
            float(value)
        except (TypeError, ValueError):
            return [f"expected a number but got '{value}'"]
        return []

    return custom(check, description="numeric string")


def recursive(get_schema) -> Schema:
    """Defer schema lookup so a schema can contain itself."""
    return custom(lambda value: validate(value, get_schema()), description="nested tree")


# ---------------------------------------------------------------------------
# container.xml
# ---------------------------------------------------------------------------

CONTAINER = obj(
    {
        "container": field(
            {
                "@version": "1.0",
                "@xmlns": CONTAINER_NAMESPACE,
                "rootfiles": field(
                    {
                        "rootfile": collection(
                            {
                                "@full-path": string(),
                                "@media-type": PACKAGE_MEDIA_TYPE,
                            }
                        ),
                    }
                ),
                "links": opt_field(
                    {
                        "link": collection(
                            {
                                "@href": string(),
                                "@rel": string(),
                                "@media-type": opt_string(),
                            }
                        ),
                    }
                ),
            }
        ),
    }
)

# ---------------------------------------------------------------------------
# Package document
# ---------------------------------------------------------------------------

DIR = one_of("ltr", "rtl", "auto")

_DC_ELEMENT = opt_collection(
    {
        "@id": opt_string(),
        "@dir": optional(DIR),
        "#text": string(),
    }
)

_OPF2_META = obj({"@name": string(), "@content": string(), "@id": opt_string()}, _xml_extra)
_OPF3_META = obj(
    {
        "@property": string(),
        "@dir": optional(DIR),
        "@id": opt_string(),
        "@refines": opt_string(),
        "@scheme": opt_string(),
        "#text": string(),
    },
    _xml_extra,
)


def _metadata_extra(key: str) -> bool:
    # Dublin Core and extension elements beyond the ones listed are tolerated
    return _xml_extra(key) or not key.startswith("@")


METADATA = field(
    {
        "identifier": opt_collection({"@id": opt_string(), "#text": string()}),
        "title": _DC_ELEMENT,
        "language": _DC_ELEMENT,
        "creator": _DC_ELEMENT,
        "contributor": _DC_ELEMENT,
        "date": _DC_ELEMENT,
        "publisher": _DC_ELEMENT,
        "description": _DC_ELEMENT,
        "subject": _DC_ELEMENT,
        "rights": _DC_ELEMENT,
        "source": _DC_ELEMENT,
        "meta": optional(array(one_of(_OPF2_META, _OPF3_META))),
        "link": optional(array(any_value())),
    },
    _metadata_extra,
)

MANIFEST = field(
    {
        "@id": opt_string(),
        "item": collection(
            {
                "@id": string(),
                "@href": string(),
                "@media-type": string(),
                "@fallback": opt_string(),
                "@properties": opt_string(),
                "@media-overlay": opt_string(),
            }
        ),
    }
)

SPINE = field(
    {
        "@id": opt_string(),
        "@toc": opt_string(),
        "@page-progression-direction": optional(DIR),
        "itemref": collection(
            {
                "@idref": string(),
                "@id": opt_string(),
                "@linear": optional(one_of("yes", "no")),
                "@properties": opt_string(),
            }
        ),
    }
)

GUIDE = opt_field(
    {
        "reference": collection(
            {
                "@type": string(),
                "@title": opt_string(),
                "@href": string(),
            }
        ),
    }
)

PACKAGE = obj(
    {
        "package": field(
            {
                "@xmlns": optional(OPF_NAMESPACE),
                "@unique-identifier": string(),
                "@version": one_of(*PACKAGE_VERSIONS),
                "@id": opt_string(),
                "@prefix": opt_string(),
                "@dir": optional(DIR),
                "metadata": METADATA,
                "manifest": MANIFEST,
                "spine": SPINE,
                "guide": GUIDE,
                "collection": optional(array(any_value())),
                "bindings": optional(array(any_value())),
            }
        ),
    }
)


def _check_package_references(tree: Any) -> Iterable[str]:
    for package in children(tree, "package"):
        items = [
            item
            for manifest in children(package, "manifest")
            for item in children(manifest, "item")
        ]
        ids = Counter(attribute(item, "id") for item in items if attribute(item, "id"))
        for item_id, count in ids.items():
            if count > 1:
                yield f"duplicate manifest item id '{item_id}'"
        for spine in children(package, "spine"):
            for index, itemref in enumerate(children(spine, "itemref")):
                idref = attribute(itemref, "idref")
                if idref and idref not in ids:
                    yield f"spine.itemref[{index}]: idref '{idref}' is not in manifest"
            toc = attribute(spine, "toc")
            if toc and toc not in ids:
                yield f"spine @toc '{toc}' is not in manifest"


PACKAGE_REFERENCES = custom(_check_package_references, description="package references")

# ---------------------------------------------------------------------------
# NCX
# ---------------------------------------------------------------------------

_LABEL = field({"text": field({"#text": string()})})
_CONTENT = field({"@src": string()})

NAV_POINT = collection(
    {
        "@id": opt_string(),
        "@class": opt_string(),
        "@playOrder": optional(number_string()),
        "navLabel": _LABEL,
        "content": _CONTENT,
        "navPoint": optional(recursive(lambda: NAV_POINT)),
    }
)

NCX = obj(
    {
        "ncx": field(
            {
                "@version": string(),
                "head": opt_field(
                    {"meta": opt_collection({"@name": string(), "@content": string()})}
                ),
                "docTitle": optional(_LABEL),
                "docAuthor": optional(array(any_value())),
                "navMap": field(
                    {
                        "@id": opt_string(),
                        "navLabel": optional(_LABEL),
                        "navPoint": optional(NAV_POINT),
                    }
                ),
                "pageList": opt_field(
                    {
                        "@id": opt_string(),
                        "@class": opt_string(),
                        "navLabel": optional(_LABEL),
                        "pageTarget": collection(
                            {
                                "@id": opt_string(),
                                "@type": opt_string(),
                                "@value": optional(number_string()),
                                "@playOrder": optional(number_string()),
                                "navLabel": _LABEL,
                                "content": _CONTENT,
                            }
                        ),
                    }
                ),
                "navList": optional(array(any_value())),
            }
        ),
    }
)

# ---------------------------------------------------------------------------
# Nav document
# ---------------------------------------------------------------------------

_ANCHOR = field({"@href": string(), "#text": string()}, _html_extra)
_SPAN = field({"#text": string()}, _html_extra)

_LI_SHAPE = obj(
    {
        "a": optional(_ANCHOR),
        "span": optional(_SPAN),
        "ol": optional(recursive(lambda: OL)),
    },
    _html_extra,
)


def _check_li(value: Any) -> list[str]:
    violations = validate(value, _LI_SHAPE)
    if isinstance(value, dict) and "a" not in value and "span" not in value:
        violations.append("li has neither a nor span")
    return violations


OL = field({"li": array(custom(_check_li, description="li"), 1)}, _html_extra)

_NAV_ELEMENT_FIELDS: dict[str, Schema] = {"@epub:type": opt_string(), "ol": OL}
_NAV_ELEMENT_FIELDS.update({heading: optional(array(any_value())) for heading in _HEADINGS})


def _nav_extra(key: str) -> bool:
    return _html_extra(key) or key in ("header", "p", "div", "span")


NAV_ELEMENT = obj(_NAV_ELEMENT_FIELDS, _nav_extra)


def _check_navs(body: Any) -> list[str]:
    navs = find_all(body, "nav")
    if not navs:
        return ["body contains no nav element"]
    violations = [
        f"nav[{index}]: {message}"
        for index, nav in enumerate(navs)
        for message in validate(nav, NAV_ELEMENT)
    ]
    if not any("toc" in (attribute(nav, "epub:type") or "").split() for nav in navs):
        violations.append("no nav element has epub:type 'toc'")
    return violations


NAV_DOCUMENT = obj(
    {
        "html": field(
            {
                "@xmlns": XHTML_NAMESPACE,
                "head": optional(array(any_value())),
                "body": array(custom(_check_navs, description="nav body"), 1, 1),
            },
            _html_extra,
        ),
    }
)

# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

_SCHEMAS: dict[DocumentKind, tuple[Schema, ...]] = {
    DocumentKind.CONTAINER: (CONTAINER,),
    DocumentKind.PACKAGE: (PACKAGE, PACKAGE_REFERENCES),
    DocumentKind.NCX: (NCX,),
    DocumentKind.NAV: (NAV_DOCUMENT,),
}


def violations_for(document: UnvalidatedDocument, kind: DocumentKind | None = None) -> list[str]:
    """Return every structural violation of ``document`` (no diagnostics)."""
    schemas = _SCHEMAS.get(kind or document.kind, ())
    return [message for schema in schemas for message in validate(document.tree, schema)]


def _validate_as(
    document: UnvalidatedDocument | None, kind: DocumentKind, diags: Diagnostics
) -> ValidatedDocument | None:
    scope = diags.scope(kind.value)
    if document is None:
        scope.error(f"cannot validate missing {kind.value} document")
        return None
    violations = violations_for(document, kind)
    for violation in violations:
        scope.error(f"failed validation: {violation}", data={"path": document.full_path})
    if violations:
        return None
    return ValidatedDocument(
        kind=kind,
        full_path=document.full_path,
        tree=copy.deepcopy(document.tree),
    )


def validate_document(
    document: UnvalidatedDocument | None, diags: Diagnostics
) -> ValidatedDocument | None:
    """Validate ``document`` against the schema for its kind.

    Documents without a schema (META-INF extras) validate trivially.
    """
    if document is None:
        return None
    return _validate_as(document, document.kind, diags)


def validate_container(
    document: UnvalidatedDocument | None, diags: Diagnostics
) -> ValidatedDocument | None:
    return _validate_as(document, DocumentKind.CONTAINER, diags)


def validate_package(
    document: UnvalidatedDocument | None, diags: Diagnostics
) -> ValidatedDocument | None:
    return _validate_as(document, DocumentKind.PACKAGE, diags)


def validate_ncx(
    document: UnvalidatedDocument | None, diags: Diagnostics
) -> ValidatedDocument | None:
    return _validate_as(document, DocumentKind.NCX, diags)


def validate_nav(
    document: UnvalidatedDocument | None, diags: Diagnostics
) -> ValidatedDocument | None:
    return _validate_as(document, DocumentKind.NAV, diags)
