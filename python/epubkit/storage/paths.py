"""Archive path utilities.

All href resolution goes through resolve_href() so manifest items, nav links
and rootfiles agree on one archive path spelling.

Path Invariant:
    - No leading slash
    - No "." or ".." segments
    - No fragment, query or trailing slash
    - Percent-escapes decoded
"""

import posixpath
from urllib.parse import unquote, urlsplit


def get_base_path(full_path: str) -> str:
    """Get the directory a package document lives in.

    Args:
        full_path: Archive path of the package document (e.g. "OEBPS/content.opf").

    Returns:
        The containing directory without trailing slash ("" at archive root).
    """
    return posixpath.dirname(full_path.strip("/"))


def strip_fragment(href: str) -> str:
    """Drop the ``#fragment`` and ``?query`` parts of an href."""
    parts = urlsplit(href)
    if parts.scheme or parts.netloc:
        return href.split("#", 1)[0]
    return parts.path


def resolve_href(base_path: str, href: str) -> str:
    """Resolve an href from a document in ``base_path`` to an archive path.

    Args:
        base_path: Directory of the referring document.
        href: Relative reference as written in the document.

    Returns:
        Normalized archive path. Empty string if the href points at the
        archive root.
    """
    path = unquote(strip_fragment(href)).rstrip("/")
    if not path:
        return ""
    joined = posixpath.join(base_path, path) if base_path else path
    normalized = posixpath.normpath(joined).lstrip("/")
    if normalized == ".":
        return ""
    return normalized
