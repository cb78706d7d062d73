"""EPUB builders shared by the test modules.

Provides:
- XML builders for container.xml, package documents, nav documents and NCX
- In-memory zip archives for ZipFileProvider tests
- File maps for FakeFileProvider tests
"""

import io
import posixpath
import zipfile

from epubkit.diagnostics import Diagnostic, Severity
from epubkit.storage import FakeFileProvider

EPUB_MIMETYPE = "application/epub+zip"

CONTAINER_XML = """\
<?xml version="1.0" encoding="UTF-8"?>
<container xmlns="urn:oasis:names:tc:opendocument:xmlns:container" version="{version}">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>"""

# (label, href) or (label, href, children)
NavEntry = tuple


def build_container(opf_path: str = "OEBPS/content.opf", version: str = "1.0") -> str:
    return CONTAINER_XML.format(opf_path=opf_path, version=version)


def build_opf(
    title: str = "Test Book",
    spine_items: list[tuple[str, str, str]] | None = None,
    nav_id: str | None = None,
    ncx_id: str | None = None,
    *,
    version: str = "3.0",
    identifier: str = "urn:uuid:7f0a8b3e-test",
    extra_metadata: str = "",
    extra_manifest: str = "",
    extra_spine: str = "",
    extra_package: str = "",
) -> str:
    """Build an OPF package document.

    spine_items: [(manifest_id, href, media_type), ...]. XHTML items are
    also added to the spine. The nav item (``nav.xhtml``) and NCX item
    (``toc.ncx``) are manifest-only.
    """
    if spine_items is None:
        spine_items = [("ch1", "chapter1.xhtml", "application/xhtml+xml")]

    manifest_lines = [
        f'    <item id="{mid}" href="{href}" media-type="{mtype}"/>'
        for mid, href, mtype in spine_items
    ]
    if nav_id:
        manifest_lines.append(
            f'    <item id="{nav_id}" href="nav.xhtml" media-type="application/xhtml+xml"'
            ' properties="nav"/>'
        )
    if ncx_id:
        manifest_lines.append(
            f'    <item id="{ncx_id}" href="toc.ncx" media-type="application/x-dtbncx+xml"/>'
        )
    if extra_manifest:
        manifest_lines.append(extra_manifest)

    spine_refs = "\n".join(
        f'    <itemref idref="{mid}"/>'
        for mid, href, mtype in spine_items
        if mtype in ("application/xhtml+xml", "text/html")
    )
    toc_attr = f' toc="{ncx_id}"' if ncx_id else ""
    title_el = f"    <dc:title>{title}</dc:title>" if title else ""

    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="{version}" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="bookid">{identifier}</dc:identifier>
{title_el}
    <dc:language>en</dc:language>
{extra_metadata}
  </metadata>
  <manifest>
{chr(10).join(manifest_lines)}
  </manifest>
  <spine{toc_attr}>
{spine_refs}
{extra_spine}
  </spine>
{extra_package}
</package>"""


def build_chapter_xhtml(body_content: str) -> str:
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter</title></head>
<body>
{body_content}
</body>
</html>"""


def _nav_ol(entries: list[NavEntry]) -> str:
    lines = ["<ol>"]
    for entry in entries:
        label, href = entry[0], entry[1]
        nested = _nav_ol(entry[2]) if len(entry) > 2 and entry[2] else ""
        lines.append(f'<li><a href="{href}">{label}</a>{nested}</li>')
    lines.append("</ol>")
    return "\n".join(lines)


def build_nav(entries: list[NavEntry], extra_navs: str = "", nav_type: str = "toc") -> str:
    """entries: [(label, href), (label, href, [children]), ...]"""
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head><title>Contents</title></head>
<body>
  <nav epub:type="{nav_type}">
    <h1>Contents</h1>
{_nav_ol(entries)}
  </nav>
{extra_navs}
</body>
</html>"""


def _nav_points(entries: list[NavEntry], counter: list[int]) -> str:
    points = []
    for entry in entries:
        label, src = entry[0], entry[1]
        counter[0] += 1
        order = counter[0]
        nested = _nav_points(entry[2], counter) if len(entry) > 2 and entry[2] else ""
        points.append(f"""\
<navPoint id="np{order}" playOrder="{order}">
  <navLabel><text>{label}</text></navLabel>
  <content src="{src}"/>
{nested}
</navPoint>""")
    return "\n".join(points)


def build_ncx(entries: list[NavEntry], title: str = "Test Book") -> str:
    """entries: [(label, src), (label, src, [children]), ...]"""
    return f"""\
<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head>
    <meta name="dtb:uid" content="urn:uuid:7f0a8b3e-test"/>
  </head>
  <docTitle><text>{title}</text></docTitle>
  <navMap>
{_nav_points(entries, [0])}
  </navMap>
</ncx>"""


def epub_files(
    opf: str | None = None,
    *,
    opf_path: str = "OEBPS/content.opf",
    extra: dict[str, str | bytes] | None = None,
) -> dict[str, str | bytes]:
    """File map for a small valid EPUB3 with one chapter and a nav document."""
    base = posixpath.dirname(opf_path)

    def at(name: str) -> str:
        return f"{base}/{name}" if base else name

    files: dict[str, str | bytes] = {
        "mimetype": EPUB_MIMETYPE,
        "META-INF/container.xml": build_container(opf_path),
        opf_path: opf if opf is not None else build_opf(nav_id="nav"),
        at("nav.xhtml"): build_nav([("Chapter 1", "chapter1.xhtml")]),
        at("chapter1.xhtml"): build_chapter_xhtml("<p>Hello.</p>"),
    }
    files.update(extra or {})
    return files


def make_provider(files: dict[str, str | bytes] | None = None, **kwargs) -> FakeFileProvider:
    return FakeFileProvider(files if files is not None else epub_files(**kwargs))


def make_epub(files: dict[str, str | bytes]) -> bytes:
    """Build an EPUB ZIP in memory from a file map."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        # mimetype goes first, as readers expect
        if "mimetype" in files:
            zf.writestr("mimetype", files["mimetype"], compress_type=zipfile.ZIP_STORED)
        for path, content in files.items():
            if path != "mimetype":
                zf.writestr(path, content)
    return buf.getvalue()


def messages(diagnostics: list[Diagnostic], severity: Severity | None = None) -> list[str]:
    return [d.message for d in diagnostics if severity is None or d.severity == severity]
