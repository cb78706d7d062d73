"""Tests for NCX and Nav table of contents extraction."""

from epubkit.diagnostics import Diagnostics, Severity
from epubkit.schemas.toc import TocSource
from epubkit.services.toc import (
    extract_navigations_from_nav,
    extract_toc_from_nav,
    extract_toc_from_ncx,
)
from epubkit.services.xml import parse_xml
from tests.helpers import build_nav, build_ncx

NESTED = [
    ("Part One", "part1.xhtml", [("Chapter 1", "ch1.xhtml"), ("Chapter 2", "ch2.xhtml#start")]),
    ("Part Two", "part2.xhtml", [("Chapter 3", "ch3.xhtml", [("Scene", "ch3.xhtml#s1")])]),
]


def _tree(text: str) -> dict:
    tree = parse_xml(text, Diagnostics())
    assert tree is not None
    return tree


def _flat(toc) -> list[tuple[str, str, int]]:
    return [(item.label, item.href, item.level) for item in toc.items]


class TestNavExtraction:
    """Tests for toc extraction from nav documents."""

    def test_nested_ol_levels(self):
        """Nested lists give increasing levels."""
        nav = build_nav([("Part", "p.xhtml", [("One", "1.xhtml"), ("Two", "2.xhtml")])])
        diags = Diagnostics()

        toc = extract_toc_from_nav(_tree(nav), diags)

        assert _flat(toc) == [("Part", "p.xhtml", 0), ("One", "1.xhtml", 1), ("Two", "2.xhtml", 1)]
        assert toc.source == TocSource.NAV
        assert toc.type == "toc"
        assert toc.title == "Contents"
        assert diags.all() == []

    def test_pre_order(self):
        """Items are listed in pre-order."""
        toc = extract_toc_from_nav(_tree(build_nav(NESTED)), Diagnostics())

        assert _flat(toc) == [
            ("Part One", "part1.xhtml", 0),
            ("Chapter 1", "ch1.xhtml", 1),
            ("Chapter 2", "ch2.xhtml#start", 1),
            ("Part Two", "part2.xhtml", 0),
            ("Chapter 3", "ch3.xhtml", 1),
            ("Scene", "ch3.xhtml#s1", 2),
        ]

    def test_heading_entries_keep_their_children(self):
        """Entries without anchors keep their children."""
        nav = build_nav([("Part", "p.xhtml", [("One", "1.xhtml")])]).replace(
            '<a href="p.xhtml">Part</a>', "<span>Part</span>"
        )
        diags = Diagnostics()

        toc = extract_toc_from_nav(_tree(nav), diags)

        assert _flat(toc) == [("One", "1.xhtml", 1)]
        [found] = diags.all()
        assert found.message == "nav ol li is missing anchor"
        assert found.severity == Severity.WARNING
        assert found.data == {"label": "Part"}

    def test_anchor_problems_are_errors(self):
        """Anchors without href or label are errors."""
        nav = build_nav([("One", "1.xhtml"), ("Two", "2.xhtml")])
        nav = nav.replace('<a href="1.xhtml">One</a>', "<a>One</a>")
        nav = nav.replace('<a href="2.xhtml">Two</a>', '<a href="2.xhtml"></a>')
        diags = Diagnostics()

        toc = extract_toc_from_nav(_tree(nav), diags)

        assert toc.items == []
        assert [(d.message, d.severity) for d in diags.all()] == [
            ("nav ol li is missing href", Severity.ERROR),
            ("nav ol li is missing label", Severity.ERROR),
        ]

    def test_toc_nav_is_preferred(self):
        """The toc nav is chosen over other navs."""
        nav = """\
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<body>
  <nav epub:type="landmarks"><ol><li><a href="cover.xhtml">Cover</a></li></ol></nav>
  <section>
    <nav epub:type="toc"><ol><li><a href="1.xhtml">Real</a></li></ol></nav>
  </section>
</body>
</html>"""
        diags = Diagnostics()

        toc = extract_toc_from_nav(_tree(nav), diags)

        assert toc.type == "toc"
        assert _flat(toc) == [("Real", "1.xhtml", 0)]
        assert diags.all() == []

    def test_first_nav_used_without_toc_nav(self):
        """Without a toc nav the first nav is used."""
        nav = build_nav([("Cover", "cover.xhtml")], nav_type="landmarks")
        diags = Diagnostics()

        toc = extract_toc_from_nav(_tree(nav), diags)

        assert toc.type == "landmarks"
        assert [d.message for d in diags.all()] == [
            "nav document has no toc nav, using the first nav element"
        ]

    def test_not_a_nav_document(self):
        """Documents that are not navs yield no toc."""
        diags = Diagnostics()

        assert extract_toc_from_nav(_tree("<ncx/>"), diags) is None
        assert extract_toc_from_nav(_tree("<html><body/></html>"), diags) is None
        assert [d.message for d in diags.all()] == [
            "nav document has no html root element",
            "nav document has no nav element",
        ]

    def test_nav_without_ol(self):
        """A nav without an ol yields no toc."""
        diags = Diagnostics()
        nav = (
            "<html xmlns:epub='http://www.idpf.org/2007/ops'>"
            "<body><nav epub:type='toc'><h1>Contents</h1></nav></body></html>"
        )

        assert extract_toc_from_nav(_tree(nav), diags) is None
        assert extract_navigations_from_nav(_tree(nav), Diagnostics()) == []
        assert [d.message for d in diags.all()] == ["nav is missing ol"]

    def test_extraction_is_pure(self):
        """Extraction does not change the tree."""
        tree = _tree(build_nav(NESTED))

        first = extract_toc_from_nav(tree, Diagnostics())
        second = extract_toc_from_nav(tree, Diagnostics())

        assert first == second


class TestNavigations:
    """Tests for extracting every nav."""

    def test_all_navs_in_document_order(self):
        """All navs are returned in document order."""
        extra = """\
  <nav epub:type="landmarks">
    <h2>Guide</h2>
    <ol><li><a href="cover.xhtml">Cover</a></li></ol>
  </nav>
  <nav epub:type="page-list">
    <ol><li><a href="ch1.xhtml#p1">1</a></li><li><a href="ch1.xhtml#p2">2</a></li></ol>
  </nav>"""
        diags = Diagnostics("epub")
        tree = _tree(build_nav(NESTED, extra_navs=extra))

        navigations = extract_navigations_from_nav(tree, diags)

        assert [toc.type for toc in navigations] == ["toc", "landmarks", "page-list"]
        assert navigations[1].title == "Guide"
        assert _flat(navigations[2]) == [("1", "ch1.xhtml#p1", 0), ("2", "ch1.xhtml#p2", 0)]
        assert diags.all() == []

        others = extract_navigations_from_nav(tree, diags, exclude_types=("toc",))
        assert [toc.type for toc in others] == ["landmarks", "page-list"]

    def test_sectioned_and_bare_navs_keep_document_order(self):
        """Navs inside sections keep document order."""
        nav = """\
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<body>
  <nav epub:type="toc"><ol><li><a href="1.xhtml">One</a></li></ol></nav>
  <section>
    <nav epub:type="landmarks"><ol><li><a>Cover</a></li></ol></nav>
  </section>
  <nav epub:type="page-list"><ol><li><a href="1.xhtml#p1">1</a></li></ol></nav>
</body>
</html>"""
        diags = Diagnostics("epub")

        navigations = extract_navigations_from_nav(_tree(nav), diags)

        assert [toc.type for toc in navigations] == ["toc", "landmarks", "page-list"]
        [found] = diags.all()
        assert found.scope == ("epub", "nav[1]")

    def test_findings_are_scoped_per_nav(self):
        """Findings are scoped to their nav."""
        extra = '  <nav epub:type="landmarks"><ol><li><a>Cover</a></li></ol></nav>'
        diags = Diagnostics("epub")

        extract_navigations_from_nav(_tree(build_nav(NESTED, extra_navs=extra)), diags)

        [found] = diags.all()
        assert found.scope == ("epub", "nav[1]")


class TestNcxExtraction:
    """Tests for toc extraction from NCX documents."""

    def test_nested_navpoints(self):
        """Nested navPoints give increasing levels."""
        diags = Diagnostics()

        toc = extract_toc_from_ncx(_tree(build_ncx(NESTED, title="The Book")), diags)

        assert toc.source == TocSource.NCX
        assert toc.type == "navMap"
        assert toc.title == "The Book"
        assert [item.level for item in toc.items] == [0, 1, 1, 0, 1, 2]
        assert diags.all() == []

    def test_equivalent_to_nav(self):
        """NCX and nav with the same entries agree."""
        from_nav = extract_toc_from_nav(_tree(build_nav(NESTED)), Diagnostics())
        from_ncx = extract_toc_from_ncx(_tree(build_ncx(NESTED)), Diagnostics())

        assert _flat(from_nav) == _flat(from_ncx)

    def test_navpoint_problems_skip_the_entry_not_its_children(self):
        """Broken navPoints are skipped but their children kept."""
        ncx = build_ncx([("Part", "p.xhtml", [("One", "1.xhtml")]), ("Two", "2.xhtml")])
        ncx = ncx.replace('<content src="p.xhtml"/>', "").replace("<text>Two</text>", "<text/>")
        diags = Diagnostics()

        toc = extract_toc_from_ncx(_tree(ncx), diags)

        assert _flat(toc) == [("One", "1.xhtml", 1)]
        assert [(d.message, d.severity) for d in diags.all()] == [
            ("navPoint is missing content src", Severity.ERROR),
            ("navPoint is missing label", Severity.ERROR),
        ]

    def test_page_list_when_nav_map_is_empty(self):
        """The page list is used when navMap is empty."""
        ncx = """\
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <navMap/>
  <pageList>
    <navLabel><text>Pages</text></navLabel>
    <pageTarget type="normal" value="1"><navLabel><text>1</text></navLabel>
      <content src="ch1.xhtml#p1"/></pageTarget>
    <pageTarget type="normal" value="2"><navLabel><text>2</text></navLabel>
      <content src="ch1.xhtml#p2"/></pageTarget>
  </pageList>
</ncx>"""

        toc = extract_toc_from_ncx(_tree(ncx), Diagnostics())

        assert toc.type == "pageList"
        assert toc.title == "Pages"
        assert _flat(toc) == [("1", "ch1.xhtml#p1", 0), ("2", "ch1.xhtml#p2", 0)]

    def test_empty_ncx(self):
        """An empty NCX is reported."""
        diags = Diagnostics()
        ncx = '<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="1.0"><navMap/></ncx>'

        toc = extract_toc_from_ncx(_tree(ncx), diags)

        assert toc.items == []
        assert [d.message for d in diags.all()] == [
            "ncx version should be 2005-1, got: 1.0",
            "ncx has no navMap entries and no pageList",
        ]

    def test_not_an_ncx(self):
        """Documents that are not NCX yield no toc."""
        diags = Diagnostics()

        assert extract_toc_from_ncx(_tree("<html/>"), diags) is None
        assert extract_toc_from_ncx(None, diags) is None
        assert [d.message for d in diags.all()] == ["ncx document has no ncx root element"] * 2
