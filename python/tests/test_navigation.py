"""Tests for Navigation Document and NCX parsing."""

from quire.services.navigation import PLACEHOLDER_HREF, parse_navigation_document
from quire.services.ncx import parse_ncx
from quire.services.vocabulary import Vocabularies
from tests.helpers import build_nav, build_ncx, nav_point, parse_xml

NAV_PATH = "OEBPS/nav.xhtml"
NCX_PATH = "OEBPS/toc.ncx"


def _nav(body: str) -> dict:
    return parse_navigation_document(parse_xml(build_nav(body)), NAV_PATH)


# ---------------------------------------------------------------------------
# Navigation Document
# ---------------------------------------------------------------------------


class TestNavigationDocument:
    """EPUB 3 nav elements become named link collections."""

    def test_toc_entries(self):
        collections = _nav(
            """
            <nav epub:type="toc"><ol>
              <li><a href="text/ch1.xhtml">Chapter  1</a></li>
              <li><a href="text/ch2.xhtml#s1"><span>Chapter</span> <em>2</em></a></li>
            </ol></nav>
            """
        )
        toc = collections["toc"]
        assert [(link.title, link.href) for link in toc] == [
            ("Chapter 1", "OEBPS/text/ch1.xhtml"),
            ("Chapter 2", "OEBPS/text/ch2.xhtml#s1"),
        ]

    def test_nested_entries(self):
        toc = _nav(
            """
            <nav epub:type="toc"><ol>
              <li><span>Part I</span>
                <ol><li><a href="ch1.xhtml">One</a></li></ol>
              </li>
            </ol></nav>
            """
        )["toc"]
        part = toc[0]
        assert part.title == "Part I"
        assert part.href == PLACEHOLDER_HREF
        assert [child.title for child in part.children] == ["One"]

    def test_empty_leaf_dropped(self):
        collections = _nav('<nav epub:type="toc"><ol><li><a href="">  </a></li></ol></nav>')
        assert collections.get("toc", []) == []

    def test_empty_title_with_href_kept(self):
        toc = _nav('<nav epub:type="toc"><ol><li><a href="ch1.xhtml"></a></li></ol></nav>')["toc"]
        assert [link.href for link in toc] == ["OEBPS/ch1.xhtml"]
        assert toc[0].title is None

    def test_known_types_keyed_by_name(self):
        collections = _nav(
            """
            <nav epub:type="page-list"><ol><li><a href="ch1.xhtml#p1">1</a></li></ol></nav>
            <nav epub:type="landmarks"><ol><li><a href="cover.xhtml">Cover</a></li></ol></nav>
            <nav epub:type="loi"><ol><li><a href="ch1.xhtml#fig1">Figure 1</a></li></ol></nav>
            """
        )
        assert set(collections) == {"page-list", "landmarks", "loi"}

    def test_other_types_keep_iri(self):
        collections = _nav(
            '<nav epub:type="bibliography"><ol><li><a href="b.xhtml">Refs</a></li></ol></nav>'
        )
        assert set(collections) == {Vocabularies.TYPE + "bibliography"}

    def test_nav_without_type_or_list_ignored(self):
        collections = _nav(
            """
            <nav><ol><li><a href="a.xhtml">A</a></li></ol></nav>
            <nav epub:type="toc"><p>nothing</p></nav>
            <nav epub:type="unknown:thing"><ol><li><a href="a.xhtml">A</a></li></ol></nav>
            """
        )
        assert collections == {}

    def test_non_anchor_first_child_has_placeholder_href(self):
        toc = _nav('<nav epub:type="toc"><ol><li><span>Heading</span></li></ol></nav>')["toc"]
        assert toc[0].href == PLACEHOLDER_HREF
        assert toc[0].title == "Heading"


# ---------------------------------------------------------------------------
# NCX
# ---------------------------------------------------------------------------


class TestNcx:
    """EPUB 2 NCX navMap and pageList."""

    def test_nav_map(self):
        ncx = build_ncx(
            nav_point("Chapter 1", "text/ch1.xhtml", nav_point("Section", "text/ch1.xhtml#s"))
            + nav_point("Chapter 2", "text/ch2.xhtml")
        )
        toc = parse_ncx(parse_xml(ncx), NCX_PATH)["toc"]
        assert [(link.title, link.href) for link in toc] == [
            ("Chapter 1", "OEBPS/text/ch1.xhtml"),
            ("Chapter 2", "OEBPS/text/ch2.xhtml"),
        ]
        assert [child.href for child in toc[0].children] == ["OEBPS/text/ch1.xhtml#s"]

    def test_page_list(self):
        ncx = build_ncx(
            nav_point("Chapter 1", "ch1.xhtml"),
            page_targets=(
                '<pageTarget type="normal" value="1"><navLabel><text>1</text></navLabel>'
                '<content src="ch1.xhtml#page1"/></pageTarget>'
            ),
        )
        pages = parse_ncx(parse_xml(ncx), NCX_PATH)["page-list"]
        assert [(link.title, link.href) for link in pages] == [("1", "OEBPS/ch1.xhtml#page1")]

    def test_entry_missing_title_or_href_dropped(self):
        ncx = build_ncx(
            "<navPoint><navLabel><text></text></navLabel>"
            '<content src="ch1.xhtml"/></navPoint>'
            "<navPoint><navLabel><text>No target</text></navLabel></navPoint>"
        )
        assert parse_ncx(parse_xml(ncx), NCX_PATH) == {}

    def test_entry_with_children_kept_without_href(self):
        ncx = build_ncx(
            "<navPoint><navLabel><text>Part</text></navLabel>"
            + nav_point("Chapter", "ch1.xhtml")
            + "</navPoint>"
        )
        toc = parse_ncx(parse_xml(ncx), NCX_PATH)["toc"]
        assert toc[0].title == "Part"
        assert [child.title for child in toc[0].children] == ["Chapter"]
