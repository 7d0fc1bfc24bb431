"""Tests for metadata item parsing and refinement resolution."""

import pytest

from quire.errors import InvalidPackageError
from quire.services.metadata_parser import (
    Meta,
    MetadataItem,
    MetadataLink,
    parse_metadata,
    resolve_items_hierarchy,
)
from quire.services.vocabulary import Vocabularies, build_prefix_map
from tests.helpers import build_opf, parse_xml

OPF_PATH = "OEBPS/content.opf"


def _parse(metadata: str, prefix: str | None = None) -> list[MetadataItem]:
    root = parse_xml(build_opf(metadata=metadata, prefix=prefix))
    return parse_metadata(root, OPF_PATH, build_prefix_map(root.get("prefix")))


def _descendant_ids(item: MetadataItem) -> list[str]:
    ids = []
    for child in item.children:
        if child.id is not None:
            ids.append(child.id)
        ids.extend(_descendant_ids(child))
    return ids


# ---------------------------------------------------------------------------
# Refinement resolution
# ---------------------------------------------------------------------------


class TestResolveItemsHierarchy:
    """Refining items are nested under the items they refine."""

    def test_refinement_nested(self):
        items = _parse(
            """
            <dc:title id="t1">Moby Dick</dc:title>
            <meta refines="#t1" property="title-type">main</meta>
            """
        )
        assert len(items) == 1
        title = items[0]
        assert title.property == Vocabularies.DCTERMS + "title"
        assert [child.property for child in title.children] == [Vocabularies.META + "title-type"]
        assert title.children[0].value == "main"

    def test_nested_refinements(self):
        items = _parse(
            """
            <dc:creator id="c1">Herman Melville</dc:creator>
            <meta refines="#c1" property="role" id="r1">aut</meta>
            <meta refines="#r1" property="dcterms:description">role note</meta>
            """
        )
        creator = next(item for item in items if item.id == "c1")
        role = creator.children[0]
        assert role.id == "r1"
        assert role.children[0].value == "role note"

    def test_unknown_refines_target_is_root(self):
        items = _parse('<meta refines="#nope" property="dcterms:source">x</meta>')
        assert [item.value for item in items if isinstance(item, Meta)] == ["x"]

    def test_self_refinement_is_root_and_not_expanded(self):
        items = _parse('<meta id="s" refines="#s" property="dcterms:source">self</meta>')
        source = next(item for item in items if item.value == "self")
        assert source.children == ()

    def test_cycle_through_duplicate_ids_terminates(self):
        items = resolve_items_hierarchy(
            [
                Meta(property="p", value="root", id="r"),
                Meta(property="p", value="a", id="a", refines="r"),
                Meta(property="p", value="b", id="b", refines="a"),
                Meta(property="p", value="a-again", id="a", refines="b"),
            ]
        )
        assert [item.value for item in items] == ["root"]
        root = items[0]
        assert [child.value for child in root.children] == ["a"]
        assert [child.value for child in root.children[0].children] == ["b"]
        assert root.children[0].children[0].children == ()

    def test_mutual_refinement_drops_both(self):
        items = resolve_items_hierarchy(
            [
                Meta(property="p", value="x", id="x", refines="y"),
                Meta(property="p", value="y", id="y", refines="x"),
            ]
        )
        assert items == []

    def test_no_item_is_its_own_descendant(self):
        items = resolve_items_hierarchy(
            [
                Meta(property="p", value="1", id="1"),
                Meta(property="p", value="2", id="2", refines="1"),
                Meta(property="p", value="3", id="3", refines="2"),
                Meta(property="p", value="1b", id="1", refines="3"),
                Meta(property="p", value="2b", id="2", refines="3"),
            ]
        )
        for item in items:
            for descendant_id in _descendant_ids(item):
                assert descendant_id != item.id


# ---------------------------------------------------------------------------
# Element parsing
# ---------------------------------------------------------------------------


class TestParseMetadata:
    """Metadata elements become Meta and MetadataLink items."""

    def test_missing_metadata_rejected(self):
        root = parse_xml(
            '<package xmlns="http://www.idpf.org/2007/opf" version="3.0"><manifest/></package>'
        )
        with pytest.raises(InvalidPackageError, match="metadata"):
            parse_metadata(root, OPF_PATH, build_prefix_map(None))

    def test_empty_values_dropped(self):
        items = _parse(
            """
            <dc:title>  </dc:title>
            <meta property="dcterms:modified"></meta>
            <meta name="cover" content=""/>
            """
        )
        assert items == []

    def test_unresolved_property_dropped(self):
        items = _parse('<meta property="nope:thing">x</meta>')
        assert items == []

    def test_language_inherited_from_metadata(self):
        root = parse_xml(
            build_opf(metadata='<dc:title>T</dc:title><dc:title xml:lang="fr">U</dc:title>')
        )
        items = parse_metadata(root, OPF_PATH, build_prefix_map(None), default_lang="en")
        assert [item.lang for item in items] == ["en", "fr"]

    def test_legacy_meta_kept_literally(self):
        items = _parse('<meta name="cover" content="cover-img"/>')
        assert items == [Meta(property="cover", value="cover-img")]

    def test_legacy_meta_with_known_prefix_resolved(self):
        items = _parse('<meta name="rendition:layout" content="pre-paginated"/>')
        assert items[0].property == Vocabularies.RENDITION + "layout"

    def test_legacy_meta_shadowed_by_epub3_meta(self):
        items = _parse(
            """
            <meta property="dcterms:modified">2020-01-01T00:00:00Z</meta>
            <meta name="dcterms:modified" content="2019-01-01"/>
            """
        )
        assert [item.value for item in items] == ["2020-01-01T00:00:00Z"]

    def test_legacy_creator_attributes_become_children(self):
        items = _parse(
            '<dc:creator opf:file-as="Melville, Herman" opf:role="aut">'
            "Herman Melville</dc:creator>"
        )
        creator = items[0]
        assert creator.property == Vocabularies.DCTERMS + "creator"
        assert {(c.property, c.value) for c in creator.children} == {
            (Vocabularies.META + "file-as", "Melville, Herman"),
            (Vocabularies.META + "role", "aut"),
        }

    def test_modification_date(self):
        items = _parse('<dc:date opf:event="modification">2021-03-04</dc:date>')
        assert items[0].property == Vocabularies.DCTERMS + "modified"

    def test_legacy_wrappers_flattened(self):
        items = _parse(
            """
            <dc-metadata><dc:title>Wrapped</dc:title></dc-metadata>
            <x-metadata><meta name="cover" content="c"/></x-metadata>
            """
        )
        assert {item.value for item in items} == {"Wrapped", "c"}

    def test_link_item(self):
        items = _parse(
            '<link rel="record nope:x" href="meta/onix.xml" media-type="application/xml"'
            ' properties="onix"/>'
        )
        link = items[0]
        assert isinstance(link, MetadataLink)
        assert link.href == "OEBPS/meta/onix.xml"
        assert link.rels == frozenset({Vocabularies.LINK + "record"})
        assert link.properties == (Vocabularies.LINK + "onix",)

    def test_item_order(self):
        items = _parse(
            """
            <link rel="record" href="r.xml"/>
            <dc:title>T</dc:title>
            <meta name="cover" content="c"/>
            <meta property="dcterms:modified">2020</meta>
            """
        )
        kinds = [item.property if isinstance(item, Meta) else "link" for item in items]
        assert kinds == [
            Vocabularies.DCTERMS + "modified",
            "cover",
            Vocabularies.DCTERMS + "title",
            "link",
        ]
