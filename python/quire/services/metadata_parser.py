"""Metadata item model and refinement resolution.

Turns the children of the package `<metadata>` element into MetadataItems
(Meta or MetadataLink), then rebuilds the `refines` relation into a forest:
every item ends up either at the top level or in the `children` of the item
it refines.

Refinement rules:
- An item is a root when it refines nothing, refines an id that no item
  carries, or refines itself.
- Children are attached by a depth-first walk carrying the set of ancestor
  ids. An item whose id is already an ancestor is left out of that branch,
  so malformed cyclic refinements terminate.
- Ids may repeat; the walk is keyed by id, never by object identity.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from xml.etree import ElementTree as ET

from quire.container.paths import resolve_href
from quire.errors import InvalidPackageError
from quire.logging import get_logger
from quire.services.vocabulary import Vocabularies, resolve_properties, resolve_property
from quire.services.xmltree import (
    NS,
    XML_LANG,
    first_child,
    is_element,
    local_name,
    namespace_of,
    text_content,
)

logger = get_logger(__name__)

# OPF 2.0 grouping wrappers whose children are metadata elements
_LEGACY_WRAPPERS = frozenset({"dc-metadata", "x-metadata"})

_OPF_FILE_AS = f"{{{NS['opf']}}}file-as"
_OPF_ROLE = f"{{{NS['opf']}}}role"
_OPF_EVENT = f"{{{NS['opf']}}}event"


# ---------------------------------------------------------------------------
# Item model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Meta:
    """A property/value metadata item.

    Attributes:
        property: Canonical property IRI (or a literal EPUB 2 name).
        value: Trimmed text value, never empty.
        lang: Language tag in effect for the element.
        scheme: Resolved scheme IRI, if declared.
        id: Document-local id.
        refines: Id of the item this one refines (without "#").
        children: Items refining this one, filled in by the resolver.
    """

    property: str
    value: str
    lang: str | None = None
    scheme: str | None = None
    id: str | None = None
    refines: str | None = None
    children: tuple[MetadataItem, ...] = ()


@dataclass(frozen=True)
class MetadataLink:
    """A `<link>` metadata item.

    Attributes:
        href: Container path of the linked resource, or an external URL.
        rels: Resolved rel IRIs.
        media_type: Declared media type.
        properties: Resolved property IRIs.
    """

    href: str
    rels: frozenset[str] = frozenset()
    media_type: str | None = None
    properties: tuple[str, ...] = ()
    id: str | None = None
    refines: str | None = None
    children: tuple[MetadataItem, ...] = ()


MetadataItem = Meta | MetadataLink


# ---------------------------------------------------------------------------
# Public entrypoint
# ---------------------------------------------------------------------------


def parse_metadata(
    package: ET.Element,
    package_path: str,
    prefix_map: dict[str, str],
    default_lang: str | None = None,
) -> list[MetadataItem]:
    """Parse and resolve the metadata of a package document.

    Args:
        package: Root `<package>` element.
        package_path: Container path of the package document.
        prefix_map: Prefix -> IRI map of the package.
        default_lang: Package-level language used when an element has none.

    Returns:
        Top-level MetadataItems with refinements nested in `children`.

    Raises:
        InvalidPackageError: If the package has no `<metadata>` element.
    """
    metadata_el = first_child(package, "metadata", "opf")
    if metadata_el is None:
        raise InvalidPackageError("Package document has no <metadata> element")

    lang = metadata_el.get(XML_LANG) or default_lang
    items = _parse_elements(metadata_el, package_path, prefix_map, lang)
    return resolve_items_hierarchy(items)


def resolve_items_hierarchy(items: list[MetadataItem]) -> list[MetadataItem]:
    """Nest refining items under the items they refine."""
    ids = {item.id for item in items if item.id is not None}

    def is_root(item: MetadataItem) -> bool:
        return item.refines is None or item.refines not in ids or item.refines == item.id

    refiners: dict[str, list[MetadataItem]] = defaultdict(list)
    for item in items:
        if not is_root(item):
            refiners[item.refines].append(item)

    def expand(item: MetadataItem, ancestors: frozenset[str]) -> MetadataItem:
        if item.id is None:
            return item
        chain = ancestors | {item.id}
        attached = tuple(
            expand(refiner, chain)
            for refiner in refiners.get(item.id, [])
            if refiner.id not in chain
        )
        if not attached:
            return item
        return replace(item, children=item.children + attached)

    return [expand(item, frozenset()) for item in items if is_root(item)]


# ---------------------------------------------------------------------------
# Element parsing
# ---------------------------------------------------------------------------


def _iter_metadata_elements(metadata_el: ET.Element):
    for el in metadata_el:
        if not isinstance(el.tag, str):
            continue
        if local_name(el) in _LEGACY_WRAPPERS:
            yield from _iter_metadata_elements(el)
        else:
            yield el


def _parse_elements(
    metadata_el: ET.Element,
    package_path: str,
    prefix_map: dict[str, str],
    lang: str | None,
) -> list[MetadataItem]:
    old_metas: list[ET.Element] = []
    new_metas: list[ET.Element] = []
    links: list[ET.Element] = []
    dc_items: list[ET.Element] = []

    for el in _iter_metadata_elements(metadata_el):
        if namespace_of(el) == NS["dc"]:
            dc_items.append(el)
        elif is_element(el, "meta", "opf"):
            if el.get("property") is None:
                old_metas.append(el)
            else:
                new_metas.append(el)
        elif is_element(el, "link", "opf"):
            links.append(el)

    parsed_new = [
        meta for el in new_metas if (meta := _parse_new_meta(el, prefix_map, lang)) is not None
    ]
    global_properties = {meta.property for meta in parsed_new if meta.refines is None}

    parsed_old = [
        meta
        for el in old_metas
        if (meta := _parse_old_meta(el, prefix_map, lang)) is not None
        # EPUB 2 fallbacks are ignored when an EPUB 3 meta declares the same property
        and meta.property not in global_properties
    ]

    parsed_dc = [meta for el in dc_items if (meta := _parse_dc_element(el, lang)) is not None]
    parsed_links = [
        link for el in links if (link := _parse_link(el, package_path, prefix_map)) is not None
    ]

    return [*parsed_new, *parsed_old, *parsed_dc, *parsed_links]


def _element_lang(el: ET.Element, default: str | None) -> str | None:
    return el.get(XML_LANG) or default


def _refines(el: ET.Element) -> str | None:
    refines = (el.get("refines") or "").strip()
    if not refines:
        return None
    return refines.removeprefix("#") or None


def _parse_new_meta(el: ET.Element, prefix_map: dict[str, str], lang: str | None) -> Meta | None:
    property_token = (el.get("property") or "").strip()
    value = (el.text or "").strip()
    if not property_token or not value:
        return None

    prop = resolve_property(property_token, prefix_map, Vocabularies.META)
    if prop is None:
        logger.warning("meta_property_unresolved", property=property_token)
        return None

    scheme_token = (el.get("scheme") or "").strip()
    scheme = resolve_property(scheme_token, prefix_map) if scheme_token else None

    return Meta(
        property=prop,
        value=value,
        lang=_element_lang(el, lang),
        scheme=scheme,
        id=el.get("id"),
        refines=_refines(el),
    )


def _parse_old_meta(el: ET.Element, prefix_map: dict[str, str], lang: str | None) -> Meta | None:
    name = (el.get("name") or "").strip()
    content = (el.get("content") or "").strip()
    if not name or not content:
        return None

    # EPUB 2 names are free-form ("cover", "calibre:series"): keep them literally
    # when they do not expand through a known prefix.
    prop = resolve_property(name, prefix_map) or name
    return Meta(property=prop, value=content, lang=_element_lang(el, lang), id=el.get("id"))


def _parse_dc_element(el: ET.Element, lang: str | None) -> Meta | None:
    value = text_content(el).strip()
    if not value:
        return None

    name = local_name(el)
    element_id = el.get("id")
    element_lang = _element_lang(el, lang)

    if name in ("creator", "contributor", "publisher"):
        children = []
        file_as = el.get(_OPF_FILE_AS)
        if file_as:
            children.append(
                Meta(property=Vocabularies.META + "file-as", value=file_as, lang=element_lang)
            )
        role = el.get(_OPF_ROLE)
        if role:
            children.append(
                Meta(property=Vocabularies.META + "role", value=role, lang=element_lang)
            )
        return Meta(
            property=Vocabularies.DCTERMS + name,
            value=value,
            lang=element_lang,
            id=element_id,
            children=tuple(children),
        )

    if name == "date" and el.get(_OPF_EVENT) == "modification":
        return Meta(
            property=Vocabularies.DCTERMS + "modified",
            value=value,
            lang=element_lang,
            id=element_id,
        )

    return Meta(property=Vocabularies.DCTERMS + name, value=value, lang=element_lang, id=element_id)


def _parse_link(el: ET.Element, package_path: str, prefix_map: dict[str, str]) -> MetadataLink | None:
    href = (el.get("href") or "").strip()
    if not href:
        logger.warning("metadata_link_missing_href", link_id=el.get("id"))
        return None

    return MetadataLink(
        href=resolve_href(package_path, href),
        rels=frozenset(resolve_properties(el.get("rel"), prefix_map, Vocabularies.LINK)),
        media_type=el.get("media-type"),
        properties=tuple(resolve_properties(el.get("properties"), prefix_map, Vocabularies.LINK)),
        id=el.get("id"),
        refines=_refines(el),
    )
