"""EPUB 3 Navigation Document parsing.

Every `<nav>` with a resolvable `epub:type` and a non-empty `<ol>` becomes a
named collection of nested Links. Well-known types (toc, page-list,
landmarks, lot, loi, loa, lov) are keyed by their bare name; any other type
keeps its full IRI as key.
"""

from __future__ import annotations

from xml.etree import ElementTree as ET

from quire.container.paths import resolve_href
from quire.logging import get_logger
from quire.schemas import Link
from quire.services.vocabulary import Vocabularies, build_prefix_map, resolve_properties
from quire.services.xmltree import (
    collapse_whitespace,
    first_child,
    is_element,
    qname,
    text_content,
)

logger = get_logger(__name__)

PLACEHOLDER_HREF = "#"

KNOWN_NAV_TYPES = ("toc", "page-list", "landmarks", "lot", "loi", "loa", "lov")

_EPUB_TYPE = qname("epub", "type")
_EPUB_PREFIX = qname("epub", "prefix")


def parse_navigation_document(document: ET.Element, path: str) -> dict[str, list[Link]]:
    """Parse a Navigation Document into named link collections.

    Args:
        document: Root of the XHTML navigation document.
        path: Container path of the document; hrefs resolve against it.

    Returns:
        Collections keyed by type ("toc", "page-list", ... or a full IRI).
        Types without any entry are left out.
    """
    prefix_map = build_prefix_map(document.get(_EPUB_PREFIX))

    collections: dict[str, list[Link]] = {}
    for nav in document.iter():
        if not is_element(nav, "nav", "xhtml"):
            continue
        types = resolve_properties(nav.get(_EPUB_TYPE), prefix_map, Vocabularies.TYPE)
        if not types:
            continue
        ol = first_child(nav, "ol", "xhtml")
        if ol is None:
            continue
        links = _parse_ol(ol, path)
        if not links:
            continue
        for nav_type in types:
            collections.setdefault(_collection_key(nav_type), links)
    return collections


def _collection_key(iri: str) -> str:
    if iri.startswith(Vocabularies.TYPE):
        suffix = iri[len(Vocabularies.TYPE) :]
        if suffix in KNOWN_NAV_TYPES:
            return suffix
    return iri


def _parse_ol(ol: ET.Element, path: str) -> list[Link]:
    links = []
    for li in ol:
        if not is_element(li, "li", "xhtml"):
            continue
        link = _parse_li(li, path)
        if link is not None:
            links.append(link)
    return links


def _parse_li(li: ET.Element, path: str) -> Link | None:
    first = next((child for child in li if isinstance(child.tag, str)), None)

    title = collapse_whitespace(text_content(first)) if first is not None else ""

    href = PLACEHOLDER_HREF
    if first is not None and is_element(first, "a", "xhtml"):
        raw_href = (first.get("href") or "").strip()
        if raw_href:
            href = resolve_href(path, raw_href)

    sub_ol = first_child(li, "ol", "xhtml")
    children = _parse_ol(sub_ol, path) if sub_ol is not None else []

    if not children and not title and href == PLACEHOLDER_HREF:
        logger.debug("navigation_entry_dropped", path=path)
        return None

    return Link(href=href, title=title or None, children=children)
