"""EPUB 2 NCX parsing.

`navMap` gives the table of contents and `pageList` the page list. An entry
is kept when it has children, or when both its label and its target are
present.
"""

from __future__ import annotations

from xml.etree import ElementTree as ET

from quire.container.paths import resolve_href
from quire.logging import get_logger
from quire.schemas import Link
from quire.services.xmltree import children, collapse_whitespace, first_child, text_content

logger = get_logger(__name__)


def parse_ncx(document: ET.Element, path: str) -> dict[str, list[Link]]:
    """Parse an NCX document.

    Returns:
        {"toc": [...], "page-list": [...]}, without empty collections.
    """
    collections: dict[str, list[Link]] = {}

    nav_map = first_child(document, "navMap", "ncx")
    if nav_map is not None:
        toc = _parse_points(nav_map, "navPoint", path)
        if toc:
            collections["toc"] = toc

    page_list = first_child(document, "pageList", "ncx")
    if page_list is not None:
        pages = _parse_points(page_list, "pageTarget", path)
        if pages:
            collections["page-list"] = pages

    return collections


def _parse_points(parent: ET.Element, name: str, path: str) -> list[Link]:
    links = []
    for point in children(parent, name, "ncx"):
        link = _parse_point(point, name, path)
        if link is not None:
            links.append(link)
    return links


def _parse_point(point: ET.Element, name: str, path: str) -> Link | None:
    title = None
    label = first_child(point, "navLabel", "ncx")
    if label is not None:
        text = first_child(label, "text", "ncx")
        if text is not None:
            title = collapse_whitespace(text_content(text)) or None

    href = None
    content = first_child(point, "content", "ncx")
    if content is not None and (content.get("src") or "").strip():
        href = resolve_href(path, content.get("src"))

    nested = _parse_points(point, name, path)

    if not nested and (title is None or href is None):
        logger.debug("ncx_entry_dropped", path=path, title=title, href=href)
        return None

    return Link(href=href or "#", title=title, children=nested)
