"""OPF package document parsing.

Reads the package-level attributes (version, unique-identifier, prefix),
the metadata item forest, the manifest and the spine. Missing mandatory
elements raise InvalidPackageError; malformed individual items are
dropped with a warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from xml.etree import ElementTree as ET

from quire.container.paths import resolve_href
from quire.errors import InvalidPackageError
from quire.logging import get_logger
from quire.schemas import ReadingProgression
from quire.services.metadata_parser import MetadataItem, parse_metadata
from quire.services.vocabulary import Vocabularies, build_prefix_map, resolve_properties
from quire.services.xmltree import XML_LANG, children, first_child, is_element

logger = get_logger(__name__)

DEFAULT_EPUB_VERSION = 1.2


@dataclass(frozen=True)
class Item:
    """Manifest entry.

    Attributes:
        href: Container path of the resource.
        id: Manifest id.
        fallback: Id of the fallback item.
        media_overlay: Id of the SMIL media overlay item.
        media_type: Declared media type.
        properties: Resolved property IRIs (ITEM vocabulary by default).
    """

    href: str
    id: str | None = None
    fallback: str | None = None
    media_overlay: str | None = None
    media_type: str | None = None
    properties: tuple[str, ...] = ()


@dataclass(frozen=True)
class Itemref:
    """Spine entry.

    Attributes:
        idref: Id of the referenced manifest item.
        linear: False when the spine marks the item linear="no".
        properties: Resolved property IRIs (ITEMREF vocabulary by default).
    """

    idref: str
    linear: bool = True
    properties: tuple[str, ...] = ()


@dataclass(frozen=True)
class Spine:
    itemrefs: tuple[Itemref, ...]
    direction: ReadingProgression = ReadingProgression.AUTO
    toc: str | None = None


@dataclass(frozen=True)
class PackageDocument:
    path: str
    epub_version: float
    unique_identifier_id: str | None
    prefix_map: dict[str, str]
    metadata: list[MetadataItem]
    manifest: tuple[Item, ...]
    spine: Spine


# ---------------------------------------------------------------------------
# Public entrypoint
# ---------------------------------------------------------------------------


def parse_package_document(root: ET.Element, path: str) -> PackageDocument:
    """Parse an OPF package document.

    Args:
        root: Parsed document root, expected to be `<package>`.
        path: Container path of the document; hrefs resolve against it.

    Returns:
        The parsed PackageDocument.

    Raises:
        InvalidPackageError: If `<package>`, `<metadata>`, `<manifest>` or
            `<spine>` is missing.
    """
    if not is_element(root, "package", "opf"):
        raise InvalidPackageError(f"Root element of {path} is not <package>")

    prefix_map = build_prefix_map(root.get("prefix"))
    epub_version = _parse_version(root.get("version"))

    metadata = parse_metadata(root, path, prefix_map, default_lang=root.get(XML_LANG))

    manifest_el = first_child(root, "manifest", "opf")
    if manifest_el is None:
        raise InvalidPackageError("Package document has no <manifest> element")
    spine_el = first_child(root, "spine", "opf")
    if spine_el is None:
        raise InvalidPackageError("Package document has no <spine> element")

    return PackageDocument(
        path=path,
        epub_version=epub_version,
        unique_identifier_id=root.get("unique-identifier"),
        prefix_map=prefix_map,
        metadata=metadata,
        manifest=_parse_manifest(manifest_el, path, prefix_map),
        spine=_parse_spine(spine_el, prefix_map),
    )


# ---------------------------------------------------------------------------
# Manifest / Spine parsing
# ---------------------------------------------------------------------------


def _parse_version(value: str | None) -> float:
    try:
        return float((value or "").strip())
    except ValueError:
        return DEFAULT_EPUB_VERSION


def _parse_manifest(
    manifest_el: ET.Element, path: str, prefix_map: dict[str, str]
) -> tuple[Item, ...]:
    items = []
    for el in children(manifest_el, "item", "opf"):
        href = (el.get("href") or "").strip()
        if not href:
            logger.warning("manifest_item_missing_href", item_id=el.get("id"))
            continue
        items.append(
            Item(
                href=resolve_href(path, href),
                id=el.get("id"),
                fallback=el.get("fallback"),
                media_overlay=el.get("media-overlay"),
                media_type=el.get("media-type"),
                properties=tuple(
                    resolve_properties(el.get("properties"), prefix_map, Vocabularies.ITEM)
                ),
            )
        )
    return tuple(items)


def _parse_spine(spine_el: ET.Element, prefix_map: dict[str, str]) -> Spine:
    itemrefs = []
    for el in children(spine_el, "itemref", "opf"):
        idref = (el.get("idref") or "").strip()
        if not idref:
            logger.warning("spine_itemref_missing_idref")
            continue
        itemrefs.append(
            Itemref(
                idref=idref,
                linear=(el.get("linear") or "yes").strip() != "no",
                properties=tuple(
                    resolve_properties(el.get("properties"), prefix_map, Vocabularies.ITEMREF)
                ),
            )
        )

    direction = {
        "ltr": ReadingProgression.LTR,
        "rtl": ReadingProgression.RTL,
    }.get((spine_el.get("page-progression-direction") or "").strip(), ReadingProgression.AUTO)

    return Spine(itemrefs=tuple(itemrefs), direction=direction, toc=spine_el.get("toc"))
