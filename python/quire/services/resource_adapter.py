"""Manifest/spine resource graph.

Partitions the manifest into the reading order (linear spine items) and
the auxiliary resources, and builds a Link for each item:

- manifest properties map to `contains` entries and rels,
- spine itemref properties map to rendition hints (page, spread, layout,
  orientation, overflow),
- the fallback item and the media overlay become alternates,
- encryption facts are attached under the `encrypted` property.

Fallback chains may be cyclic in malformed packages. Every walk carries the
set of ids already visited on the current chain and never follows an id
twice, so resolution always terminates.
"""

from __future__ import annotations

from dataclasses import dataclass

from quire.container.paths import strip_fragment
from quire.logging import get_logger
from quire.schemas import Encryption, Layout, Link, Orientation, Overflow, Page, Spread
from quire.services.package_document import Item, Itemref, Spine
from quire.services.vocabulary import Vocabularies

logger = get_logger(__name__)

# Manifest item property suffix -> entry of the `contains` list
_CONTAINS = {
    "scripted": "js",
    "mathml": "mathml",
    "svg": "svg",
    "xmp-record": "xmp",
    "remote-resources": "remote-resources",
}

# Manifest item property suffix -> rel
_ITEM_RELS = {
    "nav": "contents",
    "cover-image": "cover",
}

# Itemref property suffix -> (property key, value)
_ITEMREF_PROPERTIES: dict[str, tuple[str, str]] = {
    "page-spread-left": ("page", Page.LEFT.value),
    "page-spread-right": ("page", Page.RIGHT.value),
    "page-spread-center": ("page", Page.CENTER.value),
    "spread-none": ("spread", Spread.NONE.value),
    "spread-auto": ("spread", Spread.AUTO.value),
    "spread-landscape": ("spread", Spread.LANDSCAPE.value),
    "spread-portrait": ("spread", Spread.BOTH.value),
    "spread-both": ("spread", Spread.BOTH.value),
    "layout-reflowable": ("layout", Layout.REFLOWABLE.value),
    "layout-pre-paginated": ("layout", Layout.FIXED.value),
    "orientation-auto": ("orientation", Orientation.AUTO.value),
    "orientation-landscape": ("orientation", Orientation.LANDSCAPE.value),
    "orientation-portrait": ("orientation", Orientation.PORTRAIT.value),
    "flow-auto": ("overflow", Overflow.AUTO.value),
    "flow-paginated": ("overflow", Overflow.PAGINATED.value),
    "flow-scrolled-continuous": ("overflow", Overflow.SCROLLED.value),
    "flow-scrolled-doc": ("overflow", Overflow.SCROLLED.value),
}


@dataclass(frozen=True)
class ResourceAdapterResult:
    reading_order: list[Link]
    resources: list[Link]


def _suffix(iri: str, *vocabularies: str) -> str | None:
    for vocabulary in vocabularies:
        if iri.startswith(vocabulary):
            return iri[len(vocabulary) :]
    return None


class ResourceAdapter:
    """Builds reading order and resource links from manifest and spine.

    Args:
        spine: Parsed spine.
        manifest: Manifest items (items without href already dropped).
        encryption_data: Encryption facts keyed by container path.
        cover_id: Manifest id named by the EPUB 2 `cover` meta.
        duration_by_id: media:duration of manifest items, in seconds.
    """

    def __init__(
        self,
        spine: Spine,
        manifest: tuple[Item, ...] | list[Item],
        *,
        encryption_data: dict[str, Encryption] | None = None,
        cover_id: str | None = None,
        duration_by_id: dict[str, float] | None = None,
    ):
        self._spine = spine
        self._manifest = list(manifest)
        self._encryption_data = encryption_data or {}
        self._cover_id = cover_id
        self._duration_by_id = duration_by_id or {}

        self._items_by_id: dict[str, Item] = {}
        for item in self._manifest:
            if item.id is not None:
                self._items_by_id.setdefault(item.id, item)

        self._itemrefs_by_id: dict[str, Itemref] = {}
        for itemref in spine.itemrefs:
            self._itemrefs_by_id.setdefault(itemref.idref, itemref)

    def adapt(self) -> ResourceAdapterResult:
        reading_order_ids = []
        for itemref in self._spine.itemrefs:
            if not itemref.linear:
                continue
            if itemref.idref not in self._items_by_id:
                logger.warning("spine_itemref_unknown_idref", idref=itemref.idref)
                continue
            reading_order_ids.append(itemref.idref)

        excluded: set[str] = set()
        for item_id in reading_order_ids:
            excluded |= self.fallback_closure(item_id)

        reading_order = [
            self.compute_link(self._items_by_id[item_id], self._itemrefs_by_id.get(item_id))
            for item_id in reading_order_ids
        ]
        resources = [
            self.compute_link(
                item, self._itemrefs_by_id.get(item.id) if item.id is not None else None
            )
            for item in self._manifest
            if item.id is None or item.id not in excluded
        ]
        return ResourceAdapterResult(reading_order=reading_order, resources=resources)

    def fallback_closure(self, item_id: str) -> set[str]:
        """Ids reachable from item_id through `fallback`, item_id included."""
        visited: set[str] = set()
        current: str | None = item_id
        while current is not None and current not in visited and current in self._items_by_id:
            visited.add(current)
            current = self._items_by_id[current].fallback
        return visited

    def compute_link(
        self,
        item: Item,
        itemref: Itemref | None = None,
        chain: frozenset[str] = frozenset(),
    ) -> Link:
        """Build the Link of a manifest item.

        Args:
            item: Manifest item.
            itemref: Spine entry of the item, linear or not.
            chain: Ids already visited on the current fallback chain.
        """
        rels, properties = self._map_item_properties(item)
        if itemref is not None:
            properties.update(self._map_itemref_properties(itemref))

        if self._cover_id is not None and item.id == self._cover_id:
            rels.add("cover")

        encryption = self._encryption_data.get(strip_fragment(item.href))
        if encryption is not None:
            properties["encrypted"] = encryption

        updated_chain = chain | {item.id} if item.id is not None else chain
        alternates = []
        fallback = self._items_by_id.get(item.fallback) if item.fallback else None
        if fallback is not None and fallback.id not in updated_chain:
            alternates.append(self.compute_link(fallback, chain=updated_chain))
        overlay = self._items_by_id.get(item.media_overlay) if item.media_overlay else None
        if overlay is not None and overlay.id not in updated_chain:
            alternates.append(self.compute_link(overlay, chain=updated_chain))

        return Link(
            href=item.href,
            media_type=item.media_type,
            rels=frozenset(rels),
            properties=properties,
            duration=self._duration_by_id.get(item.id) if item.id is not None else None,
            alternates=alternates,
        )

    def _map_item_properties(self, item: Item) -> tuple[set[str], dict]:
        rels: set[str] = set()
        contains: list[str] = []
        properties: dict = {}
        for prop in item.properties:
            suffix = _suffix(prop, Vocabularies.ITEM)
            if suffix in _CONTAINS:
                contains.append(_CONTAINS[suffix])
            elif suffix in _ITEM_RELS:
                rels.add(_ITEM_RELS[suffix])
            else:
                properties[prop] = True
        if contains:
            properties["contains"] = contains
        return rels, properties

    def _map_itemref_properties(self, itemref: Itemref) -> dict:
        properties: dict = {}
        for prop in itemref.properties:
            suffix = _suffix(prop, Vocabularies.RENDITION, Vocabularies.ITEMREF)
            mapped = _ITEMREF_PROPERTIES.get(suffix) if suffix else None
            if mapped is None:
                continue
            key, value = mapped
            properties[key] = value
        return properties


def adapt_resources(
    spine: Spine,
    manifest: tuple[Item, ...] | list[Item],
    *,
    encryption_data: dict[str, Encryption] | None = None,
    cover_id: str | None = None,
    duration_by_id: dict[str, float] | None = None,
) -> ResourceAdapterResult:
    """Partition the manifest into reading order and resources."""
    return ResourceAdapter(
        spine,
        manifest,
        encryption_data=encryption_data,
        cover_id=cover_id,
        duration_by_id=duration_by_id,
    ).adapt()
