"""Scoped queries over resolved metadata items.

Adapters read the top-level items through a MetadataItemsHolder: each
`take_*` call hands out matching items and removes them from the pool, so
whatever no adapter consumed can be reported as other metadata.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from quire.services.metadata_parser import Meta, MetadataItem, MetadataLink


def metas_with_property(items: Iterable[MetadataItem], prop: str) -> list[Meta]:
    return [item for item in items if isinstance(item, Meta) and item.property == prop]


def first_with_property(items: Iterable[MetadataItem], prop: str) -> Meta | None:
    return next(iter(metas_with_property(items, prop)), None)


def first_with_rel(items: Iterable[MetadataItem], rel: str) -> MetadataLink | None:
    for item in items:
        if isinstance(item, MetadataLink) and rel in item.rels:
            return item
    return None


def child_value(item: MetadataItem | None, prop: str) -> str | None:
    """Value of the first child meta of `item` with the given property."""
    if item is None:
        return None
    child = first_with_property(item.children, prop)
    return child.value if child is not None else None


class MetadataItemsHolder:
    """Pool of metadata items consumed by the field adapters."""

    def __init__(self, items: Iterable[MetadataItem]):
        self._items: list[MetadataItem] = list(items)

    @property
    def remaining_items(self) -> list[MetadataItem]:
        return list(self._items)

    def take(self, predicate: Callable[[MetadataItem], bool]) -> list[MetadataItem]:
        """Remove and return every item matching the predicate, in order."""
        taken = [item for item in self._items if predicate(item)]
        self._items = [item for item in self._items if not predicate(item)]
        return taken

    def take_first(self, predicate: Callable[[MetadataItem], bool]) -> MetadataItem | None:
        for index, item in enumerate(self._items):
            if predicate(item):
                del self._items[index]
                return item
        return None

    def take_first_with_property(self, prop: str, item_id: str | None = None) -> Meta | None:
        def matches(item: MetadataItem) -> bool:
            if not isinstance(item, Meta) or item.property != prop:
                return False
            return item_id is None or item.id == item_id

        return self.take_first(matches)

    def take_all_with_property(self, *props: str) -> list[Meta]:
        return self.take(lambda item: isinstance(item, Meta) and item.property in props)

    def take_first_with_rel(self, rel: str) -> MetadataLink | None:
        return self.take_first(lambda item: isinstance(item, MetadataLink) and rel in item.rels)

    def take_item(self, target: MetadataItem) -> None:
        """Remove one specific item (matched by identity) from the pool."""
        for index, item in enumerate(self._items):
            if item is target:
                del self._items[index]
                return
