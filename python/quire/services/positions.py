"""Positions computation.

Splits the reading order into a global, contiguous list of positions:

- a fixed-layout resource gets exactly one position at progression 0.0,
- a reflowable resource gets ceil(length / page_length) positions (at
  least one), the length coming from a ReflowableStrategy,
- positions are numbered 1..N across the whole reading order,
- totalProgression = (position - 1) / N is filled in by a second pass once
  N is known.

Length lookups are independent and run on a thread pool, each in a copy of
the caller's context so log events keep the publication fields; numbering
is a single sequential fold over the reading order afterwards. The result
is computed once and cached.
"""

from __future__ import annotations

import contextvars
import math
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor

from quire.config import DEFAULT_PAGE_LENGTH, PositionsStrategy, Settings
from quire.container.base import Container, Resource
from quire.errors import PositionsUnavailableError, QuireError, ReadError
from quire.logging import get_logger, set_resource_context
from quire.schemas import Layout, Link, Locations, Locator, Presentation

logger = get_logger(__name__)

DEFAULT_MEDIA_TYPE = "application/xhtml+xml"


# =============================================================================
# Reflowable strategies
# =============================================================================


class ReflowableStrategy(ABC):
    """Computes the number of positions of a reflowable resource."""

    def __init__(self, page_length: int = DEFAULT_PAGE_LENGTH):
        if page_length < 1:
            raise ValueError("page_length must be >= 1")
        self.page_length = page_length

    @abstractmethod
    def resource_length(self, link: Link, resource: Resource) -> int:
        """Length in bytes used for pagination."""
        ...

    def position_count(self, link: Link, resource: Resource) -> int:
        length = self.resource_length(link, resource)
        return max(1, math.ceil(length / self.page_length))


class OriginalLength(ReflowableStrategy):
    """Uses the length before obfuscation/compression, when known."""

    def resource_length(self, link: Link, resource: Resource) -> int:
        encryption = link.encrypted
        if encryption is not None and encryption.original_length is not None:
            return encryption.original_length
        return resource.length()


class ArchiveEntryLength(ReflowableStrategy):
    """Uses the size of the archive entry, falling back to the resource length."""

    def resource_length(self, link: Link, resource: Resource) -> int:
        entry_length = resource.archive_entry_length()
        if entry_length is not None:
            return entry_length
        return resource.length()


RECOMMENDED = ArchiveEntryLength


def strategy_from_settings(settings: Settings) -> ReflowableStrategy:
    if settings.positions_strategy == PositionsStrategy.ORIGINAL_LENGTH:
        return OriginalLength(settings.positions_page_length)
    return ArchiveEntryLength(settings.positions_page_length)


# =============================================================================
# Service
# =============================================================================


class PositionsService:
    """Lazily computes and caches the positions of a publication.

    Args:
        reading_order: Reading order links.
        presentation: Publication presentation (default layout).
        container: Container the reading order resources are read from.
        strategy: Pagination strategy for reflowable resources.
        max_workers: Size of the thread pool used for length lookups.
    """

    def __init__(
        self,
        reading_order: list[Link],
        presentation: Presentation,
        container: Container,
        strategy: ReflowableStrategy | None = None,
        max_workers: int = 4,
    ):
        self.reading_order = list(reading_order)
        self.presentation = presentation
        self.container = container
        self.strategy = strategy or RECOMMENDED()
        self.max_workers = max(1, max_workers)
        self._lock = threading.Lock()
        self._positions: list[list[Locator]] | None = None

    def positions_by_reading_order(self) -> list[list[Locator]]:
        """Positions grouped by reading order resource."""
        with self._lock:
            if self._positions is None:
                self._positions = self._compute()
            return self._positions

    def positions(self) -> list[Locator]:
        """All positions, in reading order."""
        return [locator for group in self.positions_by_reading_order() for locator in group]

    def _compute(self) -> list[list[Locator]]:
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="quire-positions"
        ) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, self._page_count, link)
                for link in self.reading_order
            ]
            counts = [future.result() for future in futures]

        groups: list[list[Locator]] = []
        last_position = 0
        for link, count in zip(self.reading_order, counts):
            if count is None:
                groups.append([])
                continue
            fixed = self.presentation.layout_of(link) == Layout.FIXED
            groups.append(
                [
                    self._locator(
                        link,
                        progression=0.0 if fixed else (page - 1) / count,
                        position=last_position + page,
                    )
                    for page in range(1, count + 1)
                ]
            )
            last_position += count

        total = last_position
        return [
            [
                locator.copy_with_locations(
                    total_progression=(locator.locations.position - 1) / total
                )
                for locator in group
            ]
            for group in groups
        ]

    def _page_count(self, link: Link) -> int | None:
        """Number of positions of a reading order resource.

        None means the resource is missing from the container.
        """
        set_resource_context(link.href)
        if self.presentation.layout_of(link) == Layout.FIXED:
            return 1

        resource = self.container.get(link.href)
        if resource is None:
            logger.warning("positions_resource_missing")
            return None

        try:
            with resource:
                return self.strategy.position_count(link, resource)
        except ReadError as exc:
            logger.warning("positions_length_unavailable", error=exc.message)
            return 1
        except QuireError as exc:
            raise PositionsUnavailableError(
                f"Positions unavailable for {link.href}: {exc.message}"
            ) from exc

    def _locator(self, link: Link, *, progression: float, position: int) -> Locator:
        return Locator(
            href=link.href,
            media_type=link.media_type or DEFAULT_MEDIA_TYPE,
            title=link.title,
            locations=Locations(progression=progression, position=position),
        )
