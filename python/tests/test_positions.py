"""Tests for positions computation.

Covers:
- Page counts of reflowable and fixed-layout resources
- Contiguous numbering across the reading order
- totalProgression
- Strategies and error handling
- Logging context inside length lookups
"""

import pytest

from quire.config import PositionsStrategy, Settings
from quire.container import Container, InMemoryContainer, Resource
from quire.errors import DecodingError, PositionsUnavailableError, ReadError
from quire.logging import add_publication_context, set_publication_context
from quire.schemas import Encryption, Layout, Link, Presentation
from quire.services.positions import (
    ArchiveEntryLength,
    OriginalLength,
    PositionsService,
    strategy_from_settings,
)

REFLOWABLE = Presentation()
FIXED = Presentation(layout=Layout.FIXED)


def _link(href: str, **kwargs) -> Link:
    kwargs.setdefault("media_type", "application/xhtml+xml")
    return Link(href=href, **kwargs)


def _service(files: dict[str, bytes], links: list[Link], presentation=REFLOWABLE, **kwargs):
    return PositionsService(links, presentation, InMemoryContainer(files), **kwargs)


class _FailingResource(Resource):
    def __init__(self, href: str, error: Exception):
        super().__init__(href)
        self.error = error

    def length(self) -> int:
        raise self.error

    def read(self, start: int = 0, end: int | None = None) -> bytes:
        raise self.error


class _FailingContainer(Container):
    def __init__(self, error: Exception):
        self.error = error

    def get(self, href: str) -> Resource | None:
        return _FailingResource(href, self.error)

    def entries(self) -> list[str]:
        return []


class _CountingContainer(InMemoryContainer):
    def __init__(self, files):
        super().__init__(files)
        self.lookups = 0

    def get(self, href: str) -> Resource | None:
        self.lookups += 1
        return super().get(href)


class _ContextRecordingContainer(InMemoryContainer):
    """Records the log context visible to each lookup."""

    def __init__(self, files):
        super().__init__(files)
        self.seen: dict[str, dict] = {}

    def get(self, href: str) -> Resource | None:
        self.seen[href] = add_publication_context(None, "warning", {"event": "lookup"})
        return super().get(href)


class TestPageCounts:
    def test_reflowable_resource_split_by_page_length(self):
        service = _service({"a.xhtml": b"x" * 2500}, [_link("a.xhtml", title="A")])
        positions = service.positions()
        assert [p.locations.position for p in positions] == [1, 2, 3]
        assert [p.locations.progression for p in positions] == pytest.approx([0, 1 / 3, 2 / 3])
        assert all(p.title == "A" and p.href == "a.xhtml" for p in positions)

    def test_short_or_empty_resource_has_one_position(self):
        service = _service({"a.xhtml": b"", "b.xhtml": b"x"}, [_link("a.xhtml"), _link("b.xhtml")])
        assert [len(group) for group in service.positions_by_reading_order()] == [1, 1]

    def test_fixed_layout_has_one_position(self):
        service = _service({"p1.xhtml": b"x" * 5000}, [_link("p1.xhtml")], presentation=FIXED)
        [locator] = service.positions()
        assert locator.locations.progression == 0.0
        assert locator.locations.position == 1

    def test_link_layout_overrides_presentation(self):
        links = [
            _link("a.xhtml", properties={"layout": "fixed"}),
            _link("b.xhtml"),
        ]
        service = _service({"a.xhtml": b"x" * 3000, "b.xhtml": b"x" * 3000}, links)
        assert [len(group) for group in service.positions_by_reading_order()] == [1, 3]

    def test_missing_resource_has_no_positions(self):
        service = _service({"b.xhtml": b"x"}, [_link("missing.xhtml"), _link("b.xhtml")])
        groups = service.positions_by_reading_order()
        assert groups[0] == []
        assert groups[1][0].locations.position == 1

    def test_default_media_type(self):
        service = _service({"a.xhtml": b"x"}, [Link(href="a.xhtml")])
        assert service.positions()[0].media_type == "application/xhtml+xml"


class TestNumbering:
    def test_contiguous_across_resources(self):
        files = {"a.xhtml": b"x" * 2048, "b.xhtml": b"x" * 10, "c.xhtml": b"x" * 1025}
        links = [_link(href) for href in files]
        positions = _service(files, links).positions()
        assert [p.locations.position for p in positions] == [1, 2, 3, 4, 5]
        assert [p.href for p in positions] == ["a.xhtml", "a.xhtml", "b.xhtml", "c.xhtml", "c.xhtml"]

    def test_total_progression(self):
        files = {"a.xhtml": b"x" * 2048, "b.xhtml": b"x" * 2048}
        positions = _service(files, [_link(href) for href in files]).positions()
        assert [p.locations.total_progression for p in positions] == pytest.approx(
            [0, 0.25, 0.5, 0.75]
        )

    def test_empty_reading_order(self):
        assert _service({}, []).positions() == []

    def test_thread_pool_size_does_not_change_result(self):
        files = {f"c{i}.xhtml": b"x" * (i * 700 + 1) for i in range(12)}
        links = [_link(href) for href in files]
        sequential = _service(files, links, max_workers=1).positions()
        pooled = _service(files, links, max_workers=8).positions()
        assert sequential == pooled


class TestStrategies:
    def test_original_length_prefers_encryption_fact(self):
        link = _link(
            "a.xhtml",
            properties={"encrypted": Encryption(algorithm="x", original_length=4000)},
        )
        service = _service({"a.xhtml": b"x" * 10}, [link], strategy=OriginalLength())
        assert len(service.positions()) == 4

    def test_original_length_falls_back_to_resource_length(self):
        service = _service({"a.xhtml": b"x" * 2000}, [_link("a.xhtml")], strategy=OriginalLength())
        assert len(service.positions()) == 2

    def test_custom_page_length(self):
        service = _service(
            {"a.xhtml": b"x" * 1000}, [_link("a.xhtml")], strategy=ArchiveEntryLength(100)
        )
        assert len(service.positions()) == 10

    def test_invalid_page_length(self):
        with pytest.raises(ValueError):
            OriginalLength(0)

    def test_strategy_from_settings(self):
        settings = Settings(
            QUIRE_POSITIONS_STRATEGY=PositionsStrategy.ORIGINAL_LENGTH,
            QUIRE_POSITIONS_PAGE_LENGTH=512,
        )
        strategy = strategy_from_settings(settings)
        assert isinstance(strategy, OriginalLength)
        assert strategy.page_length == 512


class TestErrors:
    def test_read_error_counts_as_one_position(self):
        service = PositionsService(
            [_link("a.xhtml")], REFLOWABLE, _FailingContainer(ReadError("disk gone"))
        )
        assert len(service.positions()) == 1

    def test_other_errors_surface(self):
        service = PositionsService(
            [_link("a.xhtml")], REFLOWABLE, _FailingContainer(DecodingError("bad key"))
        )
        with pytest.raises(PositionsUnavailableError):
            service.positions()


class TestMemoization:
    def test_computed_once(self):
        container = _CountingContainer({"a.xhtml": b"x" * 3000})
        service = PositionsService([_link("a.xhtml")], REFLOWABLE, container)
        first = service.positions_by_reading_order()
        second = service.positions_by_reading_order()
        assert first is second
        assert container.lookups == 1


class TestLoggingContext:
    def test_lookups_carry_publication_and_resource(self):
        set_publication_context("urn:uuid:book", "OEBPS/content.opf")
        container = _ContextRecordingContainer({"a.xhtml": b"x", "b.xhtml": b"x"})
        links = [_link("a.xhtml"), _link("b.xhtml"), _link("missing.xhtml")]
        PositionsService(links, REFLOWABLE, container, max_workers=3).positions()

        assert set(container.seen) == {"a.xhtml", "b.xhtml", "missing.xhtml"}
        for href, event in container.seen.items():
            assert event["publication_id"] == "urn:uuid:book"
            assert event["package_path"] == "OEBPS/content.opf"
            assert event["resource_href"] == href

    def test_resource_context_does_not_leak_to_caller(self):
        set_publication_context("urn:uuid:book")
        _service({"a.xhtml": b"x"}, [_link("a.xhtml")]).positions()
        event = add_publication_context(None, "info", {"event": "x"})
        assert "resource_href" not in event
        assert event["publication_id"] == "urn:uuid:book"
