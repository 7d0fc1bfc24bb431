"""Publication facade.

Bundles the parsed manifest with the (deobfuscating) container the
resources are read from, and exposes positions and media overlays on top.
"""

from __future__ import annotations

from quire.container.base import Container, Resource
from quire.schemas import Link, Locator, Manifest, MediaOverlayNode, Metadata
from quire.services.positions import PositionsService
from quire.services.smil import parse_smil

SMIL_MEDIA_TYPE = "application/smil+xml"


class Publication:
    """A parsed publication.

    Args:
        manifest: Metadata, reading order, resources and navigation.
        container: Container handing out resources, deobfuscation applied.
        positions_service: Positions provider of the reading order.
    """

    def __init__(
        self,
        manifest: Manifest,
        container: Container,
        positions_service: PositionsService,
    ):
        self.manifest = manifest
        self.container = container
        self._positions_service = positions_service

    @property
    def metadata(self) -> Metadata:
        return self.manifest.metadata

    @property
    def reading_order(self) -> list[Link]:
        return self.manifest.reading_order

    @property
    def resources(self) -> list[Link]:
        return self.manifest.resources

    @property
    def table_of_contents(self) -> list[Link]:
        return self.manifest.table_of_contents

    def get(self, href: str) -> Resource | None:
        """Resource at href, deobfuscated when needed."""
        return self.container.get(href)

    def positions_by_reading_order(self) -> list[list[Locator]]:
        return self._positions_service.positions_by_reading_order()

    def positions(self) -> list[Locator]:
        return self._positions_service.positions()

    def media_overlay(self, link: Link) -> MediaOverlayNode | None:
        """Media overlay tree of a reading order or resource link.

        Returns:
            The parsed SMIL tree, or None if the link has no media overlay.

        Raises:
            ResourceNotFoundError: If the SMIL document is declared but missing.
            DecodingError: If the SMIL document is not well-formed.
        """
        overlay = next(
            (alternate for alternate in link.alternates if alternate.media_type == SMIL_MEDIA_TYPE),
            None,
        )
        if overlay is None:
            return None
        return parse_smil(self.container.read_xml(overlay.href), overlay.href)

    def close(self) -> None:
        self.container.close()

    def __enter__(self) -> Publication:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
