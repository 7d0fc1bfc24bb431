"""Publication manifest schema."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from quire.container.paths import normalize_path, strip_fragment
from quire.schemas.link import Link
from quire.schemas.metadata import Metadata


class Manifest(BaseModel):
    """Everything the runtime needs to render a publication.

    `subcollections` holds the named navigation collections other than the
    table of contents (page-list, landmarks, lot, loi...).
    """

    metadata: Metadata
    links: list[Link] = Field(default_factory=list)
    reading_order: list[Link] = Field(default_factory=list)
    resources: list[Link] = Field(default_factory=list)
    table_of_contents: list[Link] = Field(default_factory=list)
    subcollections: dict[str, list[Link]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def link_with_href(self, href: str) -> Link | None:
        """Find a reading order, resource or alternate link by href."""
        target = normalize_path(strip_fragment(href))

        def find(links: list[Link]) -> Link | None:
            for link in links:
                if normalize_path(strip_fragment(link.href)) == target:
                    return link
                found = find(link.alternates) or find(link.children)
                if found is not None:
                    return found
            return None

        return find(self.reading_order) or find(self.resources) or find(self.links)

    def link_with_rel(self, rel: str) -> Link | None:
        for link in [*self.reading_order, *self.resources, *self.links]:
            if rel in link.rels:
                return link
        return None
