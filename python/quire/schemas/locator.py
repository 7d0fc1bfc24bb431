"""Locator schemas.

A Locator is a stable reference to a reading point. Positions are
Locators whose `position` is numbered 1..N across the whole reading order
and whose `total_progression` is derived from that number.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Locations(BaseModel):
    fragments: list[str] = Field(default_factory=list)
    progression: float | None = None
    position: int | None = None
    total_progression: float | None = None

    model_config = ConfigDict(frozen=True)


class Locator(BaseModel):
    href: str
    media_type: str
    title: str | None = None
    locations: Locations = Field(default_factory=Locations)

    model_config = ConfigDict(frozen=True)

    def copy_with_locations(self, **updates) -> Locator:
        """Return a copy with some location fields replaced."""
        return self.model_copy(update={"locations": self.locations.model_copy(update=updates)})
