"""Pydantic schemas for the publication model.

All schemas are re-exported here for convenient imports.
"""

from quire.schemas.link import Encryption, Link
from quire.schemas.locator import Locations, Locator
from quire.schemas.manifest import Manifest
from quire.schemas.media_overlay import MediaOverlayNode
from quire.schemas.metadata import (
    EPUB_PROFILE,
    UNDEFINED_LANGUAGE,
    Accessibility,
    Certification,
    Contributor,
    Layout,
    LocalizedString,
    Metadata,
    Orientation,
    Overflow,
    Page,
    Presentation,
    ReadingProgression,
    Spread,
    Subject,
)

__all__ = [
    "EPUB_PROFILE",
    "UNDEFINED_LANGUAGE",
    "Accessibility",
    "Certification",
    "Contributor",
    "Encryption",
    "Layout",
    "Link",
    "LocalizedString",
    "Locations",
    "Locator",
    "Manifest",
    "MediaOverlayNode",
    "Metadata",
    "Orientation",
    "Overflow",
    "Page",
    "Presentation",
    "ReadingProgression",
    "Spread",
    "Subject",
]
