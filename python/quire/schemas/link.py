"""Link and Encryption schemas.

A Link points at a resource of the publication. Its property bag carries the
EPUB-specific rendition hints mapped from manifest and spine properties,
plus the nested `encrypted` object when the resource is listed in
encryption.xml.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Encryption(BaseModel):
    """Encryption fact for a single resource.

    Attributes:
        algorithm: IRI of the encryption or obfuscation algorithm.
        compression: Compression applied before encryption ("deflate"), if any.
        original_length: Length of the resource before compression/encryption.
        profile: Encryption profile IRI (LCP only).
        scheme: Protection scheme IRI (LCP only).
    """

    algorithm: str
    compression: str | None = None
    original_length: int | None = None
    profile: str | None = None
    scheme: str | None = None

    model_config = ConfigDict(frozen=True)


class Link(BaseModel):
    """A resource link of the publication manifest."""

    href: str
    media_type: str | None = None
    title: str | None = None
    rels: frozenset[str] = frozenset()
    properties: dict[str, Any] = Field(default_factory=dict)
    duration: float | None = None
    alternates: list[Link] = Field(default_factory=list)
    children: list[Link] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def encrypted(self) -> Encryption | None:
        """Encryption fact attached to this link, if any."""
        value = self.properties.get("encrypted")
        return value if isinstance(value, Encryption) else None

    @property
    def contains(self) -> list[str]:
        return list(self.properties.get("contains", []))
