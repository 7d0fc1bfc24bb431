"""Containers yielding the raw bytes of a publication."""

from quire.container.archive import ArchiveLimits, ZipContainer, check_archive_safety
from quire.container.base import (
    BytesResource,
    Container,
    InMemoryContainer,
    Resource,
    ResourceTransformer,
    TransformingContainer,
)
from quire.container.directory import DirectoryContainer
from quire.container.paths import normalize_path, resolve_href, strip_fragment

__all__ = [
    "ArchiveLimits",
    "BytesResource",
    "Container",
    "DirectoryContainer",
    "InMemoryContainer",
    "Resource",
    "ResourceTransformer",
    "TransformingContainer",
    "ZipContainer",
    "check_archive_safety",
    "normalize_path",
    "resolve_href",
    "strip_fragment",
]
