"""Publication parsing services.

This module contains the parsers and adapters that turn the raw documents
of a container into a Publication. Most callers only need open_publication().
"""

from quire.services.deobfuscation import Deobfuscator, deobfuscate
from quire.services.epub_parser import find_package_path, open_publication, parse_publication
from quire.services.positions import (
    ArchiveEntryLength,
    OriginalLength,
    PositionsService,
    ReflowableStrategy,
)
from quire.services.publication import Publication

__all__ = [
    "ArchiveEntryLength",
    "Deobfuscator",
    "OriginalLength",
    "PositionsService",
    "Publication",
    "ReflowableStrategy",
    "deobfuscate",
    "find_package_path",
    "open_publication",
    "parse_publication",
]
