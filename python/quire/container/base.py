"""Container abstraction.

Provides a clean interface over the raw bytes of a publication:
- Resource lookup by package-relative href
- Full and ranged reads
- Resource lengths (decoded and, for archives, as stored)
- XML decoding of package-level documents

The parsing services never open archives or directories themselves; they
only talk to a Container.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from xml.etree import ElementTree as ET

from quire.container.paths import normalize_path, strip_fragment
from quire.errors import DecodingError, ReadError, ResourceNotFoundError
from quire.logging import get_logger

logger = get_logger(__name__)


class Resource(ABC):
    """A single entry of a container."""

    def __init__(self, href: str):
        self.href = href

    @abstractmethod
    def length(self) -> int:
        """Return the decoded length of the resource in bytes.

        Raises:
            ReadError: If the length cannot be determined.
        """
        ...

    @abstractmethod
    def read(self, start: int = 0, end: int | None = None) -> bytes:
        """Read the bytes in the half-open range [start, end).

        The range is clamped to the resource length; end=None reads to
        the end of the resource.

        Args:
            start: First byte offset.
            end: Offset one past the last byte, or None.

        Returns:
            The requested bytes.

        Raises:
            ReadError: If the bytes cannot be read.
        """
        ...

    def archive_entry_length(self) -> int | None:
        """Return the stored (possibly compressed) size inside an archive.

        Returns:
            Entry length for archived resources, None otherwise.
        """
        return None

    def close(self) -> None:
        """Release any handle held by the resource."""

    def __enter__(self) -> "Resource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.href!r})"


class BytesResource(Resource):
    """Resource backed by an in-memory byte string."""

    def __init__(self, href: str, data: bytes):
        super().__init__(href)
        self._data = data

    def length(self) -> int:
        return len(self._data)

    def read(self, start: int = 0, end: int | None = None) -> bytes:
        return self._data[clamp_range(start, end, len(self._data))]


class Container(ABC):
    """Abstract base class for container implementations."""

    @abstractmethod
    def get(self, href: str) -> Resource | None:
        """Look up a resource.

        Args:
            href: Package-relative href. A #fragment is ignored.

        Returns:
            The Resource if it exists, None otherwise.
        """
        ...

    @abstractmethod
    def entries(self) -> list[str]:
        """List the hrefs of every resource in the container."""
        ...

    def close(self) -> None:
        """Release the underlying archive or file handles."""

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def read(self, href: str) -> bytes:
        """Read a whole resource.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
            ReadError: If reading fails.
        """
        resource = self.get(href)
        if resource is None:
            raise ResourceNotFoundError(href)
        with resource:
            return resource.read()

    def read_xml(self, href: str) -> ET.Element:
        """Read and parse an XML resource.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
            DecodingError: If the bytes are not well-formed XML.
        """
        data = self.read(href)
        try:
            return ET.fromstring(data)
        except ET.ParseError as exc:
            raise DecodingError(f"Malformed XML in {href}: {exc}") from exc

    def read_xml_optional(self, href: str) -> ET.Element | None:
        """Read an optional XML resource.

        Missing, unreadable or malformed documents yield None; the latter two
        are logged.
        """
        if self.get(href) is None:
            return None
        try:
            return self.read_xml(href)
        except (ReadError, DecodingError) as exc:
            logger.warning("optional_document_unreadable", href=href, error=exc.message)
            return None


class InMemoryContainer(Container):
    """Container holding its resources in a dict.

    Used for publications assembled in memory and throughout the tests.
    """

    def __init__(self, files: dict[str, bytes | str] | None = None):
        self._files: dict[str, bytes] = {}
        for href, content in (files or {}).items():
            self.put(href, content)

    def put(self, href: str, content: bytes | str) -> None:
        """Add or replace a resource."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._files[normalize_path(href)] = content

    def get(self, href: str) -> Resource | None:
        path = normalize_path(strip_fragment(href))
        if path not in self._files:
            return None
        return BytesResource(path, self._files[path])

    def entries(self) -> list[str]:
        return list(self._files)


ResourceTransformer = Callable[[Resource], Resource]


class TransformingContainer(Container):
    """Container applying transformers to every resource it hands out."""

    def __init__(self, container: Container, transformers: list[ResourceTransformer]):
        self._container = container
        self._transformers = list(transformers)

    def get(self, href: str) -> Resource | None:
        resource = self._container.get(href)
        if resource is None:
            return None
        for transform in self._transformers:
            resource = transform(resource)
        return resource

    def entries(self) -> list[str]:
        return self._container.entries()

    def close(self) -> None:
        self._container.close()


def clamp_range(start: int, end: int | None, length: int) -> slice:
    """Clamp a half-open range to [0, length]."""
    if start < 0:
        raise ReadError(f"Invalid range start: {start}")
    stop = length if end is None else min(end, length)
    return slice(min(start, length), max(stop, min(start, length)))
