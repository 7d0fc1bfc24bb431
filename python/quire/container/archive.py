"""ZIP archive container.

EPUB files are ZIP archives. Before any entry is exposed the archive is
checked against the configured safety limits (entry count, path safety,
per-entry size, compression ratio, total size). An archive failing any
check raises ArchiveUnsafeError and is never read.
"""

from __future__ import annotations

import io
import threading
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from quire.container.base import Container, Resource, clamp_range
from quire.container.paths import normalize_path, strip_fragment
from quire.errors import ArchiveUnsafeError, ReadError
from quire.logging import get_logger

if TYPE_CHECKING:
    from quire.config import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class ArchiveLimits:
    max_entries: int = 10_000
    max_total_uncompressed_bytes: int = 536_870_912
    max_single_entry_uncompressed_bytes: int = 67_108_864
    max_compression_ratio: int = 100

    @classmethod
    def from_settings(cls, settings: Settings) -> ArchiveLimits:
        return cls(
            max_entries=settings.max_archive_entries,
            max_total_uncompressed_bytes=settings.max_archive_total_uncompressed_bytes,
            max_single_entry_uncompressed_bytes=settings.max_archive_single_entry_uncompressed_bytes,
            max_compression_ratio=settings.max_archive_compression_ratio,
        )


# ---------------------------------------------------------------------------
# Archive safety
# ---------------------------------------------------------------------------


def check_archive_safety(zf: zipfile.ZipFile, limits: ArchiveLimits) -> None:
    """Validate every entry of an opened archive.

    Raises:
        ArchiveUnsafeError: On the first violated limit.
    """
    infos = zf.infolist()

    if len(infos) > limits.max_entries:
        raise ArchiveUnsafeError(f"Archive has {len(infos)} entries (limit {limits.max_entries})")

    total_uncompressed = 0
    for info in infos:
        # path safety: reject absolute, traversal, drive-qualified
        name = info.filename
        if name.startswith("/") or name.startswith("\\"):
            raise ArchiveUnsafeError(f"Absolute path in archive: {name}")
        if ".." in name.replace("\\", "/").split("/"):
            raise ArchiveUnsafeError(f"Path traversal in archive: {name}")
        if len(name) > 1 and name[1] == ":":
            raise ArchiveUnsafeError(f"Drive-qualified path in archive: {name}")

        uncompressed = info.file_size
        compressed = info.compress_size

        if uncompressed > limits.max_single_entry_uncompressed_bytes:
            raise ArchiveUnsafeError(
                f"Entry '{name}' uncompressed size {uncompressed} "
                f"exceeds limit {limits.max_single_entry_uncompressed_bytes}"
            )

        total_uncompressed += uncompressed

        if compressed > 0 and uncompressed / compressed > limits.max_compression_ratio:
            raise ArchiveUnsafeError(
                f"Entry '{name}' compression ratio {uncompressed / compressed:.1f} "
                f"exceeds limit {limits.max_compression_ratio}"
            )

    if total_uncompressed > limits.max_total_uncompressed_bytes:
        raise ArchiveUnsafeError(
            f"Total uncompressed {total_uncompressed} "
            f"exceeds limit {limits.max_total_uncompressed_bytes}"
        )


# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------


class ZipResource(Resource):
    def __init__(self, container: ZipContainer, info: zipfile.ZipInfo):
        super().__init__(normalize_path(info.filename))
        self._container = container
        self._info = info

    def length(self) -> int:
        return self._info.file_size

    def archive_entry_length(self) -> int | None:
        return self._info.compress_size

    def read(self, start: int = 0, end: int | None = None) -> bytes:
        window = clamp_range(start, end, self._info.file_size)
        return self._container._read_entry(self._info, window.start, window.stop)


class ZipContainer(Container):
    """Container over a ZIP archive given as a path or as raw bytes."""

    def __init__(self, source: str | Path | bytes, limits: ArchiveLimits | None = None):
        try:
            if isinstance(source, bytes):
                self._zf = zipfile.ZipFile(io.BytesIO(source))
            else:
                self._zf = zipfile.ZipFile(source)
        except (zipfile.BadZipFile, OSError) as exc:
            raise ArchiveUnsafeError(f"Invalid archive: {exc}") from exc

        try:
            check_archive_safety(self._zf, limits or ArchiveLimits())
        except ArchiveUnsafeError:
            self._zf.close()
            raise

        self._lock = threading.Lock()
        self._infos: dict[str, zipfile.ZipInfo] = {
            normalize_path(info.filename): info
            for info in self._zf.infolist()
            if not info.is_dir()
        }

    def get(self, href: str) -> Resource | None:
        info = self._infos.get(normalize_path(strip_fragment(href)))
        if info is None:
            return None
        return ZipResource(self, info)

    def entries(self) -> list[str]:
        return list(self._infos)

    def close(self) -> None:
        self._zf.close()

    def _read_entry(self, info: zipfile.ZipInfo, start: int, end: int) -> bytes:
        try:
            with self._lock, self._zf.open(info) as fh:
                if start:
                    fh.seek(start)
                return fh.read(end - start)
        except (zipfile.BadZipFile, OSError, RuntimeError, ValueError) as exc:
            logger.warning("archive_entry_read_failed", entry=info.filename, error=str(exc))
            raise ReadError(f"Failed to read '{info.filename}': {exc}") from exc
