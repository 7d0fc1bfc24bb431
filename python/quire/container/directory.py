"""Container over an exploded EPUB directory."""

from pathlib import Path

from quire.container.base import Container, Resource, clamp_range
from quire.container.paths import normalize_path, strip_fragment
from quire.errors import ReadError


class FileResource(Resource):
    def __init__(self, href: str, path: Path):
        super().__init__(href)
        self._path = path

    def length(self) -> int:
        try:
            return self._path.stat().st_size
        except OSError as exc:
            raise ReadError(f"Failed to stat '{self.href}': {exc}") from exc

    def read(self, start: int = 0, end: int | None = None) -> bytes:
        window = clamp_range(start, end, self.length())
        try:
            with self._path.open("rb") as fh:
                fh.seek(window.start)
                return fh.read(window.stop - window.start)
        except OSError as exc:
            raise ReadError(f"Failed to read '{self.href}': {exc}") from exc


class DirectoryContainer(Container):
    """Serves files below a root directory.

    Hrefs resolving outside the root are treated as missing.
    """

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()
        if not self._root.is_dir():
            raise ReadError(f"Not a directory: {root}")

    def get(self, href: str) -> Resource | None:
        relative = normalize_path(strip_fragment(href))
        if not relative:
            return None
        path = (self._root / relative).resolve()
        if not path.is_relative_to(self._root) or not path.is_file():
            return None
        return FileResource(relative, path)

    def entries(self) -> list[str]:
        return sorted(
            path.relative_to(self._root).as_posix()
            for path in self._root.rglob("*")
            if path.is_file()
        )
