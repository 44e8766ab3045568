"""Persistence for generated artifacts.

Generation is pure; everything that touches the filesystem goes through an
``ArtifactStore``.  Paths handed to a store are POSIX-style and relative to
the store root (e.g. ``"myapp/services/api.yml"``).  Two implementations
are provided:

* ``FileSystemStore`` writes below a real directory, using
  ``asyncio.to_thread`` so callers never block the event loop on disk I/O.
* ``MemoryStore`` keeps everything in a dict, for tests and dry runs.

Writes are last-writer-wins; there is no locking or versioning.
"""

from __future__ import annotations

import asyncio
import fnmatch
import shutil
import stat
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable


@runtime_checkable
class ArtifactStore(Protocol):
    """Minimal storage interface used by the scaffolder and project manager."""

    async def write(self, path: str, content: str, executable: bool = False) -> str: ...

    async def read(self, path: str) -> str: ...

    async def exists(self, path: str) -> bool: ...

    async def list(self, directory: str = "", pattern: str = "*") -> list[str]: ...

    async def mkdir(self, path: str) -> None: ...

    async def remove(self, path: str) -> bool: ...


def _normalise(path: str) -> str:
    """Return *path* as a clean relative POSIX path.

    Raises:
        ValueError: If the path is absolute or escapes the store root.
    """
    pure = PurePosixPath(path)
    if pure.is_absolute() or ".." in pure.parts:
        raise ValueError(f"Store paths must be relative and stay inside the root: {path!r}")
    normalised = pure.as_posix()
    return "" if normalised == "." else normalised


# ---------------------------------------------------------------------------
# FileSystemStore
# ---------------------------------------------------------------------------


class FileSystemStore:
    """An ``ArtifactStore`` rooted at a directory on disk."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        rel = _normalise(path)
        return self.root / rel if rel else self.root

    async def write(self, path: str, content: str, executable: bool = False) -> str:
        """Write *content* to *path*, creating parent directories.

        Returns the absolute path written, as a string.
        """
        target = self._resolve(path)
        await asyncio.to_thread(_write_file, target, content, executable)
        return str(target)

    async def read(self, path: str) -> str:
        target = self._resolve(path)
        return await asyncio.to_thread(target.read_text, encoding="utf-8")

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).exists)

    async def list(self, directory: str = "", pattern: str = "*") -> list[str]:
        """Return sorted names of the entries in *directory* matching *pattern*."""
        target = self._resolve(directory)

        def _scan() -> list[str]:
            if not target.is_dir():
                return []
            return sorted(p.name for p in target.glob(pattern))

        return await asyncio.to_thread(_scan)

    async def mkdir(self, path: str) -> None:
        target = self._resolve(path)
        await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)

    async def remove(self, path: str) -> bool:
        """Remove a file or a whole directory tree.

        Returns ``False`` if nothing existed at *path*.
        """
        target = self._resolve(path)

        def _remove() -> bool:
            if target.is_dir():
                shutil.rmtree(target)
                return True
            if target.exists():
                target.unlink()
                return True
            return False

        return await asyncio.to_thread(_remove)


# ---------------------------------------------------------------------------
# MemoryStore
# ---------------------------------------------------------------------------


class MemoryStore:
    """An in-memory ``ArtifactStore``.

    ``files`` maps relative paths to content; ``executables`` records which
    of them were written with ``executable=True``.
    """

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.executables: set[str] = set()
        self.directories: set[str] = set()

    async def write(self, path: str, content: str, executable: bool = False) -> str:
        rel = _normalise(path)
        self.files[rel] = content
        if executable:
            self.executables.add(rel)
        else:
            self.executables.discard(rel)
        for parent in PurePosixPath(rel).parents:
            if parent.as_posix() != ".":
                self.directories.add(parent.as_posix())
        return rel

    async def read(self, path: str) -> str:
        rel = _normalise(path)
        try:
            return self.files[rel]
        except KeyError:
            raise FileNotFoundError(rel) from None

    async def exists(self, path: str) -> bool:
        rel = _normalise(path)
        return rel == "" or rel in self.files or rel in self.directories

    async def list(self, directory: str = "", pattern: str = "*") -> list[str]:
        rel = _normalise(directory)
        names: set[str] = set()
        for entry in (*self.files, *self.directories):
            parent = PurePosixPath(entry).parent.as_posix()
            if parent == (rel or "."):
                names.add(PurePosixPath(entry).name)
        return sorted(n for n in names if fnmatch.fnmatchcase(n, pattern))

    async def mkdir(self, path: str) -> None:
        rel = _normalise(path)
        path_obj = PurePosixPath(rel)
        for parent in (path_obj, *path_obj.parents):
            if parent.as_posix() != ".":
                self.directories.add(parent.as_posix())

    async def remove(self, path: str) -> bool:
        rel = _normalise(path)
        prefix = f"{rel}/"
        doomed_files = [p for p in self.files if p == rel or p.startswith(prefix)]
        doomed_dirs = [d for d in self.directories if d == rel or d.startswith(prefix)]
        for p in doomed_files:
            del self.files[p]
            self.executables.discard(p)
        for d in doomed_dirs:
            self.directories.discard(d)
        return bool(doomed_files or doomed_dirs)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _write_file(path: Path, content: str, executable: bool) -> None:
    """Synchronous helper: create parent dirs, write content, set mode."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if executable:
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
