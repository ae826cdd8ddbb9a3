"""In-memory storage backend.

This module provides a backend that keeps files in a dictionary.
Useful for testing and for hosts that embed the vault without a filesystem.
Data is not persisted between sessions.
"""

from __future__ import annotations

import threading
import time

from docvault.errors import BackendError
from docvault.stores.base import (
    DirListing,
    FileStat,
    StorageBackend,
    normalize_path,
)


class MemoryBackend(StorageBackend):
    """Dictionary-backed storage backend.

    Directories are implicit: a directory exists when it was created with
    :meth:`mkdir` or when any file lives below it.

    Example:
        >>> backend = MemoryBackend()
        >>> backend.write_bytes("a/b.json", b"{}")
        >>> backend.list("a").files
        ['a/b.json']
    """

    def __init__(self) -> None:
        """Initialize an empty backend."""
        self._files: dict[str, bytes] = {}
        self._mtimes: dict[str, int] = {}
        self._dirs: set[str] = set()
        self._lock = threading.Lock()

    def _parents(self, path: str) -> list[str]:
        parts = path.split("/")[:-1]
        return ["/".join(parts[: i + 1]) for i in range(len(parts))]

    def exists(self, path: str) -> bool:
        key = normalize_path(path)
        with self._lock:
            if key in self._files or key in self._dirs:
                return True
            prefix = f"{key}/"
            return any(name.startswith(prefix) for name in self._files)

    def read_bytes(self, path: str) -> bytes:
        key = normalize_path(path)
        with self._lock:
            try:
                return self._files[key]
            except KeyError as e:
                raise BackendError("read", path, FileNotFoundError(key)) from e

    def write_bytes(self, path: str, data: bytes) -> None:
        key = normalize_path(path)
        if not key:
            raise BackendError("write", path, IsADirectoryError(path))
        with self._lock:
            if key in self._dirs:
                raise BackendError("write", path, IsADirectoryError(key))
            self._dirs.update(self._parents(key))
            self._files[key] = bytes(data)
            self._mtimes[key] = int(time.time() * 1000)

    def list(self, directory: str) -> DirListing:
        key = normalize_path(directory)
        prefix = f"{key}/" if key else ""
        listing = DirListing()
        with self._lock:
            known_dirs = set(self._dirs)
            for name in self._files:
                known_dirs.update(self._parents(name))
            if key and key not in known_dirs:
                raise BackendError("list", directory, FileNotFoundError(key))

            for name in sorted(self._files):
                if name.startswith(prefix) and "/" not in name[len(prefix):]:
                    listing.files.append(name)
            for name in sorted(known_dirs):
                if name.startswith(prefix) and name != key and "/" not in name[len(prefix):]:
                    listing.dirs.append(name)
        return listing

    def stat(self, path: str) -> FileStat | None:
        key = normalize_path(path)
        with self._lock:
            if key not in self._files:
                return None
            return FileStat(size=len(self._files[key]), mtime=self._mtimes[key])

    def remove(self, path: str) -> None:
        key = normalize_path(path)
        with self._lock:
            if key not in self._files:
                raise BackendError("remove", path, FileNotFoundError(key))
            del self._files[key]
            del self._mtimes[key]

    def mkdir(self, path: str) -> None:
        key = normalize_path(path)
        with self._lock:
            if key in self._files:
                raise BackendError("mkdir", path, FileExistsError(key))
            if key:
                self._dirs.add(key)
                self._dirs.update(self._parents(key))

    def clear(self) -> None:
        """Remove every file and directory."""
        with self._lock:
            self._files.clear()
            self._mtimes.clear()
            self._dirs.clear()

    def __len__(self) -> int:
        return len(self._files)
