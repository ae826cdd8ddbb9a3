"""Filesystem-based storage backend.

This module provides a backend that persists data under a root directory on
the local filesystem. It requires no external dependencies and is the default
backend used by the CLI.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from docvault.errors import BackendError
from docvault.stores.base import (
    DirListing,
    FileStat,
    StorageBackend,
    join_path,
    normalize_path,
)


@dataclass
class FileSystemConfig:
    """Configuration for the filesystem backend.

    Attributes:
        root: Directory all backend paths are relative to.
        sync_on_write: Whether to fsync the temp file before the rename.
        create_root: Whether to create the root directory if missing.
    """

    root: str = "."
    sync_on_write: bool = True
    create_root: bool = True


class FileSystemBackend(StorageBackend):
    """Storage backend rooted at a local directory.

    Writes use the write-to-temp-then-rename pattern, so a failed or
    interrupted write leaves the previous file contents untouched.

    Example:
        >>> backend = FileSystemBackend("/path/to/vault")
        >>> backend.write_text(".versions/notes.md.json", "{}")
        >>> backend.exists(".versions/notes.md.json")
        True
    """

    def __init__(
        self,
        root: str | Path = ".",
        sync_on_write: bool = True,
        create_root: bool = True,
    ) -> None:
        """Initialize the filesystem backend.

        Args:
            root: Root directory.
            sync_on_write: Whether to fsync before renaming into place.
            create_root: Whether to create the root directory if missing.
        """
        self._config = FileSystemConfig(
            root=str(root),
            sync_on_write=sync_on_write,
            create_root=create_root,
        )
        self._root = Path(root)
        if create_root:
            self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        """Get the root directory."""
        return self._root

    @property
    def config(self) -> FileSystemConfig:
        """Get the backend configuration."""
        return self._config

    def _resolve(self, path: str) -> Path:
        """Map a backend path to a filesystem path under the root."""
        normalized = normalize_path(path)
        if ".." in normalized.split("/"):
            raise BackendError("resolve", path, ValueError("path escapes root"))
        return self._root / normalized if normalized else self._root

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def read_bytes(self, path: str) -> bytes:
        file_path = self._resolve(path)
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise BackendError("read", path, e) from e

    def write_bytes(self, path: str, data: bytes) -> None:
        file_path = self._resolve(path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=file_path.parent,
                prefix=f".{file_path.name}.",
                suffix=".tmp",
            )
        except OSError as e:
            raise BackendError("write", path, e) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                if self._config.sync_on_write:
                    os.fsync(f.fileno())
            os.replace(temp_path, file_path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise BackendError("write", path, e) from e

    def list(self, directory: str) -> DirListing:
        dir_path = self._resolve(directory)
        listing = DirListing()
        try:
            entries = sorted(dir_path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise BackendError("list", directory, e) from e

        for entry in entries:
            full = join_path(directory, entry.name)
            if entry.is_dir():
                listing.dirs.append(full)
            elif not entry.name.endswith(".tmp"):
                listing.files.append(full)
        return listing

    def stat(self, path: str) -> FileStat | None:
        file_path = self._resolve(path)
        try:
            st = file_path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BackendError("stat", path, e) from e
        return FileStat(size=st.st_size, mtime=int(st.st_mtime * 1000))

    def remove(self, path: str) -> None:
        try:
            self._resolve(path).unlink()
        except OSError as e:
            raise BackendError("remove", path, e) from e

    def mkdir(self, path: str) -> None:
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendError("mkdir", path, e) from e
