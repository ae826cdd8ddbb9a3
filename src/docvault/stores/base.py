"""Base classes and interfaces for storage backends.

The version store never touches a filesystem directly. It talks to a
:class:`StorageBackend`, which reads and writes bytes at slash-separated
paths. Backends translate their own failures into
:class:`~docvault.errors.BackendError` so callers only see one error type.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from docvault.errors import BackendError


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class FileStat:
    """Size and modification time of a stored file.

    Attributes:
        size: Size in bytes.
        mtime: Modification time as epoch milliseconds.
    """

    size: int
    mtime: int


@dataclass
class DirListing:
    """Contents of a directory.

    Attributes:
        files: Full paths of the files in the directory.
        dirs: Full paths of the sub-directories.
    """

    files: list[str] = field(default_factory=list)
    dirs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"files": list(self.files), "dirs": list(self.dirs)}


# =============================================================================
# Path helpers
# =============================================================================


_UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|]')


def normalize_path(path: str) -> str:
    """Normalize a backend path to forward slashes without edge separators."""
    parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
    return "/".join(parts)


def join_path(*parts: str) -> str:
    """Join path segments with forward slashes."""
    return normalize_path("/".join(p for p in parts if p))


def sanitize_file_name(path: str) -> str:
    """Flatten a document path into a single safe file name.

    Example:
        >>> sanitize_file_name("notes/2024/plan.md")
        'notes_2024_plan.md'
    """
    return _UNSAFE_CHARS.sub("_", path)


# =============================================================================
# Abstract Backend
# =============================================================================


class StorageBackend(ABC):
    """Abstract storage backend consumed by the persistence layer.

    All methods may raise :class:`BackendError`. Paths are relative,
    slash-separated strings; each backend decides what they are relative to.
    """

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check whether a file or directory exists at ``path``."""
        pass

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        """Read the full contents of a file.

        Raises:
            BackendError: If the file is missing or cannot be read.
        """
        pass

    @abstractmethod
    def write_bytes(self, path: str, data: bytes) -> None:
        """Replace the contents of a file, creating parent directories.

        Implementations must not leave a truncated file behind if the write
        fails part way.
        """
        pass

    @abstractmethod
    def list(self, directory: str) -> DirListing:
        """List the direct children of a directory."""
        pass

    @abstractmethod
    def stat(self, path: str) -> FileStat | None:
        """Get size and mtime for a file, or None if it does not exist."""
        pass

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove a file."""
        pass

    @abstractmethod
    def mkdir(self, path: str) -> None:
        """Create a directory (and parents). Existing directories are fine."""
        pass

    # -------------------------------------------------------------------------
    # Convenience Methods
    # -------------------------------------------------------------------------

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        """Read a file as text."""
        data = self.read_bytes(path)
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as e:
            raise BackendError("read_text", path, e) from e

    def write_text(self, path: str, text: str, encoding: str = "utf-8") -> None:
        """Write text to a file."""
        self.write_bytes(path, text.encode(encoding))

    def close(self) -> None:
        """Release backend resources. Override when needed."""
        pass

    def __enter__(self) -> "StorageBackend":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
