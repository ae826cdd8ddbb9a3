"""Storage layer for docvault.

Backends move bytes, compression packs them, persistence maps series to
files, retention trims them and the versioning package ties it together.
"""

from docvault.stores.base import (
    DirListing,
    FileStat,
    StorageBackend,
    join_path,
    normalize_path,
    sanitize_file_name,
)
from docvault.stores.backends import FileSystemBackend, MemoryBackend
from docvault.stores.persistence import PersistenceConfig, SeriesPersistence

__all__ = [
    "DirListing",
    "FileStat",
    "StorageBackend",
    "join_path",
    "normalize_path",
    "sanitize_file_name",
    "FileSystemBackend",
    "MemoryBackend",
    "PersistenceConfig",
    "SeriesPersistence",
]
