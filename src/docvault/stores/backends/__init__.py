"""Storage backend implementations."""

from docvault.stores.backends.filesystem import FileSystemBackend, FileSystemConfig
from docvault.stores.backends.memory import MemoryBackend

__all__ = [
    "FileSystemBackend",
    "FileSystemConfig",
    "MemoryBackend",
]
