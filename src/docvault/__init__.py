"""Docvault - incremental version history for plain-text documents."""

from docvault.config import ConfigError, VaultConfig, load_config
from docvault.errors import (
    BackendError,
    DiffError,
    NotFoundError,
    ParseError,
    PatchApplyError,
    UnreconstructableError,
    VaultError,
)
from docvault.notify import (
    CollectingNotifier,
    ConsoleNotifier,
    LoggingNotifier,
    Notifier,
    NullNotifier,
)
from docvault.observability import configure_logging
from docvault.stores.backends import FileSystemBackend, MemoryBackend
from docvault.stores.versioning import (
    CreateOutcome,
    Reconstruction,
    VersionPage,
    VersionRecord,
    VersionSeries,
)
from docvault.vault import (
    Comparison,
    DocumentVault,
    OptimizeReport,
    SnapshotReport,
    StorageStats,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Vault
    "DocumentVault",
    "Comparison",
    "OptimizeReport",
    "SnapshotReport",
    "StorageStats",
    # Records
    "CreateOutcome",
    "Reconstruction",
    "VersionPage",
    "VersionRecord",
    "VersionSeries",
    # Backends
    "FileSystemBackend",
    "MemoryBackend",
    # Configuration
    "VaultConfig",
    "load_config",
    "configure_logging",
    # Notifications
    "Notifier",
    "NullNotifier",
    "LoggingNotifier",
    "ConsoleNotifier",
    "CollectingNotifier",
    # Errors
    "VaultError",
    "ConfigError",
    "BackendError",
    "ParseError",
    "NotFoundError",
    "UnreconstructableError",
    "DiffError",
    "PatchApplyError",
]
