"""Concurrency control for version series.

Example:
    >>> from docvault.stores.concurrency import PathLockManager
    >>>
    >>> locks = PathLockManager()
    >>> with locks.acquire("notes/plan.md"):
    ...     # Safe to read, modify and persist this series
    ...     pass
"""

from docvault.stores.concurrency.locks import (
    LockStatistics,
    LockTimeout,
    PathLockManager,
)

__all__ = [
    "LockStatistics",
    "LockTimeout",
    "PathLockManager",
]
