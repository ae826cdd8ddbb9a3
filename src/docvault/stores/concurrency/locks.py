"""Per-document-path locking.

Mutations of one series are a read-modify-write-persist sequence, so they are
serialized per document path. Different paths use different locks and never
block each other. Locks are in-process only; two processes writing the same
series still race, and the last write wins.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from docvault.errors import VaultError


class LockTimeout(VaultError):
    """Raised when a path lock cannot be acquired in time."""

    def __init__(self, path: str, timeout: float) -> None:
        self.path = path
        self.timeout = timeout
        super().__init__(f"Timeout acquiring lock on {path} after {timeout}s")


@dataclass
class LockStatistics:
    """Statistics about lock usage."""

    total_acquisitions: int = 0
    total_wait_time: float = 0.0
    max_wait_time: float = 0.0
    contentions: int = 0
    timeouts: int = 0

    def record_acquisition(self, wait_time: float, contended: bool) -> None:
        self.total_acquisitions += 1
        self.total_wait_time += wait_time
        self.max_wait_time = max(self.max_wait_time, wait_time)
        if contended:
            self.contentions += 1

    @property
    def avg_wait_time(self) -> float:
        if self.total_acquisitions == 0:
            return 0.0
        return self.total_wait_time / self.total_acquisitions


class PathLockManager:
    """Hands out one re-entrant lock per document path.

    Re-entrancy lets a compound operation (for example restore, which creates
    a safety version before returning) call other locked operations on the
    same path from the same thread.

    A path's lock is registered while some thread holds or waits for it and
    is dropped when the last of them leaves, so the registry only ever holds
    paths in use.

    Example:
        >>> locks = PathLockManager()
        >>> with locks.acquire("notes/plan.md"):
        ...     pass
    """

    def __init__(self, default_timeout: float | None = 30.0) -> None:
        self._default_timeout = default_timeout
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._users: dict[str, int] = {}
        self._stats = LockStatistics()

    @property
    def statistics(self) -> LockStatistics:
        return self._stats

    def _checkout(self, path: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.RLock()
                self._locks[path] = lock
            self._users[path] = self._users.get(path, 0) + 1
            return lock

    def _checkin(self, path: str) -> None:
        with self._registry_lock:
            remaining = self._users[path] - 1
            if remaining:
                self._users[path] = remaining
            else:
                del self._users[path]
                del self._locks[path]

    @contextmanager
    def acquire(self, path: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``path`` for the duration of the block.

        Args:
            path: Document path.
            timeout: Seconds to wait; defaults to the manager's timeout.
                None waits forever.

        Raises:
            LockTimeout: If the lock was not acquired in time.
        """
        lock = self._checkout(path)
        timeout = self._default_timeout if timeout is None else timeout

        start = time.monotonic()
        contended = not lock.acquire(blocking=False)
        if contended:
            acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
            if not acquired:
                with self._registry_lock:
                    self._stats.timeouts += 1
                self._checkin(path)
                raise LockTimeout(path, timeout or 0.0)
        with self._registry_lock:
            self._stats.record_acquisition(time.monotonic() - start, contended)

        try:
            yield
        finally:
            lock.release()
            self._checkin(path)

    def known_paths(self) -> list[str]:
        """Paths whose lock is currently held or awaited."""
        with self._registry_lock:
            return list(self._locks)
