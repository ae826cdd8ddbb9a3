"""Working-set cache of loaded series.

The cache is an explicit object owned by whoever builds the store. Series put
into it are treated as published snapshots: the store copies before it
mutates, and only replaces the cached entry after a successful write.
"""

from __future__ import annotations

import logging
import threading

from docvault.stores.versioning.base import VersionSeries

logger = logging.getLogger(__name__)


class SeriesCache:
    """Thread-safe mapping of document path to its loaded series."""

    def __init__(self) -> None:
        self._entries: dict[str, VersionSeries] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, document_path: str) -> VersionSeries | None:
        with self._lock:
            series = self._entries.get(document_path)
            if series is None:
                self._misses += 1
            else:
                self._hits += 1
            return series

    def put(self, series: VersionSeries) -> None:
        with self._lock:
            self._entries[series.document_path] = series

    def invalidate(self, document_path: str) -> bool:
        """Drop one entry so the next access reloads it from the backend."""
        with self._lock:
            return self._entries.pop(document_path, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def close(self) -> None:
        """Drop every entry. Called on shutdown."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug("Series cache closed, dropped %d entries", count)

    def paths(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, document_path: object) -> bool:
        with self._lock:
            return document_path in self._entries
