"""Per-document incremental version storage.

Example:
    >>> from docvault.stores.backends import MemoryBackend
    >>> from docvault.stores.persistence import SeriesPersistence
    >>> from docvault.stores.versioning import VersionRecordStore, VersioningConfig
    >>>
    >>> store = VersionRecordStore(
    ...     SeriesPersistence(MemoryBackend()),
    ...     VersioningConfig(rebuild_interval=5),
    ... )
    >>> outcome = store.create("notes/plan.md", "# Plan\\n", "[Manual Save]")
    >>> store.get("notes/plan.md", outcome.record.id)
    '# Plan\\n'
"""

from docvault.stores.versioning.base import (
    CreateOutcome,
    CreateStatus,
    FullPayload,
    IdStrategy,
    IncrementalPayload,
    Payload,
    Reconstruction,
    ReconstructionOutcome,
    VersioningConfig,
    VersionPage,
    VersionRecord,
    VersionSeries,
)
from docvault.stores.versioning.cache import SeriesCache
from docvault.stores.versioning.resolver import ReconstructionResolver
from docvault.stores.versioning.store import VersionRecordStore, now_ms
from docvault.stores.versioning.strategies import (
    SequentialIdStrategy,
    TimestampIdStrategy,
    get_id_strategy,
)

__all__ = [
    # Core types
    "FullPayload",
    "IncrementalPayload",
    "Payload",
    "VersionRecord",
    "VersionSeries",
    "VersionPage",
    "VersioningConfig",
    # Outcomes
    "CreateOutcome",
    "CreateStatus",
    "Reconstruction",
    "ReconstructionOutcome",
    # Components
    "SeriesCache",
    "ReconstructionResolver",
    "VersionRecordStore",
    "now_ms",
    # Id strategies
    "IdStrategy",
    "SequentialIdStrategy",
    "TimestampIdStrategy",
    "get_id_strategy",
]
