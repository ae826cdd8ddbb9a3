"""Base types for per-document version series.

This module defines the record and series types that the record store,
the resolver and the persistence layer share.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Union

from docvault.fingerprint import FingerprintAlgorithm


# =============================================================================
# Enums
# =============================================================================


class CreateStatus(Enum):
    """Result of a create request."""

    CREATED = "created"
    SKIPPED = "skipped"  # Content matched the latest record


class ReconstructionOutcome(Enum):
    """How faithfully a version's text was reconstructed."""

    EXACT = "exact"
    DEGRADED_TO_BASE = "degraded_to_base"  # Patch did not apply; base returned


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class FullPayload:
    """A version stored as its complete text."""

    content: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class IncrementalPayload:
    """A version stored as a patch against the series base snapshot.

    Attributes:
        diff: Serialized patch.
        base_ref_id: Id of the full record the base snapshot came from. It is
            informational; reconstruction uses the series base snapshot and
            only falls back to this record when no base is stored.
    """

    diff: str
    base_ref_id: str | None = None

    @property
    def size(self) -> int:
        return len(self.diff)


Payload = Union[FullPayload, IncrementalPayload]


# =============================================================================
# Records
# =============================================================================


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _unique_tags(tags: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for tag in tags:
        tag = tag.strip()
        if tag:
            seen.setdefault(tag, None)
    return tuple(seen)


@dataclass(frozen=True)
class VersionRecord:
    """One stored version of a document.

    Records are immutable. Field updates produce a new record through
    :meth:`with_tags`, :meth:`with_note` and :meth:`with_starred`.

    Attributes:
        id: Unique version identifier.
        timestamp: Creation time in epoch milliseconds.
        message: Label for the version.
        payload: Full text or a patch against the base snapshot.
        size: Length of the stored payload.
        fingerprint: Fingerprint of the full text at creation time.
        tags: Short labels in insertion order, without duplicates.
        note: Free-text annotation.
        starred: Pinned records are never removed by retention.
    """

    id: str
    timestamp: int
    message: str
    payload: Payload
    size: int
    fingerprint: str
    tags: tuple[str, ...] = ()
    note: str | None = None
    starred: bool = False

    @property
    def is_full(self) -> bool:
        return isinstance(self.payload, FullPayload)

    @property
    def content(self) -> str | None:
        """Stored full text, or None for incremental records."""
        return self.payload.content if isinstance(self.payload, FullPayload) else None

    @property
    def diff(self) -> str | None:
        """Stored patch, or None for full records."""
        if isinstance(self.payload, IncrementalPayload):
            return self.payload.diff
        return None

    @property
    def base_ref_id(self) -> str | None:
        if isinstance(self.payload, IncrementalPayload):
            return self.payload.base_ref_id
        return None

    def with_tags(self, tags: Iterable[str]) -> "VersionRecord":
        return replace(self, tags=_unique_tags(tags))

    def with_note(self, note: str | None) -> "VersionRecord":
        return replace(self, note=note or None)

    def with_starred(self, starred: bool) -> "VersionRecord":
        return replace(self, starred=starred)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted dictionary layout.

        Optional fields are omitted when empty, so files stay small and
        readers written before those fields existed still accept them.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "message": self.message,
        }
        if isinstance(self.payload, FullPayload):
            data["content"] = self.payload.content
        else:
            data["diff"] = self.payload.diff
            if self.payload.base_ref_id is not None:
                data["baseRefId"] = self.payload.base_ref_id
        data["size"] = self.size
        data["fingerprint"] = self.fingerprint
        if self.tags:
            data["tags"] = list(self.tags)
        if self.note:
            data["note"] = self.note
        if self.starred:
            data["starred"] = True
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VersionRecord":
        """Create from a persisted dictionary.

        Field names used by earlier releases (``baseVersionId``, ``hash``)
        are accepted. When a record carries both ``content`` and ``diff`` the
        content wins.

        Raises:
            ValueError: If the record has no id, no payload, or bad types.
        """
        if not isinstance(data, Mapping):
            raise ValueError("record is not an object")
        record_id = data.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise ValueError("record has no id")

        content = data.get("content")
        diff = data.get("diff")
        payload: Payload
        if isinstance(content, str):
            payload = FullPayload(content)
        elif isinstance(diff, str):
            payload = IncrementalPayload(
                diff, _first(data, "baseRefId", "baseVersionId")
            )
        else:
            raise ValueError(f"record {record_id} has neither content nor diff")

        tags = data.get("tags") or []
        if not isinstance(tags, list):
            raise ValueError(f"record {record_id} has invalid tags")

        return cls(
            id=record_id,
            timestamp=int(data.get("timestamp", 0)),
            message=str(data.get("message") or ""),
            payload=payload,
            size=int(data.get("size", payload.size)),
            fingerprint=str(_first(data, "fingerprint", "hash", default="")),
            tags=_unique_tags(str(t) for t in tags),
            note=data.get("note") or None,
            starred=bool(data.get("starred", False)),
        )


# =============================================================================
# Series
# =============================================================================


class VersionSeries:
    """The version history of one document.

    Records are ordered newest first, so ``records[0]`` is the latest
    version. The id -> position index is owned by the series and recomputed
    after every structural change; it is never serialized.

    Example:
        >>> series = VersionSeries.empty("notes/plan.md")
        >>> len(series)
        0
    """

    def __init__(
        self,
        document_path: str,
        records: Iterable[VersionRecord] = (),
        base_snapshot: str | None = None,
        last_modified: int = 0,
    ) -> None:
        self.document_path = document_path
        self.base_snapshot = base_snapshot
        self.last_modified = last_modified
        self._records: list[VersionRecord] = list(records)
        self._index: dict[str, int] = {}
        self.rebuild_index()

    @classmethod
    def empty(cls, document_path: str) -> "VersionSeries":
        return cls(document_path)

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def records(self) -> tuple[VersionRecord, ...]:
        """Records, newest first."""
        return tuple(self._records)

    @property
    def index(self) -> Mapping[str, int]:
        """Read-only id -> position mapping."""
        return MappingProxyType(self._index)

    @property
    def latest(self) -> VersionRecord | None:
        return self._records[0] if self._records else None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VersionRecord]:
        return iter(self._records)

    def __contains__(self, version_id: object) -> bool:
        return version_id in self._index

    def position_of(self, version_id: str) -> int | None:
        return self._index.get(version_id)

    def find(self, version_id: str) -> VersionRecord | None:
        """Look up a record by id in O(1)."""
        position = self._index.get(version_id)
        return None if position is None else self._records[position]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def rebuild_index(self) -> None:
        self._index = {record.id: i for i, record in enumerate(self._records)}

    def prepend(self, record: VersionRecord) -> None:
        """Insert a record as the newest version."""
        self._records.insert(0, record)
        self.rebuild_index()

    def replace_record(self, record: VersionRecord) -> None:
        """Swap in an updated record with the same id.

        Raises:
            KeyError: If no record has that id.
        """
        position = self._index[record.id]
        self._records[position] = record

    def remove_ids(self, version_ids: Iterable[str]) -> list[VersionRecord]:
        """Remove records by id and return the ones removed."""
        doomed = set(version_ids)
        removed = [r for r in self._records if r.id in doomed]
        if removed:
            self._records = [r for r in self._records if r.id not in doomed]
            self.rebuild_index()
        return removed

    def set_records(self, records: Iterable[VersionRecord]) -> None:
        """Replace all records, keeping newest-first order by timestamp."""
        self._records = sorted(records, key=lambda r: r.timestamp, reverse=True)
        self.rebuild_index()

    def touch(self, now_ms: int) -> None:
        self.last_modified = now_ms

    def copy(self) -> "VersionSeries":
        """Shallow copy. Records are immutable, so this is a full snapshot."""
        return VersionSeries(
            self.document_path,
            self._records,
            base_snapshot=self.base_snapshot,
            last_modified=self.last_modified,
        )

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted layout. The index is never included."""
        data: dict[str, Any] = {
            "documentPath": self.document_path,
            "lastModified": self.last_modified,
        }
        if self.base_snapshot is not None:
            data["baseSnapshot"] = self.base_snapshot
        data["records"] = [r.to_dict() for r in self._records]
        return data

    def to_export_dict(self) -> dict[str, Any]:
        """Convert to a standalone backup layout that also carries the index."""
        data = self.to_dict()
        data["index"] = dict(self._index)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VersionSeries":
        """Create from a persisted dictionary.

        Accepts the field names of earlier releases (``filePath``,
        ``versions``, ``baseVersion``). Any stored index is ignored and
        rebuilt.

        Raises:
            ValueError: If the document is not a valid series.
        """
        if not isinstance(data, Mapping):
            raise ValueError("series is not an object")
        records = _first(data, "records", "versions", default=[])
        if not isinstance(records, list):
            raise ValueError("records is not a list")
        base = _first(data, "baseSnapshot", "baseVersion")
        if base is not None and not isinstance(base, str):
            raise ValueError("base snapshot is not text")
        return cls(
            document_path=str(_first(data, "documentPath", "filePath", default="")),
            records=[VersionRecord.from_dict(r) for r in records],
            base_snapshot=base,
            last_modified=int(data.get("lastModified", 0)),
        )

    def __repr__(self) -> str:
        return (
            f"VersionSeries({self.document_path!r}, records={len(self._records)}, "
            f"has_base={self.base_snapshot is not None})"
        )


# =============================================================================
# Results
# =============================================================================


@dataclass
class CreateOutcome:
    """Result of :meth:`VersionRecordStore.create`.

    Attributes:
        status: Whether a record was created or the request was skipped.
        record: The new record, or the unchanged latest record when skipped.
        removed: Records evicted by auto-retention during this create.
    """

    status: CreateStatus
    record: VersionRecord | None = None
    removed: int = 0

    @property
    def created(self) -> bool:
        return self.status == CreateStatus.CREATED

    @property
    def skipped(self) -> bool:
        return self.status == CreateStatus.SKIPPED


@dataclass(frozen=True)
class Reconstruction:
    """Text of a version plus how it was obtained."""

    text: str
    outcome: ReconstructionOutcome = ReconstructionOutcome.EXACT

    @property
    def is_exact(self) -> bool:
        return self.outcome == ReconstructionOutcome.EXACT


@dataclass
class VersionPage:
    """One page of a series listing.

    Attributes:
        records: Records on this page, newest first.
        page: Zero-based page number.
        total_pages: Number of pages (at least 1).
        total: Total number of records in the series.
    """

    records: list[VersionRecord]
    page: int
    total_pages: int
    total: int

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 0


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class VersioningConfig:
    """Configuration for the record store.

    Attributes:
        enable_incremental: Store patches against a base snapshot.
        rebuild_interval: Store a full record and refresh the base whenever
            the record count is a multiple of this.
        enable_deduplication: Skip a create whose fingerprint matches the
            latest record.
        auto_retention: Run the retention policy after every create.
        fingerprint_algorithm: Algorithm for record fingerprints.
        versions_per_page: Page size for listings (0 disables paging).
    """

    enable_incremental: bool = True
    rebuild_interval: int = 10
    enable_deduplication: bool = True
    auto_retention: bool = True
    fingerprint_algorithm: FingerprintAlgorithm = FingerprintAlgorithm.XXH64
    versions_per_page: int = 20

    def __post_init__(self) -> None:
        if self.rebuild_interval < 1:
            raise ValueError("rebuild_interval must be >= 1")
        if self.versions_per_page < 0:
            raise ValueError("versions_per_page must be >= 0")
        self.fingerprint_algorithm = FingerprintAlgorithm(self.fingerprint_algorithm)


# =============================================================================
# Id strategy
# =============================================================================


class IdStrategy(ABC):
    """Generates version identifiers."""

    @abstractmethod
    def next_id(self, timestamp_ms: int) -> str:
        """Produce a new id for a record created at ``timestamp_ms``."""
        pass
