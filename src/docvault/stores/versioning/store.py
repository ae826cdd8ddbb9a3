"""The per-document version record store.

This module provides :class:`VersionRecordStore`, which owns the create,
delete, update and cleanup operations on version series and hands reads to
the reconstruction resolver.

Every mutation follows the same sequence under the document's path lock:

1. Take the published series from the cache (loading it on a miss).
2. Copy it and apply the change to the copy.
3. Persist the copy.
4. Publish the copy to the cache.

A failed write therefore leaves both the file and the cached series as they
were, and readers never observe a half-applied change.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Iterable

from docvault.diffing.codec import LineDiffCodec
from docvault.errors import NotFoundError
from docvault.fingerprint import fingerprint
from docvault.stores.concurrency.locks import PathLockManager
from docvault.stores.retention.policies import RetentionPolicy
from docvault.stores.versioning.base import (
    CreateOutcome,
    CreateStatus,
    FullPayload,
    IdStrategy,
    IncrementalPayload,
    Payload,
    Reconstruction,
    VersioningConfig,
    VersionPage,
    VersionRecord,
    VersionSeries,
)
from docvault.stores.versioning.cache import SeriesCache
from docvault.stores.versioning.resolver import ReconstructionResolver
from docvault.stores.versioning.strategies import TimestampIdStrategy

if TYPE_CHECKING:
    from docvault.stores.persistence import SeriesPersistence
    from docvault.stores.retention.base import RetentionResult

logger = logging.getLogger(__name__)


Clock = Callable[[], int]


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class VersionRecordStore:
    """Creates, reads and maintains the version series of documents.

    Example:
        >>> store = VersionRecordStore(SeriesPersistence(MemoryBackend()))
        >>> outcome = store.create("notes/plan.md", "# Plan\\n", "[Manual Save]")
        >>> store.get("notes/plan.md", outcome.record.id)
        '# Plan\\n'
    """

    def __init__(
        self,
        persistence: SeriesPersistence,
        config: VersioningConfig | None = None,
        retention: RetentionPolicy | None = None,
        cache: SeriesCache | None = None,
        codec: LineDiffCodec | None = None,
        id_strategy: IdStrategy | None = None,
        clock: Clock | None = None,
        locks: PathLockManager | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            persistence: Persistence layer for series files.
            config: Versioning configuration.
            retention: Policy run after each create when auto retention is on,
                and by :meth:`cleanup`.
            cache: Working-set cache. The caller owns its lifetime.
            codec: Patch codec for incremental records.
            id_strategy: Version id generator.
            clock: Source of the current time in epoch milliseconds.
            locks: Per-path lock manager.
        """
        self.persistence = persistence
        self.config = config or VersioningConfig()
        self.retention = retention or RetentionPolicy()
        self.cache = cache if cache is not None else SeriesCache()
        self.codec = codec or LineDiffCodec()
        self.resolver = ReconstructionResolver(self.codec)
        self.id_strategy = id_strategy or TimestampIdStrategy()
        self.clock = clock or now_ms
        self.locks = locks or PathLockManager()

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def open(self, document_path: str) -> VersionSeries:
        """Get the current series of a document.

        The returned series is shared with the cache and must not be mutated.
        A document with no stored history yields an empty series.

        Raises:
            BackendError: If the backend read fails.
            ParseError: If the stored series is corrupt.
        """
        series = self.cache.get(document_path)
        if series is None:
            series = self.persistence.load(document_path)
            self.cache.put(series)
        return series

    def _commit(self, series: VersionSeries) -> None:
        self.persistence.save(series)
        self.cache.put(series)

    def invalidate(self, document_path: str) -> None:
        """Drop a cached series so the next access reloads it."""
        self.cache.invalidate(document_path)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(
        self,
        document_path: str,
        text: str,
        message: str,
        tags: Iterable[str] = (),
    ) -> CreateOutcome:
        """Record a new version of a document.

        Args:
            document_path: Document the version belongs to.
            text: Full document text.
            message: Version label. Must not be empty.
            tags: Initial tags.

        Returns:
            ``CREATED`` with the new record, or ``SKIPPED`` with the latest
            record when deduplication found identical content.

        Raises:
            ValueError: If ``message`` is empty.
            BackendError: If persisting fails. Nothing is changed then.
        """
        if not message or not message.strip():
            raise ValueError("message must not be empty")

        with self.locks.acquire(document_path):
            current = self.open(document_path)
            fp = fingerprint(text, self.config.fingerprint_algorithm)

            latest = current.latest
            if (
                self.config.enable_deduplication
                and latest is not None
                and latest.fingerprint == fp
            ):
                logger.debug("Skipping unchanged version of %s", document_path)
                return CreateOutcome(CreateStatus.SKIPPED, record=latest)

            series = current.copy()
            timestamp = self.clock()
            payload = self._encode_payload(series, text)
            record = VersionRecord(
                id=self.id_strategy.next_id(timestamp),
                timestamp=timestamp,
                message=message,
                payload=payload,
                size=payload.size,
                fingerprint=fp,
            ).with_tags(tags)

            series.prepend(record)
            series.touch(timestamp)

            removed = 0
            if self.config.auto_retention and self.retention.enabled:
                result = self.retention.apply(series.records, timestamp)
                if result.removed:
                    series.set_records(result.kept)
                    removed = result.removed_count

            self._commit(series)

        logger.debug(
            "Created version %s of %s (%s, %d chars)",
            record.id,
            document_path,
            "full" if record.is_full else "diff",
            record.size,
        )
        return CreateOutcome(CreateStatus.CREATED, record=record, removed=removed)

    def _encode_payload(self, series: VersionSeries, text: str) -> Payload:
        """Pick full or incremental storage, refreshing the base when due.

        Mutates ``series.base_snapshot`` on a rebuild.
        """
        if not self.config.enable_incremental:
            return FullPayload(text)

        if (
            series.base_snapshot is None
            or len(series) % self.config.rebuild_interval == 0
        ):
            series.base_snapshot = text
            return FullPayload(text)

        patch = self.codec.encode(series.base_snapshot, text)
        return IncrementalPayload(patch.to_text(), self._base_ref_id(series))

    @staticmethod
    def _base_ref_id(series: VersionSeries) -> str | None:
        """Id of the newest full record holding the current base text."""
        for record in series:
            if record.content == series.base_snapshot:
                return record.id
        return None

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def get_record(self, document_path: str, version_id: str) -> VersionRecord:
        """Look up a record by id.

        Raises:
            NotFoundError: If the id is unknown.
        """
        record = self.open(document_path).find(version_id)
        if record is None:
            raise NotFoundError(document_path, version_id)
        return record

    def reconstruct(self, document_path: str, version_id: str) -> Reconstruction:
        """Reconstruct a version and report whether the result is exact.

        Raises:
            NotFoundError: If the id is unknown.
            UnreconstructableError: If the record cannot be materialized.
        """
        series = self.open(document_path)
        record = series.find(version_id)
        if record is None:
            raise NotFoundError(document_path, version_id)
        return self.resolver.resolve(series, record)

    def get(self, document_path: str, version_id: str) -> str:
        """Get the full text of a version.

        When a stored patch no longer applies, the base text is returned and
        a warning is logged; use :meth:`reconstruct` to tell the cases apart.
        """
        return self.reconstruct(document_path, version_id).text

    def latest(self, document_path: str) -> VersionRecord | None:
        return self.open(document_path).latest

    def list_versions(self, document_path: str, page: int = 0) -> VersionPage:
        """List one page of a document's versions, newest first.

        A ``versions_per_page`` of 0 puts every record on page 0. Pages past
        the end are clamped to the last page.
        """
        records = list(self.open(document_path).records)
        per_page = self.config.versions_per_page
        if per_page <= 0:
            return VersionPage(records=records, page=0, total_pages=1, total=len(records))

        total_pages = max(1, -(-len(records) // per_page))
        page = min(max(page, 0), total_pages - 1)
        start = page * per_page
        return VersionPage(
            records=records[start:start + per_page],
            page=page,
            total_pages=total_pages,
            total=len(records),
        )

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete(self, document_path: str, version_id: str) -> VersionRecord:
        """Delete one version, starred or not.

        Raises:
            NotFoundError: If the id is unknown.
        """
        with self.locks.acquire(document_path):
            current = self.open(document_path)
            if version_id not in current:
                raise NotFoundError(document_path, version_id)
            series = current.copy()
            (removed,) = series.remove_ids([version_id])
            series.touch(self.clock())
            self._commit(series)
        logger.debug("Deleted version %s of %s", version_id, document_path)
        return removed

    def delete_many(self, document_path: str, version_ids: Iterable[str]) -> int:
        """Delete several versions. Unknown ids are ignored.

        Returns:
            Number of versions deleted.
        """
        with self.locks.acquire(document_path):
            current = self.open(document_path)
            series = current.copy()
            removed = series.remove_ids(version_ids)
            if not removed:
                return 0
            series.touch(self.clock())
            self._commit(series)
        logger.debug("Deleted %d versions of %s", len(removed), document_path)
        return len(removed)

    # -------------------------------------------------------------------------
    # Field updates
    # -------------------------------------------------------------------------

    def _update(
        self,
        document_path: str,
        version_id: str,
        change: Callable[[VersionRecord], VersionRecord],
    ) -> VersionRecord:
        with self.locks.acquire(document_path):
            current = self.open(document_path)
            record = current.find(version_id)
            if record is None:
                raise NotFoundError(document_path, version_id)
            updated = change(record)
            series = current.copy()
            series.replace_record(updated)
            series.touch(self.clock())
            self._commit(series)
        return updated

    def update_tags(
        self, document_path: str, version_id: str, tags: Iterable[str]
    ) -> VersionRecord:
        """Replace the tags of a version."""
        tags = list(tags)
        return self._update(document_path, version_id, lambda r: r.with_tags(tags))

    def update_note(
        self, document_path: str, version_id: str, note: str | None
    ) -> VersionRecord:
        """Replace the note of a version. An empty note clears it."""
        return self._update(document_path, version_id, lambda r: r.with_note(note))

    def toggle_star(self, document_path: str, version_id: str) -> VersionRecord:
        """Flip the starred flag of a version."""
        return self._update(
            document_path, version_id, lambda r: r.with_starred(not r.starred)
        )

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def cleanup(self, document_path: str) -> RetentionResult:
        """Run the retention policy over a document's series.

        The series is only rewritten when something was removed.
        """
        with self.locks.acquire(document_path):
            current = self.open(document_path)
            result = self.retention.apply(current.records, self.clock())
            if result.removed:
                series = current.copy()
                series.set_records(result.kept)
                series.touch(self.clock())
                self._commit(series)
                logger.info(
                    "Retention removed %d versions of %s",
                    result.removed_count,
                    document_path,
                )
        return result

    def remove_series(self, document_path: str) -> bool:
        """Delete a document's whole history."""
        with self.locks.acquire(document_path):
            removed = self.persistence.remove(document_path)
            self.cache.invalidate(document_path)
        return removed

    def close(self) -> None:
        """Drop the working-set cache."""
        self.cache.close()
