"""High-level document vault.

:class:`DocumentVault` is the entry point for applications and the CLI. It
wires the configuration into the storage components, applies the default
version messages, skips excluded documents, and turns failures into a short
notification plus a logged traceback before re-raising them.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from docvault.config import VaultConfig
from docvault.diffing import (
    DiffSpan,
    DiffSummary,
    Granularity,
    compare_text,
    count_changes,
    summarize,
)
from docvault.errors import VaultError
from docvault.formatting import format_file_size
from docvault.notify import ConsoleNotifier, Notifier, NullNotifier
from docvault.stores.backends import FileSystemBackend
from docvault.stores.base import StorageBackend, normalize_path
from docvault.stores.persistence import SeriesPersistence
from docvault.stores.retention import RetentionPolicy, RetentionResult
from docvault.stores.versioning import (
    CreateOutcome,
    IdStrategy,
    Reconstruction,
    SeriesCache,
    VersionPage,
    VersionRecord,
    VersionRecordStore,
)
from docvault.stores.versioning.store import Clock

logger = logging.getLogger(__name__)


MANUAL_SAVE_MESSAGE = "[Manual Save]"
AUTO_SAVE_MESSAGE = "[Auto Save]"
BEFORE_RESTORE_MESSAGE = "[Before Restore]"
FULL_SNAPSHOT_MESSAGE = "[Full Snapshot]"


# =============================================================================
# Auto-save gate
# =============================================================================


class AutoSaveGate:
    """Decides whether an edit is large enough to auto-save.

    The gate remembers the last text auto-saved per document. The first
    auto-save of a document always passes; after that an edit must change at
    least ``min_changes`` character positions.
    """

    def __init__(self, min_changes: int = 10) -> None:
        self.min_changes = min_changes
        self._last_saved: dict[str, str] = {}

    def should_save(self, document_path: str, text: str) -> bool:
        last = self._last_saved.get(document_path)
        if last is None:
            return True
        if last == text:
            return False
        return count_changes(last, text) >= self.min_changes

    def mark_saved(self, document_path: str, text: str) -> None:
        self._last_saved[document_path] = text

    def forget(self, document_path: str) -> None:
        self._last_saved.pop(document_path, None)

    def clear(self) -> None:
        self._last_saved.clear()


# =============================================================================
# Reports
# =============================================================================


@dataclass
class SnapshotReport:
    """Result of :meth:`DocumentVault.snapshot_all`."""

    created: int = 0
    skipped: int = 0
    excluded: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.skipped + self.excluded + len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "skipped": self.skipped,
            "excluded": self.excluded,
            "failed": list(self.failed),
        }


@dataclass
class OptimizeReport:
    """Result of :meth:`DocumentVault.optimize_all`."""

    files: int = 0
    bytes_saved: int = 0
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": self.files,
            "bytes_saved": self.bytes_saved,
            "failed": list(self.failed),
        }


@dataclass
class StorageStats:
    """Storage usage across every series file.

    Attributes:
        total_size: Bytes on disk.
        version_count: Records across all series.
        file_count: Readable series files.
        payload_size: Sum of stored payload sizes, before file encoding.
        starred_count: Starred records.
        tagged_count: Records with at least one tag.
    """

    total_size: int = 0
    version_count: int = 0
    file_count: int = 0
    payload_size: int = 0
    starred_count: int = 0
    tagged_count: int = 0

    @property
    def space_savings(self) -> float:
        """Percent of payload size saved by the file encoding."""
        if self.payload_size <= 0:
            return 0.0
        return (1 - self.total_size / self.payload_size) * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_size": self.total_size,
            "version_count": self.version_count,
            "file_count": self.file_count,
            "payload_size": self.payload_size,
            "space_savings": round(self.space_savings, 2),
            "starred_count": self.starred_count,
            "tagged_count": self.tagged_count,
        }


@dataclass
class Comparison:
    """Two texts and the spans that turn one into the other."""

    left_label: str
    right_label: str
    spans: list[DiffSpan]
    summary: DiffSummary


# =============================================================================
# Vault
# =============================================================================


class DocumentVault:
    """Version history for a collection of documents.

    Example:
        >>> with DocumentVault.open("/path/to/notes") as vault:
        ...     outcome = vault.save("plan.md", "# Plan\\n")
        ...     vault.get("plan.md", outcome.record.id)
        '# Plan\\n'
    """

    def __init__(
        self,
        backend: StorageBackend,
        config: VaultConfig | None = None,
        notifier: Notifier | None = None,
        *,
        cache: SeriesCache | None = None,
        id_strategy: IdStrategy | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the vault.

        Args:
            backend: Storage backend holding the version folder.
            config: Settings; validated here.
            notifier: Sink for user-visible messages.
            cache: Working-set cache, created when omitted.
            id_strategy: Version id generator.
            clock: Source of the current time in epoch milliseconds.

        Raises:
            ConfigValidationError: If the configuration is invalid.
        """
        self.config = config or VaultConfig()
        self.config.validate()
        self.backend = backend
        if not self.config.show_notifications:
            notifier = NullNotifier()
        self.notifier: Notifier = notifier or NullNotifier()

        self.persistence = SeriesPersistence(backend, self.config.to_persistence_config())
        self.store = VersionRecordStore(
            self.persistence,
            self.config.to_versioning_config(),
            retention=RetentionPolicy.from_config(self.config.to_retention_config()),
            cache=cache,
            id_strategy=id_strategy,
            clock=clock,
        )
        self.auto_save_gate = AutoSaveGate(self.config.auto_save_min_changes)

    @classmethod
    def open(
        cls,
        root: str | Path,
        config: VaultConfig | None = None,
        notifier: Notifier | None = None,
    ) -> "DocumentVault":
        """Open a vault stored on the local filesystem under ``root``."""
        return cls(FileSystemBackend(root), config, notifier or ConsoleNotifier())

    def _notify(self, message: str, duration: float | None = None) -> None:
        try:
            self.notifier.notify(message, duration)
        except Exception:
            logger.debug("Notifier failed", exc_info=True)

    @contextmanager
    def _reporting(self, action: str, document_path: str | None = None) -> Iterator[None]:
        """Log, notify and re-raise any vault error raised in the block."""
        try:
            yield
        except VaultError:
            target = f" for {document_path}" if document_path else ""
            logger.exception("%s failed%s", action, target)
            self._notify(f"{action} failed, see the log for details")
            raise

    # -------------------------------------------------------------------------
    # Exclusion
    # -------------------------------------------------------------------------

    def is_excluded(self, document_path: str) -> bool:
        """Whether the document lies in an excluded folder or the version folder."""
        path = normalize_path(document_path)
        folders = [self.config.version_folder, *self.config.excluded_folders]
        for folder in folders:
            prefix = normalize_path(folder)
            if prefix and (path == prefix or path.startswith(prefix + "/")):
                return True
        return False

    # -------------------------------------------------------------------------
    # Saving
    # -------------------------------------------------------------------------

    def save(
        self,
        document_path: str,
        text: str,
        message: str | None = None,
        tags: Iterable[str] = (),
    ) -> CreateOutcome:
        """Record a version of a document.

        An empty message becomes ``[Manual Save]``.
        """
        with self._reporting("Saving version", document_path):
            outcome = self.store.create(
                document_path, text, (message or "").strip() or MANUAL_SAVE_MESSAGE, tags
            )
        if outcome.created:
            self._notify(f"Version saved: {document_path}", 2.0)
        else:
            self._notify("No changes since the last version", 2.0)
        return outcome

    def auto_save(self, document_path: str, text: str) -> CreateOutcome | None:
        """Record an ``[Auto Save]`` version if the edit is large enough.

        Returns:
            The create outcome, or None when the document is excluded or the
            edit is below the change threshold.
        """
        if self.is_excluded(document_path):
            return None
        if not self.auto_save_gate.should_save(document_path, text):
            return None
        try:
            outcome = self.store.create(document_path, text, AUTO_SAVE_MESSAGE)
        except VaultError:
            logger.exception("Auto save failed for %s", document_path)
            raise
        self.auto_save_gate.mark_saved(document_path, text)
        return outcome

    def snapshot_all(self, documents: Mapping[str, str]) -> SnapshotReport:
        """Record a ``[Full Snapshot]`` version of every given document.

        Failures are collected per document instead of aborting the run.
        """
        report = SnapshotReport()
        for document_path, text in documents.items():
            if self.is_excluded(document_path):
                report.excluded += 1
                continue
            try:
                outcome = self.store.create(document_path, text, FULL_SNAPSHOT_MESSAGE)
            except VaultError:
                logger.exception("Snapshot failed for %s", document_path)
                report.failed.append(document_path)
                continue
            if outcome.created:
                report.created += 1
            else:
                report.skipped += 1

        message = f"Snapshot complete: {report.created} created"
        if report.skipped:
            message += f", {report.skipped} unchanged"
        if report.failed:
            message += f", {len(report.failed)} failed"
        self._notify(message, 3.0)
        return report

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def get(self, document_path: str, version_id: str) -> str:
        return self.store.get(document_path, version_id)

    def reconstruct(self, document_path: str, version_id: str) -> Reconstruction:
        return self.store.reconstruct(document_path, version_id)

    def get_record(self, document_path: str, version_id: str) -> VersionRecord:
        return self.store.get_record(document_path, version_id)

    def history(self, document_path: str, page: int = 0) -> VersionPage:
        return self.store.list_versions(document_path, page)

    def latest(self, document_path: str) -> VersionRecord | None:
        return self.store.latest(document_path)

    def documents(self) -> list[str]:
        """Document paths that have a stored history."""
        paths = []
        for file_path in self.persistence.list_series_files():
            document_path = self._document_path_of(file_path)
            if document_path:
                paths.append(document_path)
        return sorted(paths)

    def restore(self, document_path: str, version_id: str, current_text: str) -> str:
        """Get the text of an old version, saving the current text first.

        The current text is recorded as ``[Before Restore]`` so the restore
        can be undone. Writing the restored text back to the document is the
        caller's job.

        Raises:
            NotFoundError: If the version does not exist. Nothing is saved.
        """
        with self._reporting("Restore", document_path):
            with self.store.locks.acquire(document_path):
                target = self.store.reconstruct(document_path, version_id)
                self.store.create(document_path, current_text, BEFORE_RESTORE_MESSAGE)
        if target.is_exact:
            self._notify(f"Restored version {version_id}", 2.0)
        else:
            self._notify(
                f"Version {version_id} could not be rebuilt exactly; restored its base text",
                5.0,
            )
        return target.text

    def compare(
        self,
        document_path: str,
        version_a: str,
        version_b: str | None = None,
        current_text: str | None = None,
        granularity: Granularity | str = Granularity.LINES,
    ) -> Comparison:
        """Diff a version against another version or the current text.

        Raises:
            ValueError: If neither ``version_b`` nor ``current_text`` is given.
        """
        left = self.store.get(document_path, version_a)
        if version_b is not None:
            right = self.store.get(document_path, version_b)
            right_label = version_b
        elif current_text is not None:
            right = current_text
            right_label = "current"
        else:
            raise ValueError("compare needs version_b or current_text")
        spans = compare_text(left, right, granularity)
        return Comparison(version_a, right_label, spans, summarize(spans))

    # -------------------------------------------------------------------------
    # Editing records
    # -------------------------------------------------------------------------

    def delete(self, document_path: str, version_id: str) -> VersionRecord:
        with self._reporting("Deleting version", document_path):
            return self.store.delete(document_path, version_id)

    def delete_many(self, document_path: str, version_ids: Iterable[str]) -> int:
        with self._reporting("Deleting versions", document_path):
            return self.store.delete_many(document_path, version_ids)

    def update_tags(
        self, document_path: str, version_id: str, tags: Iterable[str]
    ) -> VersionRecord:
        with self._reporting("Updating tags", document_path):
            return self.store.update_tags(document_path, version_id, tags)

    def update_note(
        self, document_path: str, version_id: str, note: str | None
    ) -> VersionRecord:
        with self._reporting("Updating note", document_path):
            return self.store.update_note(document_path, version_id, note)

    def toggle_star(self, document_path: str, version_id: str) -> VersionRecord:
        with self._reporting("Starring version", document_path):
            return self.store.toggle_star(document_path, version_id)

    def star_latest(self, document_path: str) -> VersionRecord | None:
        """Star the newest version. Already starred versions stay starred."""
        with self._reporting("Starring version", document_path):
            with self.store.locks.acquire(document_path):
                latest = self.store.latest(document_path)
                if latest is None or latest.starred:
                    return latest
                return self.store.toggle_star(document_path, latest.id)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def _document_path_of(self, file_path: str) -> str | None:
        """Document path stored in a series file, or None if unreadable."""
        try:
            return self.persistence.load_file(file_path).document_path or None
        except VaultError:
            logger.warning("Skipping unreadable series file %s", file_path)
            return None

    def cleanup(self, document_path: str) -> RetentionResult:
        with self._reporting("Cleanup", document_path):
            return self.store.cleanup(document_path)

    def cleanup_all(self) -> int:
        """Apply retention to every stored document.

        Returns:
            Number of versions removed.
        """
        removed = 0
        with self._reporting("Cleanup"):
            for document_path in self.documents():
                removed += self.store.cleanup(document_path).removed_count
        if removed:
            self._notify(f"Removed {removed} old versions", 3.0)
        return removed

    def optimize_all(self) -> OptimizeReport:
        """Rewrite every series file in the current encoding.

        Each file is rewritten under its document's path lock, so versions
        saved while the rewrite runs are not lost.
        """
        report = OptimizeReport()
        for file_path in self.persistence.list_series_files():
            document_path = self._document_path_of(file_path)
            if document_path is None:
                report.failed.append(file_path)
                continue
            try:
                with self.store.locks.acquire(document_path):
                    change = self.persistence.rewrite(file_path)
                    self.store.invalidate(document_path)
            except VaultError:
                logger.exception("Optimizing %s failed", file_path)
                report.failed.append(file_path)
                continue
            report.files += 1
            report.bytes_saved += change.saved
        self._notify(
            f"Optimized {report.files} files, saved {format_file_size(max(report.bytes_saved, 0))}",
            3.0,
        )
        return report

    def storage_stats(self) -> StorageStats:
        stats = StorageStats()
        for file_path in self.persistence.list_series_files():
            try:
                series = self.persistence.load_file(file_path)
            except VaultError:
                logger.warning("Skipping unreadable series file %s", file_path)
                continue
            file_stat = self.backend.stat(file_path)
            stats.total_size += file_stat.size if file_stat else 0
            stats.file_count += 1
            stats.version_count += len(series)
            for record in series:
                stats.payload_size += record.size
                stats.starred_count += record.starred
                stats.tagged_count += bool(record.tags)
        return stats

    def export_series(self, document_path: str) -> str:
        """Back up a document's whole series to a standalone JSON file."""
        with self._reporting("Export", document_path):
            series = self.store.open(document_path)
            path = self.persistence.export_series(series, self.store.clock())
        self._notify(f"Versions exported to {path}", 3.0)
        return path

    def export_version(self, document_path: str, version_id: str) -> str:
        """Write one version's text to ``<stem>_v<id>.md`` next to the document."""
        with self._reporting("Export", document_path):
            text = self.store.get(document_path, version_id)
            path = self.persistence.export_snapshot(document_path, version_id, text)
        self._notify(f"Version exported as {path}", 3.0)
        return path

    def clear_all(self) -> int:
        """Delete every series file and drop the cache.

        Returns:
            Number of files deleted.
        """
        count = 0
        with self._reporting("Clearing versions"):
            for file_path in self.persistence.list_series_files():
                document_path = self._document_path_of(file_path)
                if document_path is None:
                    self.backend.remove(file_path)
                else:
                    with self.store.locks.acquire(document_path):
                        self.backend.remove(file_path)
                        self.store.invalidate(document_path)
                    self.auto_save_gate.forget(document_path)
                count += 1
            self.store.cache.clear()
        self._notify(f"Cleared all versions ({count} files)", 3.0)
        return count

    def close(self) -> None:
        self.auto_save_gate.clear()
        self.store.close()
        self.backend.close()

    def __enter__(self) -> "DocumentVault":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
