"""Tests for the DocumentVault facade."""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable

import pytest

from docvault.config import ConfigValidationError, VaultConfig
from docvault.errors import BackendError, NotFoundError
from docvault.notify import CollectingNotifier
from docvault.stores.backends import MemoryBackend
from docvault.stores.versioning import SequentialIdStrategy
from docvault.vault import (
    AUTO_SAVE_MESSAGE,
    BEFORE_RESTORE_MESSAGE,
    FULL_SNAPSHOT_MESSAGE,
    MANUAL_SAVE_MESSAGE,
    AutoSaveGate,
    DocumentVault,
    StorageStats,
)


class FlakyBackend(MemoryBackend):
    """Memory backend whose writes can be switched off."""

    fail_writes = False

    def write_bytes(self, path: str, data: bytes) -> None:
        if self.fail_writes:
            raise BackendError("write", path, OSError("disk full"))
        super().write_bytes(path, data)


class ReadHookBackend(MemoryBackend):
    """Memory backend that runs a callback once, right after a series read."""

    on_read: Callable[[], None] | None = None

    def read_bytes(self, path: str) -> bytes:
        data = super().read_bytes(path)
        hook, self.on_read = self.on_read, None
        if hook is not None:
            hook()
        return data


class BrokenNotifier:
    def notify(self, message: str, duration: float | None = None) -> None:
        raise RuntimeError("display gone")


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def make_vault(backend, notifier, clock):
    """Factory for vaults on the shared memory backend."""

    def factory(backend_override=None, notifier_override=None, **settings) -> DocumentVault:
        return DocumentVault(
            backend_override if backend_override is not None else backend,
            VaultConfig(**settings),
            notifier_override if notifier_override is not None else notifier,
            id_strategy=SequentialIdStrategy(),
            clock=clock,
        )

    return factory


class TestAutoSaveGate:
    """Tests for AutoSaveGate."""

    def test_first_save_passes(self) -> None:
        """Test that a document never auto-saved always passes."""
        assert AutoSaveGate(100).should_save("a.md", "x")

    def test_threshold(self) -> None:
        """Test the changed-character threshold."""
        gate = AutoSaveGate(min_changes=5)
        gate.mark_saved("a.md", "hello world")

        assert not gate.should_save("a.md", "hello world")
        assert not gate.should_save("a.md", "hello word!")
        assert gate.should_save("a.md", "hello world, again")

    def test_forget(self) -> None:
        """Test that forgetting a document resets the gate."""
        gate = AutoSaveGate(min_changes=50)
        gate.mark_saved("a.md", "text")

        gate.forget("a.md")

        assert gate.should_save("a.md", "text")


class TestStorageStats:
    """Tests for StorageStats."""

    def test_space_savings(self) -> None:
        """Test the percentage saved by encoding."""
        stats = StorageStats(total_size=25, payload_size=100)

        assert stats.space_savings == 75.0
        assert stats.to_dict()["space_savings"] == 75.0

    def test_no_payload(self) -> None:
        """Test that an empty vault reports no savings."""
        assert StorageStats().space_savings == 0.0


class TestConstruction:
    """Tests for building a vault."""

    def test_invalid_config(self, backend) -> None:
        """Test that the configuration is validated."""
        with pytest.raises(ConfigValidationError):
            DocumentVault(backend, VaultConfig(rebuild_base_interval=0))

    def test_notifications_disabled(self, make_vault, notifier) -> None:
        """Test that show_notifications off silences the notifier."""
        vault = make_vault(show_notifications=False)

        vault.save("a.md", "text")

        assert notifier.messages == []

    def test_broken_notifier_does_not_fail_save(self, make_vault) -> None:
        """Test that notifier errors never reach the caller."""
        vault = make_vault(notifier_override=BrokenNotifier())

        outcome = vault.save("a.md", "text")

        assert outcome.created

    def test_context_manager(self, make_vault) -> None:
        """Test that closing drops the cache."""
        with make_vault() as vault:
            vault.save("a.md", "text")
            assert len(vault.store.cache) == 1

        assert len(vault.store.cache) == 0


class TestExclusion:
    """Tests for excluded folders."""

    @pytest.mark.parametrize(
        ("path", "excluded"),
        [
            ("drafts/idea.md", True),
            ("drafts", True),
            ("drafts.md", False),
            ("tmp/x/y.md", True),
            ("notes/tmp/y.md", False),
            (".versions/a.md.json", True),
            ("notes/plan.md", False),
        ],
    )
    def test_is_excluded(self, make_vault, path: str, excluded: bool) -> None:
        """Test prefix matching against folders and the version folder."""
        vault = make_vault(excluded_folders=["drafts/", "./tmp"])

        assert vault.is_excluded(path) is excluded


class TestSave:
    """Tests for save, auto_save and snapshot_all."""

    def test_default_message(self, make_vault, notifier) -> None:
        """Test that an empty message becomes the manual-save label."""
        vault = make_vault()

        outcome = vault.save("a.md", "text", message="  ")

        assert outcome.record.message == MANUAL_SAVE_MESSAGE
        assert notifier.messages == ["Version saved: a.md"]

    def test_message_and_tags(self, make_vault) -> None:
        """Test a labelled, tagged save."""
        vault = make_vault()

        outcome = vault.save("a.md", "text", message="Draft 1", tags=["draft"])

        assert outcome.record.message == "Draft 1"
        assert outcome.record.tags == ("draft",)

    def test_unchanged(self, make_vault, notifier) -> None:
        """Test that saving identical text is reported and skipped."""
        vault = make_vault()
        vault.save("a.md", "text")

        outcome = vault.save("a.md", "text")

        assert outcome.skipped
        assert notifier.messages[-1] == "No changes since the last version"
        assert vault.history("a.md").total == 1

    def test_failure_notifies_and_raises(self, make_vault, notifier, caplog) -> None:
        """Test that a failed save is logged, notified and re-raised."""
        flaky = FlakyBackend()
        flaky.fail_writes = True
        vault = make_vault(backend_override=flaky)

        with pytest.raises(BackendError):
            vault.save("a.md", "text")

        assert notifier.messages == ["Saving version failed, see the log for details"]
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_auto_save(self, make_vault) -> None:
        """Test the change threshold of auto saves."""
        vault = make_vault(auto_save_min_changes=10)

        first = vault.auto_save("a.md", "The quick brown fox")
        small = vault.auto_save("a.md", "The quick brown fix")
        large = vault.auto_save("a.md", "The slow green turtle walks")

        assert first.record.message == AUTO_SAVE_MESSAGE
        assert small is None
        assert large.created
        assert vault.history("a.md").total == 2

    def test_auto_save_excluded(self, make_vault) -> None:
        """Test that excluded documents are never auto-saved."""
        vault = make_vault(excluded_folders=["drafts"])

        assert vault.auto_save("drafts/a.md", "text") is None
        assert vault.documents() == []

    def test_snapshot_all(self, make_vault, notifier) -> None:
        """Test snapshotting several documents."""
        vault = make_vault(excluded_folders=["drafts"])
        documents = {"a.md": "A", "notes/b.md": "B", "drafts/c.md": "C"}

        first = vault.snapshot_all(documents)
        second = vault.snapshot_all(documents)

        assert (first.created, first.skipped, first.excluded) == (2, 0, 1)
        assert (second.created, second.skipped, second.excluded) == (0, 2, 1)
        assert second.total == 3
        assert vault.latest("a.md").message == FULL_SNAPSHOT_MESSAGE
        assert notifier.messages == [
            "Snapshot complete: 2 created",
            "Snapshot complete: 0 created, 2 unchanged",
        ]

    def test_snapshot_all_collects_failures(self, make_vault) -> None:
        """Test that one failing document does not abort the run."""
        flaky = FlakyBackend()
        flaky.fail_writes = True
        vault = make_vault(backend_override=flaky)

        report = vault.snapshot_all({"a.md": "A", "b.md": "B"})

        assert report.failed == ["a.md", "b.md"]
        assert report.to_dict()["created"] == 0


class TestReadAndRestore:
    """Tests for reading, restoring and comparing."""

    def test_get_and_history(self, make_vault) -> None:
        """Test reading versions back with paging."""
        vault = make_vault(versions_per_page=2)
        for i in range(5):
            vault.save("a.md", f"text {i}\n")

        page = vault.history("a.md", page=1)

        assert page.total == 5
        assert page.total_pages == 3
        assert [r.id for r in page.records] == ["v3", "v2"]
        assert vault.get("a.md", "v2") == "text 1\n"
        assert vault.get_record("a.md", "v5").message == MANUAL_SAVE_MESSAGE
        assert vault.reconstruct("a.md", "v4").is_exact

    def test_documents(self, make_vault, backend, caplog) -> None:
        """Test listing documents and skipping unreadable files."""
        vault = make_vault()
        vault.save("notes/b.md", "B")
        vault.save("a.md", "A")
        backend.write_bytes(".versions/broken.json", b"{nope")

        assert vault.documents() == ["a.md", "notes/b.md"]
        assert "broken.json" in caplog.text

    def test_restore(self, make_vault, notifier) -> None:
        """Test that restoring saves the current text first."""
        vault = make_vault()
        old = vault.save("a.md", "one\n").record
        vault.save("a.md", "two\n")

        text = vault.restore("a.md", old.id, "two\nunsaved edit\n")

        latest = vault.latest("a.md")
        assert text == "one\n"
        assert latest.message == BEFORE_RESTORE_MESSAGE
        assert vault.get("a.md", latest.id) == "two\nunsaved edit\n"
        assert notifier.messages[-1] == f"Restored version {old.id}"

    def test_restore_unknown_version(self, make_vault, notifier) -> None:
        """Test that a failed restore saves nothing."""
        vault = make_vault()
        vault.save("a.md", "one\n")

        with pytest.raises(NotFoundError):
            vault.restore("a.md", "missing", "current\n")

        assert vault.history("a.md").total == 1
        assert notifier.messages[-1] == "Restore failed, see the log for details"

    def test_compare_versions(self, make_vault) -> None:
        """Test comparing two stored versions."""
        vault = make_vault()
        a = vault.save("a.md", "one\ntwo\n").record
        b = vault.save("a.md", "one\nthree\n").record

        comparison = vault.compare("a.md", a.id, b.id)

        assert comparison.left_label == a.id
        assert comparison.right_label == b.id
        assert comparison.summary.added_chars == len("three\n")
        assert comparison.summary.removed_chars == len("two\n")

    def test_compare_with_current(self, make_vault) -> None:
        """Test comparing a version with unsaved text by words."""
        vault = make_vault()
        a = vault.save("a.md", "hello world").record

        comparison = vault.compare("a.md", a.id, current_text="hello there", granularity="words")

        assert comparison.right_label == "current"
        assert comparison.summary.has_changes

    def test_compare_needs_target(self, make_vault) -> None:
        """Test that compare requires a second text."""
        vault = make_vault()
        a = vault.save("a.md", "x").record

        with pytest.raises(ValueError):
            vault.compare("a.md", a.id)


class TestRecordEdits:
    """Tests for deleting and annotating versions."""

    def test_delete(self, make_vault) -> None:
        """Test single and bulk deletes."""
        vault = make_vault()
        for text in ("a", "b", "c", "d"):
            vault.save("a.md", text)

        vault.delete("a.md", "v1")
        removed = vault.delete_many("a.md", ["v2", "v3", "missing"])

        assert removed == 2
        assert [r.id for r in vault.history("a.md").records] == ["v4"]
        with pytest.raises(NotFoundError):
            vault.delete("a.md", "v1")

    def test_annotations(self, make_vault) -> None:
        """Test tags, notes and stars."""
        vault = make_vault()
        vault.save("a.md", "text")

        vault.update_tags("a.md", "v1", ["release", "v1.0"])
        vault.update_note("a.md", "v1", "Sent to review")
        starred = vault.toggle_star("a.md", "v1")

        assert starred.starred
        assert starred.tags == ("release", "v1.0")
        assert starred.note == "Sent to review"

    def test_star_latest(self, make_vault) -> None:
        """Test that starring the latest version never unstars it."""
        vault = make_vault()

        assert vault.star_latest("a.md") is None

        vault.save("a.md", "text")
        assert vault.star_latest("a.md").starred
        assert vault.star_latest("a.md").starred


class TestFailureReporting:
    """Tests that every operation logs, notifies and re-raises failures."""

    @pytest.mark.parametrize(
        ("action", "message"),
        [
            (lambda v: v.delete("a.md", "v1"), "Deleting version failed"),
            (lambda v: v.delete_many("a.md", ["v1"]), "Deleting versions failed"),
            (lambda v: v.update_tags("a.md", "v1", ["x"]), "Updating tags failed"),
            (lambda v: v.update_note("a.md", "v1", "n"), "Updating note failed"),
            (lambda v: v.toggle_star("a.md", "v1"), "Starring version failed"),
            (lambda v: v.star_latest("a.md"), "Starring version failed"),
            (lambda v: v.export_series("a.md"), "Export failed"),
            (lambda v: v.export_version("a.md", "v1"), "Export failed"),
        ],
    )
    def test_write_failures(self, make_vault, notifier, caplog, action, message) -> None:
        """Test failed writes of record edits and exports."""
        flaky = FlakyBackend()
        vault = make_vault(backend_override=flaky)
        vault.save("a.md", "text")
        flaky.fail_writes = True
        notifier.clear()

        with pytest.raises(BackendError):
            action(vault)

        assert notifier.messages == [f"{message}, see the log for details"]
        assert any(
            r.levelno == logging.ERROR and "a.md" in r.getMessage() for r in caplog.records
        )
        assert vault.get_record("a.md", "v1").tags == ()

    def test_cleanup_failure(self, make_vault, notifier, caplog) -> None:
        """Test a failed retention run."""
        flaky = FlakyBackend()
        vault = make_vault(backend_override=flaky, auto_clear=False, max_versions=1)
        vault.save("a.md", "one")
        vault.save("a.md", "two")
        flaky.fail_writes = True

        with pytest.raises(BackendError):
            vault.cleanup("a.md")

        assert notifier.messages[-1] == "Cleanup failed, see the log for details"
        assert vault.history("a.md").total == 2

    def test_unknown_version_is_reported(self, make_vault, notifier) -> None:
        """Test that an unknown id is notified as well as raised."""
        vault = make_vault()
        vault.save("a.md", "text")

        with pytest.raises(NotFoundError):
            vault.toggle_star("a.md", "missing")

        assert notifier.messages[-1] == "Starring version failed, see the log for details"


class TestMaintenance:
    """Tests for cleanup, optimize, stats, export and clear."""

    def test_cleanup_all(self, make_vault, notifier) -> None:
        """Test applying retention to every document."""
        vault = make_vault(auto_clear=False, max_versions=2)
        for i in range(5):
            vault.save("a.md", f"a{i}")
            vault.save("b.md", f"b{i}")
        vault.toggle_star("a.md", "v1")

        removed = vault.cleanup_all()

        assert removed == 6
        assert vault.history("a.md").total == 2
        assert vault.get_record("a.md", "v1").starred
        assert notifier.messages[-1] == "Removed 6 old versions"

    def test_cleanup_single(self, make_vault) -> None:
        """Test the age cap on one document."""
        vault = make_vault(auto_clear=False, enable_max_days=True, max_days=1)
        vault.save("a.md", "old")
        vault.store.clock.advance(3 * 24 * 60 * 60 * 1000)
        vault.save("a.md", "new")

        result = vault.cleanup("a.md")

        assert [r.id for r in result.removed] == ["v1"]

    def test_optimize_all(self, backend, make_vault) -> None:
        """Test rewriting files written without compression."""
        plain = make_vault(enable_compression=False)
        plain.save("a.md", "line of text\n" * 200)

        report = make_vault().optimize_all()

        assert report.files == 1
        assert report.bytes_saved > 0
        assert backend.read_bytes(".versions/a.md.json")[:2] == b"\x1f\x8b"

    def test_optimize_keeps_concurrent_save(self, make_vault) -> None:
        """Test that a save made while a file is being rewritten is not lost."""
        hooked = ReadHookBackend()
        vault = make_vault(backend_override=hooked)
        vault.save("d.md", "one\n")
        saver = threading.Thread(target=vault.save, args=("d.md", "two\n"))

        def start_save() -> None:
            saver.start()
            saver.join(0.2)

        hooked.on_read = start_save
        report = vault.optimize_all()
        saver.join(5)

        assert report.failed == []
        assert vault.history("d.md").total == 2
        assert make_vault(backend_override=hooked).history("d.md").total == 2

    def test_optimize_waits_for_path_lock(self, make_vault) -> None:
        """Test that optimize does not rewrite a series while it is locked."""
        vault = make_vault()
        vault.save("d.md", "one\n")
        done = threading.Event()

        def optimize() -> None:
            vault.optimize_all()
            done.set()

        with vault.store.locks.acquire("d.md"):
            worker = threading.Thread(target=optimize)
            worker.start()
            assert not done.wait(0.1)
        worker.join(5)

        assert done.is_set()

    def test_optimize_reports_unreadable_file(self, backend, make_vault) -> None:
        """Test that an unreadable file is listed as failed."""
        vault = make_vault()
        vault.save("a.md", "text")
        backend.write_bytes(".versions/broken.json", b"{nope")

        report = vault.optimize_all()

        assert report.files == 1
        assert report.failed == [".versions/broken.json"]

    def test_storage_stats(self, backend, make_vault) -> None:
        """Test usage totals across documents."""
        vault = make_vault()
        vault.save("a.md", "one")
        vault.save("a.md", "two", tags=["x"])
        vault.save("b.md", "three")
        vault.toggle_star("b.md", "v3")

        stats = vault.storage_stats()

        assert stats.file_count == 2
        assert stats.version_count == 3
        assert stats.starred_count == 1
        assert stats.tagged_count == 1
        assert stats.total_size == sum(
            len(backend.read_bytes(p)) for p in vault.persistence.list_series_files()
        )

    def test_export_series(self, backend, make_vault, notifier) -> None:
        """Test the JSON backup of a document."""
        vault = make_vault()
        vault.save("a.md", "text")

        path = vault.export_series("a.md")

        assert path.startswith(".versions/export_")
        assert json.loads(backend.read_text(path))["index"] == {"v1": 0}
        assert notifier.messages[-1] == f"Versions exported to {path}"

    def test_export_version(self, backend, make_vault) -> None:
        """Test writing one version next to its document."""
        vault = make_vault()
        vault.save("notes/plan.md", "# Plan\n")

        path = vault.export_version("notes/plan.md", "v1")

        assert path == "notes/plan_vv1.md"
        assert backend.read_text(path) == "# Plan\n"

    def test_clear_all(self, make_vault) -> None:
        """Test deleting every series file."""
        vault = make_vault()
        vault.save("a.md", "A")
        vault.save("b.md", "B")

        assert vault.clear_all() == 2
        assert vault.documents() == []
        assert vault.latest("a.md") is None

    def test_clear_all_waits_for_path_lock(self, make_vault) -> None:
        """Test that clearing does not remove a series while it is locked."""
        vault = make_vault()
        vault.save("d.md", "one\n")
        done = threading.Event()

        def clear() -> None:
            vault.clear_all()
            done.set()

        with vault.store.locks.acquire("d.md"):
            worker = threading.Thread(target=clear)
            worker.start()
            assert not done.wait(0.1)
            assert vault.latest("d.md") is not None
        worker.join(5)

        assert done.is_set()
        assert vault.latest("d.md") is None

    def test_clear_all_resets_auto_save_gate(self, make_vault) -> None:
        """Test that the first auto save after clearing always passes."""
        vault = make_vault(auto_save_min_changes=100)
        vault.auto_save("a.md", "text")

        vault.clear_all()

        assert vault.auto_save("a.md", "text!") is not None
