"""Tests for series persistence."""

from __future__ import annotations

import gzip
import json
import logging

import pytest

from docvault.errors import ParseError
from docvault.stores.backends import MemoryBackend
from docvault.stores.compression import CompressionAlgorithm, get_compressor
from docvault.stores.persistence import PersistenceConfig, SeriesPersistence
from docvault.stores.versioning import (
    FullPayload,
    IncrementalPayload,
    VersionRecord,
    VersionSeries,
)

DOC = "notes/plan.md"


@pytest.fixture
def series() -> VersionSeries:
    return VersionSeries(
        DOC,
        [
            VersionRecord("v2", 2, "m", IncrementalPayload("@@ -1 +1 @@\n-a\n+b\n", "v1"), 20, "f2"),
            VersionRecord("v1", 1, "m", FullPayload("a\n"), 2, "f1", tags=("x",)),
        ],
        base_snapshot="a\n",
        last_modified=2,
    )


class TestPaths:
    """Tests for file naming."""

    def test_path_for(self) -> None:
        """Test that the document path is flattened into the version folder."""
        persistence = SeriesPersistence(MemoryBackend())

        assert persistence.path_for(DOC) == ".versions/notes_plan.md.json"

    def test_custom_folder(self) -> None:
        """Test a configured version folder."""
        persistence = SeriesPersistence(
            MemoryBackend(), PersistenceConfig(version_folder="history/")
        )

        assert persistence.path_for("a.md") == "history/a.md.json"

    def test_list_series_files_skips_exports(self, series: VersionSeries) -> None:
        """Test that export backups are not listed as series."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)
        persistence.save(series)
        persistence.export_series(series, 123)
        backend.write_bytes(".versions/readme.txt", b"x")

        assert persistence.list_series_files() == [".versions/notes_plan.md.json"]

    def test_list_without_folder(self) -> None:
        """Test listing before anything was saved."""
        assert SeriesPersistence(MemoryBackend()).list_series_files() == []


class TestSaveLoad:
    """Tests for save and load."""

    @pytest.mark.parametrize(
        "config",
        [
            PersistenceConfig(),
            PersistenceConfig(enable_compression=False),
            PersistenceConfig(enable_compression=False, pretty_print=False),
            PersistenceConfig(compression_algorithm=CompressionAlgorithm.BZ2),
        ],
    )
    def test_round_trip(self, series: VersionSeries, config: PersistenceConfig) -> None:
        """Test that a saved series loads back unchanged."""
        persistence = SeriesPersistence(MemoryBackend(), config)

        persistence.save(series)
        loaded = persistence.load(DOC)

        assert loaded.records == series.records
        assert loaded.base_snapshot == series.base_snapshot
        assert loaded.last_modified == series.last_modified
        assert dict(loaded.index) == {"v2": 0, "v1": 1}

    def test_compressed_layout(self, series: VersionSeries) -> None:
        """Test that compression produces gzip bytes by default."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)

        written = persistence.save(series)
        data = backend.read_bytes(persistence.path_for(DOC))

        assert written == len(data)
        assert data[:2] == b"\x1f\x8b"

    def test_index_never_persisted(self, series: VersionSeries) -> None:
        """Test that the stored document has no index."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend, PersistenceConfig(enable_compression=False))

        persistence.save(series)
        document = json.loads(backend.read_text(persistence.path_for(DOC)))

        assert "index" not in document
        assert document["records"][0]["baseRefId"] == "v1"

    @pytest.mark.parametrize(
        ("written_with", "read_with"),
        [
            (PersistenceConfig(enable_compression=False), PersistenceConfig()),
            (PersistenceConfig(), PersistenceConfig(enable_compression=False)),
            (
                PersistenceConfig(compression_algorithm=CompressionAlgorithm.LZMA),
                PersistenceConfig(),
            ),
        ],
    )
    def test_mixed_modes(
        self,
        series: VersionSeries,
        written_with: PersistenceConfig,
        read_with: PersistenceConfig,
    ) -> None:
        """Test reading files written under different compression settings."""
        backend = MemoryBackend()
        SeriesPersistence(backend, written_with).save(series)

        loaded = SeriesPersistence(backend, read_with).load(DOC)

        assert loaded.records == series.records

    def test_missing_file_is_empty_series(self) -> None:
        """Test that a document without a file has an empty history."""
        loaded = SeriesPersistence(MemoryBackend()).load("new.md")

        assert len(loaded) == 0
        assert loaded.document_path == "new.md"

    def test_colliding_file_name_warns(self, series: VersionSeries, caplog) -> None:
        """Test loading a file that belongs to another document with the same file name."""
        persistence = SeriesPersistence(MemoryBackend())
        persistence.save(series)

        with caplog.at_level(logging.WARNING, logger="docvault.stores.persistence"):
            loaded = persistence.load("notes_plan.md")

        assert loaded.document_path == "notes_plan.md"
        assert "notes/plan.md" in caplog.text

    def test_empty_series_not_stored(self) -> None:
        """Test that an empty series leaves no file."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)

        assert persistence.save(VersionSeries.empty(DOC)) == 0
        assert len(backend) == 0

    def test_legacy_document(self) -> None:
        """Test a file in the layout of earlier releases."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)
        legacy = {
            "filePath": DOC,
            "baseVersion": "a\n",
            "index": {"old": 7},
            "versions": [
                {"id": "old", "timestamp": 1, "message": "m", "content": "a\n", "hash": "abc"}
            ],
        }
        backend.write_bytes(persistence.path_for(DOC), gzip.compress(json.dumps(legacy).encode()))

        loaded = persistence.load(DOC)

        assert loaded.base_snapshot == "a\n"
        assert loaded.find("old").fingerprint == "abc"
        assert dict(loaded.index) == {"old": 0}

    @pytest.mark.parametrize(
        "data",
        [
            b"{not json",
            b"\xff\xfe\x00garbage",
            b'{"records": [{"id": "a"}]}',
            b"[1, 2, 3]",
            b"\x1f\x8b\x08broken gzip",
        ],
    )
    def test_corrupt_file_raises_parse_error(self, data: bytes) -> None:
        """Test that unreadable files raise ParseError."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)
        backend.write_bytes(persistence.path_for(DOC), data)

        with pytest.raises(ParseError) as exc_info:
            persistence.load(DOC)

        assert exc_info.value.path == persistence.path_for(DOC)


class TestMaintenance:
    """Tests for rewrite, remove and export."""

    def test_rewrite_changes_encoding(self, series: VersionSeries) -> None:
        """Test that rewriting applies the current compression settings."""
        backend = MemoryBackend()
        SeriesPersistence(backend, PersistenceConfig(enable_compression=False)).save(series)
        persistence = SeriesPersistence(backend)
        path = persistence.path_for(DOC)

        change = persistence.rewrite(path)

        assert change.new_size == len(backend.read_bytes(path))
        assert change.saved == change.old_size - change.new_size
        assert backend.read_bytes(path)[:2] == b"\x1f\x8b"
        assert persistence.load(DOC).records == series.records

    def test_rewrite_moves_misnamed_file(self, series: VersionSeries) -> None:
        """Test that a file under an outdated name is moved."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)
        backend.write_bytes(".versions/old-name.json", persistence.encode(series))

        persistence.rewrite(".versions/old-name.json")

        assert persistence.list_series_files() == [persistence.path_for(DOC)]

    def test_remove(self, series: VersionSeries) -> None:
        """Test deleting a series file."""
        persistence = SeriesPersistence(MemoryBackend())
        persistence.save(series)

        assert persistence.remove(DOC)
        assert not persistence.remove(DOC)

    def test_export_series(self, series: VersionSeries) -> None:
        """Test the standalone backup layout."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)

        path = persistence.export_series(series, 1718000000000)

        assert path == ".versions/export_1718000000000.json"
        document = json.loads(backend.read_text(path))
        assert document["index"] == {"v2": 0, "v1": 1}
        assert document["documentPath"] == DOC

    def test_export_snapshot(self) -> None:
        """Test writing one version next to its document."""
        backend = MemoryBackend()
        persistence = SeriesPersistence(backend)

        path = persistence.export_snapshot(DOC, "v3", "text")

        assert path == "notes/plan_vv3.md"
        assert backend.read_text(path) == "text"

    def test_describe(self) -> None:
        """Test the settings summary."""
        info = SeriesPersistence(
            MemoryBackend(), PersistenceConfig(compression_algorithm="bz2")
        ).describe()

        assert info == {"version_folder": ".versions", "compression": "bz2", "pretty_print": True}

    def test_encoder_matches_compressor(self, series: VersionSeries) -> None:
        """Test that compressed files decompress to compact JSON."""
        persistence = SeriesPersistence(MemoryBackend())

        raw = get_compressor("gzip").decompress(persistence.encode(series))

        assert b"\n" not in raw.replace(b"\\n", b"")
