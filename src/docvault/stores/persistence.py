"""Persistence of version series through a storage backend.

Each document's series is one JSON document under the version folder, named
after the sanitized document path. The JSON may be compressed. Since the
compression setting can change between runs, a file may be stored either way
and the loader accepts both.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from docvault.errors import ParseError
from docvault.stores.base import StorageBackend, join_path, sanitize_file_name
from docvault.stores.compression import (
    CompressionAlgorithm,
    CompressionError,
    CompressionLevel,
    DecompressionError,
    UnsupportedAlgorithmError,
    detect_algorithm,
    get_compressor,
)
from docvault.stores.versioning.base import VersionSeries

logger = logging.getLogger(__name__)


SERIES_SUFFIX = ".json"
EXPORT_PREFIX = "export_"

_EXTENSION = re.compile(r"\.[^/.]+$")


@dataclass
class PersistenceConfig:
    """Configuration for the persistence layer.

    Attributes:
        version_folder: Backend directory holding the series files.
        enable_compression: Whether to compress series files on save.
        compression_algorithm: Algorithm used when compressing.
        compression_level: Compression level preset.
        pretty_print: Indent uncompressed JSON for readability.
    """

    version_folder: str = ".versions"
    enable_compression: bool = True
    compression_algorithm: CompressionAlgorithm = CompressionAlgorithm.GZIP
    compression_level: CompressionLevel = CompressionLevel.BALANCED
    pretty_print: bool = True

    def __post_init__(self) -> None:
        self.compression_algorithm = CompressionAlgorithm(self.compression_algorithm)


@dataclass
class FileSizeChange:
    """Size of a series file before and after it was rewritten."""

    path: str
    old_size: int
    new_size: int

    @property
    def saved(self) -> int:
        return self.old_size - self.new_size


class SeriesPersistence:
    """Serializes series to bytes and stores them through a backend.

    Example:
        >>> persistence = SeriesPersistence(MemoryBackend())
        >>> persistence.save(series)
        >>> persistence.load(series.document_path).records == series.records
        True
    """

    def __init__(
        self,
        backend: StorageBackend,
        config: PersistenceConfig | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or PersistenceConfig()
        self._compressor = get_compressor(
            self.config.compression_algorithm, self.config.compression_level
        )

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def path_for(self, document_path: str) -> str:
        """Backend path of the series file for a document."""
        return join_path(
            self.config.version_folder,
            sanitize_file_name(document_path) + SERIES_SUFFIX,
        )

    def list_series_files(self) -> list[str]:
        """Backend paths of every series file in the version folder."""
        folder = self.config.version_folder
        if not self.backend.exists(folder):
            return []
        return [
            path
            for path in self.backend.list(folder).files
            if path.endswith(SERIES_SUFFIX)
            and not path.rsplit("/", 1)[-1].startswith(EXPORT_PREFIX)
        ]

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def encode(self, series: VersionSeries) -> bytes:
        """Serialize a series to the bytes that go on disk.

        The index is never part of the output.
        """
        data = series.to_dict()
        if self.config.enable_compression:
            text = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
            return self._compressor.compress(text.encode("utf-8"))
        indent = 2 if self.config.pretty_print else None
        return json.dumps(data, ensure_ascii=False, indent=indent).encode("utf-8")

    def decode(self, data: bytes, path: str) -> VersionSeries:
        """Parse bytes read from ``path`` into a series.

        Raises:
            ParseError: If the bytes are not a valid series in any supported
                layout.
        """
        raw = self._unpack(data, path)
        try:
            document = json.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise ParseError(path, f"not UTF-8 text: {e}") from e
        except json.JSONDecodeError as e:
            raise ParseError(path, f"invalid JSON: {e.msg} at line {e.lineno}") from e

        try:
            return VersionSeries.from_dict(document)
        except (ValueError, TypeError) as e:
            raise ParseError(path, str(e)) from e

    def _unpack(self, data: bytes, path: str) -> bytes:
        if (
            self.config.enable_compression
            and self._compressor.algorithm != CompressionAlgorithm.NONE
        ):
            try:
                return self._compressor.decompress(data)
            except (DecompressionError, UnsupportedAlgorithmError):
                logger.debug(
                    "%s is not %s data, trying other layouts",
                    path,
                    self._compressor.algorithm.value,
                )

        detected = detect_algorithm(data)
        if detected == CompressionAlgorithm.NONE:
            return data
        try:
            return get_compressor(detected).decompress(data)
        except CompressionError as e:
            raise ParseError(path, str(e)) from e

    # -------------------------------------------------------------------------
    # Save / Load
    # -------------------------------------------------------------------------

    def save(self, series: VersionSeries) -> int:
        """Persist a series.

        The payload is fully encoded before the backend is touched, and
        backends write atomically, so a failure leaves the previous file
        intact. A series with no records is not stored; an existing file for
        it is removed.

        Returns:
            Number of bytes written.

        Raises:
            BackendError: If the backend write fails.
        """
        path = self.path_for(series.document_path)
        if not len(series):
            if self.backend.exists(path):
                self.backend.remove(path)
                logger.debug("Removed empty series file %s", path)
            return 0

        payload = self.encode(series)
        self.backend.mkdir(self.config.version_folder)
        self.backend.write_bytes(path, payload)
        logger.debug(
            "Saved %d versions of %s (%d bytes)", len(series), series.document_path, len(payload)
        )
        return len(payload)

    def load(self, document_path: str) -> VersionSeries:
        """Load the series of a document.

        A missing file is not an error: it yields a fresh empty series.

        Raises:
            BackendError: If the backend read fails.
            ParseError: If the stored bytes are not a valid series.
        """
        path = self.path_for(document_path)
        if not self.backend.exists(path):
            return VersionSeries.empty(document_path)
        series = self.decode(self.backend.read_bytes(path), path)
        if series.document_path and series.document_path != document_path:
            logger.warning(
                "%s holds the history of %s, not %s; both names map to the same file",
                path,
                series.document_path,
                document_path,
            )
        series.document_path = document_path
        return series

    def load_file(self, path: str) -> VersionSeries:
        """Load a series file by its backend path.

        The document path comes from the file contents.
        """
        return self.decode(self.backend.read_bytes(path), path)

    def remove(self, document_path: str) -> bool:
        """Delete the series file of a document, if it exists."""
        path = self.path_for(document_path)
        if not self.backend.exists(path):
            return False
        self.backend.remove(path)
        return True

    def rewrite(self, path: str) -> FileSizeChange:
        """Load a series file and store it again in the current encoding."""
        before = self.backend.stat(path)
        series = self.load_file(path)
        if not series.document_path:
            raise ParseError(path, "series has no document path")
        self.save(series)
        target = self.path_for(series.document_path)
        if target != path:
            self.backend.remove(path)
        after = self.backend.stat(target)
        return FileSizeChange(
            path=path,
            old_size=before.size if before else 0,
            new_size=after.size if after else 0,
        )

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_series(self, series: VersionSeries, now_ms: int) -> str:
        """Write a standalone JSON backup of a series, index included.

        Returns:
            Backend path of the export file.
        """
        path = join_path(self.config.version_folder, f"{EXPORT_PREFIX}{now_ms}.json")
        text = json.dumps(series.to_export_dict(), ensure_ascii=False, indent=2)
        self.backend.mkdir(self.config.version_folder)
        self.backend.write_text(path, text)
        return path

    def export_snapshot(self, document_path: str, version_id: str, text: str) -> str:
        """Write one reconstructed version next to its document.

        ``notes/plan.md`` version ``abc`` becomes ``notes/plan_vabc.md``.

        Returns:
            Backend path of the export file.
        """
        stem = _EXTENSION.sub("", document_path)
        path = f"{stem}_v{version_id}.md"
        self.backend.write_text(path, text)
        return path

    def describe(self) -> dict[str, Any]:
        """Summary of the persistence settings."""
        return {
            "version_folder": self.config.version_folder,
            "compression": (
                self.config.compression_algorithm.value
                if self.config.enable_compression
                else "none"
            ),
            "pretty_print": self.config.pretty_print,
        }
