"""Compressors for series files.

gzip, lzma and bz2 come from the standard library. zstd and lz4 need their
optional packages, which are imported the first time they are used.
"""

from __future__ import annotations

import bz2
import gzip
import lzma
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from docvault.stores.compression.base import (
    CompressionAlgorithm,
    CompressionError,
    CompressionLevel,
    DecompressionError,
    UnsupportedAlgorithmError,
)


# =============================================================================
# Base Compressor
# =============================================================================


class BaseCompressor(ABC):
    """Base class for compressors.

    Subclasses declare three class attributes and implement the two ``_do_``
    hooks; :meth:`compress` and :meth:`decompress` turn any failure into a
    :class:`CompressionError` or :class:`DecompressionError`.

    Attributes:
        algorithm: Algorithm implemented.
        magic: Leading bytes of the compressed output; empty when the output
            cannot be recognized.
        presets: Numeric level for each :class:`CompressionLevel`, fastest
            first.
    """

    algorithm: ClassVar[CompressionAlgorithm]
    magic: ClassVar[bytes] = b""
    presets: ClassVar[tuple[int, int, int, int, int]] = (0, 0, 0, 0, 0)

    def __init__(self, level: CompressionLevel | int = CompressionLevel.BALANCED) -> None:
        """Initialize the compressor.

        Args:
            level: Preset, or a numeric level passed to the library as is.
        """
        if isinstance(level, CompressionLevel):
            self.level = self.presets[level.value]
        else:
            self.level = level

    @classmethod
    def available(cls) -> bool:
        """Whether the compressor can run in this environment."""
        return True

    @abstractmethod
    def _do_compress(self, data: bytes) -> bytes:
        pass

    @abstractmethod
    def _do_decompress(self, data: bytes) -> bytes:
        pass

    def compress(self, data: bytes) -> bytes:
        """Compress a serialized series.

        Raises:
            CompressionError: If compression fails.
        """
        try:
            return self._do_compress(data)
        except UnsupportedAlgorithmError:
            raise
        except Exception as e:
            raise CompressionError(f"Compression failed: {e}", self.algorithm.value) from e

    def decompress(self, data: bytes) -> bytes:
        """Decompress the contents of a series file.

        Raises:
            DecompressionError: If the data is not valid for this algorithm.
        """
        try:
            return self._do_decompress(data)
        except UnsupportedAlgorithmError:
            raise
        except Exception as e:
            raise DecompressionError(
                f"Decompression failed: {e}", self.algorithm.value
            ) from e


# =============================================================================
# Standard Library Compressors
# =============================================================================


class NoopCompressor(BaseCompressor):
    """Writes the JSON text unchanged."""

    algorithm = CompressionAlgorithm.NONE

    def _do_compress(self, data: bytes) -> bytes:
        return data

    def _do_decompress(self, data: bytes) -> bytes:
        return data


class GzipCompressor(BaseCompressor):
    """gzip, the default. Version files of older releases are gzip."""

    algorithm = CompressionAlgorithm.GZIP
    magic = b"\x1f\x8b"
    presets = (1, 3, 6, 8, 9)

    def _do_compress(self, data: bytes) -> bytes:
        # mtime=0 keeps the output stable for identical series.
        return gzip.compress(data, compresslevel=self.level, mtime=0)

    def _do_decompress(self, data: bytes) -> bytes:
        return gzip.decompress(data)


class LzmaCompressor(BaseCompressor):
    algorithm = CompressionAlgorithm.LZMA
    magic = b"\xfd7zXZ\x00"
    presets = (0, 2, 5, 7, 9)

    def _do_compress(self, data: bytes) -> bytes:
        return lzma.compress(data, preset=self.level)

    def _do_decompress(self, data: bytes) -> bytes:
        return lzma.decompress(data)


class Bz2Compressor(BaseCompressor):
    algorithm = CompressionAlgorithm.BZ2
    magic = b"BZh"
    presets = (1, 3, 6, 8, 9)

    def _do_compress(self, data: bytes) -> bytes:
        return bz2.compress(data, compresslevel=self.level)

    def _do_decompress(self, data: bytes) -> bytes:
        return bz2.decompress(data)


# =============================================================================
# Optional Compressors
# =============================================================================


class ZstdCompressor(BaseCompressor):
    """Zstandard, via ``pip install docvault[zstd]``."""

    algorithm = CompressionAlgorithm.ZSTD
    magic = b"\x28\xb5\x2f\xfd"
    presets = (1, 3, 6, 12, 19)

    _zstd: ClassVar[Any] = None

    @classmethod
    def _get_zstd(cls) -> Any:
        """Lazy import zstandard."""
        if cls._zstd is None:
            try:
                import zstandard
            except ImportError:
                raise UnsupportedAlgorithmError("zstd", _builtin_names()) from None
            cls._zstd = zstandard
        return cls._zstd

    @classmethod
    def available(cls) -> bool:
        try:
            cls._get_zstd()
        except UnsupportedAlgorithmError:
            return False
        return True

    def _do_compress(self, data: bytes) -> bytes:
        return self._get_zstd().ZstdCompressor(level=self.level).compress(data)

    def _do_decompress(self, data: bytes) -> bytes:
        return self._get_zstd().ZstdDecompressor().decompress(data)


class LZ4Compressor(BaseCompressor):
    """LZ4 frames, via ``pip install docvault[lz4]``."""

    algorithm = CompressionAlgorithm.LZ4
    magic = b"\x04\x22\x4d\x18"
    presets = (0, 3, 6, 9, 12)

    _lz4: ClassVar[Any] = None

    @classmethod
    def _get_lz4(cls) -> Any:
        """Lazy import lz4.frame."""
        if cls._lz4 is None:
            try:
                import lz4.frame
            except ImportError:
                raise UnsupportedAlgorithmError("lz4", _builtin_names()) from None
            cls._lz4 = lz4.frame
        return cls._lz4

    @classmethod
    def available(cls) -> bool:
        try:
            cls._get_lz4()
        except UnsupportedAlgorithmError:
            return False
        return True

    def _do_compress(self, data: bytes) -> bytes:
        return self._get_lz4().compress(data, compression_level=self.level)

    def _do_decompress(self, data: bytes) -> bytes:
        return self._get_lz4().decompress(data)


# =============================================================================
# Registry and Factory
# =============================================================================


_COMPRESSORS: dict[CompressionAlgorithm, type[BaseCompressor]] = {
    cls.algorithm: cls
    for cls in (
        NoopCompressor,
        GzipCompressor,
        ZstdCompressor,
        LZ4Compressor,
        LzmaCompressor,
        Bz2Compressor,
    )
}


def _builtin_names() -> list[str]:
    return [
        CompressionAlgorithm.GZIP.value,
        CompressionAlgorithm.LZMA.value,
        CompressionAlgorithm.BZ2.value,
    ]


def register_compressor(compressor_class: type[BaseCompressor]) -> None:
    """Register a compressor, replacing any for the same algorithm."""
    _COMPRESSORS[compressor_class.algorithm] = compressor_class


def _coerce_algorithm(algorithm: str | CompressionAlgorithm) -> CompressionAlgorithm:
    if isinstance(algorithm, CompressionAlgorithm):
        return algorithm
    try:
        return CompressionAlgorithm(algorithm.lower())
    except ValueError:
        raise UnsupportedAlgorithmError(algorithm, [a.value for a in _COMPRESSORS]) from None


def get_compressor(
    algorithm: str | CompressionAlgorithm,
    level: CompressionLevel | int = CompressionLevel.BALANCED,
) -> BaseCompressor:
    """Create a compressor.

    Args:
        algorithm: Algorithm name (case-insensitive) or enum.
        level: Preset, or a numeric level.

    Raises:
        UnsupportedAlgorithmError: If the algorithm is unknown.
    """
    return _COMPRESSORS[_coerce_algorithm(algorithm)](level)


def detect_algorithm(data: bytes) -> CompressionAlgorithm:
    """Identify the algorithm that produced ``data`` from its magic bytes.

    Returns:
        The matching algorithm, or ``NONE`` when the data does not start with
        a known header (plain JSON starts with ``{``).
    """
    for compressor_class in _COMPRESSORS.values():
        if compressor_class.magic and data.startswith(compressor_class.magic):
            return compressor_class.algorithm
    return CompressionAlgorithm.NONE


def is_algorithm_available(algorithm: str | CompressionAlgorithm) -> bool:
    """Whether files can be written with ``algorithm`` here."""
    try:
        compressor_class = _COMPRESSORS[_coerce_algorithm(algorithm)]
    except UnsupportedAlgorithmError:
        return False
    return compressor_class.available()


def list_available_algorithms() -> list[CompressionAlgorithm]:
    return [a for a, cls in _COMPRESSORS.items() if cls.available()]
