"""Types shared by the series-file compressors.

Series files may be written compressed or as plain JSON, and the setting can
change over the lifetime of a vault. A file is always read back by sniffing
its leading bytes, so every compressor declares the magic prefix of its
output alongside the algorithm it implements.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

from docvault.errors import VaultError


# =============================================================================
# Exceptions
# =============================================================================


class CompressionError(VaultError):
    """A series file could not be compressed or decompressed.

    Attributes:
        algorithm: Name of the algorithm involved, when known.
    """

    def __init__(self, message: str, algorithm: str | None = None) -> None:
        self.algorithm = algorithm
        super().__init__(f"{algorithm}: {message}" if algorithm else message)


class DecompressionError(CompressionError):
    """The bytes are not valid output of the algorithm."""

    pass


class UnsupportedAlgorithmError(CompressionError):
    """The algorithm is unknown or its library is not installed."""

    def __init__(self, algorithm: str, available: list[str] | None = None) -> None:
        self.available = available or []
        message = f"Algorithm '{algorithm}' is not supported"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message, algorithm)


# =============================================================================
# Enums
# =============================================================================


class CompressionAlgorithm(str, Enum):
    """Algorithms a series file can be written with."""

    NONE = "none"
    GZIP = "gzip"
    ZSTD = "zstd"
    LZ4 = "lz4"
    LZMA = "lzma"
    BZ2 = "bz2"


class CompressionLevel(Enum):
    """Level presets, mapped to a numeric level by each compressor.

    The value is the position of the preset in a compressor's ``presets``
    tuple.
    """

    FASTEST = 0
    FAST = 1
    BALANCED = 2
    HIGH = 3
    MAXIMUM = 4

    @classmethod
    def from_name(cls, name: str) -> "CompressionLevel":
        """Parse a preset name such as ``"balanced"`` (case-insensitive)."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(
                f"Unknown compression level '{name}'. "
                f"Choose from: {', '.join(m.name.lower() for m in cls)}"
            ) from None


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class Compressor(Protocol):
    """What the persistence layer needs from a compressor."""

    @property
    def algorithm(self) -> CompressionAlgorithm:
        ...

    def compress(self, data: bytes) -> bytes:
        ...

    def decompress(self, data: bytes) -> bytes:
        ...
