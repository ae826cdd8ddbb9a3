"""Compression of version series files.

Example:
    >>> from docvault.stores.compression import get_compressor, detect_algorithm
    >>>
    >>> compressor = get_compressor("gzip")
    >>> packed = compressor.compress(b'{"records": []}')
    >>> detect_algorithm(packed)
    <CompressionAlgorithm.GZIP: 'gzip'>
"""

from docvault.stores.compression.base import (
    CompressionAlgorithm,
    CompressionError,
    CompressionLevel,
    Compressor,
    DecompressionError,
    UnsupportedAlgorithmError,
)
from docvault.stores.compression.providers import (
    BaseCompressor,
    Bz2Compressor,
    GzipCompressor,
    LZ4Compressor,
    LzmaCompressor,
    NoopCompressor,
    ZstdCompressor,
    detect_algorithm,
    get_compressor,
    is_algorithm_available,
    list_available_algorithms,
    register_compressor,
)

__all__ = [
    # Protocols
    "Compressor",
    # Enums
    "CompressionAlgorithm",
    "CompressionLevel",
    # Exceptions
    "CompressionError",
    "DecompressionError",
    "UnsupportedAlgorithmError",
    # Providers
    "BaseCompressor",
    "NoopCompressor",
    "GzipCompressor",
    "ZstdCompressor",
    "LZ4Compressor",
    "LzmaCompressor",
    "Bz2Compressor",
    # Factory
    "get_compressor",
    "detect_algorithm",
    "register_compressor",
    "is_algorithm_available",
    "list_available_algorithms",
]
