"""Content fingerprints for change detection and deduplication.

A fingerprint is a short, order-sensitive signature of a document's text.
It is only used to skip saving content that is probably unchanged, so a fast
non-cryptographic hash is the right tool; collisions are tolerated.
"""

from __future__ import annotations

import hashlib
from enum import Enum

import xxhash


class FingerprintAlgorithm(str, Enum):
    """Available fingerprint algorithms."""

    XXH64 = "xxh64"
    SHA256 = "sha256"
    LEGACY = "legacy"  # 32-bit string hash carried by old version files


_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def legacy_string_hash(text: str) -> str:
    """Compute the 31-multiplier signed 32-bit hash over UTF-16 code units.

    This is the fingerprint found in version files written by earlier
    releases, rendered in base 36.
    """
    units = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        value = (value * 31 + code) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return _to_base36(value)


def fingerprint(
    text: str,
    algorithm: FingerprintAlgorithm | str = FingerprintAlgorithm.XXH64,
) -> str:
    """Compute the fingerprint of a document's text.

    Args:
        text: Full document text.
        algorithm: Fingerprint algorithm to use.

    Returns:
        Fingerprint string. Equal inputs always produce equal outputs.

    Example:
        >>> fingerprint("hello") == fingerprint("hello")
        True
        >>> fingerprint("ab") == fingerprint("ba")
        False
    """
    algorithm = FingerprintAlgorithm(algorithm)
    if algorithm == FingerprintAlgorithm.XXH64:
        return xxhash.xxh64(text.encode("utf-8")).hexdigest()
    if algorithm == FingerprintAlgorithm.SHA256:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()
    return legacy_string_hash(text)

