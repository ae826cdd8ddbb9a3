"""Version id strategies.

Ids must be unique within a series and sort roughly by creation time.
"""

from __future__ import annotations

import itertools
import secrets
import threading

from docvault.stores.versioning.base import IdStrategy


_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class TimestampIdStrategy(IdStrategy):
    """Creation time in milliseconds followed by a random base-36 suffix.

    This is the default, e.g. ``1718000000000k3j9x2m1q``. Files written by
    earlier releases carry bare millisecond timestamps as ids; both forms
    are accepted on load since ids are opaque strings.
    """

    def __init__(self, suffix_length: int = 9) -> None:
        if suffix_length < 1:
            raise ValueError("suffix_length must be >= 1")
        self.suffix_length = suffix_length

    def next_id(self, timestamp_ms: int) -> str:
        suffix = "".join(secrets.choice(_BASE36) for _ in range(self.suffix_length))
        return f"{timestamp_ms}{suffix}"


class SequentialIdStrategy(IdStrategy):
    """Deterministic ids ``v1``, ``v2``, ... for tests and reproducible runs."""

    def __init__(self, prefix: str = "v", start: int = 1) -> None:
        self.prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self, timestamp_ms: int) -> str:
        with self._lock:
            return f"{self.prefix}{next(self._counter)}"


def get_id_strategy(name: str) -> IdStrategy:
    """Get an id strategy by name.

    Args:
        name: ``"timestamp"`` or ``"sequential"``.

    Raises:
        ValueError: If the name is unknown.
    """
    strategies = {
        "timestamp": TimestampIdStrategy,
        "sequential": SequentialIdStrategy,
    }
    strategy_class = strategies.get(name.lower())
    if strategy_class is None:
        raise ValueError(
            f"Unknown id strategy: {name}. Available: {list(strategies.keys())}"
        )
    return strategy_class()
