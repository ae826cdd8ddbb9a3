"""Shared fixtures for docvault tests."""

from __future__ import annotations

import pytest

from docvault.stores.backends import MemoryBackend
from docvault.stores.persistence import PersistenceConfig, SeriesPersistence
from docvault.stores.retention import RetentionConfig, RetentionPolicy
from docvault.stores.versioning import (
    SequentialIdStrategy,
    VersioningConfig,
    VersionRecordStore,
)

START_MS = 1_700_000_000_000


class FakeClock:
    """Clock that moves forward by ``step`` ms on every reading."""

    def __init__(self, start: int = START_MS, step: int = 1000) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def persistence(backend: MemoryBackend) -> SeriesPersistence:
    return SeriesPersistence(backend, PersistenceConfig())


@pytest.fixture
def make_store(persistence: SeriesPersistence, clock: FakeClock):
    """Factory for stores sharing the memory backend, clock and sequential ids."""

    def factory(
        retention: RetentionConfig | None = None, **config: object
    ) -> VersionRecordStore:
        return VersionRecordStore(
            persistence,
            VersioningConfig(**config),
            retention=RetentionPolicy.from_config(retention) if retention else None,
            id_strategy=SequentialIdStrategy(),
            clock=clock,
        )

    return factory
