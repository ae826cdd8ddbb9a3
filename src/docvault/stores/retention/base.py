"""Base classes for retention of version records.

A retention rule narrows down the non-starred records of a series. Starred
records are never handed to a rule, so no rule can remove them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docvault.stores.versioning.base import VersionRecord


DAY_MS = 24 * 60 * 60 * 1000


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class RetentionConfig:
    """Configuration for retention behavior.

    Attributes:
        max_count: Maximum records to keep, starred included. None disables
            count capping.
        max_age_days: Maximum age of non-starred records. None disables age
            capping.
        floor: Minimum number of non-starred records count capping keeps,
            even when starred records alone reach ``max_count``.
    """

    max_count: int | None = 50
    max_age_days: int | None = None
    floor: int = 1

    def __post_init__(self) -> None:
        if self.max_count is not None and self.max_count < 0:
            raise ValueError("max_count must be >= 0")
        if self.max_age_days is not None and self.max_age_days < 0:
            raise ValueError("max_age_days must be >= 0")
        if self.floor < 1:
            raise ValueError("floor must be >= 1")

    @property
    def enabled(self) -> bool:
        return self.max_count is not None or self.max_age_days is not None


@dataclass
class RetentionResult:
    """Result of applying a retention policy to one series.

    Attributes:
        kept: Surviving records, newest first.
        removed: Evicted records, newest first.
    """

    kept: list[VersionRecord] = field(default_factory=list)
    removed: list[VersionRecord] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    @property
    def bytes_freed(self) -> int:
        """Stored payload size of the evicted records."""
        return sum(r.size for r in self.removed)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kept": len(self.kept),
            "removed": self.removed_count,
            "removed_ids": [r.id for r in self.removed],
            "bytes_freed": self.bytes_freed,
        }


@dataclass(frozen=True)
class RetentionContext:
    """Facts a rule may need besides the records themselves.

    Attributes:
        now_ms: Current time in epoch milliseconds.
        starred_count: Number of starred records in the series.
    """

    now_ms: int
    starred_count: int = 0


# =============================================================================
# Abstract Rule
# =============================================================================


class RetentionRule(ABC):
    """A single retention criterion.

    Example:
        >>> class KeepTagged(RetentionRule):
        ...     def select(self, records, context):
        ...         return [r for r in records if r.tags]
        ...
        ...     @property
        ...     def description(self):
        ...         return "Keep tagged versions"
    """

    @abstractmethod
    def select(
        self, records: list[VersionRecord], context: RetentionContext
    ) -> list[VersionRecord]:
        """Return the records to keep.

        Args:
            records: Non-starred records, newest first.
            context: Evaluation context.
        """
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the rule."""
        pass

    @property
    def name(self) -> str:
        """Rule name (defaults to class name)."""
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize rule configuration."""
        return {"type": self.name, "description": self.description}
