"""Retention rule implementations and the policy that combines them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from docvault.stores.retention.base import (
    DAY_MS,
    RetentionConfig,
    RetentionContext,
    RetentionResult,
    RetentionRule,
)

if TYPE_CHECKING:
    from docvault.stores.versioning.base import VersionRecord

logger = logging.getLogger(__name__)


class CountCapRule(RetentionRule):
    """Keep the newest records so the series stays within ``max_count``.

    Starred records count toward the cap. The number of non-starred records
    kept never drops below ``floor``.

    Example:
        >>> rule = CountCapRule(max_count=50)
    """

    def __init__(self, max_count: int, floor: int = 1) -> None:
        if max_count < 0:
            raise ValueError("max_count must be >= 0")
        if floor < 1:
            raise ValueError("floor must be >= 1")
        self.max_count = max_count
        self.floor = floor

    def limit(self, starred_count: int) -> int:
        """Number of non-starred records to keep."""
        return max(self.max_count - starred_count, self.floor)

    def select(
        self, records: list[VersionRecord], context: RetentionContext
    ) -> list[VersionRecord]:
        return records[: self.limit(context.starred_count)]

    @property
    def description(self) -> str:
        return f"Keep at most {self.max_count} versions (at least {self.floor} unstarred)"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result.update({"max_count": self.max_count, "floor": self.floor})
        return result


class AgeCapRule(RetentionRule):
    """Keep records younger than ``max_age_days``.

    Unlike count capping there is no floor: when every non-starred record is
    too old, all of them go.

    Example:
        >>> rule = AgeCapRule(max_age_days=30)
    """

    def __init__(self, max_age_days: int) -> None:
        if max_age_days < 0:
            raise ValueError("max_age_days must be >= 0")
        self.max_age_days = max_age_days

    def cutoff(self, now_ms: int) -> int:
        return now_ms - self.max_age_days * DAY_MS

    def select(
        self, records: list[VersionRecord], context: RetentionContext
    ) -> list[VersionRecord]:
        cutoff = self.cutoff(context.now_ms)
        return [r for r in records if r.timestamp >= cutoff]

    @property
    def description(self) -> str:
        days = self.max_age_days
        return f"Keep versions younger than {days} day{'s' if days != 1 else ''}"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["max_age_days"] = self.max_age_days
        return result


class RetentionPolicy:
    """Applies rules in order to the non-starred records of a series.

    Starred records are partitioned out before any rule runs and are always
    kept. The survivors are recombined and sorted newest first by timestamp.

    Example:
        >>> policy = RetentionPolicy.from_config(RetentionConfig(max_count=2))
        >>> result = policy.apply(series.records, now_ms)
        >>> [r.id for r in result.removed]
    """

    def __init__(self, rules: Iterable[RetentionRule] = ()) -> None:
        self.rules = list(rules)

    @classmethod
    def from_config(cls, config: RetentionConfig) -> "RetentionPolicy":
        rules: list[RetentionRule] = []
        if config.max_count is not None:
            rules.append(CountCapRule(config.max_count, config.floor))
        if config.max_age_days is not None:
            rules.append(AgeCapRule(config.max_age_days))
        return cls(rules)

    @property
    def enabled(self) -> bool:
        return bool(self.rules)

    def apply(self, records: Iterable[VersionRecord], now_ms: int) -> RetentionResult:
        """Decide which records survive.

        Args:
            records: Records of one series in any order.
            now_ms: Current time in epoch milliseconds.

        Returns:
            Kept and removed records, both newest first.
        """
        ordered = sorted(records, key=lambda r: r.timestamp, reverse=True)
        starred = [r for r in ordered if r.starred]
        candidates = [r for r in ordered if not r.starred]

        context = RetentionContext(now_ms=now_ms, starred_count=len(starred))
        for rule in self.rules:
            candidates = rule.select(candidates, context)

        kept_ids = {r.id for r in starred}
        kept_ids.update(r.id for r in candidates)
        kept = [r for r in ordered if r.id in kept_ids]
        removed = [r for r in ordered if r.id not in kept_ids]

        if removed:
            logger.debug(
                "Retention removed %d of %d versions", len(removed), len(ordered)
            )
        return RetentionResult(kept=kept, removed=removed)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"rules": [rule.to_dict() for rule in self.rules]}
