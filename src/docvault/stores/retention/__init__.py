"""Retention of version records.

Example:
    >>> from docvault.stores.retention import RetentionConfig, RetentionPolicy
    >>>
    >>> policy = RetentionPolicy.from_config(RetentionConfig(max_count=20, max_age_days=90))
    >>> result = policy.apply(series.records, now_ms)
"""

from docvault.stores.retention.base import (
    DAY_MS,
    RetentionConfig,
    RetentionContext,
    RetentionResult,
    RetentionRule,
)
from docvault.stores.retention.policies import (
    AgeCapRule,
    CountCapRule,
    RetentionPolicy,
)

__all__ = [
    "DAY_MS",
    "RetentionConfig",
    "RetentionContext",
    "RetentionResult",
    "RetentionRule",
    "AgeCapRule",
    "CountCapRule",
    "RetentionPolicy",
]
