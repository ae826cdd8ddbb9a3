"""Human-readable sizes and times."""

from __future__ import annotations

import time
from datetime import datetime


def format_file_size(size: int) -> str:
    """Format a byte count.

    Example:
        >>> format_file_size(512)
        '512 B'
        >>> format_file_size(2048)
        '2.00 KB'
    """
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def format_relative_time(timestamp_ms: int, now_ms: int | None = None) -> str:
    """Describe how long ago ``timestamp_ms`` was, in the largest whole unit.

    Months are 30 days and years 365 days.

    Example:
        >>> format_relative_time(0, now_ms=90_000)
        '1 minute ago'
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    seconds = max(0, (now_ms - timestamp_ms) // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    for value, unit in (
        (days // 365, "year"),
        (days // 30, "month"),
        (days, "day"),
        (hours, "hour"),
        (minutes, "minute"),
    ):
        if value > 0:
            return f"{value} {unit}{'s' if value != 1 else ''} ago"
    return f"{seconds} second{'s' if seconds != 1 else ''} ago"


def format_timestamp(timestamp_ms: int) -> str:
    """Local date and time, e.g. ``2024-06-10 14:03:22``."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
