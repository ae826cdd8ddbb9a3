"""Tests for size and time formatting."""

from __future__ import annotations

import pytest

from docvault.formatting import format_file_size, format_relative_time, format_timestamp

SECOND = 1000
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR


class TestFormatFileSize:
    """Tests for format_file_size."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "0 B"),
            (512, "512 B"),
            (1023, "1023 B"),
            (1024, "1.00 KB"),
            (2048, "2.00 KB"),
            (1536, "1.50 KB"),
            (1024 * 1024, "1.00 MB"),
            (5 * 1024 * 1024 + 1024 * 512, "5.50 MB"),
        ],
    )
    def test_units(self, size: int, expected: str) -> None:
        """Test each unit boundary."""
        assert format_file_size(size) == expected


class TestFormatRelativeTime:
    """Tests for format_relative_time."""

    @pytest.mark.parametrize(
        ("elapsed", "expected"),
        [
            (0, "0 seconds ago"),
            (SECOND, "1 second ago"),
            (45 * SECOND, "45 seconds ago"),
            (90 * SECOND, "1 minute ago"),
            (5 * MINUTE, "5 minutes ago"),
            (HOUR, "1 hour ago"),
            (23 * HOUR, "23 hours ago"),
            (DAY, "1 day ago"),
            (29 * DAY, "29 days ago"),
            (30 * DAY, "1 month ago"),
            (200 * DAY, "6 months ago"),
            (365 * DAY, "1 year ago"),
            (800 * DAY, "2 years ago"),
        ],
    )
    def test_largest_unit(self, elapsed: int, expected: str) -> None:
        """Test that the largest whole unit is used."""
        now = 1_700_000_000_000

        assert format_relative_time(now - elapsed, now_ms=now) == expected

    def test_future_clamps_to_zero(self) -> None:
        """Test that timestamps in the future read as just now."""
        assert format_relative_time(5000, now_ms=1000) == "0 seconds ago"


class TestFormatTimestamp:
    """Tests for format_timestamp."""

    def test_layout(self) -> None:
        """Test the date and time layout."""
        text = format_timestamp(1_700_000_000_000)

        assert len(text) == 19
        assert text[4] == "-" and text[10] == " " and text[13] == ":"
