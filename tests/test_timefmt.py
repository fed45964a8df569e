"""Tests for tracker.lib.timefmt module."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from tracker.lib.timefmt import (
    DAY,
    HOUR,
    format_compact,
    format_countdown,
    format_duration,
    format_local,
    urgency,
)


class TestFormatDuration:
    """Tests for duration formatting."""

    def test_seconds_only(self):
        """Short spans show minutes and seconds."""
        assert format_duration(0) == "0m 0s"
        assert format_duration(59) == "0m 59s"

    def test_hours(self):
        """Hours appear once the span passes an hour."""
        assert format_duration(3661) == "1h 1m 1s"

    def test_days_always_show_hours(self):
        """Day spans always include the hour field."""
        assert format_duration(DAY) == "1d 0h 0m 0s"
        assert format_duration(2 * DAY + 5 * HOUR + 12 * 60 + 34) == "2d 5h 12m 34s"

    def test_fractional_seconds_floored(self):
        """Partial seconds are dropped."""
        assert format_duration(61.9) == "1m 1s"


class TestFormatCountdown:
    """Tests for live countdown text."""

    def test_positive(self):
        """Time left is shown as a countdown."""
        assert format_countdown(90) == "1m 30s"

    def test_overdue(self):
        """Negative spans are marked late."""
        assert format_countdown(-125) == "-2m 5s (LATE)"

    def test_compact(self):
        """Compact form drops the smaller units."""
        assert format_compact(6 * DAY + 4 * HOUR + 59) == "6d 4h"
        assert format_compact(4 * HOUR + 12 * 60) == "4h 12m"
        assert format_compact(-41 * 60) == "-41m"


class TestFormatLocal:
    """Tests for local instant formatting."""

    def test_los_angeles(self):
        """Instants render in the configured zone."""
        instant = datetime(2026, 2, 26, 7, 59, tzinfo=timezone.utc)
        assert format_local(instant, ZoneInfo("America/Los_Angeles")) == "2026-02-25 11:59 PM PST"


class TestUrgency:
    """Tests for urgency thresholds."""

    @pytest.mark.parametrize("kind,seconds,expected", [
        ("hour24", 8 * HOUR, "red"),
        ("hour24", 9 * HOUR, "normal"),
        ("day10", 2 * DAY, "red"),
        ("day10", 3 * DAY, "yellow"),
        ("day30", 6 * DAY, "normal"),
        ("monthly", 3 * DAY, "red"),
        ("monthly", 5 * DAY, "yellow"),
        ("monthly", 8 * DAY, "normal"),
        ("day10", 0, "red"),
        ("monthly", -60, "red"),
    ])
    def test_levels(self, kind, seconds, expected):
        """Urgency thresholds depend on the kind."""
        assert urgency(kind, seconds) == expected
