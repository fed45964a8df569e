"""
Countdown formatting and urgency levels for CLI display.
"""

import math
from datetime import datetime
from zoneinfo import ZoneInfo

from tracker.lib.types import MONTHLY_KIND

HOUR = 3600
DAY = 86400

# (red threshold, yellow threshold) in seconds; None means no yellow band
URGENCY_THRESHOLDS = {
    "hour24": (8 * HOUR, None),
    MONTHLY_KIND: (3 * DAY, 7 * DAY),
}
DEFAULT_URGENCY_THRESHOLDS = (2 * DAY, 5 * DAY)


def _split(total_seconds: float) -> tuple[int, int, int, int]:
    total = abs(math.floor(total_seconds))
    return total // DAY, (total % DAY) // HOUR, (total % HOUR) // 60, total % 60


def format_duration(total_seconds: float) -> str:
    """Format seconds as e.g. '2d 5h 12m 34s'. Sign is ignored."""
    days, hours, minutes, seconds = _split(total_seconds)
    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0 or days > 0:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


def format_compact(total_seconds: float) -> str:
    """Two most significant units, e.g. '6d 4h', '4h 12m', '-41m'."""
    prefix = "-" if total_seconds < 0 else ""
    days, hours, minutes, _ = _split(total_seconds)
    if days > 0:
        return f"{prefix}{days}d {hours}h"
    if hours > 0:
        return f"{prefix}{hours}h {minutes}m"
    return f"{prefix}{minutes}m"


def format_countdown(seconds_remaining: float) -> str:
    """Live countdown text; overdue values are shown negative with (LATE)."""
    if seconds_remaining < 0:
        return f"-{format_duration(seconds_remaining)} (LATE)"
    return format_duration(seconds_remaining)


def format_local(instant: datetime, tz: ZoneInfo) -> str:
    """Instant in the firm timezone, e.g. '2026-02-25 11:59 PM PST'."""
    return instant.astimezone(tz).strftime("%Y-%m-%d %I:%M %p %Z")


def urgency(kind: str, seconds_remaining: float) -> str:
    """Urgency level ('normal', 'yellow' or 'red') for a pending countdown."""
    if seconds_remaining <= 0:
        return "red"
    red, yellow = URGENCY_THRESHOLDS.get(kind, DEFAULT_URGENCY_THRESHOLDS)
    if seconds_remaining <= red:
        return "red"
    if yellow is not None and seconds_remaining <= yellow:
        return "yellow"
    return "normal"
