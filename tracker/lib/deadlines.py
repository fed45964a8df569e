"""
Deadline calculation and pause time-shifting.

All deadlines are end-of-day (23:59) wall-clock time in the configured civil
timezone, converted to an absolute UTC instant:

    initial kinds: 23:59 on signed_on_date + N days (N from the offsets table)
    monthly:       23:59 on base date + M calendar months, where base date is
                   initial_intake_date when set, else signed_on_date

Pausing shifts both the deadline (by total historical paused seconds) and
"now" (snapped to the pause start while paused), so the remaining time stays
constant while a client is paused.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from tracker.lib.config import TrackerConfig
from tracker.lib.errors import InvalidStateError
from tracker.lib.types import MONTHLY_KIND, Client, Experience, as_utc

END_OF_DAY = time(23, 59, 0)


def local_end_of_day(day: date, config: TrackerConfig) -> datetime:
    """23:59 on `day` in the configured timezone, as an aware UTC instant."""
    local = datetime.combine(day, END_OF_DAY, tzinfo=config.tzinfo)
    return local.astimezone(timezone.utc)


def due_date_for(
    signed_on_date: date,
    kind: str,
    config: TrackerConfig,
    month_number: Optional[int] = None,
    initial_intake_date: Optional[date] = None,
) -> date:
    """Calendar day (in the firm timezone) on which the deadline falls."""
    if kind == MONTHLY_KIND:
        if month_number is None:
            raise InvalidStateError("Monthly experience requires a month_number")
        base = initial_intake_date or signed_on_date
        return base + relativedelta(months=month_number)
    return signed_on_date + timedelta(days=config.day_offset(kind))


def compute_due_at(
    signed_on_date: date,
    kind: str,
    config: TrackerConfig,
    month_number: Optional[int] = None,
    initial_intake_date: Optional[date] = None,
) -> datetime:
    """
    Compute the default deadline for an experience kind.

    Args:
        signed_on_date: Client sign-on date (no time component)
        kind: Initial kind from the offsets table, or "monthly"
        config: Tracker configuration (timezone, offsets)
        month_number: Months after the base date (monthly only)
        initial_intake_date: Optional base date for the monthly series

    Returns:
        Aware UTC datetime for 23:59 local time on the due day

    Raises:
        ConfigError: If the kind has no configured offset
        InvalidStateError: If a monthly kind has no month_number
    """
    day = due_date_for(signed_on_date, kind, config, month_number, initial_intake_date)
    return local_end_of_day(day, config)


def due_at_for(experience: Experience, client: Client, config: TrackerConfig) -> datetime:
    """Deadline for one experience. custom_due_at always wins when set."""
    if experience.custom_due_at is not None:
        return as_utc(experience.custom_due_at)
    return compute_due_at(
        client.signed_on_date,
        experience.kind,
        config,
        month_number=experience.month_number,
        initial_intake_date=client.initial_intake_date,
    )


def effective_due_at(due_at: datetime, paused_total_seconds: int) -> datetime:
    """Shift a deadline by the client's total paused seconds."""
    return as_utc(due_at) + timedelta(seconds=paused_total_seconds)


def effective_now(client: Client, wall_clock_now: datetime) -> datetime:
    """Current instant for a client: frozen at pause start while paused."""
    if client.paused and client.pause_started_at is not None:
        return as_utc(client.pause_started_at)
    return as_utc(wall_clock_now)


def effective_due_for(experience: Experience, client: Client, config: TrackerConfig) -> datetime:
    """Pause-adjusted deadline for one experience."""
    return effective_due_at(due_at_for(experience, client, config), client.paused_total_seconds)


def seconds_remaining(
    experience: Experience,
    client: Client,
    config: TrackerConfig,
    now: datetime,
) -> float:
    """Seconds until the effective deadline (negative once overdue)."""
    due = effective_due_for(experience, client, config)
    return (due - effective_now(client, now)).total_seconds()
