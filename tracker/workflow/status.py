"""Derived (presentation) status for experiences.

Maps stored raw status plus time to one of four display states:

    raw yes      -> done, or done_late if completed after the effective deadline
    raw no       -> failed (explicit, durable failure)
    raw pending  -> failed once effective now passes the effective deadline,
                    otherwise pending

The overdue-pending case is display only. Nothing here writes a status back.
"""

from datetime import datetime
from typing import Optional

from tracker.lib.config import TrackerConfig
from tracker.lib.deadlines import effective_due_for, effective_now
from tracker.lib.types import Client, DerivedStatus, Experience, RawStatus, as_utc

# Derived statuses that leave an experience open (live or overdue)
OPEN_STATUSES = (DerivedStatus.PENDING, DerivedStatus.FAILED)
DONE_STATUSES = (DerivedStatus.DONE, DerivedStatus.DONE_LATE)


def derive_status(
    status: RawStatus,
    completed_at: Optional[datetime],
    due_at_effective: datetime,
    now_effective: datetime,
) -> DerivedStatus:
    """Derive the display status. Pure; never fails for valid inputs."""
    if status == RawStatus.YES:
        if completed_at is not None and as_utc(completed_at) > as_utc(due_at_effective):
            return DerivedStatus.DONE_LATE
        return DerivedStatus.DONE

    if status == RawStatus.NO:
        return DerivedStatus.FAILED

    if as_utc(now_effective) > as_utc(due_at_effective):
        return DerivedStatus.FAILED
    return DerivedStatus.PENDING


def derive_for(
    experience: Experience,
    client: Client,
    config: TrackerConfig,
    now: datetime,
) -> DerivedStatus:
    """Derive status for one experience of a client at wall-clock `now`."""
    return derive_status(
        experience.status,
        experience.completed_at,
        effective_due_for(experience, client, config),
        effective_now(client, now),
    )


def derive_all(client: Client, config: TrackerConfig, now: datetime) -> dict[str, DerivedStatus]:
    """Derived status for every experience of a client, keyed by experience id."""
    return {exp.id: derive_for(exp, client, config, now) for exp in client.experiences}


def is_overdue(experience: Experience, derived: DerivedStatus) -> bool:
    """Overdue but still pending in storage (as opposed to explicitly failed)."""
    return derived == DerivedStatus.FAILED and experience.status == RawStatus.PENDING


def is_explicitly_failed(experience: Experience, derived: DerivedStatus) -> bool:
    return derived == DerivedStatus.FAILED and experience.status == RawStatus.NO
