"""
Shared data types for the tracker.

This module contains the entity dataclasses and status enums used across
the engine, the store and the CLI, to avoid circular imports.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

MONTHLY_KIND = "monthly"


class RawStatus(Enum):
    """Persisted status of an experience. Only changed by explicit action."""

    PENDING = "pending"
    YES = "yes"
    NO = "no"


class DerivedStatus(Enum):
    """Presentation status derived from raw status plus time."""

    PENDING = "pending"
    DONE = "done"
    DONE_LATE = "done_late"
    FAILED = "failed"


def parse_status(status_str: str | None) -> RawStatus | None:
    """Parse a raw status string into RawStatus.

    Returns None if status is unknown.
    """
    if status_str is None:
        return None
    for status in RawStatus:
        if status.value == status_str:
            return status
    return None


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize an instant to an aware UTC datetime. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class Experience:
    """One tracked time-bound obligation belonging to a client."""
    id: str
    client_id: str
    kind: str  # initial kind from the offsets table, or "monthly"
    status: RawStatus = RawStatus.PENDING
    month_number: Optional[int] = None  # monthly only
    completed_at: Optional[datetime] = None  # only when status is YES
    custom_due_at: Optional[datetime] = None  # overrides computed deadline

    @property
    def is_monthly(self) -> bool:
        return self.kind == MONTHLY_KIND


@dataclass
class Client:
    """One tracked subject and its experiences."""
    id: str
    name: str
    signed_on_date: date
    initial_intake_date: Optional[date] = None
    paused: bool = False
    pause_started_at: Optional[datetime] = None
    paused_total_seconds: int = 0
    is_archived: bool = False
    experiences: list[Experience] = field(default_factory=list)

    def find_experience(self, experience_id: str) -> Experience | None:
        for exp in self.experiences:
            if exp.id == experience_id:
                return exp
        return None

    def find_kind(self, kind: str) -> Experience | None:
        """First experience of an initial kind, or None if the row is missing."""
        for exp in self.experiences:
            if exp.kind == kind:
                return exp
        return None


@dataclass
class Mutation:
    """Field-level change to one experience that the caller must persist."""
    experience_id: str
    status: RawStatus
    completed_at: Optional[datetime] = None

    def to_fields(self) -> dict:
        return {
            "status": self.status.value,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class ClientMutation:
    """Pause-field change to one client. The three fields always move together."""
    client_id: str
    paused: bool
    pause_started_at: Optional[datetime]
    paused_total_seconds: int

    def to_fields(self) -> dict:
        return {
            "paused": self.paused,
            "pause_started_at": self.pause_started_at.isoformat() if self.pause_started_at else None,
            "paused_total_seconds": self.paused_total_seconds,
        }


def find_inconsistencies(client: Client, month_numbers: Optional[range] = None) -> list[str]:
    """Report invariant violations on a client without altering it.

    When `month_numbers` is given, monthly experiences outside it are reported.

    Returns a list of human-readable issues (empty if consistent).
    """
    issues = []
    if client.paused and client.pause_started_at is None:
        issues.append(f"client {client.id}: paused without pause_started_at")
    if not client.paused and client.pause_started_at is not None:
        issues.append(f"client {client.id}: pause_started_at set while not paused")
    if client.paused_total_seconds < 0:
        issues.append(f"client {client.id}: negative paused_total_seconds")

    for exp in client.experiences:
        if exp.completed_at is not None and exp.status != RawStatus.YES:
            issues.append(
                f"experience {exp.id}: completed_at present with status '{exp.status.value}'"
            )
        if exp.is_monthly and exp.month_number is None:
            issues.append(f"experience {exp.id}: monthly without month_number")
        if (
            exp.is_monthly
            and exp.month_number is not None
            and month_numbers is not None
            and exp.month_number not in month_numbers
        ):
            issues.append(
                f"experience {exp.id}: month_number {exp.month_number} outside "
                f"{month_numbers.start}..{month_numbers.stop - 1}"
            )
        if not exp.is_monthly and exp.month_number is not None:
            issues.append(f"experience {exp.id}: month_number on kind '{exp.kind}'")
    return issues
