"""
Active-stage resolution over a client's experience sequences.

Two sequences exist per client:
- the initial (onboarding) kinds, in the fixed order of the offsets table
- the monthly series, ordered by ascending month_number

In each sequence the active stage is the first experience whose derived
status is pending or failed. Only the active stage shows a live countdown;
later open experiences are "future" and show a static time-until value.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from tracker.lib.config import TrackerConfig
from tracker.lib.deadlines import effective_due_for, effective_now
from tracker.lib.types import Client, DerivedStatus, Experience, RawStatus
from tracker.workflow.status import OPEN_STATUSES, derive_for

DUE_SOON_WINDOW = timedelta(days=7)
VISIBLE_MONTHLY_COUNT = 3


def initial_experiences(client: Client, config: TrackerConfig) -> list[Experience]:
    """Initial-kind experiences in sequence order. Missing kinds are skipped."""
    ordered = []
    for kind in config.kind_order:
        exp = client.find_kind(kind)
        if exp is not None:
            ordered.append(exp)
    return ordered


def monthly_experiences(client: Client) -> list[Experience]:
    """Monthly experiences sorted by month_number ascending."""
    monthly = [e for e in client.experiences if e.is_monthly and e.month_number is not None]
    return sorted(monthly, key=lambda e: e.month_number)


def sequence_for(experience: Experience, client: Client, config: TrackerConfig) -> list[Experience]:
    """The ordered sequence an experience belongs to."""
    if experience.is_monthly:
        return monthly_experiences(client)
    return initial_experiences(client, config)


def _first_open(
    experiences: Iterable[Experience],
    client: Client,
    config: TrackerConfig,
    now: datetime,
) -> Optional[Experience]:
    for exp in experiences:
        if derive_for(exp, client, config, now) in OPEN_STATUSES:
            return exp
    return None


def resolve_active_stage(client: Client, config: TrackerConfig, now: datetime) -> Optional[str]:
    """Active initial kind, or None when every initial experience is done."""
    exp = _first_open(initial_experiences(client, config), client, config, now)
    return exp.kind if exp else None


def resolve_active_month(client: Client, config: TrackerConfig, now: datetime) -> Optional[int]:
    """Active monthly month_number, or None.

    The monthly series does not start until the last onboarding experience
    leaves raw pending, so this returns None while it is still pending.
    """
    last_initial = client.find_kind(config.last_initial_kind)
    if last_initial is not None and last_initial.status == RawStatus.PENDING:
        return None

    exp = _first_open(monthly_experiences(client), client, config, now)
    return exp.month_number if exp else None


def is_active_stage(
    experience: Experience,
    client: Client,
    config: TrackerConfig,
    now: datetime,
) -> bool:
    """Whether this experience is the live stage of its sequence."""
    if experience.is_monthly:
        active = resolve_active_month(client, config, now)
        return active is not None and experience.month_number == active
    return experience.kind == resolve_active_stage(client, config, now)


def is_future(
    experience: Experience,
    client: Client,
    config: TrackerConfig,
    now: datetime,
) -> bool:
    """Whether this experience sits after the active stage (static countdown)."""
    if experience.is_monthly:
        derived = derive_for(experience, client, config, now)
        return derived == DerivedStatus.PENDING and not is_active_stage(
            experience, client, config, now
        )

    order = config.kind_order
    if experience.kind not in order:
        return False
    active = resolve_active_stage(client, config, now)
    active_idx = order.index(active) if active is not None else len(order)
    return order.index(experience.kind) > active_idx


def _nearest_pending_due(experiences: Iterable[Experience], client: Client, config: TrackerConfig) -> Optional[datetime]:
    nearest = None
    for exp in experiences:
        if exp.status != RawStatus.PENDING:
            continue
        due = effective_due_for(exp, client, config)
        if nearest is None or due < nearest:
            nearest = due
    return nearest


def next_active_deadline(client: Client, config: TrackerConfig) -> Optional[datetime]:
    """Nearest effective deadline among raw-pending initial experiences.

    Includes overdue-but-unresolved ones, so the result may be in the past.
    """
    return _nearest_pending_due(initial_experiences(client, config), client, config)


def next_monthly_deadline(client: Client, config: TrackerConfig) -> Optional[datetime]:
    """Nearest effective deadline among raw-pending monthly experiences."""
    return _nearest_pending_due(monthly_experiences(client), client, config)


def visible_monthly_window(
    client: Client,
    config: TrackerConfig,
    now: datetime,
    size: int = VISIBLE_MONTHLY_COUNT,
) -> list[Experience]:
    """Sliding window of monthly experiences to display.

    Starts at the first open monthly experience and shows `size` of them;
    when every monthly experience is resolved, shows the last `size`.
    """
    monthly = monthly_experiences(client)
    for idx, exp in enumerate(monthly):
        if derive_for(exp, client, config, now) in OPEN_STATUSES:
            return monthly[idx:idx + size]
    return monthly[-size:] if monthly else []


@dataclass
class StageSummary:
    """Derived-status counts for one initial kind across clients."""
    pending: int = 0
    done: int = 0
    late: int = 0
    failed: int = 0


@dataclass
class OngoingSummary:
    """Monthly-series health across clients."""
    up_to_date: int = 0
    due_soon: int = 0
    overdue: int = 0
    completion_rate: int = 100
    total_due: int = 0
    total_completed: int = 0


def summary_counts(
    clients: Iterable[Client],
    kind: str,
    config: TrackerConfig,
    now: datetime,
) -> StageSummary:
    """Count derived statuses of one initial kind over non-archived clients.

    A client without a row for the kind counts as pending.
    """
    counts = StageSummary()
    for client in clients:
        if client.is_archived:
            continue
        exp = client.find_kind(kind)
        derived = derive_for(exp, client, config, now) if exp else DerivedStatus.PENDING
        if derived == DerivedStatus.PENDING:
            counts.pending += 1
        elif derived == DerivedStatus.DONE:
            counts.done += 1
        elif derived == DerivedStatus.DONE_LATE:
            counts.late += 1
        else:
            counts.failed += 1
    return counts


def ongoing_summary(clients: Iterable[Client], config: TrackerConfig, now: datetime) -> OngoingSummary:
    """Summarize monthly progress over non-archived clients.

    - up_to_date: clients with at least one monthly experience due and all due ones done
    - due_soon:   clients with a pending monthly experience due within 7 days
    - overdue:    clients with a due monthly experience still raw pending
    """
    summary = OngoingSummary()

    for client in clients:
        if client.is_archived:
            continue
        monthly = monthly_experiences(client)
        if not monthly:
            continue

        now_eff = effective_now(client, now)
        has_any_due = False
        has_overdue = False
        has_due_soon = False
        all_due_done = True

        for exp in monthly:
            due = effective_due_for(exp, client, config)
            is_due = now_eff >= due

            if is_due:
                has_any_due = True
                summary.total_due += 1
                if exp.status == RawStatus.YES:
                    summary.total_completed += 1
                elif exp.status == RawStatus.PENDING:
                    has_overdue = True
                    all_due_done = False
                else:
                    all_due_done = False
            elif exp.status == RawStatus.PENDING and due - now_eff <= DUE_SOON_WINDOW:
                has_due_soon = True

        if has_any_due and all_due_done:
            summary.up_to_date += 1
        if has_overdue:
            summary.overdue += 1
        if has_due_soon:
            summary.due_soon += 1

    if summary.total_due > 0:
        summary.completion_rate = math.floor(summary.total_completed * 100 / summary.total_due + 0.5)
    return summary
