"""
xt status - Show deadlines, derived statuses and countdowns per client.
"""

from datetime import datetime, timezone

from tracker.lib.config import TrackerConfig
from tracker.lib.deadlines import effective_due_for, seconds_remaining
from tracker.lib.timefmt import format_compact, format_countdown, format_local, urgency
from tracker.lib.types import Client, DerivedStatus, Experience, RawStatus, find_inconsistencies
from tracker.workflow.stages import (
    initial_experiences,
    is_active_stage,
    is_future,
    next_active_deadline,
    visible_monthly_window,
)
from tracker.workflow.status import derive_for

STATUS_SYMBOLS = {
    DerivedStatus.PENDING: " ",
    DerivedStatus.DONE: "*",
    DerivedStatus.DONE_LATE: "~",
    DerivedStatus.FAILED: "x",
}


def parse_now(value: str | None) -> datetime:
    """Parse --now (ISO 8601) or return the current UTC instant."""
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _countdown(exp: Experience, client: Client, config: TrackerConfig, now: datetime, derived: DerivedStatus) -> str:
    if derived not in (DerivedStatus.PENDING, DerivedStatus.FAILED) or exp.status != RawStatus.PENDING:
        return ""
    remaining = seconds_remaining(exp, client, config, now)
    if is_active_stage(exp, client, config, now):
        return f"{format_countdown(remaining)} [{urgency(exp.kind, remaining)}]"
    if is_future(exp, client, config, now) or remaining < 0:
        return format_compact(remaining)
    return ""


def _print_row(exp: Experience, client: Client, config: TrackerConfig, now: datetime) -> None:
    derived = derive_for(exp, client, config, now)
    due = format_local(effective_due_for(exp, client, config), config.tzinfo)
    marker = ">" if is_active_stage(exp, client, config, now) else " "
    label = config.label(exp.kind, exp.month_number)
    symbol = STATUS_SYMBOLS[derived]
    countdown = _countdown(exp, client, config, now, derived)
    print(f"  {marker} [{symbol}] {label:<10} {derived.value:<10} {due:<28} {countdown}")


def print_client(client: Client, config: TrackerConfig, now: datetime) -> None:
    flags = []
    if client.paused:
        flags.append("PAUSED")
    if client.is_archived:
        flags.append("archived")
    flag_str = f" ({', '.join(flags)})" if flags else ""

    print(f"{client.name} [{client.id}]{flag_str}")
    print(f"  Signed on: {client.signed_on_date.isoformat()}", end="")
    if client.initial_intake_date:
        print(f"   Intake: {client.initial_intake_date.isoformat()}", end="")
    print()

    for issue in find_inconsistencies(client, config.month_numbers):
        print(f"  [WARN] {issue}")

    for exp in initial_experiences(client, config):
        _print_row(exp, client, config, now)

    window = visible_monthly_window(client, config, now)
    if window:
        print("  Monthly:")
        for exp in window:
            _print_row(exp, client, config, now)

    nearest = next_active_deadline(client, config)
    if nearest is not None:
        print(f"  Next deadline: {format_local(nearest, config.tzinfo)}")
    print()


def cmd_status(args, store, config: TrackerConfig) -> int:
    """Show status of one client or all non-archived clients."""
    try:
        now = parse_now(getattr(args, 'now', None))
    except ValueError as e:
        print(f"ERROR: Invalid --now value: {e}")
        return 2

    if getattr(args, 'client', None):
        client = store.get_client(args.client)
        if client is None:
            print(f"ERROR: Client '{args.client}' not found")
            return 2
        clients = [client]
    else:
        clients = [c for c in store.list_clients() if not c.is_archived or getattr(args, 'all', False)]

    if not clients:
        print("Clients: none")
        return 0

    for client in sorted(clients, key=lambda c: c.name.lower()):
        print_client(client, config, now)
    return 0
