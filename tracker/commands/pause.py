"""
xt pause/resume - Freeze or resume a client's timers.
"""

from tracker.lib.config import TrackerConfig
from tracker.lib.errors import InvalidStateError
from tracker.lib.timefmt import format_duration
from tracker.workflow.cascade import CascadeSession


def _run(args, store, config: TrackerConfig, resume: bool) -> int:
    session = CascadeSession(store, config)
    try:
        if resume:
            mutation, report = session.resume_client(args.client)
        else:
            mutation, report = session.pause_client(args.client)
    except InvalidStateError as e:
        print(f"ERROR: {e}")
        return 2

    if not report.ok:
        for client_id, error in report.failed.items():
            print(f"ERROR: {client_id}: {error}")
        return 1

    if resume:
        print(f"Resumed client '{args.client}' (total paused: {format_duration(mutation.paused_total_seconds)})")
    else:
        print(f"Paused client '{args.client}'")
    return 0


def cmd_pause(args, store, config: TrackerConfig) -> int:
    """Pause a client's timers."""
    return _run(args, store, config, resume=False)


def cmd_resume(args, store, config: TrackerConfig) -> int:
    """Resume a client's timers."""
    return _run(args, store, config, resume=True)
