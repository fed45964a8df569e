"""
xt mark - Change an experience's raw status (with auto-fail cascade).
"""

from tracker.lib.config import TrackerConfig
from tracker.lib.errors import InvalidStateError
from tracker.lib.types import MONTHLY_KIND, Client, Experience, RawStatus
from tracker.workflow.cascade import CascadeSession
from tracker.workflow.fsm import InvalidTransition


def resolve_experience(client: Client, ref: str) -> Experience | None:
    """Find an experience by id, initial kind name, or 'monthly:N'."""
    exp = client.find_experience(ref)
    if exp is not None:
        return exp

    if ref.startswith(f"{MONTHLY_KIND}:"):
        try:
            number = int(ref.split(":", 1)[1])
        except ValueError:
            return None
        for e in client.experiences:
            if e.is_monthly and e.month_number == number:
                return e
        return None

    return client.find_kind(ref)


def cmd_mark(args, store, config: TrackerConfig, session: CascadeSession | None = None) -> int:
    """Mark an experience pending, yes or no and persist the cascade."""
    client = store.get_client(args.client)
    if client is None:
        print(f"ERROR: Client '{args.client}' not found")
        return 2

    experience = resolve_experience(client, args.experience)
    if experience is None:
        print(f"ERROR: Experience '{args.experience}' not found for client '{client.name}'")
        return 2

    session = session or CascadeSession(store, config)
    try:
        result = session.change_status(client.id, experience.id, RawStatus(args.status))
    except (InvalidStateError, InvalidTransition) as e:
        print(f"ERROR: {e}")
        return 2

    label = config.label(experience.kind, experience.month_number)
    if result.change.is_noop:
        print(f"{label} already '{args.status}', nothing to do")
        return 0

    print(f"{label} marked as '{args.status}'")
    for mutation in result.change.mutations:
        target = client.find_experience(mutation.experience_id)
        target_label = config.label(target.kind, target.month_number) if target else mutation.experience_id
        outcome = "ok" if mutation.experience_id in result.report.succeeded else "FAILED"
        print(f"  {target_label:<10} -> {mutation.status.value:<8} {outcome}")

    if result.change.cascade_delta.auto_failed:
        print(f"  Auto-failed {len(result.change.cascade_delta.auto_failed)} earlier experience(s)")
    if result.change.cascade_delta.reverted:
        print(f"  Reverted {len(result.change.cascade_delta.reverted)} auto-failed experience(s)")

    if not result.ok:
        for exp_id, error in result.report.failed.items():
            print(f"ERROR: {exp_id}: {error}")
        return 1
    return 0
