"""
xt add - Onboard a client with its full experience set.
"""

from datetime import date

from tracker.lib.config import TrackerConfig
from tracker.lib.errors import StoreError
from tracker.lib.store import new_client


def cmd_add(args, store, config: TrackerConfig) -> int:
    """Create a client and all of its experiences."""
    try:
        signed_on = date.fromisoformat(args.signed_on)
        intake = date.fromisoformat(args.intake) if args.intake else None
    except ValueError as e:
        print(f"ERROR: Invalid date: {e}")
        return 2

    client = new_client(args.name, signed_on, config, initial_intake_date=intake)
    try:
        store.add_client(client)
    except StoreError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Added client '{client.name}' [{client.id}]")
    print(f"  {len(client.experiences)} experiences created")
    return 0
