"""
Pause/resume mutations for a client's timers.

These are the only two legal mutations of the pause fields. Each returns a
ClientMutation carrying all three fields so they are always written together.
"""

import logging
import math
from datetime import datetime

from tracker.lib.errors import InvalidStateError
from tracker.lib.types import Client, ClientMutation, as_utc

logger = logging.getLogger(__name__)


def pause(client: Client, now: datetime) -> ClientMutation:
    """Freeze a client's timers at `now`.

    Raises:
        InvalidStateError: If the client is already paused
    """
    if client.paused:
        raise InvalidStateError("Client is already paused", client.id)

    logger.info(f"[PAUSE] {client.id}: paused at {as_utc(now).isoformat()}")
    return ClientMutation(
        client_id=client.id,
        paused=True,
        pause_started_at=as_utc(now),
        paused_total_seconds=client.paused_total_seconds,
    )


def resume(client: Client, now: datetime) -> ClientMutation:
    """Resume a paused client, folding the pause into paused_total_seconds.

    Raises:
        InvalidStateError: If the client is not paused or has no pause start
    """
    if not client.paused:
        raise InvalidStateError("Client is not paused", client.id)
    if client.pause_started_at is None:
        raise InvalidStateError("Paused client has no pause_started_at", client.id)

    elapsed = (as_utc(now) - as_utc(client.pause_started_at)).total_seconds()
    # Clock skew must not make the total go backwards
    paused_seconds = max(0, math.floor(elapsed))
    new_total = client.paused_total_seconds + paused_seconds

    logger.info(f"[PAUSE] {client.id}: resumed after {paused_seconds}s (total {new_total}s)")
    return ClientMutation(
        client_id=client.id,
        paused=False,
        pause_started_at=None,
        paused_total_seconds=new_total,
    )


def toggle_pause(client: Client, now: datetime) -> ClientMutation:
    """Pause a running client or resume a paused one."""
    if client.paused:
        return resume(client, now)
    return pause(client, now)


def apply_client_mutation(client: Client, mutation: ClientMutation) -> None:
    """Apply a pause mutation to an in-memory client."""
    if mutation.client_id != client.id:
        raise InvalidStateError(
            f"Mutation for {mutation.client_id} applied to another client", client.id
        )
    client.paused = mutation.paused
    client.pause_started_at = mutation.pause_started_at
    client.paused_total_seconds = mutation.paused_total_seconds
