"""Auto-fail cascade and undo protocol for experience status changes.

When an experience is marked done while earlier experiences in its sequence
are still pending, those earlier experiences are force-failed. The
AutoFailTracker remembers which ones, so that:

- changing the trigger away from done reverts exactly those experiences
  (the ones still failed) back to pending, and
- a time-limited undo restores every touched experience to its exact prior
  (status, completed_at) and restores the tracker entry as it was.

Planning functions (apply_status_change, undo) are pure with respect to
storage: they return mutations for the caller to persist. CascadeSession
wires them to a Store with per-id success/failure reporting.

Usage:
    from tracker.workflow.cascade import AutoFailTracker, apply_status_change

    tracker = AutoFailTracker()
    change = apply_status_change(client, exp_id, RawStatus.YES, now, tracker)
    # persist change.mutations, then:
    change.cascade_delta.apply(tracker)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from tracker.lib.config import TrackerConfig
from tracker.lib.errors import InvalidStateError, UndoExpiredError
from tracker.lib.store import MutationReport, Store, apply_client_mutations, apply_mutations
from tracker.lib.pause import pause, resume
from tracker.lib.types import (
    Client,
    ClientMutation,
    Experience,
    Mutation,
    RawStatus,
    as_utc,
)
from tracker.workflow.fsm import advance
from tracker.workflow.stages import sequence_for

logger = logging.getLogger(__name__)


class AutoFailTracker:
    """Transient map of trigger experience id -> ids auto-failed by it.

    Owned by the caller (session or request context). Keyed by experience id,
    so cascades on different clients never interfere.
    """

    def __init__(self):
        self._entries: dict[str, list[str]] = {}

    def track(self, trigger_id: str, failed_ids: list[str]) -> None:
        """Record auto-fails for a trigger. Empty lists are not recorded."""
        if failed_ids:
            self._entries[trigger_id] = list(failed_ids)

    def get(self, trigger_id: str) -> list[str]:
        return list(self._entries.get(trigger_id, []))

    def entry(self, trigger_id: str) -> Optional[list[str]]:
        """Tracked ids for a trigger, or None if there is no entry."""
        ids = self._entries.get(trigger_id)
        return list(ids) if ids is not None else None

    def clear(self, trigger_id: str) -> None:
        self._entries.pop(trigger_id, None)

    def set_entry(self, trigger_id: str, ids: Optional[list[str]]) -> None:
        """Replace the entry for a trigger; None or empty clears it."""
        if ids:
            self._entries[trigger_id] = list(ids)
        else:
            self._entries.pop(trigger_id, None)

    def __contains__(self, trigger_id: str) -> bool:
        return trigger_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class ExperienceSnapshot:
    """Pre-change (status, completed_at) of one experience."""
    experience_id: str
    status: RawStatus
    completed_at: Optional[datetime] = None

    @classmethod
    def of(cls, experience: Experience) -> "ExperienceSnapshot":
        return cls(experience.id, experience.status, experience.completed_at)


@dataclass
class UndoSnapshot:
    """Everything needed to reverse one status-change operation."""
    client_id: str
    trigger_id: str
    experiences: list[ExperienceSnapshot]
    prior_cascade: Optional[list[str]] = None  # tracker entry for trigger before the change

    @property
    def experience_ids(self) -> list[str]:
        return [s.experience_id for s in self.experiences]


@dataclass
class CascadeDelta:
    """Change to the tracker entry of one trigger."""
    trigger_id: str
    entry: Optional[list[str]]  # entry after the operation; None clears it
    auto_failed: list[str] = field(default_factory=list)
    reverted: list[str] = field(default_factory=list)

    def apply(self, tracker: AutoFailTracker) -> None:
        tracker.set_entry(self.trigger_id, self.entry)


@dataclass
class StatusChange:
    """Planned outcome of a status change or undo."""
    client_id: str
    trigger_id: str
    mutations: list[Mutation]
    cascade_delta: CascadeDelta
    snapshot: UndoSnapshot
    missing_ids: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.mutations


def earlier_pending(experience: Experience, client: Client, config: TrackerConfig) -> list[Experience]:
    """Raw-pending experiences strictly before `experience` in its sequence."""
    if experience.is_monthly:
        if experience.month_number is None:
            raise InvalidStateError("Monthly experience without month_number", experience.id)
        return [
            e for e in sequence_for(experience, client, config)
            if e.month_number < experience.month_number and e.status == RawStatus.PENDING
        ]

    order = config.kind_order
    if experience.kind not in order:
        return []
    this_idx = order.index(experience.kind)
    return [
        e for e in sequence_for(experience, client, config)
        if order.index(e.kind) < this_idx and e.status == RawStatus.PENDING
    ]


def apply_status_change(
    client: Client,
    experience_id: str,
    new_status: RawStatus,
    now: datetime,
    tracker: AutoFailTracker,
    config: TrackerConfig,
) -> StatusChange:
    """
    Plan a raw-status change with its cascade side effects.

    Args:
        client: Client with its current experiences
        experience_id: The experience being changed (the trigger)
        new_status: Requested raw status
        now: Wall-clock instant used as completed_at when marking done
        tracker: Cascade tracker consulted for reverts (not modified)
        config: Tracker configuration (sequence order)

    Returns:
        StatusChange with mutations to persist, the tracker delta and an undo snapshot

    Raises:
        InvalidStateError: If the experience does not belong to the client
        InvalidTransition: If the FSM cannot move the experience to new_status
    """
    experience = client.find_experience(experience_id)
    if experience is None:
        raise InvalidStateError(f"Experience not found on client {client.id}", experience_id)

    prior_entry = tracker.entry(experience_id)
    snapshots = [ExperienceSnapshot.of(experience)]
    mutations: list[Mutation] = []
    missing: list[str] = []
    delta = CascadeDelta(trigger_id=experience_id, entry=prior_entry)

    reached = advance(experience, new_status)
    if reached is None:
        return StatusChange(
            client_id=client.id,
            trigger_id=experience_id,
            mutations=[],
            cascade_delta=delta,
            snapshot=UndoSnapshot(client.id, experience_id, snapshots, prior_entry),
        )

    if reached == RawStatus.YES:
        mutations.append(Mutation(experience_id, RawStatus.YES, as_utc(now)))

        to_fail = earlier_pending(experience, client, config)
        for exp in to_fail:
            snapshots.append(ExperienceSnapshot.of(exp))
            mutations.append(Mutation(exp.id, RawStatus.NO, None))

        failed_ids = [exp.id for exp in to_fail]
        delta.auto_failed = failed_ids
        delta.entry = failed_ids or None
        if failed_ids:
            logger.info(
                f"[CASCADE] {experience_id}: auto-failing {len(failed_ids)} earlier "
                f"experience(s): {', '.join(failed_ids)}"
            )
    else:
        mutations.append(Mutation(experience_id, reached, None))

        if experience.status == RawStatus.YES:
            for failed_id in prior_entry or []:
                target = client.find_experience(failed_id)
                if target is None:
                    missing.append(failed_id)
                    continue
                # Only revert ones the cascade left failed
                if target.status != RawStatus.NO:
                    continue
                snapshots.append(ExperienceSnapshot.of(target))
                mutations.append(Mutation(target.id, RawStatus.PENDING, None))
                delta.reverted.append(target.id)

            delta.entry = None
            if delta.reverted:
                logger.info(
                    f"[CASCADE] {experience_id}: reverting {len(delta.reverted)} "
                    f"auto-failed experience(s) to pending"
                )

    if missing:
        logger.warning(
            f"[CASCADE] {experience_id}: tracked experience(s) no longer present: {', '.join(missing)}"
        )

    return StatusChange(
        client_id=client.id,
        trigger_id=experience_id,
        mutations=mutations,
        cascade_delta=delta,
        snapshot=UndoSnapshot(client.id, experience_id, snapshots, prior_entry),
        missing_ids=missing,
    )


def undo(snapshot: UndoSnapshot, client: Client, tracker: AutoFailTracker) -> StatusChange:
    """
    Plan the reversal of a previous status change.

    Restores every snapshotted experience to its exact prior status and
    completed_at, and restores the trigger's tracker entry. The returned
    StatusChange carries its own snapshot, so an undo can itself be undone.

    Snapshot ids no longer present on the client are reported in
    missing_ids and dropped from the restored tracker entry.
    """
    if snapshot.client_id != client.id:
        raise InvalidStateError(
            f"Undo snapshot for client {snapshot.client_id} applied to another client", client.id
        )

    current_snapshots = []
    mutations = []
    missing = []

    for snap in snapshot.experiences:
        exp = client.find_experience(snap.experience_id)
        if exp is None:
            missing.append(snap.experience_id)
            continue
        current_snapshots.append(ExperienceSnapshot.of(exp))
        mutations.append(Mutation(snap.experience_id, snap.status, snap.completed_at))

    restored_entry = None
    if snapshot.prior_cascade:
        restored_entry = [i for i in snapshot.prior_cascade if client.find_experience(i) is not None]
        missing.extend(i for i in snapshot.prior_cascade if i not in restored_entry and i not in missing)

    if missing:
        logger.warning(
            f"[CASCADE] undo {snapshot.trigger_id}: experience(s) no longer present: {', '.join(missing)}"
        )
    logger.info(f"[CASCADE] undo {snapshot.trigger_id}: restoring {len(mutations)} experience(s)")

    return StatusChange(
        client_id=client.id,
        trigger_id=snapshot.trigger_id,
        mutations=mutations,
        cascade_delta=CascadeDelta(trigger_id=snapshot.trigger_id, entry=restored_entry or None),
        snapshot=UndoSnapshot(
            client.id,
            snapshot.trigger_id,
            current_snapshots,
            tracker.entry(snapshot.trigger_id),
        ),
        missing_ids=missing,
    )


def apply_to_client(client: Client, mutations: list[Mutation]) -> None:
    """Apply mutations to an in-memory client (optimistic local update)."""
    for mutation in mutations:
        exp = client.find_experience(mutation.experience_id)
        if exp is None:
            continue
        exp.status = mutation.status
        exp.completed_at = mutation.completed_at


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionResult:
    """Outcome of a persisted session operation."""
    change: StatusChange
    report: MutationReport

    @property
    def ok(self) -> bool:
        return self.report.ok


@dataclass
class _UndoEntry:
    snapshot: UndoSnapshot
    expires_at: datetime


class CascadeSession:
    """Runs status changes against a store with cascade tracking and undo.

    One session per caller context. Only the latest operation per client is
    undoable, and only within the configured undo window.
    """

    def __init__(
        self,
        store: Store,
        config: TrackerConfig,
        tracker: AutoFailTracker | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.config = config
        self.tracker = tracker if tracker is not None else AutoFailTracker()
        self.clock = clock or _utcnow
        self._undo: dict[str, _UndoEntry] = {}

    def _load_client(self, client_id: str) -> Client:
        client = self.store.get_client(client_id)
        if client is None:
            raise InvalidStateError("Client not found", client_id)
        return client

    def _persist(self, change: StatusChange) -> SessionResult:
        report = apply_mutations(self.store, change.mutations)
        change.cascade_delta.apply(self.tracker)
        if not change.is_noop:
            self._undo[change.client_id] = _UndoEntry(
                snapshot=change.snapshot,
                expires_at=self.clock() + timedelta(seconds=self.config.undo_window_seconds),
            )
        if not report.ok:
            logger.warning(
                f"[CASCADE] {change.trigger_id}: {len(report.failed)} write(s) failed: "
                f"{', '.join(report.failed)}"
            )
        return SessionResult(change=change, report=report)

    def change_status(self, client_id: str, experience_id: str, new_status: RawStatus) -> SessionResult:
        """Change an experience's raw status, cascading and persisting the result."""
        client = self._load_client(client_id)
        change = apply_status_change(
            client, experience_id, new_status, self.clock(), self.tracker, self.config
        )
        return self._persist(change)

    def can_undo(self, client_id: str) -> bool:
        entry = self._undo.get(client_id)
        return entry is not None and self.clock() <= entry.expires_at

    def undo_last(self, client_id: str) -> SessionResult:
        """Undo the latest operation for a client within the undo window.

        Raises:
            UndoExpiredError: If nothing is undoable or the window has elapsed
        """
        entry = self._undo.pop(client_id, None)
        if entry is None:
            raise UndoExpiredError("Nothing to undo", client_id)
        if self.clock() > entry.expires_at:
            raise UndoExpiredError("Undo window has elapsed", client_id)

        client = self._load_client(client_id)
        change = undo(entry.snapshot, client, self.tracker)
        return self._persist(change)

    def pause_client(self, client_id: str) -> tuple[ClientMutation, MutationReport]:
        client = self._load_client(client_id)
        mutation = pause(client, self.clock())
        return mutation, apply_client_mutations(self.store, [mutation])

    def resume_client(self, client_id: str) -> tuple[ClientMutation, MutationReport]:
        client = self._load_client(client_id)
        mutation = resume(client, self.clock())
        return mutation, apply_client_mutations(self.store, [mutation])
