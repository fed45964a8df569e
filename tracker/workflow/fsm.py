"""Raw-status state machine for experiences, using the transitions library.

The persisted status of an experience only changes through explicit action:
- complete: mark done (pending|no -> yes)
- fail:     mark failed (pending|yes -> no)
- reopen:   back to pending (yes|no -> pending)

Time never drives these transitions. An overdue pending experience is only
*displayed* as failed (see status.py); it stays pending here until someone
fires a trigger.

advance() is the single point every raw-status change passes through: it
fires the trigger, logs it under [FSM], and returns the state the machine
reached. The cascade builds its mutations from that returned state, so an
illegal pair raises InvalidTransition before anything is planned.

Usage:
    from tracker.workflow.fsm import ExperienceFSM

    fsm = ExperienceFSM(experience)
    fsm.complete()  # pending -> yes
    fsm.reopen()    # yes -> pending
"""

import logging
from typing import Callable

from transitions import Machine, MachineError

from tracker.lib.types import Experience, RawStatus, parse_status

logger = logging.getLogger(__name__)


# State values must match RawStatus values
STATES = [status.value for status in RawStatus]

# Transitions defined as (trigger, source, dest)
# Each trigger becomes a method on the FSM
TRANSITIONS = [
    {"trigger": "complete", "source": "pending", "dest": "yes"},
    {"trigger": "complete", "source": "no", "dest": "yes"},

    {"trigger": "fail", "source": "pending", "dest": "no"},
    {"trigger": "fail", "source": "yes", "dest": "no"},

    {"trigger": "reopen", "source": "yes", "dest": "pending"},
    {"trigger": "reopen", "source": "no", "dest": "pending"},
]


def _build_trigger_lookup() -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name."""
    lookup: dict[tuple[str, str], str] = {}
    for t in TRANSITIONS:
        key = (t["source"], t["dest"])
        if key not in lookup:
            lookup[key] = t["trigger"]
    return lookup


TRIGGER_FOR = _build_trigger_lookup()


class InvalidTransition(Exception):
    """Raised when a raw-status transition is not allowed."""

    def __init__(self, from_state: str, to_state: str, experience_id: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.experience_id = experience_id
        super().__init__(
            f"Invalid transition: {from_state} -> {to_state}"
            + (f" (experience: {experience_id})" if experience_id else "")
        )


class ExperienceFSM:
    """State machine over one experience's raw status.

    Operates on the status value only; the experience object is not mutated.
    Callers turn the resulting transition into persisted mutations.
    """

    def __init__(
        self,
        experience: Experience,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """Initialize FSM for an experience.

        Args:
            experience: Experience whose current raw status is the initial state
            on_transition: Optional callback(from_state, to_state, trigger) after transitions
        """
        self.experience_id = experience.id
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=experience.status.value,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,
            after_state_change="on_state_change",
        )

    @property
    def raw_status(self) -> RawStatus:
        return parse_status(self.state)

    def on_state_change(self, event) -> None:
        """Callback after any transition."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.debug(f"[FSM] {self.experience_id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)

    def get_available_triggers(self) -> list[str]:
        """Get list of triggers available in current state."""
        return self.machine.get_triggers(self.state)


def advance(
    experience: Experience,
    to_status: RawStatus,
    on_transition: Callable[[str, str, str], None] | None = None,
) -> RawStatus | None:
    """Fire the trigger that moves the experience toward `to_status`.

    Returns:
        The raw status the FSM ended in, or None for a self-transition (no-op)

    Raises:
        InvalidTransition: If no trigger leads from the current status to `to_status`
    """
    current = experience.status.value
    if current == to_status.value:
        logger.debug(f"[FSM] {experience.id}: already {current}, no-op")
        return None

    trigger = TRIGGER_FOR.get((current, to_status.value))
    if trigger is None:
        raise InvalidTransition(current, to_status.value, experience.id)

    fsm = ExperienceFSM(experience, on_transition=on_transition)
    try:
        getattr(fsm, trigger)()
    except MachineError as e:
        raise InvalidTransition(current, to_status.value, experience.id) from e

    if fsm.raw_status != to_status:
        raise InvalidTransition(current, to_status.value, experience.id)
    return fsm.raw_status


def transition(
    experience: Experience,
    to_status: RawStatus,
    on_transition: Callable[[str, str, str], None] | None = None,
) -> str | None:
    """Run the raw-status FSM from the experience's current status to `to_status`.

    Returns:
        The trigger that fired, or None for a self-transition (no-op)

    Raises:
        InvalidTransition: If no trigger leads from the current status to `to_status`
    """
    if advance(experience, to_status, on_transition) is None:
        return None
    return TRIGGER_FOR[(experience.status.value, to_status.value)]


def can_transition(experience: Experience, to_status: RawStatus) -> bool:
    """Check if the experience's raw status may move to `to_status`."""
    if experience.status == to_status:
        return True
    return (experience.status.value, to_status.value) in TRIGGER_FOR
