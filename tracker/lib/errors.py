"""
Error taxonomy for the tracker.

Configuration errors are fatal at startup. Invalid-state errors are reported,
never coerced. Store errors are per-id and never trigger retries or rollback.
"""


class TrackerError(Exception):
    """Base exception for all tracker errors."""
    pass


class ConfigError(TrackerError):
    """Invalid or unrecognized configuration (timezone, offsets table, kind)."""
    pass


class InvalidStateError(TrackerError):
    """Entity state violates an invariant or an operation is illegal for it."""

    def __init__(self, message: str, entity_id: str = ""):
        self.entity_id = entity_id
        super().__init__(message + (f" ({entity_id})" if entity_id else ""))


class UndoExpiredError(InvalidStateError):
    """No undoable operation is available within the undo window."""
    pass


class StoreError(TrackerError):
    """A single persistence write failed."""

    def __init__(self, entity_id: str, message: str):
        self.entity_id = entity_id
        super().__init__(f"[{entity_id}] {message}")
