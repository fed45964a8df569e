"""Status derivation, stage resolution and cascade for client experiences.

Entry points:
- derive_status / derive_for: raw status + time -> display status
- resolve_active_stage / resolve_active_month: which experience has the live countdown
- apply_status_change / undo: plan a raw-status change with auto-fail cascade
- CascadeSession: run changes against a Store with undo window bookkeeping
"""

from tracker.workflow.status import (
    derive_status,
    derive_for,
    derive_all,
)
from tracker.workflow.stages import (
    resolve_active_stage,
    resolve_active_month,
    is_active_stage,
    summary_counts,
    ongoing_summary,
)
from tracker.workflow.cascade import (
    AutoFailTracker,
    CascadeSession,
    apply_status_change,
    undo,
)
from tracker.workflow.fsm import InvalidTransition, advance, transition

__all__ = [
    "derive_status",
    "derive_for",
    "derive_all",
    "resolve_active_stage",
    "resolve_active_month",
    "is_active_stage",
    "summary_counts",
    "ongoing_summary",
    "AutoFailTracker",
    "CascadeSession",
    "apply_status_change",
    "undo",
    "InvalidTransition",
    "advance",
    "transition",
]
