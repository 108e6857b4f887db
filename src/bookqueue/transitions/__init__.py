"""Reading-list lifecycle transitions."""

from .engine import (
    ALLOWED_TRANSITIONS,
    StatusTransitionEngine,
    Transition,
    TransitionOutcome,
    check_transition,
)
from .zones import DROP_TRANSITIONS, DropZone, QueueOrder, transition_for_drop

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DROP_TRANSITIONS",
    "DropZone",
    "QueueOrder",
    "StatusTransitionEngine",
    "Transition",
    "TransitionOutcome",
    "check_transition",
    "transition_for_drop",
]
