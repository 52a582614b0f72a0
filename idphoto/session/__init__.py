"""Generation status tracking."""

from .lib import (
    TRANSITIONS,
    GenerationStatus,
    InvalidTransitionError,
    StatusListener,
    StatusMachine,
)

__all__ = [
    "GenerationStatus",
    "InvalidTransitionError",
    "StatusListener",
    "StatusMachine",
    "TRANSITIONS",
]
