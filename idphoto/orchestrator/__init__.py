"""Generation orchestrator.

Provides the Orchestrator class that wires quota admission, the retrying
generator and the status machine into user-facing actions.
"""

from .lib import (
    GenerationKind,
    GenerationSession,
    InvalidImageError,
    NoSourceImageError,
    Orchestrator,
    SessionBusyError,
    SessionSnapshot,
)

__all__ = [
    "Orchestrator",
    "GenerationKind",
    "GenerationSession",
    "SessionSnapshot",
    # Exceptions
    "SessionBusyError",
    "NoSourceImageError",
    "InvalidImageError",
]
