"""Generation status state machine.

Tracks the five-way status of the current generation session and notifies
listeners on each transition. The machine is reentrant: every settled state
can move back to idle or straight into a new session.
"""

import logging
import threading
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    """Status values exposed to presentation layers."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    FAILURE = "failure"
    TERMINATING = "terminating"

    @property
    def is_settled(self) -> bool:
        """True for the states a finished session leaves behind."""
        return self in _SETTLED


_SETTLED = frozenset(
    {GenerationStatus.SUCCESS, GenerationStatus.FAILURE, GenerationStatus.TERMINATING}
)

TRANSITIONS: dict[GenerationStatus, frozenset[GenerationStatus]] = {
    GenerationStatus.IDLE: frozenset({GenerationStatus.LOADING}),
    GenerationStatus.LOADING: _SETTLED,
    GenerationStatus.SUCCESS: frozenset(
        {GenerationStatus.IDLE, GenerationStatus.LOADING}
    ),
    GenerationStatus.FAILURE: frozenset(
        {GenerationStatus.IDLE, GenerationStatus.LOADING}
    ),
    GenerationStatus.TERMINATING: frozenset(
        {GenerationStatus.IDLE, GenerationStatus.LOADING}
    ),
}

StatusListener = Callable[[GenerationStatus, GenerationStatus], None]


class InvalidTransitionError(Exception):
    """Raised when a transition is not allowed from the current status."""

    def __init__(self, current: GenerationStatus, target: GenerationStatus):
        super().__init__(f"Cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class StatusMachine:
    """Finite state machine over GenerationStatus.

    Example:
        >>> machine = StatusMachine()
        >>> machine.transition(GenerationStatus.LOADING)
        >>> machine.status
        <GenerationStatus.LOADING: 'loading'>
    """

    def __init__(self, initial: GenerationStatus = GenerationStatus.IDLE):
        self._status = initial
        self._listeners: list[StatusListener] = []
        self._lock = threading.Lock()

    @property
    def status(self) -> GenerationStatus:
        return self._status

    @property
    def is_loading(self) -> bool:
        return self._status == GenerationStatus.LOADING

    def can_transition(self, target: GenerationStatus) -> bool:
        return target in TRANSITIONS[self._status]

    def transition(self, target: GenerationStatus) -> None:
        """Move to target and notify listeners.

        Raises:
            InvalidTransitionError: If target is not reachable from the
                current status.
        """
        with self._lock:
            current = self._status
            if target not in TRANSITIONS[current]:
                raise InvalidTransitionError(current, target)
            self._status = target

        logger.debug(f"Status {current.value} -> {target.value}")
        for listener in list(self._listeners):
            try:
                listener(current, target)
            except Exception:
                logger.exception("Status listener raised; ignoring")

    def reset(self) -> None:
        """Return to idle from any settled state. No-op when already idle."""
        if self._status != GenerationStatus.IDLE:
            self.transition(GenerationStatus.IDLE)

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


__all__ = [
    "GenerationStatus",
    "InvalidTransitionError",
    "StatusListener",
    "StatusMachine",
    "TRANSITIONS",
]
