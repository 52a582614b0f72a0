"""Sliding-window quota for image generation.

Tracks admitted generations as a persisted, ascending log of epoch-millisecond
timestamps. An attempt is admitted while fewer than `max_generations` entries
are younger than the window.

Example:
    >>> from idphoto.storage import InMemoryStore
    >>> limiter = RateLimiter(InMemoryStore())
    >>> limiter.load()
    []
    >>> limiter.try_admit().admitted
    True
"""

import bisect
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Annotated, Callable

from pydantic import AllowInfNan, Strict, TypeAdapter, ValidationError

from idphoto.storage import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "portraitGeneratorTimestamps"
DEFAULT_MAX_GENERATIONS = 5
DEFAULT_WINDOW_MS = 10 * 60 * 1000

Clock = Callable[[], int]

# Any JSON number is accepted; bools, strings and NaN/Infinity are not.
_TimestampList = TypeAdapter(
    list[Annotated[float, Strict(), AllowInfNan(False)]]
)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of a quota check.

    Attributes:
        admitted: Whether the attempt may proceed.
        active_count: Entries in the window after the decision.
        limit: Maximum entries allowed in the window.
        next_expiry_at: When the oldest entry leaves the window (epoch ms).
    """

    admitted: bool
    active_count: int
    limit: int
    next_expiry_at: int | None


@dataclass(frozen=True)
class QuotaStatus:
    """Quota usage as exposed to a presentation layer.

    Attributes:
        used: Entries currently in the window.
        limit: Maximum entries allowed in the window.
        remaining_ms: Time until the next slot frees, None when nothing is used.
    """

    used: int
    limit: int
    remaining_ms: int | None

    @property
    def limit_reached(self) -> bool:
        return self.used >= self.limit


class QuotaExceededError(Exception):
    """Raised when a generation is requested with no quota left.

    Attributes:
        decision: The denying AdmissionDecision.
    """

    def __init__(self, decision: AdmissionDecision):
        super().__init__(
            f"Generation limit reached: {decision.active_count}/{decision.limit} "
            "in the current window"
        )
        self.decision = decision


class TimestampStore:
    """Reads and writes the timestamp log through a KeyValueStore.

    Reads fail soft: absent, malformed, or non-numeric content is
    treated as an empty log.
    """

    def __init__(self, store: KeyValueStore, key: str = STORAGE_KEY):
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def read(self) -> list[int]:
        """Read the stored log without sorting or pruning."""
        raw = self._store.get(self._key)
        if raw is None:
            return []

        try:
            values = _TimestampList.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                f"Discarding unreadable quota state under '{self._key}': "
                f"{e.error_count()} error(s)"
            )
            return []

        return [int(value) for value in values]

    def write(self, timestamps: list[int]) -> None:
        """Persist the log as a JSON array."""
        self._store.set(self._key, json.dumps(list(timestamps)))


class RateLimiter:
    """Sliding-window admission control over a persisted timestamp log.

    The stored log is the source of truth. `load()` and `try_admit()` read
    it, prune, and write back under one lock. The in-memory log mirrors the
    last read; it is ascending, so its head is the next entry to expire.

    Args:
        store: Backing KeyValueStore or an existing TimestampStore.
        max_generations: Admissions allowed per window.
        window_ms: Window length in milliseconds.
        clock: Callable returning the current time in epoch milliseconds.
    """

    def __init__(
        self,
        store: KeyValueStore | TimestampStore,
        *,
        max_generations: int = DEFAULT_MAX_GENERATIONS,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Clock = now_ms,
    ):
        if max_generations < 1:
            raise ValueError("max_generations must be at least 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        self._timestamps = (
            store if isinstance(store, TimestampStore) else TimestampStore(store)
        )
        self._max = max_generations
        self._window_ms = window_ms
        self._clock = clock
        self._log: list[int] = []
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._max

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def log(self) -> list[int]:
        """Copy of the current in-memory log, oldest first."""
        return list(self._log)

    def now(self) -> int:
        return self._clock()

    def _prune(self, timestamps: list[int], now: int) -> list[int]:
        return [ts for ts in timestamps if now - ts < self._window_ms]

    def load(self) -> list[int]:
        """Reload the log from storage, prune it, and write it back.

        The cleaned log is persisted unconditionally so corrupt or stale
        state heals on every load.

        Returns:
            The pruned, ascending log.
        """
        with self._lock:
            now = self._clock()
            self._log = self._prune(sorted(self._timestamps.read()), now)
            self._timestamps.write(self._log)
            return list(self._log)

    def _decide(self, active: list[int], admitted: bool) -> AdmissionDecision:
        return AdmissionDecision(
            admitted=admitted,
            active_count=len(active),
            limit=self._max,
            next_expiry_at=active[0] + self._window_ms if active else None,
        )

    def try_admit(self, log: list[int] | None = None) -> AdmissionDecision:
        """Admit one generation if the window has room.

        Without `log` the persisted log is read inside the lock, so several
        limiters sharing one store never over-admit. On admission the current
        time is appended and persisted before returning. On denial storage is
        not modified.

        Args:
            log: Decide against this log instead of the stored one.
        """
        with self._lock:
            now = self._clock()
            source = self._timestamps.read() if log is None else log
            active = self._prune(sorted(source), now)

            if len(active) >= self._max:
                logger.info(f"Quota denied: {len(active)}/{self._max} in window")
                self._log = active
                return self._decide(active, admitted=False)

            # insort keeps the log ascending even if the clock stepped back.
            bisect.insort(active, now)
            self._log = active
            self._timestamps.write(self._log)

            logger.debug(f"Quota admitted: {len(active)}/{self._max} in window")
            return self._decide(active, admitted=True)

    def next_expiry(self, log: list[int] | None = None) -> int | None:
        """When the oldest entry of `log` leaves the window, or None if empty.

        Defaults to the in-memory log, which is not pruned here so a
        countdown can observe its head expiring.
        """
        log = self._log if log is None else log
        return log[0] + self._window_ms if log else None

    def remaining_ms(self, now: int | None = None) -> int | None:
        """Milliseconds until the next slot frees, clamped at zero."""
        expiry = self.next_expiry()
        if expiry is None:
            return None
        now = self._clock() if now is None else now
        return max(0, expiry - now)

    def usage(self) -> QuotaStatus:
        """Quota usage with expired entries left out; the log is not modified."""
        now = self._clock()
        active = self._prune(self._log, now)
        expiry = self.next_expiry(active)
        return QuotaStatus(
            used=len(active),
            limit=self._max,
            remaining_ms=None if expiry is None else max(0, expiry - now),
        )


__all__ = [
    "STORAGE_KEY",
    "DEFAULT_MAX_GENERATIONS",
    "DEFAULT_WINDOW_MS",
    "Clock",
    "now_ms",
    "AdmissionDecision",
    "QuotaStatus",
    "QuotaExceededError",
    "TimestampStore",
    "RateLimiter",
]
