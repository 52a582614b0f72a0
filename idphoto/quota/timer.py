"""Periodic countdown tasks for quota and generation progress display.

Each task runs on its own daemon thread, reads shared state, and reports
through callbacks. Tasks never mutate the timestamp log except through
`RateLimiter.load()` once an entry expires.
"""

import logging
import math
import threading
from typing import Callable

from .lib import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0
ESTIMATED_SECONDS_PER_VIEW = 20


def format_remaining(remaining_ms: int) -> str:
    """Format a duration as MM:SS, rounding seconds up.

    Example:
        >>> format_remaining(61_001)
        '01:02'
    """
    total_seconds = math.ceil(max(0, remaining_ms) / 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


class PeriodicTask:
    """Cancellable repeating callback on a daemon thread.

    `stop()` is idempotent, safe when nothing is running, and safe to call
    from inside the callback itself.

    Args:
        callback: Invoked once per interval.
        interval: Seconds between invocations.
        name: Thread name for diagnostics.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        interval: float = DEFAULT_INTERVAL,
        *,
        name: str | None = None,
    ):
        self._callback = callback
        self._interval = interval
        self._name = name or "periodic-task"
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, *, immediate: bool = True) -> None:
        """Start the task, restarting it if already running.

        Args:
            immediate: Invoke the callback once before the first wait.
        """
        self.stop()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event, immediate),
            name=self._name,
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the task and wait for the thread to finish."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

    def _run(self, stop_event: threading.Event, immediate: bool) -> None:
        if immediate:
            self._invoke()
        while not stop_event.wait(self._interval):
            self._invoke()

    def _invoke(self) -> None:
        try:
            self._callback()
        except Exception:
            logger.exception(f"Periodic task '{self._name}' callback failed")


class ExpiryCountdown:
    """Live countdown to the next quota slot.

    Each tick:
        - empty log: `on_idle()` fires and the countdown stops itself;
        - oldest entry expired: `on_expire()` fires, then the limiter reloads
          so the next-oldest entry drives the following ticks;
        - otherwise: `on_tick(remaining_ms)` fires.

    Args:
        limiter: RateLimiter whose log is observed.
        on_tick: Receives remaining milliseconds until the next slot frees.
        on_expire: Fires when a slot frees.
        on_idle: Fires when no quota is in use.
        interval: Seconds between ticks.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        *,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None] | None = None,
        on_idle: Callable[[], None] | None = None,
        interval: float = DEFAULT_INTERVAL,
    ):
        self._limiter = limiter
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._on_idle = on_idle
        self._task = PeriodicTask(self._step, interval, name="quota-countdown")

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    def stop(self) -> None:
        self._task.stop()

    def tick(self) -> int | None:
        """Evaluate the countdown once.

        Returns:
            Remaining milliseconds, 0 if a slot just freed, None when idle.
        """
        remaining = self._limiter.remaining_ms()

        if remaining is None:
            if self._on_idle:
                self._on_idle()
            return None

        if remaining == 0:
            logger.info("A generation slot has been released")
            if self._on_expire:
                self._on_expire()
            self._limiter.load()
            return 0

        self._on_tick(remaining)
        return remaining

    def _step(self) -> None:
        if self.tick() is None:
            self._task.stop()


class EstimateCountdown:
    """Per-session estimate of time left, counting down once per second.

    `on_update` receives the seconds left; 0 means the estimate has run out
    and the session is still in progress. The task stops itself at 0.

    Args:
        on_update: Receives the remaining estimate in seconds.
        estimate_seconds: Starting estimate.
        interval: Seconds between updates.
    """

    def __init__(
        self,
        on_update: Callable[[int], None],
        estimate_seconds: int = ESTIMATED_SECONDS_PER_VIEW,
        interval: float = DEFAULT_INTERVAL,
    ):
        self._on_update = on_update
        self._estimate = estimate_seconds
        self._seconds_left = estimate_seconds
        self._first = True
        self._task = PeriodicTask(self._step, interval, name="estimate-countdown")

    @property
    def seconds_left(self) -> int:
        return self._seconds_left

    def start(self) -> None:
        self._seconds_left = self._estimate
        self._first = True
        self._task.start()

    def stop(self) -> None:
        self._task.stop()

    def tick(self) -> int:
        """Advance the estimate by one step and report it."""
        if self._first:
            self._first = False
        else:
            self._seconds_left = max(0, self._seconds_left - 1)
        self._on_update(self._seconds_left)
        return self._seconds_left

    def _step(self) -> None:
        if self.tick() <= 0:
            self._task.stop()


__all__ = [
    "ESTIMATED_SECONDS_PER_VIEW",
    "format_remaining",
    "PeriodicTask",
    "ExpiryCountdown",
    "EstimateCountdown",
]
