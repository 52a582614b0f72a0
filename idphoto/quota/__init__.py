"""Sliding-window generation quota.

Main components:
- RateLimiter: admission control over a persisted timestamp log
- TimestampStore: fail-soft JSON persistence of the log
- ExpiryCountdown: live countdown to the next free slot
"""

from .lib import (
    DEFAULT_MAX_GENERATIONS,
    DEFAULT_WINDOW_MS,
    STORAGE_KEY,
    AdmissionDecision,
    Clock,
    QuotaExceededError,
    QuotaStatus,
    RateLimiter,
    TimestampStore,
    now_ms,
)
from .timer import (
    ESTIMATED_SECONDS_PER_VIEW,
    EstimateCountdown,
    ExpiryCountdown,
    PeriodicTask,
    format_remaining,
)

__all__ = [
    "RateLimiter",
    "TimestampStore",
    "AdmissionDecision",
    "QuotaStatus",
    "QuotaExceededError",
    "Clock",
    "now_ms",
    "STORAGE_KEY",
    "DEFAULT_MAX_GENERATIONS",
    "DEFAULT_WINDOW_MS",
    "ESTIMATED_SECONDS_PER_VIEW",
    "PeriodicTask",
    "ExpiryCountdown",
    "EstimateCountdown",
    "format_remaining",
]
