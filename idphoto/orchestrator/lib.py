"""Orchestrator for quota-guarded ID-photo generation.

Composes RateLimiter admission with RetryingGenerator execution per user
request and drives the StatusMachine that presentation layers observe.

Pipeline per request:
    1. Refuse while a session is in flight or no photo is loaded
    2. Reload the quota log and try to admit (quota consumed up front)
    3. Move to loading and run the attempt loop
    4. Settle the status from the outcome
    5. Refresh the quota surface
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..llm import (
    AttemptOutcome,
    AttemptResult,
    CancellationToken,
    GeneratorConfig,
    ImageBackend,
    RetryingGenerator,
    SourceImage,
    make_verifier,
)
from ..prompt import PromptBuilder, PromptConfig
from ..quota import (
    AdmissionDecision,
    ExpiryCountdown,
    QuotaExceededError,
    QuotaStatus,
    RateLimiter,
)
from ..session import GenerationStatus, StatusMachine

logger = logging.getLogger(__name__)


class SessionBusyError(Exception):
    """Raised when a request arrives while a session is in flight."""


class NoSourceImageError(Exception):
    """Raised when generation is requested before a photo is loaded."""


class InvalidImageError(ValueError):
    """Raised when an uploaded file is not a usable image."""


class GenerationKind(str, Enum):
    """User-initiated request types."""

    GENERATE = "generate"
    REGENERATE = "regenerate"


@dataclass
class GenerationSession:
    """One user-initiated generation request.

    Attributes:
        kind: GENERATE or REGENERATE.
        decision: Admission decision that opened the session.
        result: Attempt loop outcome once the session has run.
    """

    kind: GenerationKind
    decision: AdmissionDecision
    result: AttemptResult | None = None

    @property
    def is_regeneration(self) -> bool:
        return self.kind == GenerationKind.REGENERATE

    @property
    def attempts_made(self) -> int:
        return self.result.attempts if self.result else 0

    @property
    def terminated(self) -> bool:
        return (
            self.result is not None
            and self.result.outcome == AttemptOutcome.TERMINATED
        )

    @property
    def succeeded(self) -> bool:
        return self.result is not None and self.result.succeeded

    @property
    def image(self) -> bytes | None:
        return self.result.image if self.result else None


@dataclass(frozen=True)
class SessionSnapshot:
    """Status surface for presentation layers."""

    status: GenerationStatus
    attempt: int
    max_attempts: int
    failure_count: int
    cancel_requested: bool
    has_result: bool


class Orchestrator:
    """Runs generation sessions behind the sliding-window quota.

    Example:
        >>> orchestrator = Orchestrator(backend, RateLimiter(store))
        >>> orchestrator.load_source(photo_bytes, "image/jpeg")
        >>> session = orchestrator.request_generation()
        >>> orchestrator.status
        <GenerationStatus.SUCCESS: 'success'>
    """

    def __init__(
        self,
        backend: ImageBackend,
        limiter: RateLimiter,
        *,
        generator_config: GeneratorConfig | None = None,
        prompt_builder: PromptBuilder | None = None,
        prompt_config: PromptConfig | None = None,
        countdown: ExpiryCountdown | None = None,
        on_progress: Callable[[int, int], None] | None = None,
        on_validating: Callable[[], None] | None = None,
        on_quota: Callable[[QuotaStatus], None] | None = None,
    ):
        """Initialize Orchestrator.

        Args:
            backend: Image backend used for generation and verification.
            limiter: Sliding-window quota.
            generator_config: Attempt loop configuration.
            prompt_builder: Prompt template provider.
            prompt_config: Default prompt options.
            countdown: Expiry countdown restarted after each quota change.
            on_progress: Receives (attempt, max_attempts) before each call.
            on_validating: Fires before each verification call.
            on_quota: Receives the quota surface after each request.
        """
        self._backend = backend
        self._limiter = limiter
        self._prompt_builder = prompt_builder or PromptBuilder()
        self.prompt_config = prompt_config or PromptConfig()
        self._countdown = countdown
        self._on_progress = on_progress
        self._on_validating = on_validating
        self._on_quota = on_quota

        self._generator = RetryingGenerator(
            backend,
            generator_config,
            on_attempt=self._handle_attempt,
            on_validating=self._handle_validating,
        )
        self._verifier = make_verifier(backend)
        self._status = StatusMachine()
        self._cancellation = CancellationToken()
        self._busy = threading.Lock()

        self._source: SourceImage | None = None
        self._result: bytes | None = None
        self._failure_count = 0
        self._attempt = 0

        self._limiter.load()

    # -------------------------------------------------------------------------
    # Read-only surfaces
    # -------------------------------------------------------------------------

    @property
    def status(self) -> GenerationStatus:
        return self._status.status

    @property
    def status_machine(self) -> StatusMachine:
        return self._status

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def source(self) -> SourceImage | None:
        return self._source

    @property
    def result(self) -> bytes | None:
        """Last accepted image, kept across failed regenerations."""
        return self._result

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def quota(self) -> QuotaStatus:
        return self._limiter.usage()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self._status.status,
            attempt=self._attempt,
            max_attempts=self._generator.config.max_attempts,
            failure_count=self._failure_count,
            cancel_requested=self._cancellation.cancelled,
            has_result=self._result is not None,
        )

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    def load_source(self, data: bytes, mime_type: str = "image/png") -> None:
        """Accept a new photo, dropping the previous result.

        Raises:
            SessionBusyError: While a session is in flight.
            InvalidImageError: If the payload is empty or not an image type.
        """
        if not data:
            raise InvalidImageError("Image is empty")
        if not mime_type.startswith("image/"):
            raise InvalidImageError(f"Not an image: {mime_type}")

        with self._guard():
            self._source = SourceImage(data, mime_type)
            self._result = None
            self._failure_count = 0
            self._attempt = 0
            self._status.reset()
        logger.info(f"Loaded source image ({len(data)} bytes, {mime_type})")

    def reset(self) -> None:
        """Clear photo, result and failure counter; status returns to idle.

        Raises:
            SessionBusyError: While a session is in flight.
        """
        with self._guard():
            self._source = None
            self._result = None
            self._failure_count = 0
            self._attempt = 0
            self._cancellation.clear()
            self._status.reset()
        self._refresh_quota()

    def cancel(self) -> bool:
        """Request cooperative cancellation of the running session.

        The in-flight remote call is allowed to finish; the loop stops at its
        next checkpoint.

        Returns:
            True if a session was running.
        """
        if not self._status.is_loading:
            return False
        self._cancellation.cancel()
        logger.info("Cancellation requested")
        return True

    def request_generation(
        self,
        kind: GenerationKind | str = GenerationKind.GENERATE,
        *,
        prompt_config: PromptConfig | None = None,
    ) -> GenerationSession:
        """Run one quota-guarded generation session.

        Args:
            kind: GENERATE starts fresh; REGENERATE keeps the previous result
                unless the new session succeeds.
            prompt_config: Overrides the default prompt options.

        Returns:
            The finished GenerationSession.

        Raises:
            SessionBusyError: While another session is in flight.
            NoSourceImageError: If no photo is loaded.
            QuotaExceededError: If the window is full. Nothing is changed.
        """
        kind = GenerationKind(kind)
        config = prompt_config or self.prompt_config

        with self._guard():
            if self._source is None:
                raise NoSourceImageError("Upload a photo before generating")

            decision = self._limiter.try_admit()
            if not decision.admitted:
                self._refresh_quota()
                raise QuotaExceededError(decision)

            session = GenerationSession(kind=kind, decision=decision)
            logger.info(
                f"Starting {kind.value} session "
                f"(quota {decision.active_count}/{decision.limit})"
            )

            if kind == GenerationKind.GENERATE:
                self._result = None
            self._cancellation.clear()
            self._attempt = 0
            self._status.transition(GenerationStatus.LOADING)

            try:
                session.result = self._generator.run(
                    self._source,
                    self._prompt_builder.factory(config),
                    None if config.cartoon_mode else self._verifier,
                    self._cancellation,
                )
            finally:
                if session.result is None:
                    self._status.transition(GenerationStatus.FAILURE)
                    if not session.is_regeneration:
                        self._failure_count += 1
                self._refresh_quota()

            self._settle(session)
            return session

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _guard(self) -> "_SessionGuard":
        return _SessionGuard(self._busy)

    def _settle(self, session: GenerationSession) -> None:
        outcome = session.result.outcome

        if outcome == AttemptOutcome.SUCCESS:
            self._result = session.result.image
            self._status.transition(GenerationStatus.SUCCESS)
        elif outcome == AttemptOutcome.TERMINATED:
            self._status.transition(GenerationStatus.TERMINATING)
        else:
            self._status.transition(GenerationStatus.FAILURE)
            if not session.is_regeneration:
                self._failure_count += 1

        logger.info(
            f"{session.kind.value} session finished: {outcome.value} "
            f"after {session.attempts_made} attempt(s)"
        )

    def _refresh_quota(self) -> None:
        usage = self._limiter.usage()
        if self._on_quota:
            try:
                self._on_quota(usage)
            except Exception:
                logger.exception("Quota observer raised; ignoring")
        if (
            self._countdown is not None
            and usage.remaining_ms is not None
            and not self._countdown.running
        ):
            self._countdown.start()

    def _handle_attempt(self, attempt: int, max_attempts: int) -> None:
        self._attempt = attempt
        if self._on_progress:
            self._on_progress(attempt, max_attempts)

    def _handle_validating(self) -> None:
        if self._on_validating:
            self._on_validating()


class _SessionGuard:
    """Non-blocking single-session lock."""

    def __init__(self, lock: threading.Lock):
        self._lock = lock

    def __enter__(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError("A generation session is already running")

    def __exit__(self, *exc_info) -> None:
        self._lock.release()


__all__ = [
    "GenerationKind",
    "GenerationSession",
    "InvalidImageError",
    "NoSourceImageError",
    "Orchestrator",
    "SessionBusyError",
    "SessionSnapshot",
]
