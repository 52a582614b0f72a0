"""RetryingGenerator for bounded, cancellable image generation.

Calls an ImageBackend up to a fixed attempt budget, optionally validates
each candidate against the source photo, and stops early when the caller
requests cancellation.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ..backend import GenerationError, ImageBackend

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5

PromptFactory = Callable[[], str]
Validator = Callable[[bytes, bytes], bool]
AttemptObserver = Callable[[int, int], None]
ValidationObserver = Callable[[], None]


class AttemptOutcome(str, Enum):
    """Final classification of a generation run."""

    SUCCESS = "success"
    REJECTED = "rejected"
    TERMINATED = "terminated"


@dataclass
class GeneratorConfig:
    """Configuration for RetryingGenerator.

    Attributes:
        max_attempts: Generation calls allowed per run.
        verify_results: Validate candidates when a validator is supplied.
    """

    max_attempts: int = MAX_ATTEMPTS
    verify_results: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


@dataclass
class GenerationStats:
    """Statistics from one generation run.

    Attributes:
        attempts: Generation calls made.
        transient_errors: Calls that raised a GenerationError.
        empty_responses: Calls that returned no image payload.
        validations: Validator calls made.
        rejected_candidates: Candidates the validator turned down.
    """

    attempts: int = 0
    transient_errors: int = 0
    empty_responses: int = 0
    validations: int = 0
    rejected_candidates: int = 0


@dataclass
class AttemptResult:
    """Outcome of RetryingGenerator.run.

    Attributes:
        outcome: SUCCESS, REJECTED or TERMINATED.
        image: Accepted image bytes on SUCCESS, else None.
        stats: Per-run statistics.
    """

    outcome: AttemptOutcome
    image: bytes | None = None
    stats: GenerationStats = field(default_factory=GenerationStats)

    @property
    def attempts(self) -> int:
        return self.stats.attempts

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS


@dataclass(frozen=True)
class SourceImage:
    """Uploaded photo handed to the backend."""

    data: bytes
    mime_type: str = "image/png"


class CancellationToken:
    """Cooperative cancellation flag shared between caller and generator."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def make_verifier(backend: ImageBackend) -> Validator:
    """Wrap backend.verify_match so that any failure counts as a mismatch."""

    def verify(source: bytes, candidate: bytes) -> bool:
        try:
            return backend.verify_match(source, candidate)
        except Exception as e:
            logger.warning(f"Verification failed, treating as mismatch: {e}")
            return False

    return verify


class RetryingGenerator:
    """Obtains one image from an unreliable backend within an attempt budget.

    Each iteration:
        1. Check cancellation; return TERMINATED if set
        2. Build a fresh prompt and call the backend
        3. On error or empty payload, move to the next attempt
        4. If a validator is supplied, check cancellation again and validate
        5. Accept the candidate or move to the next attempt

    Attempts run strictly one after another with no delay between them.

    Example:
        >>> generator = RetryingGenerator(backend)
        >>> result = generator.run(source, lambda: prompt, make_verifier(backend))
        >>> result.outcome
        <AttemptOutcome.SUCCESS: 'success'>
    """

    def __init__(
        self,
        backend: ImageBackend,
        config: GeneratorConfig | None = None,
        *,
        on_attempt: AttemptObserver | None = None,
        on_validating: ValidationObserver | None = None,
    ):
        """Initialize RetryingGenerator.

        Args:
            backend: Image backend to call.
            config: Generator configuration.
            on_attempt: Called with (attempt_number, max_attempts) before
                each generation call.
            on_validating: Called before each validation call.
        """
        self._backend = backend
        self._config = config or GeneratorConfig()
        self._on_attempt = on_attempt
        self._on_validating = on_validating

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    @property
    def backend(self) -> ImageBackend:
        return self._backend

    def run(
        self,
        source: SourceImage,
        prompt_builder: PromptFactory,
        validate: Validator | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AttemptResult:
        """Run the attempt loop.

        Args:
            source: Source photo.
            prompt_builder: Returns the prompt text; called once per attempt.
            validate: Same-person check. None skips validation.
            cancellation: Token sampled before each call.

        Returns:
            AttemptResult. Backend errors never escape this method.
        """
        stats = GenerationStats()
        max_attempts = self._config.max_attempts
        if not self._config.verify_results:
            validate = None

        def terminated() -> AttemptResult:
            logger.info(f"Generation terminated after {stats.attempts} attempt(s)")
            return AttemptResult(AttemptOutcome.TERMINATED, stats=stats)

        for attempt in range(1, max_attempts + 1):
            if cancellation is not None and cancellation.cancelled:
                return terminated()

            stats.attempts += 1
            self._notify(self._on_attempt, attempt, max_attempts)
            logger.debug(f"Generation attempt {attempt}/{max_attempts}")

            try:
                candidate = self._backend.generate_image(
                    prompt_builder(),
                    source.data,
                    mime_type=source.mime_type,
                )
            except GenerationError as e:
                stats.transient_errors += 1
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}")
                continue

            if not candidate:
                stats.empty_responses += 1
                logger.warning(
                    f"Attempt {attempt}/{max_attempts} returned no image, retrying"
                )
                continue

            if validate is None:
                logger.info(f"Generated image after {attempt} attempt(s)")
                return AttemptResult(AttemptOutcome.SUCCESS, candidate, stats)

            if cancellation is not None and cancellation.cancelled:
                return terminated()

            self._notify(self._on_validating)
            stats.validations += 1
            if validate(source.data, candidate):
                logger.info(
                    f"Generated and verified image after {attempt} attempt(s)"
                )
                return AttemptResult(AttemptOutcome.SUCCESS, candidate, stats)

            stats.rejected_candidates += 1
            logger.warning(
                f"Attempt {attempt}/{max_attempts} rejected: subject does not match"
            )

        logger.error(f"No acceptable image after {max_attempts} attempts")
        return AttemptResult(AttemptOutcome.REJECTED, stats=stats)

    @staticmethod
    def _notify(callback: Callable[..., None] | None, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Progress observer raised; ignoring")


__all__ = [
    "MAX_ATTEMPTS",
    "AttemptOutcome",
    "AttemptResult",
    "CancellationToken",
    "GenerationStats",
    "GeneratorConfig",
    "RetryingGenerator",
    "SourceImage",
    "make_verifier",
]
