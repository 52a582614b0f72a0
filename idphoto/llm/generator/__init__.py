"""Image generation retry loop.

Provides the RetryingGenerator class that calls an image backend within an
attempt budget, validates candidates and honours cooperative cancellation.
"""

from .lib import (
    MAX_ATTEMPTS,
    AttemptOutcome,
    AttemptResult,
    CancellationToken,
    GenerationStats,
    GeneratorConfig,
    RetryingGenerator,
    SourceImage,
    make_verifier,
)

__all__ = [
    "RetryingGenerator",
    "GeneratorConfig",
    "GenerationStats",
    "AttemptOutcome",
    "AttemptResult",
    "CancellationToken",
    "SourceImage",
    "make_verifier",
    "MAX_ATTEMPTS",
]
