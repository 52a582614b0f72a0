"""Image model integration layer for ID-photo generation.

Main components:
- RetryingGenerator: Bounded, cancellable attempt loop with validation
- ImageBackend: Abstract interface for image providers
- create_image_backend: Factory function for creating backends

Supported providers:
- Google (Gemini 2.5 Flash Image)
- OpenAI (gpt-image-1)

Example:
    >>> from idphoto.llm import RetryingGenerator, create_image_backend
    >>> backend = create_image_backend("google")
    >>> generator = RetryingGenerator(backend)
    >>> result = generator.run(source, lambda: prompt, make_verifier(backend))
"""

from .backend import (
    DEFAULT_MODELS,
    DEFAULT_PROVIDER,
    AuthenticationError,
    GenerationError,
    ImageBackend,
    ImageCapability,
    ImageModel,
    InvalidResponseError,
    ModelSpec,
    ProviderType,
    RateLimitError,
    TransientGenerationError,
    create_image_backend,
    get_model_spec,
)
from .generator import (
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
    # Main API
    "RetryingGenerator",
    "create_image_backend",
    "make_verifier",
    # Generator types
    "GeneratorConfig",
    "GenerationStats",
    "AttemptOutcome",
    "AttemptResult",
    "CancellationToken",
    "SourceImage",
    "MAX_ATTEMPTS",
    # Backend types
    "ImageBackend",
    # Model specification
    "ImageCapability",
    "ProviderType",
    "ModelSpec",
    "ImageModel",
    "get_model_spec",
    # Defaults
    "DEFAULT_MODELS",
    "DEFAULT_PROVIDER",
    # Exceptions
    "GenerationError",
    "TransientGenerationError",
    "RateLimitError",
    "AuthenticationError",
    "InvalidResponseError",
]
