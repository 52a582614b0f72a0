"""Image backend implementations.

Provides abstract base class and concrete implementations for
image providers (Google Gemini, OpenAI).
"""

from .base import (
    VERIFY_PROMPT,
    AuthenticationError,
    GenerationError,
    ImageBackend,
    InvalidResponseError,
    RateLimitError,
    TransientGenerationError,
    parse_verdict,
)
from .factory import create_image_backend
from .model_spec import (
    DEFAULT_MODELS,
    DEFAULT_PROVIDER,
    ImageCapability,
    ImageModel,
    ModelSpec,
    ProviderType,
    get_model_spec,
    get_provider_type,
)

__all__ = [
    # Base classes and helpers
    "ImageBackend",
    "VERIFY_PROMPT",
    "parse_verdict",
    # Exceptions
    "GenerationError",
    "TransientGenerationError",
    "RateLimitError",
    "AuthenticationError",
    "InvalidResponseError",
    # Model specification
    "ImageCapability",
    "ProviderType",
    "ModelSpec",
    "ImageModel",
    "get_model_spec",
    "get_provider_type",
    # Defaults
    "DEFAULT_MODELS",
    "DEFAULT_PROVIDER",
    # Factory
    "create_image_backend",
]
