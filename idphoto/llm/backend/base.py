"""Abstract base class for image model backends.

Defines the interface that all image provider implementations must follow:
one call that turns a prompt plus a source photo into a candidate image,
and one call that judges whether two photos show the same person.
"""

from abc import ABC, abstractmethod

VERIFY_PROMPT = (
    "Do these two images show the exact same person? Look closely at the "
    "facial features. Answer with only YES or NO."
)


def parse_verdict(text: str | None) -> bool:
    """Interpret a YES/NO verification answer.

    Only an exact YES (case-insensitive, surrounding whitespace ignored)
    counts as a match.
    """
    return (text or "").strip().upper() == "YES"


class ImageBackend(ABC):
    """Abstract interface for image generation backends.

    Implementations wrap a remote multimodal model (Gemini, gpt-image).

    Example:
        >>> backend = GeminiImageBackend()
        >>> candidate = backend.generate_image(prompt, photo_bytes)
        >>> backend.verify_match(photo_bytes, candidate)
        True
    """

    @abstractmethod
    def generate_image(
        self,
        prompt: str,
        image: bytes,
        *,
        mime_type: str = "image/png",
    ) -> bytes | None:
        """Generate an image from a prompt and a source photo.

        Args:
            prompt: Instruction text.
            image: Source photo bytes.
            mime_type: MIME type of the source photo.

        Returns:
            Generated image bytes, or None if the model returned no image.

        Raises:
            TransientGenerationError: On network or server-side failures.
            RateLimitError: If the provider rate limit is exceeded.
            AuthenticationError: If the API key is missing or rejected.
            GenerationError: For other provider errors.
        """

    @abstractmethod
    def verify_match(
        self,
        source: bytes,
        candidate: bytes,
        *,
        mime_type: str = "image/jpeg",
    ) -> bool:
        """Ask the model whether both images show the same person.

        Args:
            source: Original photo bytes.
            candidate: Generated photo bytes.
            mime_type: MIME type sent for both images.

        Returns:
            True only on an affirmative answer.

        Raises:
            GenerationError: If the verification call fails.
        """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the image generation model identifier."""

    @property
    @abstractmethod
    def verify_model_name(self) -> str:
        """Get the verification model identifier."""

    @property
    @abstractmethod
    def provider(self) -> str:
        """Get the provider identifier (e.g., 'google', 'openai')."""

    @property
    def name(self) -> str:
        """Get backend identifier for logging.

        Returns:
            String in format 'provider:model'.
        """
        return f"{self.provider}:{self.model_name}"


class GenerationError(Exception):
    """Base exception for image backend errors."""


class TransientGenerationError(GenerationError):
    """Raised for failures worth another attempt (network, 5xx, timeouts)."""


class RateLimitError(TransientGenerationError):
    """Raised when the provider rate limit is exceeded.

    Attributes:
        retry_after: Suggested wait time in seconds before retry.
    """

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(GenerationError):
    """Raised when API authentication fails (invalid or missing key)."""


class InvalidResponseError(GenerationError):
    """Raised when a response cannot be interpreted."""


__all__ = [
    "VERIFY_PROMPT",
    "parse_verdict",
    "ImageBackend",
    "GenerationError",
    "TransientGenerationError",
    "RateLimitError",
    "AuthenticationError",
    "InvalidResponseError",
]
