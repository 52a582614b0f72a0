"""Google Gemini image backend implementation.

Uses the google-genai SDK: an image-capable Gemini model edits the source
photo, and a text Gemini model answers the same-person check.
"""

import base64
import logging
from typing import Any

from ...config import EnvVar, get_environment
from .base import (
    VERIFY_PROMPT,
    AuthenticationError,
    GenerationError,
    ImageBackend,
    RateLimitError,
    TransientGenerationError,
    parse_verdict,
)
from .model_spec import DEFAULT_MODELS, ProviderType, get_model_spec

logger = logging.getLogger(__name__)

_DEFAULT_IMAGE_MODEL, _DEFAULT_VERIFY_MODEL = DEFAULT_MODELS[ProviderType.GOOGLE]


class GeminiImageBackend(ImageBackend):
    """Google Gemini backend.

    Environment:
        GOOGLE_API_KEY: API key (required if not passed to constructor).

    Example:
        >>> backend = GeminiImageBackend()
        >>> candidate = backend.generate_image(prompt, photo_bytes)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = _DEFAULT_IMAGE_MODEL.spec.name,
        verify_model: str = _DEFAULT_VERIFY_MODEL.spec.name,
    ):
        """Initialize Gemini backend.

        Args:
            api_key: Google API key. Falls back to GOOGLE_API_KEY env var.
            model: Image generation model name.
            verify_model: Model used for the same-person check.

        Raises:
            AuthenticationError: If no API key available.
        """
        self._api_key = api_key or get_environment(EnvVar.GOOGLE_API_KEY)
        if not self._api_key:
            raise AuthenticationError(
                "Google API key required. Set GOOGLE_API_KEY environment "
                "variable or pass api_key parameter."
            )

        self._spec = get_model_spec(model)
        self._verify_spec = get_model_spec(verify_model)
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize the google-genai client.

        Raises:
            ImportError: If google-genai package not installed.
        """
        if self._client is None:
            try:
                from google import genai

                self._client = genai.Client(api_key=self._api_key)
            except ImportError as e:
                raise ImportError(
                    "google-genai package required. Install with: "
                    "pip install google-genai"
                ) from e
        return self._client

    @property
    def model_name(self) -> str:
        return self._spec.name

    @property
    def verify_model_name(self) -> str:
        return self._verify_spec.name

    @property
    def provider(self) -> str:
        return "google"

    def generate_image(
        self,
        prompt: str,
        image: bytes,
        *,
        mime_type: str = "image/png",
    ) -> bytes | None:
        """Generate an edited photo with Gemini.

        Returns:
            Bytes of the first inline image part, or None if the response
            carried no image.
        """
        from google.genai import types

        client = self._get_client()

        try:
            response = client.models.generate_content(
                model=self._spec.name,
                contents=[
                    prompt,
                    types.Part.from_bytes(data=image, mime_type=mime_type),
                ],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                ),
            )
        except Exception as e:
            self._handle_error(e)
            raise  # Re-raise if _handle_error doesn't raise

        return self._extract_image(response)

    def verify_match(
        self,
        source: bytes,
        candidate: bytes,
        *,
        mime_type: str = "image/jpeg",
    ) -> bool:
        """Ask Gemini whether both photos show the same person."""
        from google.genai import types

        client = self._get_client()

        try:
            response = client.models.generate_content(
                model=self._verify_spec.name,
                contents=[
                    VERIFY_PROMPT,
                    types.Part.from_bytes(data=source, mime_type=mime_type),
                    types.Part.from_bytes(data=candidate, mime_type=mime_type),
                ],
            )
        except Exception as e:
            self._handle_error(e)
            raise

        answer = response.text
        logger.debug(f"Verification answer from {self.verify_model_name}: {answer!r}")
        return parse_verdict(answer)

    @staticmethod
    def _extract_image(response: Any) -> bytes | None:
        """Return the first inline image payload in a response."""
        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline_data = getattr(part, "inline_data", None)
                data = getattr(inline_data, "data", None) if inline_data else None
                if not data:
                    continue
                if isinstance(data, str):
                    return base64.b64decode(data)
                return data
        return None

    def _handle_error(self, error: Exception) -> None:
        """Convert provider errors to standard exceptions.

        Raises:
            RateLimitError: For HTTP 429 / quota errors.
            AuthenticationError: For HTTP 401/403.
            TransientGenerationError: For 5xx, timeouts and connection errors.
            GenerationError: For other errors.
        """
        code = getattr(error, "code", None)
        error_str = str(error).lower()

        rate_limited = "resource_exhausted" in error_str or "rate limit" in error_str
        if code == 429 or rate_limited:
            raise RateLimitError(str(error)) from error
        if code in (401, 403) or "api key not valid" in error_str:
            raise AuthenticationError(str(error)) from error
        if isinstance(code, int) and code >= 500:
            raise TransientGenerationError(str(error)) from error
        if isinstance(code, int):
            raise GenerationError(str(error)) from error
        raise TransientGenerationError(str(error)) from error


__all__ = ["GeminiImageBackend"]
