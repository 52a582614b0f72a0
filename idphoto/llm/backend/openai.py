"""OpenAI image backend implementation.

Uses the Images edit endpoint (gpt-image-1) for generation and a vision
chat model for the same-person check.
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

_DEFAULT_IMAGE_MODEL, _DEFAULT_VERIFY_MODEL = DEFAULT_MODELS[ProviderType.OPENAI]

_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


class OpenAIImageBackend(ImageBackend):
    """OpenAI backend.

    Environment:
        OPENAI_API_KEY: API key (required if not passed to constructor).

    Example:
        >>> backend = OpenAIImageBackend()
        >>> candidate = backend.generate_image(prompt, photo_bytes)
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = _DEFAULT_IMAGE_MODEL.spec.name,
        verify_model: str = _DEFAULT_VERIFY_MODEL.spec.name,
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        """Initialize OpenAI backend.

        Args:
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            model: Image generation model name.
            verify_model: Vision model used for the same-person check.
            base_url: Optional custom API endpoint.
            timeout: Request timeout in seconds.

        Raises:
            AuthenticationError: If no API key available.
        """
        self._api_key = api_key or get_environment(EnvVar.OPENAI_API_KEY)
        if not self._api_key:
            raise AuthenticationError(
                "OpenAI API key required. Set OPENAI_API_KEY environment "
                "variable or pass api_key parameter."
            )

        self._spec = get_model_spec(model)
        self._verify_spec = get_model_spec(verify_model)
        self._base_url = base_url
        self._timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize OpenAI client.

        The SDK's own retries are disabled; the generation loop owns retries.

        Raises:
            ImportError: If openai package not installed.
        """
        if self._client is None:
            try:
                from openai import OpenAI

                self._client = OpenAI(
                    api_key=self._api_key,
                    base_url=self._base_url,
                    timeout=self._timeout,
                    max_retries=0,
                )
            except ImportError as e:
                raise ImportError(
                    "openai package required. Install with: pip install openai"
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
        return "openai"

    def generate_image(
        self,
        prompt: str,
        image: bytes,
        *,
        mime_type: str = "image/png",
    ) -> bytes | None:
        """Edit the source photo with the Images API."""
        client = self._get_client()
        filename = f"source.{_EXTENSIONS.get(mime_type, 'png')}"

        try:
            response = client.images.edit(
                model=self._spec.name,
                image=(filename, image, mime_type),
                prompt=prompt,
            )
        except Exception as e:
            self._handle_error(e)
            raise

        if not response.data:
            return None
        b64_json = response.data[0].b64_json
        return base64.b64decode(b64_json) if b64_json else None

    def verify_match(
        self,
        source: bytes,
        candidate: bytes,
        *,
        mime_type: str = "image/jpeg",
    ) -> bool:
        """Ask a vision model whether both photos show the same person."""
        client = self._get_client()

        content: list[dict[str, Any]] = [{"type": "text", "text": VERIFY_PROMPT}]
        for data in (source, candidate):
            encoded = base64.b64encode(data).decode("ascii")
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                }
            )

        try:
            response = client.chat.completions.create(
                model=self._verify_spec.name,
                messages=[{"role": "user", "content": content}],
                max_tokens=5,
                temperature=0.0,
            )
        except Exception as e:
            self._handle_error(e)
            raise

        answer = response.choices[0].message.content
        logger.debug(f"Verification answer from {self.verify_model_name}: {answer!r}")
        return parse_verdict(answer)

    def _handle_error(self, error: Exception) -> None:
        """Convert provider errors to standard exceptions.

        Raises:
            RateLimitError: For rate limit errors.
            AuthenticationError: For auth errors.
            TransientGenerationError: For 5xx, timeouts and connection errors.
            GenerationError: For other errors.
        """
        status = getattr(error, "status_code", None)
        error_str = str(error).lower()

        if status == 429 or "rate limit" in error_str or "rate_limit" in error_str:
            raise RateLimitError(str(error)) from error
        if status in (401, 403) or "invalid api key" in error_str:
            raise AuthenticationError(str(error)) from error
        if isinstance(status, int) and status >= 500:
            raise TransientGenerationError(str(error)) from error
        if isinstance(status, int):
            raise GenerationError(str(error)) from error
        raise TransientGenerationError(str(error)) from error


__all__ = ["OpenAIImageBackend"]
