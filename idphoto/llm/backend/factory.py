"""Backend factory for creating image backends by provider.

Provides a unified entry point for creating any supported image backend.
"""

from ...config import EnvVar, get_environment
from .base import ImageBackend
from .model_spec import (
    DEFAULT_MODELS,
    ImageModel,
    ModelSpec,
    ProviderType,
    get_model_spec,
    get_provider_type,
)


def create_image_backend(
    provider: str | ProviderType | None = None,
    *,
    model: str | ImageModel | ModelSpec | None = None,
    verify_model: str | ImageModel | ModelSpec | None = None,
    api_key: str | None = None,
    **kwargs,
) -> ImageBackend:
    """Create an image backend for a provider.

    Resolution for each argument: explicit value > environment
    (IDPHOTO_PROVIDER, IDPHOTO_IMAGE_MODEL, IDPHOTO_VERIFY_MODEL) > the
    provider's default models.

    Args:
        provider: Provider name ("google", "openai") or ProviderType.
        model: Image generation model.
        verify_model: Same-person verification model.
        api_key: API key. Falls back to the provider's environment variable.
        **kwargs: Additional arguments passed to the backend constructor.

    Returns:
        Configured ImageBackend instance.

    Raises:
        ValueError: If provider or model is unknown, or a model belongs to
            a different provider.
        AuthenticationError: If no API key is available.

    Example:
        >>> backend = create_image_backend()
        >>> backend = create_image_backend("openai", api_key="sk-...")
    """
    provider_type = get_provider_type(provider or get_environment(EnvVar.PROVIDER))
    default_image, default_verify = DEFAULT_MODELS[provider_type]

    image_spec = get_model_spec(
        model or get_environment(EnvVar.IMAGE_MODEL) or default_image
    )
    verify_spec = get_model_spec(
        verify_model or get_environment(EnvVar.VERIFY_MODEL) or default_verify
    )

    for spec in (image_spec, verify_spec):
        if spec.provider != provider_type:
            raise ValueError(
                f"Model {spec.name} belongs to {spec.provider.value}, "
                f"not {provider_type.value}"
            )

    if provider_type == ProviderType.GOOGLE:
        from .gemini import GeminiImageBackend

        return GeminiImageBackend(
            api_key=api_key,
            model=image_spec.name,
            verify_model=verify_spec.name,
            **kwargs,
        )

    if provider_type == ProviderType.OPENAI:
        from .openai import OpenAIImageBackend

        return OpenAIImageBackend(
            api_key=api_key,
            model=image_spec.name,
            verify_model=verify_spec.name,
            **kwargs,
        )

    raise ValueError(f"Unsupported provider type: {provider_type}")


__all__ = ["create_image_backend"]
