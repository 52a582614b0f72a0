"""Model specification system for image backends.

Provides a registry of supported image and verification models with their
capabilities and provider information.
"""

from dataclasses import dataclass, field
from enum import Enum


class ImageCapability(Enum):
    """Capabilities that a model may support."""

    IMAGE_EDIT = "image_edit"  # Produces an image from a prompt plus image
    VISION = "vision"  # Accepts images and answers in text


class ProviderType(Enum):
    """Available image backend providers."""

    GOOGLE = "google"
    OPENAI = "openai"


@dataclass(frozen=True)
class ModelSpec:
    """Specification for an image or vision model.

    Attributes:
        name: Model identifier (e.g., 'gemini-2.5-flash-image-preview').
        provider: Backend provider type.
        capabilities: Set of supported capabilities.
        description: Human-readable description.
        api_key_env_var: Environment variable name for the API key.
    """

    name: str
    provider: ProviderType
    capabilities: frozenset[ImageCapability] = field(default_factory=frozenset)
    description: str = ""
    api_key_env_var: str = ""

    def supports(self, capability: ImageCapability) -> bool:
        """Check if model supports a capability."""
        return capability in self.capabilities


class ImageModel(Enum):
    """Registry of available models."""

    # === Google Gemini ===
    GEMINI_2_5_FLASH_IMAGE = ModelSpec(
        name="gemini-2.5-flash-image-preview",
        provider=ProviderType.GOOGLE,
        capabilities=frozenset({ImageCapability.IMAGE_EDIT, ImageCapability.VISION}),
        description="Gemini image generation and editing",
        api_key_env_var="GOOGLE_API_KEY",
    )

    GEMINI_2_5_FLASH = ModelSpec(
        name="gemini-2.5-flash",
        provider=ProviderType.GOOGLE,
        capabilities=frozenset({ImageCapability.VISION}),
        description="Gemini fast multimodal model",
        api_key_env_var="GOOGLE_API_KEY",
    )

    # === OpenAI ===
    GPT_IMAGE_1 = ModelSpec(
        name="gpt-image-1",
        provider=ProviderType.OPENAI,
        capabilities=frozenset({ImageCapability.IMAGE_EDIT}),
        description="OpenAI image generation and editing",
        api_key_env_var="OPENAI_API_KEY",
    )

    GPT_4_1_MINI = ModelSpec(
        name="gpt-4.1-mini",
        provider=ProviderType.OPENAI,
        capabilities=frozenset({ImageCapability.VISION}),
        description="OpenAI fast and efficient vision model",
        api_key_env_var="OPENAI_API_KEY",
    )

    @property
    def spec(self) -> ModelSpec:
        """Get the ModelSpec for this model."""
        return self.value

    @classmethod
    def by_name(cls, name: str) -> "ImageModel | None":
        """Look up model by name string.

        Args:
            name: Model name to find.

        Returns:
            ImageModel if found, None otherwise.
        """
        for model in cls:
            if model.spec.name == name:
                return model
        return None

    @classmethod
    def list_by_provider(cls, provider: ProviderType) -> list["ImageModel"]:
        """Get all models for a specific provider."""
        return [m for m in cls if m.spec.provider == provider]


# Default (generation, verification) models for each provider
DEFAULT_MODELS: dict[ProviderType, tuple[ImageModel, ImageModel]] = {
    ProviderType.GOOGLE: (
        ImageModel.GEMINI_2_5_FLASH_IMAGE,
        ImageModel.GEMINI_2_5_FLASH,
    ),
    ProviderType.OPENAI: (ImageModel.GPT_IMAGE_1, ImageModel.GPT_4_1_MINI),
}

DEFAULT_PROVIDER = ProviderType.GOOGLE


def get_model_spec(model: str | ImageModel | ModelSpec) -> ModelSpec:
    """Resolve a model reference to its ModelSpec.

    Args:
        model: Can be a model name string, ImageModel enum, or ModelSpec.

    Returns:
        The resolved ModelSpec.

    Raises:
        ValueError: If model name is not found.
    """
    if isinstance(model, ModelSpec):
        return model
    if isinstance(model, ImageModel):
        return model.spec

    found = ImageModel.by_name(model)
    if found is None:
        available = ", ".join(m.spec.name for m in ImageModel)
        raise ValueError(f"Unknown model: {model}. Available: {available}")
    return found.spec


def get_provider_type(provider: str | ProviderType) -> ProviderType:
    """Resolve a provider name to its ProviderType.

    Raises:
        ValueError: If provider is unknown.
    """
    if isinstance(provider, ProviderType):
        return provider
    try:
        return ProviderType(provider.lower())
    except ValueError:
        available = ", ".join(p.value for p in ProviderType)
        raise ValueError(
            f"Unknown provider: {provider}. Available: {available}"
        ) from None


__all__ = [
    "ImageCapability",
    "ProviderType",
    "ModelSpec",
    "ImageModel",
    "DEFAULT_MODELS",
    "DEFAULT_PROVIDER",
    "get_model_spec",
    "get_provider_type",
]
