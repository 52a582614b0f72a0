"""idphoto: quota-guarded ID-photo generation with remote image models."""

from idphoto.llm import RetryingGenerator, create_image_backend
from idphoto.orchestrator import GenerationKind, Orchestrator
from idphoto.prompt import PromptBuilder, PromptConfig
from idphoto.quota import QuotaExceededError, RateLimiter
from idphoto.session import GenerationStatus

__all__ = [
    # Orchestration
    "Orchestrator",
    "GenerationKind",
    "GenerationStatus",
    # Quota
    "RateLimiter",
    "QuotaExceededError",
    # Generation
    "RetryingGenerator",
    "create_image_backend",
    # Prompts
    "PromptBuilder",
    "PromptConfig",
]
