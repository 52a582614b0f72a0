"""Prompt construction for ID-photo generation."""

from .lib import PRESERVE_EXPRESSION, PromptBuilder, PromptConfig

__all__ = ["PromptBuilder", "PromptConfig", "PRESERVE_EXPRESSION"]
