"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- A controllable clock for quota tests
- A scripted image backend for generator and orchestrator tests
"""

from __future__ import annotations

from typing import Callable

import pytest
from dotenv import load_dotenv

from idphoto.llm.backend.base import ImageBackend

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 0):
        self.value = start

    def __call__(self) -> int:
        return self.value

    def set(self, value: int) -> None:
        self.value = value

    def advance(self, delta_ms: int) -> None:
        self.value += delta_ms


# =============================================================================
# Scripted Image Backend
# =============================================================================


class ScriptedImageBackend(ImageBackend):
    """Image backend replaying scripted generation and verification results.

    Each script entry is either a return value or an exception instance to
    raise. Once a script runs out, generation returns None and verification
    returns False.
    """

    def __init__(
        self,
        images: list | None = None,
        verdicts: list | None = None,
    ):
        self._images = list(images or [])
        self._verdicts = list(verdicts or [])
        self.generate_calls: list[tuple[str, bytes, str]] = []
        self.verify_calls: list[tuple[bytes, bytes]] = []
        self.before_generate: Callable[[int], None] | None = None

    @property
    def provider(self) -> str:
        return "scripted"

    @property
    def model_name(self) -> str:
        return "scripted-image-v1"

    @property
    def verify_model_name(self) -> str:
        return "scripted-verify-v1"

    def generate_image(
        self,
        prompt: str,
        image: bytes,
        *,
        mime_type: str = "image/png",
    ) -> bytes | None:
        self.generate_calls.append((prompt, image, mime_type))
        if self.before_generate:
            self.before_generate(len(self.generate_calls))
        return self._next(self._images, None)

    def verify_match(
        self,
        source: bytes,
        candidate: bytes,
        *,
        mime_type: str = "image/jpeg",
    ) -> bool:
        self.verify_calls.append((source, candidate))
        return self._next(self._verdicts, False)

    @staticmethod
    def _next(script: list, default):
        if not script:
            return default
        item = script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock starting at epoch millisecond 0."""
    return FakeClock()


@pytest.fixture
def scripted_backend() -> Callable[..., ScriptedImageBackend]:
    """Factory for ScriptedImageBackend instances.

    Returns:
        Callable taking `images` and `verdicts` scripts.
    """
    return ScriptedImageBackend


@pytest.fixture
def source_png() -> bytes:
    """Minimal stand-in for an uploaded PNG."""
    return b"\x89PNG\r\n\x1a\nsource"
