"""Tests for image backend implementations."""

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from .base import (
    VERIFY_PROMPT,
    AuthenticationError,
    GenerationError,
    RateLimitError,
    TransientGenerationError,
    parse_verdict,
)
from .factory import create_image_backend
from .gemini import GeminiImageBackend
from .model_spec import (
    ImageCapability,
    ImageModel,
    ModelSpec,
    ProviderType,
    get_model_spec,
    get_provider_type,
)
from .openai import OpenAIImageBackend


class _StatusError(Exception):
    """Provider error carrying an HTTP status, like SDK exceptions do."""

    def __init__(self, message: str, *, code=None, status_code=None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


# =============================================================================
# Model Specification Tests
# =============================================================================


class TestModelSpec:
    """Tests for ModelSpec and the ImageModel registry."""

    @pytest.mark.unit
    def test_spec_capabilities(self):
        spec = ModelSpec(
            name="test",
            provider=ProviderType.GOOGLE,
            capabilities=frozenset({ImageCapability.VISION}),
        )
        assert spec.supports(ImageCapability.VISION)
        assert not spec.supports(ImageCapability.IMAGE_EDIT)

    @pytest.mark.unit
    def test_by_name(self):
        assert ImageModel.by_name("gpt-image-1") is ImageModel.GPT_IMAGE_1
        assert ImageModel.by_name("nope") is None

    @pytest.mark.unit
    def test_list_by_provider(self):
        google = ImageModel.list_by_provider(ProviderType.GOOGLE)
        assert ImageModel.GEMINI_2_5_FLASH_IMAGE in google
        assert ImageModel.GPT_IMAGE_1 not in google

    @pytest.mark.unit
    def test_get_model_spec_variants(self):
        spec = ImageModel.GEMINI_2_5_FLASH.spec
        assert get_model_spec(spec) is spec
        assert get_model_spec(ImageModel.GEMINI_2_5_FLASH) is spec
        assert get_model_spec("gemini-2.5-flash") is spec

    @pytest.mark.unit
    def test_get_model_spec_unknown(self):
        with pytest.raises(ValueError, match="Unknown model"):
            get_model_spec("dall-e-9")

    @pytest.mark.unit
    def test_get_provider_type(self):
        assert get_provider_type("Google") is ProviderType.GOOGLE
        assert get_provider_type(ProviderType.OPENAI) is ProviderType.OPENAI
        with pytest.raises(ValueError, match="Unknown provider"):
            get_provider_type("midjourney")


class TestParseVerdict:
    """Tests for YES/NO interpretation."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("YES", True),
            (" yes\n", True),
            ("NO", False),
            ("Yes, same person", False),
            ("", False),
            (None, False),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_verdict(text) is expected


# =============================================================================
# Factory Tests
# =============================================================================


class TestFactory:
    """Tests for create_image_backend."""

    @pytest.mark.unit
    def test_default_is_google(self, monkeypatch):
        monkeypatch.delenv("IDPHOTO_PROVIDER", raising=False)
        monkeypatch.delenv("IDPHOTO_IMAGE_MODEL", raising=False)
        monkeypatch.delenv("IDPHOTO_VERIFY_MODEL", raising=False)
        backend = create_image_backend(api_key="g-key")
        assert isinstance(backend, GeminiImageBackend)
        assert backend.model_name == "gemini-2.5-flash-image-preview"
        assert backend.verify_model_name == "gemini-2.5-flash"
        assert backend.name == "google:gemini-2.5-flash-image-preview"

    @pytest.mark.unit
    def test_provider_from_environment(self, monkeypatch):
        monkeypatch.setenv("IDPHOTO_PROVIDER", "openai")
        monkeypatch.delenv("IDPHOTO_IMAGE_MODEL", raising=False)
        monkeypatch.delenv("IDPHOTO_VERIFY_MODEL", raising=False)
        backend = create_image_backend(api_key="sk-test")
        assert isinstance(backend, OpenAIImageBackend)
        assert backend.model_name == "gpt-image-1"

    @pytest.mark.unit
    def test_model_provider_mismatch(self):
        with pytest.raises(ValueError, match="belongs to"):
            create_image_backend("google", model="gpt-image-1", api_key="k")

    @pytest.mark.unit
    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        with pytest.raises(AuthenticationError):
            create_image_backend("google")


# =============================================================================
# Gemini Backend Tests
# =============================================================================


def _gemini_response(*parts):
    content = SimpleNamespace(parts=list(parts))
    return SimpleNamespace(candidates=[SimpleNamespace(content=content)])


class TestGeminiBackend:
    """Tests for GeminiImageBackend with a mocked client."""

    @pytest.fixture
    def backend(self):
        backend = GeminiImageBackend(api_key="g-key")
        backend._client = MagicMock()
        return backend

    @pytest.mark.unit
    def test_generate_returns_inline_image(self, backend):
        text_part = SimpleNamespace(inline_data=None, text="here you go")
        image_part = SimpleNamespace(inline_data=SimpleNamespace(data=b"IMG"))
        backend._client.models.generate_content.return_value = _gemini_response(
            text_part, image_part
        )

        assert backend.generate_image("prompt", b"src") == b"IMG"

        kwargs = backend._client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash-image-preview"
        assert kwargs["contents"][0] == "prompt"

    @pytest.mark.unit
    def test_generate_decodes_base64_payload(self, backend):
        encoded = base64.b64encode(b"IMG").decode()
        part = SimpleNamespace(inline_data=SimpleNamespace(data=encoded))
        backend._client.models.generate_content.return_value = _gemini_response(part)
        assert backend.generate_image("prompt", b"src") == b"IMG"

    @pytest.mark.unit
    def test_generate_without_image_returns_none(self, backend):
        part = SimpleNamespace(inline_data=None, text="I cannot do that")
        backend._client.models.generate_content.return_value = _gemini_response(part)
        assert backend.generate_image("prompt", b"src") is None

    @pytest.mark.unit
    def test_generate_without_candidates_returns_none(self, backend):
        backend._client.models.generate_content.return_value = SimpleNamespace(
            candidates=None
        )
        assert backend.generate_image("prompt", b"src") is None

    @pytest.mark.unit
    def test_verify_match(self, backend):
        backend._client.models.generate_content.return_value = SimpleNamespace(
            text="YES"
        )
        assert backend.verify_match(b"a", b"b") is True
        kwargs = backend._client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"][0] == VERIFY_PROMPT

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (_StatusError("quota", code=429), RateLimitError),
            (_StatusError("denied", code=403), AuthenticationError),
            (_StatusError("unavailable", code=503), TransientGenerationError),
            (_StatusError("bad request", code=400), GenerationError),
            (ConnectionError("reset by peer"), TransientGenerationError),
        ],
    )
    def test_error_mapping(self, backend, error, expected):
        backend._client.models.generate_content.side_effect = error
        with pytest.raises(expected):
            backend.generate_image("prompt", b"src")

    @pytest.mark.unit
    def test_bad_request_is_not_transient(self, backend):
        backend._client.models.generate_content.side_effect = _StatusError(
            "bad", code=400
        )
        with pytest.raises(GenerationError) as info:
            backend.generate_image("prompt", b"src")
        assert not isinstance(info.value, TransientGenerationError)


# =============================================================================
# OpenAI Backend Tests
# =============================================================================


class TestOpenAIBackend:
    """Tests for OpenAIImageBackend with a mocked client."""

    @pytest.fixture
    def backend(self):
        backend = OpenAIImageBackend(api_key="sk-test")
        backend._client = MagicMock()
        return backend

    @pytest.mark.unit
    def test_generate_decodes_b64_json(self, backend):
        encoded = base64.b64encode(b"IMG").decode()
        backend._client.images.edit.return_value = SimpleNamespace(
            data=[SimpleNamespace(b64_json=encoded)]
        )

        image = backend.generate_image("prompt", b"src", mime_type="image/jpeg")
        assert image == b"IMG"

        kwargs = backend._client.images.edit.call_args.kwargs
        assert kwargs["model"] == "gpt-image-1"
        assert kwargs["image"] == ("source.jpg", b"src", "image/jpeg")

    @pytest.mark.unit
    def test_generate_empty_data(self, backend):
        backend._client.images.edit.return_value = SimpleNamespace(data=[])
        assert backend.generate_image("prompt", b"src") is None

    @pytest.mark.unit
    def test_verify_sends_both_images(self, backend):
        message = SimpleNamespace(content="NO")
        backend._client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=message)]
        )

        assert backend.verify_match(b"a", b"b") is False

        kwargs = backend._client.chat.completions.create.call_args.kwargs
        content = kwargs["messages"][0]["content"]
        assert content[0]["text"] == VERIFY_PROMPT
        assert [c["type"] for c in content[1:]] == ["image_url", "image_url"]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (_StatusError("slow down", status_code=429), RateLimitError),
            (_StatusError("who are you", status_code=401), AuthenticationError),
            (_StatusError("oops", status_code=500), TransientGenerationError),
            (TimeoutError("timed out"), TransientGenerationError),
        ],
    )
    def test_error_mapping(self, backend, error, expected):
        backend._client.images.edit.side_effect = error
        with pytest.raises(expected):
            backend.generate_image("prompt", b"src")
