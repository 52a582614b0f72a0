"""Tests for PromptBuilder module."""

import pytest
from pydantic import ValidationError

from .lib import PromptBuilder, PromptConfig


class TestPromptConfig:
    """Tests for PromptConfig model."""

    @pytest.mark.unit
    def test_default_config(self):
        config = PromptConfig()
        assert config.expression == "preserve"
        assert config.remove_glasses is False
        assert config.cartoon_mode is False
        assert config.cartoon_description == ""

    @pytest.mark.unit
    def test_strips_and_normalizes(self):
        config = PromptConfig(expression=" Preserve ", cartoon_description="  Saber ")
        assert config.expression == "preserve"
        assert config.cartoon_description == "Saber"

    @pytest.mark.unit
    def test_blank_expression_rejected(self):
        with pytest.raises(ValidationError):
            PromptConfig(expression="   ")

    @pytest.mark.unit
    def test_frozen(self):
        config = PromptConfig()
        with pytest.raises(ValidationError):
            config.cartoon_mode = True


class TestPromptBuilder:
    """Tests for PromptBuilder templates."""

    @pytest.fixture
    def builder(self):
        return PromptBuilder()

    @pytest.mark.unit
    def test_photo_prompt_defaults(self, builder):
        prompt = builder.build()

        assert prompt.startswith("**Image Modification Task:**")
        assert "preserve the exact same facial expression" in prompt
        assert "If the person is wearing accessories like glasses, keep them." in prompt
        assert "{" not in prompt

    @pytest.mark.unit
    def test_photo_prompt_options(self, builder):
        prompt = builder.build(
            PromptConfig(expression="a gentle, closed-mouth smile", remove_glasses=True)
        )

        assert "The person must have a gentle, closed-mouth smile." in prompt
        assert "You MUST remove the glasses completely" in prompt
        assert "keep them" not in prompt

    @pytest.mark.unit
    def test_cartoon_prompt_without_description(self, builder):
        prompt = builder.build(PromptConfig(cartoon_mode=True))

        assert prompt.startswith("**Primary Task: Cartoon to Realism Conversion")
        assert "Analyze the image to identify the character's key features." in prompt
        assert "render a realistic version of them" in prompt

    @pytest.mark.unit
    def test_cartoon_prompt_with_description(self, builder):
        prompt = builder.build(
            PromptConfig(
                cartoon_mode=True,
                cartoon_description="silver-haired swordswoman",
                remove_glasses=True,
            )
        )

        assert "guide your interpretation: 'silver-haired swordswoman'." in prompt
        assert "do NOT include them in the final realistic image" in prompt
        assert "{" not in prompt

    @pytest.mark.unit
    def test_factory_renders_each_call(self, builder):
        make_prompt = builder.factory(PromptConfig(cartoon_mode=True))
        assert make_prompt() == make_prompt() == builder.build(
            PromptConfig(cartoon_mode=True)
        )
