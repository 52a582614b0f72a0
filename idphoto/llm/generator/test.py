"""Tests for LLM generator module.

Covers:
- GeneratorConfig validation
- RetryingGenerator: attempt budget, validation, cancellation, observers
- make_verifier: failure degrades to mismatch
"""

import pytest

from ..backend.base import RateLimitError, TransientGenerationError
from .lib import (
    MAX_ATTEMPTS,
    AttemptOutcome,
    CancellationToken,
    GeneratorConfig,
    RetryingGenerator,
    SourceImage,
    make_verifier,
)


@pytest.fixture
def source(source_png):
    return SourceImage(source_png, "image/png")


def _prompt():
    return "make it an id photo"


# =============================================================================
# Configuration Tests
# =============================================================================


class TestGeneratorConfig:
    """Tests for GeneratorConfig dataclass."""

    @pytest.mark.unit
    def test_default_config(self):
        config = GeneratorConfig()
        assert config.max_attempts == MAX_ATTEMPTS == 5
        assert config.verify_results is True

    @pytest.mark.unit
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError, match="max_attempts"):
            GeneratorConfig(max_attempts=0)


class TestCancellationToken:
    """Tests for CancellationToken."""

    @pytest.mark.unit
    def test_cancel_and_clear(self):
        token = CancellationToken()
        assert not token.cancelled
        token.cancel()
        assert token.cancelled
        token.clear()
        assert not token.cancelled


# =============================================================================
# RetryingGenerator Tests
# =============================================================================


class TestRetryingGenerator:
    """Tests for RetryingGenerator.run with a scripted backend."""

    @pytest.mark.unit
    def test_first_attempt_success_without_validation(self, scripted_backend, source):
        backend = scripted_backend(images=[b"IMG"])
        result = RetryingGenerator(backend).run(source, _prompt)

        assert result.outcome == AttemptOutcome.SUCCESS
        assert result.image == b"IMG"
        assert result.attempts == 1
        assert backend.generate_calls == [(_prompt(), source.data, "image/png")]

    @pytest.mark.unit
    def test_empty_responses_then_verified_match(self, scripted_backend, source):
        """Four empty payloads then a matching image on the fifth call."""
        backend = scripted_backend(
            images=[None, None, None, None, b"IMG"], verdicts=[True]
        )
        result = RetryingGenerator(backend).run(
            source, _prompt, make_verifier(backend)
        )

        assert result.outcome == AttemptOutcome.SUCCESS
        assert result.image == b"IMG"
        assert len(backend.generate_calls) == 5
        assert len(backend.verify_calls) == 1
        assert result.stats.empty_responses == 4
        assert result.stats.validations == 1

    @pytest.mark.unit
    def test_cancel_after_failed_second_attempt(self, scripted_backend, source):
        """Cancellation raised during attempt 2 stops before a third call."""
        token = CancellationToken()
        backend = scripted_backend(
            images=[None, TransientGenerationError("connection reset"), b"IMG"]
        )

        def cancel_on_second(call_number):
            if call_number == 2:
                token.cancel()

        backend.before_generate = cancel_on_second
        result = RetryingGenerator(backend).run(source, _prompt, cancellation=token)

        assert result.outcome == AttemptOutcome.TERMINATED
        assert len(backend.generate_calls) == 2
        assert result.stats.transient_errors == 1

    @pytest.mark.unit
    def test_precancelled_makes_no_calls(self, scripted_backend, source):
        token = CancellationToken()
        token.cancel()
        backend = scripted_backend(images=[b"IMG"])

        result = RetryingGenerator(backend).run(source, _prompt, cancellation=token)

        assert result.outcome == AttemptOutcome.TERMINATED
        assert result.attempts == 0
        assert backend.generate_calls == []

    @pytest.mark.unit
    def test_cancel_before_validation(self, scripted_backend, source):
        token = CancellationToken()
        backend = scripted_backend(images=[b"IMG"], verdicts=[True])
        backend.before_generate = lambda _: token.cancel()

        result = RetryingGenerator(backend).run(
            source, _prompt, make_verifier(backend), token
        )

        assert result.outcome == AttemptOutcome.TERMINATED
        assert backend.verify_calls == []

    @pytest.mark.unit
    def test_exhausted_budget_is_rejected(self, scripted_backend, source):
        backend = scripted_backend(
            images=[b"A", RateLimitError("slow down"), None, b"B", b"C", b"D"],
            verdicts=[False, False, False],
        )
        result = RetryingGenerator(backend).run(
            source, _prompt, make_verifier(backend)
        )

        assert result.outcome == AttemptOutcome.REJECTED
        assert result.image is None
        assert len(backend.generate_calls) == MAX_ATTEMPTS
        assert result.stats.rejected_candidates == 3
        assert result.stats.transient_errors == 1
        assert result.stats.empty_responses == 1

    @pytest.mark.unit
    @pytest.mark.parametrize("max_attempts", [1, 3, 5])
    def test_never_exceeds_budget(self, scripted_backend, source, max_attempts):
        backend = scripted_backend(images=[None] * 10)
        generator = RetryingGenerator(
            backend, GeneratorConfig(max_attempts=max_attempts)
        )
        result = generator.run(source, _prompt)

        assert result.outcome == AttemptOutcome.REJECTED
        assert len(backend.generate_calls) == max_attempts

    @pytest.mark.unit
    def test_no_validator_means_no_verify_calls(self, scripted_backend, source):
        """Cartoon mode passes no validator at all."""
        backend = scripted_backend(images=[None, b"TOON"], verdicts=[False])
        result = RetryingGenerator(backend).run(source, _prompt, validate=None)

        assert result.outcome == AttemptOutcome.SUCCESS
        assert backend.verify_calls == []

    @pytest.mark.unit
    def test_verify_results_disabled(self, scripted_backend, source):
        backend = scripted_backend(images=[b"IMG"], verdicts=[False])
        generator = RetryingGenerator(backend, GeneratorConfig(verify_results=False))
        result = generator.run(source, _prompt, make_verifier(backend))

        assert result.outcome == AttemptOutcome.SUCCESS
        assert backend.verify_calls == []

    @pytest.mark.unit
    def test_prompt_built_per_attempt(self, scripted_backend, source):
        prompts = iter(["first", "second"])
        backend = scripted_backend(images=[None, b"IMG"])
        RetryingGenerator(backend).run(source, lambda: next(prompts))

        assert [call[0] for call in backend.generate_calls] == ["first", "second"]

    @pytest.mark.unit
    def test_programming_errors_propagate(self, scripted_backend, source):
        backend = scripted_backend(images=[TypeError("bug")])
        with pytest.raises(TypeError):
            RetryingGenerator(backend).run(source, _prompt)


class TestObservers:
    """Tests for progress notifications."""

    @pytest.mark.unit
    def test_attempt_and_validation_notifications(self, scripted_backend, source):
        events = []
        backend = scripted_backend(images=[b"A", b"B"], verdicts=[False, True])
        generator = RetryingGenerator(
            backend,
            on_attempt=lambda n, total: events.append(("attempt", n, total)),
            on_validating=lambda: events.append(("validating",)),
        )
        generator.run(source, _prompt, make_verifier(backend))

        assert events == [
            ("attempt", 1, 5),
            ("validating",),
            ("attempt", 2, 5),
            ("validating",),
        ]

    @pytest.mark.unit
    def test_raising_observer_does_not_change_outcome(self, scripted_backend, source):
        def broken(*_):
            raise RuntimeError("display gone")

        backend = scripted_backend(images=[None, b"IMG"], verdicts=[True])
        generator = RetryingGenerator(backend, on_attempt=broken, on_validating=broken)
        result = generator.run(source, _prompt, make_verifier(backend))

        assert result.outcome == AttemptOutcome.SUCCESS
        assert len(backend.generate_calls) == 2


class TestMakeVerifier:
    """Tests for make_verifier."""

    @pytest.mark.unit
    def test_passes_through_verdict(self, scripted_backend):
        backend = scripted_backend(verdicts=[True, False])
        verify = make_verifier(backend)
        assert verify(b"a", b"b") is True
        assert verify(b"a", b"c") is False

    @pytest.mark.unit
    def test_failure_counts_as_mismatch(self, scripted_backend):
        backend = scripted_backend(verdicts=[ConnectionError("offline")])
        assert make_verifier(backend)(b"a", b"b") is False
