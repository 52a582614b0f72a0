"""Tests for the generation orchestrator.

Covers:
- Admission before generation and quota consumption on failure
- Status transitions per outcome
- Failure counter asymmetry between generate and regenerate
- Single-session guard, cancellation, reset and source loading
"""

import json

import pytest

from idphoto.prompt import PromptConfig
from idphoto.quota import STORAGE_KEY, QuotaExceededError, RateLimiter
from idphoto.session import GenerationStatus
from idphoto.storage import InMemoryStore

from .lib import (
    GenerationKind,
    InvalidImageError,
    NoSourceImageError,
    Orchestrator,
    SessionBusyError,
)

WINDOW = 10 * 60 * 1000
S = GenerationStatus


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def limiter(store, fake_clock):
    fake_clock.set(1_000_000)
    return RateLimiter(store, max_generations=5, window_ms=WINDOW, clock=fake_clock)


@pytest.fixture
def make_orchestrator(limiter, scripted_backend, source_png):
    """Build an Orchestrator around a scripted backend with a photo loaded."""

    def _make(images=None, verdicts=None, **kwargs):
        backend = scripted_backend(images=images, verdicts=verdicts)
        orchestrator = Orchestrator(backend, limiter, **kwargs)
        orchestrator.load_source(source_png, "image/png")
        return orchestrator, backend

    return _make


def _stored(store) -> list:
    return json.loads(store.get(STORAGE_KEY))


# =============================================================================
# Generation Flow Tests
# =============================================================================


class TestRequestGeneration:
    """Tests for request_generation outcomes."""

    @pytest.mark.unit
    def test_success(self, make_orchestrator, store):
        orchestrator, backend = make_orchestrator(images=[b"IMG"], verdicts=[True])

        session = orchestrator.request_generation()

        assert session.succeeded
        assert session.image == b"IMG"
        assert session.attempts_made == 1
        assert session.decision.admitted
        assert orchestrator.status == S.SUCCESS
        assert orchestrator.result == b"IMG"
        assert _stored(store) == [1_000_000]

    @pytest.mark.unit
    def test_failure_still_consumes_quota(self, make_orchestrator, store):
        orchestrator, backend = make_orchestrator()

        session = orchestrator.request_generation()

        assert not session.succeeded
        assert session.attempts_made == 5
        assert orchestrator.status == S.FAILURE
        assert orchestrator.failure_count == 1
        assert orchestrator.quota().used == 1
        assert len(_stored(store)) == 1

    @pytest.mark.unit
    def test_quota_exceeded_has_no_side_effects(
        self, make_orchestrator, store, fake_clock
    ):
        full = [fake_clock() - 1000 * i for i in range(5, 0, -1)]
        store.set(STORAGE_KEY, json.dumps(full))
        orchestrator, backend = make_orchestrator(images=[b"IMG"])

        with pytest.raises(QuotaExceededError) as info:
            orchestrator.request_generation()

        assert info.value.decision.active_count == 5
        assert backend.generate_calls == []
        assert orchestrator.status == S.IDLE
        assert _stored(store) == full

    @pytest.mark.unit
    def test_quota_freed_after_window(self, make_orchestrator, store, fake_clock):
        orchestrator, _ = make_orchestrator(images=[b"A"] * 6, verdicts=[True] * 6)
        for _ in range(5):
            orchestrator.request_generation()
            fake_clock.advance(1000)

        with pytest.raises(QuotaExceededError):
            orchestrator.request_generation()

        fake_clock.advance(WINDOW)
        session = orchestrator.request_generation()
        assert session.succeeded
        assert orchestrator.quota().used == 1

    @pytest.mark.unit
    def test_cartoon_mode_skips_verification(self, make_orchestrator):
        orchestrator, backend = make_orchestrator(images=[b"TOON"], verdicts=[False])

        session = orchestrator.request_generation(
            prompt_config=PromptConfig(cartoon_mode=True)
        )

        assert session.succeeded
        assert backend.verify_calls == []
        assert "Cartoon to Realism" in backend.generate_calls[0][0]

    @pytest.mark.unit
    def test_default_prompt_config_is_used(self, make_orchestrator):
        orchestrator, backend = make_orchestrator(images=[b"IMG"], verdicts=[True])
        orchestrator.prompt_config = PromptConfig(remove_glasses=True)

        orchestrator.request_generation()

        assert "remove the glasses completely" in backend.generate_calls[0][0]

    @pytest.mark.unit
    def test_unexpected_error_settles_as_failure(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[KeyError("bug")])

        with pytest.raises(KeyError):
            orchestrator.request_generation()

        assert orchestrator.status == S.FAILURE
        assert orchestrator.failure_count == 1
        assert orchestrator.quota().used == 1

    @pytest.mark.unit
    def test_unexpected_error_on_regenerate_keeps_counter(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[KeyError("bug")])

        with pytest.raises(KeyError):
            orchestrator.request_generation(GenerationKind.REGENERATE)

        assert orchestrator.status == S.FAILURE
        assert orchestrator.failure_count == 0

    @pytest.mark.unit
    def test_kind_accepts_string(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[b"IMG"], verdicts=[True])
        session = orchestrator.request_generation("regenerate")
        assert session.kind == GenerationKind.REGENERATE
        assert session.is_regeneration


class TestResultsAndFailureCounter:
    """Tests for result retention and the advisory failure counter."""

    @pytest.mark.unit
    def test_regenerate_failure_keeps_result_and_counter(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[b"FIRST"], verdicts=[True])
        orchestrator.request_generation(GenerationKind.GENERATE)

        orchestrator.request_generation(GenerationKind.REGENERATE)

        assert orchestrator.status == S.FAILURE
        assert orchestrator.result == b"FIRST"
        assert orchestrator.failure_count == 0

    @pytest.mark.unit
    def test_regenerate_success_replaces_result(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(
            images=[b"FIRST", b"SECOND"], verdicts=[True, True]
        )
        orchestrator.request_generation(GenerationKind.GENERATE)
        orchestrator.request_generation(GenerationKind.REGENERATE)

        assert orchestrator.result == b"SECOND"

    @pytest.mark.unit
    def test_generate_clears_previous_result(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[b"FIRST"], verdicts=[True])
        orchestrator.request_generation()

        orchestrator.request_generation()

        assert orchestrator.result is None
        assert orchestrator.snapshot().has_result is False

    @pytest.mark.unit
    def test_failure_counter_accumulates_and_resets_on_upload(
        self, make_orchestrator, source_png
    ):
        orchestrator, _ = make_orchestrator()
        orchestrator.request_generation()
        orchestrator.request_generation()
        assert orchestrator.failure_count == 2

        orchestrator.load_source(source_png, "image/jpeg")

        assert orchestrator.failure_count == 0
        assert orchestrator.status == S.IDLE


# =============================================================================
# Guard, Cancellation and Reset Tests
# =============================================================================


class TestSessionGuard:
    """Tests for preconditions checked before any quota side effect."""

    @pytest.mark.unit
    def test_no_source(self, limiter, scripted_backend, store):
        orchestrator = Orchestrator(scripted_backend(), limiter)

        with pytest.raises(NoSourceImageError):
            orchestrator.request_generation()

        assert _stored(store) == []

    @pytest.mark.unit
    def test_busy_session_refuses_new_requests(self, make_orchestrator, store):
        orchestrator, backend = make_orchestrator(images=[b"IMG"], verdicts=[True])
        seen = []

        def reenter(_call_number):
            assert orchestrator.status == S.LOADING
            for action in (
                orchestrator.request_generation,
                orchestrator.reset,
                lambda: orchestrator.load_source(b"other", "image/png"),
            ):
                with pytest.raises(SessionBusyError):
                    action()
                seen.append(action)

        backend.before_generate = reenter
        orchestrator.request_generation()

        assert len(seen) == 3
        assert len(_stored(store)) == 1
        assert orchestrator.status == S.SUCCESS

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("data", "mime_type"),
        [(b"", "image/png"), (b"%PDF-1.7", "application/pdf")],
    )
    def test_invalid_source(self, limiter, scripted_backend, data, mime_type):
        orchestrator = Orchestrator(scripted_backend(), limiter)
        with pytest.raises(InvalidImageError):
            orchestrator.load_source(data, mime_type)
        assert orchestrator.source is None


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.unit
    def test_cancel_mid_session_terminates(self, make_orchestrator):
        orchestrator, backend = make_orchestrator(images=[None, None, b"IMG"])

        def cancel_on_second(call_number):
            if call_number == 2:
                assert orchestrator.cancel() is True
                assert orchestrator.snapshot().cancel_requested

        backend.before_generate = cancel_on_second
        session = orchestrator.request_generation()

        assert session.terminated
        assert session.attempts_made == 2
        assert orchestrator.status == S.TERMINATING
        assert orchestrator.failure_count == 0
        assert orchestrator.quota().used == 1

    @pytest.mark.unit
    def test_cancel_when_idle_is_ignored(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[b"IMG"], verdicts=[True])

        assert orchestrator.cancel() is False
        assert orchestrator.request_generation().succeeded

    @pytest.mark.unit
    def test_new_session_clears_cancellation(self, make_orchestrator):
        orchestrator, backend = make_orchestrator(
            images=[None, b"IMG"], verdicts=[True]
        )
        backend.before_generate = lambda n: n == 1 and orchestrator.cancel()
        assert orchestrator.request_generation().terminated

        backend.before_generate = None
        session = orchestrator.request_generation(GenerationKind.REGENERATE)

        assert session.succeeded
        assert orchestrator.snapshot().cancel_requested is False


class TestResetAndSurfaces:
    """Tests for reset, snapshot and quota surfaces."""

    @pytest.mark.unit
    def test_reset_clears_session_state(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[b"IMG"], verdicts=[True])
        orchestrator.request_generation()

        orchestrator.reset()

        snapshot = orchestrator.snapshot()
        assert snapshot.status == S.IDLE
        assert snapshot.has_result is False
        assert snapshot.failure_count == 0
        assert orchestrator.source is None
        assert orchestrator.quota().used == 1

    @pytest.mark.unit
    def test_snapshot_tracks_attempts(self, make_orchestrator):
        progress = []
        orchestrator, _ = make_orchestrator(
            images=[None, b"IMG"],
            verdicts=[True],
            on_progress=lambda n, total: progress.append((n, total)),
        )

        orchestrator.request_generation()

        snapshot = orchestrator.snapshot()
        assert snapshot.attempt == 2
        assert snapshot.max_attempts == 5
        assert progress == [(1, 5), (2, 5)]

    @pytest.mark.unit
    def test_quota_observer_notified_after_each_request(
        self, make_orchestrator, store, fake_clock
    ):
        usages = []
        orchestrator, _ = make_orchestrator(
            images=[b"IMG"], verdicts=[True], on_quota=usages.append
        )

        orchestrator.request_generation()

        assert len(usages) == 1
        assert usages[0].used == 1
        assert usages[0].remaining_ms == WINDOW

    @pytest.mark.unit
    def test_status_listener_sees_session(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(images=[b"IMG"], verdicts=[True])
        events = []
        orchestrator.status_machine.subscribe(lambda old, new: events.append(new))

        orchestrator.request_generation()

        assert events == [S.LOADING, S.SUCCESS]
