"""Tests for the sliding-window quota.

Covers:
- TimestampStore: fail-soft parsing and persistence format
- RateLimiter: load/prune, admission, denial, window invariant
- Countdown tasks: expiry ticks and the elapsed-time estimate
"""

import json
import random
import threading

import pytest

from idphoto.storage import InMemoryStore

from .lib import (
    STORAGE_KEY,
    QuotaExceededError,
    RateLimiter,
    TimestampStore,
)
from .timer import (
    EstimateCountdown,
    ExpiryCountdown,
    PeriodicTask,
    format_remaining,
)

WINDOW = 10 * 60 * 1000

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def limiter(store, fake_clock):
    return RateLimiter(store, max_generations=5, window_ms=WINDOW, clock=fake_clock)


def _stored(store) -> list:
    return json.loads(store.get(STORAGE_KEY))


# =============================================================================
# TimestampStore Tests
# =============================================================================


class TestTimestampStore:
    """Tests for fail-soft log persistence."""

    @pytest.mark.unit
    def test_absent_key_reads_empty(self, store):
        assert TimestampStore(store).read() == []

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"a": 1}',
            "42",
            '["1", "2"]',
            "[1, true]",
            "[1, null]",
            "",
        ],
    )
    def test_malformed_content_reads_empty(self, store, raw):
        store.set(STORAGE_KEY, raw)
        assert TimestampStore(store).read() == []

    @pytest.mark.unit
    def test_float_timestamps_truncate_to_int(self, store):
        store.set(STORAGE_KEY, "[1000.7, 2000]")
        assert TimestampStore(store).read() == [1000, 2000]

    @pytest.mark.unit
    def test_write_is_json_array(self, store):
        TimestampStore(store).write([3, 4])
        assert store.get(STORAGE_KEY) == "[3, 4]"

    @pytest.mark.unit
    def test_custom_key(self, store):
        timestamps = TimestampStore(store, key="other")
        timestamps.write([1])
        assert timestamps.key == "other"
        assert store.get(STORAGE_KEY) is None


# =============================================================================
# RateLimiter.load Tests
# =============================================================================


class TestLoad:
    """Tests for reload, prune, and self-healing."""

    @pytest.mark.unit
    def test_sorts_and_prunes(self, store, limiter, fake_clock):
        fake_clock.set(WINDOW + 5_000)
        store.set(STORAGE_KEY, json.dumps([WINDOW, 4_000, 6_000, 5_000]))

        log = limiter.load()

        assert log == [6_000, WINDOW]
        assert all(fake_clock() - ts < WINDOW for ts in log)

    @pytest.mark.unit
    def test_entry_exactly_window_old_is_pruned(self, store, limiter, fake_clock):
        fake_clock.set(WINDOW)
        store.set(STORAGE_KEY, "[0]")
        assert limiter.load() == []

    @pytest.mark.unit
    def test_persists_cleaned_log(self, store, limiter, fake_clock):
        fake_clock.set(WINDOW)
        store.set(STORAGE_KEY, "[0, 2, 1]")
        limiter.load()
        assert _stored(store) == [1, 2]

    @pytest.mark.unit
    def test_corrupt_state_heals_to_empty(self, store, limiter):
        store.set(STORAGE_KEY, "{broken")
        assert limiter.load() == []
        assert store.get(STORAGE_KEY) == "[]"

    @pytest.mark.unit
    def test_absent_state_written_as_empty(self, store, limiter):
        limiter.load()
        assert store.get(STORAGE_KEY) == "[]"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "log",
        [[], [1_000], [1_000, 2_000, 3_000, 4_000, 5_000]],
    )
    def test_round_trip(self, store, fake_clock, log):
        fake_clock.set(6_000)
        TimestampStore(store).write(log)
        first = RateLimiter(store, clock=fake_clock).load()
        second = RateLimiter(store, clock=fake_clock).load()
        assert first == second == log


# =============================================================================
# RateLimiter.try_admit Tests
# =============================================================================


class TestTryAdmit:
    """Tests for admission decisions."""

    @pytest.mark.unit
    def test_empty_log_admits(self, store, limiter, fake_clock):
        fake_clock.set(0)
        limiter.load()

        decision = limiter.try_admit()

        assert decision.admitted is True
        assert decision.active_count == 1
        assert decision.limit == 5
        assert limiter.log == [0]
        assert _stored(store) == [0]

    @pytest.mark.unit
    def test_full_window_denies(self, store, limiter, fake_clock):
        log = [0, 60_000, 120_000, 180_000, 240_000]
        store.set(STORAGE_KEY, json.dumps(log))
        fake_clock.set(300_000)
        limiter.load()

        decision = limiter.try_admit()

        assert decision.admitted is False
        assert decision.active_count == 5
        assert decision.next_expiry_at == WINDOW
        assert limiter.log == log
        assert _stored(store) == log

    @pytest.mark.unit
    def test_expired_head_frees_a_slot(self, store, limiter, fake_clock):
        store.set(STORAGE_KEY, json.dumps([0, 60_000, 120_000, 180_000, 240_000]))
        fake_clock.set(610_000)

        assert limiter.load() == [60_000, 120_000, 180_000, 240_000]
        decision = limiter.try_admit()

        assert decision.admitted is True
        assert decision.active_count == 5
        assert limiter.log[-1] == 610_000

    @pytest.mark.unit
    def test_denial_is_idempotent(self, store, limiter, fake_clock):
        for t in range(5):
            fake_clock.set(t * 1_000)
            assert limiter.try_admit().admitted
        before = store.get(STORAGE_KEY)

        for _ in range(3):
            assert limiter.try_admit().admitted is False

        assert store.get(STORAGE_KEY) == before

    @pytest.mark.unit
    def test_clock_going_back_keeps_order(self, limiter, fake_clock):
        fake_clock.set(50_000)
        limiter.try_admit()
        fake_clock.set(40_000)
        limiter.try_admit()
        assert limiter.log == [40_000, 50_000]

    @pytest.mark.unit
    @pytest.mark.parametrize("seed", range(5))
    def test_never_more_than_limit_in_window(self, store, fake_clock, seed):
        rng = random.Random(seed)
        limiter = RateLimiter(
            store, max_generations=5, window_ms=WINDOW, clock=fake_clock
        )
        admitted: list[int] = []
        now = 0

        for _ in range(200):
            now += rng.randint(0, 90_000)
            fake_clock.set(now)
            if rng.random() < 0.2:
                limiter.load()
            if limiter.try_admit().admitted:
                admitted.append(now)
            in_window = [ts for ts in admitted if now - ts < WINDOW]
            assert len(in_window) <= 5

    @pytest.mark.unit
    def test_concurrent_admissions_respect_limit(self, store, fake_clock):
        fake_clock.set(1_000)
        limiter = RateLimiter(store, clock=fake_clock)
        results: list[bool] = []

        def admit():
            results.append(limiter.try_admit().admitted)

        threads = [threading.Thread(target=admit) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 5
        assert len(limiter.log) == 5

    @pytest.mark.unit
    def test_fresh_limiter_reads_full_store(self, store, limiter, fake_clock):
        log = [0, 60_000, 120_000, 180_000, 240_000]
        store.set(STORAGE_KEY, json.dumps(log))
        fake_clock.set(300_000)

        decision = limiter.try_admit()

        assert decision.admitted is False
        assert decision.active_count == 5
        assert _stored(store) == log

    @pytest.mark.unit
    def test_limiters_sharing_a_store_respect_limit(self, store, fake_clock):
        first = RateLimiter(store, window_ms=WINDOW, clock=fake_clock)
        second = RateLimiter(store, window_ms=WINDOW, clock=fake_clock)
        admitted = 0

        for t in range(10):
            fake_clock.set(t * 1_000)
            limiter = first if t % 2 else second
            admitted += limiter.try_admit().admitted

        assert admitted == 5
        assert _stored(store) == [0, 1_000, 2_000, 3_000, 4_000]

    @pytest.mark.unit
    def test_admit_against_given_log(self, store, limiter, fake_clock):
        store.set(STORAGE_KEY, json.dumps([1_000, 2_000]))
        fake_clock.set(5_000)

        decision = limiter.try_admit(limiter.load())

        assert decision.admitted is True
        assert decision.active_count == 3
        assert _stored(store) == [1_000, 2_000, 5_000]

    @pytest.mark.unit
    def test_given_log_is_pruned_before_deciding(self, limiter, fake_clock):
        fake_clock.set(WINDOW + 500)
        full = [0, 100, 200, 300, 400]

        decision = limiter.try_admit(full)

        assert decision.admitted is True
        assert decision.active_count == 1
        assert limiter.log == [WINDOW + 500]

    @pytest.mark.unit
    def test_given_full_log_denies(self, store, limiter, fake_clock):
        fake_clock.set(10_000)

        decision = limiter.try_admit([1_000, 2_000, 3_000, 4_000, 5_000])

        assert decision.admitted is False
        assert decision.next_expiry_at == 1_000 + WINDOW
        assert store.get(STORAGE_KEY) is None

    @pytest.mark.unit
    def test_invalid_construction(self, store):
        with pytest.raises(ValueError):
            RateLimiter(store, max_generations=0)
        with pytest.raises(ValueError):
            RateLimiter(store, window_ms=0)


class TestExpiryQueries:
    """Tests for next_expiry, remaining_ms and usage."""

    @pytest.mark.unit
    def test_next_expiry_empty(self, limiter):
        assert limiter.next_expiry() is None
        assert limiter.remaining_ms() is None

    @pytest.mark.unit
    def test_next_expiry_uses_head(self, limiter, fake_clock):
        fake_clock.set(1_000)
        limiter.try_admit()
        fake_clock.set(2_000)
        limiter.try_admit()
        assert limiter.next_expiry() == 1_000 + WINDOW

    @pytest.mark.unit
    def test_remaining_clamped_at_zero(self, limiter, fake_clock):
        limiter.try_admit()
        fake_clock.advance(WINDOW * 2)
        assert limiter.remaining_ms() == 0

    @pytest.mark.unit
    def test_usage(self, limiter, fake_clock):
        fake_clock.set(0)
        limiter.try_admit()
        fake_clock.set(1_000)

        usage = limiter.usage()

        assert usage.used == 1
        assert usage.limit == 5
        assert usage.remaining_ms == WINDOW - 1_000
        assert usage.limit_reached is False

    @pytest.mark.unit
    def test_next_expiry_of_given_log(self, limiter):
        assert limiter.next_expiry([3_000, 4_000]) == 3_000 + WINDOW
        assert limiter.next_expiry([]) is None

    @pytest.mark.unit
    def test_usage_drops_expired_entries(self, limiter, fake_clock):
        fake_clock.set(0)
        for _ in range(5):
            limiter.try_admit()
        assert limiter.usage().limit_reached

        fake_clock.set(11 * 60 * 1000)
        usage = limiter.usage()

        assert usage.used == 0
        assert usage.remaining_ms is None
        assert len(limiter.log) == 5

    @pytest.mark.unit
    def test_quota_exceeded_error_carries_decision(self, limiter):
        for _ in range(5):
            limiter.try_admit()
        decision = limiter.try_admit()
        error = QuotaExceededError(decision)
        assert error.decision is decision
        assert "5/5" in str(error)


# =============================================================================
# Countdown Tests
# =============================================================================


class TestFormatRemaining:
    """Tests for MM:SS formatting."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("ms", "text"),
        [
            (0, "00:00"),
            (1, "00:01"),
            (1_000, "00:01"),
            (59_001, "01:00"),
            (600_000, "10:00"),
            (-5, "00:00"),
        ],
    )
    def test_format(self, ms, text):
        assert format_remaining(ms) == text


class TestExpiryCountdown:
    """Tests for countdown ticks, driven manually."""

    @pytest.mark.unit
    def test_idle_when_log_empty(self, limiter):
        idle = []
        countdown = ExpiryCountdown(
            limiter, on_tick=lambda ms: None, on_idle=lambda: idle.append(True)
        )
        assert countdown.tick() is None
        assert idle == [True]

    @pytest.mark.unit
    def test_tick_reports_remaining(self, limiter, fake_clock):
        ticks = []
        fake_clock.set(0)
        limiter.try_admit()
        fake_clock.set(30_000)

        countdown = ExpiryCountdown(limiter, on_tick=ticks.append)

        assert countdown.tick() == WINDOW - 30_000
        assert ticks == [WINDOW - 30_000]

    @pytest.mark.unit
    def test_expiry_reloads_and_moves_to_next_entry(self, limiter, fake_clock):
        expired = []
        fake_clock.set(0)
        limiter.try_admit()
        fake_clock.set(10_000)
        limiter.try_admit()
        countdown = ExpiryCountdown(
            limiter, on_tick=lambda ms: None, on_expire=lambda: expired.append(True)
        )

        fake_clock.set(WINDOW)
        assert countdown.tick() == 0
        assert expired == [True]
        assert limiter.log == [10_000]
        assert countdown.tick() == 10_000

    @pytest.mark.unit
    def test_stops_itself_when_idle(self, limiter):
        idle = threading.Event()
        countdown = ExpiryCountdown(
            limiter, on_tick=lambda ms: None, on_idle=idle.set, interval=0.01
        )
        countdown.start()
        assert idle.wait(2.0)
        countdown.stop()
        assert countdown.running is False


class TestPeriodicTask:
    """Tests for the cancellable periodic task."""

    @pytest.mark.unit
    def test_stop_without_start_is_safe(self):
        task = PeriodicTask(lambda: None)
        task.stop()
        task.stop()
        assert task.running is False

    @pytest.mark.unit
    def test_runs_until_stopped(self):
        calls = threading.Semaphore(0)
        task = PeriodicTask(calls.release, interval=0.01)
        task.start()
        for _ in range(3):
            assert calls.acquire(timeout=2.0)
        task.stop()
        assert task.running is False

    @pytest.mark.unit
    def test_callback_errors_do_not_kill_task(self):
        calls = []
        done = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            done.set()

        task = PeriodicTask(flaky, interval=0.01)
        task.start()
        assert done.wait(2.0)
        task.stop()


class TestEstimateCountdown:
    """Tests for the per-session time estimate."""

    @pytest.mark.unit
    def test_counts_down_to_zero(self):
        updates = []
        countdown = EstimateCountdown(updates.append, estimate_seconds=2)
        assert countdown.tick() == 2
        assert countdown.tick() == 1
        assert countdown.tick() == 0
        assert countdown.tick() == 0
        assert updates == [2, 1, 0, 0]
