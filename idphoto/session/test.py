"""Tests for the generation status machine."""

import pytest

from .lib import GenerationStatus, InvalidTransitionError, StatusMachine

S = GenerationStatus


class TestStatusMachine:
    """Tests for StatusMachine transitions."""

    @pytest.mark.unit
    def test_initial_status_is_idle(self):
        assert StatusMachine().status == S.IDLE

    @pytest.mark.unit
    @pytest.mark.parametrize("outcome", [S.SUCCESS, S.FAILURE, S.TERMINATING])
    def test_session_cycle(self, outcome):
        machine = StatusMachine()
        machine.transition(S.LOADING)
        assert machine.is_loading
        machine.transition(outcome)
        assert machine.status.is_settled
        machine.transition(S.LOADING)
        machine.transition(S.SUCCESS)
        machine.reset()
        assert machine.status == S.IDLE

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("start_path", "target"),
        [
            ([], S.SUCCESS),
            ([], S.TERMINATING),
            ([S.LOADING], S.IDLE),
            ([S.LOADING], S.LOADING),
            ([S.LOADING, S.SUCCESS], S.FAILURE),
        ],
    )
    def test_invalid_transitions(self, start_path, target):
        machine = StatusMachine()
        for status in start_path:
            machine.transition(status)
        before = machine.status

        with pytest.raises(InvalidTransitionError) as info:
            machine.transition(target)

        assert machine.status == before
        assert info.value.target == target

    @pytest.mark.unit
    def test_reset_when_idle_is_noop(self):
        events = []
        machine = StatusMachine()
        machine.subscribe(lambda old, new: events.append((old, new)))
        machine.reset()
        assert events == []

    @pytest.mark.unit
    def test_listeners_receive_old_and_new(self):
        events = []
        machine = StatusMachine()
        unsubscribe = machine.subscribe(lambda old, new: events.append((old, new)))

        machine.transition(S.LOADING)
        machine.transition(S.FAILURE)
        unsubscribe()
        machine.reset()

        assert events == [(S.IDLE, S.LOADING), (S.LOADING, S.FAILURE)]

    @pytest.mark.unit
    def test_raising_listener_is_ignored(self):
        def broken(old, new):
            raise RuntimeError("renderer crashed")

        machine = StatusMachine()
        machine.subscribe(broken)
        machine.transition(S.LOADING)
        assert machine.status == S.LOADING

    @pytest.mark.unit
    def test_status_values_are_strings(self):
        assert [s.value for s in S] == [
            "idle",
            "loading",
            "success",
            "failure",
            "terminating",
        ]
