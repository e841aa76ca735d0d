"""Tests for trigger_control.py module."""

from unittest.mock import MagicMock

from conftest import FakeAws
from models import MappingState, RemoteActionError
from trigger_control import TriggerPauseController


def make_controller(aws, no_sleep, max_attempts=5):
    return TriggerPauseController(aws, interval_seconds=2, max_attempts=max_attempts, sleep=no_sleep)


class TestSetTriggerEnabled:
    """Tests for pause/resume with convergence confirmation."""

    def test_disable_confirmed_immediately(self, calls, no_sleep):
        aws = FakeAws(calls)

        assert make_controller(aws, no_sleep).set_trigger_enabled("uuid-1", False) is True
        assert calls == [("set_enabled", "uuid-1", False), ("get_state", "uuid-1")]

    def test_waits_through_transitional_states(self, calls, no_sleep):
        aws = FakeAws(calls, transition_polls=3)

        assert make_controller(aws, no_sleep).set_trigger_enabled("uuid-1", True) is True
        assert calls.count(("get_state", "uuid-1")) == 4
        assert no_sleep.slept == [2, 2, 2, 2]

    def test_timeout_returns_false(self, calls, no_sleep):
        aws = FakeAws(calls, converge=False)

        assert make_controller(aws, no_sleep, max_attempts=5).set_trigger_enabled("uuid-1", False) is False
        assert calls.count(("get_state", "uuid-1")) == 5

    def test_opposite_state_keeps_polling(self, no_sleep):
        directory = MagicMock()
        directory.get_mapping_state.side_effect = [
            MappingState.ENABLED,
            MappingState.UNKNOWN,
            MappingState.DISABLED,
        ]

        assert make_controller(directory, no_sleep).set_trigger_enabled("uuid-1", False) is True
        assert directory.get_mapping_state.call_count == 3

    def test_request_failure_is_immediately_fatal(self, calls, no_sleep):
        aws = FakeAws(calls)
        aws.set_errors[("uuid-1", False)] = RemoteActionError("Failed to disable")

        assert make_controller(aws, no_sleep).set_trigger_enabled("uuid-1", False) is False
        assert calls == [("set_enabled", "uuid-1", False)]
        assert no_sleep.slept == []

    def test_state_read_failure_keeps_polling(self, no_sleep):
        directory = MagicMock()
        directory.get_mapping_state.side_effect = [
            RemoteActionError("Failed to get state", "Throttling"),
            MappingState.ENABLED,
        ]

        assert make_controller(directory, no_sleep).set_trigger_enabled("uuid-1", True) is True
        assert directory.get_mapping_state.call_count == 2
