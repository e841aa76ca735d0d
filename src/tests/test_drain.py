"""Tests for drain.py module."""

from conftest import FakeBroker
from drain import DrainWaiter
from models import RemoteActionError


def test_empty_group_is_satisfied_on_first_poll(calls, no_sleep):
    broker = FakeBroker(calls, members=(0,))

    assert DrainWaiter(5, 100, sleep=no_sleep).wait_for_empty_group(broker, "group-1") is True
    assert calls == [("describe_group", "group-1")]
    assert no_sleep.slept == [5]


def test_waits_for_members_to_leave(calls, no_sleep):
    broker = FakeBroker(calls, members=(3, 2, 0))

    assert DrainWaiter(5, 100, sleep=no_sleep).wait_for_empty_group(broker, "group-1") is True
    assert len(calls) == 3


def test_timeout_when_members_never_leave(calls, no_sleep):
    broker = FakeBroker(calls, members=(2,))

    assert DrainWaiter(5, 4, sleep=no_sleep).wait_for_empty_group(broker, "group-1") is False
    assert len(calls) == 4


def test_query_failure_stops_waiting(calls, no_sleep):
    broker = FakeBroker(calls, members=(2,))
    broker.describe_error = RemoteActionError("Failed to describe consumer group group-1")

    assert DrainWaiter(5, 100, sleep=no_sleep).wait_for_empty_group(broker, "group-1") is False
    assert len(calls) == 1
