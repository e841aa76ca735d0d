"""Tests for polling.py module."""

from polling import PollResult, poll_until


def sequence_check(results):
    """Return a check that yields the given results in order and counts calls."""
    remaining = list(results)

    def check():
        check.calls += 1
        return remaining.pop(0)

    check.calls = 0
    return check


class TestPollUntil:
    """Tests for the bounded polling loop."""

    def test_satisfied_on_third_attempt(self, no_sleep):
        """[CONTINUE, CONTINUE, SATISFIED] with 3 attempts succeeds after 3 evaluations."""
        check = sequence_check(
            [PollResult.CONTINUE, PollResult.CONTINUE, PollResult.SATISFIED]
        )

        assert poll_until(1, 3, check, sleep=no_sleep) is True
        assert check.calls == 3

    def test_satisfied_immediately(self, no_sleep):
        check = sequence_check([PollResult.SATISFIED])

        assert poll_until(1, 10, check, sleep=no_sleep) is True
        assert check.calls == 1

    def test_failed_stops_polling(self, no_sleep):
        """FAILED returns False without using the remaining attempts."""
        check = sequence_check([PollResult.CONTINUE, PollResult.FAILED, PollResult.SATISFIED])

        assert poll_until(1, 10, check, sleep=no_sleep) is False
        assert check.calls == 2

    def test_timeout_after_max_attempts(self, no_sleep):
        check = sequence_check([PollResult.CONTINUE] * 5)

        assert poll_until(1, 5, check, sleep=no_sleep) is False
        assert check.calls == 5

    def test_satisfied_one_attempt_too_late(self, no_sleep):
        check = sequence_check([PollResult.CONTINUE, PollResult.CONTINUE, PollResult.SATISFIED])

        assert poll_until(1, 2, check, sleep=no_sleep) is False
        assert check.calls == 2

    def test_sleeps_fixed_interval_before_every_check(self, no_sleep):
        check = sequence_check([PollResult.CONTINUE] * 3 + [PollResult.SATISFIED])

        poll_until(2.5, 10, check, sleep=no_sleep)

        assert no_sleep.slept == [2.5, 2.5, 2.5, 2.5]

    def test_each_call_has_its_own_attempt_budget(self, no_sleep):
        """An exhausted wait does not reduce the attempts of the next one."""
        first = sequence_check([PollResult.CONTINUE] * 3)
        second = sequence_check([PollResult.CONTINUE, PollResult.CONTINUE, PollResult.SATISFIED])

        assert poll_until(1, 3, first, sleep=no_sleep) is False
        assert poll_until(1, 3, second, sleep=no_sleep) is True
        assert second.calls == 3
