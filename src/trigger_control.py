"""Pausing and resuming a trigger.

Disabling an event-source mapping is asynchronous on the platform side:
the request returns immediately and the mapping passes through a
transitional state. set_trigger_enabled() only returns True once the
mapping reports the requested state.
"""

import logging
import time
from typing import Any, Callable

from models import MappingState, RemoteActionError
from polling import PollResult, poll_until

logger = logging.getLogger(__name__)


class TriggerPauseController:
    """Enables and disables triggers and waits for the change to settle."""

    def __init__(
        self,
        directory: Any,
        interval_seconds: float = 2,
        max_attempts: int = 50,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the controller.

        Args:
            directory: Event-source directory (see aws_client.AwsConnection)
            interval_seconds: Seconds between state checks
            max_attempts: Number of state checks before giving up
            sleep: Sleep function, injectable for tests
        """
        self._directory = directory
        self._interval_seconds = interval_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep

    def _state_check(self, trigger_id: str, enabled: bool) -> Callable[[], PollResult]:
        desired = MappingState.ENABLED if enabled else MappingState.DISABLED

        def check() -> PollResult:
            try:
                state = self._directory.get_mapping_state(trigger_id)
            except RemoteActionError as e:
                # A failed state read is treated like a transitional state.
                logger.warning(f"{e}: {e.detail}")
                return PollResult.CONTINUE
            if state is desired:
                return PollResult.SATISFIED
            return PollResult.CONTINUE

        return check

    def set_trigger_enabled(self, trigger_id: str, enabled: bool) -> bool:
        """Enable or disable a trigger and wait until the platform agrees.

        Args:
            trigger_id: Event-source mapping UUID
            enabled: True to resume, False to pause

        Returns:
            True once the mapping reports the requested state. False if the
            request failed or the state did not converge in time.
        """
        action = "Enabling" if enabled else "Disabling"
        logger.info(f"{action} trigger {trigger_id}")
        try:
            self._directory.set_mapping_enabled(trigger_id, enabled)
        except RemoteActionError as e:
            logger.error(str(e), exc_info=logger.isEnabledFor(logging.DEBUG))
            return False

        desired = "enabled" if enabled else "disabled"
        converged = poll_until(
            self._interval_seconds,
            self._max_attempts,
            self._state_check(trigger_id, enabled),
            description=f"trigger {trigger_id} to become {desired}",
            sleep=self._sleep,
        )
        if converged:
            logger.info(f"Trigger {trigger_id} is {desired}")
        return converged
