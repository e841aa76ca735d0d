"""Waiting for a consumer group to drain."""

import logging
import time
from typing import Any, Callable

from models import RemoteActionError
from polling import PollResult, poll_until

logger = logging.getLogger(__name__)


class DrainWaiter:
    """Waits until a consumer group has no active members.

    Once the trigger is paused the function's pollers finish their
    in-flight batches and leave the group. Only then is it safe to move
    the group's committed offsets.
    """

    def __init__(
        self,
        interval_seconds: float = 5,
        max_attempts: int = 100,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._interval_seconds = interval_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep

    def wait_for_empty_group(self, broker: Any, group_id: str) -> bool:
        """Poll group membership until it reaches zero.

        Args:
            broker: Connected broker (see kafka_client.BrokerConnection)
            group_id: Consumer group to watch

        Returns:
            True once the group is empty. False on timeout or if membership
            cannot be queried.
        """
        logger.info(f"Waiting for consumer group {group_id} to become empty")

        def check() -> PollResult:
            try:
                members = broker.describe_group_members(group_id)
            except RemoteActionError as e:
                logger.error(f"{e}: {e.detail}")
                return PollResult.FAILED
            if members == 0:
                return PollResult.SATISFIED
            logger.debug(f"Consumer group {group_id} still has {members} member(s)")
            return PollResult.CONTINUE

        return poll_until(
            self._interval_seconds,
            self._max_attempts,
            check,
            description=f"consumer group {group_id} to drain",
            sleep=self._sleep,
        )
