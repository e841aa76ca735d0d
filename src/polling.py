"""Bounded fixed-interval polling.

Used by the steps that wait for remote state to converge: trigger
enable/disable confirmation and consumer group drain. Each call owns its
attempt counter, so an abandoned wait never affects a later one.
"""

import logging
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class PollResult(Enum):
    """Outcome of a single polling check."""

    CONTINUE = "continue"
    SATISFIED = "satisfied"
    FAILED = "failed"


def poll_until(
    interval_seconds: float,
    max_attempts: int,
    check: Callable[[], PollResult],
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Evaluate check every interval_seconds until it is satisfied.

    Sleeps before every evaluation, including the first one. The interval is
    fixed; there is no backoff.

    Args:
        interval_seconds: Seconds to sleep before each evaluation
        max_attempts: Maximum number of evaluations
        check: Observes remote state and reports a PollResult
        description: Human-readable name of the awaited condition for logging
        sleep: Sleep function, injectable for tests

    Returns:
        True on the first SATISFIED result. False on FAILED, or when
        max_attempts evaluations returned only CONTINUE.
    """
    for attempt in range(1, max_attempts + 1):
        sleep(interval_seconds)
        result = check()
        if result is PollResult.SATISFIED:
            logger.debug(f"{description}: satisfied after {attempt} attempt(s)")
            return True
        if result is PollResult.FAILED:
            logger.debug(f"{description}: check failed on attempt {attempt}")
            return False
        logger.debug(f"{description}: attempt {attempt}/{max_attempts}, still waiting")

    logger.error(
        f"Timed out waiting for {description} after {max_attempts} attempts "
        f"({max_attempts * interval_seconds:g}s)"
    )
    return False
