"""Rewind orchestration.

Rewinding one trigger walks a fixed sequence of states:

    DISCOVERED -> CREDENTIALS_RESOLVED -> PAUSED -> DRAINED
        -> OFFSETS_APPLIED -> RESUMED

Each arrow is a remote effect. transition() is the only place that decides
what happens after an effect succeeds or fails, including rollback: once a
pause has taken effect, any later failure resumes the trigger before the
run is reported as failed. Offsets already committed for earlier topics are
not rolled back; re-running the rewind commits the same offsets again.

Triggers are processed one at a time and the first failing trigger stops
the run.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

import drain
import offsets
import trigger_control
from config import Config
from credentials import resolve_credentials
from kafka_client import BrokerConnection
from models import Credentials, RemoteActionError, RewindTarget, Trigger

logger = logging.getLogger(__name__)


class RewindState(Enum):
    """Progress of a single trigger's rewind."""

    DISCOVERED = "discovered"
    CREDENTIALS_RESOLVED = "credentials resolved"
    PAUSED = "paused"
    DRAINED = "drained"
    OFFSETS_APPLIED = "offsets applied"
    RESUMED = "resumed"
    FAILED = "failed"


class RemoteEffect(Enum):
    """Remote action to perform next."""

    RESOLVE_CREDENTIALS = "resolve credentials"
    PAUSE = "pause trigger"
    WAIT_FOR_DRAIN = "wait for drain"
    APPLY_OFFSETS = "apply offsets"
    RESUME = "resume trigger"
    NONE = "none"


@dataclass(frozen=True)
class Transition:
    state: RewindState
    effect: RemoteEffect


INITIAL = Transition(RewindState.DISCOVERED, RemoteEffect.RESOLVE_CREDENTIALS)

_FORWARD = {
    RewindState.DISCOVERED: Transition(RewindState.CREDENTIALS_RESOLVED, RemoteEffect.PAUSE),
    RewindState.CREDENTIALS_RESOLVED: Transition(RewindState.PAUSED, RemoteEffect.WAIT_FOR_DRAIN),
    RewindState.PAUSED: Transition(RewindState.DRAINED, RemoteEffect.APPLY_OFFSETS),
    RewindState.DRAINED: Transition(RewindState.OFFSETS_APPLIED, RemoteEffect.RESUME),
    RewindState.OFFSETS_APPLIED: Transition(RewindState.RESUMED, RemoteEffect.NONE),
}

# States in which the trigger is known to be disabled by us.
_PAUSE_IN_EFFECT = {RewindState.PAUSED, RewindState.DRAINED}


def transition(state: RewindState, succeeded: bool) -> Transition:
    """Return the next state and effect after the effect leaving state ran.

    Args:
        state: State the effect was performed from
        succeeded: Whether the effect succeeded

    Returns:
        Transition to take. A failure while the trigger is paused yields
        (FAILED, RESUME); any other failure yields (FAILED, NONE).
    """
    if state in (RewindState.RESUMED, RewindState.FAILED):
        return Transition(state, RemoteEffect.NONE)
    if succeeded:
        return _FORWARD[state]
    if state in _PAUSE_IN_EFFECT:
        return Transition(RewindState.FAILED, RemoteEffect.RESUME)
    return Transition(RewindState.FAILED, RemoteEffect.NONE)


@dataclass
class _TriggerRun:
    """Working state for one trigger. Discarded when the trigger is done."""

    trigger: Trigger
    topics: Tuple[str, ...]
    timestamp_ms: int
    credentials: Optional[Credentials] = None
    broker: Optional[Any] = None
    states: List[RewindState] = field(default_factory=list)

    def close(self) -> None:
        if self.broker is not None:
            self.broker.disconnect()
            self.broker = None


class RewindOrchestrator:
    """Rewinds the consumer groups behind a function's triggers."""

    def __init__(
        self,
        directory: Any,
        secret_store: Any,
        config: Config,
        verbose: bool = False,
        broker_factory: Optional[Callable[[List[str], Credentials], Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            directory: Event-source directory (see aws_client.AwsConnection)
            secret_store: Secret store (see aws_client.AwsConnection)
            config: Tool configuration
            verbose: Log per-partition offsets at INFO level
            broker_factory: Opens a broker connection for (brokers, credentials);
                defaults to kafka_client.BrokerConnection.connect
            sleep: Sleep function used by the polling waits
        """
        self._secret_store = secret_store
        self._config = config
        self._verbose = verbose
        self._broker_factory = broker_factory or (
            lambda brokers, creds: BrokerConnection.connect(brokers, creds, config.kafka)
        )
        self._pause_controller = trigger_control.TriggerPauseController(
            directory,
            interval_seconds=config.polling.pause_interval_seconds,
            max_attempts=config.polling.pause_max_attempts,
            sleep=sleep,
        )
        self._drain_waiter = drain.DrainWaiter(
            interval_seconds=config.polling.drain_interval_seconds,
            max_attempts=config.polling.drain_max_attempts,
            sleep=sleep,
        )
        self._effects = {
            RemoteEffect.RESOLVE_CREDENTIALS: self._resolve_credentials,
            RemoteEffect.PAUSE: self._pause,
            RemoteEffect.WAIT_FOR_DRAIN: self._wait_for_drain,
            RemoteEffect.APPLY_OFFSETS: self._apply_offsets,
            RemoteEffect.RESUME: self._resume,
        }

    def _resolve_credentials(self, run: _TriggerRun) -> bool:
        location = run.trigger.credential_candidates[0]
        logger.debug(
            f"Using auth method {location.auth_method.value} for trigger {run.trigger.id}"
        )
        run.credentials = resolve_credentials(self._secret_store, location)
        return run.credentials is not None

    def _pause(self, run: _TriggerRun) -> bool:
        if self._pause_controller.set_trigger_enabled(run.trigger.id, False):
            return True
        logger.error(
            f"Could not confirm trigger {run.trigger.id} is disabled. It may remain "
            "disabled and must be checked manually."
        )
        return False

    def _wait_for_drain(self, run: _TriggerRun) -> bool:
        try:
            run.broker = self._broker_factory(
                list(run.trigger.broker_addresses), run.credentials
            )
        except RemoteActionError as e:
            logger.error(f"{e}: {e.detail}")
            return False
        return self._drain_waiter.wait_for_empty_group(
            run.broker, run.trigger.consumer_group_id
        )

    def _apply_offsets(self, run: _TriggerRun) -> bool:
        for topic in run.topics:
            logger.info(f"Applying offset for topic {topic}")
            if not offsets.set_offset(
                run.broker,
                run.trigger.consumer_group_id,
                topic,
                run.timestamp_ms,
                verbose=self._verbose,
            ):
                return False
        # Nothing more to do on the broker for this trigger.
        run.close()
        return True

    def _resume(self, run: _TriggerRun) -> bool:
        run.close()
        return self._pause_controller.set_trigger_enabled(run.trigger.id, True)

    def rewind_trigger(
        self, trigger: Trigger, topics: Tuple[str, ...], timestamp_ms: int
    ) -> List[RewindState]:
        """Rewind one trigger's consumer group on the given topics.

        Args:
            trigger: Trigger to rewind
            topics: Topics to rewind, in order; all subscribed by the trigger
            timestamp_ms: Target time in epoch milliseconds

        Returns:
            The states the trigger passed through. The last one is RESUMED on
            success and FAILED otherwise. Empty if the trigger has no usable
            credentials and was not touched.
        """
        logger.info(f"Setting offset for trigger {trigger.id}...")
        if not trigger.credential_candidates:
            logger.error(f"Trigger {trigger.id} has no supported credentials")
            return []

        run = _TriggerRun(trigger=trigger, topics=topics, timestamp_ms=timestamp_ms)
        step = INITIAL
        run.states.append(step.state)
        try:
            while step.effect is not RemoteEffect.NONE:
                logger.debug(f"Trigger {trigger.id}: {step.state.value}, next: {step.effect.value}")
                succeeded = self._effects[step.effect](run)
                if step.state is RewindState.FAILED:
                    if not succeeded:
                        logger.error(
                            f"Rollback failed: trigger {trigger.id} may still be disabled "
                            "and must be re-enabled manually"
                        )
                    break
                step = transition(step.state, succeeded)
                run.states.append(step.state)
        finally:
            run.close()
        return run.states

    def run(self, triggers: List[Trigger], target: RewindTarget) -> bool:
        """Rewind every trigger that subscribes to a selected topic.

        Returns:
            True if every affected trigger ended RESUMED. Processing stops at
            the first trigger that does not.
        """
        for trigger in triggers:
            topics = trigger.selected_topics(target.topics)
            if not topics:
                logger.debug(f"Trigger {trigger.id} subscribes to no selected topic, skipping")
                continue
            states = self.rewind_trigger(trigger, topics, target.timestamp_ms)
            if not states or states[-1] is not RewindState.RESUMED:
                return False
        return True
