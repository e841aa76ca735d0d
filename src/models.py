"""Value objects and error types shared by all rewind modules.

Every object here is created by a single rewind invocation and never
shared across triggers. Raw SDK payloads are converted into these types at
the discovery boundary; nothing downstream touches SDK dictionaries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Tuple


class RewindError(Exception):
    """Base class for all errors surfaced to the operator."""

    def __init__(self, message: str, detail: object = None) -> None:
        super().__init__(message)
        self.detail = detail


class ValidationError(RewindError):
    """Raised for bad operator input. No remote mutation has happened."""
    pass


class DiscoveryError(RewindError):
    """Raised when the function platform cannot be queried for triggers."""
    pass


class RemoteActionError(RewindError):
    """Raised by the SDK wrappers when a remote call fails."""
    pass


class AuthMethod(Enum):
    """Broker authentication methods supported for self-managed sources."""

    BASIC = "basic"
    SCRAM_256 = "scram-256"
    SCRAM_512 = "scram-512"


class MappingState(Enum):
    """Reported state of an event-source mapping."""

    ENABLED = "Enabled"
    DISABLED = "Disabled"
    TRANSITIONING = "Transitioning"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class CredentialLocation:
    """Where the secret for one authentication method is stored."""

    auth_method: AuthMethod
    secret_ref: str


@dataclass(frozen=True)
class Credentials:
    """Resolved broker credentials. Held in memory for one trigger only."""

    auth_method: AuthMethod
    username: str
    password: str = field(repr=False)

    def masked(self) -> str:
        return f"{self.auth_method.value}:{self.username}:****"


@dataclass(frozen=True)
class Trigger:
    """A broker-backed event-source mapping eligible for rewinding."""

    id: str
    broker_addresses: Tuple[str, ...]
    consumer_group_id: str
    topics: Tuple[str, ...]
    credential_candidates: Tuple[CredentialLocation, ...]

    def selected_topics(self, topics: Tuple[str, ...]) -> Tuple[str, ...]:
        """Return the given topics this trigger subscribes to, in given order."""
        return tuple(topic for topic in topics if topic in self.topics)


@dataclass(frozen=True)
class RewindTarget:
    """Operator-selected topics and the point in time to rewind them to."""

    topics: Tuple[str, ...]
    timestamp: datetime

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp.timestamp() * 1000)


@dataclass(frozen=True)
class PartitionOffset:
    """Committed position for one partition of a topic."""

    partition: int
    offset: int

    def __post_init__(self) -> None:
        if self.partition < 0:
            raise ValueError(f"partition must be >= 0, got {self.partition}")
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
