"""Pytest configuration and shared fakes."""

import json
import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config import Config, PollingConfig
from models import (
    AuthMethod,
    CredentialLocation,
    MappingState,
    PartitionOffset,
    RemoteActionError,
    Trigger,
)


def raw_mapping(uuid="uuid-1", topics=("orders",), group="group-1", access=None):
    """Build a raw self-managed Kafka event-source mapping as Lambda returns it."""
    if access is None:
        access = [{"Type": "SASL_SCRAM_512_AUTH", "URI": f"arn:aws:secretsmanager:secret-{uuid}"}]
    return {
        "UUID": uuid,
        "State": "Enabled",
        "Topics": list(topics),
        "SelfManagedEventSource": {
            "Endpoints": {"KAFKA_BOOTSTRAP_SERVERS": ["b-1.example.com:9096", "b-2.example.com:9096"]}
        },
        "SelfManagedKafkaEventSourceConfig": {"ConsumerGroupId": group},
        "SourceAccessConfigurations": access,
    }


def make_trigger(uuid="uuid-1", topics=("orders",), group="group-1", candidates=None):
    if candidates is None:
        candidates = (CredentialLocation(AuthMethod.SCRAM_512, f"arn:aws:secretsmanager:secret-{uuid}"),)
    return Trigger(
        id=uuid,
        broker_addresses=("b-1.example.com:9096",),
        consumer_group_id=group,
        topics=tuple(topics),
        credential_candidates=tuple(candidates),
    )


class FakeAws:
    """Event-source directory and secret store backed by in-memory state.

    Every call is appended to the shared call log. set_mapping_enabled
    takes effect after `transition_polls` state reads, or never when
    `converge` is False.
    """

    def __init__(self, calls, mappings=None, secrets=None, transition_polls=0, converge=True):
        self.calls = calls
        self.mappings = list(mappings or [])
        self.secrets = dict(secrets or {})
        self.transition_polls = transition_polls
        self.converge = converge
        self.list_error = None
        self.set_errors = {}
        self.closed = False
        self._states = {}
        self._pending = {}

    def list_mappings(self, function_name):
        self.calls.append(("list_mappings", function_name))
        if self.list_error:
            raise self.list_error
        return list(self.mappings)

    def get_mapping_state(self, mapping_id):
        self.calls.append(("get_state", mapping_id))
        pending = self._pending.get(mapping_id)
        if pending is not None:
            target, remaining = pending
            if remaining <= 0 and self.converge:
                self._states[mapping_id] = target
                del self._pending[mapping_id]
            else:
                self._pending[mapping_id] = (target, remaining - 1)
                return MappingState.TRANSITIONING
        return self._states.get(mapping_id, MappingState.ENABLED)

    def set_mapping_enabled(self, mapping_id, enabled):
        self.calls.append(("set_enabled", mapping_id, enabled))
        error = self.set_errors.get((mapping_id, enabled))
        if error:
            raise error
        target = MappingState.ENABLED if enabled else MappingState.DISABLED
        self._pending[mapping_id] = (target, self.transition_polls)

    def get_secret(self, secret_ref):
        self.calls.append(("get_secret", secret_ref))
        if secret_ref not in self.secrets:
            raise RemoteActionError("Failed to obtain credentials", "ResourceNotFoundException")
        return self.secrets[secret_ref]

    def close(self):
        self.closed = True


class FakeBroker:
    """Broker admin connection backed by in-memory offsets."""

    def __init__(self, calls, members=(0,), offsets=None, fetch_errors=(), commit_errors=()):
        self.calls = calls
        self._members = list(members)
        self.offsets = dict(offsets or {})
        self.fetch_errors = set(fetch_errors)
        self.commit_errors = set(commit_errors)
        self.committed = {}
        self.describe_error = None

    def describe_group_members(self, group_id):
        self.calls.append(("describe_group", group_id))
        if self.describe_error:
            raise self.describe_error
        if len(self._members) > 1:
            return self._members.pop(0)
        return self._members[0]

    def fetch_offsets_for_timestamp(self, topic, timestamp_ms):
        self.calls.append(("fetch_offsets", topic, timestamp_ms))
        if topic in self.fetch_errors:
            raise RemoteActionError(f"Failed to list offsets for topic {topic}", "timed out")
        return list(self.offsets.get(topic, [PartitionOffset(0, 0)]))

    def commit_group_offsets(self, group_id, topic, offsets):
        self.calls.append(("commit", group_id, topic, list(offsets)))
        if topic in self.commit_errors:
            raise RemoteActionError(f"Failed to set offsets for group {group_id} on topic {topic}")
        self.committed[(group_id, topic)] = list(offsets)

    def disconnect(self):
        self.calls.append(("disconnect",))


def secret_json(username="rewind", password="hunter2"):
    return json.dumps({"username": username, "password": password})


@pytest.fixture
def calls():
    """Shared, ordered record of remote calls made by fakes."""
    return []


@pytest.fixture
def fast_config():
    """Config with small polling bounds."""
    return Config(
        polling=PollingConfig(
            pause_interval_seconds=2,
            pause_max_attempts=5,
            drain_interval_seconds=5,
            drain_max_attempts=4,
        )
    )


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested intervals."""
    slept = []

    def sleep(seconds):
        slept.append(seconds)

    sleep.slept = slept
    return sleep
