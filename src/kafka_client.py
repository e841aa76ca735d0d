"""Kafka client abstraction module.

All confluent-kafka library usage is isolated here. No other module
imports from confluent-kafka. Every failing broker call is raised as a
RemoteActionError.
"""

import logging
from typing import Dict, List, Optional

from confluent_kafka import ConsumerGroupTopicPartitions, KafkaException, TopicPartition
from confluent_kafka.admin import AdminClient, OffsetSpec

from config import KafkaConfig
from models import AuthMethod, Credentials, PartitionOffset, RemoteActionError

logger = logging.getLogger(__name__)

_SASL_MECHANISMS = {
    AuthMethod.BASIC: "PLAIN",
    AuthMethod.SCRAM_256: "SCRAM-SHA-256",
    AuthMethod.SCRAM_512: "SCRAM-SHA-512",
}


def sasl_mechanism(auth_method: AuthMethod) -> str:
    """Return the librdkafka SASL mechanism name for an auth method."""
    return _SASL_MECHANISMS[auth_method]


def build_admin_config(
    brokers: List[str], credentials: Credentials, config: KafkaConfig
) -> Dict[str, object]:
    """Build the AdminClient configuration for one trigger's cluster.

    Args:
        brokers: Bootstrap broker addresses (host:port)
        credentials: Resolved SASL credentials
        config: Shared Kafka settings

    Returns:
        librdkafka configuration dict
    """
    conf: Dict[str, object] = {
        "bootstrap.servers": ",".join(brokers),
        "client.id": config.client_id,
        "security.protocol": config.security_protocol,
        "sasl.mechanism": sasl_mechanism(credentials.auth_method),
        "sasl.username": credentials.username,
        "sasl.password": credentials.password,
        "logger": logging.getLogger(f"{__name__}.librdkafka"),
    }
    if config.ssl_ca_location:
        conf["ssl.ca.location"] = config.ssl_ca_location
    return conf


def _serve_logs(admin_client: AdminClient) -> None:
    """Deliver queued librdkafka log lines to the Python logger.

    librdkafka only invokes the configured logger from poll().
    """
    admin_client.poll(0)


class BrokerConnection:
    """Admin connection to the cluster behind one trigger."""

    def __init__(self, admin_client: AdminClient, timeout_seconds: float) -> None:
        self._admin: Optional[AdminClient] = admin_client
        self._timeout = timeout_seconds

    @classmethod
    def connect(
        cls, brokers: List[str], credentials: Credentials, config: KafkaConfig
    ) -> "BrokerConnection":
        """Create an admin client and verify that the cluster is reachable.

        Raises:
            RemoteActionError: If no broker answers a metadata request
        """
        if not brokers:
            raise RemoteActionError("Trigger defines no Kafka bootstrap servers")
        logger.debug(f"Using brokers list {brokers} for kafka")
        logger.debug(f"Using credentials {credentials.masked()} for kafka")

        try:
            admin_client = AdminClient(build_admin_config(brokers, credentials, config))
        except KafkaException as e:
            raise RemoteActionError("Failed to create kafka admin client", e) from e

        try:
            metadata = admin_client.list_topics(timeout=config.request_timeout_seconds)
        except KafkaException as e:
            raise RemoteActionError("Failed to connect to kafka", e) from e
        finally:
            _serve_logs(admin_client)

        logger.debug(f"Connected to kafka cluster {metadata.cluster_id}")
        return cls(admin_client, config.request_timeout_seconds)

    @property
    def admin(self) -> AdminClient:
        if self._admin is None:
            raise RemoteActionError("Kafka connection already closed")
        return self._admin

    def _serve_logs(self) -> None:
        if self._admin is not None:
            _serve_logs(self._admin)

    def disconnect(self) -> None:
        """Release the admin client. Further calls raise RemoteActionError."""
        self._serve_logs()
        self._admin = None
        logger.debug("Disconnected from kafka")

    def describe_group_members(self, group_id: str) -> int:
        """Return the number of active members of a consumer group.

        Raises:
            RemoteActionError: If the group cannot be described
        """
        try:
            futures = self.admin.describe_consumer_groups(
                [group_id], request_timeout=self._timeout
            )
            description = futures[group_id].result()
        except KafkaException as e:
            raise RemoteActionError(f"Failed to describe consumer group {group_id}", e) from e
        finally:
            self._serve_logs()
        return len(description.members)

    def list_partitions(self, topic: str) -> List[int]:
        """Return the partition ids of a topic.

        Raises:
            RemoteActionError: If the topic does not exist or metadata fails
        """
        try:
            metadata = self.admin.list_topics(topic=topic, timeout=self._timeout)
        except KafkaException as e:
            raise RemoteActionError(f"Failed to get metadata for topic {topic}", e) from e
        finally:
            self._serve_logs()
        topic_metadata = metadata.topics.get(topic)
        if topic_metadata is None or topic_metadata.error is not None:
            error = topic_metadata.error if topic_metadata is not None else None
            raise RemoteActionError(f"Topic {topic} is not available", error)
        return sorted(topic_metadata.partitions)

    def _list_offsets(
        self, topic: str, partitions: List[int], spec: OffsetSpec
    ) -> Dict[int, int]:
        request = {TopicPartition(topic, partition): spec for partition in partitions}
        try:
            futures = self.admin.list_offsets(request, request_timeout=self._timeout)
            return {tp.partition: future.result().offset for tp, future in futures.items()}
        except KafkaException as e:
            raise RemoteActionError(f"Failed to list offsets for topic {topic}", e) from e
        finally:
            self._serve_logs()

    def fetch_offsets_for_timestamp(self, topic: str, timestamp_ms: int) -> List[PartitionOffset]:
        """Resolve a timestamp to an offset on every partition of a topic.

        Each partition resolves to the earliest offset whose record timestamp
        is at or after timestamp_ms. Partitions with no such record resolve to
        their latest offset.

        Raises:
            RemoteActionError: If any partition cannot be resolved
        """
        partitions = self.list_partitions(topic)
        offsets = self._list_offsets(topic, partitions, OffsetSpec.for_timestamp(timestamp_ms))

        beyond_end = [partition for partition, offset in offsets.items() if offset < 0]
        if beyond_end:
            logger.debug(
                f"No records at or after {timestamp_ms} on {topic} partitions {beyond_end}, "
                "using latest offsets"
            )
            offsets.update(self._list_offsets(topic, beyond_end, OffsetSpec.latest()))

        return [
            PartitionOffset(partition=partition, offset=offsets[partition])
            for partition in sorted(offsets)
        ]

    def commit_group_offsets(
        self, group_id: str, topic: str, offsets: List[PartitionOffset]
    ) -> None:
        """Set a consumer group's committed offsets for a topic.

        Raises:
            RemoteActionError: If the request or any partition fails
        """
        tps = [TopicPartition(topic, po.partition, po.offset) for po in offsets]
        try:
            futures = self.admin.alter_consumer_group_offsets(
                [ConsumerGroupTopicPartitions(group_id, tps)], request_timeout=self._timeout
            )
            result = futures[group_id].result()
        except KafkaException as e:
            raise RemoteActionError(
                f"Failed to set offsets for group {group_id} on topic {topic}", e
            ) from e
        finally:
            self._serve_logs()

        failed = [tp for tp in result.topic_partitions if tp.error is not None]
        if failed:
            details = ", ".join(f"{tp.topic}/{tp.partition}: {tp.error}" for tp in failed)
            raise RemoteActionError(
                f"Failed to set offsets for group {group_id} on topic {topic}", details
            )
