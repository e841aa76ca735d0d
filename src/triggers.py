"""Trigger discovery.

Turns the raw event-source mappings of a function into Trigger values.
Individual mappings or access configurations that don't match a known
shape are dropped with a warning; only a failing platform query is fatal.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from models import AuthMethod, CredentialLocation, DiscoveryError, RemoteActionError, Trigger

logger = logging.getLogger(__name__)

_ACCESS_TYPES = {
    "BASIC_AUTH": AuthMethod.BASIC,
    "SASL_SCRAM_256_AUTH": AuthMethod.SCRAM_256,
    "SASL_SCRAM_512_AUTH": AuthMethod.SCRAM_512,
}


class SourceKind(Enum):
    """Kind of event source behind a mapping."""

    SELF_MANAGED_KAFKA = "self-managed"
    MANAGED_KAFKA = "managed"
    OTHER = "other"


def source_kind(raw: Dict[str, Any]) -> SourceKind:
    if raw.get("SelfManagedEventSource"):
        return SourceKind.SELF_MANAGED_KAFKA
    if raw.get("AmazonManagedKafkaEventSourceConfig") or ":kafka:" in raw.get(
        "EventSourceArn", ""
    ):
        return SourceKind.MANAGED_KAFKA
    return SourceKind.OTHER


def parse_credential_locations(access_configs: List[Any]) -> List[CredentialLocation]:
    """Convert raw source access configurations into CredentialLocations.

    Entries without a URI or type, or with an unsupported type (for example
    VPC settings or client certificates), are skipped.

    Args:
        access_configs: Raw SourceAccessConfigurations list

    Returns:
        Supported locations in their original order
    """
    locations = []
    for entry in access_configs:
        if not isinstance(entry, dict):
            logger.warning("Found malformed source access configuration! Ignoring...")
            continue
        if not entry.get("URI"):
            logger.warning("Found source access configuration without defined URI! Ignoring...")
            continue
        if not entry.get("Type"):
            logger.warning("Found source access configuration without defined type! Ignoring...")
            continue
        auth_method = _ACCESS_TYPES.get(entry["Type"])
        if auth_method is None:
            logger.warning(
                f"Found source access configuration of unsupported type {entry['Type']}! Ignoring..."
            )
            continue
        logger.debug(f'Discovered credentials for method "{auth_method.value}"')
        locations.append(CredentialLocation(auth_method=auth_method, secret_ref=entry["URI"]))
    return locations


def parse_mapping(raw: Dict[str, Any]) -> Optional[Trigger]:
    """Build a Trigger from one raw mapping, or None if it is not eligible."""
    uuid = raw.get("UUID")
    if not uuid:
        logger.warning("Found event source mapping without defined UUID! Ignoring...")
        return None
    access_configs = raw.get("SourceAccessConfigurations")
    if not access_configs:
        logger.warning(
            f"Event source mapping {uuid} has no defined access configuration and will be ignored"
        )
        return None
    kind = source_kind(raw)
    if kind is SourceKind.MANAGED_KAFKA:
        logger.warning(
            f"Event source {uuid} is not self-managed. MSK sources are not supported. "
            "It will be ignored."
        )
        return None
    if kind is not SourceKind.SELF_MANAGED_KAFKA:
        logger.warning(f"Event source {uuid} is not a Kafka source. It will be ignored.")
        return None

    group_id = (raw.get("SelfManagedKafkaEventSourceConfig") or {}).get("ConsumerGroupId")
    if not group_id:
        logger.warning(f"Event source {uuid} has no consumer group id. It will be ignored.")
        return None
    topics = [topic for topic in raw.get("Topics") or [] if isinstance(topic, str) and topic]
    if not topics:
        logger.warning(f"Event source {uuid} subscribes to no topics. It will be ignored.")
        return None

    endpoints = raw["SelfManagedEventSource"].get("Endpoints") or {}
    brokers = endpoints.get("KAFKA_BOOTSTRAP_SERVERS") or []

    logger.debug(f"Discovered source mapping {uuid}")
    return Trigger(
        id=uuid,
        broker_addresses=tuple(brokers),
        consumer_group_id=group_id,
        topics=tuple(dict.fromkeys(topics)),
        credential_candidates=tuple(parse_credential_locations(access_configs)),
    )


def discover_triggers(directory: Any, function_name: str) -> List[Trigger]:
    """Find the broker-backed triggers of a function.

    Args:
        directory: Event-source directory (see aws_client.AwsConnection)
        function_name: Name of the function whose triggers to inspect

    Returns:
        Eligible triggers, in the order the platform listed them

    Raises:
        DiscoveryError: If the platform query itself fails
    """
    logger.info(f"Examining Kafka triggers for lambda {function_name}")
    try:
        raw_mappings = directory.list_mappings(function_name)
    except RemoteActionError as e:
        raise DiscoveryError(str(e), e.detail) from e

    triggers = []
    for raw in raw_mappings:
        trigger = parse_mapping(raw)
        if trigger is not None:
            triggers.append(trigger)
    return triggers
