"""Timestamp to offset resolution and commit.

Offsets for a topic are applied all-or-nothing: if any partition can't be
resolved, nothing is committed for that topic.
"""

import logging
from typing import Any, List, Optional

from models import PartitionOffset, RemoteActionError

logger = logging.getLogger(__name__)


def resolve_offsets_for_timestamp(
    broker: Any, topic: str, timestamp_ms: int
) -> Optional[List[PartitionOffset]]:
    """Resolve a timestamp to per-partition offsets.

    Args:
        broker: Connected broker (see kafka_client.BrokerConnection)
        topic: Topic to resolve
        timestamp_ms: Target time in epoch milliseconds

    Returns:
        One PartitionOffset per partition, or None if the lookup failed
    """
    try:
        offsets = broker.fetch_offsets_for_timestamp(topic, timestamp_ms)
    except RemoteActionError as e:
        logger.error(f"Failed to get partition offsets for timestamp {timestamp_ms}: {e.detail}")
        return None
    if not offsets:
        logger.error(f"Topic {topic} has no partitions")
        return None
    return offsets


def commit_offsets(
    broker: Any, group_id: str, topic: str, offsets: List[PartitionOffset]
) -> bool:
    """Commit offsets as a group's read position. Returns False on failure."""
    try:
        broker.commit_group_offsets(group_id, topic, offsets)
    except RemoteActionError as e:
        logger.error(f"{e}: {e.detail}")
        return False
    return True


def set_offset(
    broker: Any, group_id: str, topic: str, timestamp_ms: int, verbose: bool = False
) -> bool:
    """Move a group's position on a topic to the given time.

    Args:
        broker: Connected broker (see kafka_client.BrokerConnection)
        group_id: Consumer group to move
        topic: Topic whose offsets to set
        timestamp_ms: Target time in epoch milliseconds
        verbose: Log every partition's new offset at INFO instead of DEBUG

    Returns:
        True if offsets were resolved and committed for every partition
    """
    offsets = resolve_offsets_for_timestamp(broker, topic, timestamp_ms)
    if offsets is None:
        return False

    level = logging.INFO if verbose else logging.DEBUG
    for po in offsets:
        logger.log(level, f"{group_id} {topic}/{po.partition} -> offset {po.offset}")

    if not commit_offsets(broker, group_id, topic, offsets):
        logger.error(f"Failed to set offsets to {timestamp_ms} for topic {topic}")
        return False
    return True
