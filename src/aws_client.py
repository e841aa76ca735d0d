"""AWS client abstraction module.

All boto3 usage is isolated here. The rest of the tool sees two
capabilities: an event-source directory (list, inspect and toggle the
function's event-source mappings) and a secret store.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ProfileNotFound

from config import AwsConfig
from models import MappingState, RemoteActionError, RewindError

logger = logging.getLogger(__name__)

_TRANSITIONAL_STATES = {"Creating", "Enabling", "Disabling", "Updating", "Deleting"}


def _mapping_state(raw_state: Optional[str]) -> MappingState:
    """Map a Lambda event-source mapping State string to a MappingState."""
    if raw_state == "Enabled":
        return MappingState.ENABLED
    if raw_state == "Disabled":
        return MappingState.DISABLED
    if raw_state in _TRANSITIONAL_STATES:
        return MappingState.TRANSITIONING
    return MappingState.UNKNOWN


class AwsConnection:
    """Lambda and Secrets Manager clients for one rewind invocation."""

    def __init__(self, lambda_client: Any, secrets_client: Any) -> None:
        self._lambda = lambda_client
        self._secrets = secrets_client

    def list_mappings(self, function_name: str) -> List[Dict[str, Any]]:
        """List every event-source mapping of a function.

        Args:
            function_name: Name or ARN of the Lambda function

        Returns:
            Raw mapping dicts in the order Lambda returned them

        Raises:
            RemoteActionError: If the Lambda API call fails
        """
        mappings: List[Dict[str, Any]] = []
        try:
            paginator = self._lambda.get_paginator("list_event_source_mappings")
            for page in paginator.paginate(FunctionName=function_name):
                mappings.extend(page.get("EventSourceMappings", []))
        except (BotoCoreError, ClientError) as e:
            raise RemoteActionError(
                f"Failed to get event source mappings for lambda {function_name}", e
            ) from e
        return mappings

    def get_mapping_state(self, mapping_id: str) -> MappingState:
        """Return the reported state of an event-source mapping.

        Raises:
            RemoteActionError: If the Lambda API call fails
        """
        try:
            response = self._lambda.get_event_source_mapping(UUID=mapping_id)
        except (BotoCoreError, ClientError) as e:
            raise RemoteActionError(
                f"Failed to get state of event source mapping {mapping_id}", e
            ) from e
        state = _mapping_state(response.get("State"))
        logger.debug(f"Event source mapping {mapping_id} is {response.get('State')}")
        return state

    def set_mapping_enabled(self, mapping_id: str, enabled: bool) -> None:
        """Request that an event-source mapping be enabled or disabled.

        Raises:
            RemoteActionError: If the Lambda API call fails
        """
        try:
            self._lambda.update_event_source_mapping(UUID=mapping_id, Enabled=enabled)
        except (BotoCoreError, ClientError) as e:
            action = "enable" if enabled else "disable"
            raise RemoteActionError(
                f"Failed to {action} event source mapping {mapping_id}", e
            ) from e

    def get_secret(self, secret_ref: str) -> Optional[str]:
        """Fetch a secret's value by ARN or name.

        Returns:
            The secret string, the decoded binary secret, or None if the
            secret carries no value

        Raises:
            RemoteActionError: If the Secrets Manager call fails or a binary
                secret is not valid UTF-8
        """
        try:
            response = self._secrets.get_secret_value(SecretId=secret_ref)
        except (BotoCoreError, ClientError) as e:
            raise RemoteActionError("Failed to obtain credentials", e) from e

        if response.get("SecretString"):
            return response["SecretString"]
        binary = response.get("SecretBinary")
        if binary:
            try:
                return binary.decode("utf-8")
            except UnicodeDecodeError as e:
                raise RemoteActionError("The credential secret value is not valid UTF-8", e) from e
        return None

    def close(self) -> None:
        """Release the underlying HTTP connection pools."""
        for client in (self._lambda, self._secrets):
            try:
                client.close()
            except BotoCoreError as e:
                logger.warning(f"Error closing AWS client: {e}")


def build_aws_connection(profile: Optional[str], config: AwsConfig) -> AwsConnection:
    """Create the Lambda and Secrets Manager clients for a named profile.

    Args:
        profile: AWS shared-config profile name, or None for the default chain
        config: AWS settings (region override)

    Returns:
        AwsConnection: Connection owning both clients

    Raises:
        RewindError: If the profile does not exist or the clients cannot be built
    """
    try:
        session = boto3.Session(profile_name=profile, region_name=config.region)
        lambda_client = session.client("lambda")
        secrets_client = session.client("secretsmanager")
    except ProfileNotFound as e:
        raise RewindError(f'Failed to get credentials for profile "{profile}"', e) from e
    except BotoCoreError as e:
        raise RewindError("Failed to create AWS clients", e) from e

    logger.debug(f"Using AWS region {session.region_name} for profile {profile or 'default'}")
    return AwsConnection(lambda_client, secrets_client)
