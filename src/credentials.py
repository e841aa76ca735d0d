"""Credential resolution.

Fetches the secret behind a CredentialLocation and validates its shape.
Anything other than a JSON object with string "username" and "password"
fields is refused; nothing is guessed.
"""

import json
import logging
from typing import Any, Optional

from models import CredentialLocation, Credentials, RemoteActionError

logger = logging.getLogger(__name__)


def resolve_credentials(secret_store: Any, location: CredentialLocation) -> Optional[Credentials]:
    """Resolve broker credentials from the secret store.

    Args:
        secret_store: Object exposing get_secret(secret_ref)
        location: Which secret to read and which auth method it is for

    Returns:
        Credentials, or None if the secret is unreadable or malformed
    """
    logger.info(f'Obtaining Kafka credentials for method "{location.auth_method.value}"')
    try:
        raw = secret_store.get_secret(location.secret_ref)
    except RemoteActionError as e:
        logger.error(f"{e}: {e.detail}")
        return None

    if not raw:
        logger.error("The credential secret value is empty!")
        return None

    try:
        secret = json.loads(raw)
    except ValueError:
        logger.error("The credential secret value is not valid JSON!")
        return None

    if not isinstance(secret, dict):
        logger.error(f"The credential secret value is a {type(secret).__name__}, not an object!")
        return None
    if not isinstance(secret.get("username"), str):
        logger.error('Missing expected string "username" in credential secret')
        return None
    if not isinstance(secret.get("password"), str):
        logger.error('Missing expected string "password" in credential secret')
        return None

    credentials = Credentials(
        auth_method=location.auth_method,
        username=secret["username"],
        password=secret["password"],
    )
    logger.debug(f"Resolved credentials {credentials.masked()}")
    return credentials
