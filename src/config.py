"""Configuration loading and validation module.

Loads the optional YAML configuration file and provides a typed Config
dataclass. Every field has a default, so running without a file yields
the stock settings (50 x 2s pause confirmation, 100 x 5s drain wait).
"""

from dataclasses import dataclass, field
from typing import Any, Optional
import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid."""
    pass


@dataclass
class KafkaConfig:
    """Broker connection settings shared by every trigger."""
    client_id: str = "kafka-rewind"
    security_protocol: str = "SASL_SSL"
    ssl_ca_location: Optional[str] = None
    request_timeout_seconds: int = 10


@dataclass
class AwsConfig:
    """Function platform settings."""
    region: Optional[str] = None


@dataclass
class PollingConfig:
    """Bounds for the two convergence waits."""
    pause_interval_seconds: float = 2
    pause_max_attempts: int = 50
    drain_interval_seconds: float = 5
    drain_max_attempts: int = 100


@dataclass
class Config:
    """Root configuration dataclass."""
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    aws: AwsConfig = field(default_factory=AwsConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)


def _get_nested(data: dict, path: str, default: Any = None) -> Any:
    """Get a nested value from a dictionary using dot notation.

    Args:
        data: The dictionary to search
        path: Dot-separated path to the value (e.g., "polling.drain_max_attempts")
        default: Value returned when any key along the path is missing

    Returns:
        The value at the path, or default if missing

    Raises:
        ConfigError: If an intermediate value is not a mapping
    """
    current = data
    for key in path.split("."):
        # An empty YAML section loads as None
        if current is None:
            return default
        if not isinstance(current, dict):
            raise ConfigError(f"Configuration path '{path}' is not a valid nested structure")
        if key not in current:
            return default
        current = current[key]
    return current


def _validate_type(value: Any, expected_type: type, field_name: str) -> None:
    """Validate that a value is of the expected type.

    Args:
        value: The value to validate
        expected_type: The expected type
        field_name: Name of the field for error messages

    Raises:
        ConfigError: If value is not of the expected type
    """
    if isinstance(value, bool):
        raise ConfigError(
            f"Field '{field_name}' must be of type {expected_type.__name__}, got bool"
        )
    if expected_type is float:
        if not isinstance(value, (int, float)):
            raise ConfigError(
                f"Field '{field_name}' must be a number, got {type(value).__name__}"
            )
    elif not isinstance(value, expected_type):
        raise ConfigError(
            f"Field '{field_name}' must be of type {expected_type.__name__}, got {type(value).__name__}"
        )


def _optional_str(data: dict, path: str) -> Optional[str]:
    value = _get_nested(data, path)
    if value is not None:
        _validate_type(value, str, path)
    return value


def load_config(path: Optional[str] = None) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file, or None for defaults

    Returns:
        Config: Validated configuration object

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid
    """
    if path is None:
        return Config()

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}")

    if data is None:
        return Config()

    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a YAML dictionary")

    defaults = Config()

    # Kafka configuration
    client_id = _get_nested(data, "kafka.client_id", defaults.kafka.client_id)
    _validate_type(client_id, str, "kafka.client_id")

    security_protocol = _get_nested(
        data, "kafka.security_protocol", defaults.kafka.security_protocol
    )
    _validate_type(security_protocol, str, "kafka.security_protocol")
    if security_protocol not in ("SASL_SSL", "SASL_PLAINTEXT"):
        raise ConfigError(
            "kafka.security_protocol must be SASL_SSL or SASL_PLAINTEXT, "
            f"got {security_protocol!r}"
        )

    ssl_ca_location = _optional_str(data, "kafka.ssl_ca_location")

    request_timeout_seconds = _get_nested(
        data, "kafka.request_timeout_seconds", defaults.kafka.request_timeout_seconds
    )
    _validate_type(request_timeout_seconds, int, "kafka.request_timeout_seconds")
    if request_timeout_seconds <= 0:
        raise ConfigError("kafka.request_timeout_seconds must be > 0")

    kafka = KafkaConfig(
        client_id=client_id,
        security_protocol=security_protocol,
        ssl_ca_location=ssl_ca_location,
        request_timeout_seconds=request_timeout_seconds,
    )

    # AWS configuration
    aws = AwsConfig(region=_optional_str(data, "aws.region"))

    # Polling configuration
    values = {}
    for name, expected_type in (
        ("pause_interval_seconds", float),
        ("pause_max_attempts", int),
        ("drain_interval_seconds", float),
        ("drain_max_attempts", int),
    ):
        value = _get_nested(data, f"polling.{name}", getattr(defaults.polling, name))
        _validate_type(value, expected_type, f"polling.{name}")
        values[name] = value

    if values["pause_interval_seconds"] <= 0:
        raise ConfigError("polling.pause_interval_seconds must be > 0")
    if values["drain_interval_seconds"] <= 0:
        raise ConfigError("polling.drain_interval_seconds must be > 0")
    if values["pause_max_attempts"] < 1:
        raise ConfigError("polling.pause_max_attempts must be >= 1")
    if values["drain_max_attempts"] < 1:
        raise ConfigError("polling.drain_max_attempts must be >= 1")

    return Config(kafka=kafka, aws=aws, polling=PollingConfig(**values))
