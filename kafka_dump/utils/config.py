"""Configuration loader and settings helpers for kafka_dump."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ..exceptions import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_BROKER = "localhost:9092"
DEFAULT_CLIENT_ID = "dump-kafka-to-sql"
DEFAULT_OUTPUT = Path("dump.sqlite")
DEFAULT_QUEUE_CAPACITY = 10


def load_yaml_config(config_path: str | Path) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If file not found or invalid YAML
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return config


class KafkaTuning(BaseModel):
    """Fetch tuning and security options passed through to the Kafka consumer."""

    model_config = ConfigDict(extra="forbid")

    fetch_max_wait_ms: int = Field(default=100, ge=0)
    fetch_min_bytes: int = Field(default=1_000, ge=1)
    max_partition_fetch_bytes: int = Field(default=100_000, ge=1)
    fetch_max_bytes: int = Field(default=1_000_000, ge=1)
    poll_timeout_seconds: float = Field(default=1.0, gt=0)
    poll_max_records: int = Field(default=500, ge=1)
    metadata_timeout_seconds: float = Field(default=10.0, gt=0)
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str | None = None
    sasl_username: str | None = None
    sasl_password: str | None = None

    @field_validator("security_protocol", "sasl_mechanism", mode="before")
    @classmethod
    def _normalize_kafka_values(cls, value: Any) -> Any:
        if value is None:
            return value
        return str(value).upper()


class GlobalSettings(BaseSettings):
    """Global application settings sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="KAFKA_DUMP_",
        env_nested_delimiter="__",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    brokers: Annotated[list[str], NoDecode] = Field(default_factory=lambda: [DEFAULT_BROKER])
    client_id: str = DEFAULT_CLIENT_ID
    topic: str | None = None
    output: Path = DEFAULT_OUTPUT
    compact: bool = False
    queue_capacity: int = Field(default=DEFAULT_QUEUE_CAPACITY, ge=1)
    commit_every: int | None = Field(default=None, ge=1)
    kafka: KafkaTuning = KafkaTuning()

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        """Ensure log level values are uppercase for logging config."""

        return value.upper()

    @field_validator("brokers", mode="before")
    @classmethod
    def _parse_brokers(cls, value: Any) -> list[str]:
        """Support comma-separated strings or iterables for broker addresses."""

        if value is None:
            return [DEFAULT_BROKER]
        if isinstance(value, str):
            brokers = [item.strip() for item in value.split(",")]
        elif isinstance(value, list | tuple | set):
            brokers = [str(item).strip() for item in value]
        else:
            raise ValueError("brokers must be a comma-separated string or iterable of strings")
        brokers = [broker for broker in brokers if broker]
        return brokers or [DEFAULT_BROKER]

    @field_validator("output", mode="before")
    @classmethod
    def _expand_output(cls, value: Any) -> Any:
        """Allow string paths and expand user markers."""

        if isinstance(value, str):
            return Path(value).expanduser()
        return value

    @field_validator("topic", mode="before")
    @classmethod
    def _normalize_topic(cls, value: Any) -> Any:
        if value is None:
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError("topic must be a non-empty string if provided")
        return value.strip()


def _deep_merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries without mutating the inputs."""

    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def build_settings(
    overrides: dict[str, Any] | None = None,
    *,
    config_file: str | Path | None = None,
) -> GlobalSettings:
    """
    Build settings from explicit overrides layered over an optional YAML file.

    Precedence, highest first: overrides, YAML file, environment, defaults.
    ``None`` values in ``overrides`` are treated as "not provided".

    Raises:
        ConfigurationError: If the YAML file is unreadable or validation fails
    """
    file_config: dict[str, Any] = {}
    if config_file is not None:
        file_config = load_yaml_config(config_file)
        logger.debug("Loaded configuration file %s", config_file)

    provided = {key: value for key, value in (overrides or {}).items() if value is not None}
    merged = _deep_merge_dicts(file_config, provided)

    try:
        return GlobalSettings(**merged)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Configuration validation failed: {exc}") from exc


@lru_cache(maxsize=1)
def _get_settings_cached() -> GlobalSettings:
    return GlobalSettings()


def get_settings(*, reload: bool = False) -> GlobalSettings:
    """Return cached settings, optionally forcing a reload."""

    if reload:
        _get_settings_cached.cache_clear()
    return _get_settings_cached()
