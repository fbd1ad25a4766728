"""Operator settings models."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from appstore_operator.constants.defaults import (
    AMQP_URL_DEFAULT,
    CHARTS_BRANCH_DEFAULT,
    CHARTS_PATH_DEFAULT,
    CONSUMER_TAG_DEFAULT,
    DEPLOYMENT_ROUTING_KEYS,
    EXCHANGE_DEFAULT,
    GIT_BINARY_DEFAULT,
    HELM_BINARY_DEFAULT,
    LOG_LEVEL_DEFAULT,
    MESSAGE_SOURCE_DEFAULT,
    QUEUE_DEPLOYMENTS_DEFAULT,
)
from appstore_operator.constants.limits import (
    MAX_WORKERS,
    MAX_WORKERS_MAX,
    MAX_WORKERS_MIN,
    PREFETCH_COUNT_DEFAULT,
    PREFETCH_COUNT_MAX,
    PREFETCH_COUNT_MIN,
)
from appstore_operator.constants.timeouts import (
    BROKER_RECONNECT_DELAY,
    CHART_SYNC_INTERVAL,
    REQUEUE_AFTER_FAILURE,
    REQUEUE_AFTER_SUCCESS,
)


class OperatorSettings(BaseSettings):
    """Operator settings read from APPSTORE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="APPSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Chart mirror
    charts_repo_url: str = ""
    charts_branch: str = CHARTS_BRANCH_DEFAULT
    charts_path: Path = Path(CHARTS_PATH_DEFAULT)
    charts_sync_interval: float = Field(default=CHART_SYNC_INTERVAL, gt=0)
    git_binary: str = GIT_BINARY_DEFAULT

    # Helm
    helm_repo_url: str = ""  # remote fallback for charts missing from the mirror
    helm_binary: str = HELM_BINARY_DEFAULT
    kube_context: str | None = None
    serialize_all_mutations: bool = False

    # Message broker
    amqp_url: str = AMQP_URL_DEFAULT
    exchange: str = EXCHANGE_DEFAULT
    queue: str = QUEUE_DEPLOYMENTS_DEFAULT
    routing_keys: list[str] = list(DEPLOYMENT_ROUTING_KEYS)
    consumer_tag: str = CONSUMER_TAG_DEFAULT
    prefetch_count: int = Field(
        default=PREFETCH_COUNT_DEFAULT, ge=PREFETCH_COUNT_MIN, le=PREFETCH_COUNT_MAX
    )
    reconnect_delay: float = Field(default=BROKER_RECONNECT_DELAY, gt=0)
    dead_letter_exchange: str | None = None
    consumer_enabled: bool = True
    publish_status_updates: bool = True
    message_source: str = MESSAGE_SOURCE_DEFAULT

    # Reconciliation
    watch_namespace: str | None = None  # None watches all namespaces
    max_workers: int = Field(default=MAX_WORKERS, ge=MAX_WORKERS_MIN, le=MAX_WORKERS_MAX)
    requeue_after_success: float = Field(default=REQUEUE_AFTER_SUCCESS, gt=0)
    requeue_after_failure: float = Field(default=REQUEUE_AFTER_FAILURE, gt=0)

    log_level: str = LOG_LEVEL_DEFAULT

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unsupported log level: {value}")
        return normalized

    @field_validator("routing_keys")
    @classmethod
    def _require_routing_keys(cls, value: list[str]) -> list[str]:
        keys = [key.strip() for key in value if key.strip()]
        if not keys:
            raise ValueError("at least one routing key is required")
        return keys


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when settings fail to load."""


def load_settings(**overrides: object) -> OperatorSettings:
    """Load settings from the environment, applying explicit overrides.

    Raises:
        ConfigLoadError: If any value fails validation.
    """
    try:
        return OperatorSettings(**overrides)
    except ValidationError as exc:
        raise ConfigLoadError(str(exc)) from exc
