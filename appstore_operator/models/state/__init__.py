"""Operator state models."""

from appstore_operator.models.state.settings import (
    ConfigError,
    ConfigLoadError,
    OperatorSettings,
    load_settings,
)

__all__ = [
    "ConfigError",
    "ConfigLoadError",
    "OperatorSettings",
    "load_settings",
]
