"""
Studio configuration.

Importing this package registers every config under ``sub_config``.
"""

from studio.config.base import (
    BaseConfig,
    ConfigField,
    FieldType,
    get_config,
    list_configs,
    register_config,
    reset_configs,
    set_config,
)
from studio.config.sub_config.general.backend_config import BackendConfig
from studio.config.sub_config.general.execution_config import ExecutionConfig


def get_backend_config() -> BackendConfig:
    return get_config("backend")  # type: ignore[return-value]


def get_execution_config() -> ExecutionConfig:
    return get_config("execution")  # type: ignore[return-value]


__all__ = [
    "BaseConfig",
    "ConfigField",
    "FieldType",
    "register_config",
    "get_config",
    "set_config",
    "reset_configs",
    "list_configs",
    "BackendConfig",
    "ExecutionConfig",
    "get_backend_config",
    "get_execution_config",
]
