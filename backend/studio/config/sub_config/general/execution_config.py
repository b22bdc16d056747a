"""
Execution Policy Configuration.

Defaults packaged into every compiled definition, plus editor
history depth.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from studio.config.base import BaseConfig, ConfigField, FieldType, register_config
from studio.config.sub_config.general.env_utils import read_env_defaults

ON_FAILURE_OPTIONS = [
    {"value": "fail_fast", "label": "Fail fast"},
    {"value": "continue", "label": "Continue other branches"},
]


@register_config
@dataclass
class ExecutionConfig(BaseConfig):
    """Execution policy defaults."""

    max_parallelism: int = 2
    on_node_failure: str = "fail_fast"
    history_limit: int = 100

    _ENV_MAP = {
        "max_parallelism": "WORKFLOW_MAX_PARALLELISM",
        "on_node_failure": "WORKFLOW_ON_NODE_FAILURE",
        "history_limit": "WORKFLOW_HISTORY_LIMIT",
    }

    @classmethod
    def get_default_instance(cls) -> "ExecutionConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "execution"

    @classmethod
    def get_display_name(cls) -> str:
        return "Execution Policy"

    @classmethod
    def get_description(cls) -> str:
        return "Parallelism cap and failure mode written into compiled definitions."

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return [
            ConfigField(
                name="max_parallelism",
                field_type=FieldType.NUMBER,
                label="Max Parallel Steps",
                default=2,
                min_value=1,
                max_value=32,
                group="execution",
            ),
            ConfigField(
                name="on_node_failure",
                field_type=FieldType.SELECT,
                label="On Step Failure",
                default="fail_fast",
                options=ON_FAILURE_OPTIONS,
                group="execution",
            ),
            ConfigField(
                name="history_limit",
                field_type=FieldType.NUMBER,
                label="Undo History Depth",
                default=100,
                min_value=1,
                max_value=1000,
                group="editor",
            ),
        ]
