"""
Workflow Backend Configuration.

Controls where the studio sends templates and runs, and how
often an active run is polled for status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from studio.config.base import BaseConfig, ConfigField, FieldType, register_config
from studio.config.sub_config.general.env_utils import read_env_defaults


@register_config
@dataclass
class BackendConfig(BaseConfig):
    """Workflow backend endpoint and polling settings."""

    base_url: str = "http://localhost:8000"
    org_id: str = ""
    api_token: str = ""
    timeout_seconds: float = 30.0
    poll_interval_seconds: float = 3.0

    _ENV_MAP = {
        "base_url": "WORKFLOW_API_URL",
        "org_id": "WORKFLOW_ORG_ID",
        "api_token": "WORKFLOW_API_TOKEN",
        "timeout_seconds": "WORKFLOW_API_TIMEOUT",
        "poll_interval_seconds": "WORKFLOW_POLL_INTERVAL",
    }

    @classmethod
    def get_default_instance(cls) -> "BackendConfig":
        defaults = read_env_defaults(cls._ENV_MAP, cls.__dataclass_fields__)
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "backend"

    @classmethod
    def get_display_name(cls) -> str:
        return "Workflow Backend"

    @classmethod
    def get_description(cls) -> str:
        return "Workflow API endpoint, organization, credentials, and run polling interval."

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return [
            ConfigField(
                name="base_url",
                field_type=FieldType.URL,
                label="API Base URL",
                description="Root URL of the workflow backend API",
                default="http://localhost:8000",
                required=True,
                group="api",
            ),
            ConfigField(
                name="org_id",
                field_type=FieldType.STRING,
                label="Organization",
                description="Organization that owns templates and runs",
                required=True,
                group="api",
            ),
            ConfigField(
                name="api_token",
                field_type=FieldType.PASSWORD,
                label="API Token",
                description="Bearer token sent with every request",
                group="api",
                secure=True,
            ),
            ConfigField(
                name="timeout_seconds",
                field_type=FieldType.NUMBER,
                label="Request Timeout (s)",
                default=30.0,
                min_value=1,
                max_value=300,
                group="api",
            ),
            ConfigField(
                name="poll_interval_seconds",
                field_type=FieldType.NUMBER,
                label="Run Poll Interval (s)",
                description="Delay between run status fetches while a run is active",
                default=3.0,
                min_value=0.5,
                max_value=60,
                group="runs",
            ),
        ]
