import pytest

from studio.config import reset_configs

_ENV_VARS = (
    "WORKFLOW_API_URL",
    "WORKFLOW_ORG_ID",
    "WORKFLOW_API_TOKEN",
    "WORKFLOW_API_TIMEOUT",
    "WORKFLOW_POLL_INTERVAL",
    "WORKFLOW_MAX_PARALLELISM",
    "WORKFLOW_ON_NODE_FAILURE",
    "WORKFLOW_HISTORY_LIMIT",
)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_configs()
    yield
    reset_configs()
