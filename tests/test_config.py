import logging

from studio.config import (
    BackendConfig,
    ExecutionConfig,
    get_backend_config,
    get_config,
    get_execution_config,
    list_configs,
    reset_configs,
    set_config,
)
from studio.config.sub_config.general.env_utils import read_env_defaults


def test_defaults():
    backend = get_backend_config()
    assert backend.base_url == "http://localhost:8000"
    assert backend.org_id == ""
    assert backend.timeout_seconds == 30.0
    assert backend.poll_interval_seconds == 3.0

    execution = get_execution_config()
    assert execution.max_parallelism == 2
    assert execution.on_node_failure == "fail_fast"
    assert execution.history_limit == 100


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("WORKFLOW_API_URL", "https://flows.example.com/api")
    monkeypatch.setenv("WORKFLOW_ORG_ID", "org-7")
    monkeypatch.setenv("WORKFLOW_POLL_INTERVAL", "0.5")
    monkeypatch.setenv("WORKFLOW_MAX_PARALLELISM", "6")
    monkeypatch.setenv("WORKFLOW_ON_NODE_FAILURE", "continue")
    reset_configs()

    backend = get_backend_config()
    assert backend.base_url == "https://flows.example.com/api"
    assert backend.org_id == "org-7"
    assert backend.poll_interval_seconds == 0.5

    execution = get_execution_config()
    assert execution.max_parallelism == 6
    assert execution.on_node_failure == "continue"


def test_instances_are_cached_until_reset(monkeypatch):
    first = get_execution_config()
    monkeypatch.setenv("WORKFLOW_HISTORY_LIMIT", "5")
    assert get_execution_config() is first
    reset_configs()
    assert get_execution_config().history_limit == 5


def test_invalid_values_are_ignored(monkeypatch, caplog):
    monkeypatch.setenv("WORKFLOW_MAX_PARALLELISM", "lots")
    reset_configs()
    with caplog.at_level(logging.WARNING):
        assert get_execution_config().max_parallelism == 2
    assert "WORKFLOW_MAX_PARALLELISM" in caplog.text


def test_read_env_defaults_with_explicit_environ():
    values = read_env_defaults(
        BackendConfig._ENV_MAP,
        BackendConfig.__dataclass_fields__,
        environ={"WORKFLOW_API_TIMEOUT": "12", "WORKFLOW_ORG_ID": ""},
    )
    assert values == {"timeout_seconds": 12.0}


def test_set_config_replaces_the_active_instance():
    set_config(ExecutionConfig(max_parallelism=9))
    assert get_config("execution").max_parallelism == 9


def test_secure_fields_are_masked():
    config = BackendConfig(api_token="secret")
    assert config.to_dict()["api_token"] == "********"
    assert config.to_dict(include_secure=True)["api_token"] == "secret"
    assert BackendConfig().to_dict()["api_token"] == ""


def test_registered_configs():
    names = {cls.get_config_name() for cls in list_configs()}
    assert {"backend", "execution"} <= names
    fields = [f.name for f in BackendConfig.get_fields_metadata()]
    assert fields == ["base_url", "org_id", "api_token", "timeout_seconds", "poll_interval_seconds"]
