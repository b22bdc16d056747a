import asyncio
import json

import httpx
import pytest

from studio.config import BackendConfig
from studio.workflow.backend_client import HttpWorkflowBackend
from studio.workflow.errors import BackendError


class Recorder:
    """MockTransport handler that records requests and replies from a queue."""

    def __init__(self, *responses):
        self.requests = []
        self.responses = list(responses)

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if self.responses else httpx.Response(200, json={})
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def last(self):
        return self.requests[-1]

    def last_body(self):
        return json.loads(self.last.content)


def _backend(handler, **overrides):
    settings = dict(base_url="http://test/api/", org_id="org1", api_token="tok")
    settings.update(overrides)
    return HttpWorkflowBackend(BackendConfig(**settings), transport=httpx.MockTransport(handler))


def _run(backend, call):
    async def go():
        async with backend:
            return await call(backend)
    return asyncio.run(go())


def test_create_template():
    recorder = Recorder(httpx.Response(201, json={"template": {"id": "tpl-1"}, "version": {"version": 1}}))
    backend = _backend(recorder)
    result = _run(backend, lambda b: b.create_template(
        "Intake", {"nodes": []}, "registry", description="d", change_note="n",
    ))

    assert result == {"template": {"id": "tpl-1"}, "version": {"version": 1}}
    request = recorder.last
    assert request.method == "POST"
    assert str(request.url) == "http://test/api/orgs/org1/workflows/templates"
    assert request.headers["Authorization"] == "Bearer tok"
    assert recorder.last_body() == {
        "name": "Intake",
        "description": "d",
        "isActive": True,
        "definition": {"nodes": []},
        "definitionMode": "registry",
        "changeNote": "n",
    }


def test_create_template_version():
    recorder = Recorder()
    _run(_backend(recorder), lambda b: b.create_template_version("tpl-1", {"nodes": []}, "mixed", "edit"))
    assert recorder.last.url.path == "/api/orgs/org1/workflows/templates/tpl-1/versions"
    assert recorder.last_body() == {
        "definition": {"nodes": []}, "definitionMode": "mixed", "changeNote": "edit",
    }


def test_get_template_definition_version_param():
    recorder = Recorder()
    backend = _backend(recorder)

    async def calls(b):
        await b.get_template_definition("tpl-1", 3)
        await b.get_template_definition("tpl-1", 0)
        await b.get_template_definition("tpl-1")

    _run(backend, calls)
    assert [dict(r.url.params) for r in recorder.requests] == [{"version": "3"}, {}, {}]
    assert recorder.last.method == "GET"
    assert recorder.last.url.path == "/api/orgs/org1/workflows/templates/tpl-1/definition"


def test_list_templates():
    recorder = Recorder(httpx.Response(200, json=[{"id": "a"}]))
    result = _run(_backend(recorder), lambda b: b.list_templates(include_inactive=True))
    assert result == {"data": [{"id": "a"}]}
    assert recorder.last.url.params["include_inactive"] == "true"


def test_start_manual_run():
    recorder = Recorder(httpx.Response(200, json={"run": {"id": "run-1", "status": "queued"}}))
    result = _run(_backend(recorder), lambda b: b.start_manual_run(
        "tpl-1", 2, {"doc_ids": ["d1"]}, {"source": "workflow-studio"}, "key-1",
    ))
    assert result["run"]["id"] == "run-1"
    assert recorder.last.url.path == "/api/orgs/org1/workflows/runs/manual"
    assert recorder.last_body() == {
        "templateId": "tpl-1",
        "templateVersion": 2,
        "input": {"doc_ids": ["d1"]},
        "context": {"source": "workflow-studio"},
        "idempotencyKey": "key-1",
    }


def test_start_manual_run_without_version():
    recorder = Recorder()
    _run(_backend(recorder), lambda b: b.start_manual_run("tpl-1", None, {}, {}, "k"))
    assert "templateVersion" not in recorder.last_body()


def test_runs():
    recorder = Recorder()
    backend = _backend(recorder)

    async def calls(b):
        await b.get_run("run-1")
        await b.list_runs(template_id="tpl-1", limit=5)

    _run(backend, calls)
    first, second = recorder.requests
    assert first.url.path == "/api/orgs/org1/workflows/runs/run-1"
    assert second.url.path == "/api/orgs/org1/workflows/runs"
    assert dict(second.url.params) == {"templateId": "tpl-1", "limit": "5"}


def test_complete_task():
    recorder = Recorder()
    _run(_backend(recorder), lambda b: b.complete_task("task-1", "approved", "looks good"))
    assert recorder.last.url.path == "/api/orgs/org1/workflows/tasks/task-1/complete"
    assert recorder.last_body() == {"decision": "approved", "note": "looks good"}

    _run(_backend(recorder), lambda b: b.complete_task("task-2", "rejected"))
    assert recorder.last_body() == {"decision": "rejected"}


def test_complete_task_rejects_unknown_decisions():
    recorder = Recorder()
    with pytest.raises(ValueError, match="decision must be one of"):
        _run(_backend(recorder), lambda b: b.complete_task("task-1", "maybe"))
    assert recorder.requests == []


def test_error_responses_become_backend_errors():
    recorder = Recorder(httpx.Response(409, json={"message": "Template name already exists"}))
    with pytest.raises(BackendError) as exc_info:
        _run(_backend(recorder), lambda b: b.get_run("run-1"))
    assert str(exc_info.value) == "Template name already exists"
    assert exc_info.value.status_code == 409


def test_error_message_falls_back_to_detail_and_status():
    recorder = Recorder(
        httpx.Response(422, json={"detail": "Invalid definition"}),
        httpx.Response(500, text="boom"),
    )
    backend = _backend(recorder)
    messages = []

    async def calls(b):
        for _ in range(2):
            try:
                await b.get_run("run-1")
            except BackendError as e:
                messages.append(str(e))

    _run(backend, calls)
    assert messages == ["Invalid definition", "Workflow backend returned HTTP 500"]


def test_transport_failures_become_backend_errors():
    recorder = Recorder(httpx.ConnectError("connection refused"))
    with pytest.raises(BackendError, match="Request to workflow backend failed"):
        _run(_backend(recorder), lambda b: b.get_run("run-1"))


def test_invalid_json_is_a_backend_error():
    recorder = Recorder(httpx.Response(200, text="not json"))
    with pytest.raises(BackendError, match="invalid JSON"):
        _run(_backend(recorder), lambda b: b.get_run("run-1"))


def test_empty_body_is_an_empty_payload():
    recorder = Recorder(httpx.Response(204))
    assert _run(_backend(recorder), lambda b: b.complete_task("task-1", "approved")) == {}


def test_missing_org_is_refused_before_any_request():
    recorder = Recorder()
    with pytest.raises(BackendError, match="No org selected"):
        _run(_backend(recorder, org_id="  "), lambda b: b.get_run("run-1"))
    assert recorder.requests == []


def test_no_token_no_authorization_header():
    recorder = Recorder()
    _run(_backend(recorder, api_token=""), lambda b: b.get_run("run-1"))
    assert "Authorization" not in recorder.last.headers


def test_defaults_come_from_configuration(monkeypatch):
    from studio.config import reset_configs

    monkeypatch.setenv("WORKFLOW_API_URL", "http://configured")
    monkeypatch.setenv("WORKFLOW_ORG_ID", "org9")
    reset_configs()
    recorder = Recorder()
    backend = HttpWorkflowBackend(transport=httpx.MockTransport(recorder))
    _run(backend, lambda b: b.get_run("run-1"))
    assert str(recorder.last.url) == "http://configured/orgs/org9/workflows/runs/run-1"
