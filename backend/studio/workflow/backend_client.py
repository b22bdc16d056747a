"""
Backend Client — the workflow execution backend over HTTP.

``WorkflowBackend`` is the protocol the editing session talks to;
``HttpWorkflowBackend`` implements it with ``httpx.AsyncClient`` against
``{base_url}/orgs/{org_id}/workflows``. Request bodies use the
backend's camelCase field names.

Every non-2xx response and every transport failure is raised as
``BackendError``; callers never see httpx exceptions.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, Optional, Protocol

import httpx

from studio.config import BackendConfig, get_backend_config
from studio.workflow.errors import BackendError

logger = getLogger(__name__)

RUN_STATUSES = ("queued", "running", "waiting", "succeeded", "completed", "failed", "cancelled")
TERMINAL_RUN_STATUSES = frozenset({"succeeded", "completed", "failed", "cancelled"})
TASK_DECISIONS = ("approved", "rejected")


class WorkflowBackend(Protocol):
    """Operations the studio needs from the execution backend."""

    async def create_template(
        self,
        name: str,
        definition: Dict[str, Any],
        definition_mode: str,
        description: str = "",
        change_note: str = "",
    ) -> Dict[str, Any]: ...

    async def create_template_version(
        self,
        template_id: str,
        definition: Dict[str, Any],
        definition_mode: str,
        change_note: str = "",
    ) -> Dict[str, Any]: ...

    async def get_template_definition(
        self, template_id: str, version: Optional[int] = None,
    ) -> Dict[str, Any]: ...

    async def start_manual_run(
        self,
        template_id: str,
        template_version: Optional[int],
        input: Dict[str, Any],
        context: Dict[str, Any],
        idempotency_key: str,
    ) -> Dict[str, Any]: ...

    async def get_run(self, run_id: str) -> Dict[str, Any]: ...

    async def complete_task(
        self, task_id: str, decision: str, note: Optional[str] = None,
    ) -> Dict[str, Any]: ...

    async def aclose(self) -> None: ...


class HttpWorkflowBackend:
    """``WorkflowBackend`` over HTTP.

    Args:
        config: Connection settings; defaults to the registered
            ``backend`` config.
        transport: Optional httpx transport (tests pass a
            ``MockTransport``).
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or get_backend_config()
        headers = {"Accept": "application/json"}
        if self._config.api_token:
            headers["Authorization"] = f"Bearer {self._config.api_token}"
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url.rstrip("/"),
            headers=headers,
            timeout=self._config.timeout_seconds,
            transport=transport,
        )

    @property
    def prefix(self) -> str:
        org_id = str(self._config.org_id or "").strip()
        if not org_id:
            raise BackendError("No org selected")
        return f"/orgs/{org_id}/workflows"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpWorkflowBackend":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ── Transport ──

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.prefix}{path}"
        try:
            response = await self._client.request(method, url, json=body, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise BackendError(f"Request to workflow backend failed: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"{method} {url} -> {response.status_code}: {message}")
            raise BackendError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as e:
            raise BackendError(
                f"Workflow backend returned invalid JSON for {method} {url}",
                status_code=response.status_code,
            ) from e
        return payload if isinstance(payload, dict) else {"data": payload}

    # ── Templates ──

    async def create_template(
        self,
        name: str,
        definition: Dict[str, Any],
        definition_mode: str,
        description: str = "",
        change_note: str = "",
    ) -> Dict[str, Any]:
        return await self._request("POST", "/templates", {
            "name": name,
            "description": description,
            "isActive": True,
            "definition": definition,
            "definitionMode": definition_mode,
            "changeNote": change_note,
        })

    async def create_template_version(
        self,
        template_id: str,
        definition: Dict[str, Any],
        definition_mode: str,
        change_note: str = "",
    ) -> Dict[str, Any]:
        return await self._request("POST", f"/templates/{template_id}/versions", {
            "definition": definition,
            "definitionMode": definition_mode,
            "changeNote": change_note,
        })

    async def get_template_definition(
        self, template_id: str, version: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = {"version": version} if isinstance(version, int) and version > 0 else None
        return await self._request("GET", f"/templates/{template_id}/definition", params=params)

    async def list_templates(self, include_inactive: bool = False) -> Dict[str, Any]:
        params = {"include_inactive": "true"} if include_inactive else None
        return await self._request("GET", "/templates", params=params)

    # ── Runs ──

    async def start_manual_run(
        self,
        template_id: str,
        template_version: Optional[int],
        input: Dict[str, Any],
        context: Dict[str, Any],
        idempotency_key: str,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "templateId": template_id,
            "input": input,
            "context": context,
            "idempotencyKey": idempotency_key,
        }
        if template_version is not None:
            body["templateVersion"] = template_version
        return await self._request("POST", "/runs/manual", body)

    async def get_run(self, run_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/runs/{run_id}")

    async def list_runs(
        self,
        template_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = {
            key: value
            for key, value in (
                ("templateId", template_id),
                ("status", status),
                ("limit", limit),
                ("offset", offset),
            )
            if value is not None
        }
        return await self._request("GET", "/runs", params=params or None)

    # ── Tasks ──

    async def complete_task(
        self, task_id: str, decision: str, note: Optional[str] = None,
    ) -> Dict[str, Any]:
        if decision not in TASK_DECISIONS:
            raise ValueError(f"decision must be one of {TASK_DECISIONS}, got '{decision}'")
        body: Dict[str, Any] = {"decision": decision}
        if note:
            body["note"] = note
        return await self._request("POST", f"/tasks/{task_id}/complete", body)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return f"Workflow backend returned HTTP {response.status_code}"
