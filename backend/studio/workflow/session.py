"""
Workflow Session — one operator editing one workflow.

Owns the ``GraphStore`` plus the saved-template state and talks to the
execution backend:

* ``load_template`` / ``load_run`` replace the document with a backend
  definition. Each load takes a request token; a response that arrives
  after a newer load started is discarded.
* ``save`` compiles first and refuses to save an uncompilable graph. It
  versions the saved template while the name is unchanged and creates
  a new template otherwise.
* ``start_run`` refuses while setup-class issues remain, saves, then
  starts a manual run with the trigger's sample input and context.
* ``poll_run`` fetches run detail until a terminal status or ``close``.

Backend failures propagate as ``BackendError`` and leave the session
state as it was.
"""

from __future__ import annotations

import asyncio
import copy
import time
from logging import getLogger
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel

from studio.config import get_backend_config
from studio.workflow.backend_client import TERMINAL_RUN_STATUSES, WorkflowBackend
from studio.workflow.definition_compiler import compile_definition
from studio.workflow.definition_loader import apply_run_input, load_definition
from studio.workflow.errors import BackendError, RunBlockedError
from studio.workflow.graph_store import GraphStore
from studio.workflow.readiness import collect_issues, setup_blockers
from studio.workflow.workflow_model import GraphDocument

logger = getLogger(__name__)

DEFAULT_NAME = "Untitled Workflow"
RUN_CONTEXT_SOURCE = "workflow-studio"
CREATE_DESCRIPTION = "Created from workflow studio"
CREATE_CHANGE_NOTE = "Initial save from workflow studio"
UPDATE_CHANGE_NOTE = "Updated from workflow studio"


class SaveResult(BaseModel):
    template_id: str
    version: Optional[int] = None
    created: bool = False


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _positive_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class WorkflowSession:
    """Editing session bound to a workflow backend."""

    def __init__(
        self,
        backend: WorkflowBackend,
        store: Optional[GraphStore] = None,
        poll_interval: Optional[float] = None,
    ) -> None:
        self.backend = backend
        self.store = store or GraphStore()
        self.poll_interval = (
            poll_interval if poll_interval is not None else get_backend_config().poll_interval_seconds
        )
        self.template_id: Optional[str] = None
        self.template_version: Optional[int] = None
        self.saved_name: Optional[str] = None
        self.active_run_id: Optional[str] = None
        self._load_token = 0
        self._closed = False

    @property
    def document(self) -> GraphDocument:
        return self.store.document

    # ── Loading ──

    async def load_template(
        self, template_id: str, version: Optional[int] = None,
    ) -> Optional[GraphDocument]:
        """Replace the document with a saved template definition.

        Returns the loaded document, or ``None`` when a newer load
        superseded this one.
        """
        self._load_token += 1
        token = self._load_token
        response = await self.backend.get_template_definition(template_id, version)
        if token != self._load_token:
            logger.warning(f"Discarding stale load of template {template_id}")
            return None

        template = _mapping(response.get("template"))
        version_info = _mapping(response.get("version"))
        definition = version_info.get("definition")
        if not isinstance(definition, Mapping):
            definition = {"nodes": [], "edges": []}
        name = str(template.get("name") or DEFAULT_NAME).strip() or DEFAULT_NAME

        document = load_definition(copy.deepcopy(dict(definition)), name=name)
        self.store.reset(document)
        self.template_id = str(template.get("id") or template_id)
        self.template_version = _positive_int(version_info.get("version"))
        self.saved_name = name
        logger.info(
            f"Loaded template {self.template_id} v{self.template_version}: "
            f"{len(document.nodes)} nodes"
        )
        return document

    async def load_run(self, run_id: str) -> Dict[str, Any]:
        """Open the template a run executed, with the run's input applied.

        Returns the run detail.
        """
        detail = await self.backend.get_run(run_id)
        run = _mapping(detail.get("run"))
        self.active_run_id = run_id

        template_id = str(run.get("workflow_template_id") or "").strip()
        if template_id:
            version = _positive_int(run.get("workflow_template_version"))
            document = await self.load_template(template_id, version)
            if document is not None:
                self.store.reset(apply_run_input(document, run.get("input")))
        return detail

    # ── Saving ──

    async def save(self) -> SaveResult:
        """Compile and persist the current document.

        Raises:
            DefinitionCompileError: nothing executable to save.
            BackendError: the backend refused the save.
        """
        document = self.store.document
        compiled = compile_definition(document.nodes, document.edges)
        definition = compiled.to_wire()
        mode = compiled.definition_mode
        name = document.name.strip() or DEFAULT_NAME

        if self.template_id and name == self.saved_name:
            response = await self.backend.create_template_version(
                self.template_id, definition, mode, change_note=UPDATE_CHANGE_NOTE,
            )
            version = _positive_int(_mapping(response.get("version")).get("version"))
            if version is not None:
                self.template_version = version
            result = SaveResult(template_id=self.template_id, version=self.template_version)
        else:
            response = await self.backend.create_template(
                name, definition, mode,
                description=CREATE_DESCRIPTION, change_note=CREATE_CHANGE_NOTE,
            )
            template_id = str(_mapping(response.get("template")).get("id") or "").strip()
            if not template_id:
                raise BackendError("Workflow backend did not return a template id")
            self.template_id = template_id
            self.template_version = _positive_int(_mapping(response.get("version")).get("version")) or 1
            result = SaveResult(template_id=template_id, version=self.template_version, created=True)

        self.saved_name = name
        logger.info(
            f"Saved workflow '{name}' as template {result.template_id} v{result.version}"
            f"{' (new template)' if result.created else ''}"
        )
        return result

    # ── Runs ──

    def run_input(self) -> Dict[str, Any]:
        trigger = self.store.document.find_trigger()
        payload = trigger.config.get("input") if trigger is not None else None
        return copy.deepcopy(payload) if isinstance(payload, dict) else {}

    def run_context(self) -> Dict[str, Any]:
        trigger = self.store.document.find_trigger()
        payload = trigger.config.get("context") if trigger is not None else None
        context = copy.deepcopy(payload) if isinstance(payload, dict) else {}
        if not str(context.get("source") or "").strip():
            context["source"] = RUN_CONTEXT_SOURCE
        return context

    async def start_run(self, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        """Save and start a manual run.

        Raises:
            RunBlockedError: setup-class issues remain.
        """
        blockers = setup_blockers(collect_issues(self.store.document))
        if blockers:
            raise RunBlockedError(blockers)

        saved = await self.save()
        key = idempotency_key or f"studio-run-{int(time.time() * 1000)}"
        response = await self.backend.start_manual_run(
            saved.template_id,
            saved.version,
            self.run_input(),
            self.run_context(),
            key,
        )
        run = _mapping(response.get("run"))
        self.active_run_id = str(run.get("id") or "") or None
        logger.info(f"Started run {self.active_run_id} of template {saved.template_id} v{saved.version}")
        return response

    async def poll_run(
        self,
        run_id: Optional[str] = None,
        on_update: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Fetch run detail every ``poll_interval`` seconds.

        Returns the detail with a terminal status, or ``None`` when the
        session was closed first. Failed fetches are logged and retried.
        """
        run_id = run_id or self.active_run_id
        if not run_id:
            raise ValueError("No run to poll")

        while not self._closed:
            try:
                detail = await self.backend.get_run(run_id)
            except BackendError as e:
                logger.warning(f"Polling run {run_id} failed: {e}")
            else:
                if on_update is not None:
                    on_update(detail)
                status = str(_mapping(detail.get("run")).get("status") or "").lower()
                if status in TERMINAL_RUN_STATUSES:
                    logger.info(f"Run {run_id} finished with status {status}")
                    return detail
            await asyncio.sleep(self.poll_interval)
        return None

    async def complete_task(
        self, task_id: str, decision: str, note: Optional[str] = None,
    ) -> Dict[str, Any]:
        response = await self.backend.complete_task(task_id, decision, note)
        logger.info(f"Completed task {task_id}: {decision}")
        return response

    async def close(self) -> None:
        """Stop polling and release the backend client."""
        self._closed = True
        await self.backend.aclose()
