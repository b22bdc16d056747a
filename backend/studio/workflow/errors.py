"""
Workflow Errors — exception hierarchy for the studio engine.

Connection checks never raise; they return a ``ConnectionResult``.
These exceptions cover contract violations and failed round trips.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from studio.workflow.connection_guard import ConnectionResult


class WorkflowStudioError(Exception):
    """Base class for all studio errors."""


class UnknownNodeTypeError(WorkflowStudioError, KeyError):
    def __init__(self, node_type: str) -> None:
        super().__init__(f"Unknown node type: {node_type!r}")
        self.node_type = node_type

    def __str__(self) -> str:
        return self.args[0]


class UnknownNodeModeError(WorkflowStudioError, KeyError):
    def __init__(self, node_type: str, mode: str) -> None:
        super().__init__(f"Unknown mode {mode!r} for node type {node_type!r}")
        self.node_type = node_type
        self.mode = mode

    def __str__(self) -> str:
        return self.args[0]


class NodeNotFoundError(WorkflowStudioError, KeyError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id!r}")
        self.node_id = node_id

    def __str__(self) -> str:
        return self.args[0]


class ConnectionRejectedError(WorkflowStudioError):
    """Raised by the reducer when the connection guard blocks an edge."""

    def __init__(self, result: "ConnectionResult") -> None:
        super().__init__(result.message or "Connection rejected.")
        self.result = result


class GraphCycleError(WorkflowStudioError):
    """The graph contains a cycle where an acyclic graph is required."""

    def __init__(self, node_ids: List[str]) -> None:
        super().__init__(
            "Workflow graph contains a cycle through: " + ", ".join(node_ids)
        )
        self.node_ids = node_ids


class DefinitionCompileError(WorkflowStudioError):
    """The graph cannot be compiled into an executable definition."""


class BackendError(WorkflowStudioError):
    """A request to the workflow backend failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RunBlockedError(WorkflowStudioError):
    """A run was requested while setup-class readiness issues remain."""

    def __init__(self, issues: list) -> None:
        labels = sorted({label for issue in issues for label in issue.setup_missing})
        super().__init__("Finish step setup before running: " + ", ".join(labels))
        self.issues = issues
