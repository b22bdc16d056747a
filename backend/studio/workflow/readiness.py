"""
Readiness Checker — per-step diagnostics before a run.

Each (type, mode) declares ``Requirement`` records in the node catalog;
specialized backend keys (``ai.extract_facts`` and friends) override
them. A requirement is satisfied by any of:

* a binding or config value that is meaningful. A step reference must
  point at an eligible (lower-stage) step. Run-input references, and
  references to the trigger's own output, count only when the trigger's
  sample ``input`` holds a value for that key.
* an incoming edge from an eligible non-trigger step, for requirements
  marked ``satisfy_with_incoming``.
* a custom check named by the requirement.

Setup-class labels block a run. Input-class labels can be supplied as
run input and are gathered into ``RuntimeInputRequirement`` records.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from studio.workflow.bindings import (
    ConstantBinding,
    RunInputBinding,
    StepOutputBinding,
    has_meaningful_value,
    normalize_path_segment,
    parse_binding,
    run_input_key,
)
from studio.workflow.nodes import get_node_registry
from studio.workflow.nodes.base import Requirement
from studio.workflow.stage_resolver import can_use_as_source, compute_stages
from studio.workflow.workflow_model import GraphDocument, WorkflowNode

logger = getLogger(__name__)

TRIGGER_INPUT_ALIASES: Dict[str, Tuple[str, ...]] = {
    "doc_ids": ("doc_id",),
    "doc_id": ("doc_ids",),
    "folder_path": ("folderPath",),
    "ruleset_doc_id": ("rulesetDocId",),
}


class ReadinessIssue(BaseModel):
    """Missing setup or input for one step."""

    node_id: str
    label: str
    missing: List[str] = Field(default_factory=list)
    input_missing: List[str] = Field(default_factory=list)
    setup_missing: List[str] = Field(default_factory=list)


class RuntimeInputTarget(BaseModel):
    node_id: str
    target_key: str


class RuntimeInputRequirement(BaseModel):
    """A run-input value that would satisfy one or more missing inputs."""

    input_key: str
    label: str
    kind: str = "text"
    targets: List[RuntimeInputTarget] = Field(default_factory=list)


# ====================================================================
# Value checks
# ====================================================================


def trigger_input_value(trigger: Optional[WorkflowNode], key: str) -> Any:
    """Sample run-input value the trigger holds for ``key`` (aliases included)."""
    if trigger is None:
        return None
    clean = normalize_path_segment(key).lower()
    if not clean:
        return None
    payload = trigger.config.get("input")
    if not isinstance(payload, dict):
        return None
    for candidate in (clean,) + TRIGGER_INPUT_ALIASES.get(clean, ()):
        value = payload.get(candidate)
        if has_meaningful_value(value):
            return value
    return None


class _Context:
    """What one node's requirement checks can see."""

    def __init__(self, node: WorkflowNode, document: GraphDocument, stages: Mapping[str, int]):
        self.node = node
        self.config = node.config
        self.bindings = node.bindings
        self.stages = stages
        self.nodes_by_id = document.node_map()
        self.trigger = document.find_trigger()

        registry = get_node_registry()
        self.has_incoming = False
        for edge in document.get_edges_to(node.id):
            if not can_use_as_source(edge.source, node.id, stages):
                continue
            source = self.nodes_by_id.get(edge.source)
            source_type = registry.get(source.type) if source is not None else None
            if source_type is not None and source_type.source_only:
                continue
            self.has_incoming = True
            break

    def value_ok(self, value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            expr = parse_binding(value) if value.strip() else None
        elif isinstance(value, (RunInputBinding, StepOutputBinding, ConstantBinding)):
            expr = value
        else:
            return has_meaningful_value(value)
        if expr is None:
            return False

        if isinstance(expr, RunInputBinding):
            key = run_input_key(expr)
            if key is None:
                return True
            if self.trigger is not None:
                return has_meaningful_value(trigger_input_value(self.trigger, key))
            return True

        if isinstance(expr, StepOutputBinding):
            source = self.nodes_by_id.get(expr.step_id)
            source_type = get_node_registry().get(source.type) if source is not None else None
            if source_type is not None and source_type.source_only:
                key = normalize_path_segment(expr.path)
                if not key:
                    return False
                return has_meaningful_value(trigger_input_value(source, key))
            return can_use_as_source(expr.step_id, self.node.id, self.stages)

        return has_meaningful_value(expr.value)

    def any_key(self, requirement: Requirement) -> bool:
        if any(self.value_ok(self.bindings.get(k)) for k in requirement.binding_keys):
            return True
        return any(self.value_ok(self.config.get(k)) for k in requirement.config_keys)


# ── Custom checks ──


def _condition_source(ctx: _Context) -> bool:
    conditions = ctx.config.get("conditions")
    if isinstance(conditions, list) and any(
        isinstance(c, dict) and str(c.get("field") or "").strip() for c in conditions
    ):
        return True
    if str(ctx.config.get("expression") or "").strip():
        return True
    if ctx.value_ok(ctx.bindings.get("value")) or ctx.value_ok(ctx.config.get("value")):
        return True
    return ctx.has_incoming


def _routes(ctx: _Context) -> bool:
    routes = ctx.config.get("routes")
    if isinstance(routes, list) and any(
        isinstance(r, dict) and str(r.get("key") or r.get("id") or "").strip() for r in routes
    ):
        return True
    return bool(str(ctx.config.get("default_route") or "").strip())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _delay_timing(ctx: _Context) -> bool:
    for key in ("wait_ms", "duration_ms"):
        if _is_number(ctx.config.get(key)):
            return True
        if key in ctx.bindings and ctx.value_ok(ctx.bindings[key]):
            return True
    for key in ("target_time", "until_datetime"):
        if str(ctx.config.get(key) or "").strip():
            return True
        if key in ctx.bindings and ctx.value_ok(ctx.bindings[key]):
            return True
    return False


def _merge_sources(ctx: _Context) -> bool:
    if ctx.has_incoming:
        return True
    from_nodes = ctx.config.get("from_nodes")
    return isinstance(from_nodes, list) and any(str(n or "").strip() for n in from_nodes)


def _assignee(ctx: _Context) -> bool:
    assignee = ctx.config.get("assignee")
    if not isinstance(assignee, dict):
        return False
    return bool(str(assignee.get("type") or "").strip() and str(assignee.get("value") or "").strip())


def _checklist_items(ctx: _Context) -> bool:
    items = ctx.config.get("checklist_items")
    return isinstance(items, list) and any(str(i or "").strip() for i in items)


CUSTOM_CHECKS: Dict[str, Callable[[_Context], bool]] = {
    "condition_source": _condition_source,
    "routes": _routes,
    "delay_timing": _delay_timing,
    "merge_sources": _merge_sources,
    "assignee": _assignee,
    "checklist_items": _checklist_items,
}


# ====================================================================
# Public API
# ====================================================================


def requirements_for(node: WorkflowNode) -> Tuple[Requirement, ...]:
    registry = get_node_registry()
    node_type = registry.get(node.type)
    if node_type is not None and (node_type.source_only or node_type.builder_only):
        return ()
    specialized = registry.specialized_requirements(node.node_key)
    if specialized is not None:
        return specialized
    mode = registry.lookup_mode(node.type, node.mode)
    return mode.requirements if mode is not None else ()


def _satisfied(requirement: Requirement, ctx: _Context) -> bool:
    if requirement.check:
        return CUSTOM_CHECKS[requirement.check](ctx)
    if ctx.any_key(requirement):
        return True
    return requirement.satisfy_with_incoming and ctx.has_incoming


def missing_requirements(
    node: WorkflowNode,
    document: GraphDocument,
    stages: Optional[Mapping[str, int]] = None,
) -> List[Requirement]:
    requirements = requirements_for(node)
    if not requirements:
        return []
    if stages is None:
        stages = compute_stages(document.nodes, document.edges)
    ctx = _Context(node, document, stages)
    return [r for r in requirements if not _satisfied(r, ctx)]


def evaluate(
    node: WorkflowNode,
    document: GraphDocument,
    stages: Optional[Mapping[str, int]] = None,
) -> List[str]:
    """Labels of the node's unsatisfied requirements, in declaration order."""
    return [r.label for r in missing_requirements(node, document, stages)]


def node_issue(
    node: WorkflowNode,
    document: GraphDocument,
    stages: Optional[Mapping[str, int]] = None,
) -> Optional[ReadinessIssue]:
    missing = missing_requirements(node, document, stages)
    if not missing:
        return None
    return ReadinessIssue(
        node_id=node.id,
        label=node.label or node.type,
        missing=[r.label for r in missing],
        input_missing=[r.label for r in missing if not r.setup],
        setup_missing=[r.label for r in missing if r.setup],
    )


def collect_issues(document: GraphDocument) -> List[ReadinessIssue]:
    """Issues for every node, in document order."""
    stages = compute_stages(document.nodes, document.edges)
    issues = []
    for node in document.nodes:
        issue = node_issue(node, document, stages)
        if issue is not None:
            issues.append(issue)
    return issues


def setup_blockers(issues: List[ReadinessIssue]) -> List[ReadinessIssue]:
    return [i for i in issues if i.setup_missing]


def runtime_input_requirements(document: GraphDocument) -> List[RuntimeInputRequirement]:
    """Run inputs that would satisfy the document's input-class gaps."""
    stages = compute_stages(document.nodes, document.edges)
    by_key: Dict[str, RuntimeInputRequirement] = {}
    for node in document.nodes:
        for requirement in missing_requirements(node, document, stages):
            runtime = requirement.runtime_input
            if requirement.setup or runtime is None:
                continue
            entry = by_key.get(runtime.input_key)
            if entry is None:
                entry = RuntimeInputRequirement(
                    input_key=runtime.input_key, label=runtime.label, kind=runtime.kind,
                )
                by_key[runtime.input_key] = entry
            target_key = requirement.binding_keys[0] if requirement.binding_keys else runtime.input_key
            entry.targets.append(RuntimeInputTarget(node_id=node.id, target_key=target_key))
    return list(by_key.values())
