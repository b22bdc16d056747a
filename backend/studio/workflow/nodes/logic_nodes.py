"""
Logic Nodes — checks, flow control, and human tasks.

Flow nodes are the only ones that fan out by handle: ``if_else`` emits
``true``/``false`` edges and ``router`` emits one edge per route key.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from studio.workflow.nodes.base import (
    BaseNode,
    BindingRule,
    Capability,
    Need,
    NodeMode,
    Requirement,
    RuntimeInput,
    WHOLE_OUTPUT,
    register_node,
)

_PACKET_DOC_KEYS = ("doc_ids", "doc_id", "documents", "docs")
_RECORDS_ONLY = frozenset({Capability.RECORDS})


# ============================================================================
# Checks
# ============================================================================


@register_node
class ChecksNode(BaseNode):
    node_type = "checks"
    label = "Checks"
    description = "Validate, reconcile, or check packet completeness."
    group = "logic"
    icon = "🛡️"
    color = "#10b981"

    modes = [
        NodeMode(
            value="validate",
            label="Validate",
            node_key="system.validate",
            description="Checks required fields and rules against the incoming data.",
            default_config={
                "required_fields": [],
                "rules": [{"id": "rule_1", "field": "", "operator": "equals", "expected": ""}],
                "fail_on_warning": False,
            },
            binding_rules=(
                BindingRule(
                    "data", ("data", "payload"),
                    source_output=WHOLE_OUTPUT, run_input_fallback="$.input",
                ),
            ),
            input_targets=("data",),
            requirements=(
                Requirement(
                    "Data to validate", ("data", "payload"),
                    satisfy_with_incoming=True,
                    runtime_input=RuntimeInput("data", "Data", "text"),
                ),
            ),
        ),
        NodeMode(
            value="reconcile",
            label="Reconcile",
            node_key="system.reconcile",
            description="Compares records by key fields.",
            default_config={"records_source_path": "", "key_fields": ["id"]},
            produces=_RECORDS_ONLY,
            needs=(Need.RECORDS,),
            binding_rules=(BindingRule("records", ("records", "items"), source_output="records"),),
            input_targets=("records",),
            requirements=(
                Requirement(
                    "Records to compare", ("records", "items"),
                    satisfy_with_incoming=True,
                    runtime_input=RuntimeInput("records", "Records", "text"),
                ),
            ),
        ),
        NodeMode(
            value="packet_check",
            label="Packet Completeness",
            node_key="system.packet_check",
            description="Checks that the document packet has the required types.",
            default_config={
                "doc_ids": [],
                "required_patterns": [],
                "required_types": [],
                "min_docs": 1,
            },
            produces=frozenset({Capability.DOCS}),
            needs=(Need.DOCS,),
            binding_rules=(BindingRule("doc_ids", _PACKET_DOC_KEYS, source_output="doc_ids"),),
            input_targets=("doc_ids",),
            requirements=(
                Requirement(
                    "Document ID(s)", ("doc_ids", "doc_id", "docs", "documents"),
                    satisfy_with_incoming=True,
                    runtime_input=RuntimeInput("doc_ids", "Document IDs", "docs"),
                ),
            ),
            suggested_next=(
                "Human -> Checklist",
                "Document -> Create",
                "Output -> Export CSV",
            ),
        ),
    ]


# ============================================================================
# Flow
# ============================================================================


@register_node
class FlowNode(BaseNode):
    """Branching, routing, iteration, and merging.

    Edges leaving a flow node carry the handle they were drawn from;
    the compiler turns those handles into route conditions.
    """

    node_type = "flow"
    label = "Flow"
    description = "Branch, route, loop, or merge flow paths."
    group = "logic"
    icon = "🔀"
    color = "#f97316"

    modes = [
        NodeMode(
            value="if_else",
            label="If / Else",
            node_key="flow.branch",
            routing="branch",
            description="Evaluates the conditions and follows the true or false path.",
            default_config={
                "condition_logic": "all",
                "conditions": [
                    {"id": "condition_1", "field": "", "operator": "equals", "value": ""},
                ],
                "truthy_values": ["true", "yes", "1"],
                "true_label": "True",
                "false_label": "False",
            },
            binding_rules=(BindingRule("value", source_output=WHOLE_OUTPUT),),
            input_targets=("value",),
            requirements=(
                Requirement(
                    "Condition source (conditions, expression, or incoming value)",
                    setup=True, check="condition_source",
                ),
            ),
        ),
        NodeMode(
            value="router",
            label="Router",
            node_key="flow.route",
            routing="route",
            description="Follows the route whose key matches the route value.",
            default_config={
                "route_key": "",
                "routes": [
                    {"id": "route_1", "key": "finance", "label": "Finance"},
                    {"id": "route_2", "key": "ops", "label": "Operations"},
                ],
                "default_route": "default",
            },
            input_targets=("route_key",),
            requirements=(
                Requirement(
                    "Route key", ("route_key",),
                    satisfy_with_incoming=True,
                    runtime_input=RuntimeInput("route_key", "Route key", "text"),
                ),
                Requirement(
                    "At least one route (or set a Default Route)",
                    setup=True, check="routes",
                ),
            ),
        ),
        NodeMode(
            value="for_each",
            label="For Each",
            node_key="flow.for_each",
            description="Runs the downstream steps once per item.",
            default_config={"items_path": "", "max_items": 100, "continue_on_item_error": False},
            produces=_RECORDS_ONLY,
            needs=(Need.RECORDS,),
            output_paths={"records": "items"},
            input_targets=("items",),
            requirements=(
                Requirement(
                    "Items to iterate", ("items", "records"),
                    satisfy_with_incoming=True,
                    runtime_input=RuntimeInput("items", "Items", "text"),
                ),
            ),
        ),
        NodeMode(
            value="merge_results",
            label="Merge Results",
            node_key="flow.aggregate",
            description="Collects the outputs of the upstream steps.",
            default_config={"mode": "array", "from_nodes": []},
            produces=_RECORDS_ONLY,
            output_paths={"records": "items"},
            input_targets=("items",),
            requirements=(
                Requirement(
                    "At least one upstream step to merge",
                    setup=True, check="merge_sources",
                ),
            ),
        ),
    ]

    def output_handles(self, mode: Optional[str], config: Dict[str, Any]) -> List[str]:
        routing = self.routing_for(mode)
        if routing == "route":
            handles: List[str] = []
            for route in config.get("routes") or []:
                if not isinstance(route, dict):
                    continue
                key = str(route.get("key") or route.get("id") or "").strip()
                if key and key not in handles:
                    handles.append(key)
            default = str(config.get("default_route") or "").strip()
            if default and default not in handles:
                handles.append(default)
            return handles
        if routing == "branch":
            return ["true", "false"]
        return []


# ============================================================================
# Human
# ============================================================================


_TASK_TITLE = Requirement("Task title", ("title",), setup=True)
_ASSIGNEE = Requirement("Assignee", setup=True, check="assignee")
_PAYLOAD_RULE = BindingRule("task_payload", source_output=WHOLE_OUTPUT)
_ASSIGNEE_DEFAULT = {"type": "role", "value": "orgAdmin"}


def _human_mode(value: str, label: str, description: str, config: Dict[str, Any], checklist: bool = False) -> NodeMode:
    requirements = (_TASK_TITLE, _ASSIGNEE)
    if checklist:
        requirements += (Requirement("Checklist items", setup=True, check="checklist_items"),)
    return NodeMode(
        value=value,
        label=label,
        node_key=f"human.{value}",
        description=description,
        default_config=config,
        binding_rules=(_PAYLOAD_RULE,),
        input_targets=("task_payload",),
        requirements=requirements,
    )


@register_node
class HumanNode(BaseNode):
    """Human-in-the-loop task assigned to a user or role."""

    node_type = "human"
    label = "Human"
    description = "Create review, approval, checklist, or task assignments."
    group = "logic"
    icon = "🙋"
    color = "#ec4899"

    modes = [
        _human_mode(
            "review", "Review", "Asks the assignee to review the payload.",
            {
                "title": "Review required",
                "assignee": dict(_ASSIGNEE_DEFAULT),
                "due_in_hours": 24,
                "reminder_minutes": 60,
                "comment_required": False,
            },
        ),
        _human_mode(
            "approval", "Approval", "Waits for the assignee to approve or reject.",
            {
                "title": "Approval required",
                "assignee": dict(_ASSIGNEE_DEFAULT),
                "due_in_hours": 24,
                "reminder_minutes": 60,
                "comment_required": False,
            },
        ),
        _human_mode(
            "checklist", "Checklist", "Asks the assignee to tick off each checklist item.",
            {
                "title": "Checklist task",
                "assignee": dict(_ASSIGNEE_DEFAULT),
                "checklist_items": ["Validate docs", "Confirm fields", "Submit decision"],
            },
            checklist=True,
        ),
        _human_mode(
            "task", "Task", "Creates a free-form task for the assignee.",
            {
                "title": "Task",
                "assignee": dict(_ASSIGNEE_DEFAULT),
                "due_in_hours": 24,
                "reminder_minutes": 0,
                "comment_required": False,
            },
        ),
    ]
