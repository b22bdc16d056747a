from helpers import add, connect, raw_edge

from studio.workflow.definition_loader import load_definition
from studio.workflow.graph_store import PatchNode, reduce
from studio.workflow.readiness import (
    RuntimeInputRequirement,
    RuntimeInputTarget,
    collect_issues,
    evaluate,
    node_issue,
    runtime_input_requirements,
    setup_blockers,
    trigger_input_value,
)
from studio.workflow.workflow_model import GraphDocument

SOURCE_CONTENT = "Source content (text or document IDs)"


def _set_trigger_input(doc, **values):
    trigger = doc.require_node("t")
    config = dict(trigger.config)
    config["input"] = dict(config.get("input") or {}, **values)
    return reduce(doc, PatchNode(node_id="t", config=config))


def test_generate_without_prompt_is_blocked():
    doc = add(GraphDocument(), "trigger", "t")
    doc = add(doc, "ai", "gen", "generate", {"prompt": ""})
    doc = connect(doc, "t", "gen")

    assert evaluate(doc.require_node("gen"), doc) == ["Prompt"]
    issues = collect_issues(doc)
    assert len(issues) == 1
    assert issues[0].node_id == "gen"
    assert issues[0].setup_missing == ["Prompt"]
    assert issues[0].input_missing == []
    assert setup_blockers(issues) == issues


def test_prompt_template_also_counts():
    doc = add(GraphDocument(), "ai", "gen", "generate", {"prompt": "", "prompt_template": "Summarize {text}"})
    assert evaluate(doc.require_node("gen"), doc) == []


def test_default_generate_step_is_ready():
    doc = add(GraphDocument(), "ai", "gen", "generate")
    assert evaluate(doc.require_node("gen"), doc) == []


def test_auto_mapped_chain_is_ready():
    doc = add(GraphDocument(), "trigger", "t")
    doc = add(doc, "records", "list", "list_folder")
    doc = add(doc, "ai", "ext", "extract")
    doc = connect(doc, "t", "list")
    doc = connect(doc, "list", "ext")
    assert collect_issues(doc) == []


def test_unbound_extract_reports_input_class_issue():
    doc = add(GraphDocument(), "ai", "ext", "extract")
    issue = node_issue(doc.require_node("ext"), doc)
    assert issue.missing == [SOURCE_CONTENT]
    assert issue.input_missing == [SOURCE_CONTENT]
    assert issue.setup_missing == []
    assert setup_blockers([issue]) == []


def test_runtime_input_requirements():
    doc = add(GraphDocument(), "ai", "ext", "extract")
    doc = add(doc, "ai", "cls", "classify")
    assert runtime_input_requirements(doc) == [
        RuntimeInputRequirement(
            input_key="text",
            label="Source text",
            kind="text",
            targets=[
                RuntimeInputTarget(node_id="ext", target_key="text"),
                RuntimeInputTarget(node_id="cls", target_key="text"),
            ],
        ),
    ]


def test_run_input_binding_needs_a_trigger_value():
    doc = add(GraphDocument(), "trigger", "t")
    doc = add(doc, "records", "read", "read_document")
    doc = reduce(doc, PatchNode(node_id="read", input_bindings={"doc_ids": "$.input.doc_ids"}))
    assert evaluate(doc.require_node("read"), doc) == ["Document ID(s)"]

    doc = _set_trigger_input(doc, doc_id="doc-1")
    assert evaluate(doc.require_node("read"), doc) == []


def test_run_input_binding_without_trigger_is_accepted():
    doc = add(GraphDocument(), "records", "read", "read_document")
    doc = reduce(doc, PatchNode(node_id="read", input_bindings={"doc_ids": "$.input.doc_ids"}))
    assert evaluate(doc.require_node("read"), doc) == []


def test_trigger_output_reference_needs_a_trigger_value():
    doc = add(GraphDocument(), "trigger", "t")
    doc = add(doc, "records", "read", "read_document")
    doc = connect(doc, "t", "read")
    assert doc.require_node("read").bindings["doc_ids"].to_wire() == "$.steps.t.output.doc_ids"
    assert evaluate(doc.require_node("read"), doc) == ["Document ID(s)"]

    doc = _set_trigger_input(doc, doc_ids=["doc-1", "doc-2"])
    assert evaluate(doc.require_node("read"), doc) == []


def test_reference_to_a_later_step_does_not_count():
    doc = add(GraphDocument(), "records", "read", "read_document")
    doc = add(doc, "ai", "ext", "extract")
    doc = raw_edge(doc, "read", "ext")
    doc = reduce(doc, PatchNode(node_id="read", input_bindings={"doc_ids": "$.steps.ext.output.doc_ids"}))
    assert evaluate(doc.require_node("read"), doc) == ["Document ID(s)"]


def test_incoming_edge_from_a_step_satisfies_tolerant_slots():
    doc = add(GraphDocument(), "ai", "gen", "generate")
    doc = add(doc, "document", "create", "create")
    doc = raw_edge(doc, "gen", "create")
    assert evaluate(doc.require_node("create"), doc) == []


def test_incoming_edge_from_trigger_does_not_count():
    doc = add(GraphDocument(), "trigger", "t")
    doc = add(doc, "document", "create", "create")
    doc = raw_edge(doc, "t", "create")
    assert evaluate(doc.require_node("create"), doc) == ["Document content"]


def test_router_checks():
    doc = add(GraphDocument(), "flow", "route", "router", {"routes": [], "default_route": ""})
    issue = node_issue(doc.require_node("route"), doc)
    assert issue.missing == ["Route key", "At least one route (or set a Default Route)"]
    assert issue.setup_missing == ["At least one route (or set a Default Route)"]
    assert issue.input_missing == ["Route key"]

    doc = add(doc, "ai", "cls", "classify")
    doc = raw_edge(doc, "cls", "route")
    doc = reduce(doc, PatchNode(node_id="route", config={"routes": [], "default_route": "fallback"}))
    assert evaluate(doc.require_node("route"), doc) == []


def test_if_else_condition_source():
    doc = add(GraphDocument(), "flow", "branch", "if_else")
    assert evaluate(doc.require_node("branch"), doc) == [
        "Condition source (conditions, expression, or incoming value)",
    ]
    config = dict(doc.require_node("branch").config)
    config["conditions"] = [{"id": "condition_1", "field": "amount", "operator": "gt", "value": "100"}]
    doc = reduce(doc, PatchNode(node_id="branch", config=config))
    assert evaluate(doc.require_node("branch"), doc) == []


def test_if_else_expression():
    doc = add(GraphDocument(), "flow", "branch", "if_else", {"expression": "input.amount > 100"})
    assert evaluate(doc.require_node("branch"), doc) == []


def test_delay_timing():
    label = "Wait duration or Target time"
    doc = add(GraphDocument(), "utilities", "wait", "delay")
    assert evaluate(doc.require_node("wait"), doc) == []

    doc = reduce(doc, PatchNode(node_id="wait", config={"duration_ms": None, "until_datetime": ""}))
    assert evaluate(doc.require_node("wait"), doc) == [label]

    doc = reduce(doc, PatchNode(node_id="wait", config={"duration_ms": True}))
    assert evaluate(doc.require_node("wait"), doc) == [label]

    doc = reduce(doc, PatchNode(node_id="wait", config={"target_time": "2026-01-01T09:00:00Z"}))
    assert evaluate(doc.require_node("wait"), doc) == []

    doc = reduce(doc, PatchNode(node_id="wait", config={"wait_ms": 1500}))
    assert evaluate(doc.require_node("wait"), doc) == []


def test_merge_sources():
    doc = add(GraphDocument(), "flow", "merge", "merge_results")
    assert evaluate(doc.require_node("merge"), doc) == ["At least one upstream step to merge"]
    doc = reduce(doc, PatchNode(node_id="merge", config={"mode": "array", "from_nodes": ["a"]}))
    assert evaluate(doc.require_node("merge"), doc) == []


def test_human_checks():
    doc = add(GraphDocument(), "human", "check", "checklist")
    assert evaluate(doc.require_node("check"), doc) == []

    doc = reduce(doc, PatchNode(node_id="check", config={
        "title": "Checklist task",
        "assignee": {"type": "role", "value": ""},
        "checklist_items": ["", "  "],
    }))
    issue = node_issue(doc.require_node("check"), doc)
    assert issue.setup_missing == ["Assignee", "Checklist items"]


def test_builder_and_trigger_nodes_never_report():
    doc = add(GraphDocument(), "trigger", "t")
    doc = add(doc, "note", "n")
    doc = add(doc, "end", "e")
    assert collect_issues(doc) == []


def test_specialized_node_key_overrides_mode_rules():
    doc = load_definition({"nodes": [{"id": "facts", "node_type": "ai.extract_facts"}]})
    node = doc.require_node("facts")
    assert node.type == "utilities"
    assert node.node_key == "ai.extract_facts"
    assert evaluate(node, doc) == ["Subject documents"]
    assert runtime_input_requirements(doc)[0].label == "Project Documents"


def test_trigger_input_aliases():
    doc = add(GraphDocument(), "trigger", "t")
    doc = _set_trigger_input(doc, folderPath="/inbox")
    trigger = doc.require_node("t")
    assert trigger_input_value(trigger, "folder_path") == "/inbox"
    assert trigger_input_value(trigger, "doc_ids") is None
    assert trigger_input_value(None, "doc_ids") is None
