from helpers import add, chain, raw_edge

from studio.workflow.templates import create_document_triage_template
from studio.workflow.workflow_inspector import inspect_workflow
from studio.workflow.workflow_model import GraphDocument, NodeData, WorkflowNode


def _nodes(report):
    return {n["id"]: n for n in report["nodes"]}


def test_triage_report():
    report = inspect_workflow(create_document_triage_template())
    summary = report["summary"]
    assert summary["workflow_name"] == "Document Triage"
    assert summary["total_nodes"] == 7
    assert summary["executable_nodes"] == 7
    assert summary["total_edges"] == 6
    assert summary["routed_edges"] == 3
    assert summary["stage_count"] == 5
    assert summary["issue_count"] == 1
    assert summary["is_valid"] is True
    assert summary["can_run"] is True
    assert report["run_blockers"] == []
    assert report["compile_error"] is None
    assert report["definition"]["schema_version"] == 2

    nodes = _nodes(report)
    assert nodes["trigger_1"]["role"] == "entry"
    assert nodes["route_doc"]["role"] == "router"
    assert nodes["route_doc"]["routing"] == "route"
    assert nodes["route_doc"]["output_handles"] == ["finance", "ops", "default"]
    assert nodes["route_doc"]["stage"] == 3
    assert nodes["read_doc"]["input_missing"] == ["Document ID(s)"]
    assert nodes["read_doc"]["bindings"] == {"doc_ids": "$.steps.trigger_1.output.doc_ids"}
    assert nodes["classify_doc"]["missing"] == []
    assert [t["target_id"] for t in nodes["route_doc"]["targets"]] == [
        "finance_approval", "ops_review", "log_unrouted",
    ]

    assert report["input_requirements"] == [{
        "input_key": "doc_ids",
        "label": "Document IDs",
        "kind": "docs",
        "targets": [{"node_id": "read_doc", "target_key": "doc_ids"}],
    }]


def test_edge_wiring():
    report = inspect_workflow(create_document_triage_template())
    wiring = {(e["source"], e["target"]): e for e in report["edges"]}
    finance = wiring[("route_doc", "finance_approval")]
    assert finance["wiring"] == "route"
    assert finance["handle"] == "finance"
    assert finance["description"] == 'Taken when the route equals "finance"'
    assert wiring[("trigger_1", "read_doc")]["wiring"] == "always"


def test_builder_nodes_are_reported_but_not_compiled():
    doc = chain(("trigger", "t", None), ("ai", "a", None))
    doc = add(doc, "note", "n")
    doc = add(doc, "end", "e")
    doc = raw_edge(doc, "a", "e")

    report = inspect_workflow(doc)
    nodes = _nodes(report)
    assert nodes["n"]["role"] == "annotation"
    assert nodes["n"]["step_id"] is None
    assert nodes["n"]["stage"] is None
    assert nodes["e"]["role"] == "marker"
    assert nodes["a"]["role"] == "step"
    assert report["summary"]["executable_nodes"] == 2
    wiring = {e["target"]: e["wiring"] for e in report["edges"]}
    assert wiring == {"a": "always", "e": "dropped"}


def test_setup_issues_block_the_run():
    doc = add(GraphDocument(), "trigger", "t")
    doc = add(doc, "ai", "gen", "generate", {"prompt": ""})
    report = inspect_workflow(doc)
    assert report["summary"]["can_run"] is False
    assert report["run_blockers"] == [{
        "node_id": "gen",
        "label": "AI",
        "missing": ["Prompt"],
        "input_missing": [],
        "setup_missing": ["Prompt"],
    }]


def test_structural_errors_are_reported():
    doc = add(add(GraphDocument(), "trigger", "t"), "ai", "a")
    doc = raw_edge(doc, "a", "t")
    report = inspect_workflow(doc)
    assert report["validation"] == {
        "valid": False,
        "errors": ["Node t cannot have incoming connections."],
    }
    assert report["summary"]["is_valid"] is False
    assert report["summary"]["can_run"] is False


def test_compile_error_is_reported():
    report = inspect_workflow(add(GraphDocument(), "note", "n"))
    assert report["definition"] is None
    assert report["compile_error"] == "Add at least one executable step before saving."
    assert report["summary"]["can_run"] is False


def test_unknown_node_types():
    mystery = WorkflowNode(id="m", type="mystery", data=NodeData(mode="x"))
    report = inspect_workflow(GraphDocument(nodes=(mystery,)))
    assert report["nodes"] == [{
        "id": "m",
        "label": "",
        "node_type": "mystery",
        "role": "unknown",
        "description": "Unknown node type: mystery",
    }]
