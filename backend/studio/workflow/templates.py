"""
Pre-built Workflow Templates.

Provides factory functions that return ready-made ``GraphDocument``
objects for common document workflows, so an operator can start from a
working graph instead of a blank trigger.

Templates are assembled through the same reducer the editor uses, so
edges are guarded and input bindings are auto-mapped exactly as if the
graph had been drawn by hand. Positions come from the auto layout.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from studio.workflow.auto_layout import place
from studio.workflow.graph_store import AddNode, Connect, PatchNode, reduce
from studio.workflow.workflow_model import GraphDocument


class _Builder:
    def __init__(self, name: str) -> None:
        self.document = GraphDocument(name=name)

    def add(self, ntype: str, nid: str, label: str, mode: Optional[str] = None, cfg: Optional[Dict[str, Any]] = None) -> None:
        self.document = reduce(self.document, AddNode(type=ntype, mode=mode, node_id=nid, label=label))
        if cfg:
            config = dict(self.document.require_node(nid).config)
            config.update(cfg)
            self.document = reduce(self.document, PatchNode(node_id=nid, config=config))

    def edge(self, src: str, tgt: str, handle: Optional[str] = None) -> None:
        self.document = reduce(self.document, Connect(source=src, target=tgt, handle=handle))

    def build(self) -> GraphDocument:
        return self.document.with_nodes(place(self.document.nodes, self.document.edges))


# ============================================================================
# Invoice Intake
# ============================================================================


def create_invoice_intake_template() -> GraphDocument:
    """Folder of invoices → extracted, validated, exported rows.

    Topology::
        Trigger → List Folder → Extract → Validate → Export CSV
    """
    b = _Builder("Invoice Intake")
    b.add("trigger", "trigger_1", "Trigger")
    b.add("records", "list_invoices", "List Invoices", "list_folder", {"folder_path": "/invoices"})
    b.add("ai", "extract_fields", "Extract Fields", "extract")
    b.add("checks", "validate_fields", "Validate Fields", "validate",
          {"required_fields": ["invoice_number", "amount"]})
    b.add("output", "export_rows", "Export Rows", "export_csv", {"filename": "invoices.csv"})

    b.edge("trigger_1", "list_invoices")
    b.edge("list_invoices", "extract_fields")
    b.edge("extract_fields", "validate_fields")
    b.edge("validate_fields", "export_rows")
    return b.build()


# ============================================================================
# Document Triage
# ============================================================================


def create_document_triage_template() -> GraphDocument:
    """Classify incoming documents and route them to the right team.

    Topology::
        Trigger → Read Document → Classify → Router
          ├─ finance → Approval
          ├─ ops     → Review
          └─ default → Log Event
    """
    b = _Builder("Document Triage")
    b.add("trigger", "trigger_1", "Trigger")
    b.add("records", "read_doc", "Read Document", "read_document")
    b.add("ai", "classify_doc", "Classify Document", "classify")
    b.add("flow", "route_doc", "Route by Type", "router")
    b.add("human", "finance_approval", "Finance Approval", "approval",
          {"title": "Approve finance document"})
    b.add("human", "ops_review", "Ops Review", "review", {"title": "Review operations document"})
    b.add("audit", "log_unrouted", "Log Unrouted", "event", {"message": "Document had no matching route"})

    b.edge("trigger_1", "read_doc")
    b.edge("read_doc", "classify_doc")
    b.edge("classify_doc", "route_doc")
    b.edge("route_doc", "finance_approval", "finance")
    b.edge("route_doc", "ops_review", "ops")
    b.edge("route_doc", "log_unrouted", "default")
    return b.build()


# ============================================================================
# Summarize Documents
# ============================================================================


def create_summary_template() -> GraphDocument:
    """Generate a summary document from the run's documents.

    Topology::
        Trigger → Generate → Create Document
    """
    b = _Builder("Summarize Documents")
    b.add("trigger", "trigger_1", "Trigger")
    b.add("ai", "summarize", "Summarize", "generate",
          {"prompt": "Summarize the attached documents in plain language."})
    b.add("document", "save_summary", "Save Summary", "create",
          {"title": "Summary", "filename": "summary.md"})

    b.edge("trigger_1", "summarize")
    b.edge("summarize", "save_summary")
    return b.build()


# ============================================================================
# Template Registry
# ============================================================================

ALL_TEMPLATES: Dict[str, Callable[[], GraphDocument]] = {
    "invoice_intake": create_invoice_intake_template,
    "document_triage": create_document_triage_template,
    "summary": create_summary_template,
}


def list_templates() -> List[Dict[str, Any]]:
    """Name, title and size of every built-in template."""
    result = []
    for key, factory in ALL_TEMPLATES.items():
        doc = factory()
        result.append({
            "template_name": key,
            "name": doc.name,
            "description": (factory.__doc__ or "").strip().splitlines()[0],
            "node_count": len(doc.nodes),
            "edge_count": len(doc.edges),
        })
    return result


def create_template(template_name: str) -> GraphDocument:
    """Build a template by name.

    Raises:
        KeyError: unknown template name.
    """
    try:
        factory = ALL_TEMPLATES[template_name]
    except KeyError:
        raise KeyError(f"Unknown workflow template: {template_name}") from None
    return factory()
