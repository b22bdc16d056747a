"""
Tool Nodes — document writes, file operations, exports, and utilities.
"""

from __future__ import annotations

from studio.workflow.nodes.base import (
    BaseNode,
    BindingRule,
    Capability,
    CONTENT_INPUT,
    CONTENT_KEYS,
    CONTENT_RULE,
    DOC_IDS_REQUIREMENT,
    DOC_IDS_RULE,
    Need,
    NodeMode,
    Requirement,
    RuntimeInput,
    register_node,
)

_DOCS_ONLY = frozenset({Capability.DOCS})


# ============================================================================
# Document
# ============================================================================


@register_node
class DocumentNode(BaseNode):
    node_type = "document"
    label = "Document"
    description = "Create documents."
    group = "tools"
    icon = "📄"
    color = "#6366f1"

    modes = [
        NodeMode(
            value="create",
            label="Create",
            node_key="dms.create_document",
            description="Writes a new document into the target folder.",
            default_config={
                "title": "Generated Document",
                "filename": "generated-document.md",
                "folder_path": "/",
                "content": "",
            },
            produces=_DOCS_ONLY,
            needs=(Need.CONTENT,),
            output_paths={"doc_ids": "generated_doc_id"},
            binding_rules=(CONTENT_RULE,),
            input_targets=("content",),
            requirements=(
                Requirement(
                    "Document content", CONTENT_KEYS,
                    satisfy_with_incoming=True, runtime_input=CONTENT_INPUT,
                ),
            ),
        ),
        NodeMode(
            value="update",
            label="Update",
            node_key="dms.update_document",
            implemented=False,
            description="Replaces the content of an existing document.",
            default_config={
                "doc_id": "",
                "title": "",
                "content": "",
                "create_new_version": True,
            },
            produces=_DOCS_ONLY,
            needs=(Need.DOCS, Need.CONTENT),
            binding_rules=(DOC_IDS_RULE, CONTENT_RULE),
            input_targets=("doc_ids", "content"),
            requirements=(
                DOC_IDS_REQUIREMENT,
                Requirement(
                    "Updated content", CONTENT_KEYS,
                    satisfy_with_incoming=True, runtime_input=CONTENT_INPUT,
                ),
            ),
        ),
    ]


# ============================================================================
# File
# ============================================================================


@register_node
class FileNode(BaseNode):
    node_type = "file"
    label = "File"
    description = "Move files or set metadata."
    group = "tools"
    icon = "🗄️"
    color = "#14b8a6"

    modes = [
        NodeMode(
            value="move",
            label="Move",
            node_key="dms.move_document",
            description="Moves the documents to the destination folder.",
            default_config={"doc_ids": [], "dest_path": "/processed"},
            produces=_DOCS_ONLY,
            needs=(Need.DOCS,),
            binding_rules=(
                DOC_IDS_RULE,
                # Destination is never taken from an upstream step.
                BindingRule("dest_path", ("dest_path", "destPath")),
            ),
            input_targets=("doc_ids", "dest_path"),
            requirements=(
                DOC_IDS_REQUIREMENT,
                Requirement(
                    "Destination folder", ("dest_path", "destPath"),
                    runtime_input=RuntimeInput("dest_path", "Destination folder", "text"),
                ),
            ),
        ),
        NodeMode(
            value="set_metadata",
            label="Set Metadata",
            node_key="dms.set_metadata",
            description="Applies tags, keywords, and category to the documents.",
            default_config={
                "doc_ids": [],
                "tags": [],
                "keywords": [],
                "category": "",
                "merge": True,
            },
            produces=_DOCS_ONLY,
            needs=(Need.DOCS,),
            output_paths={"doc_ids": "updated_doc_ids"},
            binding_rules=(DOC_IDS_RULE,),
            input_targets=("doc_ids",),
            requirements=(DOC_IDS_REQUIREMENT,),
        ),
    ]


# ============================================================================
# Output
# ============================================================================


@register_node
class OutputNode(BaseNode):
    node_type = "output"
    label = "Output"
    description = "Export records as CSV artifact."
    group = "tools"
    icon = "📤"
    color = "#06b6d4"

    modes = [
        NodeMode(
            value="export_csv",
            label="Export CSV",
            node_key="artifact.export_csv",
            description="Writes the incoming rows to a CSV artifact.",
            default_config={"rows_source_path": "", "filename": "export.csv", "columns": []},
            produces=frozenset(),
            needs=(Need.RECORDS,),
            binding_rules=(BindingRule("rows", ("rows", "records"), source_output="records"),),
            input_targets=("rows",),
            requirements=(
                Requirement(
                    "Rows to export", ("rows", "records"),
                    satisfy_with_incoming=True,
                    runtime_input=RuntimeInput("rows", "Rows", "text"),
                ),
            ),
        ),
    ]


# ============================================================================
# Utilities
# ============================================================================


@register_node
class UtilitiesNode(BaseNode):
    """Delays, data transforms, custom expressions, and run state.

    ``function`` is also the landing spot for backend node keys the
    catalog does not know.
    """

    node_type = "utilities"
    label = "Utilities"
    description = "Add delays, transform data, or manage state."
    group = "tools"
    icon = "🪄"
    color = "#7c3aed"

    modes = [
        NodeMode(
            value="delay",
            label="Wait / Delay",
            node_key="flow.delay",
            description="Pauses the run for a duration or until a time.",
            default_config={
                "duration_ms": 0,
                "until_datetime": "",
                "timezone": "UTC",
                "jitter_ms": 0,
            },
            requirements=(
                Requirement("Wait duration or Target time", setup=True, check="delay_timing"),
            ),
        ),
        NodeMode(
            value="transform",
            label="Transform",
            node_key="flow.transform",
            description="Maps fields of the incoming records.",
            default_config={
                "mode": "mapping",
                "mappings": [{"id": "mapping_1", "target": "", "source": ""}],
                "validate_schema": False,
            },
            input_targets=("records",),
        ),
        NodeMode(
            value="function",
            label="Custom Function",
            node_key="flow.function",
            description="Evaluates a custom expression.",
            default_config={
                "operation_type": "expression",
                "expression": "",
                "timeout_ms": 10000,
            },
            input_targets=("input",),
        ),
        NodeMode(
            value="state",
            label="State Manager",
            node_key="flow.state",
            description="Reads or writes a run-scoped state value.",
            default_config={
                "operation": "set",
                "key": "",
                "value": "",
                "scope": "run",
                "ttl_minutes": 0,
            },
            input_targets=("value",),
        ),
    ]


# ============================================================================
# Audit
# ============================================================================


@register_node
class AuditNode(BaseNode):
    node_type = "audit"
    label = "Audit Log"
    description = "Log custom events to the timeline."
    group = "tools"
    icon = "🗃️"
    color = "#64748b"

    modes = [
        NodeMode(
            value="event",
            label="Log Event",
            node_key="system.audit_event",
            description="Appends an event to the audit timeline.",
            default_config={
                "event_type": "workflow.step",
                "message": "",
                "severity": "info",
                "payload_fields": [{"id": "kv_1", "key": "", "value": ""}],
            },
            input_targets=("payload",),
        ),
    ]
