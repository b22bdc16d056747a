"""
Core Nodes — trigger, AI, records, and retrieval steps.

These make up the "Core Components" palette group: the entry point of
every workflow plus the steps that read documents and call the model.
"""

from __future__ import annotations

from studio.workflow.nodes.base import (
    BaseNode,
    BindingRule,
    Capability,
    DOC_IDS_REQUIREMENT,
    DOC_IDS_RULE,
    DOC_IDS_KEYS,
    Need,
    NodeMode,
    Requirement,
    RuntimeInput,
    register_node,
)

_AI_OUTPUTS = {"doc_ids": "input_doc_ids"}

_SOURCE_CONTENT = Requirement(
    "Source content (text or document IDs)",
    ("text",) + DOC_IDS_KEYS,
    satisfy_with_incoming=True,
    runtime_input=RuntimeInput("text", "Source text", "text"),
)

_TEXT_RULE = BindingRule("text", source_output="text")


# ============================================================================
# Trigger
# ============================================================================


@register_node
class TriggerNode(BaseNode):
    """Workflow entry point.

    Its ``config.input`` doubles as the sample run input that satisfies
    run-input bindings while designing; it is cleared on compile.
    """

    node_type = "trigger"
    label = "Trigger"
    description = "Starts the workflow with manual input/context."
    group = "core"
    icon = "▶️"
    color = "#71717a"
    source_only = True

    modes = [
        NodeMode(
            value="manual",
            label="Manual",
            node_key="manual.trigger",
            description="Starts the run with the supplied input and context.",
            default_config={
                "input": {"doc_id": "", "doc_ids": []},
                "context": {"source": "workflow-builder"},
            },
            produces=frozenset({Capability.ANY}),
        ),
    ]

    suggested_next = (
        "Records -> Read Document",
        "AI -> Extract",
        "Checks -> Packet Completeness",
    )


# ============================================================================
# AI
# ============================================================================


@register_node
class AINode(BaseNode):
    """Model call: free-form generation, field extraction, or classification."""

    node_type = "ai"
    label = "AI"
    description = "Generate, extract, or classify using AI."
    group = "core"
    icon = "🤖"
    color = "#8b5cf6"

    modes = [
        NodeMode(
            value="generate",
            label="Generate",
            node_key="ai.prompt",
            description="Runs the prompt against the model and returns the response text.",
            default_config={
                "prompt": "You are a helpful assistant.",
                "response_format": "text",
                "temperature": 0.2,
                "doc_ids": [],
            },
            produces=frozenset({Capability.TEXT, Capability.CONTENT, Capability.DOCS}),
            output_paths={
                "doc_ids": "input_doc_ids",
                "text": "response_text",
                "content": "response_text",
            },
            binding_rules=(DOC_IDS_RULE,),
            input_targets=("doc_ids",),
            requirements=(
                Requirement("Prompt", ("prompt",), ("prompt", "prompt_template"), setup=True),
            ),
        ),
        NodeMode(
            value="extract",
            label="Extract",
            node_key="ai.extract",
            description="Extracts the configured schema fields into records.",
            default_config={
                "text": "",
                "doc_ids": [],
                "schema_fields": ["invoice_number", "amount", "date"],
            },
            produces=frozenset({Capability.RECORDS, Capability.DOCS}),
            needs=(Need.TEXT_OR_DOCS,),
            output_paths=dict(_AI_OUTPUTS, content="records"),
            binding_rules=(DOC_IDS_RULE, _TEXT_RULE),
            input_targets=("doc_ids", "text"),
            requirements=(_SOURCE_CONTENT,),
            suggested_next=(
                "Checks -> Validate",
                "Checks -> Reconcile",
                "Output -> Export CSV",
            ),
        ),
        NodeMode(
            value="classify",
            label="Classify",
            node_key="ai.classify",
            description="Assigns one or more of the configured labels.",
            default_config={
                "text": "",
                "doc_ids": [],
                "labels": ["invoice", "agreement", "kyc"],
                "threshold": 0.5,
                "multi_label": False,
            },
            produces=frozenset({Capability.TEXT, Capability.DOCS}),
            needs=(Need.TEXT_OR_DOCS,),
            output_paths=dict(_AI_OUTPUTS),
            binding_rules=(DOC_IDS_RULE, _TEXT_RULE),
            input_targets=("doc_ids", "text"),
            requirements=(
                Requirement("Labels", ("labels",), setup=True),
                _SOURCE_CONTENT,
            ),
            suggested_next=(
                "Flow -> Router",
                "Flow -> If / Else",
                "Human -> Review",
            ),
        ),
    ]


# ============================================================================
# Records
# ============================================================================


@register_node
class RecordsNode(BaseNode):
    """Document store reads: folder listings and single-document reads."""

    node_type = "records"
    label = "Records"
    description = "List folder contents or read document content."
    group = "core"
    icon = "📁"
    color = "#0ea5e9"

    modes = [
        NodeMode(
            value="list_folder",
            label="List Folder",
            node_key="dms.list_folder",
            description="Lists documents under a folder path.",
            default_config={
                "folder_path": "/",
                "recursive": False,
                "limit": 100,
                "filters": [{"id": "filter_1", "field": "", "operator": "equals", "value": ""}],
            },
            produces=frozenset({Capability.DOCS, Capability.RECORDS}),
            output_paths={"records": "docs"},
            input_targets=("folder_path",),
            requirements=(
                Requirement(
                    "Folder path", ("folder_path",),
                    runtime_input=RuntimeInput("folder_path", "Folder path", "folder"),
                ),
            ),
            suggested_next=(
                "Checks -> Packet Completeness",
                "Records -> Read Document",
                "AI -> Extract",
            ),
        ),
        NodeMode(
            value="read_document",
            label="Read Document",
            node_key="dms.read_document",
            description="Reads document text and metadata.",
            default_config={
                "doc_id": "",
                "doc_ids": [],
                "include_text": True,
                "include_metadata": True,
                "max_chars": 6000,
            },
            produces=frozenset({Capability.TEXT, Capability.CONTENT, Capability.DOCS}),
            needs=(Need.DOCS,),
            output_paths={"doc_ids": "doc_id", "text": "text", "content": "text"},
            binding_rules=(DOC_IDS_RULE,),
            input_targets=("doc_ids",),
            requirements=(DOC_IDS_REQUIREMENT,),
            suggested_next=(
                "AI -> Extract",
                "AI -> Classify",
                "Document -> Create",
            ),
        ),
    ]


# ============================================================================
# Retrieval
# ============================================================================


@register_node
class RetrievalNode(BaseNode):
    node_type = "retrieval"
    label = "Retrieval"
    description = "Search internal knowledge or folder index."
    group = "core"
    icon = "🔍"
    color = "#3b82f6"

    modes = [
        NodeMode(
            value="internal",
            label="Knowledge Search",
            node_key="search.internal",
            implemented=False,
            description="Searches the internal index for matching passages.",
            default_config={
                "query": "",
                "top_k": 10,
                "min_score": 0.2,
                "source_scope": "folder",
            },
            input_targets=("query",),
        ),
    ]
