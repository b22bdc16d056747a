"""
Specialized backend steps.

Some backend node keys have no palette entry of their own (they load as
the generic function step) but still need their own readiness rules.
Rules registered here replace the mode's requirements for that key.
"""

from __future__ import annotations

from studio.workflow.nodes.base import Requirement, RuntimeInput, get_node_registry

_SUBJECT_DOCUMENTS = RuntimeInput("doc_ids", "Project Documents", "docs")

SPECIALIZED_REQUIREMENTS = {
    "ai.parse_ruleset": (
        Requirement(
            "Ruleset document", ("ruleset_doc_id",), ("ruleset_doc_id", "rulesetDocId"),
            runtime_input=RuntimeInput("ruleset_doc_id", "Ruleset Document", "docs"),
        ),
    ),
    "ai.extract_facts": (
        Requirement(
            "Subject documents",
            ("doc_ids", "subject_packet_doc_ids"),
            ("doc_ids", "doc_id", "subject_packet_doc_ids"),
            satisfy_with_incoming=True,
            runtime_input=_SUBJECT_DOCUMENTS,
        ),
    ),
    "system.evaluate": (
        Requirement(
            "Subject documents", ("doc_ids", "subject_packet_doc_ids"),
            satisfy_with_incoming=True,
            runtime_input=_SUBJECT_DOCUMENTS,
        ),
    ),
    "ai.generate_report": (
        Requirement(
            "Subject documents", ("doc_ids", "subject_packet_doc_ids"),
            satisfy_with_incoming=True,
            runtime_input=_SUBJECT_DOCUMENTS,
        ),
    ),
}


def register_specialized_requirements() -> None:
    registry = get_node_registry()
    for node_key, requirements in SPECIALIZED_REQUIREMENTS.items():
        registry.register_specialized(node_key, requirements)


register_specialized_requirements()
