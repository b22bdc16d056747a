"""
Binding Resolver — infer input bindings from upstream steps.

For each binding rule of the target's (type, mode):

1. Skip the slot when one of its binding or config keys already holds a
   meaningful value. ``force`` re-resolves bindings, but a meaningful
   literal config value always wins.
2. Take the first eligible source (lower stage) that yields a path for
   the rule's semantic output: ``$.steps.<id>.output[.<path>]``.
3. Otherwise fall back to the rule's run-input path.

Without ``force`` resolution is idempotent: a second pass changes nothing.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from studio.workflow.bindings import (
    RunInputBinding,
    StepOutputBinding,
    has_meaningful_value,
    parse_binding,
)
from studio.workflow.nodes import get_node_registry
from studio.workflow.nodes.base import DEFAULT_OUTPUT_PATHS, BindingRule
from studio.workflow.stage_resolver import can_use_as_source, compute_stages
from studio.workflow.workflow_model import GraphDocument, WorkflowNode

logger = getLogger(__name__)


class BindingResolution(BaseModel):
    bindings: Dict[str, Any] = Field(default_factory=dict)
    changed: bool = False


class BindingContract(BaseModel):
    """Which binding targets a node accepts.

    ``max_mappings`` of ``None`` means unlimited; ``0`` means none.
    """

    expected_targets: List[str] = Field(default_factory=list)
    enforce_expected_targets: bool = False
    max_mappings: Optional[int] = None


# ====================================================================
# Resolution
# ====================================================================


def suggested_binding(source: WorkflowNode, rule: BindingRule) -> Optional[StepOutputBinding]:
    """Step-output binding ``source`` offers for ``rule``, if any."""
    if rule.source_output is None:
        return None
    mode = get_node_registry().lookup_mode(source.type, source.mode)
    if mode is not None:
        path = mode.output_path_for(rule.source_output)
    else:
        path = DEFAULT_OUTPUT_PATHS.get(rule.source_output, "")
    return StepOutputBinding(step_id=source.id, path=path)


def _slot_filled(bindings: Mapping[str, Any], config: Mapping[str, Any], rule: BindingRule) -> bool:
    if any(has_meaningful_value(bindings.get(k)) for k in rule.binding_keys):
        return True
    return any(has_meaningful_value(config.get(k)) for k in rule.config_keys)


def resolve_bindings(
    target: WorkflowNode,
    sources: Sequence[WorkflowNode],
    stages: Mapping[str, int],
    force: bool = False,
) -> BindingResolution:
    """Compute the target's bindings after auto-mapping from ``sources``."""
    bindings: Dict[str, Any] = dict(target.data.input_bindings)
    mode = get_node_registry().lookup_mode(target.type, target.mode)
    if mode is None or not mode.binding_rules:
        return BindingResolution(bindings=bindings, changed=False)

    config = target.config
    candidates = [s for s in sources if can_use_as_source(s.id, target.id, stages)]

    changed = False
    for rule in mode.binding_rules:
        if not force and _slot_filled(bindings, config, rule):
            continue
        if any(has_meaningful_value(config.get(k)) for k in rule.config_keys):
            continue

        resolved = None
        for source in candidates:
            resolved = suggested_binding(source, rule)
            if resolved is not None:
                break
        if resolved is None and rule.run_input_fallback:
            resolved = parse_binding(rule.run_input_fallback)
        if resolved is None:
            continue

        if not force and has_meaningful_value(bindings.get(rule.target_key)):
            continue
        if bindings.get(rule.target_key) == resolved:
            continue

        bindings[rule.target_key] = resolved
        changed = True

    return BindingResolution(bindings=bindings, changed=changed)


# ====================================================================
# Contract
# ====================================================================


def binding_contract(node: Optional[WorkflowNode]) -> BindingContract:
    if node is None:
        return BindingContract()
    mode = get_node_registry().lookup_mode(node.type, node.mode)
    expected = mode.expected_targets() if mode is not None else []
    if not expected:
        return BindingContract(max_mappings=0)
    return BindingContract(
        expected_targets=expected,
        enforce_expected_targets=True,
        max_mappings=len(expected),
    )


def reconcile_bindings(
    bindings: Mapping[str, Any],
    contract: BindingContract,
    allowed_step_ids: Iterable[str],
) -> Dict[str, Any]:
    """Fit ``bindings`` to ``contract``.

    Enforcing contracts keep exactly the expected targets, with missing
    ones stubbed as ``$.input``. Step-output bindings pointing at a step
    outside ``allowed_step_ids`` become run-input bindings over the same
    path.
    """
    allowed = set(allowed_step_ids)
    parsed = {
        str(k).strip(): parse_binding(v)
        for k, v in bindings.items()
        if str(k or "").strip()
    }

    working: Dict[str, Any] = {}
    if contract.enforce_expected_targets:
        for target in contract.expected_targets:
            working[target] = parsed.get(target, RunInputBinding())
    else:
        for target, binding in parsed.items():
            if contract.max_mappings is not None and len(working) >= contract.max_mappings:
                break
            working[target] = binding

    result: Dict[str, Any] = {}
    for target, binding in working.items():
        if isinstance(binding, StepOutputBinding) and binding.step_id not in allowed:
            binding = RunInputBinding(path=binding.path)
        result[target] = binding
    return result


# ====================================================================
# Document-level helpers
# ====================================================================


def _auto_mappable(node: WorkflowNode) -> bool:
    node_type = get_node_registry().get(node.type)
    if node_type is None:
        return True
    return not (node_type.source_only or node_type.builder_only)


def map_from_source(document: GraphDocument, target_id: str, source_id: str) -> GraphDocument:
    """Auto-map ``target_id`` from a single, just-connected source."""
    target = document.require_node(target_id)
    source = document.require_node(source_id)
    stages = compute_stages(document.nodes, document.edges)
    resolution = resolve_bindings(target, [source], stages)
    if not resolution.changed:
        return document
    logger.debug(f"Auto-mapped {target_id} from {source_id}: {sorted(resolution.bindings)}")
    return document.replace_node(target.with_data(input_bindings=resolution.bindings))


def auto_map_document(
    document: GraphDocument,
    node_id: Optional[str] = None,
    force: bool = False,
) -> GraphDocument:
    """Auto-map one node, or every mappable node with incoming edges."""
    stages = compute_stages(document.nodes, document.edges)
    if node_id is not None:
        targets = [document.require_node(node_id)]
    else:
        targets = [
            n for n in document.nodes
            if _auto_mappable(n) and document.get_edges_to(n.id)
        ]

    result = document
    for target in targets:
        resolution = resolve_bindings(target, document.incoming_sources(target.id), stages, force=force)
        if resolution.changed:
            result = result.replace_node(target.with_data(input_bindings=resolution.bindings))
    return result
