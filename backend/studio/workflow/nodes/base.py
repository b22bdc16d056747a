"""
Node Catalog Base — declarative node types, modes, and the registry.

Each studio node type is a ``BaseNode`` subclass decorated with
``@register_node``. A type owns an ordered list of ``NodeMode`` records;
everything the graph engine needs to know about a (type, mode) pair
lives on that record:

* ``default_config``  — starting configuration for a new node
* ``produces``/``needs`` — capability sets used by the connection guard
* ``output_paths``    — where semantic outputs live in the step output
* ``binding_rules``   — how input slots are auto-bound from upstream steps
* ``input_targets``   — extra binding targets the mode accepts
* ``requirements``    — readiness rules reported before a run

Registration validates each declaration, so a type with a broken mode
fails at import time instead of at the first lookup.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from logging import getLogger
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Type

logger = getLogger(__name__)


# ============================================================================
# Capabilities
# ============================================================================


class Capability(str, Enum):
    """Kind of data a step can hand to the next one."""
    DOCS = "docs"
    TEXT = "text"
    RECORDS = "records"
    CONTENT = "content"
    ANY = "any"


class Need(str, Enum):
    """Kind of data a step expects from its upstream step."""
    DOCS = "docs"
    TEXT_OR_DOCS = "text_or_docs"
    RECORDS = "records"
    CONTENT = "content"


NEED_SATISFIED_BY: Dict[Need, FrozenSet[Capability]] = {
    Need.DOCS: frozenset({Capability.DOCS}),
    Need.RECORDS: frozenset({Capability.RECORDS}),
    Need.CONTENT: frozenset({Capability.CONTENT, Capability.TEXT, Capability.RECORDS}),
    Need.TEXT_OR_DOCS: frozenset({Capability.TEXT, Capability.DOCS, Capability.CONTENT}),
}

NEED_LABELS: Dict[Need, str] = {
    Need.DOCS: "documents",
    Need.RECORDS: "records",
    Need.CONTENT: "content",
    Need.TEXT_OR_DOCS: "text or documents",
}


def need_satisfied(need: Need, produces: FrozenSet[Capability]) -> bool:
    if Capability.ANY in produces:
        return True
    return bool(NEED_SATISFIED_BY[need] & produces)


# Semantic outputs a binding rule can ask an upstream step for.
# ``WHOLE_OUTPUT`` binds the complete step output object.
WHOLE_OUTPUT = "*"
DEFAULT_OUTPUT_PATHS: Dict[str, str] = {
    "doc_ids": "doc_ids",
    "text": "text",
    "content": "",
    "records": "records",
    WHOLE_OUTPUT: "",
}

DEFAULT_SUGGESTIONS: Tuple[str, ...] = (
    "Checks -> Validate",
    "Human -> Review",
    "Output -> Export CSV",
)

ROUTING_KINDS = ("none", "branch", "route")
NODE_GROUPS = ("core", "tools", "logic", "builder")


# ============================================================================
# Declarative records
# ============================================================================


@dataclass(frozen=True)
class BindingRule:
    """Auto-binding rule for one input slot.

    ``binding_keys`` and ``config_keys`` are the keys that already count
    as "filled" for the slot. ``source_output`` names the semantic output
    read from an upstream step (``None`` means the slot is never filled
    from a step). ``run_input_fallback`` is used when no upstream step
    qualifies.
    """
    target_key: str
    binding_keys: Tuple[str, ...] = ()
    config_keys: Optional[Tuple[str, ...]] = None
    source_output: Optional[str] = None
    run_input_fallback: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.binding_keys:
            object.__setattr__(self, "binding_keys", (self.target_key,))
        if self.config_keys is None:
            object.__setattr__(self, "config_keys", tuple(self.binding_keys))
        if self.run_input_fallback is None:
            object.__setattr__(self, "run_input_fallback", f"$.input.{self.target_key}")


@dataclass(frozen=True)
class RuntimeInput:
    """Run-level input that can satisfy a missing requirement."""
    input_key: str
    label: str
    kind: str = "text"  # folder | docs | text


@dataclass(frozen=True)
class Requirement:
    """Readiness rule: at least one of the keys must be satisfied.

    ``check`` names a custom check in the readiness module for rules that
    are not a plain "any of these keys" test. ``setup`` marks labels that
    block a run until the step is configured.
    """
    label: str
    binding_keys: Tuple[str, ...] = ()
    config_keys: Optional[Tuple[str, ...]] = None
    satisfy_with_incoming: bool = False
    setup: bool = False
    check: Optional[str] = None
    runtime_input: Optional[RuntimeInput] = None

    def __post_init__(self) -> None:
        if self.config_keys is None:
            object.__setattr__(self, "config_keys", tuple(self.binding_keys))


# ── Shared declarations ──

DOC_IDS_KEYS = ("doc_ids", "doc_id")
CONTENT_KEYS = ("content", "text", "markdown")

DOC_IDS_INPUT = RuntimeInput("doc_ids", "Document IDs", "docs")
CONTENT_INPUT = RuntimeInput("content", "Content", "text")

DOC_IDS_RULE = BindingRule("doc_ids", DOC_IDS_KEYS, source_output="doc_ids")
CONTENT_RULE = BindingRule("content", CONTENT_KEYS, source_output="content")

DOC_IDS_REQUIREMENT = Requirement(
    "Document ID(s)", DOC_IDS_KEYS,
    satisfy_with_incoming=True, runtime_input=DOC_IDS_INPUT,
)


@dataclass
class NodeMode:
    """One operating mode of a node type."""
    value: str
    label: str
    node_key: Optional[str] = None
    implemented: bool = True
    description: str = ""
    routing: Optional[str] = None
    default_config: Dict[str, Any] = field(default_factory=dict)
    produces: FrozenSet[Capability] = frozenset({Capability.ANY})
    needs: Tuple[Need, ...] = ()
    output_paths: Dict[str, str] = field(default_factory=dict)
    binding_rules: Tuple[BindingRule, ...] = ()
    input_targets: Tuple[str, ...] = ()
    requirements: Tuple[Requirement, ...] = ()
    suggested_next: Optional[Tuple[str, ...]] = None

    def output_path_for(self, semantic_output: str) -> str:
        if semantic_output in self.output_paths:
            return self.output_paths[semantic_output]
        return DEFAULT_OUTPUT_PATHS.get(semantic_output, "")

    def expected_targets(self) -> List[str]:
        """Binding slots followed by declared input targets, de-duplicated."""
        targets: List[str] = []
        for key in [r.target_key for r in self.binding_rules] + list(self.input_targets):
            key = str(key or "").strip()
            if key and key not in targets:
                targets.append(key)
        return targets

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "label": self.label,
            "node_key": self.node_key,
            "implemented": self.implemented,
            "description": self.description,
            "routing": self.routing,
            "produces": sorted(c.value for c in self.produces),
            "needs": [n.value for n in self.needs],
            "input_targets": self.expected_targets(),
            "default_config": copy.deepcopy(self.default_config),
        }


# ============================================================================
# BaseNode
# ============================================================================


class BaseNode:
    """A node type available in the studio palette.

    Subclasses only declare class attributes; behaviour is shared.
    """

    node_type: str = ""
    label: str = ""
    description: str = ""
    group: str = "core"
    icon: str = ""
    color: str = "#64748b"

    builder_only: bool = False       # visual aid, never compiled
    source_only: bool = False        # admits no incoming edges
    terminal_only: bool = False      # admits no outgoing edges
    annotation_only: bool = False    # ignored by stage computation
    routing: str = "none"

    modes: List[NodeMode] = []
    suggested_next: Tuple[str, ...] = DEFAULT_SUGGESTIONS

    # ── Modes ──

    @property
    def default_mode(self) -> NodeMode:
        return self.modes[0]

    def find_mode(self, mode: Optional[str]) -> Optional[NodeMode]:
        for m in self.modes:
            if m.value == mode:
                return m
        return None

    def get_mode(self, mode: Optional[str]) -> NodeMode:
        """Mode record for ``mode``; unknown modes fall back to the default."""
        return self.find_mode(mode) or self.default_mode

    def node_key_for(self, mode: Optional[str]) -> Optional[str]:
        return self.get_mode(mode).node_key

    def suggestions_for(self, mode: Optional[str]) -> List[str]:
        mode_record = self.find_mode(mode)
        if mode_record is not None and mode_record.suggested_next is not None:
            return list(mode_record.suggested_next)
        return list(self.suggested_next)

    # ── Node data ──

    def default_config(self, mode: Optional[str] = None) -> Dict[str, Any]:
        return copy.deepcopy(self.get_mode(mode).default_config)

    def create_node_data(self, mode: Optional[str] = None):
        """Fresh ``NodeData`` for a new node of this type."""
        from studio.workflow.workflow_model import NodeData, NodeRef

        mode_record = self.get_mode(mode)
        if self.builder_only:
            return NodeData(
                mode=mode_record.value,
                config=self.default_config(mode_record.value),
            )
        return NodeData(
            mode=mode_record.value,
            node_ref=NodeRef(key=mode_record.node_key) if mode_record.node_key else None,
            config=self.default_config(mode_record.value),
            implemented=mode_record.implemented,
            metadata={"ui": {}},
        )

    def routing_for(self, mode: Optional[str]) -> str:
        """Routing kind of ``mode``; modes inherit the type-level kind."""
        mode_record = self.find_mode(mode)
        if mode_record is not None and mode_record.routing:
            return mode_record.routing
        return self.routing

    def output_handles(self, mode: Optional[str], config: Dict[str, Any]) -> List[str]:
        """Source handles a routing node can emit edges from."""
        return []

    # ── Validation & serialization ──

    def validate_declaration(self) -> List[str]:
        """Problems with this declaration (empty = valid)."""
        problems: List[str] = []
        if not self.node_type:
            problems.append("node_type is empty")
        if self.group not in NODE_GROUPS:
            problems.append(f"unknown group '{self.group}'")
        if self.routing not in ROUTING_KINDS:
            problems.append(f"unknown routing kind '{self.routing}'")
        if not self.modes:
            problems.append("declares no modes")

        seen = set()
        for m in self.modes:
            if not m.value or not m.label:
                problems.append("mode without value or label")
            if m.routing is not None and m.routing not in ROUTING_KINDS:
                problems.append(f"mode '{m.value}' has unknown routing kind '{m.routing}'")
            if m.value in seen:
                problems.append(f"duplicate mode '{m.value}'")
            seen.add(m.value)
            if not self.builder_only and not m.node_key:
                problems.append(f"mode '{m.value}' has no node_key")
            if any(not isinstance(c, Capability) for c in m.produces):
                problems.append(f"mode '{m.value}' declares an unknown capability")
            if any(not isinstance(n, Need) for n in m.needs):
                problems.append(f"mode '{m.value}' declares an unknown need")
            for rule in m.binding_rules:
                if rule.source_output is not None and rule.source_output not in DEFAULT_OUTPUT_PATHS:
                    problems.append(
                        f"mode '{m.value}' binds '{rule.target_key}' from unknown output "
                        f"'{rule.source_output}'"
                    )
            for req in m.requirements:
                if not req.binding_keys and not req.config_keys and not req.check:
                    problems.append(f"requirement '{req.label}' has nothing to check")
        return problems

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the palette / API."""
        return {
            "node_type": self.node_type,
            "label": self.label,
            "description": self.description,
            "group": self.group,
            "icon": self.icon,
            "color": self.color,
            "builder_only": self.builder_only,
            "source_only": self.source_only,
            "terminal_only": self.terminal_only,
            "routing": self.routing,
            "default_mode": self.default_mode.value,
            "modes": [m.to_dict() for m in self.modes],
        }


# ============================================================================
# NodeRegistry
# ============================================================================


class NodeRegistry:
    """Lookup table of registered node types and backend node keys."""

    FALLBACK_TYPE = "utilities"
    FALLBACK_MODE = "function"

    def __init__(self) -> None:
        self._nodes: Dict[str, BaseNode] = {}
        self._keys: Dict[str, Tuple[str, str]] = {}
        self._specialized: Dict[str, Tuple[Requirement, ...]] = {}

    def register(self, node_cls: Type[BaseNode]) -> None:
        instance = node_cls()
        problems = instance.validate_declaration()
        if problems:
            raise ValueError(
                f"Invalid node declaration {node_cls.__name__}: " + "; ".join(problems)
            )
        if instance.node_type in self._nodes:
            logger.warning(f"Node type '{instance.node_type}' re-registered by {node_cls.__name__}")
        self._nodes[instance.node_type] = instance
        for m in instance.modes:
            if m.node_key:
                self._keys[m.node_key.lower()] = (instance.node_type, m.value)
        logger.debug(f"Registered node type: {instance.node_type} ({len(instance.modes)} modes)")

    def register_specialized(self, node_key: str, requirements: Tuple[Requirement, ...]) -> None:
        """Readiness rules for a backend node key that overrides its mode rules."""
        self._specialized[node_key.lower()] = tuple(requirements)

    def specialized_requirements(self, node_key: Optional[str]) -> Optional[Tuple[Requirement, ...]]:
        if not node_key:
            return None
        return self._specialized.get(str(node_key).lower())

    # ── Lookup ──

    def get(self, node_type: str) -> Optional[BaseNode]:
        return self._nodes.get(node_type)

    def require(self, node_type: str) -> BaseNode:
        from studio.workflow.errors import UnknownNodeTypeError

        node = self._nodes.get(node_type)
        if node is None:
            raise UnknownNodeTypeError(node_type)
        return node

    def list_all(self) -> List[BaseNode]:
        return list(self._nodes.values())

    def list_by_group(self) -> Dict[str, List[BaseNode]]:
        groups: Dict[str, List[BaseNode]] = {g: [] for g in NODE_GROUPS}
        for node in self._nodes.values():
            groups.setdefault(node.group, []).append(node)
        return groups

    def mode_for(self, node_type: str, mode: str) -> NodeMode:
        """Strict (type, mode) lookup."""
        from studio.workflow.errors import UnknownNodeModeError

        node = self.require(node_type)
        record = node.find_mode(mode)
        if record is None:
            raise UnknownNodeModeError(node_type, mode)
        return record

    def lookup_mode(self, node_type: str, mode: Optional[str]) -> Optional[NodeMode]:
        """Lenient lookup used by graph analysis; unknown types yield ``None``."""
        node = self._nodes.get(node_type)
        if node is None:
            return None
        return node.get_mode(mode)

    def default_mode(self, node_type: str) -> str:
        return self.require(node_type).default_mode.value

    def node_key_for(self, node_type: str, mode: Optional[str] = None) -> Optional[str]:
        return self.require(node_type).node_key_for(mode)

    def resolve_node_key(self, node_key: Any) -> Tuple[str, str, bool]:
        """Map a backend node key to ``(type, mode, implemented)``.

        Unknown keys resolve to the generic function step.
        """
        key = str(node_key or "").strip().lower()
        hit = self._keys.get(key)
        if hit is None:
            node = self.get(self.FALLBACK_TYPE)
            implemented = bool(node and node.get_mode(self.FALLBACK_MODE).implemented)
            return self.FALLBACK_TYPE, self.FALLBACK_MODE, implemented
        node_type, mode = hit
        return node_type, mode, self._nodes[node_type].get_mode(mode).implemented

    def create_node_data(self, node_type: str, mode: Optional[str] = None):
        return self.require(node_type).create_node_data(mode)

    def to_dict(self) -> Dict[str, Any]:
        return {
            group: [n.to_dict() for n in nodes]
            for group, nodes in self.list_by_group().items()
        }


_registry = NodeRegistry()


def get_node_registry() -> NodeRegistry:
    return _registry


def register_node(cls: Type[BaseNode]) -> Type[BaseNode]:
    """Class decorator: register a node type in the global registry."""
    _registry.register(cls)
    return cls
