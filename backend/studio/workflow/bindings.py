"""
Binding Expressions — where a step input value comes from.

A binding is one of three tagged variants:

* ``RunInputBinding``   — ``$.input`` / ``$.input.<path>``
* ``StepOutputBinding`` — ``$.steps.<stepId>.output[.<path>]``
* ``ConstantBinding``   — any literal value

On the wire, run-input and step-output bindings are path strings and
constants are the literal itself. ``parse_binding`` also accepts the
legacy ``input.<path>`` shorthand and object rows of the form
``{"source": ..., "path": ..., "step_id": ..., "value": ...}``.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

STEP_OUTPUT_PATTERN = re.compile(r"^\$\.steps\.([^.\[\]]+)\.output(?:\.(.+))?$")
_INDEX_SUFFIX = re.compile(r"\[\d+\]$")
_OUTPUT_PREFIX = re.compile(r"^output(?:\.|$)", re.IGNORECASE)


class RunInputBinding(BaseModel):
    """Value read from the run-level input payload."""

    model_config = ConfigDict(frozen=True)

    source: Literal["run_input"] = "run_input"
    path: str = ""

    def to_wire(self) -> str:
        return f"$.input.{self.path}" if self.path else "$.input"


class StepOutputBinding(BaseModel):
    """Value read from an upstream step's output."""

    model_config = ConfigDict(frozen=True)

    source: Literal["step_output"] = "step_output"
    step_id: str
    path: str = ""

    def to_wire(self) -> str:
        return step_output_path(self.step_id, self.path)


class ConstantBinding(BaseModel):
    """Literal value supplied at design time."""

    model_config = ConfigDict(frozen=True)

    source: Literal["constant"] = "constant"
    value: Any = None

    def to_wire(self) -> Any:
        return self.value


BindingExpression = Annotated[
    Union[RunInputBinding, StepOutputBinding, ConstantBinding],
    Field(discriminator="source"),
]

_BINDING_TYPES = (RunInputBinding, StepOutputBinding, ConstantBinding)


# ====================================================================
# Path helpers
# ====================================================================


def step_output_path(step_id: str, path: str = "") -> str:
    """Build ``$.steps.<id>.output[.<path>]``; a leading ``output.`` is dropped."""
    clean = _OUTPUT_PREFIX.sub("", str(path or "").strip())
    if clean:
        return f"$.steps.{step_id}.output.{clean}"
    return f"$.steps.{step_id}.output"


def parse_step_output_path(value: Any) -> Optional[StepOutputBinding]:
    if not isinstance(value, str):
        return None
    match = STEP_OUTPUT_PATTERN.match(value.strip())
    if not match:
        return None
    return StepOutputBinding(step_id=match.group(1).strip(), path=(match.group(2) or "").strip())


def normalize_path_segment(value: str) -> str:
    """First dotted segment of a path with any ``[n]`` index removed."""
    raw = str(value or "").strip()
    if not raw:
        return ""
    head = raw.split(".")[0]
    return _INDEX_SUFFIX.sub("", head).strip()


def run_input_key(value: Any) -> Optional[str]:
    """Top-level run-input key referenced by ``value``, if any.

    ``$.input`` alone references no key and yields ``None``.
    """
    if isinstance(value, RunInputBinding):
        return normalize_path_segment(value.path) or None
    if not isinstance(value, str):
        return None
    raw = value.strip()
    for prefix in ("$.input.", "input."):
        if raw.startswith(prefix):
            return normalize_path_segment(raw[len(prefix):]) or None
    return None


# ====================================================================
# Parse / serialize
# ====================================================================


def parse_binding(value: Any) -> Union[RunInputBinding, StepOutputBinding, ConstantBinding]:
    """Turn a wire value (string, object row, or literal) into a binding."""
    if isinstance(value, _BINDING_TYPES):
        return value

    if isinstance(value, str):
        raw = value.strip()
        step = parse_step_output_path(raw)
        if step is not None:
            return step
        if raw == "$.input":
            return RunInputBinding()
        if raw.startswith("$.input."):
            return RunInputBinding(path=raw[len("$.input."):])
        if raw.startswith("input."):
            return RunInputBinding(path=raw[len("input."):])
        return ConstantBinding(value=raw)

    if isinstance(value, Mapping) and "source" in value:
        source = str(value.get("source") or "run_input").strip()
        if source == "step_output":
            step_id = str(value.get("step_id") or "").strip()
            path = str(value.get("path") or "")
            parsed = parse_step_output_path(path)
            if parsed is not None:
                return StepOutputBinding(step_id=step_id or parsed.step_id, path=parsed.path)
            return StepOutputBinding(step_id=step_id, path=_OUTPUT_PREFIX.sub("", path.strip()))
        if source == "constant":
            return ConstantBinding(value=value.get("value"))
        path = str(value.get("path") or "").strip()
        if path == "$.input" or path.startswith("$.input."):
            path = path[len("$.input."):] if path != "$.input" else ""
        elif path.startswith("input."):
            path = path[len("input."):]
        return RunInputBinding(path=path)

    return ConstantBinding(value=value)


def parse_bindings(value: Any) -> Dict[str, Union[RunInputBinding, StepOutputBinding, ConstantBinding]]:
    """Parse an ``input_bindings`` mapping, skipping blank targets."""
    if not isinstance(value, Mapping):
        return {}
    result = {}
    for target, rule in value.items():
        key = str(target or "").strip()
        if not key:
            continue
        result[key] = parse_binding(rule)
    return result


def serialize_bindings(bindings: Mapping[str, Any]) -> Dict[str, Any]:
    """Wire form of a bindings mapping.

    Step-output bindings without a step id cannot be resolved by the
    backend and are left out.
    """
    output: Dict[str, Any] = {}
    for target, binding in bindings.items():
        key = str(target or "").strip()
        if not key:
            continue
        expr = parse_binding(binding)
        if isinstance(expr, StepOutputBinding) and not expr.step_id:
            continue
        output[key] = expr.to_wire()
    return output


# ====================================================================
# Value checks
# ====================================================================


def has_meaningful_value(value: Any) -> bool:
    """True when ``value`` carries content (non-blank, non-empty)."""
    if value is None:
        return False
    if isinstance(value, ConstantBinding):
        return has_meaningful_value(value.value)
    if isinstance(value, (RunInputBinding, StepOutputBinding)):
        return True
    if isinstance(value, str):
        return len(value.strip()) > 0
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True
