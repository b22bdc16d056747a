"""
Environment helpers for config defaults.
"""

from __future__ import annotations

import os
from dataclasses import MISSING
from logging import getLogger
from typing import Any, Dict, Mapping, Optional

logger = getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _coerce(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE_VALUES
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def read_env_defaults(
    env_map: Mapping[str, str],
    dataclass_fields: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Build constructor kwargs from environment variables.

    ``env_map`` maps dataclass field names to environment variable names.
    Values are coerced to the type of the field's declared default; a
    value that cannot be coerced is ignored with a warning.
    """
    env = os.environ if environ is None else environ
    result: Dict[str, Any] = {}
    for field_name, env_name in env_map.items():
        raw = env.get(env_name)
        if raw is None or raw == "":
            continue
        fld = dataclass_fields.get(field_name)
        default = fld.default if fld is not None and fld.default is not MISSING else ""
        try:
            result[field_name] = _coerce(raw, default)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
    return result
