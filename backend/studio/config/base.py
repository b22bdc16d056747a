"""
Config Base — dataclass configuration with field metadata.

Every concrete config is a ``@dataclass`` subclass of ``BaseConfig``
decorated with ``@register_config``. Registration builds one default
instance per config (reading environment overrides) so callers can
fetch it by name via ``get_config``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from logging import getLogger
from typing import Any, Dict, List, Optional, Type, TypeVar

logger = getLogger(__name__)

T = TypeVar("T", bound="BaseConfig")


class FieldType(str, Enum):
    """Editor widget hint for a config field."""
    STRING = "string"
    PASSWORD = "password"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    URL = "url"


@dataclass
class ConfigField:
    """Metadata describing one editable config field."""
    name: str
    field_type: FieldType
    label: str
    description: str = ""
    default: Any = None
    required: bool = False
    placeholder: str = ""
    options: List[Dict[str, Any]] = field(default_factory=list)
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    group: str = "general"
    secure: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["field_type"] = self.field_type.value
        return data


@dataclass
class BaseConfig:
    """Base class for all studio configs."""

    @classmethod
    def get_default_instance(cls: Type[T]) -> T:
        return cls()

    @classmethod
    def get_config_name(cls) -> str:
        raise NotImplementedError

    @classmethod
    def get_display_name(cls) -> str:
        return cls.get_config_name().replace("_", " ").title()

    @classmethod
    def get_description(cls) -> str:
        return ""

    @classmethod
    def get_category(cls) -> str:
        return "general"

    @classmethod
    def get_fields_metadata(cls) -> List[ConfigField]:
        return []

    def to_dict(self, include_secure: bool = False) -> Dict[str, Any]:
        """Serialize values, masking ``secure`` fields unless requested."""
        values = asdict(self)
        if include_secure:
            return values
        for meta in self.get_fields_metadata():
            if meta.secure and values.get(meta.name):
                values[meta.name] = "********"
        return values


# ── Registry ──

_registry: Dict[str, Type[BaseConfig]] = {}
_instances: Dict[str, BaseConfig] = {}


def register_config(cls: Type[T]) -> Type[T]:
    """Class decorator: register a config type under its config name."""
    name = cls.get_config_name()
    if name in _registry and _registry[name] is not cls:
        logger.warning(f"Config '{name}' re-registered by {cls.__name__}")
    _registry[name] = cls
    return cls


def get_config(name: str) -> BaseConfig:
    """Return the (lazily built) config instance registered as ``name``."""
    if name not in _instances:
        if name not in _registry:
            raise KeyError(f"Unknown config: {name}")
        _instances[name] = _registry[name].get_default_instance()
    return _instances[name]


def set_config(instance: BaseConfig) -> None:
    """Replace the active instance for ``instance``'s config name."""
    _instances[instance.get_config_name()] = instance


def reset_configs() -> None:
    """Drop cached instances so the next lookup re-reads the environment."""
    _instances.clear()


def list_configs() -> List[Type[BaseConfig]]:
    return list(_registry.values())
