"""
Workflow Nodes Package.

Auto-registers all studio node types into the global NodeRegistry.
Import this package to ensure the full catalog is available.
"""

from studio.workflow.nodes.base import get_node_registry

# Import all node modules to trigger registration
from studio.workflow.nodes import core_nodes         # noqa: F401
from studio.workflow.nodes import tool_nodes         # noqa: F401
from studio.workflow.nodes import logic_nodes        # noqa: F401
from studio.workflow.nodes import builder_nodes      # noqa: F401
from studio.workflow.nodes import specialized_nodes  # noqa: F401


def register_all_nodes() -> None:
    """Ensure all node types are registered.

    The module-level imports above trigger ``@register_node``
    decorators; this function provides an explicit entry point.
    """
    registry = get_node_registry()
    count = len(registry.list_all())
    from logging import getLogger
    getLogger(__name__).info(
        f"✅ Workflow nodes registered: {count} node types"
    )


__all__ = ["register_all_nodes", "get_node_registry"]
