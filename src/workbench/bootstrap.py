"""Startup routine that builds the node registry."""
from node_registry import NodeRegistry
from nodepacks.analytics import register_nodes

from workbench.config import Settings, get_settings
from workbench.observability import get_logger

logger = get_logger(__name__)


def build_registry(settings: Settings | None = None) -> NodeRegistry:
    """
    Register the built-in node pack and, if enabled, entry-point packs.

    The returned registry is frozen.
    """
    settings = settings or get_settings()
    registry = NodeRegistry()
    registry.register_pack(*register_nodes())

    if settings.discover_entry_points:
        discovered = registry.discover_entry_points()
        logger.info(f"Discovered {discovered} additional node packs")

    registry.freeze()
    logger.info(f"Node registry ready with {len(registry)} node types")
    return registry
