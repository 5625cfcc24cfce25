"""
Node Registry - Discovery and registration of node types.

This package provides:
- NodeMetadata: Display metadata of a node type
- NodePackManifest: Package metadata for a node pack
- NodeFactory / ModelNodeFactory: Constructors for model, dialog and views
- NodeRegistry: Explicit registry value mapping type ids to factories

Supports entry-points based discovery for plugin node packs.
"""

from .models import NodeMetadata, NodePackManifest
from .factory import NodeFactory, ModelNodeFactory
from .registry import NodeRegistry, NODE_PACK_ENTRY_POINT

__all__ = [
    "NodeMetadata",
    "NodePackManifest",
    "NodeFactory",
    "ModelNodeFactory",
    "NodeRegistry",
    "NODE_PACK_ENTRY_POINT",
]
