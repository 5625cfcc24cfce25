"""
Node Registry Models - Metadata structures for node types and node packs.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class NodeMetadata(BaseModel):
    """
    Display metadata of one node type.

    ``id`` is the stable type id stored as ``data.factoryId`` in persisted
    workflows.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1, description="Stable node type id")
    name: str = Field(..., description="Human-readable name")
    category: str = Field("General", description="Palette category")
    keywords: List[str] = Field(default_factory=list, description="Search keywords")
    icon: str = Field("", description="Icon name")
    to_dashboard: bool = Field(
        False, description="Whether the node feeds the dashboard by default"
    )

    def matches(self, query: str) -> bool:
        """Case-insensitive match against id, name and keywords."""
        needle = query.lower()
        haystack = [self.id, self.name, *self.keywords]
        return any(needle in value.lower() for value in haystack)


class NodePackManifest(BaseModel):
    """
    Manifest for a node pack (collection of node types).

    Used for discovery and registration of bundled nodes.
    """
    model_config = ConfigDict(extra="allow")

    # Identity
    name: str = Field(..., description="Pack name (e.g., 'analytics')")
    version: str = Field("1.0.0", description="Pack version")
    description: str = Field("", description="Pack description")

    # Contents
    nodes: List[str] = Field(
        default_factory=list,
        description="Node type ids in this pack"
    )

    # Technical
    entry_point: str = Field(
        "",
        description="Registration callable (e.g., 'mypack:register_nodes')"
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodePackManifest":
        return cls.model_validate(data)


__all__ = [
    "NodeMetadata",
    "NodePackManifest",
]
