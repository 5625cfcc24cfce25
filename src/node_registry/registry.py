"""
Node Registry - Maps stable type ids to node factories.

Supports two registration methods:
1. Manual registration (register / register_pack)
2. Entry-points (for plugin node packs)

A registry is built once at startup, frozen, and then passed explicitly to
the graph loader and the execution engine. It is read-only afterwards.
"""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Dict, Iterator, List, Mapping, Optional

from node_sdk.errors import NodeTypeNotFoundError

from .factory import NodeFactory
from .models import NodePackManifest


logger = logging.getLogger(__name__)

# Entry point group for node packs
NODE_PACK_ENTRY_POINT = "workbench.nodepacks"


class NodeRegistry:
    """
    Registry of node factories keyed by type id.

    Usage:
        registry = NodeRegistry()
        registry.register_pack(*register_nodes())
        registry.freeze()

        factory = registry.get_factory("filter")
        model = factory.create_node_model()
    """

    def __init__(self) -> None:
        self._factories: Dict[str, NodeFactory] = {}
        self._packs: Dict[str, NodePackManifest] = {}
        self._pack_of: Dict[str, str] = {}
        self._frozen = False

    def register(self, type_id: str, factory: NodeFactory) -> None:
        """
        Register a factory under ``type_id``.

        Raises:
            RuntimeError: the registry is frozen
            ValueError: ``type_id`` is empty or already registered
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register '{type_id}': registry is frozen")
        if not type_id:
            raise ValueError("type_id must be a non-empty string")
        if type_id in self._factories:
            raise ValueError(f"Node type '{type_id}' is already registered")

        self._factories[type_id] = factory
        logger.debug(f"Registered node type: {type_id}")

    def register_pack(
        self,
        manifest: NodePackManifest,
        factories: Mapping[str, NodeFactory],
    ) -> None:
        """Register every factory of a node pack, or none of them."""
        if self._frozen:
            raise RuntimeError(f"Cannot register pack '{manifest.name}': registry is frozen")
        clashes = [type_id for type_id in factories if type_id in self._factories]
        if clashes:
            raise ValueError(
                f"Pack '{manifest.name}' redefines registered node types: {', '.join(clashes)}"
            )
        for type_id, factory in factories.items():
            self.register(type_id, factory)
            self._pack_of[type_id] = manifest.name
        self._packs[manifest.name] = manifest

        logger.info(f"Registered pack '{manifest.name}' with {len(factories)} nodes")

    def discover_entry_points(self) -> int:
        """
        Discover node packs via entry points.

        Entry points are declared in pyproject.toml:

            [project.entry-points."workbench.nodepacks"]
            mypack = "mypack:register_nodes"

        The callable returns ``(manifest, factories)`` or just a factories
        dict. Packs whose name is already registered are skipped; a pack
        that fails to load is logged and does not stop discovery.

        Returns:
            Number of packs registered
        """
        count = 0
        for ep in entry_points(group=NODE_PACK_ENTRY_POINT):
            try:
                result = ep.load()()
                if isinstance(result, tuple):
                    manifest, factories = result
                else:
                    factories = dict(result)
                    manifest = NodePackManifest(
                        name=ep.name,
                        nodes=list(factories.keys()),
                        entry_point=ep.value,
                    )

                if manifest.name in self._packs:
                    logger.debug(f"Node pack '{manifest.name}' already registered")
                    continue

                self.register_pack(manifest, factories)
                count += 1
                logger.info(f"Discovered node pack: {ep.name}")

            except Exception as e:
                logger.error(f"Failed to load node pack '{ep.name}': {e}")

        return count

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get_factory(self, type_id: str) -> NodeFactory:
        """
        Factory for ``type_id``.

        Raises:
            NodeTypeNotFoundError: nothing is registered under ``type_id``
        """
        factory = self._factories.get(type_id)
        if factory is None:
            raise NodeTypeNotFoundError(type_id)
        return factory

    def find_factory(self, type_id: str) -> Optional[NodeFactory]:
        return self._factories.get(type_id)

    def get_all_factories(self) -> List[NodeFactory]:
        return list(self._factories.values())

    def get_factories_by_category(self) -> Dict[str, List[NodeFactory]]:
        categories: Dict[str, List[NodeFactory]] = {}
        for factory in self._factories.values():
            category = factory.get_node_metadata().category
            categories.setdefault(category, []).append(factory)
        return categories

    def list_type_ids(self) -> List[str]:
        return list(self._factories.keys())

    def list_packs(self) -> List[NodePackManifest]:
        return list(self._packs.values())

    def get_pack_name(self, type_id: str) -> Optional[str]:
        return self._pack_of.get(type_id)

    def __len__(self) -> int:
        return len(self._factories)

    def __iter__(self) -> Iterator[NodeFactory]:
        return iter(self._factories.values())

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._factories


__all__ = [
    "NodeRegistry",
    "NODE_PACK_ENTRY_POINT",
]
