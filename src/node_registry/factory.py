"""
Node Factories - Constructors for everything a node type provides.

A factory builds the model, its dialog and its views, and describes the
node type. The registry stores factories, never model instances, so each
execution can start from a fresh model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from node_sdk.basenode import NodeModel
from node_sdk.dialog import NodeDialog, NodeView, SettingsDialog, SettingsSummaryView

from .models import NodeMetadata


class NodeFactory(ABC):
    """Abstract factory for one node type."""

    @abstractmethod
    def create_node_model(self) -> NodeModel:
        raise NotImplementedError

    @abstractmethod
    def get_node_metadata(self) -> NodeMetadata:
        raise NotImplementedError

    def create_node_dialog(self) -> Optional[NodeDialog]:
        return SettingsDialog(self.create_node_model())

    def create_node_views(self, model: NodeModel) -> List[NodeView]:
        return [SettingsSummaryView(model)]

    def has_dialog(self) -> bool:
        return True

    def get_node_short_description(self) -> str:
        return ""

    def get_node_detailed_description(self) -> str:
        return self.get_node_short_description()

    @property
    def type_id(self) -> str:
        return self.get_node_metadata().id

    def get_port_counts(self) -> tuple[int, int]:
        model = self.create_node_model()
        return model.get_input_port_count(), model.get_output_port_count()

    def get_node_schema(self) -> Dict[str, Any]:
        """JSON schema of the node's settings plus its metadata and ports."""
        model = self.create_node_model()
        metadata = self.get_node_metadata()
        return {
            "id": metadata.id,
            "name": metadata.name,
            "category": metadata.category,
            "description": self.get_node_short_description(),
            "inputPorts": model.get_input_port_count(),
            "outputPorts": model.get_output_port_count(),
            "settings": model.settings_model.model_json_schema(by_alias=True),
        }


class ModelNodeFactory(NodeFactory):
    """
    Factory assembled from a model constructor and metadata.

    Usage:
        factory = ModelNodeFactory(
            FilterNode,
            NodeMetadata(id="filter", name="Row Filter", category="Transform"),
            short_description="Keep rows matching conditions",
        )
    """

    def __init__(
        self,
        constructor: Callable[[], NodeModel],
        metadata: NodeMetadata,
        short_description: str = "",
        detailed_description: str = "",
        dialog: bool = True,
    ) -> None:
        self._constructor = constructor
        self._metadata = metadata
        self._short = short_description
        self._detailed = detailed_description
        self._dialog = dialog

    def create_node_model(self) -> NodeModel:
        return self._constructor()

    def get_node_metadata(self) -> NodeMetadata:
        return self._metadata

    def create_node_dialog(self) -> Optional[NodeDialog]:
        if not self._dialog:
            return None
        return super().create_node_dialog()

    def has_dialog(self) -> bool:
        return self._dialog

    def get_node_short_description(self) -> str:
        return self._short

    def get_node_detailed_description(self) -> str:
        return self._detailed or self._short

    def __repr__(self) -> str:
        return f"ModelNodeFactory({self._metadata.id!r})"


__all__ = [
    "NodeFactory",
    "ModelNodeFactory",
]
