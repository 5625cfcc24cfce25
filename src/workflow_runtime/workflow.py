"""
Workflow Graph - The persisted structure of nodes, edges and settings.

The graph is the unit of storage and of tool-layer mutation. Every node is
rehydrated from its ``factoryId`` through the registry on load; nothing
live is ever read back from a serialized document.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from node_registry.registry import NodeRegistry
from node_sdk.errors import NodeTypeNotFoundError
from node_sdk.settings import SettingsObject
from node_sdk.table import DataTable

from .errors import GraphCycleError, GraphValidationError
from .graph import Edge, NodeInstance, NodeStatus, PortRef
from .models import (
    WorkflowDocument,
    WorkflowEdgeRecord,
    WorkflowMetadata,
    WorkflowNodeData,
    WorkflowNodeRecord,
    WorkflowPosition,
    make_edge_id,
    make_handle,
    parse_handle,
)
from .plan import ExecutionPlan


logger = logging.getLogger(__name__)

DEFAULT_FORMAT_VERSION = "1.0"


class WorkflowGraph:
    """
    Ordered node instances plus typed edges.

    Usage:
        graph = WorkflowGraph(registry)
        src = graph.add_node("csv_input", settings={"csv_text": "a,b\\n1,2"})
        flt = graph.add_node("filter")
        graph.connect(src.id, flt.id)
    """

    def __init__(self, registry: NodeRegistry) -> None:
        self._registry = registry
        self._nodes: Dict[str, NodeInstance] = {}
        self._edges: List[Edge] = []
        self.metadata: Dict[str, Any] = {}

    # ==== Accessors ====

    @property
    def registry(self) -> NodeRegistry:
        return self._registry

    @property
    def nodes(self) -> List[NodeInstance]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges)

    def get_node(self, node_id: str) -> Optional[NodeInstance]:
        return self._nodes.get(node_id)

    def require_node(self, node_id: str) -> NodeInstance:
        node = self._nodes.get(node_id)
        if node is None:
            raise GraphValidationError(f"Unknown node '{node_id}'", node_ids=[node_id])
        return node

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def predecessors(self, node_id: str) -> List[str]:
        result: List[str] = []
        for edge in self._edges:
            if edge.target.node_id == node_id and edge.source.node_id not in result:
                result.append(edge.source.node_id)
        return result

    def successors(self, node_id: str) -> List[str]:
        result: List[str] = []
        for edge in self._edges:
            if edge.source.node_id == node_id and edge.target.node_id not in result:
                result.append(edge.target.node_id)
        return result

    def _reachable_from(self, node_id: str) -> List[str]:
        found: List[str] = []
        stack = [node_id]
        while stack:
            for successor in self.successors(stack.pop()):
                if successor not in found:
                    found.append(successor)
                    stack.append(successor)
        return found

    # ==== Mutation ====

    def _new_node_id(self, type_id: str) -> str:
        counter = len(self._nodes) + 1
        while f"{type_id}-{counter}" in self._nodes:
            counter += 1
        return f"{type_id}-{counter}"

    def add_node(
        self,
        type_id: str,
        position: Optional[Mapping[str, float]] = None,
        settings: Optional[Mapping[str, Any]] = None,
        node_id: Optional[str] = None,
        label: Optional[str] = None,
    ) -> NodeInstance:
        """
        Add a node of ``type_id``; ports come from the factory.

        Raises:
            NodeTypeNotFoundError: unknown type id
            ValidationError: ``settings`` are rejected by the node
            GraphValidationError: ``node_id`` is already used
        """
        factory = self._registry.get_factory(type_id)
        node_id = node_id or self._new_node_id(type_id)
        if node_id in self._nodes:
            raise GraphValidationError(f"Duplicate node id '{node_id}'", node_ids=[node_id])

        model = factory.create_node_model()
        canonical = SettingsObject()
        if settings:
            given = SettingsObject(settings)
            model.validate_settings(given)
            model.load_settings(given)
        model.save_settings(canonical)

        node = NodeInstance(
            id=node_id,
            type_id=type_id,
            settings=canonical,
            input_ports=model.get_input_port_count(),
            output_ports=model.get_output_port_count(),
            label=label or factory.get_node_metadata().name,
            position={
                "x": float((position or {}).get("x", 0)),
                "y": float((position or {}).get("y", 0)),
            },
        )
        self._nodes[node_id] = node
        logger.debug(f"Added node {node_id} ({type_id})")
        return node

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every edge touching it; successors are reset."""
        self.require_node(node_id)
        for successor in self.successors(node_id):
            self.reset_node_and_successors(successor)
        self._edges = [
            e for e in self._edges
            if e.source.node_id != node_id and e.target.node_id != node_id
        ]
        del self._nodes[node_id]

    def connect(
        self,
        source_id: str,
        target_id: str,
        source_port: int = 0,
        target_port: int = 0,
    ) -> Edge:
        """
        Connect an output port to an input port.

        An existing edge into the same input port is replaced.

        Raises:
            GraphValidationError: unknown node or out-of-range port
            GraphCycleError: self-connection or the edge would close a cycle
        """
        source = self.require_node(source_id)
        target = self.require_node(target_id)

        if source_id == target_id:
            raise GraphCycleError(
                f"Cannot connect node '{source_id}' to itself", node_ids=[source_id]
            )
        if not 0 <= source_port < source.output_ports:
            raise GraphValidationError(
                f"Output port {source_port} out of range for node '{source_id}' "
                f"({source.output_ports} output ports)",
                node_ids=[source_id],
            )
        if not 0 <= target_port < target.input_ports:
            raise GraphValidationError(
                f"Input port {target_port} out of range for node '{target_id}' "
                f"({target.input_ports} input ports)",
                node_ids=[target_id],
            )
        if source_id in self._reachable_from(target_id):
            raise GraphCycleError(
                f"Connecting '{source_id}' to '{target_id}' would create a cycle",
                node_ids=[source_id, target_id],
            )

        self._edges = [
            e for e in self._edges
            if not (e.target.node_id == target_id and e.target.port == target_port)
        ]
        edge = Edge(
            id=make_edge_id(source_id, source_port, target_id, target_port),
            source=PortRef(source_id, source_port),
            target=PortRef(target_id, target_port),
        )
        self._edges.append(edge)
        self.reset_node_and_successors(target_id)
        return edge

    def disconnect(self, edge_id: str) -> bool:
        edge = self.get_edge(edge_id)
        if edge is None:
            return False
        self._edges.remove(edge)
        self.reset_node_and_successors(edge.target.node_id)
        return True

    def update_settings(
        self,
        node_id: str,
        values: Mapping[str, Any],
        replace: bool = False,
    ) -> SettingsObject:
        """
        Merge (or replace) a node's settings.

        The result is validated by a fresh model and stored in canonical
        form. The node and its descendants are reset.

        Raises:
            ValidationError: the node rejects the new settings
        """
        node = self.require_node(node_id)
        model = self._registry.get_factory(node.type_id).create_node_model()

        candidate = SettingsObject() if replace else node.settings.copy()
        candidate.update(values)
        model.validate_settings(candidate)
        model.load_settings(candidate)

        canonical = SettingsObject()
        model.save_settings(canonical)
        node.settings = canonical
        self.reset_node_and_successors(node_id)
        return canonical

    def reset_node_and_successors(self, node_id: str) -> List[str]:
        """Reset ``node_id`` and all its descendants; returns the reset ids."""
        self.require_node(node_id)
        reset_ids = [node_id] + self._reachable_from(node_id)
        for reset_id in reset_ids:
            self._nodes[reset_id].reset()
        return reset_ids

    # ==== Validation ====

    def build_plan(self) -> ExecutionPlan:
        return ExecutionPlan(self.nodes, self._edges)

    def execution_order(self) -> List[str]:
        return self.build_plan().order

    def validate(self) -> List[str]:
        """
        Check structure; returns non-fatal warnings.

        Raises:
            GraphValidationError / GraphCycleError: the graph cannot run
        """
        self.build_plan()
        return [
            f"Node '{node.id}': {node.load_error}"
            for node in self._nodes.values() if node.load_error
        ]

    def summary(self) -> Dict[str, Any]:
        return {
            "nodeCount": len(self._nodes),
            "edgeCount": len(self._edges),
            "statusCounts": {
                status.value: sum(1 for n in self._nodes.values() if n.status == status)
                for status in NodeStatus
            },
            "nodes": [
                {
                    "id": node.id,
                    "type": node.type_id,
                    "label": node.label,
                    "status": node.status.value,
                    "error": node.last_error or node.load_error,
                    "predecessors": self.predecessors(node.id),
                }
                for node in self._nodes.values()
            ],
        }

    # ==== (De)serialization ====

    @classmethod
    def from_document(cls, document: WorkflowDocument, registry: NodeRegistry) -> "WorkflowGraph":
        """
        Rehydrate a graph; every node's ports come from its factory.

        An unknown ``factoryId`` is recorded as that node's ``load_error``
        and does not fail the load.
        """
        graph = cls(registry)
        graph.metadata = document.metadata.model_dump(mode="json", by_alias=True)

        for record in document.nodes:
            if record.id in graph._nodes:
                raise GraphValidationError(f"Duplicate node id '{record.id}'", node_ids=[record.id])
            graph._nodes[record.id] = graph._rehydrate(record)

        for record in document.edges:
            source_port = parse_handle(record.source_handle, "source")
            target_port = parse_handle(record.target_handle, "target")
            graph._edges.append(Edge(
                id=record.id or make_edge_id(record.source, source_port, record.target, target_port),
                source=PortRef(record.source, source_port),
                target=PortRef(record.target, target_port),
            ))
        return graph

    def _rehydrate(self, record: WorkflowNodeRecord) -> NodeInstance:
        data = record.data
        node = NodeInstance(
            id=record.id,
            type_id=data.factory_id,
            settings=SettingsObject(data.settings),
            input_ports=data.input_ports,
            output_ports=data.output_ports,
            label=data.label,
            position={"x": record.position.x, "y": record.position.y},
            extra=dict(data.model_extra or {}),
        )

        factory = self._registry.find_factory(data.factory_id)
        if factory is None:
            node.load_error = NodeTypeNotFoundError(data.factory_id, record.id).message
            logger.warning(f"Node {record.id}: {node.load_error}")
            return node

        in_ports, out_ports = factory.get_port_counts()
        if (in_ports, out_ports) != (data.input_ports, data.output_ports):
            logger.warning(
                f"Node {record.id}: cached ports {data.input_ports}/{data.output_ports} "
                f"differ from factory '{data.factory_id}' ({in_ports}/{out_ports}); using factory"
            )
        node.input_ports, node.output_ports = in_ports, out_ports
        if not node.label:
            node.label = factory.get_node_metadata().name

        try:
            status = NodeStatus(data.status)
        except ValueError:
            status = NodeStatus.IDLE
        if status == NodeStatus.SUCCESS and data.outputs is not None and len(data.outputs) == out_ports:
            if all(output is not None for output in data.outputs):
                node.last_outputs = [DataTable.from_dict(output) for output in data.outputs]
                node.status = NodeStatus.SUCCESS
        elif status in (NodeStatus.ERROR, NodeStatus.SKIPPED):
            node.status = status
            node.last_error = data.error
        return node

    def to_document(
        self,
        include_outputs: bool = True,
        format_version: str = DEFAULT_FORMAT_VERSION,
    ) -> WorkflowDocument:
        records: List[WorkflowNodeRecord] = []
        for node in self._nodes.values():
            outputs = None
            if include_outputs and node.status == NodeStatus.SUCCESS and node.last_outputs is not None:
                outputs = [table.to_dict() for table in node.last_outputs]
            data = WorkflowNodeData(
                label=node.label,
                factory_id=node.type_id,
                settings=node.settings.to_dict(),
                input_ports=node.input_ports,
                output_ports=node.output_ports,
                status=node.status.value,
                executed=node.executed,
                error=node.last_error or node.load_error,
                outputs=outputs,
                **node.extra,
            )
            records.append(WorkflowNodeRecord(
                id=node.id,
                position=WorkflowPosition(**node.position),
                data=data,
            ))

        edges = [
            WorkflowEdgeRecord(
                id=edge.id,
                source=edge.source.node_id,
                target=edge.target.node_id,
                source_handle=make_handle("source", edge.source.port),
                target_handle=make_handle("target", edge.target.port),
            )
            for edge in self._edges
        ]

        metadata = WorkflowMetadata.model_validate({
            **self.metadata,
            "version": format_version,
            "lastSaved": datetime.now(timezone.utc).isoformat(),
        })
        return WorkflowDocument(nodes=records, edges=edges, metadata=metadata)

    def to_json(self, include_outputs: bool = True, indent: Optional[int] = None) -> str:
        return self.to_document(include_outputs=include_outputs).to_json(indent=indent)

    @classmethod
    def from_json(cls, text: str, registry: NodeRegistry) -> "WorkflowGraph":
        return cls.from_document(WorkflowDocument.from_json(text), registry)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], registry: NodeRegistry) -> "WorkflowGraph":
        return cls.from_document(WorkflowDocument.from_dict(dict(data)), registry)


__all__ = [
    "WorkflowGraph",
    "DEFAULT_FORMAT_VERSION",
]
