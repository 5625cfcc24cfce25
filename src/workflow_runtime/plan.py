"""
Execution Plan - Validated adjacency and topological order of a graph.

Built once per set_workflow(); scheduling only reads it afterwards.
"""

from __future__ import annotations

import heapq
import logging
from typing import Dict, List, Protocol, Sequence, Set

from .errors import GraphCycleError, GraphValidationError
from .graph import Edge, PortRef


logger = logging.getLogger(__name__)


class PlanNode(Protocol):
    id: str
    input_ports: int
    output_ports: int


class ExecutionPlan:
    """
    Validated DAG over node ids.

    Rejects duplicate node ids, dangling edges, out-of-range ports, two
    producers for one input port, and cycles. The order is Kahn's
    algorithm with ties broken by node insertion order.
    """

    def __init__(self, nodes: Sequence[PlanNode], edges: Sequence[Edge]) -> None:
        self._index: Dict[str, int] = {}
        for node in nodes:
            if node.id in self._index:
                raise GraphValidationError(f"Duplicate node id '{node.id}'", node_ids=[node.id])
            self._index[node.id] = len(self._index)

        ports = {node.id: (node.input_ports, node.output_ports) for node in nodes}
        self._forward: Dict[str, List[str]] = {node.id: [] for node in nodes}
        self._reverse: Dict[str, List[str]] = {node.id: [] for node in nodes}
        self._incoming: Dict[str, Dict[int, PortRef]] = {node.id: {} for node in nodes}

        for edge in edges:
            self._add_edge(edge, ports)

        self._order = self._topological_order()

    def _add_edge(self, edge: Edge, ports: Dict[str, tuple]) -> None:
        source, target = edge.source, edge.target
        for ref in (source, target):
            if ref.node_id not in ports:
                raise GraphValidationError(
                    f"Edge '{edge.id}' references unknown node '{ref.node_id}'",
                    node_ids=[ref.node_id],
                    edge_id=edge.id,
                )
        if source.node_id == target.node_id:
            raise GraphCycleError(
                f"Edge '{edge.id}' connects node '{source.node_id}' to itself",
                node_ids=[source.node_id],
                edge_id=edge.id,
            )

        out_count = ports[source.node_id][1]
        if not 0 <= source.port < out_count:
            raise GraphValidationError(
                f"Edge '{edge.id}': output port {source.port} out of range for node "
                f"'{source.node_id}' ({out_count} output ports)",
                node_ids=[source.node_id],
                edge_id=edge.id,
            )
        in_count = ports[target.node_id][0]
        if not 0 <= target.port < in_count:
            raise GraphValidationError(
                f"Edge '{edge.id}': input port {target.port} out of range for node "
                f"'{target.node_id}' ({in_count} input ports)",
                node_ids=[target.node_id],
                edge_id=edge.id,
            )

        slots = self._incoming[target.node_id]
        if target.port in slots:
            raise GraphValidationError(
                f"Input port {target.port} of node '{target.node_id}' has more than one producer",
                node_ids=[target.node_id],
                edge_id=edge.id,
            )
        slots[target.port] = source

        if target.node_id not in self._forward[source.node_id]:
            self._forward[source.node_id].append(target.node_id)
            self._reverse[target.node_id].append(source.node_id)

    def _topological_order(self) -> List[str]:
        in_degree = {node_id: len(preds) for node_id, preds in self._reverse.items()}
        heap = [(self._index[n], n) for n, degree in in_degree.items() if degree == 0]
        heapq.heapify(heap)

        order: List[str] = []
        while heap:
            _, node_id = heapq.heappop(heap)
            order.append(node_id)
            for successor in self._forward[node_id]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(heap, (self._index[successor], successor))

        if len(order) != len(self._index):
            done = set(order)
            remaining = [n for n in self._index if n not in done]
            raise GraphCycleError(
                f"Workflow has cycles involving: {', '.join(remaining)}",
                node_ids=remaining,
            )
        return order

    # ==== Queries ====

    @property
    def order(self) -> List[str]:
        return list(self._order)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def __len__(self) -> int:
        return len(self._index)

    def successors(self, node_id: str) -> List[str]:
        return list(self._forward[node_id])

    def predecessors(self, node_id: str) -> List[str]:
        return list(self._reverse[node_id])

    def incoming(self, node_id: str) -> Dict[int, PortRef]:
        """Producer of each connected input port of ``node_id``."""
        return dict(self._incoming[node_id])

    def upstream_closure(self, node_id: str) -> List[str]:
        """``node_id`` and all its ancestors, in execution order."""
        needed: Set[str] = {node_id}
        stack = [node_id]
        while stack:
            for predecessor in self._reverse[stack.pop()]:
                if predecessor not in needed:
                    needed.add(predecessor)
                    stack.append(predecessor)
        return [n for n in self._order if n in needed]

    def descendants(self, node_id: str) -> List[str]:
        """Strict descendants of ``node_id``, in execution order."""
        found: Set[str] = set()
        stack = [node_id]
        while stack:
            for successor in self._forward[stack.pop()]:
                if successor not in found:
                    found.add(successor)
                    stack.append(successor)
        return [n for n in self._order if n in found]


__all__ = [
    "ExecutionPlan",
    "PlanNode",
]
