"""
Graph Errors - Failures that reject a whole workflow graph.

Raised before any node executes; node-scoped failures live in
node_sdk.errors.
"""

from __future__ import annotations

from typing import Optional, Sequence

from node_sdk.errors import WorkflowEngineError


class GraphValidationError(WorkflowEngineError):
    """Structural problem in a graph (dangling edge, bad port, duplicate producer)."""

    def __init__(
        self,
        message: str,
        node_ids: Sequence[str] = (),
        edge_id: Optional[str] = None,
    ) -> None:
        self.node_ids = list(node_ids)
        self.edge_id = edge_id
        super().__init__(message, self.node_ids[0] if self.node_ids else None)


class GraphCycleError(GraphValidationError):
    """The graph is not a DAG; ``node_ids`` are the nodes left on a cycle."""


__all__ = [
    "GraphValidationError",
    "GraphCycleError",
]
