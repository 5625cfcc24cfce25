"""
Workflow Runtime - Async DAG execution for dataflow workflows.

This package provides:
- WorkflowDocument: persisted JSON structure of a workflow
- WorkflowGraph: rehydrated, mutable graph of node instances and edges
- ExecutionPlan: validated adjacency and topological order
- WorkflowExecutionEngine: sequential, dependency-aware scheduler
- WorkflowSession: storage/dashboard host glue

Nodes execute one at a time in topological order.
"""

from .errors import GraphValidationError, GraphCycleError
from .models import (
    WorkflowDocument,
    WorkflowNodeRecord,
    WorkflowNodeData,
    WorkflowEdgeRecord,
    WorkflowMetadata,
    parse_handle,
    make_handle,
    make_edge_id,
)
from .graph import NodeStatus, PortRef, Edge, NodeInstance
from .plan import ExecutionPlan
from .workflow import WorkflowGraph
from .executor import (
    WorkflowExecutionEngine,
    EngineSettings,
    DashboardContext,
    RunReport,
    RunStatus,
    NodeReport,
)
from .stores import (
    WorkflowStore,
    DashboardStore,
    InMemoryWorkflowStore,
    InMemoryDashboardStore,
)
from .session import WorkflowSession

__all__ = [
    # Errors
    "GraphValidationError",
    "GraphCycleError",
    # Models
    "WorkflowDocument",
    "WorkflowNodeRecord",
    "WorkflowNodeData",
    "WorkflowEdgeRecord",
    "WorkflowMetadata",
    "parse_handle",
    "make_handle",
    "make_edge_id",
    # Graph
    "NodeStatus",
    "PortRef",
    "Edge",
    "NodeInstance",
    "ExecutionPlan",
    "WorkflowGraph",
    # Executor
    "WorkflowExecutionEngine",
    "EngineSettings",
    "DashboardContext",
    "RunReport",
    "RunStatus",
    "NodeReport",
    # Collaborators
    "WorkflowStore",
    "DashboardStore",
    "InMemoryWorkflowStore",
    "InMemoryDashboardStore",
    "WorkflowSession",
]
