"""
Node Errors - Exception taxonomy for node-scoped failures.

Every failure raised while preparing or running a single node maps to
one of these classes. The engine captures them into the node's
``last_error`` instead of aborting the whole run.
"""

from __future__ import annotations

from typing import Optional


class WorkflowEngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, node_id: Optional[str] = None) -> None:
        self.message = message
        self.node_id = node_id
        super().__init__(message)


class NodeTypeNotFoundError(WorkflowEngineError):
    """No factory is registered for a node's type id."""

    def __init__(self, type_id: str, node_id: Optional[str] = None) -> None:
        self.type_id = type_id
        super().__init__(f"Unknown node type: '{type_id}'", node_id)


class ConfigurationError(WorkflowEngineError):
    """Input specs do not satisfy what the node needs (missing or mistyped columns)."""


class ValidationError(WorkflowEngineError):
    """Node settings are missing or out of range."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        self.field = field
        super().__init__(message, node_id)


class CancellationError(WorkflowEngineError):
    """Raised by ``ExecutionContext.check_canceled`` once a run is canceled."""

    def __init__(self, message: str = "Execution canceled", node_id: Optional[str] = None) -> None:
        super().__init__(message, node_id)


class ExecutionError(WorkflowEngineError):
    """Any other failure raised from inside ``NodeModel.execute``."""


__all__ = [
    "WorkflowEngineError",
    "NodeTypeNotFoundError",
    "ConfigurationError",
    "ValidationError",
    "CancellationError",
    "ExecutionError",
]
