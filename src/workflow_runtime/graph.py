"""
Graph Elements - Runtime nodes and edges of a workflow.

Edges carry typed port references parsed once at load time; scheduling
never looks at handle strings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from node_sdk.settings import SettingsObject
from node_sdk.table import DataTable


logger = logging.getLogger(__name__)


class NodeStatus(str, Enum):
    """Status of a node instance."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


_ALLOWED_TRANSITIONS = {
    NodeStatus.IDLE: {NodeStatus.RUNNING, NodeStatus.SKIPPED},
    NodeStatus.RUNNING: {NodeStatus.SUCCESS, NodeStatus.ERROR},
    NodeStatus.SUCCESS: set(),
    NodeStatus.ERROR: set(),
    NodeStatus.SKIPPED: set(),
}


@dataclass(frozen=True)
class PortRef:
    """One port of one node."""
    node_id: str
    port: int = 0


@dataclass(frozen=True)
class Edge:
    """Connection from an output port to an input port."""
    id: str
    source: PortRef
    target: PortRef


@dataclass
class NodeInstance:
    """
    A configured node in a workflow graph.

    ``status``, ``last_outputs`` and ``last_error`` are written only by the
    execution engine; ``settings`` only by the tool layer between runs.
    """
    id: str
    type_id: str
    settings: SettingsObject = field(default_factory=SettingsObject)
    input_ports: int = 0
    output_ports: int = 0
    label: str = ""
    position: Dict[str, float] = field(default_factory=lambda: {"x": 0.0, "y": 0.0})
    status: NodeStatus = NodeStatus.IDLE
    last_outputs: Optional[List[DataTable]] = None
    last_error: Optional[str] = None
    last_error_type: Optional[str] = None
    load_error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def transition(self, status: NodeStatus) -> None:
        """
        Move to ``status``.

        Raises:
            RuntimeError: the transition is not allowed (reset() goes to idle)
        """
        status = NodeStatus(status)
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise RuntimeError(
                f"Illegal status transition for node '{self.id}': "
                f"{self.status.value} -> {status.value}"
            )
        self.status = status

    def reset(self) -> None:
        self.status = NodeStatus.IDLE
        self.last_outputs = None
        self.last_error = None
        self.last_error_type = None

    @property
    def executed(self) -> bool:
        return self.status == NodeStatus.SUCCESS


__all__ = [
    "NodeStatus",
    "PortRef",
    "Edge",
    "NodeInstance",
]
