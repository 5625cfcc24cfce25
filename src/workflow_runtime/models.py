"""
Workflow Models - JSON structures for persisted workflows.

These models match the document written by the canvas:

    {"nodes": [{"id", "type", "position", "data": {"factoryId", "settings", ...}}],
     "edges": [{"id", "source", "target", "sourceHandle", "targetHandle"}],
     "metadata": {"version": "1.0"}}

Only the stable ``factoryId`` identifies a node type. Live ``factory``
references written by older clients are dropped on load.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import GraphValidationError


class WorkflowPosition(BaseModel):
    """Node position in the canvas."""
    x: float = 0
    y: float = 0


class WorkflowNodeData(BaseModel):
    """
    The ``data`` block of a persisted node.

    Unknown keys are preserved so a round trip does not lose client state.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    label: str = Field("", description="Display label")
    factory_id: str = Field(..., alias="factoryId", description="Stable node type id")
    settings: Dict[str, Any] = Field(default_factory=dict)
    input_ports: int = Field(0, alias="inputPorts", ge=0)
    output_ports: int = Field(0, alias="outputPorts", ge=0)
    status: str = Field("idle")
    executed: bool = Field(False)
    error: Optional[str] = Field(None)
    outputs: Optional[List[Optional[Dict[str, Any]]]] = Field(
        None, description="Serialized DataTables of the last successful run"
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_live_factory(cls, data: Any) -> Any:
        if isinstance(data, dict) and "factory" in data:
            data = {k: v for k, v in data.items() if k != "factory"}
        return data


class WorkflowNodeRecord(BaseModel):
    """A node in a persisted workflow."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1)
    type: str = Field("customNode", description="Canvas renderer type")
    position: WorkflowPosition = Field(default_factory=WorkflowPosition)
    data: WorkflowNodeData


class WorkflowEdgeRecord(BaseModel):
    """An edge in a persisted workflow; handles encode the port numbers."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field("")
    source: str
    target: str
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")


class WorkflowMetadata(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: str = Field("1.0")
    last_saved: Optional[str] = Field(None, alias="lastSaved")


class WorkflowDocument(BaseModel):
    """
    A complete persisted workflow.

    Usage:
        doc = WorkflowDocument.from_json(text)
        graph = WorkflowGraph.from_document(doc, registry)
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    nodes: List[WorkflowNodeRecord] = Field(default_factory=list)
    edges: List[WorkflowEdgeRecord] = Field(default_factory=list)
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowDocument":
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: str) -> "WorkflowDocument":
        return cls.model_validate_json(text)


# ==============================================================================
# Handles and edge ids
# ==============================================================================

_HANDLE_RE = re.compile(r"^(source|target)-(\d+)$")


def parse_handle(handle: Optional[str], kind: Optional[str] = None) -> int:
    """
    Port number encoded in a handle such as ``"source-3"``.

    A missing handle means port 0.

    Raises:
        GraphValidationError: the handle is malformed or of the wrong kind
    """
    if handle is None or handle == "":
        return 0
    match = _HANDLE_RE.match(handle)
    if match is None or (kind is not None and match.group(1) != kind):
        expected = f"'{kind}-<N>'" if kind else "'source-<N>' or 'target-<N>'"
        raise GraphValidationError(f"Malformed handle '{handle}', expected {expected}")
    return int(match.group(2))


def make_handle(kind: str, port: int) -> str:
    return f"{kind}-{port}"


def make_edge_id(source: str, source_port: int, target: str, target_port: int) -> str:
    return f"reactflow__edge-{source}source-{source_port}-{target}target-{target_port}"


__all__ = [
    "WorkflowPosition",
    "WorkflowNodeData",
    "WorkflowNodeRecord",
    "WorkflowEdgeRecord",
    "WorkflowMetadata",
    "WorkflowDocument",
    "parse_handle",
    "make_handle",
    "make_edge_id",
]
