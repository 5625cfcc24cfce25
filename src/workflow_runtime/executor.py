"""
Workflow Execution Engine - Dependency-aware DAG scheduler.

Executes the nodes of a validated graph one at a time in topological order,
driving each through idle -> running -> success|error (or idle -> skipped)
and reporting every transition through the status callback. Node failures
are node-scoped: descendants are skipped, independent branches continue.
"""

from __future__ import annotations

import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from node_registry.registry import NodeRegistry
from node_sdk.basenode import NodeModel
from node_sdk.context import CancellationToken, ExecutionContext, ProgressCallback
from node_sdk.dashboard import DashboardItem
from node_sdk.errors import (
    CancellationError,
    ConfigurationError,
    ExecutionError,
    ValidationError,
    WorkflowEngineError,
)
from node_sdk.table import DataTable

from .errors import GraphValidationError
from .graph import Edge, NodeInstance, NodeStatus
from .plan import ExecutionPlan
from .workflow import WorkflowGraph


logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """Overall run status."""
    SUCCESS = "success"
    PARTIAL = "partial"  # Some nodes succeeded, some failed or were skipped
    ERROR = "error"
    CANCELED = "canceled"


@dataclass
class EngineSettings:
    strict_output_specs: bool = True
    dashboard_preview_rows: Optional[int] = 1000
    http_timeout_s: float = 30.0


@dataclass
class DashboardContext:
    """Dashboard items of one successful node, keyed for persistence."""
    conversation_id: Optional[str]
    node_id: str
    label: str
    items: List[DashboardItem] = field(default_factory=list)


StatusCallback = Callable[
    [str, NodeStatus, Optional[List[DataTable]], Optional[str], Optional[DashboardContext]],
    Any,
]


@dataclass
class NodeReport:
    """Outcome of one node in one run."""
    node_id: str
    status: NodeStatus
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_ms: float = 0
    skipped_because: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "status": self.status.value,
            "error": self.error,
            "errorType": self.error_type,
            "durationMs": round(self.duration_ms, 3),
            "skippedBecause": self.skipped_because,
        }


@dataclass
class RunReport:
    """
    Result of one run.

    ``nodes`` holds every node the run was responsible for, in execution
    order, including nodes left idle by a cancellation.
    """
    run_id: str
    status: RunStatus
    executed: List[str] = field(default_factory=list)
    nodes: Dict[str, NodeReport] = field(default_factory=dict)
    duration_ms: float = 0

    @property
    def counts(self) -> Dict[str, int]:
        return {
            status.value: sum(1 for r in self.nodes.values() if r.status == status)
            for status in NodeStatus
        }

    @property
    def is_success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    def node_status(self, node_id: str) -> Optional[NodeStatus]:
        report = self.nodes.get(node_id)
        return report.status if report else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "status": self.status.value,
            "executed": list(self.executed),
            "counts": self.counts,
            "nodes": {node_id: r.to_dict() for node_id, r in self.nodes.items()},
            "durationMs": round(self.duration_ms, 3),
        }


class WorkflowExecutionEngine:
    """
    Sequential workflow scheduler.

    Usage:
        engine = WorkflowExecutionEngine(registry, on_node_status_change=callback)
        engine.set_graph(graph)
        report = await engine.execute_workflow()
        report = await engine.execute_node_with_dependencies("group-1")
    """

    def __init__(
        self,
        registry: NodeRegistry,
        on_node_status_change: Optional[StatusCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        conversation_id: Optional[str] = None,
        settings: Optional[EngineSettings] = None,
        workflow_id: Optional[str] = None,
    ) -> None:
        self._registry = registry
        self._on_status = on_node_status_change
        self._on_progress = on_progress
        self.conversation_id = conversation_id
        self.workflow_id = workflow_id or conversation_id
        self.settings = settings or EngineSettings()

        self._nodes: Dict[str, NodeInstance] = {}
        self._plan: Optional[ExecutionPlan] = None
        self._cancel_token = CancellationToken()
        self._running = False

    # ==== Graph ====

    def set_workflow(self, nodes: Sequence[NodeInstance], edges: Sequence[Edge]) -> None:
        """
        Load and validate a graph.

        Raises:
            GraphValidationError: dangling edge, bad port, duplicate producer
            GraphCycleError: the graph has a cycle
        """
        if self._running:
            raise RuntimeError("Cannot replace the workflow during a run")
        plan = ExecutionPlan(nodes, edges)
        self._plan = plan
        self._nodes = {node.id: node for node in nodes}
        logger.debug(
            f"Workflow loaded: {len(nodes)} nodes, {len(edges)} edges",
            extra=self._trace(),
        )

    def set_graph(self, graph: WorkflowGraph) -> None:
        self.set_workflow(graph.nodes, graph.edges)

    @property
    def execution_order(self) -> List[str]:
        return self._require_plan().order

    def _require_plan(self) -> ExecutionPlan:
        if self._plan is None:
            raise RuntimeError("No workflow loaded; call set_workflow() first")
        return self._plan

    def _require_node(self, node_id: str) -> NodeInstance:
        node = self._nodes.get(node_id)
        if node is None:
            raise GraphValidationError(f"Unknown node '{node_id}'", node_ids=[node_id])
        return node

    # ==== Runs ====

    async def execute_workflow(self) -> RunReport:
        """Execute every node in topological order."""
        plan = self._require_plan()
        self._claim_run()
        try:
            for node in self._nodes.values():
                node.reset()
            return await self._run(plan.order)
        finally:
            self._running = False

    async def execute_node_with_dependencies(self, node_id: str) -> RunReport:
        """
        Execute ``node_id`` and whatever of its upstream closure is not
        already successful. The target always re-runs; its descendants are
        reset because their inputs are now stale.
        """
        plan = self._require_plan()
        target = self._require_node(node_id)
        self._claim_run()
        try:
            for descendant_id in plan.descendants(node_id):
                await self._reset(self._nodes[descendant_id])
            target.reset()

            to_run: List[str] = []
            for closure_id in plan.upstream_closure(node_id):
                node = self._nodes[closure_id]
                if closure_id != node_id and node.status == NodeStatus.SUCCESS and node.last_outputs is not None:
                    continue
                node.reset()
                to_run.append(closure_id)
            return await self._run(to_run)
        finally:
            self._running = False

    def cancel(self, reason: Optional[str] = None) -> None:
        """Stop launching nodes; running nodes unwind at their next check."""
        logger.info(f"Run cancellation requested: {reason or 'no reason'}", extra=self._trace())
        self._cancel_token.cancel(reason)

    async def reset_node(self, node_id: str) -> None:
        node = self._require_node(node_id)
        self._ensure_idle()
        await self._reset(node)

    async def reset_workflow(self) -> None:
        order = self._require_plan().order
        self._ensure_idle()
        for node_id in order:
            await self._reset(self._nodes[node_id])

    async def _reset(self, node: NodeInstance) -> None:
        node.reset()
        await self._notify(node.id, NodeStatus.IDLE)

    def _ensure_idle(self) -> None:
        if self._running:
            raise RuntimeError("A run is already in progress")

    def _claim_run(self) -> None:
        # Must precede any node reset
        self._ensure_idle()
        self._running = True

    async def _run(self, to_run: List[str]) -> RunReport:
        self._cancel_token = CancellationToken()
        run_id = uuid.uuid4().hex
        report = RunReport(run_id=run_id, status=RunStatus.SUCCESS)
        start = time.perf_counter()
        plan = self._require_plan()

        logger.info(f"Run started: {len(to_run)} nodes", extra=self._trace(run_id))
        for node_id in to_run:
            node = self._nodes[node_id]
            if self._cancel_token.is_canceled:
                report.nodes[node_id] = NodeReport(node_id, NodeStatus.IDLE)
                continue

            blocker = next(
                (p for p in plan.predecessors(node_id)
                 if self._nodes[p].status != NodeStatus.SUCCESS),
                None,
            )
            if blocker is not None:
                node.transition(NodeStatus.SKIPPED)
                report.nodes[node_id] = NodeReport(
                    node_id, NodeStatus.SKIPPED, skipped_because=blocker,
                )
                logger.info(
                    f"Node {node_id} skipped: upstream '{blocker}' did not succeed",
                    extra=self._trace(run_id, node_id),
                )
                await self._notify(node_id, NodeStatus.SKIPPED)
                continue

            report.executed.append(node_id)
            report.nodes[node_id] = await self._execute_node(node, plan, run_id)

        report.status = self._run_status(report)
        report.duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Run finished: {report.status.value} {report.counts}",
            extra=self._trace(run_id),
        )
        return report

    def _run_status(self, report: RunReport) -> RunStatus:
        if self._cancel_token.is_canceled or any(
            r.error_type == CancellationError.__name__ for r in report.nodes.values()
        ):
            return RunStatus.CANCELED
        counts = report.counts
        failed = counts[NodeStatus.ERROR.value] + counts[NodeStatus.SKIPPED.value]
        if not failed:
            return RunStatus.SUCCESS
        if counts[NodeStatus.SUCCESS.value]:
            return RunStatus.PARTIAL
        return RunStatus.ERROR

    # ==== Single node ====

    def _gather_inputs(self, node: NodeInstance, plan: ExecutionPlan, in_ports: int) -> List[DataTable]:
        """Predecessor outputs per input port; unconnected ports get an empty table."""
        incoming = plan.incoming(node.id)
        inputs: List[DataTable] = []
        for port in range(in_ports):
            source = incoming.get(port)
            if source is None:
                inputs.append(DataTable.empty())
                continue
            outputs = self._nodes[source.node_id].last_outputs or []
            inputs.append(outputs[source.port] if source.port < len(outputs) else DataTable.empty())
        return inputs

    def _prepare(self, node: NodeInstance) -> NodeModel:
        """Build the node's model and load its settings; every failure is an engine error."""
        factory = self._registry.get_factory(node.type_id)
        try:
            model = factory.create_node_model()
        except WorkflowEngineError:
            raise
        except Exception as e:
            raise ExecutionError(f"Cannot create '{node.type_id}' model: {type(e).__name__}: {e}") from e

        if (model.get_input_port_count(), model.get_output_port_count()) != (node.input_ports, node.output_ports):
            raise ConfigurationError(
                f"Node declares {node.input_ports}/{node.output_ports} ports but type "
                f"'{node.type_id}' has {model.get_input_port_count()}/{model.get_output_port_count()}"
            )

        try:
            model.validate_settings(node.settings)
            model.load_settings(node.settings)
        except WorkflowEngineError:
            raise
        except Exception as e:
            raise ValidationError(f"Invalid settings: {type(e).__name__}: {e}") from e
        return model

    def _check_outputs(
        self,
        outputs: Any,
        specs: Sequence[Any],
        out_ports: int,
    ) -> List[DataTable]:
        outputs = list(outputs or [])
        if len(outputs) != out_ports:
            raise ExecutionError(f"Node produced {len(outputs)} outputs, expected {out_ports}")
        for index, table in enumerate(outputs):
            if not isinstance(table, DataTable):
                raise ExecutionError(
                    f"Output {index} is {type(table).__name__}, expected DataTable"
                )
            spec = specs[index]
            if self.settings.strict_output_specs and spec is not None and table.spec != spec:
                raise ExecutionError(
                    f"Output {index} spec {table.spec.column_names} does not match "
                    f"configured spec {spec.column_names}"
                )
        return outputs

    async def _execute_node(self, node: NodeInstance, plan: ExecutionPlan, run_id: str) -> NodeReport:
        node.transition(NodeStatus.RUNNING)
        logger.info(f"Node {node.id} ({node.type_id}) running", extra=self._trace(run_id, node.id))
        await self._notify(node.id, NodeStatus.RUNNING)

        ctx = ExecutionContext(
            node_id=node.id,
            run_id=run_id,
            conversation_id=self.conversation_id,
            cancel_token=self._cancel_token,
            on_progress=self._on_progress,
            http_timeout=self.settings.http_timeout_s,
        )
        start = time.perf_counter()
        try:
            model = self._prepare(node)
            inputs = self._gather_inputs(node, plan, model.get_input_port_count())

            try:
                specs = list(model.configure([table.spec for table in inputs]))
            except WorkflowEngineError:
                raise
            except Exception as e:
                raise ConfigurationError(str(e) or type(e).__name__) from e
            if len(specs) != model.get_output_port_count():
                raise ConfigurationError(
                    f"configure() returned {len(specs)} specs, expected {model.get_output_port_count()}"
                )

            try:
                outputs = await model.execute(inputs, ctx)
            except WorkflowEngineError:
                raise
            except Exception as e:
                raise ExecutionError(f"{type(e).__name__}: {e}") from e
            outputs = self._check_outputs(outputs, specs, model.get_output_port_count())

        except WorkflowEngineError as e:
            if e.node_id is None:
                e.node_id = node.id
            if isinstance(e, CancellationError) and not self._cancel_token.is_canceled:
                self._cancel_token.cancel(e.message)
            duration = (time.perf_counter() - start) * 1000
            node.transition(NodeStatus.ERROR)
            node.last_error = e.message
            node.last_error_type = type(e).__name__
            logger.error(
                f"Node {node.id} failed ({type(e).__name__}): {e.message}",
                extra=self._trace(run_id, node.id),
            )
            await self._notify(node.id, NodeStatus.ERROR, error=e.message)
            return NodeReport(
                node.id, NodeStatus.ERROR,
                error=e.message, error_type=type(e).__name__, duration_ms=duration,
            )

        duration = (time.perf_counter() - start) * 1000
        node.last_outputs = outputs
        node.transition(NodeStatus.SUCCESS)

        dashboard = DashboardContext(self.conversation_id, node.id, node.label)
        try:
            dashboard.items = model.build_dashboard_items(
                outputs, ctx, node.label, max_rows=self.settings.dashboard_preview_rows,
            )
        except Exception as e:
            logger.warning(
                f"Node {node.id} dashboard items could not be built: {e}",
                extra=self._trace(run_id, node.id),
            )

        logger.info(
            f"Node {node.id} succeeded in {duration:.1f}ms",
            extra=self._trace(run_id, node.id),
        )
        await self._notify(node.id, NodeStatus.SUCCESS, outputs=outputs, dashboard=dashboard)
        return NodeReport(node.id, NodeStatus.SUCCESS, duration_ms=duration)

    # ==== Callbacks ====

    async def _notify(
        self,
        node_id: str,
        status: NodeStatus,
        outputs: Optional[List[DataTable]] = None,
        error: Optional[str] = None,
        dashboard: Optional[DashboardContext] = None,
    ) -> None:
        if self._on_status is None:
            return
        try:
            result = self._on_status(node_id, status, outputs, error, dashboard)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(
                f"Status callback failed for node {node_id} ({status.value})",
                extra=self._trace(node_id=node_id),
            )

    def _trace(self, run_id: Optional[str] = None, node_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            "run_id": run_id,
            "workflow_id": self.workflow_id,
            "conversation_id": self.conversation_id,
            "node_id": node_id,
        }


__all__ = [
    "WorkflowExecutionEngine",
    "EngineSettings",
    "DashboardContext",
    "StatusCallback",
    "RunReport",
    "RunStatus",
    "NodeReport",
]
