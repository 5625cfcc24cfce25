"""
Workflow Session - Host glue between storage, the engine and the dashboard.

One session per conversation. Runs and graph edits are serialized with an
asyncio.Lock so a graph is never mutated while it executes.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from node_registry.registry import NodeRegistry
from node_sdk.context import ProgressCallback
from node_sdk.table import DataTable

from .executor import DashboardContext, EngineSettings, RunReport, WorkflowExecutionEngine
from .graph import NodeStatus
from .stores import DashboardStore, WorkflowStore
from .workflow import DEFAULT_FORMAT_VERSION, WorkflowGraph


logger = logging.getLogger(__name__)


class WorkflowSession:
    """
    Loads a conversation's workflow, runs it and writes results back.

    Usage:
        session = WorkflowSession(registry, workflow_store, dashboard_store, "chat-1")
        async with session.edit() as graph:
            graph.add_node("csv_input", settings={...})
        report = await session.run()
    """

    def __init__(
        self,
        registry: NodeRegistry,
        workflow_store: WorkflowStore,
        dashboard_store: Optional[DashboardStore] = None,
        conversation_id: str = "default",
        engine_settings: Optional[EngineSettings] = None,
        on_progress: Optional[ProgressCallback] = None,
        format_version: str = DEFAULT_FORMAT_VERSION,
    ) -> None:
        self.registry = registry
        self.workflow_store = workflow_store
        self.dashboard_store = dashboard_store
        self.conversation_id = conversation_id
        self.engine_settings = engine_settings or EngineSettings()
        self.format_version = format_version
        self._on_progress = on_progress
        self._graph: Optional[WorkflowGraph] = None
        self._lock = asyncio.Lock()

    @property
    def graph(self) -> Optional[WorkflowGraph]:
        return self._graph

    async def load(self) -> WorkflowGraph:
        """Rehydrate the stored workflow, or start an empty one."""
        stored = await self.workflow_store.get_workflow_by_id(self.conversation_id)
        if stored and stored.get("content"):
            self._graph = WorkflowGraph.from_dict(stored["content"], self.registry)
        else:
            self._graph = WorkflowGraph(self.registry)
        logger.debug(f"Session {self.conversation_id}: loaded {len(self._graph)} nodes")
        return self._graph

    async def save(self) -> None:
        if self._graph is None:
            return
        document = self._graph.to_document(format_version=self.format_version)
        await self.workflow_store.upsert_workflow(self.conversation_id, document.to_dict())

    @asynccontextmanager
    async def edit(self) -> AsyncIterator[WorkflowGraph]:
        """Mutate the graph between runs; saved when the block exits cleanly."""
        async with self._lock:
            graph = self._graph or await self.load()
            yield graph
            await self.save()

    async def run(self) -> RunReport:
        async with self._lock:
            engine = await self._engine()
            report = await engine.execute_workflow()
            await self.save()
            return report

    async def run_node(self, node_id: str) -> RunReport:
        async with self._lock:
            engine = await self._engine()
            report = await engine.execute_node_with_dependencies(node_id)
            await self.save()
            return report

    async def _engine(self) -> WorkflowExecutionEngine:
        graph = self._graph or await self.load()
        engine = WorkflowExecutionEngine(
            self.registry,
            on_node_status_change=self._on_status,
            on_progress=self._on_progress,
            conversation_id=self.conversation_id,
            settings=self.engine_settings,
        )
        engine.set_graph(graph)
        return engine

    async def _on_status(
        self,
        node_id: str,
        status: NodeStatus,
        outputs: Optional[List[DataTable]],
        error: Optional[str],
        dashboard: Optional[DashboardContext],
    ) -> None:
        if status != NodeStatus.SUCCESS or dashboard is None or self.dashboard_store is None:
            return
        for item in dashboard.items:
            await self.dashboard_store.save_dashboard_item(
                self.conversation_id, node_id, item.to_payload(),
            )


__all__ = [
    "WorkflowSession",
]
