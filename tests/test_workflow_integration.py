"""
Integration test for workflow_runtime with the analytics node pack.

Verifies end-to-end workflow execution works.
"""

import pytest

from node_sdk import CellType
from workflow_runtime import (
    GraphCycleError,
    GraphValidationError,
    NodeStatus,
    RunStatus,
    WorkflowExecutionEngine,
    WorkflowGraph,
)


def _engine(registry, graph, **kwargs):
    engine = WorkflowExecutionEngine(registry, **kwargs)
    engine.set_graph(graph)
    return engine


class TestWorkflowExecutionIntegration:
    """Integration tests for the execution engine with real nodes."""

    @pytest.mark.asyncio
    async def test_filter_then_group(self, registry, sample_graph):
        """CSV -> Row Filter (amount > 100) -> GroupBy (SUM amount per region)."""
        report = await _engine(registry, sample_graph).execute_workflow()

        assert report.status == RunStatus.SUCCESS
        assert report.executed == ["csv", "filter", "group"]

        (result,) = sample_graph.get_node("group").last_outputs
        assert [(c.name, c.type) for c in result.spec.columns] == [
            ("region", CellType.STRING),
            ("total", CellType.NUMBER),
        ]
        assert result.to_records() == [
            {"region": "east", "total": 150},
            {"region": "west", "total": 120},
        ]

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_descendants(self, registry, sample_graph):
        """A failing branch does not stop an independent branch."""
        sample_graph.update_settings("filter", {
            "conditions": [{"column": "price", "operator": ">", "value": 1}],
        })
        sample_graph.add_node("sorter", node_id="sorted", settings={
            "sort_columns": [{"columnName": "amount", "direction": "DESC"}],
        })
        sample_graph.connect("csv", "sorted")

        report = await _engine(registry, sample_graph).execute_workflow()

        assert report.status == RunStatus.PARTIAL
        assert report.node_status("filter") == NodeStatus.ERROR
        assert "price" in report.nodes["filter"].error
        assert report.nodes["filter"].error_type == "ConfigurationError"
        assert report.node_status("group") == NodeStatus.SKIPPED
        assert report.node_status("sorted") == NodeStatus.SUCCESS
        assert sample_graph.get_node("sorted").last_outputs[0].column_values("amount")[0] == 150

    @pytest.mark.asyncio
    async def test_partial_execution_runs_only_ancestors(self, registry):
        """Executing C in A -> B -> C -> D runs exactly A, B and C."""
        graph = WorkflowGraph(registry)
        graph.add_node("table_creator", node_id="A", settings={
            "headers": ["n"], "cells": [["3"], ["1"], ["2"]],
        })
        graph.add_node("sorter", node_id="B", settings={"sort_columns": [{"columnName": "n"}]})
        graph.add_node("filter", node_id="C", settings={
            "conditions": [{"column": "n", "operator": ">=", "value": 2}],
        })
        graph.add_node("column_filter", node_id="D", settings={"selected_columns": ["n"]})
        graph.connect("A", "B")
        graph.connect("B", "C")
        graph.connect("C", "D")

        report = await _engine(registry, graph).execute_node_with_dependencies("C")

        assert report.executed == ["A", "B", "C"]
        assert graph.get_node("D").status == NodeStatus.IDLE
        assert graph.get_node("C").last_outputs[0].column_values("n") == [2, 3]

    @pytest.mark.asyncio
    async def test_partition_feeds_joiner(self, registry):
        """Both outputs of a two-port node reach the right input ports."""
        graph = WorkflowGraph(registry)
        graph.add_node("csv_input", node_id="csv", settings={
            "csv_text": "id,v\n1,a\n2,b\n3,c\n4,d\n",
        })
        graph.add_node("partition", node_id="split", settings={
            "partition_mode": "absolute", "partition_value": 2,
        })
        graph.add_node("joiner", node_id="join", settings={
            "join_1_2": {"leftColumn": "id", "rightColumn": "id", "joinType": "FULL"},
        })
        graph.connect("csv", "split")
        graph.connect("split", "join", 0, 0)
        graph.connect("split", "join", 1, 1)

        report = await _engine(registry, graph).execute_workflow()

        assert report.is_success
        (joined,) = graph.get_node("join").last_outputs
        assert joined.spec.column_names == ["id", "T1_v", "T2_v"]
        assert joined.column_values("id") == [1, 2, 3, 4]
        assert joined.column_values("T2_v") == [None, None, "c", "d"]

    def test_cycles_are_rejected(self, sample_graph):
        """Connecting downstream output back upstream fails and leaves the graph unchanged."""
        edges_before = list(sample_graph.edges)

        with pytest.raises(GraphCycleError):
            sample_graph.connect("group", "filter")
        assert sample_graph.edges == edges_before

    def test_ports_are_bounded(self, sample_graph):
        """Edges must reference existing ports."""
        with pytest.raises(GraphValidationError):
            sample_graph.connect("csv", "filter", 1, 0)
        with pytest.raises(GraphValidationError):
            sample_graph.connect("csv", "filter", 0, 1)

    @pytest.mark.asyncio
    async def test_results_survive_a_save_and_load(self, registry, sample_graph):
        """A saved workflow keeps successful outputs so partial runs can reuse them."""
        await _engine(registry, sample_graph).execute_workflow()

        restored = WorkflowGraph.from_json(sample_graph.to_json(), registry)
        assert restored.get_node("filter").status == NodeStatus.SUCCESS

        report = await _engine(registry, restored).execute_node_with_dependencies("group")
        assert report.executed == ["group"]
        assert restored.get_node("group").last_outputs[0].column_values("total") == [150, 120]
