"""Pytest configuration and fixtures."""
import logging
import os

import pytest

# Set test environment variables
os.environ["WORKBENCH_ENV"] = "test"
os.environ["WORKBENCH_LOG_LEVEL"] = "WARNING"
os.environ["WORKBENCH_REDIS_URL"] = "redis://localhost:6379/1"  # Test DB
os.environ["WORKBENCH_DISCOVER_ENTRY_POINTS"] = "false"


SALES_CSV = "region,amount\neast,150\nwest,120\neast,50\nwest,80\neast,90\n"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop the cached settings so monkeypatched env vars apply."""
    from workbench.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handlers and levels installed by setup_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def registry():
    """Frozen registry with the built-in analytics pack."""
    from node_registry import NodeRegistry
    from nodepacks.analytics import register_nodes

    reg = NodeRegistry()
    reg.register_pack(*register_nodes())
    reg.freeze()
    return reg


@pytest.fixture
def sample_csv():
    """Small sales CSV used across node and workflow tests."""
    return SALES_CSV


@pytest.fixture
def sales_table(sample_csv):
    """The sample CSV parsed into a typed table."""
    from nodepacks.analytics import parse_csv

    return parse_csv(sample_csv)


@pytest.fixture
def execution_context():
    """Create a test execution context."""
    from node_sdk import ExecutionContext

    return ExecutionContext(node_id="test-node", run_id="test-run", conversation_id="chat-1")


@pytest.fixture
def sample_graph(registry, sample_csv):
    """csv_input -> filter(amount > 100) -> group_and_aggregate(region, SUM amount)."""
    from workflow_runtime import WorkflowGraph

    graph = WorkflowGraph(registry)
    graph.add_node("csv_input", node_id="csv", settings={"csv_text": sample_csv})
    graph.add_node("filter", node_id="filter", settings={
        "conditions": [{"column": "amount", "operator": ">", "value": 100}],
    })
    graph.add_node("group_and_aggregate", node_id="group", settings={
        "group_columns": ["region"],
        "aggregations": [{"columnName": "amount", "method": "SUM", "newColumnName": "total"}],
    })
    graph.connect("csv", "filter")
    graph.connect("filter", "group")
    return graph


@pytest.fixture
def run_node():
    """Validate settings, configure and execute one node model in isolation."""
    from node_sdk import ExecutionContext, SettingsObject

    async def _run(node, settings=None, *inputs):
        values = SettingsObject(settings or {})
        node.validate_settings(values)
        node.load_settings(values)
        specs = node.configure([table.spec for table in inputs])
        ctx = ExecutionContext(node_id="node-1", run_id="run-1")
        outputs = await node.execute(list(inputs), ctx)
        return outputs, specs, ctx

    return _run
