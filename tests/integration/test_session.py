"""Integration tests for workflow sessions backed by in-memory stores."""
import pytest

from workflow_runtime import (
    InMemoryDashboardStore,
    InMemoryWorkflowStore,
    NodeStatus,
    RunStatus,
    WorkflowSession,
)


@pytest.fixture
def stores():
    return InMemoryWorkflowStore(), InMemoryDashboardStore()


def _session(registry, stores, conversation_id="chat-1"):
    workflow_store, dashboard_store = stores
    return WorkflowSession(registry, workflow_store, dashboard_store, conversation_id)


async def _build(session, csv_text):
    async with session.edit() as graph:
        graph.add_node("csv_input", node_id="csv", settings={"csv_text": csv_text})
        graph.add_node("normalizer", node_id="norm")
        graph.connect("csv", "norm")


@pytest.mark.asyncio
async def test_empty_conversation_starts_empty(registry, stores):
    session = _session(registry, stores)

    graph = await session.load()

    assert len(graph) == 0


@pytest.mark.asyncio
async def test_edit_saves_workflow(registry, stores, sample_csv):
    workflow_store, _ = stores
    await _build(_session(registry, stores), sample_csv)

    stored = await workflow_store.get_workflow_by_id("chat-1")
    assert [node["id"] for node in stored["content"]["nodes"]] == ["csv", "norm"]
    assert stored["content"]["metadata"]["version"] == "1.0"


@pytest.mark.asyncio
async def test_failed_edit_is_not_saved(registry, stores):
    workflow_store, _ = stores
    session = _session(registry, stores)

    with pytest.raises(RuntimeError):
        async with session.edit() as graph:
            graph.add_node("sorter")
            raise RuntimeError("client went away")

    assert await workflow_store.get_workflow_by_id("chat-1") is None


@pytest.mark.asyncio
async def test_run_persists_results_and_dashboard(registry, stores, sample_csv):
    _, dashboard_store = stores
    session = _session(registry, stores)
    await _build(session, sample_csv)

    report = await session.run()

    assert report.status == RunStatus.SUCCESS
    assert [item["id"] for item in dashboard_store.get_items("chat-1", "csv")] == ["csv-port-0"]
    (statistics,) = dashboard_store.get_items("chat-1", "norm")
    assert statistics["id"] == "norm-statistics"
    assert statistics["type"] == "statistics"

    # A new session for the same conversation sees the stored results
    reloaded = _session(registry, stores)
    graph = await reloaded.load()
    assert graph.get_node("norm").status == NodeStatus.SUCCESS
    assert graph.get_node("norm").last_outputs[0].column_values("amount")[0] == 1.0


@pytest.mark.asyncio
async def test_run_node_reuses_stored_ancestors(registry, stores, sample_csv):
    session = _session(registry, stores)
    await _build(session, sample_csv)
    await session.run()

    report = await _session(registry, stores).run_node("norm")

    assert report.executed == ["norm"]


@pytest.mark.asyncio
async def test_conversations_are_separate(registry, stores, sample_csv):
    _, dashboard_store = stores
    await _build(_session(registry, stores, "chat-1"), sample_csv)

    other = _session(registry, stores, "chat-2")
    await other.run()

    assert len(other.graph) == 0
    assert dashboard_store.get_items("chat-2") == []
