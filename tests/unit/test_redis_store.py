"""Tests for the Redis-backed stores."""
import json

import pytest

from workbench.storage import RedisDashboardStore, RedisWorkflowStore


class FakeRedis:
    """The handful of async Redis commands the stores use."""

    def __init__(self):
        self.values = {}
        self.hashes = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value

    async def delete(self, key):
        existed = key in self.values or key in self.hashes
        self.values.pop(key, None)
        self.hashes.pop(key, None)
        return int(existed)

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))


@pytest.fixture
def fake_redis():
    return FakeRedis()


class TestRedisWorkflowStore:
    """Test workflow persistence."""

    @pytest.mark.asyncio
    async def test_round_trip(self, fake_redis):
        store = RedisWorkflowStore(fake_redis, key_prefix="wb")
        document = {"nodes": [], "edges": [], "metadata": {"version": "1.0"}}

        await store.upsert_workflow("chat-1", document)

        assert "wb:workflow:chat-1" in fake_redis.values
        assert await store.get_workflow_by_id("chat-1") == {"content": document}

    @pytest.mark.asyncio
    async def test_missing_and_delete(self, fake_redis):
        store = RedisWorkflowStore(fake_redis)

        assert await store.get_workflow_by_id("nope") is None
        await store.upsert_workflow("chat-1", {"nodes": []})
        assert await store.delete_workflow("chat-1") is True
        assert await store.delete_workflow("chat-1") is False

    @pytest.mark.asyncio
    async def test_default_prefix_from_settings(self, fake_redis):
        store = RedisWorkflowStore(fake_redis)
        await store.upsert_workflow("chat-1", {})

        assert list(fake_redis.values) == ["workbench:workflow:chat-1"]

    @pytest.mark.asyncio
    async def test_corrupt_document_raises(self, fake_redis):
        fake_redis.values["workbench:workflow:chat-1"] = "{broken"
        store = RedisWorkflowStore(fake_redis)

        with pytest.raises(json.JSONDecodeError):
            await store.get_workflow_by_id("chat-1")


class TestRedisDashboardStore:
    """Test dashboard item persistence."""

    @pytest.mark.asyncio
    async def test_items_by_node(self, fake_redis):
        store = RedisDashboardStore(fake_redis)
        await store.save_dashboard_item("chat-1", "csv", {"id": "csv-port-0", "type": "table"})
        await store.save_dashboard_item("chat-1", "norm", {"id": "norm-statistics", "type": "statistics"})

        assert [i["id"] for i in await store.get_items("chat-1")] == ["csv-port-0", "norm-statistics"]
        assert [i["id"] for i in await store.get_items("chat-1", node_id="norm")] == ["norm-statistics"]

    @pytest.mark.asyncio
    async def test_rerun_overwrites_item(self, fake_redis):
        store = RedisDashboardStore(fake_redis)
        await store.save_dashboard_item("chat-1", "csv", {"id": "csv-port-0", "rows": 1})
        await store.save_dashboard_item("chat-1", "csv", {"id": "csv-port-0", "rows": 2})

        (item,) = await store.get_items("chat-1")
        assert item["rows"] == 2

    @pytest.mark.asyncio
    async def test_clear(self, fake_redis):
        store = RedisDashboardStore(fake_redis)
        await store.save_dashboard_item("chat-1", "csv", {"id": "a"})

        await store.clear("chat-1")
        assert await store.get_items("chat-1") == []
