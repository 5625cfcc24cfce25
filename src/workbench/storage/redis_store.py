"""Redis-backed workflow and dashboard stores."""
import json
from typing import Any

import redis.asyncio as redis

from workbench.config import get_settings
from workbench.observability import get_logger, with_trace_context

logger = get_logger(__name__)


def _client(redis_client: redis.Redis | None) -> redis.Redis:
    if redis_client is not None:
        return redis_client
    settings = get_settings()
    return redis.from_url(settings.redis_url, decode_responses=True)


class RedisWorkflowStore:
    """Stores one workflow document per chat id as a JSON string."""

    def __init__(self, redis_client: redis.Redis | None = None, key_prefix: str | None = None):
        """
        Initialize workflow store.

        Args:
            redis_client: Optional Redis client (will create one if not provided)
            key_prefix: Key prefix (defaults to the redis_key_prefix setting)
        """
        self.redis_client = _client(redis_client)
        self._prefix = key_prefix or get_settings().redis_key_prefix

    def _workflow_key(self, chat_id: str) -> str:
        """Get Redis key for a workflow."""
        return f"{self._prefix}:workflow:{chat_id}"

    async def get_workflow_by_id(self, chat_id: str) -> dict[str, Any] | None:
        """
        Load a workflow document.

        Returns:
            ``{"content": <document dict>}`` or None when nothing is stored
        """
        raw = await self.redis_client.get(self._workflow_key(chat_id))
        if raw is None:
            return None
        try:
            content = json.loads(raw)
        except json.JSONDecodeError:
            logger.error(
                "Stored workflow is not valid JSON",
                extra=with_trace_context(workflow_id=chat_id),
            )
            raise
        return {"content": content}

    async def upsert_workflow(self, chat_id: str, content: dict[str, Any]) -> None:
        await self.redis_client.set(self._workflow_key(chat_id), json.dumps(content))
        logger.info("Workflow saved", extra=with_trace_context(workflow_id=chat_id))

    async def delete_workflow(self, chat_id: str) -> bool:
        return bool(await self.redis_client.delete(self._workflow_key(chat_id)))


class RedisDashboardStore:
    """
    Stores dashboard items in one hash per conversation.

    Hash fields are ``<nodeId>:<itemId>``, so a rerun of a node overwrites
    its previous items.
    """

    def __init__(self, redis_client: redis.Redis | None = None, key_prefix: str | None = None):
        self.redis_client = _client(redis_client)
        self._prefix = key_prefix or get_settings().redis_key_prefix

    def _dashboard_key(self, conversation_id: str) -> str:
        return f"{self._prefix}:dashboard:{conversation_id}"

    async def save_dashboard_item(
        self,
        conversation_id: str,
        node_id: str,
        item: dict[str, Any],
    ) -> None:
        field = f"{node_id}:{item.get('id', node_id)}"
        await self.redis_client.hset(
            self._dashboard_key(conversation_id), field, json.dumps(item)
        )
        logger.debug(
            f"Dashboard item {field} saved",
            extra=with_trace_context(conversation_id=conversation_id, node_id=node_id),
        )

    async def get_items(
        self,
        conversation_id: str,
        node_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Items of a conversation, optionally only those of one node."""
        stored = await self.redis_client.hgetall(self._dashboard_key(conversation_id))
        items = []
        for field in sorted(stored):
            if node_id is not None and not field.startswith(f"{node_id}:"):
                continue
            items.append(json.loads(stored[field]))
        return items

    async def clear(self, conversation_id: str) -> None:
        await self.redis_client.delete(self._dashboard_key(conversation_id))
