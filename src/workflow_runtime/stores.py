"""
Collaborator Stores - Workflow storage and dashboard persistence.

The engine never persists anything itself; hosts plug these in. The
in-memory versions back tests and the CLI.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class WorkflowStore(Protocol):
    """Stores workflow documents by chat id."""

    async def get_workflow_by_id(self, chat_id: str) -> Optional[Dict[str, Any]]:
        """Return ``{"content": <document dict>}`` or None."""
        ...

    async def upsert_workflow(self, chat_id: str, content: Dict[str, Any]) -> None:
        ...


@runtime_checkable
class DashboardStore(Protocol):
    """Persists dashboard items keyed by (conversation_id, node_id)."""

    async def save_dashboard_item(
        self,
        conversation_id: str,
        node_id: str,
        item: Dict[str, Any],
    ) -> None:
        ...


class InMemoryWorkflowStore:
    def __init__(self) -> None:
        self._workflows: Dict[str, Dict[str, Any]] = {}

    async def get_workflow_by_id(self, chat_id: str) -> Optional[Dict[str, Any]]:
        content = self._workflows.get(chat_id)
        if content is None:
            return None
        return {"content": copy.deepcopy(content)}

    async def upsert_workflow(self, chat_id: str, content: Dict[str, Any]) -> None:
        self._workflows[chat_id] = copy.deepcopy(content)


class InMemoryDashboardStore:
    def __init__(self) -> None:
        self._items: Dict[str, Dict[str, Dict[str, Dict[str, Any]]]] = {}

    async def save_dashboard_item(
        self,
        conversation_id: str,
        node_id: str,
        item: Dict[str, Any],
    ) -> None:
        node_items = self._items.setdefault(conversation_id, {}).setdefault(node_id, {})
        node_items[str(item.get("id", len(node_items)))] = copy.deepcopy(item)

    def get_items(self, conversation_id: str, node_id: Optional[str] = None) -> List[Dict[str, Any]]:
        nodes = self._items.get(conversation_id, {})
        if node_id is not None:
            return list(nodes.get(node_id, {}).values())
        return [item for items in nodes.values() for item in items.values()]


__all__ = [
    "WorkflowStore",
    "DashboardStore",
    "InMemoryWorkflowStore",
    "InMemoryDashboardStore",
]
