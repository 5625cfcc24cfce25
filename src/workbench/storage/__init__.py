"""Storage package."""
from workbench.storage.redis_store import RedisDashboardStore, RedisWorkflowStore

__all__ = ["RedisDashboardStore", "RedisWorkflowStore"]
