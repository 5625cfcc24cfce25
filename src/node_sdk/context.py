"""
Execution Context - Per-run services handed to a node during execute().

Provides:
- Table construction (create_data_table)
- Progress reporting (set_progress)
- Cooperative cancellation (check_canceled)
- Dashboard item staging (add_dashboard_item)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .errors import CancellationError
from .http import DEFAULT_TIMEOUT
from .table import DataTableBuilder, DataTableSpec


logger = logging.getLogger(__name__)


ProgressCallback = Callable[[str, float, Optional[str]], None]


class CancellationToken:
    """Workflow-scoped cancellation flag shared by every context of a run."""

    def __init__(self) -> None:
        self._canceled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._canceled = True
        self.reason = reason

    @property
    def is_canceled(self) -> bool:
        return self._canceled


@dataclass(frozen=True)
class ProgressUpdate:
    """One progress report from a node."""
    fraction: float
    message: Optional[str] = None


class ExecutionContext:
    """
    Services available to a node while it executes.

    A fresh context is created for every node invocation; the cancellation
    token is shared across the whole run.
    """

    def __init__(
        self,
        node_id: str,
        run_id: Optional[str] = None,
        conversation_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_progress: Optional[ProgressCallback] = None,
        http_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.node_id = node_id
        self.http_timeout = http_timeout
        self.run_id = run_id
        self.conversation_id = conversation_id
        self._cancel_token = cancel_token or CancellationToken()
        self._on_progress = on_progress
        self._progress: List[ProgressUpdate] = []
        self._dashboard_items: List[Any] = []

    def create_data_table(self, spec: DataTableSpec) -> DataTableBuilder:
        return DataTableBuilder(spec)

    def set_progress(self, fraction: float, message: Optional[str] = None) -> None:
        """Report progress in [0, 1]; delivered in the order produced."""
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"Progress must be within [0, 1], got {fraction}")
        update = ProgressUpdate(fraction=float(fraction), message=message)
        self._progress.append(update)
        logger.debug(f"Node {self.node_id} progress {fraction:.0%}: {message or ''}")
        if self._on_progress is not None:
            self._on_progress(self.node_id, update.fraction, message)

    def check_canceled(self) -> None:
        if self._cancel_token.is_canceled:
            raise CancellationError(
                self._cancel_token.reason or "Execution canceled",
                node_id=self.node_id,
            )

    @property
    def is_canceled(self) -> bool:
        return self._cancel_token.is_canceled

    def add_dashboard_item(self, item: Any) -> None:
        self._dashboard_items.append(item)

    @property
    def dashboard_items(self) -> List[Any]:
        return list(self._dashboard_items)

    @property
    def progress(self) -> List[ProgressUpdate]:
        return list(self._progress)


__all__ = [
    "CancellationToken",
    "ExecutionContext",
    "ProgressCallback",
    "ProgressUpdate",
]
