"""
Dashboard Items - Derived artifacts a node can emit for display.

Items are independent of a node's DataTable outputs. The engine forwards
them to the dashboard persistence collaborator keyed by
(conversation_id, node_id); nothing here performs persistence.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from statistics import fmean
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .table import CellType, ColumnSpec, DataTable


logger = logging.getLogger(__name__)


class DashboardItemType(str, Enum):
    TABLE = "table"
    STATISTICS = "statistics"
    CHART = "chart"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DashboardOutputConfig(_CamelModel):
    """Declares that one output port of a node feeds the dashboard."""
    port_index: int = Field(..., ge=0, description="Output port (0-based)")
    output_type: DashboardItemType = Field(DashboardItemType.TABLE)
    title: Optional[str] = Field(None, description="Custom item title")
    description: Optional[str] = Field(None, description="Custom item description")


class DashboardItemMetadata(_CamelModel):
    total_rows: Optional[int] = None
    total_columns: Optional[int] = None
    processed_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    node_label: str = ""


class ColumnStatistics(_CamelModel):
    column_name: str
    type: CellType
    null_count: int = 0
    distinct_count: int = 0
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None


class BaseDashboardItem(_CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    node_id: str
    node_name: str = ""
    metadata: DashboardItemMetadata = Field(default_factory=DashboardItemMetadata)

    def to_payload(self) -> Dict[str, Any]:
        """JSON form handed to the persistence collaborator."""
        return self.model_dump(mode="json", by_alias=True)


class TableDashboardItem(BaseDashboardItem):
    type: Literal["table"] = "table"
    columns: List[ColumnSpec] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    statistics: List[ColumnStatistics] = Field(default_factory=list)
    truncated: bool = False


class StatisticsDashboardItem(BaseDashboardItem):
    type: Literal["statistics"] = "statistics"
    summary: str = "Statistics"
    metrics: Dict[str, Any] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)


class ChartDashboardItem(BaseDashboardItem):
    type: Literal["chart"] = "chart"
    chart_type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    data: List[Dict[str, Any]] = Field(default_factory=list)


DashboardItem = Union[TableDashboardItem, StatisticsDashboardItem, ChartDashboardItem]


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, str) and value.lower() == "null")


def compute_column_statistics(table: DataTable) -> List[ColumnStatistics]:
    """Null/distinct counts for every column, plus min/max/mean for numbers."""
    stats: List[ColumnStatistics] = []
    for index, column in enumerate(table.spec.columns):
        values = [row.cells[index].value for row in table.rows]
        present = [v for v in values if not _is_missing(v)]
        entry = ColumnStatistics(
            column_name=column.name,
            type=column.type,
            null_count=len(values) - len(present),
            distinct_count=len({repr(v) for v in present}),
        )
        if column.type == CellType.NUMBER:
            numbers = [
                float(v) for v in present
                if isinstance(v, (int, float)) and not isinstance(v, bool)
            ]
            if numbers:
                entry.min = min(numbers)
                entry.max = max(numbers)
                entry.mean = fmean(numbers)
        stats.append(entry)
    return stats


def table_to_dashboard_item(
    table: DataTable,
    item_id: str,
    node_id: str,
    node_label: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    max_rows: Optional[int] = None,
) -> TableDashboardItem:
    records = table.to_records()
    truncated = max_rows is not None and len(records) > max_rows
    if truncated:
        records = records[:max_rows]
    return TableDashboardItem(
        id=item_id,
        title=title or f"{node_label} Output",
        description=description,
        node_id=node_id,
        node_name=node_label,
        columns=list(table.spec.columns),
        rows=records,
        statistics=compute_column_statistics(table),
        truncated=truncated,
        metadata=DashboardItemMetadata(
            total_rows=table.size,
            total_columns=len(table.spec.columns),
            node_label=node_label,
        ),
    )


def table_to_statistics_item(
    table: DataTable,
    item_id: str,
    node_id: str,
    node_label: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> StatisticsDashboardItem:
    column_stats = compute_column_statistics(table)
    return StatisticsDashboardItem(
        id=item_id,
        title=title or f"{node_label} Statistics",
        description=description,
        node_id=node_id,
        node_name=node_label,
        summary=f"{table.size} rows, {len(table.spec.columns)} columns",
        metrics={"rowCount": table.size, "columnCount": len(table.spec.columns)},
        details={s.column_name: s.model_dump(mode="json", by_alias=True) for s in column_stats},
        metadata=DashboardItemMetadata(
            total_rows=table.size,
            total_columns=len(table.spec.columns),
            node_label=node_label,
        ),
    )


def convert_output_to_dashboard_item(
    output: Any,
    config: DashboardOutputConfig,
    node_id: str,
    node_label: str,
    max_rows: Optional[int] = None,
) -> Optional[DashboardItem]:
    """
    Convert one node output to a dashboard item.

    Returns None when the output cannot be represented as the configured type.
    """
    item_id = f"{node_id}-port-{config.port_index}"
    title = config.title or node_label

    if isinstance(output, BaseDashboardItem):
        return output

    if not isinstance(output, DataTable):
        logger.warning(
            f"Cannot convert output of type {type(output).__name__} "
            f"to a {config.output_type.value} dashboard item"
        )
        return None

    if config.output_type == DashboardItemType.TABLE:
        return table_to_dashboard_item(
            output, item_id, node_id, node_label,
            title=title, description=config.description, max_rows=max_rows,
        )
    if config.output_type == DashboardItemType.STATISTICS:
        return table_to_statistics_item(
            output, item_id, node_id, node_label,
            title=title, description=config.description,
        )

    logger.warning(f"Chart items cannot be derived from a table on node {node_id}")
    return None


__all__ = [
    "DashboardItemType",
    "DashboardOutputConfig",
    "DashboardItemMetadata",
    "ColumnStatistics",
    "BaseDashboardItem",
    "TableDashboardItem",
    "StatisticsDashboardItem",
    "ChartDashboardItem",
    "DashboardItem",
    "compute_column_statistics",
    "table_to_dashboard_item",
    "table_to_statistics_item",
    "convert_output_to_dashboard_item",
]
