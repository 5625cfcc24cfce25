"""
Visualization Nodes - Sinks that only feed the dashboard.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from node_sdk.basenode import NodeModel, require_column
from node_sdk.context import ExecutionContext
from node_sdk.dashboard import ChartDashboardItem, DashboardItemMetadata
from node_sdk.errors import ConfigurationError, ValidationError
from node_sdk.settings import NodeSettings
from node_sdk.table import CellType, DataTable, DataTableSpec

from .common import is_missing, json_object, single_input, sort_key


ChartType = Literal["scatter", "line", "bar", "area", "pie", "histogram"]


class DataMapping(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    x_column: str = Field("", alias="xColumn")
    y_column: str = Field("", alias="yColumn")
    series_column: str = Field("", alias="seriesColumn")


class ProcessingOptions(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    sort_by: str = Field("", alias="sortBy")
    sort_order: Literal["asc", "desc"] = Field("asc", alias="sortOrder")
    limit_rows: int = Field(1000, alias="limitRows", gt=0)


class ChartSettings(NodeSettings):
    chart_type: ChartType = Field("scatter", alias="chartType")
    title: str = "Chart Visualization"
    description: str = ""
    data_mapping: DataMapping = Field(default_factory=DataMapping, alias="dataMapping")
    processing_options: ProcessingOptions = Field(
        default_factory=ProcessingOptions, alias="processingOptions"
    )

    @field_validator("data_mapping", "processing_options", mode="before")
    @classmethod
    def decode_objects(cls, value: Any) -> Any:
        return json_object(value)

    def check(self) -> None:
        if not self.data_mapping.x_column.strip():
            raise ValidationError("Select a column for the X axis", field="dataMapping")
        if self.chart_type != "histogram" and not self.data_mapping.y_column.strip():
            raise ValidationError(
                f"A {self.chart_type} chart needs a column for the Y axis", field="dataMapping"
            )


class ChartNode(NodeModel):
    """Turns a column mapping into a chart dashboard item; has no table output."""

    settings_model = ChartSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=0)

    def _check_columns(self, spec: DataTableSpec) -> None:
        mapping = self.config.data_mapping
        require_column(spec, mapping.x_column, role="X column")
        if mapping.y_column:
            index = require_column(spec, mapping.y_column, role="Y column")
            if self.config.chart_type != "histogram" and spec.columns[index].type != CellType.NUMBER:
                raise ConfigurationError(
                    f"Y column '{mapping.y_column}' must be numeric, "
                    f"got {spec.columns[index].type.value}"
                )
        if mapping.series_column:
            require_column(spec, mapping.series_column, role="Series column")
        if self.config.processing_options.sort_by:
            require_column(spec, self.config.processing_options.sort_by, role="Sort column")

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        self._check_columns(single_input(in_specs))
        return []

    def chart_points(self, table: DataTable) -> List[Dict[str, Any]]:
        """Rows with an X value, projected to x/y/series and sorted and limited."""
        mapping = self.config.data_mapping
        options = self.config.processing_options
        spec = table.spec
        x = spec.find_column_index(mapping.x_column)
        y = spec.find_column_index(mapping.y_column) if mapping.y_column else None
        series = spec.find_column_index(mapping.series_column) if mapping.series_column else None

        rows = [row for row in table.rows if not is_missing(row.cells[x].value)]
        if options.sort_by:
            index = spec.find_column_index(options.sort_by)
            cell_type = spec.columns[index].type
            present = [r for r in rows if not is_missing(r.cells[index].value)]
            missing = [r for r in rows if is_missing(r.cells[index].value)]
            present.sort(
                key=lambda r: sort_key(r.cells[index].value, cell_type),
                reverse=options.sort_order == "desc",
            )
            rows = present + missing

        points = []
        for row in rows[:options.limit_rows]:
            point: Dict[str, Any] = {"x": row.cells[x].value}
            if y is not None:
                point["y"] = row.cells[y].value
            if series is not None:
                point["series"] = row.cells[series].value
            points.append(point)
        return points

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        self._check_columns(table.spec)
        points = self.chart_points(table)
        mapping = self.config.data_mapping

        ctx.add_dashboard_item(ChartDashboardItem(
            id=f"{ctx.node_id}-chart",
            title=self.config.title,
            description=self.config.description or None,
            node_id=ctx.node_id,
            chart_type=self.config.chart_type,
            config={
                "xColumn": mapping.x_column,
                "yColumn": mapping.y_column,
                "seriesColumn": mapping.series_column,
                "truncated": len(points) < table.size,
            },
            data=points,
            metadata=DashboardItemMetadata(
                total_rows=table.size,
                total_columns=len(table.spec.columns),
            ),
        ))
        ctx.set_progress(1.0, f"Charted {len(points)} points")
        return []


__all__ = [
    "ChartType",
    "DataMapping",
    "ProcessingOptions",
    "ChartSettings",
    "ChartNode",
]
