"""
Aggregation Nodes - Grouping and joining.

- GroupAndAggregateNode: group by columns and aggregate others
- JoinerNode: join two tables on one key column each
"""

from __future__ import annotations

import statistics
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from node_sdk.basenode import NodeModel, require_column
from node_sdk.context import ExecutionContext
from node_sdk.dashboard import DashboardItemType, DashboardOutputConfig
from node_sdk.errors import ConfigurationError, ValidationError
from node_sdk.settings import NodeSettings
from node_sdk.table import CellType, ColumnSpec, DataTable, DataTableSpec

from .common import build_spec, is_missing, is_number, json_list, json_object, single_input


# ==============================================================================
# Group and aggregate
# ==============================================================================

class AggregationMethod(str, Enum):
    SUM = "SUM"
    AVERAGE = "AVERAGE"
    MIN = "MIN"
    MAX = "MAX"
    COUNT = "COUNT"
    FIRST = "FIRST"
    LAST = "LAST"


NUMERIC_METHODS = {
    AggregationMethod.SUM,
    AggregationMethod.AVERAGE,
    AggregationMethod.MIN,
    AggregationMethod.MAX,
}


class Aggregation(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    column_name: str = Field(..., alias="columnName")
    method: AggregationMethod
    new_column_name: str = Field("", alias="newColumnName")

    @property
    def output_name(self) -> str:
        return self.new_column_name.strip() or f"{self.method.value.lower()}_{self.column_name}"


class GroupAndAggregateSettings(NodeSettings):
    group_columns: List[str] = Field(default_factory=list)
    aggregations: List[Aggregation] = Field(default_factory=list)

    @field_validator("group_columns", "aggregations", mode="before")
    @classmethod
    def decode_lists(cls, value: Any) -> Any:
        return json_list(value)

    def check(self) -> None:
        if not self.group_columns and not self.aggregations:
            raise ValidationError("Select at least one group column or aggregation")
        for aggregation in self.aggregations:
            if not aggregation.column_name.strip():
                raise ValidationError("Each aggregation must specify a column", field="aggregations")


def aggregate(values: List[Any], method: AggregationMethod) -> Any:
    present = [v for v in values if not is_missing(v)]
    if method == AggregationMethod.COUNT:
        return len(present)
    if method == AggregationMethod.FIRST:
        return present[0] if present else None
    if method == AggregationMethod.LAST:
        return present[-1] if present else None

    numbers = [v for v in present if is_number(v)]
    if method == AggregationMethod.SUM:
        return sum(numbers)
    if not numbers:
        return None
    if method == AggregationMethod.AVERAGE:
        return statistics.fmean(numbers)
    if method == AggregationMethod.MIN:
        return min(numbers)
    return max(numbers)


class GroupAndAggregateNode(NodeModel):
    """
    Groups rows by the group columns (in first-appearance order) and adds
    one column per aggregation.
    """

    settings_model = GroupAndAggregateSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=1)
        self.configure_dashboard_output([
            DashboardOutputConfig(port_index=0, output_type=DashboardItemType.TABLE),
        ])

    def _output_spec(self, spec: DataTableSpec) -> DataTableSpec:
        columns: List[ColumnSpec] = []
        for name in self.config.group_columns:
            index = require_column(spec, name, role="Group column")
            columns.append(spec.columns[index])

        for aggregation in self.config.aggregations:
            index = require_column(spec, aggregation.column_name, role="Aggregation column")
            source_type = spec.columns[index].type
            if aggregation.method in NUMERIC_METHODS and source_type != CellType.NUMBER:
                raise ConfigurationError(
                    f"{aggregation.method.value} requires a numeric column, "
                    f"'{aggregation.column_name}' is {source_type.value}"
                )
            if aggregation.method in (AggregationMethod.FIRST, AggregationMethod.LAST):
                output_type = source_type
            else:
                output_type = CellType.NUMBER
            columns.append(ColumnSpec(name=aggregation.output_name, type=output_type))
        return build_spec(columns)

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        return [self._output_spec(single_input(in_specs))]

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        spec = table.spec
        out_spec = self._output_spec(spec)
        group_indices = [spec.find_column_index(n) for n in self.config.group_columns]
        agg_indices = [spec.find_column_index(a.column_name) for a in self.config.aggregations]

        ctx.set_progress(0.1, "Grouping rows")
        groups: Dict[Tuple[Any, ...], List[List[Any]]] = {}
        for position, row in enumerate(table):
            if position % 1000 == 0:
                ctx.check_canceled()
            key = tuple(row.cells[i].value for i in group_indices)
            collected = groups.setdefault(key, [[] for _ in agg_indices])
            for slot, index in enumerate(agg_indices):
                collected[slot].append(row.cells[index].value)

        ctx.set_progress(0.5, f"Aggregating {len(groups)} groups")
        builder = ctx.create_data_table(out_spec)
        for number, (key, collected) in enumerate(groups.items(), start=1):
            values = list(key) + [
                aggregate(collected[slot], aggregation.method)
                for slot, aggregation in enumerate(self.config.aggregations)
            ]
            builder.add_row(f"group_{number}", values)

        ctx.set_progress(1.0, f"Produced {builder.size} groups")
        return [builder.close()]


# ==============================================================================
# Joiner
# ==============================================================================

class JoinType(str, Enum):
    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"


class JoinConfiguration(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    left_column: str = Field("", alias="leftColumn")
    right_column: str = Field("", alias="rightColumn")
    join_type: JoinType = Field(JoinType.INNER, alias="joinType")


class JoinerSettings(NodeSettings):
    join_1_2: JoinConfiguration = Field(default_factory=JoinConfiguration)
    column_prefix_1: str = "T1_"
    column_prefix_2: str = "T2_"

    @model_validator(mode="before")
    @classmethod
    def drop_third_table(cls, data: Any) -> Any:
        """Older clients stored an unused third-table join; it is ignored."""
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if k not in ("join_1_3", "column_prefix_3")}
        return data

    @field_validator("join_1_2", mode="before")
    @classmethod
    def decode_join(cls, value: Any) -> Any:
        return json_object(value)

    def check(self) -> None:
        if not self.join_1_2.left_column.strip() or not self.join_1_2.right_column.strip():
            raise ValidationError("Both join columns must be selected", field="join_1_2")
        if self.column_prefix_1 == self.column_prefix_2:
            raise ValidationError("Column prefixes must differ", field="column_prefix_2")


class JoinerNode(NodeModel):
    """
    Joins the second table onto the first.

    The right key column is dropped; other clashing names get the
    configured prefixes. Unmatched rows of RIGHT/FULL joins carry the
    right key in the left key column.
    """

    settings_model = JoinerSettings

    def __init__(self) -> None:
        super().__init__(in_ports=2, out_ports=1)

    def get_input_label(self, index: int) -> str:
        return "Left table" if index == 0 else "Right table"

    def _layout(self, left: DataTableSpec, right: DataTableSpec) -> Tuple[int, int, List[int], DataTableSpec]:
        join = self.config.join_1_2
        left_key = require_column(left, join.left_column, role="Left join column")
        right_key = require_column(right, join.right_column, role="Right join column")
        if left.columns[left_key].type != right.columns[right_key].type:
            raise ConfigurationError(
                f"Join columns have different types: '{join.left_column}' is "
                f"{left.columns[left_key].type.value}, '{join.right_column}' is "
                f"{right.columns[right_key].type.value}"
            )

        right_kept = [i for i in range(len(right.columns)) if i != right_key]
        right_names = {right.columns[i].name for i in right_kept}
        clashes = right_names & set(left.column_names)

        columns = [
            ColumnSpec(
                name=f"{self.config.column_prefix_1}{c.name}" if c.name in clashes else c.name,
                type=c.type,
            )
            for c in left.columns
        ]
        for i in right_kept:
            c = right.columns[i]
            columns.append(ColumnSpec(
                name=f"{self.config.column_prefix_2}{c.name}" if c.name in clashes else c.name,
                type=c.type,
            ))
        return left_key, right_key, right_kept, build_spec(columns)

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        if len(in_specs) < 2 or in_specs[0] is None or in_specs[1] is None:
            raise ConfigurationError("Joiner needs two input tables")
        return [self._layout(in_specs[0], in_specs[1])[3]]

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        left, right = inputs[0], inputs[1]
        left_key, right_key, right_kept, out_spec = self._layout(left.spec, right.spec)
        join_type = self.config.join_1_2.join_type
        left_width = len(left.spec.columns)

        index: Dict[Any, List[int]] = {}
        for position, row in enumerate(right.rows):
            value = row.cells[right_key].value
            if not is_missing(value):
                index.setdefault(value, []).append(position)

        builder = ctx.create_data_table(out_spec)
        matched_right = set()
        for position, row in enumerate(left.rows):
            if position % 1000 == 0:
                ctx.check_canceled()
            value = row.cells[left_key].value
            matches = [] if is_missing(value) else index.get(value, [])
            for match in matches:
                matched_right.add(match)
                right_row = right.rows[match]
                builder.add_row(None, row.values() + [right_row.cells[i].value for i in right_kept])
            if not matches and join_type in (JoinType.LEFT, JoinType.FULL):
                builder.add_row(None, row.values() + [None] * len(right_kept))

        if join_type in (JoinType.RIGHT, JoinType.FULL):
            for position, right_row in enumerate(right.rows):
                if position in matched_right:
                    continue
                values: List[Any] = [None] * left_width
                values[left_key] = right_row.cells[right_key].value
                builder.add_row(None, values + [right_row.cells[i].value for i in right_kept])

        ctx.set_progress(1.0, f"Joined {builder.size} rows")
        return [builder.close()]


__all__ = [
    "AggregationMethod",
    "Aggregation",
    "GroupAndAggregateSettings",
    "GroupAndAggregateNode",
    "aggregate",
    "JoinType",
    "JoinConfiguration",
    "JoinerSettings",
    "JoinerNode",
]
