"""
Transform Nodes - One table in, one table out.

- FilterNode: keep rows matching conditions
- ColumnFilterNode: keep or exclude columns
- SorterNode: multi-column sort
- MissingValuesNode: fill or drop missing values
- NormalizerNode: rescale numeric columns
"""

from __future__ import annotations

import math
import statistics
from collections import Counter
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from node_sdk.basenode import NodeModel, require_column
from node_sdk.context import ExecutionContext
from node_sdk.dashboard import DashboardItemMetadata, StatisticsDashboardItem
from node_sdk.errors import ConfigurationError, ValidationError
from node_sdk.settings import NodeSettings
from node_sdk.table import CellType, DataTable, DataTableBuilder, DataTableSpec, coerce_value

from .common import is_missing, is_number, json_list, numeric_values, single_input, sort_key


def _copy_rows(table: DataTable, spec: DataTableSpec, rows, columns: Optional[List[int]] = None) -> DataTable:
    builder = DataTableBuilder(spec)
    for row in rows:
        values = row.values() if columns is None else [row.cells[i].value for i in columns]
        builder.add_row(row.key, values)
    return builder.close()


# ==============================================================================
# Row filter
# ==============================================================================

FilterOperator = Literal[
    "=", "!=", ">", ">=", "<", "<=",
    "contains", "not contains", "starts with", "ends with",
    "is empty", "is not empty",
]

_ORDERING = {">", ">=", "<", "<="}
_UNARY = {"is empty", "is not empty"}


class FilterCondition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    column: str = ""
    operator: FilterOperator = "="
    value: Any = ""


class FilterSettings(NodeSettings):
    conditions: List[FilterCondition] = Field(default_factory=list)
    logical_operator: Literal["AND", "OR"] = Field("AND", alias="logicalOperator")

    @model_validator(mode="before")
    @classmethod
    def unflatten_conditions(cls, data: Any) -> Any:
        """Accept ``conditionCount`` + ``condition_<i>_*`` keys from older clients."""
        if not isinstance(data, dict) or "conditionCount" not in data:
            return data
        data = dict(data)
        count = int(data.pop("conditionCount") or 0)
        conditions = [
            {
                "column": data.get(f"condition_{i}_column", ""),
                "operator": data.get(f"condition_{i}_operator", "="),
                "value": data.get(f"condition_{i}_value", ""),
            }
            for i in range(count)
        ]
        data = {k: v for k, v in data.items() if not k.startswith("condition_")}
        data.setdefault("conditions", conditions)
        return data

    @field_validator("conditions", mode="before")
    @classmethod
    def decode_conditions(cls, value: Any) -> Any:
        return json_list(value)

    def check(self) -> None:
        for i, condition in enumerate(self.conditions):
            if not condition.column.strip():
                raise ValidationError(f"Condition {i + 1} has no column", field="conditions")


def _compare_value(raw: Any, cell_type: CellType) -> Any:
    if cell_type in (CellType.NUMBER, CellType.BOOLEAN):
        return coerce_value(raw, cell_type)
    return "" if raw is None else str(raw)


def evaluate_condition(value: Any, cell_type: CellType, operator: str, target: Any) -> bool:
    """Whether one cell value satisfies one condition."""
    if operator == "is empty":
        return is_missing(value)
    if operator == "is not empty":
        return not is_missing(value)
    if is_missing(value):
        return operator in ("!=", "not contains")

    if operator in ("contains", "not contains", "starts with", "ends with"):
        text, needle = str(value).lower(), str(target).lower()
        if operator == "contains":
            return needle in text
        if operator == "not contains":
            return needle not in text
        if operator == "starts with":
            return text.startswith(needle)
        return text.endswith(needle)

    if cell_type not in (CellType.NUMBER, CellType.BOOLEAN):
        value = str(value)
    if operator == "=":
        return value == target
    if operator == "!=":
        return value != target
    try:
        if operator == ">":
            return value > target
        if operator == ">=":
            return value >= target
        if operator == "<":
            return value < target
        return value <= target
    except TypeError:
        return False


class FilterNode(NodeModel):
    """Keeps rows whose conditions hold (all for AND, any for OR)."""

    settings_model = FilterSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=1)

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        spec = single_input(in_specs)
        for condition in self.config.conditions:
            index = require_column(spec, condition.column, role="Filter column")
            column_type = spec.columns[index].type
            if (
                column_type == CellType.NUMBER
                and condition.operator in _ORDERING
                and coerce_value(condition.value, CellType.NUMBER) is None
            ):
                raise ConfigurationError(
                    f"Value '{condition.value}' is not a number but column "
                    f"'{condition.column}' is numeric"
                )
        return [spec]

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        spec = table.spec
        checks = []
        for condition in self.config.conditions:
            index = spec.find_column_index(condition.column)
            cell_type = spec.columns[index].type
            target = None if condition.operator in _UNARY else _compare_value(condition.value, cell_type)
            checks.append((index, cell_type, condition.operator, target))

        combine = all if self.config.logical_operator == "AND" else any
        builder = ctx.create_data_table(spec)
        for position, row in enumerate(table):
            if position % 1000 == 0:
                ctx.check_canceled()
                ctx.set_progress(position / max(table.size, 1), f"Filtering row {position}")
            if not checks or combine(
                evaluate_condition(row.cells[i].value, t, op, target) for i, t, op, target in checks
            ):
                builder.add_row(row.key, row.cells)

        ctx.set_progress(1.0, f"Kept {builder.size} of {table.size} rows")
        return [builder.close()]


# ==============================================================================
# Column filter
# ==============================================================================

class ColumnFilterSettings(NodeSettings):
    selected_columns: List[str] = Field(default_factory=list)
    filter_mode: Literal["keep", "exclude"] = Field("keep", alias="filterMode")

    @model_validator(mode="before")
    @classmethod
    def unflatten_columns(cls, data: Any) -> Any:
        """Accept ``selectedColumnCount`` + ``selectedColumn_<i>`` keys."""
        if not isinstance(data, dict) or "selectedColumnCount" not in data:
            return data
        data = dict(data)
        count = int(data.pop("selectedColumnCount") or 0)
        columns = [data.get(f"selectedColumn_{i}", "") for i in range(count)]
        data = {k: v for k, v in data.items() if not k.startswith("selectedColumn_")}
        data.setdefault("selected_columns", [c for c in columns if c])
        return data

    @field_validator("selected_columns", mode="before")
    @classmethod
    def decode_columns(cls, value: Any) -> Any:
        return json_list(value)


class ColumnFilterNode(NodeModel):
    settings_model = ColumnFilterSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=1)

    def _kept(self, spec: DataTableSpec) -> List[int]:
        for name in self.config.selected_columns:
            require_column(spec, name, role="Selected column")
        selected = set(self.config.selected_columns)
        keep = self.config.filter_mode == "keep"
        return [i for i, c in enumerate(spec.columns) if (c.name in selected) == keep]

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        spec = single_input(in_specs)
        return [DataTableSpec(columns=tuple(spec.columns[i] for i in self._kept(spec)))]

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        kept = self._kept(table.spec)
        spec = DataTableSpec(columns=tuple(table.spec.columns[i] for i in kept))
        return [_copy_rows(table, spec, table.rows, kept)]


# ==============================================================================
# Sorter
# ==============================================================================

class SortColumn(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    column_name: str = Field(..., alias="columnName")
    direction: Literal["ASC", "DESC"] = "ASC"


class SorterSettings(NodeSettings):
    sort_columns: List[SortColumn] = Field(default_factory=list)

    @field_validator("sort_columns", mode="before")
    @classmethod
    def decode_columns(cls, value: Any) -> Any:
        return json_list(value)


class SorterNode(NodeModel):
    """Stable multi-column sort; missing values always sort last."""

    settings_model = SorterSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=1)

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        spec = single_input(in_specs)
        for sort_column in self.config.sort_columns:
            require_column(spec, sort_column.column_name, role="Sort column")
        return [spec]

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        rows = list(table.rows)
        for sort_column in reversed(self.config.sort_columns):
            ctx.check_canceled()
            index = table.spec.find_column_index(sort_column.column_name)
            cell_type = table.spec.columns[index].type
            present = [r for r in rows if not is_missing(r.cells[index].value)]
            missing = [r for r in rows if is_missing(r.cells[index].value)]
            present.sort(
                key=lambda r: sort_key(r.cells[index].value, cell_type),
                reverse=sort_column.direction == "DESC",
            )
            rows = present + missing
        return [_copy_rows(table, table.spec, rows)]


# ==============================================================================
# Missing values
# ==============================================================================

class MissingValueMethod(str, Enum):
    MEAN = "MEAN"
    MEDIAN = "MEDIAN"
    MOST_FREQUENT = "MOST_FREQUENT"
    FIXED_VALUE = "FIXED_VALUE"
    REMOVE_ROWS = "REMOVE_ROWS"


_NUMERIC_METHODS = {MissingValueMethod.MEAN, MissingValueMethod.MEDIAN}


class ColumnMissingValueConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    column_name: str = Field(..., alias="columnName")
    method: MissingValueMethod
    fixed_value: Any = Field(None, alias="fixedValue")


class MissingValuesSettings(NodeSettings):
    column_configs: List[ColumnMissingValueConfig] = Field(default_factory=list)
    default_method: MissingValueMethod = MissingValueMethod.MOST_FREQUENT

    @field_validator("column_configs", mode="before")
    @classmethod
    def decode_configs(cls, value: Any) -> Any:
        return json_list(value)

    def check(self) -> None:
        if self.default_method == MissingValueMethod.FIXED_VALUE:
            raise ValidationError(
                "FIXED_VALUE needs a value and can only be used per column", field="default_method"
            )
        seen = set()
        for config in self.column_configs:
            if config.column_name in seen:
                raise ValidationError(
                    f"Column '{config.column_name}' is configured twice", field="column_configs"
                )
            seen.add(config.column_name)
            if config.method == MissingValueMethod.FIXED_VALUE and config.fixed_value is None:
                raise ValidationError(
                    f"Column '{config.column_name}' uses FIXED_VALUE without a value",
                    field="column_configs",
                )


class MissingValuesNode(NodeModel):
    settings_model = MissingValuesSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=1)

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        spec = single_input(in_specs)
        for config in self.config.column_configs:
            index = require_column(spec, config.column_name)
            column_type = spec.columns[index].type
            if config.method in _NUMERIC_METHODS and column_type != CellType.NUMBER:
                raise ConfigurationError(
                    f"{config.method.value} requires a numeric column, "
                    f"'{config.column_name}' is {column_type.value}"
                )
            if config.method == MissingValueMethod.FIXED_VALUE and coerce_value(config.fixed_value, column_type) is None:
                raise ConfigurationError(
                    f"Fixed value '{config.fixed_value}' is not a valid {column_type.value}"
                )
        return [spec]

    def _method_for(self, name: str, column_type: CellType) -> ColumnMissingValueConfig:
        for config in self.config.column_configs:
            if config.column_name == name:
                return config
        method = self.config.default_method
        if method in _NUMERIC_METHODS and column_type != CellType.NUMBER:
            method = MissingValueMethod.MOST_FREQUENT
        return ColumnMissingValueConfig(column_name=name, method=method)

    @staticmethod
    def _replacement(values: List[Any], config: ColumnMissingValueConfig, column_type: CellType) -> Any:
        present = [v for v in values if not is_missing(v)]
        if config.method == MissingValueMethod.FIXED_VALUE:
            return coerce_value(config.fixed_value, column_type)
        if not present:
            return None
        if config.method == MissingValueMethod.MEAN:
            return statistics.fmean(v for v in present if is_number(v))
        if config.method == MissingValueMethod.MEDIAN:
            return statistics.median(v for v in present if is_number(v))
        return Counter(present).most_common(1)[0][0]

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        spec = table.spec
        rows = list(table.rows)

        fills: Dict[int, Any] = {}
        for index, column in enumerate(spec.columns):
            config = self._method_for(column.name, column.type)
            if config.method == MissingValueMethod.REMOVE_ROWS:
                rows = [r for r in rows if not is_missing(r.cells[index].value)]
            else:
                fills[index] = self._replacement(
                    [r.cells[index].value for r in table.rows], config, column.type,
                )
        ctx.check_canceled()

        builder = ctx.create_data_table(spec)
        for row in rows:
            values = [
                fills.get(i) if is_missing(v) and i in fills else v
                for i, v in enumerate(row.values())
            ]
            builder.add_row(row.key, values)
        return [builder.close()]


# ==============================================================================
# Normalizer
# ==============================================================================

class NormalizationMethod(str, Enum):
    MIN_MAX = "MIN_MAX"
    Z_SCORE = "Z_SCORE"
    DECIMAL_SCALING = "DECIMAL_SCALING"


class NormalizerSettings(NodeSettings):
    number_columns: List[str] = Field(default_factory=list)
    normalization_method: NormalizationMethod = NormalizationMethod.MIN_MAX
    min_value: float = 0.0
    max_value: float = 1.0

    @field_validator("number_columns", mode="before")
    @classmethod
    def decode_columns(cls, value: Any) -> Any:
        return json_list(value)

    def check(self) -> None:
        if self.normalization_method == NormalizationMethod.MIN_MAX and self.min_value >= self.max_value:
            raise ValidationError(
                f"min_value ({self.min_value}) must be less than max_value ({self.max_value})",
                field="min_value",
            )


def _column_summary(values: List[float]) -> Dict[str, Optional[float]]:
    if not values:
        return {"count": 0, "min": None, "max": None, "mean": None, "std": None}
    return {
        "count": len(values),
        "min": min(values),
        "max": max(values),
        "mean": statistics.fmean(values),
        "std": statistics.pstdev(values),
    }


class NormalizerNode(NodeModel):
    """
    Rescales numeric columns.

    With no columns selected every numeric column is normalized. Emits a
    statistics dashboard item with the pre-normalization summary.
    """

    settings_model = NormalizerSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=1)

    def _columns(self, spec: DataTableSpec) -> List[int]:
        if not self.config.number_columns:
            return [i for i, c in enumerate(spec.columns) if c.type == CellType.NUMBER]
        return [
            require_column(spec, name, CellType.NUMBER, role="Normalized column")
            for name in self.config.number_columns
        ]

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        spec = single_input(in_specs)
        self._columns(spec)
        return [spec]

    def _scaler(self, values: List[float]):
        method = self.config.normalization_method
        if not values:
            return lambda v: v
        if method == NormalizationMethod.MIN_MAX:
            low, high = min(values), max(values)
            new_low, new_high = self.config.min_value, self.config.max_value
            if high == low:
                return lambda v: new_low
            return lambda v: new_low + (v - low) / (high - low) * (new_high - new_low)
        if method == NormalizationMethod.Z_SCORE:
            mean, std = statistics.fmean(values), statistics.pstdev(values)
            if std == 0:
                return lambda v: 0.0
            return lambda v: (v - mean) / std
        largest = max(abs(v) for v in values)
        digits = 0 if largest == 0 else max(math.floor(math.log10(largest)) + 1, 0)
        while largest / 10 ** digits >= 1:
            digits += 1
        return lambda v: v / 10 ** digits

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        columns = self._columns(table.spec)

        scalers = {}
        summaries = {}
        for index in columns:
            values = numeric_values(table.rows, index)
            scalers[index] = self._scaler(values)
            summaries[table.spec.columns[index].name] = _column_summary(values)

        builder = ctx.create_data_table(table.spec)
        for row in table:
            builder.add_row(row.key, [
                scalers[i](v) if i in scalers and is_number(v) else v
                for i, v in enumerate(row.values())
            ])
        result = builder.close()

        method = self.config.normalization_method.value
        ctx.add_dashboard_item(StatisticsDashboardItem(
            id=f"{ctx.node_id}-statistics",
            title="Normalization Statistics",
            node_id=ctx.node_id,
            summary=f"{method} normalization of {len(columns)} columns",
            metrics={"method": method, "columns": len(columns), "rows": table.size},
            details=summaries,
            metadata=DashboardItemMetadata(
                total_rows=table.size, total_columns=len(table.spec.columns),
            ),
        ))
        return [result]


__all__ = [
    "FilterCondition",
    "FilterSettings",
    "FilterNode",
    "evaluate_condition",
    "ColumnFilterSettings",
    "ColumnFilterNode",
    "SortColumn",
    "SorterSettings",
    "SorterNode",
    "MissingValueMethod",
    "ColumnMissingValueConfig",
    "MissingValuesSettings",
    "MissingValuesNode",
    "NormalizationMethod",
    "NormalizerSettings",
    "NormalizerNode",
]
