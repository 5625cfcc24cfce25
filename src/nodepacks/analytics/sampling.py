"""
Sampling Nodes - Split one table into a selected and a remaining part.
"""

from __future__ import annotations

import math
import random
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import field_validator

from node_sdk.basenode import NodeModel, require_column
from node_sdk.context import ExecutionContext
from node_sdk.errors import ValidationError
from node_sdk.settings import NodeSettings
from node_sdk.table import DataTable, DataTableBuilder, DataTableSpec

from .common import single_input


class PartitionMode(str, Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"
    TAKE_FROM_TOP = "take_from_top"
    LINEAR_SAMPLING = "linear_sampling"
    DRAW_RANDOMLY = "draw_randomly"
    STRATIFIED_SAMPLING = "stratified_sampling"


_PERCENT_MODES = {
    PartitionMode.RELATIVE,
    PartitionMode.DRAW_RANDOMLY,
    PartitionMode.STRATIFIED_SAMPLING,
}


class PartitionSettings(NodeSettings):
    partition_mode: PartitionMode = PartitionMode.RELATIVE
    partition_value: float = 50
    stratified_column: str = ""
    use_random_seed: bool = False
    random_seed: int = 12345

    @field_validator("partition_mode", mode="before")
    @classmethod
    def lower_mode(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    def check(self) -> None:
        if self.partition_value < 0:
            raise ValidationError("Partition value must not be negative", field="partition_value")
        if self.partition_mode in _PERCENT_MODES and self.partition_value > 100:
            raise ValidationError(
                "Percentage must be between 0 and 100", field="partition_value"
            )
        if self.partition_mode == PartitionMode.STRATIFIED_SAMPLING and not self.stratified_column.strip():
            raise ValidationError(
                "Stratified sampling requires a column", field="stratified_column"
            )


def linear_indices(size: int, count: int) -> List[int]:
    """Evenly spaced indices that always include the first and last row."""
    if size == 0 or count <= 0:
        return []
    if count >= size:
        return list(range(size))
    count = max(count, 2)
    step = (size - 1) / (count - 1)
    return sorted({round(i * step) for i in range(count)})


class PartitionNode(NodeModel):
    """
    Splits the input in two. Output 1 holds the selected rows, output 2
    the rest; both keep the input order and row keys.
    """

    settings_model = PartitionSettings

    def __init__(self) -> None:
        super().__init__(in_ports=1, out_ports=2)

    def get_output_label(self, index: int) -> str:
        return "Selected rows" if index == 0 else "Remaining rows"

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        spec = single_input(in_specs)
        if self.config.partition_mode == PartitionMode.STRATIFIED_SAMPLING:
            require_column(spec, self.config.stratified_column, role="Stratification column")
        return [spec, spec]

    def _rng(self) -> random.Random:
        return random.Random(self.config.random_seed if self.config.use_random_seed else None)

    def select(self, table: DataTable) -> List[int]:
        """Sorted indices of the rows that go to the first output."""
        size = table.size
        mode = self.config.partition_mode
        value = self.config.partition_value

        if mode in (PartitionMode.ABSOLUTE, PartitionMode.TAKE_FROM_TOP):
            return list(range(min(math.floor(value), size)))
        if mode == PartitionMode.RELATIVE:
            return list(range(math.floor(value / 100 * size)))
        if mode == PartitionMode.LINEAR_SAMPLING:
            return linear_indices(size, math.floor(value))
        if mode == PartitionMode.DRAW_RANDOMLY:
            count = math.floor(value / 100 * size)
            return sorted(self._rng().sample(range(size), count))

        column = table.spec.find_column_index(self.config.stratified_column)
        strata: Dict[Any, List[int]] = {}
        for position, row in enumerate(table.rows):
            strata.setdefault(row.cells[column].value, []).append(position)
        rng = self._rng()
        selected: List[int] = []
        for members in strata.values():
            count = math.floor(value / 100 * len(members))
            selected.extend(rng.sample(members, count))
        return sorted(selected)

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = inputs[0]
        chosen = set(self.select(table))
        ctx.check_canceled()

        first = DataTableBuilder(table.spec)
        second = DataTableBuilder(table.spec)
        for position, row in enumerate(table.rows):
            target = first if position in chosen else second
            target.add_row(row.key, row.values())

        ctx.set_progress(1.0, f"Selected {first.size} of {table.size} rows")
        return [first.close(), second.close()]


__all__ = [
    "PartitionMode",
    "PartitionSettings",
    "PartitionNode",
    "linear_indices",
]
