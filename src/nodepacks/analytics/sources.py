"""
Source Nodes - Nodes without inputs that produce a table.

- CsvInputNode: CSV from inline text, a local file or a URL
- TableCreatorNode: a small table typed in as a grid
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import Field, field_validator

from node_sdk.basenode import NodeModel
from node_sdk.context import ExecutionContext
from node_sdk.dashboard import DashboardItemType, DashboardOutputConfig
from node_sdk.errors import ValidationError
from node_sdk.http import fetch_text
from node_sdk.settings import NodeSettings
from node_sdk.table import (
    ColumnSpec,
    DataTable,
    DataTableBuilder,
    DataTableSpec,
    coerce_value,
    infer_column_type,
)

from .common import json_list, unique_names


logger = logging.getLogger(__name__)


def _typed_table(headers: Sequence[str], raw_rows: Sequence[Sequence[Any]]) -> DataTable:
    """Infer a type per column, then coerce every value to it."""
    names = unique_names(list(headers))
    width = len(names)
    rows = [list(row[:width]) + [None] * (width - len(row)) for row in raw_rows]

    columns = [
        ColumnSpec(name=name, type=infer_column_type(row[i] for row in rows))
        for i, name in enumerate(names)
    ]
    builder = DataTableBuilder(DataTableSpec(columns=tuple(columns)))
    for row in rows:
        builder.add_row(None, [coerce_value(v, c.type) for v, c in zip(row, columns)])
    return builder.close()


def parse_csv(text: str, delimiter: str = ",", has_header: bool = True) -> DataTable:
    """Parse CSV text into a typed table; blank lines are ignored."""
    records = [
        row for row in csv.reader(io.StringIO(text), delimiter=delimiter)
        if any(cell.strip() for cell in row)
    ]
    if not records:
        return DataTable.empty()

    if has_header:
        headers, body = records[0], records[1:]
    else:
        width = max(len(row) for row in records)
        headers, body = [f"column_{i + 1}" for i in range(width)], records

    ragged = sum(1 for row in body if len(row) != len(headers))
    if ragged:
        logger.warning(f"{ragged} CSV rows do not have {len(headers)} fields; padded or truncated")
    return _typed_table(headers, body)


# ==============================================================================
# CSV input
# ==============================================================================

class CsvInputSettings(NodeSettings):
    csv_source_type: Optional[Literal["text", "file", "url"]] = None
    csv_text: str = ""
    file_path: str = ""
    csv_url: str = ""
    csv_file_name: str = ""
    delimiter: str = Field(",", min_length=1, max_length=1)
    has_header: bool = True
    timeout_s: Optional[float] = Field(None, gt=0)

    def source(self) -> Tuple[str, str]:
        """(kind, value) of the configured source."""
        candidates = {"text": self.csv_text, "file": self.file_path, "url": self.csv_url}
        if self.csv_source_type is not None:
            return self.csv_source_type, candidates[self.csv_source_type]
        for kind, value in candidates.items():
            if value.strip():
                return kind, value
        return "text", ""

    def check(self) -> None:
        kind, value = self.source()
        if not value.strip():
            field = {"text": "csv_text", "file": "file_path", "url": "csv_url"}[kind]
            raise ValidationError(f"No CSV {kind} configured", field=field)
        if kind == "url" and not value.startswith(("http://", "https://")):
            raise ValidationError(f"CSV URL must start with http:// or https://: {value}", field="csv_url")


class CsvInputNode(NodeModel):
    """Reads CSV data; column types are inferred from the first values."""

    settings_model = CsvInputSettings

    def __init__(self) -> None:
        super().__init__(in_ports=0, out_ports=1)
        self.configure_dashboard_output([
            DashboardOutputConfig(port_index=0, output_type=DashboardItemType.TABLE, title="CSV Data"),
        ])

    def get_output_label(self, index: int) -> str:
        return "CSV table"

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        kind, value = self.config.source()
        if kind == "text" and value.strip():
            return [parse_csv(value, self.config.delimiter, self.config.has_header).spec]
        return [None]

    async def _read(self, ctx: ExecutionContext) -> str:
        kind, value = self.config.source()
        if kind == "file":
            return await asyncio.to_thread(Path(value).read_text, encoding="utf-8")
        if kind == "url":
            return await asyncio.to_thread(fetch_text, value, self.config.timeout_s or ctx.http_timeout)
        return value

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        ctx.set_progress(0.1, "Reading CSV data")
        text = await self._read(ctx)
        ctx.check_canceled()

        ctx.set_progress(0.5, "Parsing CSV data")
        table = parse_csv(text, self.config.delimiter, self.config.has_header)
        ctx.set_progress(1.0, f"Loaded {table.size} rows")
        return [table]


# ==============================================================================
# Table creator
# ==============================================================================

class TableCreatorSettings(NodeSettings):
    headers: List[str] = Field(default_factory=lambda: ["Column 1"])
    cells: List[List[Any]] = Field(default_factory=list)
    grid_size: Optional[Dict[str, int]] = Field(None, alias="gridSize")

    @field_validator("headers", "cells", mode="before")
    @classmethod
    def decode_lists(cls, value: Any) -> Any:
        return json_list(value)

    def check(self) -> None:
        if not self.headers:
            raise ValidationError("At least one header is required", field="headers")
        for i, row in enumerate(self.cells):
            if len(row) > len(self.headers):
                raise ValidationError(
                    f"Row {i + 1} has {len(row)} cells but there are {len(self.headers)} headers",
                    field="cells",
                )


class TableCreatorNode(NodeModel):
    settings_model = TableCreatorSettings

    def __init__(self) -> None:
        super().__init__(in_ports=0, out_ports=1)

    def _table(self) -> DataTable:
        rows = [row for row in self.config.cells if any(v not in (None, "") for v in row)]
        return _typed_table(self.config.headers, rows)

    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        return [self._table().spec]

    async def execute(self, inputs: Sequence[DataTable], ctx: ExecutionContext) -> List[DataTable]:
        table = self._table()
        ctx.set_progress(1.0, f"Created {table.size} rows")
        return [table]


__all__ = [
    "parse_csv",
    "CsvInputSettings",
    "CsvInputNode",
    "TableCreatorSettings",
    "TableCreatorNode",
]
