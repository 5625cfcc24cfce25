"""
Data Tables - Typed, columnar data flowing between nodes.

A DataTable is the unit of data exchanged on every edge:
- ColumnSpec / DataTableSpec: the table's schema
- Cell: a tagged value whose type follows the owning column
- DataRow: one keyed row of cells
- DataTableBuilder: append-only construction, closed into an immutable DataTable

Closed tables are never copied; downstream nodes share read-only references.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CellType(str, Enum):
    """Declared type of a column (and of every cell in it)."""
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    DATE = "date"


class Cell(BaseModel):
    """
    A single typed value.

    ``value`` is None for a missing value. Dates are carried as ISO strings
    so a cell is always JSON-serializable.
    """
    model_config = ConfigDict(frozen=True)

    type: CellType = Field(..., description="Cell type, matching the column type")
    value: Any = Field(None, description="Raw value (None = missing)")

    def get_value(self) -> Any:
        return self.value

    @property
    def is_missing(self) -> bool:
        return self.value is None or self.value == ""

    @classmethod
    def missing(cls, cell_type: Union[CellType, str]) -> "Cell":
        return cls(type=cell_type, value=None)


class ColumnSpec(BaseModel):
    """Name and type of one column."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Column name")
    type: CellType = Field(CellType.STRING, description="Column type")


class DataTableSpec(BaseModel):
    """
    Ordered column specs of a table.

    Column names are unique within a spec.
    """
    model_config = ConfigDict(frozen=True)

    columns: Tuple[ColumnSpec, ...] = Field(default_factory=tuple)

    @field_validator("columns")
    @classmethod
    def _unique_names(cls, columns: Tuple[ColumnSpec, ...]) -> Tuple[ColumnSpec, ...]:
        seen = set()
        for column in columns:
            if column.name in seen:
                raise ValueError(f"Duplicate column name: '{column.name}'")
            seen.add(column.name)
        return columns

    @classmethod
    def of(cls, *columns: Tuple[str, Union[CellType, str]]) -> "DataTableSpec":
        """Build a spec from (name, type) pairs."""
        return cls(columns=tuple(ColumnSpec(name=name, type=type_) for name, type_ in columns))

    def find_column_index(self, name: str) -> int:
        """Index of the column called ``name``, or -1."""
        for index, column in enumerate(self.columns):
            if column.name == name:
                return index
        return -1

    def get_column(self, name: str) -> Optional[ColumnSpec]:
        index = self.find_column_index(name)
        return self.columns[index] if index >= 0 else None

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def __len__(self) -> int:
        return len(self.columns)

    def to_dict(self) -> Dict[str, Any]:
        return {"columns": [column.model_dump(mode="json") for column in self.columns]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DataTableSpec":
        return cls.model_validate(data)


class DataRow:
    """One keyed row; ``len(cells)`` always equals the spec's column count."""

    __slots__ = ("key", "cells")

    def __init__(self, key: str, cells: Sequence[Cell]) -> None:
        self.key = key
        self.cells: Tuple[Cell, ...] = tuple(cells)

    def get_cell(self, index: int) -> Cell:
        return self.cells[index]

    def get_value(self, index: int) -> Any:
        return self.cells[index].value

    def values(self) -> List[Any]:
        return [cell.value for cell in self.cells]

    def __repr__(self) -> str:
        return f"DataRow(key={self.key!r}, values={self.values()!r})"


class DataTable:
    """
    Immutable, closed table.

    Built only through DataTableBuilder (or the from_* helpers that use it).
    """

    __slots__ = ("_spec", "_rows", "_index")

    def __init__(self, spec: DataTableSpec, rows: Sequence[DataRow]) -> None:
        self._spec = spec
        self._rows: Tuple[DataRow, ...] = tuple(rows)
        self._index: Dict[str, int] = {row.key: i for i, row in enumerate(self._rows)}

    @property
    def spec(self) -> DataTableSpec:
        return self._spec

    @property
    def rows(self) -> Tuple[DataRow, ...]:
        return self._rows

    @property
    def size(self) -> int:
        return len(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[DataRow]:
        return iter(self._rows)

    def for_each(self, callback: Callable[[DataRow], Any]) -> None:
        for row in self._rows:
            callback(row)

    def get_row(self, key: str) -> Optional[DataRow]:
        index = self._index.get(key)
        return self._rows[index] if index is not None else None

    def column_values(self, name: str) -> List[Any]:
        """All values of one column, in row order."""
        index = self._spec.find_column_index(name)
        if index < 0:
            raise KeyError(f"Column '{name}' not found")
        return [row.cells[index].value for row in self._rows]

    def to_records(self) -> List[Dict[str, Any]]:
        names = self._spec.column_names
        return [dict(zip(names, row.values())) for row in self._rows]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form used when results are persisted with the workflow."""
        return {
            "spec": self._spec.to_dict(),
            "rows": [{"key": row.key, "cells": row.values()} for row in self._rows],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DataTable":
        spec = DataTableSpec.from_dict(data.get("spec") or {})
        builder = DataTableBuilder(spec)
        for row in data.get("rows") or []:
            builder.add_row(row.get("key"), row.get("cells") or [])
        return builder.close()

    @classmethod
    def from_records(
        cls,
        spec: DataTableSpec,
        records: Iterable[Mapping[str, Any]],
    ) -> "DataTable":
        builder = DataTableBuilder(spec)
        for record in records:
            builder.add_row(None, [record.get(name) for name in spec.column_names])
        return builder.close()

    @classmethod
    def empty(cls, spec: Optional[DataTableSpec] = None) -> "DataTable":
        return cls(spec or DataTableSpec(), ())

    def __repr__(self) -> str:
        return f"DataTable(columns={self._spec.column_names!r}, size={self.size})"


class DataTableBuilder:
    """
    Append-only table builder.

    Raw values passed to add_row are wrapped into cells of the column's type
    as-is; coercion belongs to the node producing them.
    """

    def __init__(self, spec: DataTableSpec) -> None:
        self._spec = spec
        self._rows: List[DataRow] = []
        self._keys: set[str] = set()
        self._closed = False

    @property
    def spec(self) -> DataTableSpec:
        return self._spec

    @property
    def size(self) -> int:
        return len(self._rows)

    def add_row(self, key: Optional[str], cells: Sequence[Any]) -> None:
        if self._closed:
            raise RuntimeError("Cannot add rows to a closed table")
        if len(cells) != len(self._spec.columns):
            raise ValueError(
                f"Row has {len(cells)} cells but the table has "
                f"{len(self._spec.columns)} columns"
            )
        if key is None:
            key = f"row-{len(self._rows)}"
        if key in self._keys:
            raise ValueError(f"Duplicate row key: '{key}'")

        wrapped = [
            cell if isinstance(cell, Cell) else Cell(type=column.type, value=cell)
            for cell, column in zip(cells, self._spec.columns)
        ]
        self._keys.add(key)
        self._rows.append(DataRow(key, wrapped))

    def close(self) -> DataTable:
        self._closed = True
        return DataTable(self._spec, self._rows)


def create_data_table(spec: DataTableSpec) -> DataTableBuilder:
    """Start building a table with the given spec."""
    return DataTableBuilder(spec)


# ==============================================================================
# Boundary coercion helpers (used by source nodes)
# ==============================================================================

_TRUE_STRINGS = {"true", "yes"}
_FALSE_STRINGS = {"false", "no"}


def _parse_number(raw: Any) -> Optional[Union[int, float]]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    if number.is_integer() and "." not in text and "e" not in text.lower():
        return int(number)
    return number


def _parse_date(raw: Any) -> Optional[str]:
    if isinstance(raw, (datetime, date)):
        return raw.isoformat()
    text = str(raw).strip()
    if not text:
        return None
    # Date-only text stays a date; datetime.fromisoformat would add midnight
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).isoformat()
    except ValueError:
        return None


def coerce_value(raw: Any, cell_type: Union[CellType, str]) -> Any:
    """Best-effort conversion of a raw value to the given cell type."""
    cell_type = CellType(cell_type)
    if raw is None:
        return None
    if cell_type == CellType.STRING:
        return str(raw)
    if isinstance(raw, str) and raw.strip() == "":
        return None
    if cell_type == CellType.NUMBER:
        return _parse_number(raw)
    if cell_type == CellType.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        return None
    parsed = _parse_date(raw)
    return parsed if parsed is not None else str(raw)


def infer_column_type(values: Iterable[Any], sample_size: int = 10) -> CellType:
    """
    Guess a column type from its first non-empty values.

    Boolean when every sample is true/false, number when more than 80% parse
    as numbers, date when more than 70% parse as ISO dates, otherwise string.
    """
    sample: List[Any] = []
    for value in values:
        if value is None or (isinstance(value, str) and value.strip() == ""):
            continue
        sample.append(value)
        if len(sample) >= sample_size:
            break

    if not sample:
        return CellType.STRING

    if all(
        isinstance(v, bool) or str(v).strip().lower() in (_TRUE_STRINGS | _FALSE_STRINGS)
        for v in sample
    ):
        return CellType.BOOLEAN

    numeric = sum(1 for v in sample if _parse_number(v) is not None)
    if numeric > len(sample) * 0.8:
        return CellType.NUMBER

    dates = sum(1 for v in sample if _parse_date(v) is not None)
    if dates > len(sample) * 0.7:
        return CellType.DATE

    return CellType.STRING


__all__ = [
    "CellType",
    "Cell",
    "ColumnSpec",
    "DataTableSpec",
    "DataRow",
    "DataTable",
    "DataTableBuilder",
    "create_data_table",
    "coerce_value",
    "infer_column_type",
]
