"""
Shared helpers for analytics nodes.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional, Sequence

from node_sdk.errors import ConfigurationError
from node_sdk.table import CellType, ColumnSpec, DataRow, DataTableSpec


def json_list(value: Any) -> Any:
    """Decode list settings older clients stored as JSON strings."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"not a valid JSON list: {e.msg}") from e
    return value


def json_object(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"not a valid JSON object: {e.msg}") from e
    return value


def is_missing(value: Any) -> bool:
    return value is None or value == ""


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def numeric_values(rows: Sequence[DataRow], index: int) -> List[float]:
    return [row.cells[index].value for row in rows if is_number(row.cells[index].value)]


def build_spec(columns: Sequence[ColumnSpec]) -> DataTableSpec:
    """DataTableSpec from columns; duplicate names become a ConfigurationError."""
    try:
        return DataTableSpec(columns=tuple(columns))
    except ValueError as e:
        raise ConfigurationError(f"Invalid output columns: {e}") from e


def single_input(in_specs: Sequence[Optional[DataTableSpec]]) -> DataTableSpec:
    if not in_specs or in_specs[0] is None:
        raise ConfigurationError("No input specification provided")
    return in_specs[0]


def unique_names(names: Sequence[str]) -> List[str]:
    """Blank names become column_<n>; repeated names get a numeric suffix."""
    result: List[str] = []
    for position, raw in enumerate(names):
        name = raw.strip() or f"column_{position + 1}"
        candidate, counter = name, 2
        while candidate in result:
            candidate = f"{name}_{counter}"
            counter += 1
        result.append(candidate)
    return result


def sort_key(value: Any, cell_type: CellType) -> Any:
    if cell_type in (CellType.NUMBER, CellType.BOOLEAN) and not isinstance(value, str):
        return value
    return str(value)
