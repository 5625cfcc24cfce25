"""Tests for source and transform nodes of the analytics pack."""
from unittest.mock import patch

import pytest

from node_sdk import CellType, ConfigurationError, DataTable, DataTableSpec, ValidationError
from node_sdk.http import HttpApiError
from nodepacks.analytics import (
    ColumnFilterNode,
    CsvInputNode,
    FilterNode,
    MissingValuesNode,
    NormalizerNode,
    SorterNode,
    TableCreatorNode,
    parse_csv,
)
from nodepacks.analytics.transforms import evaluate_condition


@pytest.fixture
def people():
    spec = DataTableSpec.of(("name", "string"), ("age", "number"), ("city", "string"))
    return DataTable.from_records(spec, [
        {"name": "Ann", "age": 31, "city": "Oslo"},
        {"name": "bob", "age": None, "city": "Berlin"},
        {"name": "Cid", "age": 25, "city": None},
        {"name": "dee", "age": 31, "city": "oslo"},
    ])


class TestParseCsv:
    """Test CSV parsing."""

    def test_types_are_inferred(self, sales_table):
        assert [(c.name, c.type) for c in sales_table.spec.columns] == [
            ("region", CellType.STRING),
            ("amount", CellType.NUMBER),
        ]
        assert sales_table.column_values("amount") == [150, 120, 50, 80, 90]
        assert sales_table.rows[0].key == "row-0"

    def test_without_header(self):
        table = parse_csv("1;x\n2;y\n", delimiter=";", has_header=False)
        assert table.spec.column_names == ["column_1", "column_2"]
        assert table.column_values("column_1") == [1, 2]

    def test_ragged_rows_are_padded(self):
        table = parse_csv("a,b\n1\n2,3,4\n")
        assert table.to_records() == [{"a": 1, "b": None}, {"a": 2, "b": 3}]

    def test_duplicate_and_blank_headers(self):
        table = parse_csv("a,a,\n1,2,3\n")
        assert table.spec.column_names == ["a", "a_2", "column_3"]

    def test_empty_text(self):
        assert parse_csv("\n\n").size == 0


class TestCsvInputNode:
    """Test the CSV reader node."""

    @pytest.mark.asyncio
    async def test_inline_text(self, run_node, sample_csv):
        (table,), specs, ctx = await run_node(CsvInputNode(), {"csv_text": sample_csv})

        assert specs == [table.spec]
        assert table.size == 5
        assert ctx.progress[-1].fraction == 1.0

    @pytest.mark.asyncio
    async def test_file_source(self, run_node, tmp_path, sample_csv):
        path = tmp_path / "sales.csv"
        path.write_text(sample_csv)

        node = CsvInputNode()
        (table,), specs, _ = await run_node(node, {"csv_source_type": "file", "file_path": str(path)})

        # The spec of a file is only known after reading it
        assert specs == [None]
        assert table.column_values("region")[:2] == ["east", "west"]

    @pytest.mark.asyncio
    async def test_url_source_uses_context_timeout(self, run_node, sample_csv):
        with patch("nodepacks.analytics.sources.fetch_text", return_value=sample_csv) as fetch:
            (table,), _, _ = await run_node(CsvInputNode(), {"csv_url": "https://example.com/s.csv"})

        fetch.assert_called_once_with("https://example.com/s.csv", 30.0)
        assert table.size == 5

    @pytest.mark.asyncio
    async def test_url_errors_propagate(self, run_node):
        with patch(
            "nodepacks.analytics.sources.fetch_text",
            side_effect=HttpApiError("HTTP 404: Not Found", status_code=404),
        ):
            with pytest.raises(HttpApiError):
                await run_node(CsvInputNode(), {"csv_url": "https://example.com/missing.csv"})

    def test_settings_validation(self):
        from node_sdk import SettingsObject

        node = CsvInputNode()
        with pytest.raises(ValidationError, match="No CSV text"):
            node.validate_settings(SettingsObject({}))
        with pytest.raises(ValidationError, match="http"):
            node.validate_settings(SettingsObject({"csv_url": "ftp://host/file.csv"}))
        with pytest.raises(ValidationError):
            node.validate_settings(SettingsObject({"csv_text": "a", "delimiter": ";;"}))


class TestTableCreatorNode:
    """Test the hand-typed table node."""

    @pytest.mark.asyncio
    async def test_grid(self, run_node):
        settings = {
            "headers": ["item", "qty"],
            "cells": [["apple", "3"], ["", ""], ["pear", "5"]],
        }
        (table,), _, _ = await run_node(TableCreatorNode(), settings)

        assert table.spec.get_column("qty").type == CellType.NUMBER
        assert table.to_records() == [{"item": "apple", "qty": 3}, {"item": "pear", "qty": 5}]

    @pytest.mark.asyncio
    async def test_json_string_settings(self, run_node):
        settings = {"headers": '["a"]', "cells": '[["x"]]'}
        (table,), _, _ = await run_node(TableCreatorNode(), settings)
        assert table.column_values("a") == ["x"]

    @pytest.mark.asyncio
    async def test_row_longer_than_headers(self, run_node):
        with pytest.raises(ValidationError, match="Row 1"):
            await run_node(TableCreatorNode(), {"headers": ["a"], "cells": [["1", "2"]]})


class TestFilterNode:
    """Test the row filter."""

    @pytest.mark.asyncio
    async def test_numeric_comparison(self, run_node, sales_table):
        settings = {"conditions": [{"column": "amount", "operator": ">", "value": "100"}]}
        (table,), _, _ = await run_node(FilterNode(), settings, sales_table)

        assert table.column_values("amount") == [150, 120]
        assert [row.key for row in table] == ["row-0", "row-1"]

    @pytest.mark.asyncio
    async def test_text_operators_ignore_case(self, run_node, people):
        settings = {"conditions": [{"column": "city", "operator": "contains", "value": "OSL"}]}
        (table,), _, _ = await run_node(FilterNode(), settings, people)
        assert table.column_values("name") == ["Ann", "dee"]

    @pytest.mark.asyncio
    async def test_or(self, run_node, people):
        settings = {
            "logicalOperator": "OR",
            "conditions": [
                {"column": "age", "operator": "is empty"},
                {"column": "city", "operator": "is empty"},
            ],
        }
        (table,), _, _ = await run_node(FilterNode(), settings, people)
        assert table.column_values("name") == ["bob", "Cid"]

    @pytest.mark.asyncio
    async def test_flattened_conditions(self, run_node, people):
        settings = {
            "conditionCount": 2,
            "condition_0_column": "age",
            "condition_0_operator": "=",
            "condition_0_value": "31",
            "condition_1_column": "name",
            "condition_1_operator": "starts with",
            "condition_1_value": "D",
        }
        (table,), _, _ = await run_node(FilterNode(), settings, people)
        assert table.column_values("name") == ["dee"]

    @pytest.mark.asyncio
    async def test_non_numeric_value_for_numeric_column(self, run_node, sales_table):
        settings = {"conditions": [{"column": "amount", "operator": ">", "value": "lots"}]}
        with pytest.raises(ConfigurationError, match="not a number"):
            await run_node(FilterNode(), settings, sales_table)

    @pytest.mark.asyncio
    async def test_unknown_column(self, run_node, sales_table):
        settings = {"conditions": [{"column": "price", "operator": "=", "value": 1}]}
        with pytest.raises(ConfigurationError, match="price"):
            await run_node(FilterNode(), settings, sales_table)

    def test_missing_values_only_match_negations(self):
        assert evaluate_condition(None, CellType.NUMBER, "!=", 3)
        assert not evaluate_condition(None, CellType.NUMBER, ">", 3)
        assert evaluate_condition("", CellType.STRING, "is empty", None)


class TestColumnFilterNode:
    """Test column selection."""

    @pytest.mark.asyncio
    async def test_keep(self, run_node, people):
        settings = {"selected_columns": ["city", "name"]}
        (table,), specs, _ = await run_node(ColumnFilterNode(), settings, people)

        # Input order is kept, not selection order
        assert table.spec.column_names == ["name", "city"]
        assert specs[0] == table.spec

    @pytest.mark.asyncio
    async def test_exclude_with_flattened_keys(self, run_node, people):
        settings = {"filterMode": "exclude", "selectedColumnCount": 1, "selectedColumn_0": "age"}
        (table,), _, _ = await run_node(ColumnFilterNode(), settings, people)
        assert table.spec.column_names == ["name", "city"]


class TestSorterNode:
    """Test multi-column sorting."""

    @pytest.mark.asyncio
    async def test_multi_column(self, run_node, people):
        settings = {"sort_columns": [
            {"columnName": "age", "direction": "DESC"},
            {"columnName": "name"},
        ]}
        (table,), _, _ = await run_node(SorterNode(), settings, people)

        # Missing ages sort last regardless of direction
        assert table.column_values("name") == ["Ann", "dee", "Cid", "bob"]


class TestMissingValuesNode:
    """Test missing value handling."""

    @pytest.mark.asyncio
    async def test_per_column_methods(self, run_node, people):
        settings = {"column_configs": [
            {"columnName": "age", "method": "MEAN"},
            {"columnName": "city", "method": "FIXED_VALUE", "fixedValue": "Unknown"},
        ]}
        (table,), _, _ = await run_node(MissingValuesNode(), settings, people)

        assert table.column_values("age") == [31, 29, 25, 31]
        assert table.column_values("city") == ["Oslo", "Berlin", "Unknown", "oslo"]

    @pytest.mark.asyncio
    async def test_remove_rows(self, run_node, people):
        settings = {"column_configs": [{"columnName": "age", "method": "REMOVE_ROWS"}]}
        (table,), _, _ = await run_node(MissingValuesNode(), settings, people)
        assert table.column_values("name") == ["Ann", "Cid", "dee"]

    @pytest.mark.asyncio
    async def test_numeric_default_falls_back_for_text(self, run_node, people):
        (table,), _, _ = await run_node(MissingValuesNode(), {"default_method": "MEDIAN"}, people)

        assert table.column_values("age")[1] == 31
        assert table.column_values("city")[2] in ("Oslo", "Berlin", "oslo")

    @pytest.mark.asyncio
    async def test_mean_on_text_column(self, run_node, people):
        settings = {"column_configs": [{"columnName": "city", "method": "MEAN"}]}
        with pytest.raises(ConfigurationError, match="numeric"):
            await run_node(MissingValuesNode(), settings, people)

    def test_fixed_value_required(self):
        from node_sdk import SettingsObject

        settings = SettingsObject({"column_configs": [{"columnName": "a", "method": "FIXED_VALUE"}]})
        with pytest.raises(ValidationError, match="without a value"):
            MissingValuesNode().validate_settings(settings)


class TestNormalizerNode:
    """Test numeric rescaling."""

    @pytest.mark.asyncio
    async def test_min_max_all_numeric_columns(self, run_node, sales_table):
        (table,), _, ctx = await run_node(NormalizerNode(), {}, sales_table)

        assert table.column_values("amount") == pytest.approx([1.0, 0.7, 0.0, 0.3, 0.4])
        (item,) = ctx.dashboard_items
        assert item.id == "node-1-statistics"
        assert item.details["amount"]["min"] == 50

    @pytest.mark.asyncio
    async def test_z_score(self, run_node, sales_table):
        settings = {"normalization_method": "Z_SCORE", "number_columns": ["amount"]}
        (table,), _, _ = await run_node(NormalizerNode(), settings, sales_table)

        values = table.column_values("amount")
        assert sum(values) == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_decimal_scaling(self, run_node, sales_table):
        settings = {"normalization_method": "DECIMAL_SCALING"}
        (table,), _, _ = await run_node(NormalizerNode(), settings, sales_table)
        assert table.column_values("amount")[0] == pytest.approx(0.15)

    @pytest.mark.asyncio
    async def test_text_column_rejected(self, run_node, sales_table):
        with pytest.raises(ConfigurationError):
            await run_node(NormalizerNode(), {"number_columns": ["region"]}, sales_table)

    def test_min_must_be_below_max(self):
        from node_sdk import SettingsObject

        with pytest.raises(ValidationError, match="less than"):
            NormalizerNode().validate_settings(SettingsObject({"min_value": 2, "max_value": 1}))
