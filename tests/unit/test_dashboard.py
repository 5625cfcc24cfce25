"""Tests for dashboard item conversion."""
from node_sdk import DataTable, DataTableSpec
from node_sdk.dashboard import (
    DashboardItemType,
    DashboardOutputConfig,
    compute_column_statistics,
    convert_output_to_dashboard_item,
    table_to_dashboard_item,
)


class TestColumnStatistics:
    """Test per-column statistics."""

    def test_numeric_and_string_columns(self, sales_table):
        stats = {s.column_name: s for s in compute_column_statistics(sales_table)}

        assert stats["amount"].min == 50
        assert stats["amount"].max == 150
        assert stats["amount"].mean == 98
        assert stats["region"].distinct_count == 2
        assert stats["region"].min is None

    def test_null_counts(self):
        table = DataTable.from_records(
            DataTableSpec.of(("v", "number")), [{"v": 1}, {"v": None}, {"v": None}]
        )
        (stats,) = compute_column_statistics(table)
        assert stats.null_count == 2


class TestTableItems:
    """Test table dashboard items."""

    def test_payload_uses_camel_case(self, sales_table):
        item = table_to_dashboard_item(sales_table, "n1-port-0", "n1", "CSV Reader")
        payload = item.to_payload()

        assert payload["type"] == "table"
        assert payload["nodeId"] == "n1"
        assert payload["metadata"]["totalRows"] == 5
        assert payload["title"] == "CSV Reader Output"
        assert len(payload["rows"]) == 5

    def test_preview_rows_are_truncated(self, sales_table):
        item = table_to_dashboard_item(sales_table, "i", "n1", "x", max_rows=2)
        assert item.truncated
        assert len(item.rows) == 2
        assert item.metadata.total_rows == 5


class TestConvertOutput:
    """Test port output conversion."""

    def test_item_id_includes_port(self, sales_table):
        config = DashboardOutputConfig(port_index=1, output_type=DashboardItemType.STATISTICS)
        item = convert_output_to_dashboard_item(sales_table, config, "n1", "Label")

        assert item.id == "n1-port-1"
        assert item.type == "statistics"
        assert item.metrics["rowCount"] == 5

    def test_unconvertible_output_returns_none(self):
        config = DashboardOutputConfig(port_index=0)
        assert convert_output_to_dashboard_item("not a table", config, "n1", "x") is None
