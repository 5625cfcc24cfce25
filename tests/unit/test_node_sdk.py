"""Tests for settings, execution context, node base class and dialogs."""
import json
from typing import List

import pytest
from pydantic import Field

from node_sdk import (
    CancellationError,
    CancellationToken,
    CellType,
    ConfigurationError,
    DataTable,
    DataTableSpec,
    ExecutionContext,
    NodeModel,
    NodeSettings,
    SettingsDialog,
    SettingsObject,
    SettingsSummaryView,
    ValidationError,
    require_column,
)
from node_sdk.dashboard import DashboardItemType, DashboardOutputConfig


class ThresholdSettings(NodeSettings):
    column: str = ""
    threshold: float = Field(0, alias="thresholdValue")
    tags: List[str] = Field(default_factory=list)

    def check(self) -> None:
        if not self.column:
            raise ValidationError("Column is required", field="column")


class ThresholdNode(NodeModel):
    settings_model = ThresholdSettings

    def configure(self, in_specs):
        return [in_specs[0]]

    async def execute(self, inputs, ctx):
        return [inputs[0]]


class TestSettingsObject:
    """Test the JSON-only settings map."""

    def test_typed_getters(self):
        settings = SettingsObject({"s": "text", "blank": "  ", "n": 3, "b": True})

        assert settings.get_string("s") == "text"
        assert settings.get_string("blank", "fallback") == "fallback"
        assert settings.get_number("n") == 3
        assert settings.get_number("b", 7) == 7
        assert settings.get_boolean("b") is True
        assert settings.get_boolean("n") is False
        assert settings.get("missing", "x") == "x"

    def test_rejects_non_json_values(self):
        settings = SettingsObject()
        with pytest.raises(TypeError, match="not JSON-serializable"):
            settings.set("bad", object())

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), {"limits": [1, float("-inf")]}])
    def test_rejects_non_finite_numbers(self, value):
        settings = SettingsObject()
        with pytest.raises(TypeError, match="not JSON-serializable"):
            settings.set("bad", value)
        assert "bad" not in settings

    def test_from_json_rejects_nan(self):
        with pytest.raises(TypeError, match="not JSON-serializable"):
            SettingsObject.from_json('{"threshold": NaN}')

    def test_copy_is_independent(self):
        original = SettingsObject({"items": [1, 2]})
        copied = original.copy()
        copied.set("items", [3])

        assert original.get("items") == [1, 2]
        assert original != copied

    def test_json_round_trip(self):
        settings = SettingsObject({"a": 1, "nested": {"b": [1, "x"]}})
        assert SettingsObject.from_json(settings.to_json()) == settings

    def test_from_json_requires_object(self):
        with pytest.raises(ValueError):
            SettingsObject.from_json("[1, 2]")

    def test_remove_and_clear(self):
        settings = SettingsObject({"a": 1, "b": 2})
        settings.remove("a")
        assert "a" not in settings
        settings.clear()
        assert len(settings) == 0


class TestNodeSettings:
    """Test typed settings models."""

    def test_defaults_fill_missing_keys(self):
        config = ThresholdSettings.from_settings(SettingsObject({"column": "x"}))
        assert config.threshold == 0
        assert config.tags == []

    def test_alias_round_trip(self):
        config = ThresholdSettings.from_settings(
            SettingsObject({"column": "x", "thresholdValue": 2.5})
        )
        saved = SettingsObject({"stale": True})
        config.to_settings(saved)

        assert saved.to_dict() == {"column": "x", "thresholdValue": 2.5, "tags": []}

    def test_pydantic_errors_become_validation_errors(self):
        with pytest.raises(ValidationError) as exc_info:
            ThresholdSettings.from_settings(SettingsObject({"thresholdValue": "high"}))
        assert exc_info.value.field == "thresholdValue"

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError, match="unknown"):
            ThresholdSettings.from_settings(SettingsObject({"unknown": 1}))


class TestExecutionContext:
    """Test per-node execution services."""

    def test_progress_is_recorded_and_forwarded(self):
        seen = []
        ctx = ExecutionContext("n1", on_progress=lambda node, f, msg: seen.append((node, f, msg)))
        ctx.set_progress(0.5, "halfway")
        ctx.set_progress(1.0)

        assert [p.fraction for p in ctx.progress] == [0.5, 1.0]
        assert seen == [("n1", 0.5, "halfway"), ("n1", 1.0, None)]

    def test_progress_out_of_range(self, execution_context):
        with pytest.raises(ValueError):
            execution_context.set_progress(1.5)

    def test_check_canceled(self):
        token = CancellationToken()
        ctx = ExecutionContext("n1", cancel_token=token)
        ctx.check_canceled()

        token.cancel("user stop")
        assert ctx.is_canceled
        with pytest.raises(CancellationError, match="user stop") as exc_info:
            ctx.check_canceled()
        assert exc_info.value.node_id == "n1"

    def test_create_data_table(self, execution_context):
        builder = execution_context.create_data_table(DataTableSpec.of(("a", "number")))
        builder.add_row(None, [1])
        assert builder.close().column_values("a") == [1]


class TestNodeModel:
    """Test the node base class."""

    def test_settings_lifecycle(self):
        node = ThresholdNode()
        node.load_settings(SettingsObject({"column": "x", "thresholdValue": 4}))
        assert node.config.threshold == 4

        saved = SettingsObject()
        node.save_settings(saved)
        assert saved.get("thresholdValue") == 4

        node.reset()
        assert node.config.column == ""

    def test_validate_settings_runs_check(self):
        with pytest.raises(ValidationError, match="Column is required"):
            ThresholdNode().validate_settings(SettingsObject({}))

    def test_default_labels(self):
        node = ThresholdNode()
        assert node.get_input_label(0) == "Input 1"
        assert node.get_output_label(0) == "Output 1"

    def test_dashboard_items_skip_out_of_range_ports(self, execution_context, sales_table):
        node = ThresholdNode()
        node.configure_dashboard_output([
            DashboardOutputConfig(port_index=0, output_type=DashboardItemType.TABLE),
            DashboardOutputConfig(port_index=3, output_type=DashboardItemType.TABLE),
        ])
        items = node.build_dashboard_items([sales_table], execution_context, "Threshold")

        assert [item.id for item in items] == ["test-node-port-0"]

    def test_require_column(self, sales_table):
        spec = sales_table.spec
        assert require_column(spec, "amount", CellType.NUMBER) == 1
        with pytest.raises(ConfigurationError, match="not found"):
            require_column(spec, "price")
        with pytest.raises(ConfigurationError):
            require_column(spec, "region", CellType.NUMBER)


class TestSettingsDialog:
    """Test the headless dialog."""

    def test_close_ok_validates_draft(self):
        dialog = SettingsDialog(ThresholdNode())
        dialog.load_settings(SettingsObject({"thresholdValue": 1}))

        with pytest.raises(ValidationError):
            dialog.close(ok=True)

        dialog.set("column", "x")
        accepted = dialog.close(ok=True)
        assert accepted.to_dict() == {"thresholdValue": 1, "column": "x"}

    def test_close_cancel_discards(self):
        dialog = SettingsDialog(ThresholdNode())
        dialog.set("column", "x")
        assert dialog.close(ok=False) is None

    def test_summary_view(self):
        view = SettingsSummaryView(ThresholdNode())
        rendered = view.render()
        assert rendered["inputPorts"] == 1
        assert json.dumps(rendered)
        view.on_close()
        assert view.closed
