"""Tests for structured logging."""
import json
import logging

from workbench.config import Settings
from workbench.observability import TraceContextFilter, get_logger, setup_logging, with_trace_context
from workbench.observability.logging import CustomJsonFormatter


def _record(**extra):
    record = logging.LogRecord("workflow_runtime.executor", logging.INFO, __file__, 1, "Node done", None, None)
    for name, value in extra.items():
        setattr(record, name, value)
    return record


class TestTraceContext:
    """Test trace context helpers."""

    def test_with_trace_context_drops_empty_ids(self):
        extra = with_trace_context(run_id="run-1", node_id=None, rows=5)

        assert extra == {"run_id": "run-1", "rows": 5}

    def test_filter_fills_missing_fields(self):
        record = _record(run_id="run-1")

        assert TraceContextFilter().filter(record) is True
        assert record.run_id == "run-1"
        assert record.node_id is None
        assert record.conversation_id is None


class TestCustomJsonFormatter:
    """Test JSON log lines."""

    def _format(self, record):
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        TraceContextFilter().filter(record)
        return json.loads(formatter.format(record))

    def test_standard_fields(self):
        line = self._format(_record())

        assert line["message"] == "Node done"
        assert line["level"] == "INFO"
        assert line["logger"] == "workflow_runtime.executor"
        assert line["timestamp"]

    def test_only_set_trace_fields_are_emitted(self):
        line = self._format(_record(run_id="run-1", node_id="filter-1"))

        assert line["run_id"] == "run-1"
        assert line["node_id"] == "filter-1"
        assert "workflow_id" not in line
        assert "conversation_id" not in line


class TestSetupLogging:
    """Test handler installation."""

    def test_json_handler(self):
        setup_logging(Settings(log_level="DEBUG", log_json=True))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, CustomJsonFormatter)
        assert logging.getLogger("redis").level == logging.WARNING

    def test_plain_text_handler(self):
        setup_logging(Settings(log_json=False))

        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, CustomJsonFormatter)

    def test_get_logger(self):
        adapter = get_logger("workbench.test")

        assert isinstance(adapter, logging.LoggerAdapter)
        assert adapter.logger.name == "workbench.test"
