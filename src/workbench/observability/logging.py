"""Structured JSON logging with workflow trace context."""
import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from workbench.config import Settings, get_settings

TRACE_FIELDS = ("run_id", "workflow_id", "conversation_id", "node_id")


class TraceContextFilter(logging.Filter):
    """Add trace context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add default trace context fields if not present."""
        for name in TRACE_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the log record."""
        super().add_fields(log_record, record, message_dict)

        # Ensure timestamp is present
        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        # Unset trace fields are left out
        for name in TRACE_FIELDS:
            value = getattr(record, name, None)
            if value:
                log_record[name] = value
            else:
                log_record.pop(name, None)


def setup_logging(settings: Settings | None = None) -> None:
    """Configure logging for the application: JSON lines, or plain text."""
    settings = settings or get_settings()

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_json:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    handler.setFormatter(formatter)
    handler.addFilter(TraceContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.LoggerAdapter:
    """
    Get a logger with trace context support.

    Args:
        name: Logger name (typically __name__)

    Returns:
        LoggerAdapter that can accept trace context in extra dict
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(logger, extra={})


def with_trace_context(
    run_id: str | None = None,
    workflow_id: str | None = None,
    conversation_id: str | None = None,
    node_id: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict with trace context for logging.

    Args:
        run_id: Execution run ID
        workflow_id: Workflow (chat) ID
        conversation_id: Conversation the dashboard items belong to
        node_id: Node being executed
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if run_id:
        extra["run_id"] = run_id
    if workflow_id:
        extra["workflow_id"] = workflow_id
    if conversation_id:
        extra["conversation_id"] = conversation_id
    if node_id:
        extra["node_id"] = node_id
    return extra
