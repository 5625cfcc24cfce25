"""Observability package."""
from workbench.observability.logging import (
    TraceContextFilter,
    get_logger,
    setup_logging,
    with_trace_context,
)

__all__ = ["TraceContextFilter", "get_logger", "setup_logging", "with_trace_context"]
