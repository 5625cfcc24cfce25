"""
Node SDK - Contracts and primitives for workflow nodes.

This package provides what a node implementation needs:
- DataTable / DataTableSpec / Cell: typed columnar data on every edge
- SettingsObject / NodeSettings: persisted and typed node configuration
- NodeModel: abstract base class for node implementations
- ExecutionContext: progress, cancellation and dashboard staging
- Error taxonomy for node-scoped failures
"""

from .errors import (
    WorkflowEngineError,
    NodeTypeNotFoundError,
    ConfigurationError,
    ValidationError,
    CancellationError,
    ExecutionError,
)
from .table import (
    CellType,
    Cell,
    ColumnSpec,
    DataTableSpec,
    DataRow,
    DataTable,
    DataTableBuilder,
    create_data_table,
    coerce_value,
    infer_column_type,
)
from .settings import SettingsObject, NodeSettings, EmptySettings
from .context import CancellationToken, ExecutionContext, ProgressUpdate
from .dashboard import (
    DashboardItemType,
    DashboardOutputConfig,
    TableDashboardItem,
    StatisticsDashboardItem,
    ChartDashboardItem,
    DashboardItem,
    table_to_dashboard_item,
)
from .basenode import NodeModel, require_column, require_settings
from .dialog import NodeDialog, SettingsDialog, NodeView, SettingsSummaryView
from .http import HttpApiError, NodeTimeoutError, fetch_text

__all__ = [
    # Errors
    "WorkflowEngineError",
    "NodeTypeNotFoundError",
    "ConfigurationError",
    "ValidationError",
    "CancellationError",
    "ExecutionError",
    # Tables
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
    # Settings
    "SettingsObject",
    "NodeSettings",
    "EmptySettings",
    # Context
    "CancellationToken",
    "ExecutionContext",
    "ProgressUpdate",
    # Dashboard
    "DashboardItemType",
    "DashboardOutputConfig",
    "TableDashboardItem",
    "StatisticsDashboardItem",
    "ChartDashboardItem",
    "DashboardItem",
    "table_to_dashboard_item",
    # Base class
    "NodeModel",
    "require_column",
    "require_settings",
    "NodeDialog",
    "SettingsDialog",
    "NodeView",
    "SettingsSummaryView",
    # HTTP
    "HttpApiError",
    "NodeTimeoutError",
    "fetch_text",
]
