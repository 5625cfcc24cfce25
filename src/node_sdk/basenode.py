"""
NodeModel - Abstract base class for workflow node implementations.

All nodes inherit from NodeModel and implement configure() and execute().

Contract:
- Port arity is fixed at construction.
- configure() is pure: it checks input specs and computes output specs.
- execute() is async and may await I/O; long loops poll ctx.check_canceled().
- Settings cross the persistence boundary only through load/save/validate.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Type

from .context import ExecutionContext
from .dashboard import (
    DashboardItem,
    DashboardOutputConfig,
    convert_output_to_dashboard_item,
)
from .errors import ConfigurationError, ValidationError
from .settings import EmptySettings, NodeSettings, SettingsObject
from .table import CellType, DataTable, DataTableSpec


logger = logging.getLogger(__name__)


class NodeModel(ABC):
    """
    Abstract base class for all node models.

    Subclasses set ``settings_model`` to their typed settings class and keep
    the loaded instance in ``self.config``. The default load/save/validate
    implementations go through that model, so defaults live in one place.

    Example:

        class UppercaseSettings(NodeSettings):
            column: str = ""

        class UppercaseNode(NodeModel):
            settings_model = UppercaseSettings

            def __init__(self):
                super().__init__(in_ports=1, out_ports=1)

            def configure(self, in_specs):
                require_column(in_specs[0], self.config.column, CellType.STRING)
                return [in_specs[0]]

            async def execute(self, inputs, ctx):
                ...
    """

    settings_model: Type[NodeSettings] = EmptySettings

    def __init__(self, in_ports: int = 1, out_ports: int = 1) -> None:
        if in_ports < 0 or out_ports < 0:
            raise ValueError("Port counts must be non-negative")
        self._in_ports = in_ports
        self._out_ports = out_ports
        self._dashboard_outputs: List[DashboardOutputConfig] = []
        self.config: NodeSettings = self.settings_model()
        self.logger = logging.getLogger(f"node.{type(self).__name__}")

    # ==== Ports ====

    def get_input_port_count(self) -> int:
        return self._in_ports

    def get_output_port_count(self) -> int:
        return self._out_ports

    def get_input_label(self, index: int) -> str:
        return f"Input {index + 1}"

    def get_output_label(self, index: int) -> str:
        return f"Output {index + 1}"

    # ==== Contract ====

    @abstractmethod
    def configure(self, in_specs: Sequence[DataTableSpec]) -> List[Optional[DataTableSpec]]:
        """
        Check input specs and compute output specs.

        Returns one entry per output port. An entry may be None when the
        spec is only known after execution.

        Raises:
            ConfigurationError: missing or mistyped input columns
        """
        raise NotImplementedError

    @abstractmethod
    async def execute(
        self,
        inputs: Sequence[DataTable],
        ctx: ExecutionContext,
    ) -> List[DataTable]:
        """Run the computation; one table per output port."""
        raise NotImplementedError

    # ==== Settings ====

    def load_settings(self, settings: SettingsObject) -> None:
        self.config = self.settings_model.from_settings(settings)

    def save_settings(self, settings: SettingsObject) -> None:
        self.config.to_settings(settings)

    def validate_settings(self, settings: SettingsObject) -> None:
        """Raise ValidationError with a readable reason if settings are unusable."""
        self.settings_model.from_settings(settings).check()

    def reset(self) -> None:
        """Drop any state kept from a previous execution."""

    # ==== Dashboard ====

    def configure_dashboard_output(self, outputs: Sequence[DashboardOutputConfig]) -> None:
        self._dashboard_outputs = list(outputs)

    def get_dashboard_outputs(self) -> List[DashboardOutputConfig]:
        return list(self._dashboard_outputs)

    def build_dashboard_items(
        self,
        outputs: Sequence[Any],
        ctx: ExecutionContext,
        label: str,
        max_rows: Optional[int] = None,
    ) -> List[DashboardItem]:
        """
        Convert the configured output ports to dashboard items.

        Items staged on the context during execute() come first.
        """
        items: List[DashboardItem] = list(ctx.dashboard_items)
        for config in self._dashboard_outputs:
            if config.port_index >= len(outputs):
                logger.warning(
                    f"Dashboard output port {config.port_index} out of range "
                    f"for node {ctx.node_id} ({len(outputs)} outputs)"
                )
                continue
            item = convert_output_to_dashboard_item(
                outputs[config.port_index], config, ctx.node_id, label, max_rows=max_rows,
            )
            if item is not None:
                items.append(item)
        return items

    # ==== Introspection ====

    def describe(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "inputPorts": self._in_ports,
            "outputPorts": self._out_ports,
            "inputLabels": [self.get_input_label(i) for i in range(self._in_ports)],
            "outputLabels": [self.get_output_label(i) for i in range(self._out_ports)],
            "settings": self.config.model_dump(mode="json", by_alias=True),
            "dashboardOutputs": [
                c.model_dump(mode="json", by_alias=True) for c in self._dashboard_outputs
            ],
        }


# ==============================================================================
# Helpers for configure()
# ==============================================================================

def require_column(
    spec: DataTableSpec,
    name: str,
    expected: Optional[CellType] = None,
    role: str = "Column",
) -> int:
    """Index of ``name`` in ``spec``; raises ConfigurationError if absent or mistyped."""
    if not name:
        raise ConfigurationError(f"{role} is not configured")
    index = spec.find_column_index(name)
    if index < 0:
        raise ConfigurationError(
            f"{role} '{name}' not found in input (available: {', '.join(spec.column_names) or 'none'})"
        )
    actual = spec.columns[index].type
    if expected is not None and actual != expected:
        raise ConfigurationError(
            f"{role} '{name}' must be of type {expected.value}, got {actual.value}"
        )
    return index


def require_settings(condition: bool, message: str, field: Optional[str] = None) -> None:
    if not condition:
        raise ValidationError(message, field=field)


__all__ = [
    "NodeModel",
    "require_column",
    "require_settings",
]
