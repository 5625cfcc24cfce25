"""
Node Dialogs and Views - Headless configuration and display contracts.

UI toolkits implement these for real; the headless versions here are what
the registry hands out by default and what the tool layer uses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

from .basenode import NodeModel
from .settings import SettingsObject
from .table import DataTableSpec


class NodeDialog(ABC):
    """Edits a node's settings against the specs currently flowing into it."""

    @abstractmethod
    def load_settings(
        self,
        settings: SettingsObject,
        specs: Sequence[Optional[DataTableSpec]],
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def save_settings(self, settings: SettingsObject) -> None:
        raise NotImplementedError


class SettingsDialog(NodeDialog):
    """
    Dialog without a UI: keeps a draft settings map.

    ``close(ok=True)`` validates the draft through the model and returns the
    accepted settings; ``close(ok=False)`` discards it.
    """

    def __init__(self, model: NodeModel) -> None:
        self.model = model
        self.draft = SettingsObject()
        self.specs: Sequence[Optional[DataTableSpec]] = ()

    def load_settings(
        self,
        settings: SettingsObject,
        specs: Sequence[Optional[DataTableSpec]] = (),
    ) -> None:
        self.draft = settings.copy()
        self.specs = list(specs)

    def set(self, key: str, value: Any) -> None:
        self.draft.set(key, value)

    def save_settings(self, settings: SettingsObject) -> None:
        settings.clear()
        settings.update(self.draft.to_dict())

    def close(self, ok: bool = True) -> Optional[SettingsObject]:
        if not ok:
            return None
        self.model.validate_settings(self.draft)
        accepted = SettingsObject()
        self.save_settings(accepted)
        return accepted


class NodeView(ABC):
    """Observes a node model and renders something from it."""

    def __init__(self, model: NodeModel) -> None:
        self.model = model
        self.closed = False

    def on_model_changed(self) -> None:
        """Called after the model executed or its settings changed."""

    def on_close(self) -> None:
        self.closed = True

    @abstractmethod
    def render(self) -> Any:
        raise NotImplementedError


class SettingsSummaryView(NodeView):
    """Renders ports and current settings as a plain dict."""

    def render(self) -> Dict[str, Any]:
        return self.model.describe()


__all__ = [
    "NodeDialog",
    "SettingsDialog",
    "NodeView",
    "SettingsSummaryView",
]
