"""
Node Settings - Configuration carriers for nodes.

SettingsObject is the JSON-only key/value map that is persisted with the
workflow (``data.settings``). Each node type declares one typed
NodeSettings model; the map <-> model conversion happens once, at the
load/save boundary, so defaults live in the model definition.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Iterator, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError


S = TypeVar("S", bound="NodeSettings")


class SettingsObject:
    """
    Key/value settings map with typed getters.

    Only JSON-serializable values are accepted, so whatever a node saves
    can be restored by a later process.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = {}
        if values:
            for key, value in values.items():
                self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_string(self, key: str, default: str = "") -> str:
        """Value if it is a non-blank string, otherwise ``default``."""
        value = self._values.get(key)
        if isinstance(value, str) and value.strip():
            return value
        return default

    def get_number(self, key: str, default: float = 0) -> float:
        value = self._values.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        return default

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        return value if isinstance(value, bool) else default

    def set(self, key: str, value: Any) -> None:
        try:
            json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise TypeError(
                f"Setting '{key}' is not JSON-serializable: {type(value).__name__}"
            ) from e
        self._values[key] = copy.deepcopy(value)

    def update(self, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            self.set(key, value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()

    def copy(self) -> "SettingsObject":
        return SettingsObject(self._values)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def to_json(self) -> str:
        return json.dumps(self._values, sort_keys=True, allow_nan=False)

    @classmethod
    def from_json(cls, text: str) -> "SettingsObject":
        data = json.loads(text) if text else {}
        if not isinstance(data, dict):
            raise ValueError("Settings JSON must be an object")
        return cls(data)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SettingsObject):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"SettingsObject({self._values!r})"


def _format_pydantic_error(error: PydanticValidationError) -> tuple[str, Optional[str]]:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    message = first.get("msg", "invalid value")
    if field:
        return f"Invalid setting '{field}': {message}", field
    return f"Invalid settings: {message}", None


class NodeSettings(BaseModel):
    """
    Base class for the typed configuration of one node type.

    Subclasses declare fields with defaults; ``check`` adds cross-field
    rules and raises ValidationError with a readable reason.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @classmethod
    def from_settings(cls: Type[S], settings: Optional[SettingsObject]) -> S:
        data = settings.to_dict() if settings is not None else {}
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            message, field = _format_pydantic_error(e)
            raise ValidationError(message, field=field) from e

    def to_settings(self, settings: SettingsObject) -> None:
        settings.clear()
        settings.update(self.model_dump(mode="json", by_alias=True))

    def check(self) -> None:
        """Cross-field validation hook."""


class EmptySettings(NodeSettings):
    """Settings model for nodes without configuration."""


__all__ = [
    "SettingsObject",
    "NodeSettings",
    "EmptySettings",
]
