"""Per-entity field visibility and editability declarations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class FieldPolicy:
    """Which raw fields leave the system (and under what name) and which clients may write.

    ``visible`` maps a raw field name to ``False`` (hidden), ``True`` (exported
    as-is) or a string (exported under that name). Fields without an entry are
    hidden.
    """

    visible: Mapping[str, bool | str] = field(default_factory=dict)
    editable: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name, value in self.visible.items():
            if not isinstance(value, (bool, str)):
                raise TypeError(f"Visibility for {name!r} must be a bool or export name, got {value!r}")
        object.__setattr__(self, "visible", MappingProxyType(dict(self.visible)))
        object.__setattr__(self, "editable", MappingProxyType(dict(self.editable)))

    def export_name(self, name: str) -> str | None:
        """Exported name of a raw field, or None when the field is hidden."""
        value = self.visible.get(name)
        if not value:
            return None
        if value is True:
            return name
        return str(value)

    def is_visible(self, name: str) -> bool:
        return self.export_name(name) is not None

    def is_editable(self, name: str) -> bool:
        return bool(self.editable.get(name, False))

    def editable_subset(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Keep only the payload keys a client is allowed to write."""
        return {name: value for name, value in payload.items() if self.is_editable(name)}

    def rejected_fields(self, payload: Mapping[str, Any]) -> list[str]:
        """Payload keys a client tried to write without permission, sorted."""
        return sorted(name for name in payload if not self.is_editable(name))
