"""Recorded action model."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ReplayAction:
    """
    One recorded action, e.g. ``click_element`` with ``{"index": 4}``.

    ``params`` is mutable so the index updater can rewrite the index in
    place before the action is re-executed.
    """
    name: str
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def index(self) -> Optional[int]:
        value = self.params.get("index")
        return int(value) if value is not None else None

    @index.setter
    def index(self, value: Optional[int]) -> None:
        if value is None:
            self.params.pop("index", None)
        else:
            self.params["index"] = value

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "params": dict(self.params)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReplayAction":
        return cls(name=str(data.get("name", "")), params=dict(data.get("params") or {}))
