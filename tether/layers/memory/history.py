"""
History Elements - Durable records of targeted elements.

A ``HistoryElement`` is created when an action targets a node and may
outlive the browser session (it is written into flight records). It holds
no live references and can be rebuilt from its JSON form alone.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from tether.layers.sense.dom_tree import ElementNode


@dataclass(frozen=True)
class HistoryElement:
    """
    Immutable snapshot of one element at the time it was acted on.

    The branch path is stored as a tuple and the attributes behind a
    read-only mapping, so neither the fingerprint nor the hash of a
    record can change after it is created.
    """
    tag: str
    xpath: str
    highlight_index: Optional[int]
    entire_parent_branch_path: Tuple[str, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict)
    shadow_root: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "entire_parent_branch_path", tuple(self.entire_parent_branch_path))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def __hash__(self) -> int:
        return hash((
            self.tag,
            self.xpath,
            self.highlight_index,
            self.entire_parent_branch_path,
            tuple(sorted(self.attributes.items())),
            self.shadow_root,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON form."""
        return {
            "tag": self.tag,
            "xpath": self.xpath,
            "highlightIndex": self.highlight_index,
            "entireParentBranchPath": list(self.entire_parent_branch_path),
            "attributes": dict(self.attributes),
            "shadowRoot": self.shadow_root,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryElement":
        """
        Rebuild a record from its JSON form.

        Accepts both the camelCase keys written by ``to_dict`` and the
        snake_case keys of older recordings.
        """
        def pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if name in data:
                    return data[name]
            return default

        index = pick("highlightIndex", "highlight_index")
        return cls(
            tag=str(pick("tag", "tag_name", "tagName", default="")),
            xpath=str(pick("xpath", default="")),
            highlight_index=int(index) if index is not None else None,
            entire_parent_branch_path=tuple(
                str(tag) for tag in pick("entireParentBranchPath", "entire_parent_branch_path", default=[])
            ),
            attributes={
                str(k): str(v) for k, v in (pick("attributes", default={}) or {}).items()
            },
            shadow_root=bool(pick("shadowRoot", "shadow_root", default=False)),
        )


def to_history_element(node: ElementNode) -> HistoryElement:
    """Convert a live tree node into a self-contained history record."""
    return HistoryElement(
        tag=node.tag,
        xpath=node.xpath,
        highlight_index=node.highlight_index,
        entire_parent_branch_path=node.parent_branch_path(),
        attributes=dict(node.attributes),
        shadow_root=node.shadow_root,
    )
