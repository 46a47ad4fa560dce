"""
DOM Tree - In-memory element tree built from one page snapshot.

Nodes keep a ``parent`` back-reference for upward path walks. It is a
relation, not ownership: it is excluded from equality, repr and every
serialized form.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union


@dataclass(eq=False)
class TextNode:
    """A trimmed, non-empty run of text inside an element."""
    text: str
    is_visible: bool = True
    parent: Optional["ElementNode"] = field(default=None, repr=False)

    def get_all_text_till_next_clickable_element(self) -> str:
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.text, "is_visible": self.is_visible}


@dataclass(eq=False)
class ElementNode:
    """
    An element of the live page as seen at snapshot time.

    ``highlight_index`` is set only for nodes that were interactive,
    visible and on top when the tree was built. It is unique within one
    snapshot and meaningless in any other.
    """
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    xpath: str = ""
    children: List[Union["ElementNode", TextNode]] = field(default_factory=list)
    parent: Optional["ElementNode"] = field(default=None, repr=False)
    is_visible: bool = False
    is_interactive: bool = False
    is_top_element: bool = False
    highlight_index: Optional[int] = None
    shadow_root: bool = False
    bounding_box: Dict[str, float] = field(default_factory=dict, repr=False)

    def parent_branch_path(self) -> List[str]:
        """
        Ancestor tag names from the root down to the immediate parent.

        The node itself and the tree root are excluded.
        """
        path: List[str] = []
        current = self.parent
        while current is not None and current.parent is not None:
            path.append(current.tag)
            current = current.parent
        path.reverse()
        return path

    def element_children(self) -> List["ElementNode"]:
        return [c for c in self.children if isinstance(c, ElementNode)]

    def get_all_text_till_next_clickable_element(self, max_depth: int = -1) -> str:
        """
        Text under this node, stopping at nested indexed elements.

        Args:
            max_depth: How many element levels to descend (-1 for no limit)
        """
        parts: List[str] = []

        def collect(node: Union["ElementNode", TextNode], depth: int) -> None:
            if max_depth != -1 and depth > max_depth:
                return
            if isinstance(node, ElementNode) and node is not self and node.highlight_index is not None:
                return
            if isinstance(node, TextNode):
                parts.append(node.text)
            else:
                for child in node.children:
                    collect(child, depth + 1)

        collect(self, 0)
        return "\n".join(parts).strip()

    def clickable_elements_to_string(self, include_attributes: Optional[List[str]] = None) -> str:
        """Render indexed elements one per line: ``3[:]<button id="a">Go</button>``."""
        lines: List[str] = []
        for node in iter_elements(self):
            if node.highlight_index is None:
                continue
            attrs = ""
            if include_attributes:
                attrs = "".join(
                    f' {name}="{node.attributes[name]}"'
                    for name in include_attributes
                    if name in node.attributes
                )
            text = node.get_all_text_till_next_clickable_element()
            lines.append(f"{node.highlight_index}[:]<{node.tag}{attrs}>{text}</{node.tag}>")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dict (parent links omitted)."""
        return {
            "type": "element",
            "tag": self.tag,
            "xpath": self.xpath,
            "attributes": dict(self.attributes),
            "is_visible": self.is_visible,
            "is_interactive": self.is_interactive,
            "is_top_element": self.is_top_element,
            "highlight_index": self.highlight_index,
            "shadow_root": self.shadow_root,
            "bounding_box": dict(self.bounding_box),
            "children": [child.to_dict() for child in self.children],
        }

    def __str__(self) -> str:
        attrs = ", ".join(f'{k}="{v}"' for k, v in self.attributes.items() if k in ("id", "class", "name", "type"))
        index = f"[{self.highlight_index}]" if self.highlight_index is not None else ""
        return f"{index}<{self.tag} {attrs}>".replace(" >", ">")


SelectorMap = Dict[int, ElementNode]


def iter_elements(root: ElementNode) -> Iterator[ElementNode]:
    """Yield element nodes in pre-order without recursion."""
    stack: List[ElementNode] = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.element_children()))


def build_selector_map(root: ElementNode) -> SelectorMap:
    """Map every highlight index in the tree to its node."""
    return {
        node.highlight_index: node
        for node in iter_elements(root)
        if node.highlight_index is not None
    }
