"""
Element Classifier - Visibility and interactivity predicates.

The snapshot script only collects raw facts (computed style, box size,
hit-test result) for each element. Every decision about those facts is
made here, against fixed rule tables, so the rules can be tested without
a browser.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple


# Natively interactive elements
INTERACTIVE_TAGS = frozenset([
    "a", "button", "input", "select", "textarea",
    "details", "summary", "option",
    "dialog", "menu", "menuitem",
])

# ARIA roles that make any element interactive
INTERACTIVE_ROLES = frozenset([
    "button", "link", "menuitem", "menuitemcheckbox", "menuitemradio",
    "tab", "checkbox", "radio", "switch", "option",
    "searchbox", "textbox", "combobox", "slider", "spinbutton", "treeitem",
])

# Framework and inline click bindings
CLICK_ATTRIBUTES = ("onclick", "ng-click", "@click", "v-on:click")

# Never part of the element tree
IGNORED_TAGS = frozenset([
    "script", "style", "noscript", "template", "meta", "link", "head", "title",
])


@dataclass
class ElementProbe:
    """Raw per-element facts collected in-page by the snapshot script."""
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    display: str = ""
    visibility: str = ""
    opacity: str = "1"
    cursor: str = ""
    parent_cursor: str = ""
    width: float = 0.0
    height: float = 0.0
    has_click_handler: bool = False
    top_hit: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ElementProbe":
        """Build a probe from one element entry of the snapshot payload."""
        style = payload.get("style") or {}
        rect = payload.get("rect") or {}
        return cls(
            tag=str(payload.get("tag", "")).lower(),
            attributes=dict(payload.get("attributes") or {}),
            display=str(style.get("display", "")),
            visibility=str(style.get("visibility", "")),
            opacity=str(style.get("opacity", "1")),
            cursor=str(style.get("cursor", "")),
            parent_cursor=str(style.get("parentCursor", "")),
            width=_to_float(rect.get("width"), 0.0),
            height=_to_float(rect.get("height"), 0.0),
            has_click_handler=bool(payload.get("hasClickHandler", False)),
            top_hit=bool(payload.get("topHit", False)),
        )


def _to_float(raw: Any, default: float) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def is_visible(probe: ElementProbe) -> bool:
    """Shown by computed style and rendered with a positive box."""
    if probe.display == "none" or probe.visibility == "hidden":
        return False
    if _to_float(probe.opacity, 1.0) <= 0:
        return False
    return probe.width > 0 and probe.height > 0


def _has_interactive_tag(probe: ElementProbe) -> bool:
    return probe.tag in INTERACTIVE_TAGS


def _has_interactive_role(probe: ElementProbe) -> bool:
    role = probe.attributes.get("role", "").strip().lower()
    return role in INTERACTIVE_ROLES


def _has_click_binding(probe: ElementProbe) -> bool:
    return probe.has_click_handler or any(attr in probe.attributes for attr in CLICK_ATTRIBUTES)


def _has_pointer_cursor(probe: ElementProbe) -> bool:
    # cursor is inherited; only the element that sets it counts
    return probe.cursor == "pointer" and probe.parent_cursor != "pointer"


def _is_focusable(probe: ElementProbe) -> bool:
    raw = probe.attributes.get("tabindex")
    if raw is None:
        return False
    try:
        return int(raw.strip()) >= 0
    except ValueError:
        return False


# Evaluated in order; the first matching rule names the reason
INTERACTIVE_RULES: Tuple[Tuple[str, Callable[[ElementProbe], bool]], ...] = (
    ("tag", _has_interactive_tag),
    ("role", _has_interactive_role),
    ("click_handler", _has_click_binding),
    ("cursor", _has_pointer_cursor),
    ("tabindex", _is_focusable),
)


def interactive_reason(probe: ElementProbe) -> Optional[str]:
    """Name of the first interactivity rule the element satisfies, if any."""
    for name, rule in INTERACTIVE_RULES:
        if rule(probe):
            return name
    return None


def is_interactive(probe: ElementProbe) -> bool:
    return interactive_reason(probe) is not None


def is_top_element(probe: ElementProbe) -> bool:
    """
    True if the element receives hits at the centre of its own box.

    The hit test runs in-page: the element at the centre point must be
    the element itself or one of its descendants. Elements whose centre
    lies outside the viewport cannot be hit-tested and are reported as
    on top by the script.
    """
    return probe.top_hit
