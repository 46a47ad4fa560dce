"""
Shared fixtures: snapshot payloads shaped like the in-page script's output.
"""

from typing import Any, Dict, Optional

import pytest

from tether.layers.sense.tree_builder import build_tree_from_payload


class Payload:
    """Builders for raw snapshot entries."""

    @staticmethod
    def element(
        tag: str,
        *children: Dict[str, Any],
        attributes: Optional[Dict[str, str]] = None,
        visible: bool = True,
        top: bool = True,
        cursor: str = "auto",
        parent_cursor: str = "auto",
        click_handler: bool = False,
        rect: Optional[Dict[str, float]] = None,
        xpath: str = "",
        shadow_root: bool = False,
        in_shadow: bool = False,
    ) -> Dict[str, Any]:
        return {
            "type": "element",
            "tag": tag,
            "xpath": xpath or f"/{tag}",
            "attributes": dict(attributes or {}),
            "style": {
                "display": "block" if visible else "none",
                "visibility": "visible",
                "opacity": "1",
                "cursor": cursor,
                "parentCursor": parent_cursor,
            },
            "rect": rect or {"x": 10, "y": 10, "width": 100, "height": 20},
            "hasClickHandler": click_handler,
            "topHit": top,
            "shadowRoot": shadow_root,
            "inShadow": in_shadow,
            "children": list(children),
        }

    @staticmethod
    def text(value: str) -> Dict[str, Any]:
        return {"type": "text", "text": value}

    @classmethod
    def page(cls, *body_children: Dict[str, Any]) -> Dict[str, Any]:
        """``<html><body>...</body></html>`` around the given entries."""
        return cls.element("html", cls.element("body", *body_children))


@pytest.fixture
def payload():
    return Payload


@pytest.fixture
def login_page(payload):
    """A small form with a nav bar, two inputs and a submit button."""
    p = payload
    return p.page(
        p.element(
            "nav",
            p.element("a", p.text("Home"), attributes={"href": "/"}),
            p.element("a", p.text("Help"), attributes={"href": "/help"}),
        ),
        p.element(
            "form",
            p.element("input", attributes={"type": "email", "name": "email", "placeholder": "Email"}),
            p.element("input", attributes={"type": "password", "name": "password"}),
            p.element("button", p.text("Sign in"), attributes={"type": "submit", "id": "submit"}),
            attributes={"id": "login"},
        ),
    )


@pytest.fixture
def login_tree(login_page):
    return build_tree_from_payload(login_page)
