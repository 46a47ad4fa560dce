"""
Element Locator - Resolve a tree node to a live WebElement.

A node from an earlier snapshot has no handle into the page. The locator
tries an ordered list of strategies, each a single shadow-piercing query
run in-page, and returns the first element found:

1. text        - same tag, identical visible text
2. role        - same ARIA role (explicit or implied by the tag) and name
3. placeholder - same tag, identical placeholder
4. proximity   - same tag, box centre within tolerance of the recorded one
5. xpath       - the recorded xpath

A query returns every matching element with its attributes, xpath and
box. When several match, ``select_candidate`` narrows them down to the
one that corresponds to the node. A strategy that raises or finds
nothing falls through to the next one.
"""

import logging
import math
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from tether.core.config import TetherConfig
from tether.layers.sense.dom_tree import ElementNode
from tether.layers.sense.tree_builder import GET_XPATH_JS

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement

logger = logging.getLogger(__name__)


# Roles implied by the tag when no explicit role attribute is set
IMPLICIT_ROLES = {
    "button": "button",
    "select": "combobox",
    "textarea": "textbox",
    "option": "option",
    "summary": "button",
    "dialog": "dialog",
    "menu": "list",
    "menuitem": "menuitem",
}

INPUT_ROLES = {
    "button": "button",
    "submit": "button",
    "reset": "button",
    "image": "button",
    "checkbox": "checkbox",
    "radio": "radio",
    "range": "slider",
    "number": "spinbutton",
    "search": "searchbox",
    "email": "textbox",
    "tel": "textbox",
    "text": "textbox",
    "url": "textbox",
    "password": "textbox",
}


def implicit_role(node: ElementNode) -> Optional[str]:
    """ARIA role of a node: explicit ``role`` attribute first, then the tag's."""
    explicit = node.attributes.get("role", "").strip().lower()
    if explicit:
        return explicit
    if node.tag == "a":
        return "link" if "href" in node.attributes else None
    if node.tag == "input":
        return INPUT_ROLES.get(node.attributes.get("type", "text").lower())
    return IMPLICIT_ROLES.get(node.tag)


def accessible_name(node: ElementNode) -> str:
    """Name a screen reader would announce, from the recorded facts."""
    label = node.attributes.get("aria-label", "").strip()
    if label:
        return label
    text = node.get_all_text_till_next_clickable_element()
    if text:
        return text
    for attr in ("title", "value"):
        value = node.attributes.get(attr, "").strip()
        if value:
            return value
    return ""


# Attribute names that single out one element among same-tag lookalikes
IDENTIFYING_ATTRIBUTES = ("id", "name")

Candidate = Dict[str, Any]


def identifying_attributes(node: ElementNode) -> Dict[str, str]:
    """``id``, ``name`` and ``data-*`` attributes of a node."""
    return {
        key: value
        for key, value in node.attributes.items()
        if key in IDENTIFYING_ATTRIBUTES or key.startswith("data-")
    }


def _narrow(pool: List[Candidate], keep: Callable[[Candidate], bool]) -> List[Candidate]:
    kept = [c for c in pool if keep(c)]
    return kept or pool


def _centre_distance(candidate: Candidate, box: Dict[str, float]) -> float:
    rect = candidate.get("rect") or {}
    try:
        cx = float(rect.get("x", 0)) + float(rect.get("width", 0)) / 2
        cy = float(rect.get("y", 0)) + float(rect.get("height", 0)) / 2
    except (TypeError, ValueError):
        return math.inf
    return math.hypot(cx - (box["x"] + box["width"] / 2), cy - (box["y"] + box["height"] / 2))


def select_candidate(node: ElementNode, candidates: List[Candidate]) -> Optional["WebElement"]:
    """
    Pick the live element that corresponds to ``node``.

    Each candidate is a dict with ``element``, ``attributes``, ``xpath``
    and ``rect`` as returned by the query script. Several candidates are
    narrowed in order by:

    1. identifying attributes (id, name, data-*)
    2. the full attribute map
    3. the recorded xpath
    4. distance to the recorded box centre

    A step that would rule out every remaining candidate is skipped.
    Ties left after all steps go to document order.

    Returns:
        The chosen WebElement, or None if there are no candidates
    """
    pool = [c for c in candidates or [] if c and c.get("element") is not None]
    if not pool:
        return None
    if len(pool) == 1:
        return pool[0]["element"]

    count = len(pool)
    identity = identifying_attributes(node)
    if identity:
        pool = _narrow(pool, lambda c: all(
            (c.get("attributes") or {}).get(k) == v for k, v in identity.items()
        ))
    if len(pool) > 1:
        pool = _narrow(pool, lambda c: (c.get("attributes") or {}) == node.attributes)
    if len(pool) > 1 and node.xpath:
        pool = _narrow(pool, lambda c: c.get("xpath") == node.xpath)

    box = node.bounding_box
    if len(pool) > 1 and box and box.get("width", 0) > 0 and box.get("height", 0) > 0:
        pool = sorted(pool, key=lambda c: _centre_distance(c, box))

    logger.debug(f"[Locator] {count} candidates for {node}, {len(pool)} left after narrowing")
    return pool[0]["element"]


Strategy = Tuple[str, Callable[[ElementNode], Optional["WebElement"]]]


class ElementLocator:
    """
    Resolves ``ElementNode`` objects to WebElements.

    Example:
        >>> locator = ElementLocator(driver)
        >>> handle = locator.locate(session.get_element_by_index(3))
        >>> if handle is not None:
        ...     handle.click()
    """

    def __init__(self, driver: "WebDriver", config: Optional[TetherConfig] = None):
        """
        Initialize the locator.

        Args:
            driver: Selenium WebDriver
            config: Tether configuration (defaults if omitted)
        """
        self.driver = driver
        self.config = config or TetherConfig()
        self.last_strategy: Optional[str] = None

    @property
    def strategies(self) -> List[Strategy]:
        return [
            ("text", self._by_text),
            ("role", self._by_role),
            ("placeholder", self._by_placeholder),
            ("proximity", self._by_proximity),
            ("xpath", self._by_xpath),
        ]

    def locate(self, node: ElementNode) -> Optional["WebElement"]:
        """
        Find the live element for ``node``.

        Returns:
            The first element any strategy finds, or None if all fail
        """
        self.last_strategy = None
        for name, attempt in self.strategies:
            try:
                element = attempt(node)
            except Exception as e:
                logger.debug(f"[Locator] Strategy '{name}' failed for {node}: {e}")
                continue
            if element is not None:
                self.last_strategy = name
                logger.debug(f"[Locator] Resolved {node} via '{name}'")
                return element

        logger.info(f"[Locator] Could not resolve {node}")
        return None

    def _by_text(self, node: ElementNode) -> Optional["WebElement"]:
        text = node.get_all_text_till_next_clickable_element()
        if not text or len(text) > self.config.max_text_match_length:
            return None
        return self._query(node, "text", text)

    def _by_role(self, node: ElementNode) -> Optional["WebElement"]:
        role = implicit_role(node)
        name = accessible_name(node)
        if not role or not name:
            return None
        return self._query(node, "role", role, name)

    def _by_placeholder(self, node: ElementNode) -> Optional["WebElement"]:
        placeholder = node.attributes.get("placeholder")
        if not placeholder:
            return None
        return self._query(node, "placeholder", placeholder)

    def _by_proximity(self, node: ElementNode) -> Optional["WebElement"]:
        box = node.bounding_box
        if not box or box.get("width", 0) <= 0 or box.get("height", 0) <= 0:
            return None
        cx = box["x"] + box["width"] / 2
        cy = box["y"] + box["height"] / 2
        return self._query(node, "proximity", cx, cy, self.config.proximity_tolerance)

    def _by_xpath(self, node: ElementNode) -> Optional["WebElement"]:
        if not node.xpath or node.shadow_root:
            return None
        return self._query(node, "xpath", node.xpath)

    def _query(self, node: ElementNode, mode: str, *args) -> Optional["WebElement"]:
        candidates = self.driver.execute_script(self._get_deep_query_script(), mode, node.tag, *args)
        return select_candidate(node, candidates or [])

    def _get_deep_query_script(self) -> str:
        """
        Get the JavaScript for strategy queries.

        Arguments: mode, tag, then mode-specific values. Candidates are
        collected from the document and every open shadow root. Returns
        every match as ``{element, attributes, xpath, rect}``.
        """
        return GET_XPATH_JS + r"""
        const mode = arguments[0];
        const tag = arguments[1];
        const args = Array.prototype.slice.call(arguments, 2);

        const collect = (root, out) => {
            for (const el of root.querySelectorAll('*')) {
                if (el.tagName.toLowerCase() === tag) out.push(el);
                if (el.shadowRoot) collect(el.shadowRoot, out);
            }
            return out;
        };

        const shown = (el) => {
            const rect = el.getBoundingClientRect();
            if (rect.width === 0 || rect.height === 0) return false;
            const style = window.getComputedStyle(el);
            return style.display !== 'none' && style.visibility !== 'hidden' && style.opacity !== '0';
        };

        const norm = (s) => (s || '').replace(/\s+/g, ' ').trim();

        const implicitRole = (el) => {
            const explicit = (el.getAttribute('role') || '').trim().toLowerCase();
            if (explicit) return explicit;
            const t = el.tagName.toLowerCase();
            if (t === 'a') return el.hasAttribute('href') ? 'link' : null;
            if (t === 'input') {
                const inputRoles = {
                    button: 'button', submit: 'button', reset: 'button', image: 'button',
                    checkbox: 'checkbox', radio: 'radio', range: 'slider', number: 'spinbutton',
                    search: 'searchbox', email: 'textbox', tel: 'textbox', text: 'textbox',
                    url: 'textbox', password: 'textbox',
                };
                return inputRoles[(el.getAttribute('type') || 'text').toLowerCase()] || null;
            }
            const tagRoles = {
                button: 'button', select: 'combobox', textarea: 'textbox', option: 'option',
                summary: 'button', dialog: 'dialog', menu: 'list', menuitem: 'menuitem',
            };
            return tagRoles[t] || null;
        };

        const accessibleName = (el) => {
            const label = norm(el.getAttribute('aria-label'));
            if (label) return label;
            const text = norm(el.innerText || el.textContent);
            if (text) return text;
            return norm(el.getAttribute('title')) || norm(el.value);
        };

        const describe = (el) => {
            const attributes = {};
            for (const attr of el.attributes) attributes[attr.name] = attr.value;
            const rect = el.getBoundingClientRect();
            return {
                element: el,
                attributes: attributes,
                xpath: getXPath(el),
                rect: { x: rect.left, y: rect.top, width: rect.width, height: rect.height },
            };
        };

        if (mode === 'xpath') {
            const hit = document.evaluate(args[0], document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null);
            const el = hit.singleNodeValue;
            return el && el.tagName && el.tagName.toLowerCase() === tag ? [describe(el)] : [];
        }

        const candidates = collect(document, []);
        let matches = [];

        if (mode === 'text') {
            const want = norm(args[0]);
            matches = candidates.filter(el => shown(el) && norm(el.innerText || el.textContent) === want);
        } else if (mode === 'role') {
            const role = args[0];
            const want = norm(args[1]);
            matches = candidates.filter(el => implicitRole(el) === role && accessibleName(el) === want);
        } else if (mode === 'placeholder') {
            matches = candidates.filter(el => el.getAttribute('placeholder') === args[0]);
        } else if (mode === 'proximity') {
            const [cx, cy, tolerance] = args;
            matches = candidates.filter(el => {
                if (!shown(el)) return false;
                const rect = el.getBoundingClientRect();
                const dx = rect.left + rect.width / 2 - cx;
                const dy = rect.top + rect.height / 2 - cy;
                return Math.sqrt(dx * dx + dy * dy) <= tolerance;
            });
        }
        return matches.map(describe);
        """
