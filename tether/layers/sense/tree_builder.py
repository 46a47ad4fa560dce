"""
Tree Builder - Structural DOM Snapshot.

A single injected script walks the live document depth-first (piercing
open shadow roots) and returns raw facts for every node. The Python side
classifies each element, prunes hidden inert subtrees and assigns
highlight indices, producing one ``ElementNode`` tree per state read.

Highlight indices are threaded through the build as an explicit
accumulator: every recursive call receives the next free index and
returns the index after its subtree.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from selenium.common.exceptions import WebDriverException

from tether.core.config import TetherConfig
from tether.core.exceptions import EngineUnavailable
from tether.layers.sense.classifier import (
    IGNORED_TAGS,
    ElementProbe,
    is_interactive,
    is_top_element,
    is_visible,
)
from tether.layers.sense.dom_tree import ElementNode, TextNode, iter_elements

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver

logger = logging.getLogger(__name__)

HIGHLIGHT_CONTAINER_ID = "tether-highlight-container"

# Absolute xpath of an element, or an id shortcut. Stops at a shadow root
# boundary, so xpaths of shadow content are relative to their root.
GET_XPATH_JS = r"""
        const getXPath = (el) => {
            if (el.id) return '//*[@id="' + el.id + '"]';
            const parts = [];
            let cur = el;
            while (cur && cur.nodeType === Node.ELEMENT_NODE) {
                const tag = cur.tagName.toLowerCase();
                let index = 0;
                let sameTag = 0;
                const parent = cur.parentNode;
                if (parent && parent.children) {
                    for (const sib of parent.children) {
                        if (sib.tagName === cur.tagName) {
                            sameTag++;
                            if (sib === cur) index = sameTag;
                        }
                    }
                }
                parts.unshift(sameTag > 1 ? tag + '[' + index + ']' : tag);
                if (parent && parent.nodeType === Node.DOCUMENT_FRAGMENT_NODE) break;
                cur = parent;
            }
            return '/' + parts.join('/');
        };
"""


def build_tree_from_payload(payload: Dict[str, Any]) -> ElementNode:
    """
    Build an element tree from a raw snapshot payload.

    The payload root is always kept, even when it is neither visible
    nor interactive, so the result is never empty.

    Args:
        payload: Nested element dict as returned by the snapshot script

    Returns:
        Root ElementNode with parents linked and indices assigned
    """
    root, _ = _build_element(payload, None, 0, keep=True)
    return root


def _build_element(
    payload: Dict[str, Any],
    parent: Optional[ElementNode],
    next_index: int,
    keep: bool = False,
) -> Tuple[Optional[ElementNode], int]:
    probe = ElementProbe.from_payload(payload)
    if not keep and probe.tag in IGNORED_TAGS:
        return None, next_index

    visible = is_visible(probe)
    interactive = is_interactive(probe)
    if not keep and not visible and not interactive:
        return None, next_index

    top = is_top_element(probe)
    node = ElementNode(
        tag=probe.tag,
        attributes=probe.attributes,
        xpath=str(payload.get("xpath", "")),
        parent=parent,
        is_visible=visible,
        is_interactive=interactive,
        is_top_element=top,
        shadow_root=bool(payload.get("shadowRoot") or payload.get("inShadow")),
        bounding_box=_bounding_box(payload.get("rect")),
    )

    if interactive and visible and top:
        node.highlight_index = next_index
        next_index += 1

    for child_payload in payload.get("children") or []:
        if child_payload.get("type") == "text":
            text = str(child_payload.get("text") or "").strip()
            if text:
                node.children.append(TextNode(text=text, is_visible=visible, parent=node))
            continue
        child, next_index = _build_element(child_payload, node, next_index)
        if child is not None:
            node.children.append(child)

    return node, next_index


def _bounding_box(rect: Optional[Dict[str, Any]]) -> Dict[str, float]:
    box: Dict[str, float] = {}
    for key in ("x", "y", "width", "height"):
        try:
            box[key] = float((rect or {}).get(key, 0.0))
        except (TypeError, ValueError):
            box[key] = 0.0
    return box


class DOMTreeBuilder:
    """
    Builds an ``ElementNode`` tree of the current page.

    Example:
        >>> builder = DOMTreeBuilder(driver)
        >>> root = builder.build(highlight=True)
        >>> print(root.clickable_elements_to_string(["id", "name"]))
    """

    def __init__(self, driver: "WebDriver", config: Optional[TetherConfig] = None):
        """
        Initialize the tree builder.

        Args:
            driver: Selenium WebDriver
            config: Tether configuration (defaults if omitted)
        """
        self.driver = driver
        self.config = config or TetherConfig()

    def build(self, highlight: bool = False) -> ElementNode:
        """
        Snapshot the page and build its element tree.

        Args:
            highlight: Draw numbered overlays on indexed elements

        Returns:
            Root ElementNode of the filtered tree

        Raises:
            EngineUnavailable: If the page context cannot be reached or
                returned no document.
        """
        try:
            payload = self.driver.execute_script(
                self._get_snapshot_script(),
                sorted(IGNORED_TAGS),
                HIGHLIGHT_CONTAINER_ID,
                self.config.max_nodes,
            )
        except WebDriverException as e:
            raise EngineUnavailable(f"Snapshot script failed: {e.msg or e}") from e

        if not payload or payload.get("type") != "element":
            raise EngineUnavailable("Snapshot returned no document")

        if payload.get("truncated"):
            logger.warning(f"[TreeBuilder] Node limit reached ({self.config.max_nodes}), snapshot truncated")

        root = build_tree_from_payload(payload)
        indexed = self._indexed_boxes(root)
        logger.debug(f"[TreeBuilder] Built tree with {len(indexed)} indexed elements")

        if highlight:
            self.highlight(indexed)

        return root

    def highlight(self, boxes: List[Dict[str, Any]]) -> None:
        """Draw border overlays with index labels. Page side effect only."""
        try:
            self.driver.execute_script(self._get_highlight_script(), HIGHLIGHT_CONTAINER_ID, boxes)
        except WebDriverException as e:
            raise EngineUnavailable(f"Highlight script failed: {e.msg or e}") from e

    def remove_highlights(self) -> None:
        """Remove any overlay drawn by ``highlight``."""
        try:
            self.driver.execute_script(
                "const c = document.getElementById(arguments[0]); if (c) c.remove();",
                HIGHLIGHT_CONTAINER_ID,
            )
        except WebDriverException as e:
            logger.debug(f"[TreeBuilder] Could not remove highlights: {e}")

    @staticmethod
    def _indexed_boxes(root: ElementNode) -> List[Dict[str, Any]]:
        return [
            {"index": node.highlight_index, **node.bounding_box}
            for node in iter_elements(root)
            if node.highlight_index is not None
        ]

    def _get_snapshot_script(self) -> str:
        """
        Get the JavaScript for the structural snapshot.

        Arguments: ignored tag names, overlay container id, node limit.
        Returns a nested dict of element and text entries.
        """
        return GET_XPATH_JS + r"""
        const ignoreTags = new Set(arguments[0]);
        const overlayId = arguments[1];
        const maxNodes = arguments[2];
        let count = 0;
        let truncated = false;

        const isTop = (el, rect) => {
            if (rect.width === 0 || rect.height === 0) return false;
            const cx = rect.left + rect.width / 2;
            const cy = rect.top + rect.height / 2;
            if (cx < 0 || cy < 0 || cx > window.innerWidth || cy > window.innerHeight) return true;
            try {
                const root = el.getRootNode();
                const hit = (root.elementFromPoint ? root : document).elementFromPoint(cx, cy);
                if (!hit) return false;
                let cur = hit;
                while (cur) {
                    if (cur === el) return true;
                    cur = cur.parentElement;
                }
                return false;
            } catch (e) {
                return true;
            }
        };

        const walk = (el, inShadow) => {
            count++;
            const tag = el.tagName.toLowerCase();
            const style = window.getComputedStyle(el);
            const rect = el.getBoundingClientRect();
            const parentEl = el.parentElement || (el.getRootNode() instanceof ShadowRoot ? el.getRootNode().host : null);
            const attributes = {};
            for (const attr of el.attributes) attributes[attr.name] = attr.value;

            const node = {
                type: 'element',
                tag: tag,
                xpath: getXPath(el),
                attributes: attributes,
                style: {
                    display: style.display,
                    visibility: style.visibility,
                    opacity: style.opacity,
                    cursor: style.cursor,
                    parentCursor: parentEl ? window.getComputedStyle(parentEl).cursor : '',
                },
                rect: { x: rect.left, y: rect.top, width: rect.width, height: rect.height },
                hasClickHandler: typeof el.onclick === 'function',
                topHit: isTop(el, rect),
                shadowRoot: !!el.shadowRoot,
                inShadow: inShadow,
                children: [],
            };

            const visit = (childNodes, shadow) => {
                for (const child of childNodes) {
                    if (count >= maxNodes) { truncated = true; return; }
                    if (child.nodeType === Node.TEXT_NODE) {
                        const text = child.textContent;
                        if (text && text.trim()) node.children.push({ type: 'text', text: text });
                    } else if (child.nodeType === Node.ELEMENT_NODE) {
                        if (ignoreTags.has(child.tagName.toLowerCase())) continue;
                        if (child.id === overlayId) continue;
                        node.children.push(walk(child, shadow));
                    }
                }
            };

            if (el.shadowRoot) visit(el.shadowRoot.childNodes, true);
            visit(el.childNodes, inShadow);
            return node;
        };

        if (!document.documentElement) return null;
        const tree = walk(document.documentElement, false);
        tree.truncated = truncated;
        return tree;
        """

    def _get_highlight_script(self) -> str:
        """Get the JavaScript that draws numbered overlays."""
        return r"""
        const containerId = arguments[0];
        const boxes = arguments[1];
        let container = document.getElementById(containerId);
        if (container) container.remove();
        container = document.createElement('div');
        container.id = containerId;
        container.style.position = 'fixed';
        container.style.pointerEvents = 'none';
        container.style.top = '0';
        container.style.left = '0';
        container.style.width = '100%';
        container.style.height = '100%';
        container.style.zIndex = '2147483647';

        const colors = ['#FF0000', '#00A000', '#0000FF', '#FFA500', '#800080', '#008080', '#FF69B4', '#4B0082'];
        for (const box of boxes) {
            const color = colors[box.index % colors.length];
            const overlay = document.createElement('div');
            overlay.style.position = 'fixed';
            overlay.style.border = '2px solid ' + color;
            overlay.style.boxSizing = 'border-box';
            overlay.style.left = box.x + 'px';
            overlay.style.top = box.y + 'px';
            overlay.style.width = box.width + 'px';
            overlay.style.height = box.height + 'px';

            const label = document.createElement('div');
            label.textContent = String(box.index);
            label.style.position = 'absolute';
            label.style.top = '-2px';
            label.style.right = '-2px';
            label.style.background = color;
            label.style.color = 'white';
            label.style.font = '12px sans-serif';
            label.style.padding = '1px 4px';
            label.style.borderRadius = '4px';

            overlay.appendChild(label);
            container.appendChild(overlay);
        }
        document.body.appendChild(container);
        """
