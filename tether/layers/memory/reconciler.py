"""
Tree Reconciler - Find a recorded element in a rebuilt tree.

Only nodes that carried a highlight index at build time are candidates.
When several candidates share a fingerprint (identical sibling rows, for
instance) the first one in pre-order wins.
"""

import logging
from typing import List, Optional

from tether.layers.memory.fingerprint import fingerprint
from tether.layers.memory.history import HistoryElement
from tether.layers.sense.dom_tree import ElementNode

logger = logging.getLogger(__name__)


def compare_history_element_and_dom_element(history_element: HistoryElement, node: ElementNode) -> bool:
    """True if both fingerprint digests are equal."""
    return fingerprint(history_element) == fingerprint(node)


class TreeReconciler:
    """
    Locates the current counterpart of a ``HistoryElement``.

    Example:
        >>> reconciler = TreeReconciler()
        >>> node = reconciler.locate(history_element, builder.build())
        >>> if node is None:
        ...     print("Element no longer on the page")
    """

    def locate(self, history_element: HistoryElement, current_tree: ElementNode) -> Optional[ElementNode]:
        """
        Search ``current_tree`` for the recorded element.

        Returns:
            The first matching indexed node, or None if the element is
            gone. Absence is a normal outcome and never raises.
        """
        target = fingerprint(history_element)

        stack: List[ElementNode] = [current_tree]
        while stack:
            node = stack.pop()
            if node.highlight_index is not None and fingerprint(node) == target:
                logger.debug(f"[Reconciler] Matched <{history_element.tag}> at index {node.highlight_index}")
                return node
            stack.extend(reversed(node.element_children()))

        logger.debug(f"[Reconciler] No match for <{history_element.tag}> {history_element.xpath}")
        return None


def find_history_element_in_tree(history_element: HistoryElement, tree: ElementNode) -> Optional[ElementNode]:
    return TreeReconciler().locate(history_element, tree)
