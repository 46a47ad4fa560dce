"""
Index Updater - Remap a recorded action onto the current page.

Highlight indices are only valid within the snapshot that produced them.
Before a recorded action is replayed, its target is reconciled against a
freshly built tree and the action's index rewritten to the element's
current index.
"""

import logging
from typing import Optional

from tether.layers.action.models import ReplayAction
from tether.layers.memory.history import HistoryElement
from tether.layers.memory.reconciler import TreeReconciler
from tether.layers.sense.dom_tree import ElementNode

logger = logging.getLogger(__name__)


def remap(
    history_element: Optional[HistoryElement],
    current_tree: ElementNode,
    action: ReplayAction,
) -> Optional[ReplayAction]:
    """
    Point ``action`` at the recorded element's current index.

    Args:
        history_element: Record of the element the action targeted, or
            None for actions without an element target
        current_tree: Freshly built tree of the current page
        action: The recorded action; its index is rewritten in place

    Returns:
        The action (possibly updated), or None if the element is gone
    """
    if history_element is None:
        return action

    node = TreeReconciler().locate(history_element, current_tree)
    if node is None:
        return None

    old_index = action.index
    if node.highlight_index != old_index:
        action.index = node.highlight_index
        logger.info(f"[IndexUpdater] Element moved in DOM, updated index from {old_index} to {node.highlight_index}")
    return action
