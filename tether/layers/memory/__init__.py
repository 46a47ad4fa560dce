"""Memory Layer - Durable element records and reconciliation."""

from tether.layers.memory.fingerprint import Fingerprint, fingerprint
from tether.layers.memory.history import HistoryElement, to_history_element
from tether.layers.memory.reconciler import TreeReconciler, find_history_element_in_tree

__all__ = [
    "Fingerprint",
    "fingerprint",
    "HistoryElement",
    "to_history_element",
    "TreeReconciler",
    "find_history_element_in_tree",
]
