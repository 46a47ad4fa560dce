"""
Tether - DOM element tracking and relocation for Selenium.

Builds a structural snapshot of a live page, assigns highlight indices
to interactive elements and finds the same logical element again after
the page reloads, re-renders or is replayed from a flight record.
"""

__version__ = "0.1.0"

from tether.core.browser_session import BrowserSession, DOMState
from tether.core.config import TetherConfig
from tether.layers.memory.history import HistoryElement, to_history_element
from tether.layers.memory.reconciler import TreeReconciler

__all__ = [
    "BrowserSession",
    "DOMState",
    "TetherConfig",
    "HistoryElement",
    "to_history_element",
    "TreeReconciler",
    "__version__",
]
