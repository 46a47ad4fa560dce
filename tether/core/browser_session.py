"""
Browser Session - One page's state reads and element resolution.

``get_state`` snapshots the page under a lock, retries while the page's
execution context is unavailable (navigation in progress) and discards
snapshots taken while the URL changed. The selector map of the latest
snapshot is cached until the next ``get_state`` replaces it.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from selenium.common.exceptions import WebDriverException

from tether.core.config import TetherConfig
from tether.core.exceptions import EngineUnavailable
from tether.layers.action.locator import ElementLocator
from tether.layers.memory.history import HistoryElement
from tether.layers.memory.reconciler import TreeReconciler
from tether.layers.sense.dom_tree import ElementNode, SelectorMap, build_selector_map
from tether.layers.sense.tree_builder import DOMTreeBuilder

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement

logger = logging.getLogger(__name__)


@dataclass
class DOMState:
    """Tree and selector map of one snapshot, with the page it came from."""
    tree: ElementNode
    selector_map: SelectorMap = field(default_factory=dict)
    url: str = ""
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "indexed_elements": len(self.selector_map),
            "tree": self.tree.to_dict(),
        }


class BrowserSession:
    """
    State reads and element lookups for one browser page.

    Example:
        >>> session = BrowserSession(driver)
        >>> state = session.get_state(highlight=True)
        >>> node = session.get_element_by_index(0)
        >>> handle = session.locate_element(node)
    """

    def __init__(self, driver: "WebDriver", config: Optional[TetherConfig] = None):
        """
        Initialize the session.

        Args:
            driver: Selenium WebDriver
            config: Tether configuration (defaults if omitted)
        """
        self.driver = driver
        self.config = config or TetherConfig()
        self.builder = DOMTreeBuilder(driver, self.config)
        self.locator = ElementLocator(driver, self.config)
        self.reconciler = TreeReconciler()
        self._lock = threading.Lock()
        self._cached_state: Optional[DOMState] = None

    @property
    def cached_state(self) -> Optional[DOMState]:
        return self._cached_state

    def get_state(self, highlight: Optional[bool] = None) -> DOMState:
        """
        Snapshot the page.

        Args:
            highlight: Draw overlays; defaults to ``config.highlight_elements``

        Returns:
            Fresh DOMState; its selector map replaces the cached one

        Raises:
            EngineUnavailable: If every attempt failed.
        """
        if highlight is None:
            highlight = self.config.highlight_elements

        with self._lock:
            delay = self.config.retry_backoff
            last_error: Optional[Exception] = None

            for attempt in range(1, self.config.state_retries + 1):
                try:
                    state = self._read_state(highlight)
                except EngineUnavailable as e:
                    last_error = e
                    logger.warning(
                        f"[BrowserSession] Page unavailable (attempt {attempt}/{self.config.state_retries}): {e}"
                    )
                else:
                    if state is not None:
                        self._cached_state = state
                        logger.info(
                            f"[BrowserSession] State read: {len(state.selector_map)} indexed elements on {state.url}"
                        )
                        return state
                    last_error = EngineUnavailable("URL changed during snapshot")
                    logger.warning(
                        f"[BrowserSession] Stale snapshot discarded (attempt {attempt}/{self.config.state_retries})"
                    )

                if attempt < self.config.state_retries:
                    time.sleep(delay)
                    delay *= 2

            raise EngineUnavailable(
                f"Could not read page state after {self.config.state_retries} attempts"
            ) from last_error

    def _read_state(self, highlight: bool) -> Optional[DOMState]:
        """One snapshot attempt; None if the page navigated meanwhile."""
        try:
            self.driver.set_script_timeout(self.config.snapshot_timeout)
            url_before = self.driver.current_url
        except WebDriverException as e:
            raise EngineUnavailable(f"Driver not reachable: {e.msg or e}") from e

        tree = self.builder.build(highlight=highlight)

        try:
            url_after = self.driver.current_url
            title = self.driver.title
        except WebDriverException as e:
            raise EngineUnavailable(f"Driver not reachable: {e.msg or e}") from e

        if url_after != url_before:
            return None

        return DOMState(
            tree=tree,
            selector_map=build_selector_map(tree),
            url=url_after,
            title=title,
        )

    def get_element_by_index(self, index: int) -> Optional[ElementNode]:
        """Node for ``index`` in the latest snapshot, or None."""
        if self._cached_state is None:
            return None
        return self._cached_state.selector_map.get(index)

    def locate_element(self, node: ElementNode) -> Optional["WebElement"]:
        return self.locator.locate(node)

    def find_history_element_in_tree(
        self, history_element: HistoryElement, tree: ElementNode
    ) -> Optional[ElementNode]:
        return self.reconciler.locate(history_element, tree)

    def is_file_uploader(self, node: ElementNode, max_depth: Optional[int] = None, _depth: int = 0) -> bool:
        """
        True if ``node`` or a descendant within ``max_depth`` levels is a
        file input (``type=file`` or an ``accept`` attribute).
        """
        if max_depth is None:
            max_depth = self.config.file_uploader_max_depth
        if _depth > max_depth:
            return False

        if node.tag == "input":
            if node.attributes.get("type", "").lower() == "file" or "accept" in node.attributes:
                return True

        if _depth < max_depth:
            for child in node.element_children():
                if self.is_file_uploader(child, max_depth, _depth + 1):
                    return True
        return False

    def remove_highlights(self) -> None:
        self.builder.remove_highlights()
