"""
Action Executor - Perform recorded actions on located elements.

Clicks go through a self-healing chain: a native WebDriver click first,
then a dispatched DOM click event, then a pointer click at the element's
viewport centre. Typing falls back from ``send_keys`` to assigning the
value in-page and firing ``input``/``change``.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from selenium.webdriver.common.actions.action_builder import ActionBuilder

from tether.core.config import TetherConfig
from tether.core.exceptions import ElementNotFound
from tether.layers.action.models import ReplayAction

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Result of an action execution."""
    success: bool
    action: str
    duration_ms: float
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "duration_ms": round(self.duration_ms, 1),
            "error": self.error,
            "metadata": dict(self.metadata),
        }


class ActionExecutor:
    """
    Execute actions against WebElement handles.

    Example:
        >>> executor = ActionExecutor(driver)
        >>> handle = session.locate_element(session.get_element_by_index(2))
        >>> result = executor.click(handle)
        >>> print(result.metadata["strategy"])
        native
    """

    def __init__(self, driver: "WebDriver", config: Optional[TetherConfig] = None):
        """
        Initialize the action executor.

        Args:
            driver: Selenium WebDriver
            config: Tether configuration (defaults if omitted)
        """
        self.driver = driver
        self.config = config or TetherConfig()

    def execute(self, action: ReplayAction, handle: Optional["WebElement"]) -> ActionResult:
        """
        Dispatch a recorded action.

        Args:
            action: Action with ``name`` and ``params``
            handle: Located element for the action's target

        Raises:
            ElementNotFound: If ``handle`` is None.
        """
        if handle is None:
            raise ElementNotFound(f"No element for action {action.name} (index {action.index})")

        if action.name == "click_element":
            return self.click(handle)
        elif action.name == "input_text":
            return self.type_text(handle, str(action.params.get("text", "")),
                                  clear_first=bool(action.params.get("clear_first", True)))
        elif action.name == "upload_file":
            return self.upload_file(handle, str(action.params.get("path", "")))
        elif action.name == "scroll_to_element":
            return self.scroll_into_view(handle)
        else:
            return ActionResult(
                success=False,
                action=action.name,
                duration_ms=0.0,
                error=f"Unsupported action: {action.name}",
            )

    def click(self, handle: "WebElement") -> ActionResult:
        """
        Click with fallbacks.

        Returns:
            ActionResult whose metadata names the strategy that worked
            and lists the failures of the ones before it
        """
        start_time = time.time()
        self._scroll_into_view(handle)

        chain: List[Tuple[str, Callable[["WebElement"], None]]] = [
            ("native", self._native_click),
            ("js_dispatch", self._js_dispatch_click),
            ("coordinates", self._coordinate_click),
        ]
        failures: Dict[str, str] = {}
        for name, attempt in chain:
            try:
                attempt(handle)
            except Exception as e:
                failures[name] = str(e)
                logger.debug(f"[Executor] Click strategy '{name}' failed: {e}")
                continue
            if failures:
                logger.info(f"[Executor] Click healed via '{name}'")
            return ActionResult(
                success=True,
                action="click",
                duration_ms=(time.time() - start_time) * 1000,
                metadata={"strategy": name, "failures": failures},
            )

        return ActionResult(
            success=False,
            action="click",
            duration_ms=(time.time() - start_time) * 1000,
            error="All click strategies failed",
            metadata={"failures": failures},
        )

    def type_text(self, handle: "WebElement", text: str, clear_first: bool = True) -> ActionResult:
        """Type text, falling back to an in-page value assignment."""
        start_time = time.time()
        self._scroll_into_view(handle)

        try:
            if clear_first:
                handle.clear()
            handle.send_keys(text)
            return ActionResult(
                success=True,
                action="type",
                duration_ms=(time.time() - start_time) * 1000,
                metadata={"strategy": "send_keys"},
            )
        except Exception as e:
            logger.debug(f"[Executor] send_keys failed, assigning value in-page: {e}")

        try:
            self.driver.execute_script(
                """
                const el = arguments[0];
                el.value = arguments[2] ? arguments[1] : (el.value || '') + arguments[1];
                el.dispatchEvent(new Event('input', { bubbles: true }));
                el.dispatchEvent(new Event('change', { bubbles: true }));
                """,
                handle,
                text,
                clear_first,
            )
        except Exception as e:
            return ActionResult(
                success=False,
                action="type",
                duration_ms=(time.time() - start_time) * 1000,
                error=str(e),
            )
        return ActionResult(
            success=True,
            action="type",
            duration_ms=(time.time() - start_time) * 1000,
            metadata={"strategy": "js_value"},
        )

    def upload_file(self, handle: "WebElement", path: str) -> ActionResult:
        """Send a local file path to a file input."""
        start_time = time.time()
        abs_path = os.path.abspath(path)
        if not path or not os.path.isfile(abs_path):
            return ActionResult(
                success=False,
                action="upload",
                duration_ms=0.0,
                error=f"File not found: {path}",
            )
        try:
            handle.send_keys(abs_path)
        except Exception as e:
            return ActionResult(
                success=False,
                action="upload",
                duration_ms=(time.time() - start_time) * 1000,
                error=str(e),
            )
        return ActionResult(
            success=True,
            action="upload",
            duration_ms=(time.time() - start_time) * 1000,
            metadata={"path": abs_path},
        )

    def scroll_into_view(self, handle: "WebElement") -> ActionResult:
        """Scroll an element into the viewport."""
        start_time = time.time()
        try:
            self.driver.execute_script(
                "arguments[0].scrollIntoView({block: 'center', inline: 'center'});",
                handle,
            )
        except Exception as e:
            return ActionResult(
                success=False,
                action="scroll",
                duration_ms=(time.time() - start_time) * 1000,
                error=str(e),
            )
        return ActionResult(
            success=True,
            action="scroll",
            duration_ms=(time.time() - start_time) * 1000,
        )

    def _native_click(self, handle: "WebElement") -> None:
        handle.click()

    def _js_dispatch_click(self, handle: "WebElement") -> None:
        self.driver.execute_script(
            """
            const el = arguments[0];
            for (const type of ['mousedown', 'mouseup', 'click']) {
                el.dispatchEvent(new MouseEvent(type, { bubbles: true, cancelable: true, view: window }));
            }
            """,
            handle,
        )

    def _coordinate_click(self, handle: "WebElement") -> None:
        center = self.driver.execute_script(
            """
            const rect = arguments[0].getBoundingClientRect();
            return { x: rect.left + rect.width / 2, y: rect.top + rect.height / 2 };
            """,
            handle,
        )
        if not center:
            raise ElementNotFound("Element has no box to click")
        actions = ActionBuilder(self.driver)
        actions.pointer_action.move_to_location(int(center["x"]), int(center["y"]))
        actions.pointer_action.click()
        actions.perform()

    def _scroll_into_view(self, handle: "WebElement") -> None:
        """Scroll only if the element is outside the viewport."""
        try:
            in_view = self.driver.execute_script("""
                var rect = arguments[0].getBoundingClientRect();
                return (
                    rect.top >= 0 &&
                    rect.left >= 0 &&
                    rect.bottom <= (window.innerHeight || document.documentElement.clientHeight) &&
                    rect.right <= (window.innerWidth || document.documentElement.clientWidth)
                );
            """, handle)
            if not in_view:
                self.driver.execute_script(
                    "arguments[0].scrollIntoView({block: 'center'});",
                    handle,
                )
        except Exception as e:
            logger.debug(f"[Executor] Scroll check failed: {e}")
