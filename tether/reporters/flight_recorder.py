"""
Flight Recorder - Action Logging for Later Replay.

Records every action together with a ``HistoryElement`` of the element
it targeted, taken at record time from the snapshot's selector map. The
record is written as ``flight_record.json`` and can be replayed against
a fresh page by ``SessionReplayer``, which relocates each target by
fingerprint instead of trusting the recorded index.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from tether.layers.memory.history import to_history_element

if TYPE_CHECKING:
    from tether.core.browser_session import DOMState
    from tether.layers.action.executor import ActionResult
    from tether.layers.action.models import ReplayAction
    from tether.layers.sense.dom_tree import SelectorMap

logger = logging.getLogger(__name__)

FLIGHT_RECORD_FILE = "flight_record.json"


@dataclass
class LogEntry:
    """A single log entry in the flight record."""
    timestamp: datetime
    step: int
    event_type: str  # 'navigation', 'state', 'action', 'warning', 'error', 'info'
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    screenshot_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "step": self.step,
            "event_type": self.event_type,
            "message": self.message,
            "data": self.data,
            "screenshot_path": self.screenshot_path,
        }


class FlightRecorder:
    """
    Records navigations, state reads and actions of one run.

    Example:
        >>> recorder = FlightRecorder()
        >>> recorder.log_navigation("https://example.com")
        >>> state = session.get_state()
        >>> recorder.log_action(1, ReplayAction("click_element", {"index": 3}), state.selector_map)
        >>> path = recorder.save()
    """

    def __init__(
        self,
        output_dir: str = "./tether_reports",
        run_name: Optional[str] = None,
    ):
        """
        Initialize the flight recorder.

        Args:
            output_dir: Directory for run folders
            run_name: Optional name for this run (timestamp by default)
        """
        self.output_dir = output_dir
        self.run_name = run_name or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.entries: List[LogEntry] = []
        self.metadata: Dict[str, Any] = {
            "start_time": datetime.now().isoformat(),
            "run_name": self.run_name,
        }

        self.run_dir = os.path.join(output_dir, self.run_name)
        self.screenshots_dir = os.path.join(self.run_dir, "screenshots")
        os.makedirs(self.screenshots_dir, exist_ok=True)

    def log_navigation(self, url: str) -> None:
        """Log a navigation event."""
        self.entries.append(LogEntry(
            timestamp=datetime.now(),
            step=0,
            event_type="navigation",
            message=f"Navigated to {url}",
            data={"url": url},
        ))
        self.metadata.setdefault("url", url)

    def log_state(self, step: int, state: "DOMState") -> None:
        """Log a summary of a state read."""
        self.entries.append(LogEntry(
            timestamp=datetime.now(),
            step=step,
            event_type="state",
            message=f"State: {len(state.selector_map)} indexed elements",
            data={
                "url": state.url,
                "title": state.title,
                "indexed_elements": len(state.selector_map),
            },
        ))

    def log_action(
        self,
        step: int,
        action: "ReplayAction",
        selector_map: "SelectorMap",
        result: Optional["ActionResult"] = None,
    ) -> None:
        """
        Log an action and the element it targeted.

        The targeted node is looked up in ``selector_map`` by the
        action's index and stored as a HistoryElement. Actions without
        an index, or whose index is not in the map, are stored without
        an element.
        """
        node = selector_map.get(action.index) if action.index is not None else None
        interacted = to_history_element(node).to_dict() if node is not None else None
        if action.index is not None and node is None:
            logger.warning(f"[FlightRecorder] Index {action.index} not in selector map, recording without element")

        status = ""
        if result is not None:
            status = " (success)" if result.success else " (failed)"

        self.entries.append(LogEntry(
            timestamp=datetime.now(),
            step=step,
            event_type="action",
            message=f"Action: {action.name}{status}",
            data={
                "action": action.to_dict(),
                "interacted_element": interacted,
                "result": result.to_dict() if result is not None else None,
            },
        ))

    def log_info(self, message: str) -> None:
        """Log a general information message."""
        self.entries.append(LogEntry(
            timestamp=datetime.now(),
            step=len(self.entries),
            event_type="info",
            message=message,
        ))

    def log_warning(self, message: str) -> None:
        """Log a warning."""
        self.entries.append(LogEntry(
            timestamp=datetime.now(),
            step=len(self.entries),
            event_type="warning",
            message=message,
        ))

    def log_error(self, message: str, exception: Optional[Exception] = None) -> None:
        """Log an error."""
        self.entries.append(LogEntry(
            timestamp=datetime.now(),
            step=len(self.entries),
            event_type="error",
            message=message,
            data={"exception": str(exception) if exception else None},
        ))

    def capture_screenshot(self, name: str, driver) -> Optional[str]:
        """
        Save a screenshot and attach it to the last entry.

        Returns:
            Path to saved screenshot, or None if the driver refused
        """
        path = os.path.join(self.screenshots_dir, f"{name}.png")
        try:
            if not driver.save_screenshot(path):
                return None
        except Exception as e:
            logger.warning(f"[FlightRecorder] Screenshot failed: {e}")
            return None

        if self.entries:
            self.entries[-1].screenshot_path = path
        return path

    def save(self) -> str:
        """
        Write the flight record.

        Returns:
            Path to ``flight_record.json``
        """
        self.metadata["end_time"] = datetime.now().isoformat()
        self.metadata["total_actions"] = len([e for e in self.entries if e.event_type == "action"])

        json_path = os.path.join(self.run_dir, FLIGHT_RECORD_FILE)
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump({
                "metadata": self.metadata,
                "entries": [e.to_dict() for e in self.entries],
            }, f, indent=2)

        logger.info(f"[FlightRecorder] Saved {len(self.entries)} entries to {json_path}")
        return json_path
