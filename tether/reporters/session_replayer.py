"""
Session Replayer - Re-execute Recorded Runs.

Loads a flight record and replays its actions on a live browser. Each
step reads fresh page state, remaps the recorded index through the
element's fingerprint, locates the live element and executes the action.

A failed step is reported as a ``StepOutcome`` with a status; the
caller's policy decides whether to retry it, skip it or abort the run.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from selenium.common.exceptions import WebDriverException

from tether.core.exceptions import ElementNotFound, EngineUnavailable, ReplayError
from tether.layers.action.index_updater import remap
from tether.layers.action.models import ReplayAction
from tether.layers.memory.history import HistoryElement
from tether.reporters.flight_recorder import FLIGHT_RECORD_FILE, FlightRecorder

if TYPE_CHECKING:
    from tether.core.browser_session import BrowserSession
    from tether.layers.action.executor import ActionExecutor, ActionResult

logger = logging.getLogger(__name__)


class StepStatus:
    SUCCESS = "success"
    ELEMENT_NOT_FOUND = "element_not_found"
    ENGINE_UNAVAILABLE = "engine_unavailable"
    ACTION_FAILED = "action_failed"


class ReplayDecision(Enum):
    """What to do with a failed step."""
    RETRY = "retry"
    SKIP = "skip"
    ABORT = "abort"


@dataclass
class ReplayStep:
    """A single entry of a loaded flight record."""
    step_number: int
    timestamp: datetime
    event_type: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    screenshot_path: Optional[str] = None

    @property
    def action(self) -> Optional[ReplayAction]:
        """A fresh copy of the recorded action, if this is an action step."""
        raw = self.data.get("action")
        if self.event_type != "action" or not raw:
            return None
        return ReplayAction.from_dict(raw)

    @property
    def history_element(self) -> Optional[HistoryElement]:
        """Record of the element the action targeted."""
        raw = self.data.get("interacted_element")
        return HistoryElement.from_dict(raw) if raw else None

    @property
    def recorded_success(self) -> Optional[bool]:
        result = self.data.get("result")
        return result.get("success") if result else None


@dataclass
class ReplaySession:
    """A complete run loaded from a flight record."""
    run_id: str
    url: str
    start_time: datetime
    end_time: Optional[datetime]
    steps: List[ReplayStep] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Total recorded duration in seconds."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    @property
    def actions(self) -> List[ReplayStep]:
        return [s for s in self.steps if s.event_type == "action"]


@dataclass
class StepOutcome:
    """Result of replaying one recorded action."""
    step_number: int
    action: str
    status: str
    reason: Optional[str] = None
    recorded_index: Optional[int] = None
    replayed_index: Optional[int] = None
    attempt: int = 1
    result: Optional["ActionResult"] = None
    error: Optional[Exception] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_number": self.step_number,
            "action": self.action,
            "status": self.status,
            "reason": self.reason,
            "recorded_index": self.recorded_index,
            "replayed_index": self.replayed_index,
            "attempt": self.attempt,
        }


ReplayPolicy = Callable[[StepOutcome], ReplayDecision]


class SessionReplayer:
    """
    Replay past Tether runs.

    Example:
        >>> replayer = SessionReplayer("./tether_reports/20260101_120000")
        >>> replayer.load()
        >>> outcomes = replayer.replay(BrowserSession(driver), ActionExecutor(driver))
        >>> print([o.status for o in outcomes])
    """

    def __init__(self, report_dir: str, max_attempts: int = 3):
        """
        Initialize the session replayer.

        Args:
            report_dir: Path to the run directory containing flight_record.json
            max_attempts: Upper bound on attempts per step when the policy
                keeps answering RETRY
        """
        self.report_dir = report_dir
        self.flight_record_path = os.path.join(report_dir, FLIGHT_RECORD_FILE)
        self.max_attempts = max_attempts
        self.session: Optional[ReplaySession] = None

    def load(self) -> ReplaySession:
        """
        Load the flight record and parse it into a ReplaySession.

        Raises:
            FileNotFoundError: If the run has no flight record.
            ReplayError: If the record is not valid JSON or not a record.
        """
        if not os.path.exists(self.flight_record_path):
            raise FileNotFoundError(f"Flight record not found: {self.flight_record_path}")

        try:
            with open(self.flight_record_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ReplayError(f"Flight record is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("entries", []), list):
            raise ReplayError("Flight record has no entry list")

        self.session = self._parse_flight_record(data)
        logger.info(f"[SessionReplayer] Loaded session with {len(self.session.steps)} steps")
        return self.session

    def _parse_flight_record(self, data: Dict[str, Any]) -> ReplaySession:
        """Parse raw flight record JSON into a ReplaySession."""
        metadata = data.get("metadata", {})
        steps: List[ReplayStep] = []
        url = metadata.get("url", "")
        start_time = None
        end_time = None

        for entry in data.get("entries", []):
            if not isinstance(entry, dict):
                raise ReplayError(f"Malformed entry: {entry!r}")
            try:
                timestamp = datetime.fromisoformat(str(entry.get("timestamp", "")).replace("Z", "+00:00"))
            except ValueError:
                timestamp = datetime.now()

            if start_time is None:
                start_time = timestamp
            end_time = timestamp

            event_type = entry.get("event_type", "unknown")
            entry_data = entry.get("data") or {}
            if event_type == "navigation" and not url:
                url = entry_data.get("url", "")
            if event_type == "action":
                raw_action = entry_data.get("action")
                if not isinstance(raw_action, dict) or not raw_action.get("name"):
                    raise ReplayError(f"Action entry {entry.get('step', len(steps))} has no action")

            steps.append(ReplayStep(
                step_number=entry.get("step", len(steps)),
                timestamp=timestamp,
                event_type=event_type,
                message=entry.get("message", ""),
                data=entry_data,
                screenshot_path=entry.get("screenshot_path"),
            ))

        return ReplaySession(
            run_id=metadata.get("run_name") or os.path.basename(os.path.normpath(self.report_dir)),
            url=url,
            start_time=start_time or datetime.now(),
            end_time=end_time,
            steps=steps,
        )

    def get_actions(self) -> List[ReplayStep]:
        """Get only the action steps from the session."""
        if not self.session:
            self.load()
        return self.session.actions

    def replay(
        self,
        browser_session: "BrowserSession",
        executor: "ActionExecutor",
        policy: Optional[ReplayPolicy] = None,
        callback: Optional[Callable[[StepOutcome], None]] = None,
        navigate: bool = True,
        recorder: Optional[FlightRecorder] = None,
    ) -> List[StepOutcome]:
        """
        Re-execute the recorded actions on a live browser.

        Args:
            browser_session: Session of the page to replay on
            executor: Executor performing the actions
            policy: Decides what happens after a failed step (SKIP if omitted)
            callback: Called with every outcome, including retried ones
            navigate: Open the recorded start URL first
            recorder: Logs every outcome of this replay as a new flight record

        Returns:
            One outcome per replayed step, in order. An aborted run
            returns the outcomes up to and including the failing step.
        """
        if not self.session:
            self.load()

        if navigate and self.session.url:
            logger.info(f"[SessionReplayer] Navigating to {self.session.url}")
            browser_session.driver.get(self.session.url)
            if recorder:
                recorder.log_navigation(self.session.url)

        outcomes: List[StepOutcome] = []
        for step in self.get_actions():
            attempt = 1
            while True:
                outcome = self._replay_step(step, browser_session, executor)
                outcome.attempt = attempt
                if callback:
                    callback(outcome)
                if outcome.ok:
                    if recorder:
                        recorder.log_info(
                            f"Step {step.step_number} {outcome.action}: index {outcome.recorded_index} -> {outcome.replayed_index}"
                        )
                    break

                decision = policy(outcome) if policy else ReplayDecision.SKIP
                message = f"Step {step.step_number} {outcome.status}: {outcome.reason} -> {decision.value}"
                logger.warning(f"[SessionReplayer] {message}")
                if recorder:
                    recorder.log_warning(message)
                if decision is ReplayDecision.RETRY and attempt < self.max_attempts:
                    attempt += 1
                    continue
                if decision is ReplayDecision.ABORT:
                    outcomes.append(outcome)
                    logger.info(f"[SessionReplayer] Replay aborted at step {step.step_number}")
                    if recorder:
                        recorder.log_error(f"Replay aborted at step {step.step_number}", outcome.error)
                    return outcomes
                break
            outcomes.append(outcome)

        return outcomes

    def _replay_step(
        self,
        step: ReplayStep,
        browser_session: "BrowserSession",
        executor: "ActionExecutor",
    ) -> StepOutcome:
        action = step.action
        outcome = StepOutcome(
            step_number=step.step_number,
            action=action.name,
            status=StepStatus.SUCCESS,
            recorded_index=action.index,
        )

        history_element = step.history_element
        if action.index is not None and history_element is None:
            # an index alone means nothing outside the snapshot it came from
            outcome.status = StepStatus.ELEMENT_NOT_FOUND
            outcome.reason = f"No element was recorded for index {action.index}"
            return outcome

        try:
            state = browser_session.get_state()
        except EngineUnavailable as e:
            outcome.status = StepStatus.ENGINE_UNAVAILABLE
            outcome.reason = str(e)
            outcome.error = e
            return outcome

        if remap(history_element, state.tree, action) is None:
            outcome.status = StepStatus.ELEMENT_NOT_FOUND
            outcome.reason = "Element no longer on the page"
            return outcome
        outcome.replayed_index = action.index

        if action.index is None:
            outcome.status = StepStatus.ACTION_FAILED
            outcome.reason = "Action has no element target"
            return outcome

        node = browser_session.get_element_by_index(action.index)
        handle = browser_session.locate_element(node) if node is not None else None
        logger.info(f"[SessionReplayer] Replaying: {action.name} -> {node}")

        try:
            result = executor.execute(action, handle)
        except ElementNotFound as e:
            outcome.status = StepStatus.ELEMENT_NOT_FOUND
            outcome.reason = str(e)
            outcome.error = e
            return outcome
        except WebDriverException as e:
            outcome.status = StepStatus.ACTION_FAILED
            outcome.reason = e.msg or str(e)
            outcome.error = e
            return outcome

        outcome.result = result
        if not result.success:
            outcome.status = StepStatus.ACTION_FAILED
            outcome.reason = result.error
        return outcome
