import json
import os
from unittest.mock import MagicMock

import pytest

from tether.core.browser_session import DOMState
from tether.core.exceptions import EngineUnavailable, ReplayError
from tether.layers.action.executor import ActionResult
from tether.layers.action.models import ReplayAction
from tether.layers.sense.dom_tree import build_selector_map
from tether.layers.sense.tree_builder import build_tree_from_payload
from tether.reporters.flight_recorder import FlightRecorder
from tether.reporters.session_replayer import (
    ReplayDecision,
    SessionReplayer,
    StepStatus,
)


def record_run(tmp_path, tree, actions):
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")
    recorder.log_navigation("https://example.com/login")
    selector_map = build_selector_map(tree)
    for step, action in enumerate(actions, 1):
        recorder.log_action(step, action, selector_map,
                            ActionResult(success=True, action=action.name, duration_ms=3.0))
    recorder.save()
    return os.path.join(str(tmp_path), "run1")


class FakeSession:
    """BrowserSession stand-in serving prebuilt trees."""

    def __init__(self, *trees):
        self.trees = list(trees)
        self.driver = MagicMock()
        self.selector_map = {}
        self.located = []

    def get_state(self, highlight=None):
        tree = self.trees.pop(0) if len(self.trees) > 1 else self.trees[0]
        if isinstance(tree, Exception):
            raise tree
        self.selector_map = build_selector_map(tree)
        return DOMState(tree=tree, selector_map=self.selector_map, url="https://example.com/login")

    def get_element_by_index(self, index):
        return self.selector_map.get(index)

    def locate_element(self, node):
        self.located.append(node)
        return MagicMock(name=f"handle-{node.highlight_index}")


def ok_executor():
    executor = MagicMock()
    executor.execute.side_effect = lambda action, handle: ActionResult(
        success=True, action=action.name, duration_ms=1.0
    )
    return executor


class TestFlightRecorder:
    def test_action_stores_history_element(self, tmp_path, login_tree):
        path = record_run(tmp_path, login_tree, [ReplayAction("click_element", {"index": 4})])
        with open(os.path.join(path, "flight_record.json"), encoding="utf-8") as f:
            data = json.load(f)

        action_entry = [e for e in data["entries"] if e["event_type"] == "action"][0]
        element = action_entry["data"]["interacted_element"]
        assert element["tag"] == "button"
        assert element["highlightIndex"] == 4
        assert element["entireParentBranchPath"] == ["body", "form"]
        assert action_entry["data"]["result"]["success"] is True
        assert data["metadata"]["url"] == "https://example.com/login"
        assert data["metadata"]["total_actions"] == 1

    def test_unknown_index_recorded_without_element(self, tmp_path, login_tree):
        recorder = FlightRecorder(output_dir=str(tmp_path))
        recorder.log_action(1, ReplayAction("click_element", {"index": 99}), build_selector_map(login_tree))
        assert recorder.entries[0].data["interacted_element"] is None

    def test_log_state_summary(self, tmp_path, login_tree):
        recorder = FlightRecorder(output_dir=str(tmp_path))
        recorder.log_state(1, DOMState(tree=login_tree, selector_map=build_selector_map(login_tree), url="u", title="t"))
        assert recorder.entries[0].data["indexed_elements"] == 5

    def test_screenshot_attached_to_last_entry(self, tmp_path):
        recorder = FlightRecorder(output_dir=str(tmp_path))
        recorder.log_info("before click")
        driver = MagicMock()
        driver.save_screenshot.return_value = True
        path = recorder.capture_screenshot("step1", driver)
        assert path.endswith("step1.png")
        assert recorder.entries[-1].screenshot_path == path


class TestLoad:
    def test_load_parses_actions(self, tmp_path, login_tree):
        path = record_run(tmp_path, login_tree, [
            ReplayAction("click_element", {"index": 2}),
            ReplayAction("input_text", {"index": 2, "text": "me@example.com"}),
        ])
        replayer = SessionReplayer(path)
        session = replayer.load()

        assert session.run_id == "run1"
        assert session.url == "https://example.com/login"
        actions = replayer.get_actions()
        assert [s.action.name for s in actions] == ["click_element", "input_text"]
        assert actions[1].action.params["text"] == "me@example.com"
        assert actions[0].history_element.attributes["name"] == "email"
        assert actions[0].recorded_success is True

    def test_missing_record(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SessionReplayer(str(tmp_path)).load()

    def test_malformed_record(self, tmp_path):
        (tmp_path / "flight_record.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ReplayError):
            SessionReplayer(str(tmp_path)).load()

    def test_record_without_entry_list(self, tmp_path):
        (tmp_path / "flight_record.json").write_text(json.dumps({"entries": "nope"}), encoding="utf-8")
        with pytest.raises(ReplayError):
            SessionReplayer(str(tmp_path)).load()


class TestReplay:
    def test_replays_on_unchanged_page(self, tmp_path, login_tree, login_page):
        path = record_run(tmp_path, login_tree, [ReplayAction("click_element", {"index": 4})])
        session = FakeSession(build_tree_from_payload(login_page))
        executor = ok_executor()

        outcomes = SessionReplayer(path).replay(session, executor)

        assert [o.status for o in outcomes] == [StepStatus.SUCCESS]
        assert outcomes[0].replayed_index == 4
        session.driver.get.assert_called_once_with("https://example.com/login")
        assert session.located[0].attributes["id"] == "submit"

    def test_moved_element_is_remapped(self, tmp_path, login_tree, login_page, payload):
        path = record_run(tmp_path, login_tree, [ReplayAction("click_element", {"index": 4})])
        shifted = dict(login_page)
        body = dict(shifted["children"][0])
        body["children"] = [payload.element("a", payload.text("Promo"), attributes={"href": "/promo"})] + body["children"]
        shifted["children"] = [body]

        outcomes = SessionReplayer(path).replay(FakeSession(build_tree_from_payload(shifted)), ok_executor())

        assert outcomes[0].ok
        assert outcomes[0].recorded_index == 4
        assert outcomes[0].replayed_index == 5

    def test_missing_element_is_skipped_by_default(self, tmp_path, login_tree, payload):
        path = record_run(tmp_path, login_tree, [
            ReplayAction("click_element", {"index": 4}),
            ReplayAction("click_element", {"index": 0}),
        ])
        p = payload
        nav_only = build_tree_from_payload(p.page(
            p.element("nav", p.element("a", p.text("Home"), attributes={"href": "/"})),
        ))

        outcomes = SessionReplayer(path).replay(FakeSession(nav_only), ok_executor())

        assert [o.status for o in outcomes] == [StepStatus.ELEMENT_NOT_FOUND, StepStatus.SUCCESS]

    def test_abort_policy_stops_run(self, tmp_path, login_tree, payload):
        path = record_run(tmp_path, login_tree, [
            ReplayAction("click_element", {"index": 4}),
            ReplayAction("click_element", {"index": 0}),
        ])
        empty = build_tree_from_payload(payload.page())
        executor = ok_executor()
        seen = []

        def policy(outcome):
            seen.append(outcome.status)
            return ReplayDecision.ABORT

        outcomes = SessionReplayer(path).replay(FakeSession(empty), executor, policy=policy)

        assert len(outcomes) == 1
        assert seen == [StepStatus.ELEMENT_NOT_FOUND]
        executor.execute.assert_not_called()

    def test_retry_after_engine_unavailable(self, tmp_path, login_tree, login_page):
        path = record_run(tmp_path, login_tree, [ReplayAction("click_element", {"index": 4})])
        session = FakeSession(EngineUnavailable("navigating"), build_tree_from_payload(login_page))
        attempts = []

        outcomes = SessionReplayer(path).replay(
            session, ok_executor(),
            policy=lambda o: ReplayDecision.RETRY,
            callback=lambda o: attempts.append((o.attempt, o.status)),
        )

        assert attempts == [(1, StepStatus.ENGINE_UNAVAILABLE), (2, StepStatus.SUCCESS)]
        assert outcomes[0].ok
        assert outcomes[0].attempt == 2

    def test_retries_are_bounded(self, tmp_path, login_tree, payload):
        path = record_run(tmp_path, login_tree, [ReplayAction("click_element", {"index": 4})])
        empty = build_tree_from_payload(payload.page())

        outcomes = SessionReplayer(path, max_attempts=3).replay(
            FakeSession(empty), ok_executor(), policy=lambda o: ReplayDecision.RETRY
        )

        assert outcomes[0].status == StepStatus.ELEMENT_NOT_FOUND
        assert outcomes[0].attempt == 3

    def test_failed_action_reported(self, tmp_path, login_tree, login_page):
        path = record_run(tmp_path, login_tree, [ReplayAction("click_element", {"index": 4})])
        executor = MagicMock()
        executor.execute.return_value = ActionResult(
            success=False, action="click", duration_ms=1.0, error="All click strategies failed"
        )

        outcomes = SessionReplayer(path).replay(FakeSession(build_tree_from_payload(login_page)), executor)

        assert outcomes[0].status == StepStatus.ACTION_FAILED
        assert outcomes[0].reason == "All click strategies failed"

    def test_index_without_element_record_is_not_executed(self, tmp_path, login_page):
        recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")
        recorder.log_navigation("https://example.com/login")
        recorder.log_action(1, ReplayAction("click_element", {"index": 4}), {})
        recorder.save()
        executor = ok_executor()

        outcomes = SessionReplayer(os.path.join(str(tmp_path), "run1")).replay(
            FakeSession(build_tree_from_payload(login_page)), executor
        )

        assert outcomes[0].status == StepStatus.ELEMENT_NOT_FOUND
        assert "index 4" in outcomes[0].reason
        executor.execute.assert_not_called()


class TestReplayLog:
    def test_outcomes_are_written_to_recorder(self, tmp_path, login_tree, payload):
        path = record_run(tmp_path, login_tree, [
            ReplayAction("click_element", {"index": 4}),
            ReplayAction("click_element", {"index": 0}),
        ])
        p = payload
        nav_only = build_tree_from_payload(p.page(
            p.element("nav", p.element("a", p.text("Home"), attributes={"href": "/"})),
        ))
        log = FlightRecorder(output_dir=str(tmp_path), run_name="rerun")

        SessionReplayer(path).replay(FakeSession(nav_only), ok_executor(), recorder=log)

        assert [e.event_type for e in log.entries] == ["navigation", "warning", "info"]
        assert "element_not_found" in log.entries[1].message
        assert log.entries[2].message.startswith("Step 2 click_element")

    def test_abort_is_logged_as_error(self, tmp_path, login_tree):
        path = record_run(tmp_path, login_tree, [ReplayAction("click_element", {"index": 4})])
        log = FlightRecorder(output_dir=str(tmp_path), run_name="rerun")

        SessionReplayer(path).replay(
            FakeSession(EngineUnavailable("navigating")), ok_executor(),
            policy=lambda o: ReplayDecision.ABORT, recorder=log,
        )

        error = log.entries[-1]
        assert error.event_type == "error"
        assert error.message == "Replay aborted at step 1"
        assert error.data["exception"] == "navigating"


def test_action_entry_without_action_is_rejected(tmp_path):
    record = {"metadata": {}, "entries": [
        {"timestamp": "2026-01-01T12:00:00", "step": 1, "event_type": "action",
         "message": "Action: click_element", "data": {"interacted_element": None}},
    ]}
    (tmp_path / "flight_record.json").write_text(json.dumps(record), encoding="utf-8")
    with pytest.raises(ReplayError):
        SessionReplayer(str(tmp_path)).load()
