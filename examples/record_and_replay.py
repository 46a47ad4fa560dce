#!/usr/bin/env python3
"""
Record and Replay Example
=========================

Records a single click into a flight record, then replays it in a fresh
browser. The replayer relocates the element by fingerprint, so the run
survives a page whose element indices have shifted since recording.

Usage:
    python examples/record_and_replay.py [URL] [INDEX]
"""

import os
import sys

from tether import BrowserSession, TetherConfig
from tether.core.driver_factory import driver_context
from tether.layers.action import ActionExecutor, ReplayAction
from tether.reporters.flight_recorder import FlightRecorder
from tether.reporters.session_replayer import SessionReplayer


def record(url, index, config):
    recorder = FlightRecorder(output_dir=config.report_dir, run_name="example")
    with driver_context(config) as driver:
        driver.get(url)
        recorder.log_navigation(url)

        session = BrowserSession(driver, config)
        state = session.get_state()
        recorder.log_state(1, state)

        node = session.get_element_by_index(index)
        if node is None:
            print(f"No element with index {index}; page has {len(state.selector_map)}")
            return None

        print(f"Recording click on: {node}")
        action = ReplayAction("click_element", {"index": index})
        executor = ActionExecutor(driver, config)
        result = executor.execute(action, session.locate_element(node))
        recorder.log_action(1, action, state.selector_map, result)
        print(f"  Result: {'ok' if result.success else result.error}")

    return recorder.save()


def replay(report_dir, config):
    replayer = SessionReplayer(report_dir)
    with driver_context(config) as driver:
        session = BrowserSession(driver, config)
        outcomes = replayer.replay(
            session,
            ActionExecutor(driver, config),
            callback=lambda o: print(f"  Step {o.step_number}: {o.status} {o.reason or ''}"),
        )
    return all(o.ok for o in outcomes)


def main():
    url = sys.argv[1] if len(sys.argv) > 1 else "https://example.com"
    index = int(sys.argv[2]) if len(sys.argv) > 2 else 0
    config = TetherConfig.from_env()

    print("=" * 60)
    print("Tether - Record and Replay")
    print("=" * 60)

    report_path = record(url, index, config)
    if report_path is None:
        sys.exit(1)
    print(f"Flight record saved: {report_path}")
    print()

    print("Replaying...")
    ok = replay(os.path.dirname(report_path), config)
    print("Replay succeeded" if ok else "Replay had failures")


if __name__ == "__main__":
    main()
