import json
import os
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from tether import __version__
from tether.cli.main import cli
from tether.layers.action.executor import ActionResult
from tether.layers.action.models import ReplayAction
from tether.layers.sense.dom_tree import build_selector_map
from tether.reporters.flight_recorder import FlightRecorder


def test_version():
    result = CliRunner().invoke(cli, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_doctor_reports_core_dependencies():
    result = CliRunner().invoke(cli, ["doctor"])
    assert result.exit_code == 0
    assert "selenium" in result.output
    assert "rich" in result.output


def test_doctor_rejects_bad_env():
    result = CliRunner().invoke(cli, ["doctor"], env={"TETHER_STATE_RETRIES": "many"})
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_replay_missing_record(tmp_path):
    result = CliRunner().invoke(cli, ["replay", str(tmp_path)])
    assert result.exit_code == 1
    assert "Flight record not found" in result.output


def test_replay_lists_timeline(tmp_path, login_tree):
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="run1")
    recorder.log_navigation("https://example.com/login")
    recorder.log_action(
        1, ReplayAction("click_element", {"index": 4}), build_selector_map(login_tree),
        ActionResult(success=True, action="click", duration_ms=2.0),
    )
    recorder.save()

    result = CliRunner().invoke(cli, ["replay", os.path.join(str(tmp_path), "run1")])

    assert result.exit_code == 0
    assert "click_element" in result.output
    assert "<button>" in result.output
    assert "--rerun" in result.output


def test_snapshot_prints_table_and_writes_records(tmp_path, login_page):
    driver = MagicMock()
    driver.execute_script.return_value = login_page
    driver.current_url = "https://example.com/login"
    driver.title = "Login"
    output = tmp_path / "elements.json"

    with patch("tether.core.driver_factory.create_driver", return_value=driver):
        result = CliRunner().invoke(cli, ["snapshot", "https://example.com/login", "-o", str(output)])

    assert result.exit_code == 0, result.output
    assert "Indexed elements:" in result.output
    assert "Sign in" in result.output
    driver.get.assert_called_once_with("https://example.com/login")
    driver.quit.assert_called_once()

    data = json.loads(output.read_text(encoding="utf-8"))
    assert [e["highlightIndex"] for e in data["elements"]] == [0, 1, 2, 3, 4]
