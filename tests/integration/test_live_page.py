"""
Live-browser checks of the snapshot, relocation and replay paths.

Run with: TETHER_BROWSER_TESTS=1 pytest tests/integration
"""

import os

import pytest

pytest.importorskip("selenium")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.environ.get("TETHER_BROWSER_TESTS") != "1",
        reason="set TETHER_BROWSER_TESTS=1 to drive a real Chrome",
    ),
]

from tether.core.browser_session import BrowserSession  # noqa: E402
from tether.core.config import TetherConfig  # noqa: E402
from tether.core.driver_factory import create_driver  # noqa: E402
from tether.layers.action.executor import ActionExecutor  # noqa: E402
from tether.layers.action.models import ReplayAction  # noqa: E402
from tether.layers.memory.history import to_history_element  # noqa: E402
from tether.reporters.flight_recorder import FlightRecorder  # noqa: E402
from tether.reporters.session_replayer import SessionReplayer, StepStatus  # noqa: E402

PAGE = """<!doctype html>
<html><body>
  <div id="banner-slot"></div>
  <form id="login" onsubmit="return false">
    <input name="email" placeholder="Email">
    <button id="submit" type="button" onclick="document.title = 'clicked'">Sign in</button>
    <button style="display:none">Hidden</button>
  </form>
  <custom-card></custom-card>
  <script>
    const host = document.querySelector('custom-card');
    const root = host.attachShadow({mode: 'open'});
    root.innerHTML = '<button id="inner">Shadow action</button>';
    if (location.hash === '#promo') {
      const a = document.createElement('a');
      a.href = '#'; a.textContent = 'Promo';
      document.getElementById('banner-slot').appendChild(a);
    }
  </script>
</body></html>
"""


@pytest.fixture(scope="module")
def driver():
    d = create_driver(headless=True)
    yield d
    d.quit()


@pytest.fixture
def page_url(tmp_path):
    path = tmp_path / "login.html"
    path.write_text(PAGE, encoding="utf-8")
    return path.as_uri()


def indexed_tags(state):
    return [state.selector_map[i].tag for i in sorted(state.selector_map)]


def test_snapshot_indexes_visible_controls(driver, page_url):
    driver.get(page_url)
    state = BrowserSession(driver).get_state()

    assert indexed_tags(state) == ["input", "button", "button"]
    shadow_button = state.selector_map[2]
    assert shadow_button.shadow_root is True
    assert shadow_button.attributes["id"] == "inner"


def test_highlight_overlay_is_drawn_and_removed(driver, page_url):
    driver.get(page_url)
    session = BrowserSession(driver, TetherConfig(highlight_elements=True))
    session.get_state()
    assert driver.execute_script("return !!document.getElementById('tether-highlight-container')")

    session.remove_highlights()
    assert not driver.execute_script("return !!document.getElementById('tether-highlight-container')")


def test_relocates_after_reload_with_shifted_indices(driver, page_url):
    driver.get(page_url)
    session = BrowserSession(driver)
    state = session.get_state()
    record = to_history_element(state.selector_map[1])

    driver.get(page_url + "#promo")
    driver.refresh()
    fresh = session.get_state()
    node = session.find_history_element_in_tree(record, fresh.tree)

    assert node is not None
    assert node.highlight_index == 2
    handle = session.locate_element(node)
    assert handle is not None
    assert handle.get_attribute("id") == "submit"


def test_record_and_replay(driver, page_url, tmp_path):
    driver.get(page_url)
    session = BrowserSession(driver)
    executor = ActionExecutor(driver)
    recorder = FlightRecorder(output_dir=str(tmp_path), run_name="live")
    recorder.log_navigation(page_url + "#promo")

    state = session.get_state()
    action = ReplayAction("click_element", {"index": 1})
    handle = session.locate_element(session.get_element_by_index(1))
    recorder.log_action(1, action, state.selector_map, executor.execute(action, handle))
    recorder.save()

    driver.get("about:blank")
    outcomes = SessionReplayer(os.path.join(str(tmp_path), "live")).replay(session, executor)

    assert [o.status for o in outcomes] == [StepStatus.SUCCESS]
    assert outcomes[0].replayed_index == 2
    assert driver.title == "clicked"
