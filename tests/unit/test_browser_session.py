import threading
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from selenium.common.exceptions import JavascriptException, NoSuchWindowException

from tether.core.browser_session import BrowserSession, DOMState
from tether.core.config import TetherConfig
from tether.core.exceptions import EngineUnavailable
from tether.layers.memory.history import to_history_element
from tether.layers.sense.dom_tree import ElementNode
from tether.layers.sense.tree_builder import build_tree_from_payload


def make_driver(snapshot, url="https://example.com/login"):
    driver = MagicMock()
    driver.execute_script.return_value = snapshot
    driver.current_url = url
    driver.title = "Login"
    return driver


@pytest.fixture
def no_sleep():
    with patch("tether.core.browser_session.time.sleep") as sleep:
        yield sleep


class TestGetState:
    def test_returns_tree_and_selector_map(self, login_page):
        driver = make_driver(login_page)
        session = BrowserSession(driver, TetherConfig(snapshot_timeout=4.0))
        state = session.get_state()

        assert isinstance(state, DOMState)
        assert sorted(state.selector_map) == [0, 1, 2, 3, 4]
        assert state.url == "https://example.com/login"
        assert state.title == "Login"
        driver.set_script_timeout.assert_called_with(4.0)

    def test_selector_map_is_replaced_each_read(self, login_page, payload):
        driver = make_driver(login_page)
        session = BrowserSession(driver)
        session.get_state()
        first = session.get_element_by_index(4)

        driver.execute_script.return_value = payload.page(payload.element("button", payload.text("Only")))
        session.get_state()

        assert session.get_element_by_index(4) is None
        assert session.get_element_by_index(0) is not first
        assert session.get_element_by_index(0).tag == "button"

    def test_get_element_by_index_before_any_read(self):
        assert BrowserSession(MagicMock()).get_element_by_index(0) is None

    def test_highlight_defaults_to_config(self, login_page):
        driver = make_driver(login_page)
        BrowserSession(driver, TetherConfig(highlight_elements=True)).get_state()
        assert driver.execute_script.call_count == 2

    def test_retries_engine_unavailable_with_backoff(self, login_page, no_sleep):
        driver = make_driver(login_page)
        driver.execute_script.side_effect = [
            JavascriptException("Execution context was destroyed"),
            NoSuchWindowException("navigating"),
            login_page,
        ]
        config = TetherConfig(state_retries=3, retry_backoff=0.5)
        state = BrowserSession(driver, config).get_state()

        assert len(state.selector_map) == 5
        assert [c[0][0] for c in no_sleep.call_args_list] == [0.5, 1.0]

    def test_gives_up_after_configured_retries(self, no_sleep):
        driver = make_driver(None)
        driver.execute_script.side_effect = JavascriptException("gone")
        with pytest.raises(EngineUnavailable):
            BrowserSession(driver, TetherConfig(state_retries=2)).get_state()
        assert driver.execute_script.call_count == 2
        assert no_sleep.call_count == 1

    def test_snapshot_during_navigation_is_discarded(self, login_page, no_sleep):
        driver = make_driver(login_page)
        type(driver).current_url = PropertyMock(side_effect=[
            "https://example.com/login", "https://example.com/home",
            "https://example.com/home", "https://example.com/home",
        ])
        state = BrowserSession(driver).get_state()

        assert state.url == "https://example.com/home"
        assert driver.execute_script.call_count == 2
        assert no_sleep.call_count == 1

    def test_state_reads_are_serialized(self, login_page):
        driver = make_driver(login_page)
        session = BrowserSession(driver)
        active = []
        overlap = []

        original = session.builder.build

        def slow_build(highlight=False):
            active.append(1)
            if len(active) > 1:
                overlap.append(True)
            try:
                threading.Event().wait(0.01)
                return original(highlight=highlight)
            finally:
                active.pop()

        session.builder.build = slow_build
        threads = [threading.Thread(target=session.get_state) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlap == []


class TestLookups:
    def test_find_history_element_in_tree(self, login_tree):
        session = BrowserSession(MagicMock())
        form = login_tree.element_children()[0].element_children()[1]
        node = form.element_children()[0]
        record = to_history_element(node)
        assert session.find_history_element_in_tree(record, login_tree) is node

    def test_locate_element_delegates_to_locator(self):
        session = BrowserSession(MagicMock())
        handle = MagicMock()
        node = ElementNode(tag="button")
        with patch.object(session.locator, "locate", return_value=handle) as locate:
            assert session.locate_element(node) is handle
        locate.assert_called_once_with(node)

    def test_remove_highlights(self):
        driver = MagicMock()
        BrowserSession(driver).remove_highlights()
        assert "remove" in driver.execute_script.call_args[0][0]


class TestFileUploader:
    def test_file_input(self, payload):
        tree = build_tree_from_payload(payload.page(payload.element("input", attributes={"type": "file"})))
        session = BrowserSession(MagicMock())
        assert session.is_file_uploader(tree, max_depth=3) is True

    def test_accept_attribute(self):
        node = ElementNode(tag="input", attributes={"accept": "image/*"})
        assert BrowserSession(MagicMock()).is_file_uploader(node) is True

    def test_text_input_is_not_uploader(self):
        node = ElementNode(tag="input", attributes={"type": "text"})
        assert BrowserSession(MagicMock()).is_file_uploader(node) is False

    def test_depth_limit(self, payload):
        p = payload
        # label > div > span > input: input is three levels below the label
        label = build_tree_from_payload(
            p.element("label", p.element("div", p.element("span", p.element("input", attributes={"type": "file"}))))
        )
        session = BrowserSession(MagicMock())
        assert session.is_file_uploader(label, max_depth=3) is True
        assert session.is_file_uploader(label, max_depth=2) is False

    def test_depth_defaults_to_config(self, payload):
        p = payload
        label = build_tree_from_payload(
            p.element("label", p.element("div", p.element("input", attributes={"type": "file"})))
        )
        assert BrowserSession(MagicMock(), TetherConfig(file_uploader_max_depth=1)).is_file_uploader(label) is False
        assert BrowserSession(MagicMock(), TetherConfig(file_uploader_max_depth=2)).is_file_uploader(label) is True
