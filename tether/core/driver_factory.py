"""
Driver Factory - Chrome WebDriver creation.

Creates a Chrome instance with the options Tether's snapshot and replay
paths rely on: a fixed window size (recorded bounding boxes are compared
across sessions) and a script timeout matching the snapshot budget.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions

from tether.core.config import TetherConfig

logger = logging.getLogger(__name__)

WebDriverType = webdriver.Chrome

DEFAULT_WINDOW_SIZE = (1920, 1080)


def create_driver(
    headless: bool = False,
    profile_path: Optional[str] = None,
    window_size: Tuple[int, int] = DEFAULT_WINDOW_SIZE,
    script_timeout: float = TetherConfig.snapshot_timeout,
) -> WebDriverType:
    """
    Create a Chrome WebDriver.

    Args:
        headless: Run browser in headless mode
        profile_path: Path to browser profile for session persistence
        window_size: Viewport size; keep it fixed between record and replay
        script_timeout: Seconds allowed for one injected script

    Example:
        >>> driver = create_driver(headless=True)
        >>> driver.get("https://example.com")
    """
    options = _build_options(headless, profile_path, window_size)
    driver = webdriver.Chrome(options=options)
    driver.set_script_timeout(script_timeout)
    logger.info(f"[DriverFactory] Chrome started (headless={headless}, window={window_size[0]}x{window_size[1]})")
    return driver


@contextmanager
def driver_context(config: Optional[TetherConfig] = None, **kwargs) -> Iterator[WebDriverType]:
    """
    Create a driver from config and quit it on exit.

    Example:
        >>> with driver_context(TetherConfig(headless=True)) as driver:
        ...     BrowserSession(driver).get_state()
    """
    config = config or TetherConfig()
    kwargs.setdefault("headless", config.headless)
    kwargs.setdefault("script_timeout", config.snapshot_timeout)
    driver = create_driver(**kwargs)
    try:
        yield driver
    finally:
        driver.quit()


def _build_options(
    headless: bool,
    profile_path: Optional[str],
    window_size: Tuple[int, int],
) -> ChromeOptions:
    options = ChromeOptions()

    if headless:
        options.add_argument("--headless=new")

    if profile_path:
        options.add_argument(f"--user-data-dir={profile_path}")

    # Common stability options
    options.add_argument(f"--window-size={window_size[0]},{window_size[1]}")
    options.add_argument("--disable-extensions")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--force-device-scale-factor=1")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])

    return options
