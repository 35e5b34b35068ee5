"""
Selenium implementation of PageCapability.

Selenium's API is blocking, so every driver call runs in a worker
thread via asyncio.to_thread. A threading lock serializes those calls:
one WebDriver connection can only carry one command at a time, and tab
switching must not interleave with another tab's script.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from selenium.common.exceptions import (
    NoSuchWindowException,
    TimeoutException,
    WebDriverException,
)

from wayfinder.core.capability import PageCapability
from wayfinder.core.config import BrowserConfig
from wayfinder.core.driver_factory import WebDriverType, create_driver
from wayfinder.exceptions import (
    CapabilityUnavailable,
    NavigationFailed,
    ScriptExecutionFailed,
)

logger = logging.getLogger(__name__)

# Evaluates an expression (awaiting promises) and reports through the
# async callback, so thrown errors come back as data instead of a
# generic driver exception.
_ASYNC_WRAPPER_HEAD = (
    "const __done = arguments[arguments.length - 1];\n"
    "Promise.resolve().then(() => (\n"
)
_ASYNC_WRAPPER_TAIL = (
    "\n)).then(\n"
    "  (value) => __done({ok: true, value: value === undefined ? null : value}),\n"
    "  (err) => __done({ok: false, error: String((err && err.message) || err)})\n"
    ");"
)


def wrap_expression(script: str) -> str:
    """Wrap a JavaScript expression for execute_async_script."""
    return _ASYNC_WRAPPER_HEAD + script + _ASYNC_WRAPPER_TAIL


class SeleniumPage(PageCapability):
    """
    PageCapability backed by a local Chrome driven by Selenium.

    Example:
        >>> page = SeleniumPage()
        >>> await page.launch(BrowserConfig(headless=True))
        >>> tab = await page.new_tab()
        >>> await page.navigate(tab, "https://example.com")
        >>> await page.run_script(tab, "document.title")
        'Example Domain'
    """

    def __init__(self, driver_factory: Callable[[BrowserConfig], WebDriverType] = create_driver):
        """
        Args:
            driver_factory: Callable building a WebDriver from a BrowserConfig
        """
        self._driver_factory = driver_factory
        self._driver: Optional[WebDriverType] = None
        self._lock = threading.Lock()
        self._initial_tab_claimed = False

    @property
    def is_running(self) -> bool:
        return self._driver is not None

    @property
    def driver(self) -> WebDriverType:
        """The underlying WebDriver."""
        if self._driver is None:
            raise CapabilityUnavailable()
        return self._driver

    async def launch(self, config: Optional[BrowserConfig] = None) -> None:
        if self._driver is not None:
            return
        config = config or BrowserConfig()
        logger.info(f"[SeleniumPage] Launching Chrome (headless={config.headless})")
        try:
            self._driver = await asyncio.to_thread(self._driver_factory, config)
        except WebDriverException as e:
            raise CapabilityUnavailable(f"Failed to launch browser: {e.msg or e}") from e
        self._initial_tab_claimed = False

    async def new_tab(self) -> str:
        driver = self.driver

        def _open() -> str:
            with self._lock:
                # The window Chrome starts with is the first tab
                if not self._initial_tab_claimed:
                    self._initial_tab_claimed = True
                    return driver.current_window_handle
                driver.switch_to.new_window("tab")
                return driver.current_window_handle

        return await asyncio.to_thread(_open)

    async def navigate(self, tab: str, url: str) -> None:
        try:
            await self._call(tab, lambda d: d.get(url))
        except TimeoutException:
            # Page-load timeouts are judged by the readiness detector
            logger.debug(f"[SeleniumPage] Driver page-load timeout for {url}")
        except WebDriverException as e:
            raise NavigationFailed("Navigation rejected by driver", url=url, original=e) from e

    async def run_script(self, tab: str, script: str) -> Any:
        wrapped = wrap_expression(script)
        try:
            outcome = await self._call(tab, lambda d: d.execute_async_script(wrapped))
        except WebDriverException as e:
            raise ScriptExecutionFailed(f"Script execution failed: {e.msg or e}", original=e) from e

        if not isinstance(outcome, dict) or "ok" not in outcome:
            raise ScriptExecutionFailed(f"Unexpected script envelope: {outcome!r}")
        if not outcome["ok"]:
            raise ScriptExecutionFailed(f"Script threw: {outcome.get('error')}")
        return outcome.get("value")

    async def screenshot(self, tab: str) -> bytes:
        try:
            return await self._call(tab, lambda d: d.get_screenshot_as_png())
        except WebDriverException as e:
            raise ScriptExecutionFailed(f"Screenshot failed: {e.msg or e}", original=e) from e

    async def get_url(self, tab: str) -> str:
        try:
            return await self._call(tab, lambda d: d.current_url)
        except WebDriverException as e:
            raise CapabilityUnavailable(f"Could not read URL: {e.msg or e}") from e

    async def get_title(self, tab: str) -> str:
        try:
            return await self._call(tab, lambda d: d.title)
        except WebDriverException as e:
            raise CapabilityUnavailable(f"Could not read title: {e.msg or e}") from e

    async def close(self) -> None:
        driver, self._driver = self._driver, None
        if driver is None:
            return
        logger.info("[SeleniumPage] Closing browser")
        try:
            await asyncio.to_thread(driver.quit)
        except WebDriverException as e:
            logger.warning(f"[SeleniumPage] Error while quitting driver: {e}")

    async def _call(self, tab: str, fn: Callable[[WebDriverType], Any]) -> Any:
        """Run fn(driver) in a worker thread with the given tab focused."""
        driver = self.driver

        def _run() -> Any:
            with self._lock:
                if driver.current_window_handle != tab:
                    try:
                        driver.switch_to.window(tab)
                    except NoSuchWindowException as e:
                        raise CapabilityUnavailable(f"Unknown tab: {tab}") from e
                return fn(driver)

        return await asyncio.to_thread(_run)
