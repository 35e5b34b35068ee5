"""
Wayfinder Session - The Master Controller.

Composes the engine into one loop per browser tab:

    navigate -> detect ready -> classify -> highlight
                    ^                          |
                    +---- significant change --+

Actions addressed by highlight number are followed by an optional
auto-refresh, so numbers keep pointing at what is on screen.
"""

from typing import Any, List, Optional
import asyncio
import logging
import uuid

from wayfinder.core.capability import PageCapability
from wayfinder.core.config import WayfinderConfig
from wayfinder.exceptions import (
    CapabilityUnavailable,
    ElementNotFound,
    ScriptExecutionFailed,
    WayfinderError,
)
from wayfinder.layers.action.executor import ActionExecutor, ActionResult
from wayfinder.layers.action.highlighter import HighlightEntry, HighlightRegistry
from wayfinder.layers.sense.change_monitor import ChangeMonitor
from wayfinder.layers.sense.dom_mapper import DomState, Element, ElementClassifier
from wayfinder.layers.sense.readiness import ReadinessDetector, ReadinessResult
from wayfinder.reporters.flight_recorder import FlightRecorder
from wayfinder.utils.screenshot import save_to_file

logger = logging.getLogger(__name__)


class WayfinderSession:
    """
    One browser tab driven by the discovery engine.

    Each session owns its tab, highlight registry and change monitor;
    nothing is shared between sessions. Operations on one session are
    expected to be awaited one after another.

    Example:
        >>> async with WayfinderSession() as session:
        ...     result = await session.navigate_and_await_ready("https://example.com")
        ...     for entry in session.highlights:
        ...         print(entry.number, entry.element_type, entry.selector)
        ...     await session.type_by_number(1, "hello")
    """

    def __init__(
        self,
        capability: Optional[PageCapability] = None,
        config: Optional[WayfinderConfig] = None,
        recorder: Optional[FlightRecorder] = None,
    ):
        """
        Initialize the session.

        Args:
            capability: Browser capability (defaults to a Selenium Chrome)
            config: Engine configuration
            recorder: Optional FlightRecorder for the event trail
        """
        if capability is None:
            from wayfinder.core.selenium_page import SeleniumPage
            capability = SeleniumPage()

        self.capability = capability
        self.config = config or WayfinderConfig()
        self.recorder = recorder
        self.session_id = str(uuid.uuid4())
        self.last_readiness: Optional[ReadinessResult] = None

        self._tab: Any = None
        self._auto_refresh = self.config.session.auto_refresh
        self._monitor_wanted = False
        self._classifier: Optional[ElementClassifier] = None
        self._registry: Optional[HighlightRegistry] = None
        self._detector: Optional[ReadinessDetector] = None
        self._monitor: Optional[ChangeMonitor] = None
        self._executor: Optional[ActionExecutor] = None

    @property
    def tab(self) -> Any:
        """Handle of the session's tab."""
        self._require_started()
        return self._tab

    def _require_started(self) -> None:
        if self._tab is None:
            raise CapabilityUnavailable("Session not started. Call start() first.")

    @property
    def is_started(self) -> bool:
        return self._tab is not None

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh

    @property
    def highlights(self) -> List[HighlightEntry]:
        """Entries of the current highlight pass."""
        self._require_started()
        return self._registry.entries

    @property
    def monitor(self) -> ChangeMonitor:
        self._require_started()
        return self._monitor

    async def start(self) -> "WayfinderSession":
        """Launch the browser, open the tab and wire up the components."""
        if self._tab is not None:
            return self

        await self.capability.launch(self.config.browser)
        tab = await self.capability.new_tab()

        self._classifier = ElementClassifier(self.capability, tab, self.config.dom)
        self._registry = HighlightRegistry(self.capability, tab, self._classifier, self.config.dom)
        self._detector = ReadinessDetector(self.capability, tab, self.config.readiness)
        self._monitor = ChangeMonitor(self.capability, tab, self.config.monitor)
        self._executor = ActionExecutor(
            self.capability,
            tab,
            max_retries=self.config.session.max_retries,
            retry_delay_ms=self.config.session.retry_delay_ms,
            recorder=self.recorder,
        )
        self._tab = tab
        logger.info(f"[Session] {self.session_id} started")
        return self

    async def navigate_and_await_ready(self, url: str, timeout_ms: Optional[int] = None) -> ReadinessResult:
        """
        Navigate and return once the page is judged usable.

        When the page has content, change monitoring starts and, with
        auto-refresh on, the page is highlighted. A failure in that
        follow-up does not fail the navigation.

        Raises:
            CapabilityUnavailable: session not started
            NavigationFailed: the navigation could not be confirmed at all
            ReadinessTimeout: nothing resolved within timeout_ms
        """
        tab = self.tab
        timeout_ms = timeout_ms or self.config.session.navigation_timeout_ms

        self._monitor_wanted = False
        await self._stop_monitoring_quietly()
        self._registry.reset()

        logger.info(f"[Session] Navigating to {url}")
        await self.capability.navigate(tab, url)
        result = await self._detector.wait_until_ready(timeout_ms)
        self.last_readiness = result

        if self.recorder:
            self.recorder.log_navigation(result)
        logger.info(
            f"[Session] Ready: {result.reason} in {result.duration_ms}ms "
            f"(quality={result.load_quality})"
        )

        if result.has_content:
            self._monitor_wanted = True
            try:
                await self._monitor.start_monitoring()
                if self._auto_refresh:
                    await self.refresh()
            except WayfinderError as e:
                logger.warning(f"[Session] Post-navigation setup failed: {e}")
                if self.recorder:
                    self.recorder.log_warning(f"Post-navigation setup failed: {e}")

        return result

    async def classify_current_page(self) -> List[Element]:
        """Classify the current document without touching highlights."""
        self._require_started()
        elements = await self._classifier.classify()
        if self.recorder:
            self.recorder.log_classification(self.last_readiness.url if self.last_readiness else "", len(elements))
        return elements

    async def get_page_state(self, include_screenshot: bool = False) -> DomState:
        """Classified elements plus URL, title and optional screenshot."""
        self._require_started()
        return await self._classifier.extract_dom_state(include_screenshot)

    async def rehighlight(self) -> List[HighlightEntry]:
        """Start a new highlight pass. Previous numbers become invalid."""
        self._require_started()
        entries = await self._registry.rehighlight()
        if self.recorder:
            self.recorder.log_highlight(entries)
        return entries

    async def clear_highlights(self) -> None:
        self._require_started()
        await self._registry.clear()

    def resolve(self, number: int) -> Element:
        """
        Element behind a highlight number of the current pass.

        Raises:
            ElementNotFound: number not issued by the current pass
        """
        self._require_started()
        return self._registry.resolve(number)

    async def click_by_number(self, number: int) -> ActionResult:
        """Click a highlighted element, then auto-refresh if enabled."""
        self._require_started()
        entry = self._registry.entry(number)
        result = await self._executor.click(entry.selector)
        self._raise_for(result, number)
        await self._refresh_after_action()
        return result

    async def type_by_number(self, number: int, text: str) -> ActionResult:
        """Type into a highlighted element, then auto-refresh if enabled."""
        self._require_started()
        entry = self._registry.entry(number)
        result = await self._executor.type_text(entry.selector, text)
        self._raise_for(result, number)
        self._registry.record_value(number, (result.metadata or {}).get("final_value", text))
        await self._refresh_after_action()
        return result

    async def click(self, selector: str) -> ActionResult:
        """Click by CSS selector, then auto-refresh if enabled."""
        self._require_started()
        result = await self._executor.click(selector)
        self._raise_for(result, selector)
        await self._refresh_after_action()
        return result

    async def type_text(self, selector: str, text: str) -> ActionResult:
        """Type by CSS selector, then auto-refresh if enabled."""
        self._require_started()
        result = await self._executor.type_text(selector, text)
        self._raise_for(result, selector)
        await self._refresh_after_action()
        return result

    async def wait_for_selector_presence(self, selector: str, timeout_ms: Optional[int] = None) -> bool:
        """
        Wait until `selector` matches at least one element.

        With auto-refresh on, a successful wait starts a new highlight
        pass so the new element gets a number.
        """
        self._require_started()
        timeout_ms = timeout_ms or self.config.session.element_timeout_ms
        found = await self._executor.wait_for_selector(selector, timeout_ms)
        logger.info(f"[Session] Selector {selector} {'present' if found else 'absent'} after wait")
        if found and self._auto_refresh:
            try:
                await self.refresh()
            except WayfinderError as e:
                logger.warning(f"[Session] Refresh after wait failed: {e}")
        return found

    def set_auto_refresh(self, enabled: bool) -> None:
        self._auto_refresh = enabled
        logger.info(f"[Session] Auto-refresh {'enabled' if enabled else 'disabled'}")

    async def refresh(self) -> List[HighlightEntry]:
        """Clear overlays, let the page settle, highlight again."""
        self._require_started()
        await self._registry.clear()
        await asyncio.sleep(self.config.monitor.settle_delay_ms / 1000)
        return await self.rehighlight()

    async def check_and_refresh_if_needed(self) -> bool:
        """
        Refresh highlights if the page changed significantly.

        Returns:
            True if a new highlight pass was made
        """
        self._require_started()
        monitor_cfg = self.config.monitor

        event = await self._monitor.wait_for_changes(monitor_cfg.refresh_wait_ms)
        if not event.has_changes and event.reason != "monitor_not_active":
            await asyncio.sleep(monitor_cfg.recheck_delay_ms / 1000)
            event = await self._monitor.check_for_changes()

        refresh = event.has_changes
        if event.reason == "monitor_not_active" and self._monitor_wanted:
            # Observer gone with its document, or never installed on a body-less one
            logger.info("[Session] Monitor not active; reinstalling")
            await self._monitor.start_monitoring()
            refresh = True

        if refresh:
            await self.refresh()
        if self.recorder:
            self.recorder.log_refresh(event, refresh)
        return refresh

    async def screenshot(self, path: Optional[str] = None) -> bytes:
        """Capture the tab; optionally save it and attach it to the flight record."""
        png = await self.capability.screenshot(self.tab)
        if path:
            save_to_file(png, path)
        if self.recorder:
            self.recorder.capture_screenshot(f"shot_{len(self.recorder.entries)}", png)
        return png

    async def current_url(self) -> str:
        return await self.capability.get_url(self.tab)

    async def title(self) -> str:
        return await self.capability.get_title(self.tab)

    async def close(self) -> None:
        """Remove overlays, stop monitoring and shut the browser down."""
        if self._tab is not None and self.capability.is_running:
            try:
                await self._registry.clear()
                await self._monitor.stop_monitoring()
            except WayfinderError as e:
                logger.debug(f"[Session] Cleanup before close failed: {e}")
        self._monitor_wanted = False
        self._tab = None
        await self.capability.close()
        logger.info(f"[Session] {self.session_id} closed")

    async def __aenter__(self) -> "WayfinderSession":
        """Async context manager entry."""
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def _refresh_after_action(self) -> None:
        if not self._auto_refresh:
            return
        try:
            await self.check_and_refresh_if_needed()
        except WayfinderError as e:
            logger.warning(f"[Session] Auto-refresh after action failed: {e}")
            if self.recorder:
                self.recorder.log_warning(f"Auto-refresh after action failed: {e}")

    async def _stop_monitoring_quietly(self) -> None:
        if not self._monitor.is_monitoring:
            return
        try:
            await self._monitor.stop_monitoring()
        except WayfinderError as e:
            logger.debug(f"[Session] Could not stop monitor on old page: {e}")

    @staticmethod
    def _raise_for(result: ActionResult, target: Any) -> None:
        if result.success:
            return
        if result.not_found:
            raise ElementNotFound(target, f"selector {result.target} matched nothing")
        raise ScriptExecutionFailed(f"{result.action} on {result.target} failed: {result.error}")
