"""
Readiness Detector - Navigation Completion Without Fixed Sleeps.

Decides when a freshly navigated page is usable by racing independent
signals, each watched by its own asyncio task:

    already_complete   document complete with content when we arrive
    dom                readyState interactive/complete (+ composite check)
    network            instrumented fetch/XHR pending count back at zero
    images             every <img> complete (or none on the page)
    window_load        the page's load event fired
    absolute_fallback  hard ceiling; real pages never go fully quiet

All tasks report into one future. The first to resolve it wins and
the rest are cancelled. When the DOM is ready with content but the
network or images are still busy, a grace timer bounds the wait.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import asyncio
import logging
import time

from wayfinder.core.config import ReadinessConfig
from wayfinder.exceptions import (
    NavigationFailed,
    ReadinessTimeout,
    ScriptExecutionFailed,
    WayfinderError,
)

if TYPE_CHECKING:
    from wayfinder.core.capability import PageCapability

logger = logging.getLogger(__name__)

COMPOSITE_TRIGGERS = ("dom_interactive", "dom_complete", "network_quiet", "images_loaded", "no_images")

READINESS_REASONS = frozenset(
    ["already_complete", "window_load", "absolute_fallback", "fallback_url_available"]
    + [f"complete_{t}" for t in COMPOSITE_TRIGGERS]
    + [f"timeout_{t}" for t in COMPOSITE_TRIGGERS]
)

PLACEHOLDER_URL_PREFIXES = ("about:", "data:", "chrome://newtab", "chrome-error://")

FAST_LOAD_MS = 1000

# Installs the in-page request counter and load flag once per document
# and reports the document state at install time.
PROBE_INSTALL_SCRIPT = r"""
(() => {
  if (!window.__wayfinderProbe) {
    const probe = {
      start: Date.now(),
      pending: 0,
      lastActivity: Date.now(),
      loadFired: document.readyState === 'complete'
    };
    window.__wayfinderProbe = probe;
    window.addEventListener('load', () => { probe.loadFired = true; });
    const begin = () => { probe.pending += 1; probe.lastActivity = Date.now(); };
    const end = () => {
      probe.pending = Math.max(0, probe.pending - 1);
      probe.lastActivity = Date.now();
    };
    if (window.fetch) {
      const originalFetch = window.fetch;
      window.fetch = function(...args) {
        begin();
        return originalFetch.apply(this, args).then(
          (response) => { end(); return response; },
          (error) => { end(); throw error; }
        );
      };
    }
    if (window.XMLHttpRequest) {
      const originalSend = XMLHttpRequest.prototype.send;
      XMLHttpRequest.prototype.send = function(...args) {
        begin();
        this.addEventListener('loadend', end, { once: true });
        return originalSend.apply(this, args);
      };
    }
  }
  return {
    readyState: document.readyState,
    hasContent: !!(document.body && document.body.children.length > 0),
    url: window.location.href
  };
})()
"""

DOM_STATE_SCRIPT = r"""
({
  readyState: document.readyState,
  hasContent: !!(document.body && document.body.children.length > 0),
  url: window.location.href,
  elapsed: window.__wayfinderProbe ? Date.now() - window.__wayfinderProbe.start : null
})
"""

NETWORK_STATE_SCRIPT = r"""
(() => {
  const probe = window.__wayfinderProbe;
  if (!probe) return null;
  return { pending: probe.pending, idleFor: Date.now() - probe.lastActivity };
})()
"""

IMAGE_STATE_SCRIPT = r"""
(() => {
  const images = Array.from(document.images);
  return {
    total: images.length,
    loaded: images.filter((img) => img.complete || img.naturalHeight > 0).length
  };
})()
"""

LOAD_STATE_SCRIPT = r"""
(() => {
  const probe = window.__wayfinderProbe;
  if (!probe) return null;
  return {
    loadFired: probe.loadFired,
    readyState: document.readyState,
    hasContent: !!(document.body && document.body.children.length > 0),
    url: window.location.href
  };
})()
"""


@dataclass(frozen=True)
class ReadinessResult:
    """Outcome of one navigation attempt. Immutable."""
    success: bool
    reason: str
    url: str
    ready_state: str
    duration_ms: int
    actual_load_time_ms: int
    network_quiet: bool
    has_content: bool
    images_loaded: bool = False

    @property
    def load_quality(self) -> str:
        """excellent / good / partial / minimal."""
        if not self.has_content:
            return "minimal"
        if self.network_quiet and self.ready_state == "complete":
            return "excellent"
        if self.network_quiet:
            return "good"
        return "partial"

    @property
    def is_fast_load(self) -> bool:
        return self.actual_load_time_ms < FAST_LOAD_MS

    @property
    def is_complete_load(self) -> bool:
        return self.network_quiet and self.has_content and self.ready_state == "complete"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "reason": self.reason,
            "url": self.url,
            "ready_state": self.ready_state,
            "duration_ms": self.duration_ms,
            "actual_load_time_ms": self.actual_load_time_ms,
            "network_quiet": self.network_quiet,
            "has_content": self.has_content,
            "images_loaded": self.images_loaded,
            "load_quality": self.load_quality,
        }


def is_placeholder_url(url: Optional[str]) -> bool:
    """True for empty URLs and the blank pages a browser starts on."""
    if not url or not url.strip():
        return True
    return url.strip().lower().startswith(PLACEHOLDER_URL_PREFIXES)


@dataclass
class _Observed:
    """Last known values of every signal."""
    ready_state: str = "unknown"
    has_content: bool = False
    url: str = ""
    dom_ready: bool = False
    network_quiet: bool = False
    images_loaded: bool = False
    page_elapsed_ms: Optional[int] = None

    def update_document(self, snapshot: Dict[str, Any]) -> None:
        self.ready_state = snapshot.get("readyState") or self.ready_state
        self.has_content = bool(snapshot.get("hasContent"))
        self.url = snapshot.get("url") or self.url
        if snapshot.get("elapsed") is not None:
            self.page_elapsed_ms = int(snapshot["elapsed"])


class _SignalRace:
    """One readiness race: signal tasks, shared observations, one outcome."""

    def __init__(
        self,
        capability: "PageCapability",
        tab: Any,
        config: ReadinessConfig,
        initial: Dict[str, Any],
    ):
        self.capability = capability
        self.tab = tab
        self.config = config
        self.initial = initial
        self.observed = _Observed()
        self.observed.update_document(initial)
        self.started = time.monotonic()
        self.outcome: asyncio.Future = asyncio.get_running_loop().create_future()
        self._tasks: List[asyncio.Task] = []
        self._grace_task: Optional[asyncio.Task] = None

    async def run(self) -> ReadinessResult:
        signals = [
            ("already_complete", self._already_complete),
            ("dom", self._watch_dom),
            ("network", self._watch_network),
            ("images", self._watch_images),
            ("window_load", self._watch_window_load),
            ("absolute_fallback", self._absolute_fallback),
        ]
        self._tasks = [
            asyncio.create_task(self._guard(signal), name=f"readiness:{name}")
            for name, signal in signals
        ]
        try:
            return await self.outcome
        finally:
            await self._disarm()

    async def _disarm(self) -> None:
        pending = list(self._tasks)
        if self._grace_task is not None:
            pending.append(self._grace_task)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def _guard(self, signal, *args) -> None:
        """Run one signal; forward unexpected errors (browser gone, bugs) to the caller."""
        try:
            await signal(*args)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self.outcome.done():
                self.outcome.set_exception(e)

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def _resolve(self, reason: str) -> None:
        if self.outcome.done():
            return
        o = self.observed
        duration = self._elapsed_ms()
        result = ReadinessResult(
            success=True,
            reason=reason,
            url=o.url,
            ready_state=o.ready_state,
            duration_ms=duration,
            actual_load_time_ms=o.page_elapsed_ms if o.page_elapsed_ms is not None else duration,
            network_quiet=o.network_quiet,
            has_content=o.has_content,
            images_loaded=o.images_loaded,
        )
        logger.info(
            f"[Readiness] Resolved by {reason} after {duration}ms "
            f"(state={o.ready_state}, content={o.has_content}, quiet={o.network_quiet})"
        )
        self.outcome.set_result(result)

    def _check_composite(self, trigger: str) -> None:
        if self.outcome.done():
            return
        o = self.observed
        if not (o.dom_ready and o.has_content):
            return
        if o.network_quiet and o.images_loaded:
            self._resolve(f"complete_{trigger}")
        elif self._grace_task is None:
            logger.debug(f"[Readiness] DOM ready via {trigger}; grace timer armed")
            self._grace_task = asyncio.create_task(
                self._guard(self._grace_timer, trigger), name="readiness:grace"
            )

    async def _poll(self, script: str) -> Any:
        """Run a signal script; a failed script leaves the signal unsatisfied."""
        try:
            return await self.capability.run_script(self.tab, script)
        except ScriptExecutionFailed as e:
            logger.debug(f"[Readiness] Signal script failed: {e}")
            return None

    async def _sleep_interval(self) -> None:
        await asyncio.sleep(self.config.poll_interval_ms / 1000)

    async def _already_complete(self) -> None:
        if self.initial.get("readyState") == "complete" and self.initial.get("hasContent"):
            self.observed.dom_ready = True
            self._resolve("already_complete")

    async def _watch_dom(self) -> None:
        while True:
            snapshot = await self._poll(DOM_STATE_SCRIPT)
            if snapshot:
                self.observed.update_document(snapshot)
                state = snapshot.get("readyState")
                if state in ("interactive", "complete"):
                    self.observed.dom_ready = True
                    self._check_composite(f"dom_{state}")
            await self._sleep_interval()

    async def _watch_network(self) -> None:
        while True:
            snapshot = await self._poll(NETWORK_STATE_SCRIPT)
            if snapshot is None:
                # New document without the probe (redirect, reload)
                await self._poll(PROBE_INSTALL_SCRIPT)
            else:
                quiet = (
                    snapshot.get("pending", 0) == 0
                    and snapshot.get("idleFor", 0) >= self.config.network_quiet_ms
                )
                became_quiet = quiet and not self.observed.network_quiet
                self.observed.network_quiet = quiet
                if became_quiet:
                    self._check_composite("network_quiet")
            await self._sleep_interval()

    async def _watch_images(self) -> None:
        await asyncio.sleep(self.config.image_check_delay_ms / 1000)
        while True:
            snapshot = await self._poll(IMAGE_STATE_SCRIPT)
            if snapshot:
                total = snapshot.get("total", 0)
                loaded = total == 0 or snapshot.get("loaded", 0) >= total
                became_loaded = loaded and not self.observed.images_loaded
                self.observed.images_loaded = loaded
                if became_loaded:
                    self._check_composite("no_images" if total == 0 else "images_loaded")
            await self._sleep_interval()

    async def _watch_window_load(self) -> None:
        while True:
            snapshot = await self._poll(LOAD_STATE_SCRIPT)
            if snapshot and snapshot.get("loadFired"):
                self.observed.update_document(snapshot)
                self.observed.dom_ready = True
                self.observed.network_quiet = True
                self.observed.images_loaded = True
                self._resolve("window_load")
                return
            await self._sleep_interval()

    async def _grace_timer(self, trigger: str) -> None:
        await asyncio.sleep(self.config.grace_ms / 1000)
        self._resolve(f"timeout_{trigger}")

    async def _absolute_fallback(self) -> None:
        await asyncio.sleep(self.config.absolute_fallback_ms / 1000)
        self._resolve("absolute_fallback")


class ReadinessDetector:
    """
    Decides when a navigation has produced a usable page.

    Reaching the absolute ceiling is a successful, low-confidence
    result. Only a page that cannot even report a real URL is an error.

    Example:
        >>> detector = ReadinessDetector(page, tab)
        >>> result = await detector.wait_until_ready(timeout_ms=10000)
        >>> print(result.reason, result.load_quality)
    """

    def __init__(
        self,
        capability: "PageCapability",
        tab: Any,
        config: Optional[ReadinessConfig] = None,
    ):
        """
        Args:
            capability: Page capability for script execution
            tab: Tab handle being watched
            config: Race timings
        """
        self.capability = capability
        self.tab = tab
        self.config = config or ReadinessConfig()

    async def wait_until_ready(self, timeout_ms: int) -> ReadinessResult:
        """
        Race the readiness signals, bounded by timeout_ms.

        Raises:
            NavigationFailed: the detector could not run and no URL is available
            ReadinessTimeout: the timeout elapsed and no URL is available
        """
        started = time.monotonic()
        try:
            initial = await self.capability.run_script(self.tab, PROBE_INSTALL_SCRIPT)
        except ScriptExecutionFailed as e:
            logger.warning(f"[Readiness] Detector could not run: {e}; trying URL fallback")
            return await self._minimal_fallback(
                started, NavigationFailed("Could not verify navigation success", original=e)
            )

        race = _SignalRace(self.capability, self.tab, self.config, initial or {})
        try:
            return await asyncio.wait_for(race.run(), timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning(f"[Readiness] No signal within {timeout_ms}ms; trying URL fallback")
            return await self._minimal_fallback(
                started, ReadinessTimeout(timeout_ms, url=race.observed.url)
            )

    async def _minimal_fallback(self, started: float, error: WayfinderError) -> ReadinessResult:
        try:
            url = await self.capability.get_url(self.tab)
        except WayfinderError as e:
            logger.debug(f"[Readiness] URL unavailable for fallback: {e}")
            url = ""
        if is_placeholder_url(url):
            raise error
        duration = int((time.monotonic() - started) * 1000)
        return ReadinessResult(
            success=True,
            reason="fallback_url_available",
            url=url,
            ready_state="unknown",
            duration_ms=duration,
            actual_load_time_ms=duration,
            network_quiet=False,
            has_content=False,
        )
