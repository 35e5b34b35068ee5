"""
Shared fixtures: a deterministic in-memory page.

FakePage answers the engine's scripts from plain Python state. The
document itself is real HTML, parsed with BeautifulSoup, so selectors
produced by the classifier resolve the same way they would in a
browser.
"""

import json
import re
import time
from typing import Any, Callable, Dict, List, Optional

import pytest
from bs4 import BeautifulSoup

from wayfinder.core.capability import PageCapability
from wayfinder.core.config import (
    DomConfig,
    MonitorConfig,
    ReadinessConfig,
    SessionConfig,
    WayfinderConfig,
)
from wayfinder.exceptions import CapabilityUnavailable, ScriptExecutionFailed
from wayfinder.layers.action.highlighter import CLEAR_HIGHLIGHTS_SCRIPT
from wayfinder.layers.sense.dom_mapper import DOCUMENT_HTML_SCRIPT
from wayfinder.layers.sense.readiness import (
    DOM_STATE_SCRIPT,
    IMAGE_STATE_SCRIPT,
    LOAD_STATE_SCRIPT,
    NETWORK_STATE_SCRIPT,
    PROBE_INSTALL_SCRIPT,
)

SEARCH_PAGE = """<html><head><title>Search</title></head><body>
<input id="q" type="text" placeholder="Search">
<button id="go">Go</button>
</body></html>"""

_EXACT_SCRIPTS = {
    PROBE_INSTALL_SCRIPT: "probe",
    DOM_STATE_SCRIPT: "dom",
    NETWORK_STATE_SCRIPT: "network",
    IMAGE_STATE_SCRIPT: "images",
    LOAD_STATE_SCRIPT: "load",
    DOCUMENT_HTML_SCRIPT: "html",
    CLEAR_HIGHLIGHTS_SCRIPT: "clear",
}

_MARKERS = [
    ("new MutationObserver", "monitor_start"),
    ("monitor_not_active", "monitor_check"),
    ("disconnect()", "monitor_stop"),
    ("data-wayfinder-number", "draw"),
    ("finalValue", "type"),
    ("mousedown", "click"),
    ("querySelectorAll(", "presence"),
]

_TOKEN = re.compile(r'"(wf-[0-9a-f]{12})"')


def script_kind(script: str) -> str:
    if script in _EXACT_SCRIPTS:
        return _EXACT_SCRIPTS[script]
    for marker, kind in _MARKERS:
        if marker in script:
            return kind
    raise AssertionError(f"FakePage does not understand script: {script[:80]!r}")


def _json_after(script: str, marker: str) -> Any:
    start = script.index(marker) + len(marker)
    value, _ = json.JSONDecoder().raw_decode(script, start)
    return value


class FakePage(PageCapability):
    """In-memory PageCapability with one tab."""

    TAB = "tab-1"

    def __init__(self, html: str = SEARCH_PAGE, url: str = "https://example.com/"):
        self.html: Any = html
        self.url = url
        self.title = "Search"
        self.running = False

        # readiness signals
        self.ready_state = "complete"
        self.has_content = True
        self.load_fired = False
        self.pending_requests = 0
        self.idle_for_ms = 500
        self.image_total = 0
        self.image_loaded = 0
        self.page_elapsed_ms: Optional[int] = 250
        self.probe_installed = False

        # page-side state
        self.has_body = True
        self.monitors: Dict[str, Dict[str, Any]] = {}
        self.overlays = 0
        self.drawn: List[List[Dict[str, Any]]] = []
        self.clicked: List[str] = []
        self.typed: List[tuple] = []
        self.on_click: Dict[str, Callable[["FakePage"], None]] = {}
        self.on_type: Optional[Callable[["FakePage"], None]] = None

        # bookkeeping
        self.calls: List[str] = []
        self.navigations: List[str] = []
        self.failing: set = set()
        self._fail_counts: Dict[str, int] = {}

    def fail_next(self, kind: str, times: int = 1) -> None:
        """Make the next `times` scripts of `kind` raise ScriptExecutionFailed."""
        self._fail_counts[kind] = times

    def mutate(self, *change_types: str) -> None:
        """Simulate a significant mutation seen by every installed observer."""
        for monitor in self.monitors.values():
            monitor["hasChanges"] = True
            monitor["changeCount"] += 1
            monitor["lastChangeTime"] = int(time.time() * 1000)
            for change_type in change_types:
                if change_type not in monitor["changeTypes"]:
                    monitor["changeTypes"].append(change_type)

    def replace_document(self) -> None:
        """Drop all page-side state, as a new document would."""
        self.monitors.clear()
        self.probe_installed = False
        self.overlays = 0

    # PageCapability

    @property
    def is_running(self) -> bool:
        return self.running

    async def launch(self, config=None) -> None:
        self.running = True

    async def new_tab(self) -> str:
        if not self.running:
            raise CapabilityUnavailable()
        return self.TAB

    async def navigate(self, tab, url: str) -> None:
        self._require(tab)
        self.navigations.append(url)
        self.url = url
        self.replace_document()

    async def run_script(self, tab, script: str) -> Any:
        self._require(tab)
        kind = script_kind(script)
        self.calls.append(kind)
        if kind in self.failing:
            raise ScriptExecutionFailed(f"{kind} script rejected")
        if self._fail_counts.get(kind):
            self._fail_counts[kind] -= 1
            raise ScriptExecutionFailed(f"{kind} script rejected")
        return getattr(self, f"_on_{kind}")(script)

    async def screenshot(self, tab) -> bytes:
        self._require(tab)
        return b"\x89PNG fake"

    async def get_url(self, tab) -> str:
        self._require(tab)
        return self.url

    async def get_title(self, tab) -> str:
        self._require(tab)
        return self.title

    async def close(self) -> None:
        self.running = False

    def _require(self, tab) -> None:
        if not self.running or tab != self.TAB:
            raise CapabilityUnavailable(f"Unknown tab: {tab}")

    # script handlers

    def _document(self) -> Dict[str, Any]:
        return {"readyState": self.ready_state, "hasContent": self.has_content, "url": self.url}

    def _on_probe(self, script):
        self.probe_installed = True
        return self._document()

    def _on_dom(self, script):
        return {**self._document(), "elapsed": self.page_elapsed_ms}

    def _on_network(self, script):
        if not self.probe_installed:
            return None
        return {"pending": self.pending_requests, "idleFor": self.idle_for_ms}

    def _on_images(self, script):
        return {"total": self.image_total, "loaded": self.image_loaded}

    def _on_load(self, script):
        if not self.probe_installed:
            return None
        return {"loadFired": self.load_fired, **self._document()}

    def _on_html(self, script):
        return self.html

    def _on_clear(self, script):
        removed, self.overlays = self.overlays, 0
        return removed

    def _on_draw(self, script):
        entries = _json_after(script, "const entries = ")
        self.drawn.append(entries)
        self.overlays += len(entries)
        return len(entries)

    def _on_monitor_start(self, script):
        token = _TOKEN.search(script).group(1)
        if token in self.monitors:
            return {"installed": False, "active": True}
        if not self.has_body:
            return {"installed": False, "active": False}
        self.monitors[token] = {
            "hasChanges": False,
            "changeCount": 0,
            "lastChangeTime": None,
            "changeTypes": [],
        }
        return {"installed": True, "active": True}

    def _on_monitor_check(self, script):
        state = self.monitors.get(_TOKEN.search(script).group(1))
        if state is None:
            return {"hasChanges": False, "reason": "monitor_not_active"}
        result = {
            "hasChanges": state["hasChanges"],
            "changeCount": state["changeCount"],
            "changeTypes": list(state["changeTypes"]),
            "lastChangeTime": state["lastChangeTime"],
            "timeSinceLastChange": 0 if state["lastChangeTime"] else None,
        }
        state["hasChanges"] = False
        state["changeTypes"] = []
        return result

    def _on_monitor_stop(self, script):
        return self.monitors.pop(_TOKEN.search(script).group(1), None) is not None

    def _on_click(self, script):
        selector = _json_after(script, "document.querySelector(")
        soup = BeautifulSoup(self.html, "html.parser")
        node = soup.select_one(selector)
        if node is None:
            return {"success": False, "error": "Element not found"}
        self.clicked.append(selector)
        hook = self.on_click.get(selector)
        if hook:
            hook(self)
        return {"success": True, "tag": node.name}

    def _on_type(self, script):
        selector = _json_after(script, "document.querySelector(")
        text = _json_after(script, "const text = ")
        soup = BeautifulSoup(self.html, "html.parser")
        node = soup.select_one(selector)
        if node is None:
            return {"success": False, "error": "Element not found"}
        if node.name == "textarea":
            node.string = text
        else:
            node["value"] = text
        self.html = str(soup)
        self.typed.append((selector, text))
        if self.on_type:
            self.on_type(self)
        return {"success": True, "finalValue": text}

    def _on_presence(self, script):
        selector = _json_after(script, "document.querySelectorAll(")
        return len(BeautifulSoup(self.html, "html.parser").select(selector))


@pytest.fixture
def page():
    """A launched FakePage showing a search box and a button."""
    fake = FakePage()
    fake.running = True
    return fake


@pytest.fixture
def fast_config():
    """Config with timings shrunk for tests."""
    return WayfinderConfig(
        dom=DomConfig(extract_all_elements=False),
        readiness=ReadinessConfig(
            grace_ms=50,
            absolute_fallback_ms=400,
            poll_interval_ms=10,
            network_quiet_ms=0,
            image_check_delay_ms=0,
        ),
        monitor=MonitorConfig(
            refresh_wait_ms=30,
            recheck_delay_ms=5,
            settle_delay_ms=0,
            poll_interval_ms=5,
        ),
        session=SessionConfig(
            navigation_timeout_ms=2000,
            element_timeout_ms=100,
            retry_delay_ms=0,
        ),
    )
