"""
Change Monitor - Significant DOM Mutation Tracking.

Installs a MutationObserver in the page and accumulates only the
mutations that matter for element discovery: interactive elements
appearing or disappearing, dropdown/suggestion widgets, and changes to
visibility-related attributes. Reading the accumulator resets it.

The in-page state lives under window.__wayfinderMonitors[<token>],
where the token belongs to one ChangeMonitor instance.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Optional, TYPE_CHECKING
import asyncio
import json
import logging
import time
import uuid

from wayfinder.core.config import MonitorConfig

if TYPE_CHECKING:
    from wayfinder.core.capability import PageCapability

logger = logging.getLogger(__name__)

CHANGE_INTERACTIVE = "interactive_elements"
CHANGE_DROPDOWN = "dropdown_suggestions"
CHANGE_VISIBILITY = "visibility_changes"
CHANGE_TYPES = frozenset([CHANGE_INTERACTIVE, CHANGE_DROPDOWN, CHANGE_VISIBILITY])

INTERACTIVE_TAGS = ["input", "button", "select", "textarea", "a", "form"]
DROPDOWN_MARKERS = ["dropdown", "suggestion", "autocomplete", "menu"]
WATCHED_ATTRIBUTES = ["class", "style", "disabled", "hidden", "aria-expanded", "aria-hidden"]

_START_TEMPLATE = r"""
(() => {
  const token = %(token)s;
  const registry = window.__wayfinderMonitors = window.__wayfinderMonitors || {};
  if (registry[token]) return { installed: false, active: true };
  if (!document.body) return { installed: false, active: false };

  const interactiveTags = %(tags)s;
  const dropdownMarkers = %(markers)s;
  const watchedAttributes = %(attributes)s;
  const state = {
    hasChanges: false,
    changeCount: 0,
    lastChangeTime: null,
    changeTypes: []
  };

  const isInteractive = (node) => node.nodeType === 1 &&
    (interactiveTags.includes(node.tagName.toLowerCase()) ||
     (node.querySelector && node.querySelector(interactiveTags.join(','))));
  const hasDropdownMarker = (node) => {
    if (node.nodeType !== 1) return false;
    const marks = ((node.getAttribute('class') || '') + ' ' + (node.id || '')).toLowerCase();
    return dropdownMarkers.some((m) => marks.includes(m));
  };
  const note = (type) => {
    if (!state.changeTypes.includes(type)) state.changeTypes.push(type);
  };

  const observer = new MutationObserver((mutations) => {
    let significant = false;
    for (const mutation of mutations) {
      if (mutation.type === 'childList') {
        const nodes = [...mutation.addedNodes, ...mutation.removedNodes];
        if (nodes.some(isInteractive)) { significant = true; note('interactive_elements'); }
        if ([...mutation.addedNodes].some(hasDropdownMarker)) {
          significant = true; note('dropdown_suggestions');
        }
      } else if (mutation.type === 'attributes' &&
                 watchedAttributes.includes(mutation.attributeName)) {
        significant = true; note('visibility_changes');
      }
    }
    if (significant) {
      state.hasChanges = true;
      state.changeCount += 1;
      state.lastChangeTime = Date.now();
    }
  });
  observer.observe(document.body, {
    childList: true,
    subtree: true,
    attributes: true,
    attributeFilter: watchedAttributes
  });
  registry[token] = { observer: observer, state: state };
  return { installed: true, active: true };
})()
"""

_CHECK_TEMPLATE = r"""
(() => {
  const registry = window.__wayfinderMonitors || {};
  const entry = registry[%(token)s];
  if (!entry) return { hasChanges: false, reason: 'monitor_not_active' };
  const s = entry.state;
  const result = {
    hasChanges: s.hasChanges,
    changeCount: s.changeCount,
    changeTypes: s.changeTypes.slice(),
    lastChangeTime: s.lastChangeTime,
    timeSinceLastChange: s.lastChangeTime ? Date.now() - s.lastChangeTime : null
  };
  s.hasChanges = false;
  s.changeTypes = [];
  return result;
})()
"""

_STOP_TEMPLATE = r"""
(() => {
  const registry = window.__wayfinderMonitors || {};
  const entry = registry[%(token)s];
  if (!entry) return false;
  entry.observer.disconnect();
  delete registry[%(token)s];
  return true;
})()
"""


@dataclass(frozen=True)
class ChangeEvent:
    """Result of reading the change accumulator."""
    has_changes: bool
    change_types: FrozenSet[str] = field(default_factory=frozenset)
    change_count: int = 0
    last_change_timestamp: Optional[int] = None
    time_since_last_change_ms: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def from_page(cls, data: Optional[Dict[str, Any]], reason: Optional[str] = None) -> "ChangeEvent":
        data = data or {}
        return cls(
            has_changes=bool(data.get("hasChanges")),
            change_types=frozenset(t for t in data.get("changeTypes") or [] if t in CHANGE_TYPES),
            change_count=int(data.get("changeCount") or 0),
            last_change_timestamp=data.get("lastChangeTime"),
            time_since_last_change_ms=data.get("timeSinceLastChange"),
            reason=reason or data.get("reason"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "has_changes": self.has_changes,
            "change_types": sorted(self.change_types),
            "change_count": self.change_count,
            "last_change_timestamp": self.last_change_timestamp,
            "time_since_last_change_ms": self.time_since_last_change_ms,
            "reason": self.reason,
        }


class ChangeMonitor:
    """
    Watches one tab for significant mutations.

    check_for_changes() is a destructive read: a change is reported
    once and then forgotten. Two consumers polling the same monitor
    can therefore miss each other's changes.

    Example:
        >>> monitor = ChangeMonitor(page, tab)
        >>> await monitor.start_monitoring()
        >>> event = await monitor.wait_for_changes(2000)
        >>> if event.has_changes:
        ...     print(event.change_types)
    """

    def __init__(
        self,
        capability: "PageCapability",
        tab: Any,
        config: Optional[MonitorConfig] = None,
    ):
        self.capability = capability
        self.tab = tab
        self.config = config or MonitorConfig()
        self.token = f"wf-{uuid.uuid4().hex[:12]}"
        self._monitoring = False

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    def _script(self, template: str) -> str:
        return template % {
            "token": json.dumps(self.token),
            "tags": json.dumps(INTERACTIVE_TAGS),
            "markers": json.dumps(DROPDOWN_MARKERS),
            "attributes": json.dumps(WATCHED_ATTRIBUTES),
        }

    async def start_monitoring(self) -> bool:
        """
        Install the observer. Idempotent per page.

        Returns:
            True if an observer is active after the call
        """
        status = await self.capability.run_script(self.tab, self._script(_START_TEMPLATE)) or {}
        self._monitoring = bool(status.get("active"))
        if status.get("installed"):
            logger.info(f"[Monitor] Observer installed ({self.token})")
        elif not self._monitoring:
            logger.warning("[Monitor] Page has no body yet; observer not installed")
        return self._monitoring

    async def check_for_changes(self) -> ChangeEvent:
        """Non-blocking poll. Resets the pending flag."""
        data = await self.capability.run_script(self.tab, self._script(_CHECK_TEMPLATE))
        event = ChangeEvent.from_page(data)
        if event.reason == "monitor_not_active":
            self._monitoring = False
        elif event.has_changes:
            logger.debug(
                f"[Monitor] {event.change_count} significant changes: {sorted(event.change_types)}"
            )
        return event

    async def wait_for_changes(self, timeout_ms: int) -> ChangeEvent:
        """
        Wait cooperatively until a significant change or the timeout.

        The reason is "immediate" if a change was already pending,
        "event_triggered" if one arrived during the wait, "timeout"
        otherwise.
        """
        event = await self.check_for_changes()
        if event.has_changes:
            return replace(event, reason="immediate")
        if event.reason == "monitor_not_active":
            return event

        deadline = time.monotonic() + timeout_ms / 1000
        interval = self.config.poll_interval_ms / 1000
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return ChangeEvent(has_changes=False, reason="timeout")
            await asyncio.sleep(min(interval, remaining))
            event = await self.check_for_changes()
            if event.has_changes:
                return replace(event, reason="event_triggered")
            if event.reason == "monitor_not_active":
                return event

    async def stop_monitoring(self) -> None:
        """Disconnect the observer and discard pending changes."""
        removed = await self.capability.run_script(self.tab, self._script(_STOP_TEMPLATE))
        self._monitoring = False
        if removed:
            logger.info(f"[Monitor] Observer removed ({self.token})")

