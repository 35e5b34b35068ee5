"""
Action Executor - Script-Driven UI Interactions.

Clicks and typing are performed by in-page scripts that fire the same
event sequence a user would, so framework listeners (React, Vue, ...)
see the change. Transient script failures are retried.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, TYPE_CHECKING
import asyncio
import json
import logging
import time

from wayfinder.exceptions import ScriptExecutionFailed

if TYPE_CHECKING:
    from wayfinder.core.capability import PageCapability
    from wayfinder.reporters.flight_recorder import FlightRecorder

logger = logging.getLogger(__name__)

NOT_FOUND = "Element not found"

_CLICK_TEMPLATE = r"""
(() => {
  const el = document.querySelector(%(selector)s);
  if (!el) return { success: false, error: 'Element not found' };
  el.scrollIntoView({ behavior: 'instant', block: 'center' });
  if (typeof el.focus === 'function') el.focus();
  const options = { bubbles: true, cancelable: true, view: window };
  el.dispatchEvent(new MouseEvent('mousedown', options));
  el.dispatchEvent(new MouseEvent('mouseup', options));
  el.click();
  return { success: true, tag: el.tagName.toLowerCase() };
})()
"""

_TYPE_TEMPLATE = r"""
(() => {
  const el = document.querySelector(%(selector)s);
  if (!el) return { success: false, error: 'Element not found' };
  el.scrollIntoView({ behavior: 'instant', block: 'center' });
  el.focus();
  el.click();
  const text = %(text)s;
  const proto = el.tagName.toLowerCase() === 'textarea'
    ? HTMLTextAreaElement.prototype : HTMLInputElement.prototype;
  const setter = Object.getOwnPropertyDescriptor(proto, 'value');
  if (setter && setter.set && (el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement)) {
    setter.set.call(el, text);
  } else if (el.isContentEditable) {
    el.textContent = text;
  } else {
    el.value = text;
  }
  el.dispatchEvent(new Event('input', { bubbles: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
  el.dispatchEvent(new KeyboardEvent('keydown', { bubbles: true, key: 'Unidentified' }));
  el.dispatchEvent(new KeyboardEvent('keyup', { bubbles: true, key: 'Unidentified' }));
  el.dispatchEvent(new Event('blur', { bubbles: true }));
  const finalValue = el.isContentEditable ? el.textContent : el.value;
  return { success: true, finalValue: finalValue };
})()
"""

_PRESENCE_TEMPLATE = r"""
document.querySelectorAll(%(selector)s).length
"""


@dataclass
class ActionResult:
    """Result of an action execution."""
    success: bool
    action: str
    target: str
    duration_ms: float
    error: Optional[str] = None
    metadata: Optional[dict] = None

    @property
    def not_found(self) -> bool:
        return not self.success and self.error == NOT_FOUND

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "target": self.target,
            "duration_ms": round(self.duration_ms, 1),
            "error": self.error,
            "metadata": self.metadata or {},
        }


def click_script(selector: str) -> str:
    return _CLICK_TEMPLATE % {"selector": json.dumps(selector)}


def type_script(selector: str, text: str) -> str:
    return _TYPE_TEMPLATE % {"selector": json.dumps(selector), "text": json.dumps(text)}


def presence_script(selector: str) -> str:
    return _PRESENCE_TEMPLATE % {"selector": json.dumps(selector)}


class ActionExecutor:
    """
    Execute actions against a tab by selector.

    All actions are wrapped with:
    - Scrolling the element into view
    - User-like event sequences
    - Retry logic for transient script failures

    Example:
        >>> executor = ActionExecutor(page, tab)
        >>> result = await executor.click("button#submit")
        >>> if result.success:
        ...     print("Click successful!")
    """

    # Default retry configuration
    MAX_RETRIES = 3
    RETRY_DELAY_MS = 200

    def __init__(
        self,
        capability: "PageCapability",
        tab: Any,
        max_retries: int = MAX_RETRIES,
        retry_delay_ms: int = RETRY_DELAY_MS,
        recorder: Optional["FlightRecorder"] = None,
    ):
        """
        Initialize the action executor.

        Args:
            capability: Page capability used to run action scripts
            tab: Tab handle to act on
            max_retries: Maximum attempts for a failing script
            retry_delay_ms: Pause between attempts
            recorder: Optional FlightRecorder for logging
        """
        self.capability = capability
        self.tab = tab
        self.max_retries = max(1, max_retries)
        self.retry_delay_ms = retry_delay_ms
        self.recorder = recorder

    async def click(self, selector: str) -> ActionResult:
        """Click the first element matching a CSS selector."""
        return await self._perform("click", selector, click_script(selector))

    async def type_text(self, selector: str, text: str) -> ActionResult:
        """
        Replace the value of an input, textarea or contenteditable.

        The returned metadata carries "final_value", the value the page
        reports after all events fired.
        """
        result = await self._perform("type", selector, type_script(selector, text))
        if result.success and result.metadata is not None:
            result.metadata["text"] = text
        return result

    async def wait_for_selector(self, selector: str, timeout_ms: int, poll_ms: int = 100) -> bool:
        """Poll until a selector matches something or the timeout passes."""
        deadline = time.monotonic() + timeout_ms / 1000
        script = presence_script(selector)
        while True:
            try:
                if (await self.capability.run_script(self.tab, script) or 0) > 0:
                    return True
            except ScriptExecutionFailed as e:
                logger.debug(f"[Executor] Presence check failed for {selector}: {e}")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(poll_ms / 1000, remaining))

    async def _perform(self, action: str, selector: str, script: str) -> ActionResult:
        start_time = time.time()
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                outcome = await self.capability.run_script(self.tab, script) or {}
            except ScriptExecutionFailed as e:
                last_error = str(e)
                logger.warning(
                    f"[Executor] {action} on {selector} failed (attempt {attempt}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay_ms / 1000)
                continue

            if not outcome.get("success"):
                # Not retried
                last_error = outcome.get("error") or "Action reported failure"
                break

            metadata = {"attempts": attempt}
            if "finalValue" in outcome:
                metadata["final_value"] = outcome["finalValue"]
            result = ActionResult(
                success=True,
                action=action,
                target=selector,
                duration_ms=(time.time() - start_time) * 1000,
                metadata=metadata,
            )
            self._record(result)
            return result

        result = ActionResult(
            success=False,
            action=action,
            target=selector,
            duration_ms=(time.time() - start_time) * 1000,
            error=last_error,
        )
        self._record(result)
        return result

    def _record(self, result: ActionResult) -> None:
        if self.recorder:
            self.recorder.log_action_result(result)
