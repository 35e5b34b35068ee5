"""
Page Capability - the browser seen from the engine.

The engine never talks to a driver directly. It consumes this small
async interface, so a real browser (SeleniumPage) and a deterministic
test double can be swapped freely.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from wayfinder.core.config import BrowserConfig


class PageCapability(ABC):
    """
    Abstract browser capability.

    Tabs are opaque handles returned by new_tab(). Scripts are
    JavaScript *expressions*; the value they evaluate to (a promise is
    awaited) must be JSON-like and is returned as Python data.

    Implementations raise:
        CapabilityUnavailable: no launched browser / unknown tab
        NavigationFailed: the driver refused the navigation
        ScriptExecutionFailed: the script threw or was rejected
    """

    @abstractmethod
    async def launch(self, config: Optional["BrowserConfig"] = None) -> None:
        """Start the browser."""

    @abstractmethod
    async def new_tab(self) -> Any:
        """Open a tab and return its handle."""

    @abstractmethod
    async def navigate(self, tab: Any, url: str) -> None:
        """Start navigating a tab. Must not wait for the page to load."""

    @abstractmethod
    async def run_script(self, tab: Any, script: str) -> Any:
        """Evaluate a JavaScript expression in the tab."""

    @abstractmethod
    async def screenshot(self, tab: Any) -> bytes:
        """Capture the visible viewport as PNG bytes."""

    @abstractmethod
    async def get_url(self, tab: Any) -> str:
        """Current URL of the tab."""

    @abstractmethod
    async def get_title(self, tab: Any) -> str:
        """Current document title of the tab."""

    @abstractmethod
    async def close(self) -> None:
        """Shut the browser down. Safe to call twice."""

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """True between a successful launch() and close()."""
