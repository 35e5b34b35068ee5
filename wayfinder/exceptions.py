"""
Wayfinder exception hierarchy.

Every failure the engine surfaces belongs to one of these classes.
Callers can catch WayfinderError to intercept everything, or a
specific subclass to react to one kind of failure.

    WayfinderError
    ├── CapabilityUnavailable   no launched browser or tab
    ├── NavigationFailed        navigation errored, no fallback possible
    ├── ElementNotFound         selector / highlight number did not resolve
    ├── ScriptExecutionFailed   the page rejected or threw on a script
    └── ReadinessTimeout        nothing resolved before the caller's timeout
"""

from typing import Any, Dict, Optional


class WayfinderError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str = "", context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(message)


class CapabilityUnavailable(WayfinderError):
    """The browser or tab needed by an operation does not exist."""

    def __init__(self, message: str = "Browser not launched. Call start() first."):
        super().__init__(message)


class NavigationFailed(WayfinderError):
    """A navigation could not be confirmed by any readiness signal."""

    def __init__(self, message: str, url: str = "", original: Optional[Exception] = None):
        self.original = original
        if original:
            message += f" ({type(original).__name__}: {original})"
        super().__init__(message, context={"url": url})


class ElementNotFound(WayfinderError):
    """A highlight number or selector did not resolve to an element."""

    def __init__(self, target: Any = "", reason: str = ""):
        msg = f"Element not found: {target}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, context={"target": target})


class ScriptExecutionFailed(WayfinderError):
    """The page capability rejected or threw on a script."""

    def __init__(self, message: str, original: Optional[Exception] = None):
        self.original = original
        super().__init__(message)


class ReadinessTimeout(WayfinderError):
    """No readiness branch, minimal fallback included, resolved in time."""

    def __init__(self, timeout_ms: int, url: str = ""):
        super().__init__(
            f"Page readiness not established within {timeout_ms}ms",
            context={"timeout_ms": timeout_ms, "url": url},
        )
