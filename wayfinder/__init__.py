"""
Wayfinder - Dynamic Element Discovery & Navigation-Readiness Engine

Drives a browser tab for an automated agent: decides when a navigation
has produced a usable page, classifies its interactive elements, numbers
them on screen and keeps those numbers current as the page changes.
"""

__version__ = "0.1.0"
__author__ = "Dhiraj Das"
__email__ = "contact@dhirajdas.dev"

from wayfinder.core.config import WayfinderConfig
from wayfinder.core.orchestrator import WayfinderSession
from wayfinder.exceptions import (
    CapabilityUnavailable,
    ElementNotFound,
    NavigationFailed,
    ReadinessTimeout,
    ScriptExecutionFailed,
    WayfinderError,
)

__all__ = [
    "WayfinderSession",
    "WayfinderConfig",
    "WayfinderError",
    "CapabilityUnavailable",
    "NavigationFailed",
    "ElementNotFound",
    "ScriptExecutionFailed",
    "ReadinessTimeout",
    "__version__",
]
