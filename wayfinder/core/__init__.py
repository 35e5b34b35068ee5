"""Core module - Session, configuration and browser capability."""

from wayfinder.core.capability import PageCapability
from wayfinder.core.config import WayfinderConfig
from wayfinder.core.orchestrator import WayfinderSession

__all__ = ["PageCapability", "WayfinderConfig", "WayfinderSession"]
