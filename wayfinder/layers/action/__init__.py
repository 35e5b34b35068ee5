"""Action Layer - Numbered highlights and script-driven interactions."""

from wayfinder.layers.action.executor import ActionExecutor, ActionResult
from wayfinder.layers.action.highlighter import HighlightEntry, HighlightRegistry

__all__ = ["ActionExecutor", "ActionResult", "HighlightEntry", "HighlightRegistry"]
