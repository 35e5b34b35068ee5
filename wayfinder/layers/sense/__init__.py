"""Sense Layer - Readiness, classification and change detection."""

from wayfinder.layers.sense.change_monitor import ChangeEvent, ChangeMonitor
from wayfinder.layers.sense.dom_mapper import DomState, Element, ElementClassifier, ElementFilter
from wayfinder.layers.sense.readiness import ReadinessDetector, ReadinessResult
from wayfinder.layers.sense.selectors import SelectorType

__all__ = [
    "ChangeEvent",
    "ChangeMonitor",
    "DomState",
    "Element",
    "ElementClassifier",
    "ElementFilter",
    "ReadinessDetector",
    "ReadinessResult",
    "SelectorType",
]
