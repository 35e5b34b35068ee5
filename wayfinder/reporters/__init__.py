"""Reporters - Session event trail."""

from wayfinder.reporters.flight_recorder import FlightRecorder

__all__ = ["FlightRecorder"]
