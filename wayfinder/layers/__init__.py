"""Perception and action layers."""
