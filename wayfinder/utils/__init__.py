"""Utilities shared across layers."""

from wayfinder.utils.screenshot import compare_screenshots, save_to_file, take_base64

__all__ = ["compare_screenshots", "save_to_file", "take_base64"]
