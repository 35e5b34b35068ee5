#!/usr/bin/env python3
"""
Dynamic Monitoring Example
==========================

Types into a search box and lets auto-refresh pick up the suggestion
dropdown the page renders in response. The numbering after the action
includes the new suggestions.

Usage:
    python examples/dynamic_monitoring.py
"""

import asyncio

from wayfinder import WayfinderConfig, WayfinderSession
from wayfinder.reporters.flight_recorder import FlightRecorder


async def main():
    """Type, wait for suggestions, and show the renumbered page."""

    print("=" * 60)
    print("🧭 Wayfinder - Dynamic Monitoring Example")
    print("=" * 60)
    print()

    config = WayfinderConfig()
    config.browser.headless = False
    config.monitor.refresh_wait_ms = 2000  # Suggestions arrive over the network

    recorder = FlightRecorder(output_dir="./wayfinder_reports")

    async with WayfinderSession(config=config, recorder=recorder) as session:
        await session.navigate_and_await_ready("https://duckduckgo.com/")
        before = len(session.highlights)
        print(f"Before typing: {before} numbered elements")

        search = next(
            (e for e in session.highlights if e.element_type == "text_input"), None
        )
        if search is None:
            print("No text input found on the page.")
            return

        await session.type_by_number(search.number, "selenium python")
        after = len(session.highlights)
        print(f"After typing: {after} numbered elements ({after - before:+d})")

        for entry in session.highlights:
            print(f"  [{entry.number:>3}] {entry.element_type:<18} {entry.selector}")

    print()
    print(f"Report: {recorder.generate_report()}")


if __name__ == "__main__":
    asyncio.run(main())
