#!/usr/bin/env python3
"""
Basic Discovery Example
=======================

Loads a page, waits until it is usable and prints every numbered
element the way an agent would see it.

Usage:
    python examples/basic_discovery.py [URL]
"""

import asyncio
import sys

from wayfinder import WayfinderConfig, WayfinderSession


async def main(url: str):
    """Navigate and list the numbered elements."""

    print("=" * 60)
    print("🧭 Wayfinder - Basic Discovery Example")
    print("=" * 60)
    print()

    config = WayfinderConfig()
    config.browser.headless = False  # Show the browser so the numbers are visible

    async with WayfinderSession(config=config) as session:
        result = await session.navigate_and_await_ready(url)

        print(f"URL: {result.url}")
        print(f"Ready via: {result.reason} after {result.duration_ms}ms")
        print(f"Load quality: {result.load_quality}")
        print()

        print("Numbered elements:")
        print("-" * 40)
        for entry in session.highlights:
            element = session.resolve(entry.number)
            print(f"  [{entry.number:>3}] {entry.element_type:<18} {element.label or ''}")
            print(f"        {element.instruction}")

        input("\nPress Enter to close the browser...")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "https://demo.playwright.dev/todomvc/"))
