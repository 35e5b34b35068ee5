"""
Live browser tests for Wayfinder.

Runs a real headless Chrome against local HTML files:
1. Readiness + numbering on a static form
2. Typing and reading the value back by number
3. A click that reveals new elements (auto-refresh)
4. Which mutations the change monitor counts as significant

Set WAYFINDER_LIVE=1 to run them.
"""

import os

import pytest

pytest.importorskip("selenium")

pytestmark = [
    pytest.mark.live,
    pytest.mark.skipif(os.environ.get("WAYFINDER_LIVE") != "1", reason="set WAYFINDER_LIVE=1"),
]

FORM_PAGE = """<!DOCTYPE html>
<html><head><title>Live Form</title></head>
<body>
  <input id="name" type="text" placeholder="Your name">
  <button id="reveal" onclick="
    const b = document.createElement('button');
    b.id = 'extra';
    b.textContent = 'Extra';
    document.body.appendChild(b);
  ">Reveal</button>
  <input id="city" type="text" value="Berlin">
  <select id="size"><option>S</option><option>M</option></select>
  <p id="note">Fill in your name and press reveal.</p>
</body></html>"""


@pytest.fixture
def form_url(tmp_path):
    path = tmp_path / "form.html"
    path.write_text(FORM_PAGE, encoding="utf-8")
    return path.as_uri()


class TestLiveSession:
    """End-to-end session behaviour on a real Chrome."""

    @pytest.mark.asyncio
    async def test_navigate_type_and_reveal(self, form_url):
        from wayfinder import WayfinderConfig, WayfinderSession

        async with WayfinderSession(config=WayfinderConfig()) as session:
            result = await session.navigate_and_await_ready(form_url)

            assert result.success is True
            assert result.has_content is True
            selectors = [e.selector for e in session.highlights]
            assert selectors[:2] == ["input#name", "button#reveal"]

            await session.type_by_number(1, "Ada")
            assert session.resolve(1).text_content_or_value == "Ada"

            await session.click_by_number(2)
            assert "button#extra" in [e.selector for e in session.highlights]
            # Typed value survives the re-highlight
            assert session.resolve(1).text_content_or_value == "Ada"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mutation, expected", [
        ("document.getElementById('note').textContent = 'Edited text';", set()),
        (
            "const d = document.createElement('div');"
            " d.className = 'autocomplete-list'; document.body.appendChild(d);",
            {"dropdown_suggestions"},
        ),
        (
            "document.getElementById('reveal').setAttribute('aria-expanded', 'true');",
            {"visibility_changes"},
        ),
        (
            "document.getElementById('reveal').remove();",
            {"interactive_elements"},
        ),
    ])
    async def test_change_significance(self, form_url, mutation, expected):
        from wayfinder import WayfinderConfig, WayfinderSession

        async with WayfinderSession(config=WayfinderConfig()) as session:
            await session.navigate_and_await_ready(form_url)
            monitor = session.monitor
            await monitor.check_for_changes()

            await session.capability.run_script(
                session.tab, f"(() => {{ {mutation} return true; }})()"
            )
            event = await monitor.check_for_changes()

            assert event.has_changes is bool(expected)
            assert set(event.change_types) == expected

    @pytest.mark.asyncio
    async def test_cleared_value_and_selection_reach_classification(self, form_url):
        from wayfinder import WayfinderConfig, WayfinderSession

        async with WayfinderSession(config=WayfinderConfig()) as session:
            await session.navigate_and_await_ready(form_url)
            city = next(e.number for e in session.highlights if e.selector == "input#city")

            await session.type_by_number(city, "")
            await session.capability.run_script(
                session.tab, "(() => { document.getElementById('size').value = 'M'; return true; })()"
            )
            await session.rehighlight()
            elements = await session.classify_current_page()

            by_selector = {e.css_selector: e for e in elements}
            assert by_selector["input#city"].value == ""
            selected = [e.text for e in elements if e.tag == "option" and "selected" in e.attributes]
            assert selected == ["M"]
