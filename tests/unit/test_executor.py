import asyncio
from unittest.mock import MagicMock

import pytest

from wayfinder.layers.action.executor import (
    NOT_FOUND,
    ActionResult,
    ActionExecutor,
    click_script,
    presence_script,
    type_script,
)


def make_executor(page, recorder=None):
    return ActionExecutor(page, page.TAB, max_retries=3, retry_delay_ms=0, recorder=recorder)


@pytest.mark.asyncio
async def test_click_existing_element(page):
    result = await make_executor(page).click("button#go")

    assert result.success is True
    assert result.metadata == {"attempts": 1}
    assert page.clicked == ["button#go"]


@pytest.mark.asyncio
async def test_click_missing_element_is_not_retried(page):
    result = await make_executor(page).click("button#missing")

    assert result.success is False
    assert result.not_found is True
    assert result.error == NOT_FOUND
    assert page.calls.count("click") == 1


@pytest.mark.asyncio
async def test_type_reports_final_value(page):
    result = await make_executor(page).type_text("input#q", "hello")

    assert result.success is True
    assert result.metadata["final_value"] == "hello"
    assert result.metadata["text"] == "hello"
    assert page.typed == [("input#q", "hello")]
    assert 'value="hello"' in page.html


@pytest.mark.asyncio
async def test_transient_script_failure_is_retried(page):
    page.fail_next("click", times=2)

    result = await make_executor(page).click("button#go")

    assert result.success is True
    assert result.metadata["attempts"] == 3


@pytest.mark.asyncio
async def test_persistent_script_failure_gives_up(page):
    page.failing.add("type")

    result = await make_executor(page).type_text("input#q", "x")

    assert result.success is False
    assert result.not_found is False
    assert "rejected" in result.error
    assert page.calls.count("type") == 3


@pytest.mark.asyncio
async def test_results_are_recorded(page):
    recorder = MagicMock()
    executor = make_executor(page, recorder=recorder)

    await executor.click("button#go")
    await executor.click("button#missing")

    assert recorder.log_action_result.call_count == 2
    first, second = [c.args[0] for c in recorder.log_action_result.call_args_list]
    assert first.success and not second.success


@pytest.mark.asyncio
async def test_wait_for_selector_present(page):
    assert await make_executor(page).wait_for_selector("button#go", timeout_ms=100) is True


@pytest.mark.asyncio
async def test_wait_for_selector_times_out(page):
    assert await make_executor(page).wait_for_selector("div.toast", timeout_ms=50, poll_ms=10) is False


@pytest.mark.asyncio
async def test_wait_for_selector_sees_late_element(page):
    def show_toast():
        page.html = page.html.replace("</body>", '<div class="toast">Saved</div></body>')

    asyncio.get_running_loop().call_later(0.03, show_toast)

    assert await make_executor(page).wait_for_selector("div.toast", timeout_ms=500, poll_ms=10) is True


def test_scripts_embed_arguments_as_json():
    assert 'document.querySelector("a[href=\\"/x\\"]")' in click_script('a[href="/x"]')
    assert 'const text = "line\\nbreak";' in type_script("textarea", "line\nbreak")
    assert 'document.querySelectorAll("li")' in presence_script("li")


def test_action_result_to_dict():
    result = ActionResult(success=True, action="click", target="#a", duration_ms=12.345)
    assert result.to_dict() == {
        "success": True,
        "action": "click",
        "target": "#a",
        "duration_ms": 12.3,
        "error": None,
        "metadata": {},
    }
