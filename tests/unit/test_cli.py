from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from wayfinder.cli.main import cli
from wayfinder.exceptions import ReadinessTimeout
from wayfinder.layers.action.highlighter import HighlightEntry
from wayfinder.layers.sense.dom_mapper import Element
from wayfinder.layers.sense.readiness import ReadinessResult


def fake_session(result=None, error=None):
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.navigate_and_await_ready = AsyncMock(return_value=result, side_effect=error)
    session.highlights = [HighlightEntry("elem_1", 1, "#0000FF", "button", "button#go")]
    session.resolve.return_value = Element(
        id="elem_1", tag="button", css_selector="button#go", xpath="//button[@id='go']", label="Go",
    )
    return session


def ready():
    return ReadinessResult(
        success=True,
        reason="already_complete",
        url="https://example.com/",
        ready_state="complete",
        duration_ms=15,
        actual_load_time_ms=420,
        network_quiet=True,
        has_content=True,
    )


def test_version():
    result = CliRunner().invoke(cli, ["version"])

    assert result.exit_code == 0
    assert "Wayfinder v0.1.0" in result.output


def test_doctor_lists_dependencies():
    result = CliRunner().invoke(cli, ["doctor"])

    assert result.exit_code == 0
    for package in ("selenium", "bs4", "click", "rich"):
        assert package in result.output


def test_scan_prints_readiness_and_elements():
    session = fake_session(result=ready())

    with patch("wayfinder.core.orchestrator.WayfinderSession", return_value=session) as factory:
        result = CliRunner().invoke(cli, ["scan", "https://example.com/", "--no-text"])

    assert result.exit_code == 0, result.output
    assert "already_complete" in result.output
    assert "button#go" in result.output
    config = factory.call_args.kwargs["config"]
    assert config.dom.extract_all_elements is False
    assert config.browser.headless is True


def test_scan_reports_engine_errors():
    session = fake_session(error=ReadinessTimeout(100, url="about:blank"))

    with patch("wayfinder.core.orchestrator.WayfinderSession", return_value=session):
        result = CliRunner().invoke(cli, ["scan", "about:blank", "--timeout", "100"])

    assert result.exit_code == 1
    assert "ReadinessTimeout" in result.output


def test_watch_pauses_between_quiet_checks():
    session = fake_session(result=ready())
    session.check_and_refresh_if_needed = AsyncMock(return_value=False)
    clock = MagicMock()
    clock.monotonic.side_effect = [0, 0, 0, 100]

    with patch("wayfinder.core.orchestrator.WayfinderSession", return_value=session), \
            patch("wayfinder.cli.main.time", clock), \
            patch("wayfinder.cli.main.asyncio.sleep", new_callable=AsyncMock) as sleep:
        result = CliRunner().invoke(cli, ["watch", "https://example.com/", "--duration", "5"])

    assert result.exit_code == 0, result.output
    assert session.check_and_refresh_if_needed.await_count == 2
    sleep.assert_awaited_with(0.1)
    assert sleep.await_count == 2
