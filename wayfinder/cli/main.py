"""
Wayfinder CLI - Inspect pages the way an agent sees them.
"""

import asyncio
import logging
import time

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _build_config(headless: bool, timeout: int, no_text: bool, include_hidden: bool = False):
    from wayfinder.core.config import WayfinderConfig

    config = WayfinderConfig()
    config.browser.headless = headless
    config.session.navigation_timeout_ms = timeout
    config.dom.extract_all_elements = not no_text
    config.dom.include_hidden_elements = include_hidden
    return config


def _readiness_panel(result) -> Panel:
    quality_color = {
        "excellent": "green",
        "good": "green",
        "partial": "yellow",
        "minimal": "red",
    }.get(result.load_quality, "white")
    return Panel.fit(
        f"[bold]URL:[/bold] {result.url}\n"
        f"[bold]Reason:[/bold] {result.reason}\n"
        f"[bold]Ready state:[/bold] {result.ready_state}\n"
        f"[bold]Duration:[/bold] {result.duration_ms}ms "
        f"(page load {result.actual_load_time_ms}ms)\n"
        f"[bold]Quality:[/bold] [{quality_color}]{result.load_quality}[/{quality_color}]",
        title="Readiness",
        border_style="blue",
    )


def _highlight_table(session, limit: int) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", justify="right", width=4)
    table.add_column("Type", style="green")
    table.add_column("Label", style="yellow", max_width=40)
    table.add_column("Selector", max_width=50)

    entries = session.highlights
    for entry in entries[:limit]:
        element = session.resolve(entry.number)
        label = element.label or ""
        table.add_row(
            str(entry.number),
            entry.element_type,
            label[:40] + "..." if len(label) > 40 else label,
            entry.selector,
        )
    if len(entries) > limit:
        table.add_row("...", f"+{len(entries) - limit} more", "", "")
    return table


@click.group()
@click.version_option(version="0.1.0", prog_name="wayfinder")
@click.option("--verbose", "-v", is_flag=True, help="Show engine debug logging")
def cli(verbose):
    """🧭 Wayfinder - Element Discovery & Navigation Readiness

    Load a page, decide when it is usable, and number what can be clicked or typed into.
    """
    _configure_logging(verbose)


@cli.command()
@click.argument("url")
@click.option("--headless/--headed", default=True, help="Run browser in headless mode")
@click.option("--timeout", default=10000, type=int, help="Navigation timeout in milliseconds")
@click.option("--no-text", is_flag=True, help="Skip text-only elements during classification")
@click.option("--include-hidden", is_flag=True, help="Also number elements hidden by attributes")
@click.option("--limit", default=50, type=int, help="Maximum rows in the element table")
@click.option("--report-dir", default=None, help="Write a flight record report to this directory")
@click.option("--screenshot", default=None, help="Save a screenshot of the highlighted page")
def scan(url, headless, timeout, no_text, include_hidden, limit, report_dir, screenshot):
    """
    Navigate to URL and list its numbered elements.

    \b
    Examples:

        wayfinder scan "https://example.com"

        wayfinder scan "https://example.com/login" --headed --screenshot login.png
    """
    console.print(Panel.fit(
        "[bold blue]🧭 Wayfinder Scan[/bold blue]\n"
        f"[dim]{url}[/dim]",
        border_style="blue",
    ))

    from wayfinder.core.orchestrator import WayfinderSession
    from wayfinder.exceptions import WayfinderError
    from wayfinder.reporters.flight_recorder import FlightRecorder

    config = _build_config(headless, timeout, no_text, include_hidden)
    recorder = FlightRecorder(output_dir=report_dir) if report_dir else None

    async def _run():
        async with WayfinderSession(config=config, recorder=recorder) as session:
            result = await session.navigate_and_await_ready(url)
            console.print(_readiness_panel(result))
            console.print(f"\n[bold]{len(session.highlights)} numbered elements[/bold]")
            console.print(_highlight_table(session, limit))
            if screenshot:
                await session.screenshot(screenshot)
                console.print(f"\n[dim]Screenshot: {screenshot}[/dim]")

    try:
        asyncio.run(_run())
    except WayfinderError as e:
        console.print(f"[red]❌ {type(e).__name__}: {e}[/red]")
        raise SystemExit(1)
    finally:
        if recorder:
            console.print(f"[dim]Report: {recorder.generate_report()}[/dim]")


@cli.command()
@click.argument("url")
@click.option("--duration", default=30, type=int, help="Seconds to watch for changes")
@click.option("--headless/--headed", default=False, help="Run browser in headless mode")
@click.option("--timeout", default=10000, type=int, help="Navigation timeout in milliseconds")
def watch(url, duration, headless, timeout):
    """
    Watch URL for significant changes and re-number on each one.

    Interact with the page in the browser window (use --headed) and
    the numbering follows along.
    """
    console.print(Panel.fit(
        "[bold magenta]👁️ Wayfinder Watch[/bold magenta]\n"
        f"[dim]{url} for {duration}s[/dim]",
        border_style="magenta",
    ))

    from wayfinder.core.orchestrator import WayfinderSession
    from wayfinder.exceptions import WayfinderError

    config = _build_config(headless, timeout, no_text=True)

    async def _run():
        async with WayfinderSession(config=config) as session:
            result = await session.navigate_and_await_ready(url)
            console.print(f"Ready via [cyan]{result.reason}[/cyan]: "
                          f"{len(session.highlights)} numbered elements")
            deadline = time.monotonic() + duration
            while time.monotonic() < deadline:
                if await session.check_and_refresh_if_needed():
                    console.print(f"[green]↻[/green] Page changed: "
                                  f"{len(session.highlights)} numbered elements")
                else:
                    await asyncio.sleep(config.monitor.poll_interval_ms / 1000)

    try:
        asyncio.run(_run())
    except WayfinderError as e:
        console.print(f"[red]❌ {type(e).__name__}: {e}[/red]")
        raise SystemExit(1)


@cli.command()
def doctor():
    """
    Check that the runtime dependencies are importable.
    """
    console.print(Panel.fit(
        "[bold cyan]🩺 Wayfinder Doctor[/bold cyan]\n"
        "[dim]System Health Check[/dim]",
        border_style="cyan",
    ))
    console.print()

    dependencies = [
        ("selenium", "Browser - WebDriver"),
        ("bs4", "Sense - HTML parsing"),
        ("click", "CLI"),
        ("rich", "CLI - Output"),
    ]

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Package", style="blue")
    table.add_column("Role", style="dim")
    table.add_column("Status", justify="center")

    all_good = True
    for package, role in dependencies:
        try:
            __import__(package)
            status = "[green]✅ Installed[/green]"
        except ImportError:
            status = "[red]❌ Missing[/red]"
            all_good = False
        table.add_row(package, role, status)

    console.print(table)
    console.print()

    if all_good:
        console.print("[bold green]✅ All dependencies installed! Wayfinder is ready.[/bold green]")
    else:
        console.print("[red]❌ Required dependencies are missing.[/red]")
        console.print("[dim]Install with: pip install wayfinder-engine[/dim]")


@cli.command()
def version():
    """Show version information."""
    from wayfinder import __version__
    console.print(f"Wayfinder v{__version__}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
