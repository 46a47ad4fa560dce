"""
Tether CLI - Snapshot pages and replay recorded runs.
"""

import json
import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from tether import __version__
from tether.core.config import TetherConfig
from tether.core.exceptions import TetherError

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # Selenium's remote connection logs every HTTP call at DEBUG
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="tether")
@click.option('-v', '--verbose', is_flag=True, help='Show debug logging')
def cli(verbose):
    """🔗 Tether - DOM element tracking and relocation

    Snapshot interactive elements and find them again after the page changes.
    """
    setup_logging(verbose)


@cli.command()
@click.argument('url')
@click.option('--highlight', is_flag=True, help='Draw numbered overlays on indexed elements')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None,
              help='Write history records of all indexed elements to this JSON file')
@click.option('--headless/--headed', default=None, help='Run browser in headless mode')
@click.option('--max-rows', default=50, type=int, help='Maximum table rows to print')
def snapshot(url, highlight, output, headless, max_rows):
    """
    Snapshot a page and list its interactive elements.

    \b
    Examples:

        tether snapshot "https://demo.playwright.dev/todomvc/"

        tether snapshot "https://example.com/login" --highlight --headed -o login.json
    """
    console.print(Panel.fit(
        f"[bold blue]📸 Page Snapshot[/bold blue]\n"
        f"[dim]{url}[/dim]",
        border_style="blue"
    ))
    console.print()

    try:
        from tether.core.browser_session import BrowserSession
        from tether.core.driver_factory import create_driver
        from tether.layers.memory.history import to_history_element

        config = TetherConfig.from_env(headless=headless, highlight_elements=highlight or None)
        driver = create_driver(headless=config.headless, script_timeout=config.snapshot_timeout)
        try:
            driver.get(url)
            session = BrowserSession(driver, config)
            state = session.get_state()
        finally:
            driver.quit()

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Index", style="dim", justify="right", width=6)
        table.add_column("Tag", style="green")
        table.add_column("Text", style="yellow", max_width=40)
        table.add_column("XPath", style="dim", max_width=50)

        nodes = [state.selector_map[i] for i in sorted(state.selector_map)]
        for node in nodes[:max_rows]:
            text = node.get_all_text_till_next_clickable_element().replace("\n", " ")
            table.add_row(
                str(node.highlight_index),
                node.tag,
                escape(text[:40] + "..." if len(text) > 40 else text),
                escape(node.xpath),
            )
        if len(nodes) > max_rows:
            table.add_row("...", f"+{len(nodes) - max_rows} more", "", "")

        console.print(f"[bold]Title:[/bold] {escape(state.title)}")
        console.print(f"[bold]Indexed elements:[/bold] {len(nodes)}")
        console.print(table)

        if output:
            records = [to_history_element(node).to_dict() for node in nodes]
            with open(output, "w", encoding="utf-8") as f:
                json.dump({"url": state.url, "elements": records}, f, indent=2)
            console.print(f"\n[dim]History records: {output}[/dim]")

    except TetherError as e:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        raise SystemExit(1)


@cli.command()
@click.argument('report_dir', type=click.Path(file_okay=False))
@click.option('--rerun', is_flag=True, help='Re-execute actions on a live browser')
@click.option('--headless/--headed', default=None, help='Run browser in headless mode')
@click.option('--stop-on-failure', is_flag=True, help='Abort at the first step that cannot be replayed')
def replay(report_dir, rerun, headless, stop_on_failure):
    """
    Replay a recorded run.

    Shows the recorded actions and optionally re-executes them, relocating
    every target element by its fingerprint.

    \b
    Examples:

        tether replay ./tether_reports/20260101_120000

        tether replay ./tether_reports/20260101_120000 --rerun --stop-on-failure
    """
    console.print(Panel.fit(
        f"[bold magenta]🎬 Session Replay[/bold magenta]\n"
        f"[dim]Replaying: {report_dir}[/dim]",
        border_style="magenta"
    ))
    console.print()

    from tether.reporters.session_replayer import (
        ReplayDecision,
        SessionReplayer,
        StepStatus,
    )

    try:
        replayer = SessionReplayer(report_dir)
        session = replayer.load()
    except (FileNotFoundError, TetherError) as e:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        raise SystemExit(1)

    table = Table(show_header=False, box=None)
    table.add_row("[bold]Run ID:[/bold]", session.run_id)
    table.add_row("[bold]URL:[/bold]", session.url or "N/A")
    table.add_row("[bold]Duration:[/bold]", f"{session.duration_seconds:.2f}s")
    table.add_row("[bold]Steps:[/bold]", str(len(session.steps)))
    table.add_row("[bold]Actions:[/bold]", str(len(session.actions)))
    console.print(table)
    console.print()

    console.print("[bold]📝 Action Timeline:[/bold]")
    for i, step in enumerate(replayer.get_actions(), 1):
        element = step.history_element
        target = escape(f"<{element.tag}> {element.xpath}") if element else "N/A"
        console.print(f"  {i}. [cyan]{step.action.name}[/cyan] [dim]#{step.action.index}[/dim] → {target}")
    console.print()

    if not rerun:
        console.print("[dim]Use --rerun to re-execute actions on a browser[/dim]")
        return

    from tether.core.browser_session import BrowserSession
    from tether.core.driver_factory import create_driver
    from tether.layers.action.executor import ActionExecutor
    from tether.reporters.flight_recorder import FlightRecorder

    def policy(outcome):
        if outcome.status == StepStatus.ENGINE_UNAVAILABLE:
            return ReplayDecision.RETRY
        return ReplayDecision.ABORT if stop_on_failure else ReplayDecision.SKIP

    def on_step(outcome):
        status = "[green]✅[/green]" if outcome.ok else "[red]❌[/red]"
        moved = ""
        if outcome.replayed_index is not None and outcome.replayed_index != outcome.recorded_index:
            moved = f" [dim](index {outcome.recorded_index} → {outcome.replayed_index})[/dim]"
        reason = f" [dim]{outcome.status}: {escape(str(outcome.reason))}[/dim]" if not outcome.ok else ""
        console.print(f"  {status} {outcome.action}{moved}{reason}")

    console.print("[bold yellow]🔄 Re-executing session on browser...[/bold yellow]")
    console.print()

    try:
        config = TetherConfig.from_env(headless=headless)
        recorder = FlightRecorder(output_dir=config.report_dir, run_name=f"{session.run_id}_rerun")
        driver = create_driver(headless=config.headless, script_timeout=config.snapshot_timeout)
        try:
            outcomes = replayer.replay(
                BrowserSession(driver, config),
                ActionExecutor(driver, config),
                policy=policy,
                callback=on_step,
                recorder=recorder,
            )
        finally:
            driver.quit()
            record_path = recorder.save()
    except TetherError as e:
        console.print(f"[red]❌ Error: {escape(str(e))}[/red]")
        raise SystemExit(1)

    successes = sum(1 for o in outcomes if o.ok)
    console.print()
    console.print(f"[bold]Replay complete: {successes}/{len(outcomes)} actions succeeded[/bold]")
    console.print(f"[dim]Rerun log: {escape(record_path)}[/dim]")
    if successes < len(outcomes):
        raise SystemExit(1)


@cli.command()
def doctor():
    """
    Check system health and dependencies.
    """
    console.print(Panel.fit(
        f"[bold cyan]🩺 Tether Doctor[/bold cyan]\n"
        f"[dim]System Health Check[/dim]",
        border_style="cyan"
    ))
    console.print()

    dependencies = [
        ("selenium", "Core - WebDriver", True),
        ("click", "CLI - Commands", True),
        ("rich", "CLI - Output", True),
        ("pytest", "Tests", False),
    ]

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Package", style="blue")
    table.add_column("Role", style="dim")
    table.add_column("Status", justify="center")

    missing_required = False
    for package, role, required in dependencies:
        try:
            __import__(package)
            status = "[green]✅ Installed[/green]"
        except ImportError:
            status = "[red]❌ Missing[/red]" if required else "[yellow]⚠️ Missing[/yellow]"
            missing_required = missing_required or required
        table.add_row(package, role, status)

    console.print(table)
    console.print()

    try:
        config = TetherConfig.from_env()
        console.print(f"[dim]Config: snapshot_timeout={config.snapshot_timeout}s, "
                      f"state_retries={config.state_retries}, report_dir={os.path.abspath(config.report_dir)}[/dim]")
    except TetherError as e:
        console.print(f"[red]❌ Invalid configuration: {e}[/red]")
        raise SystemExit(1)

    if missing_required:
        console.print("[red]❌ Required dependencies are missing.[/red]")
        raise SystemExit(1)
    console.print("[bold green]✅ All required dependencies installed! Tether is ready.[/bold green]")


@cli.command()
def version():
    """Show version information."""
    console.print(f"Tether v{__version__}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
