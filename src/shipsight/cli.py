"""Typer-based CLI for ShipSight."""

import logging
import shutil
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .capture import StagedFileCapture
from .codec import decode
from .config import ShipSightConfig
from .errors import ShipSightError
from .models.ledger import Mode
from .paths import open_output_location
from .state import StationState
from .station import Station
from .storage import LocalDirectoryStore

app = typer.Typer(
    name="shipsight",
    help="ShipSight - barcode-driven packing and inspection recording",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {"info": "blue", "success": "green", "error": "red"}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(output: Optional[str], staging: Optional[str] = None) -> ShipSightConfig:
    config = ShipSightConfig.from_env(cli_output_path=output, cli_staging_path=staging)
    _configure_logging(config.log_level)
    if config.output_path is None:
        console.print("[red]Error: No output folder selected[/red]")
        console.print("[yellow]Pass --output or set SHIPSIGHT_OUTPUT[/yellow]")
        raise typer.Exit(code=1)
    return config


def _open_location(config: ShipSightConfig):
    try:
        return open_output_location(LocalDirectoryStore(config.output_path), config)
    except ShipSightError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


def _remember_output(config: ShipSightConfig) -> None:
    state = StationState.load(config.state_file)
    state.remember_output(config.output_path)
    try:
        state.save(config.state_file)
    except OSError as e:
        console.print(f"[yellow]Warning: could not remember output folder: {e}[/yellow]")


def _mode_option(value: str) -> Mode:
    try:
        return Mode(value.strip().lower())
    except ValueError:
        console.print(f"[red]Error: Unknown mode '{value}' (use forward or reverse)[/red]")
        raise typer.Exit(code=1)


@app.command()
def init(
    output: str = typer.Option(
        None,
        "--output",
        "-o",
        help="Output folder (default: SHIPSIGHT_OUTPUT env or last used folder)",
    ),
):
    """Prepare an output folder: month folder, forward/ and reverse/, and the ledger.

    This command is idempotent - it will not overwrite existing data.
    """
    config = _load_config(output)
    location = _open_location(config)

    _remember_output(config)
    console.print(f"[green]Output folder ready:[/green] {config.output_path}")
    if location.month_name:
        console.print(f"  Month:  {location.month_name}")
    console.print(f"  Ledger: {config.ledger_filename} ({len(location.ledger)} row(s))")


ledger_app = typer.Typer(help="Ledger commands")
app.add_typer(ledger_app, name="ledger")


@ledger_app.command("show")
def ledger_show(
    output: str = typer.Option(None, "--output", "-o", help="Output folder"),
    mode: str = typer.Option(None, "--mode", "-m", help="Only show forward or reverse rows"),
):
    """Display the ledger rows of the current month."""
    config = _load_config(output)
    location = _open_location(config)
    rows = location.ledger.rows
    if mode:
        wanted = _mode_option(mode)
        rows = [row for row in rows if row.mode == wanted]

    if not rows:
        console.print("[dim]No rows in ledger[/dim]")
        return

    table = Table(title=f"{config.ledger_filename} ({len(rows)} row(s))")
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Start", style="cyan")
    table.add_column("End", style="cyan")
    table.add_column("OrderID", style="yellow")
    table.add_column("Mode", style="magenta")
    table.add_column("File", style="dim")
    for row in rows:
        table.add_row(*row.as_cells())
    console.print(table)


@ledger_app.command("check")
def ledger_check(
    code: str = typer.Argument(..., help="Barcode to check"),
    mode: str = typer.Option("forward", "--mode", "-m", help="forward or reverse"),
    output: str = typer.Option(None, "--output", "-o", help="Output folder"),
):
    """Check whether a barcode can still be recorded in a mode (does not reserve it)."""
    wanted = _mode_option(mode)
    config = _load_config(output)
    location = _open_location(config)

    if location.reservations.is_available(code, wanted):
        console.print(f"[green]Available:[/green] {code.strip()} ({wanted.value})")
        return

    row = location.ledger.find_by_key(code, wanted)
    console.print(f"[red]Already used:[/red] {code.strip()} ({wanted.value})")
    if row is not None:
        console.print(f"  [dim]{row.date} {row.start_time} → {row.end_time or '-'} {row.file_path}[/dim]")
    raise typer.Exit(code=1)


@ledger_app.command("export")
def ledger_export(
    dest: Path = typer.Argument(..., help="Destination file or folder"),
    output: str = typer.Option(None, "--output", "-o", help="Output folder"),
):
    """Copy the current ledger workbook out of the output folder."""
    config = _load_config(output)
    location = _open_location(config)
    source = location.base.get_or_create_file(config.ledger_filename)

    target = dest / config.ledger_filename if dest.is_dir() else dest
    try:
        shutil.copy2(source, target)
    except OSError as e:
        console.print(f"[red]Error: Failed to export ledger: {e}[/red]")
        raise typer.Exit(code=1)

    rows = decode(target.read_bytes())
    console.print(f"[green]Exported {len(rows)} row(s) to:[/green] {target}")


def _print_entry(entry) -> None:
    style = STATUS_STYLES.get(entry.status, "white")
    tag = escape(f" [{entry.tag}]") if entry.tag else ""
    message = escape(entry.message)
    console.print(f"[dim]{entry.time}[/dim] [{style}]{message}[/{style}]{tag}", highlight=False)


STATION_HELP = """Commands:
  <barcode>          submit in the selected mode (same barcode again stops)
  :forward <barcode> submit for forward recording
  :reverse / :close  open or close reverse photo capture
  :pose <Tag>        capture the next pose (Front, Back, Left, Right, Top, Bottom)
  :retake <Tag>      replace an already captured pose
  :stop              stop the active recording
  :log               show the session log
  :quit              stop and exit"""


def _run_station_command(station: Station, line: str) -> bool:
    """Run one operator line. Returns False when the operator quits."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if not line.startswith(":"):
        station.submit(line)
    elif command == ":forward":
        station.submit_forward(argument)
    elif command == ":reverse":
        station.open_reverse()
        console.print("[cyan]Reverse capture open. Next: Front[/cyan]")
    elif command == ":close":
        station.close_reverse()
    elif command in (":pose", ":retake"):
        result = station.capture_pose(argument.capitalize(), retake=command == ":retake")
        if result.cycle_completed:
            console.print("[green]Reverse cycle complete[/green]")
        elif station.reverse.expected is not None:
            console.print(f"[cyan]Next: {station.reverse.expected.value}[/cyan]")
    elif command == ":stop":
        station.stop()
    elif command == ":log":
        for entry in station.log:
            _print_entry(entry)
    elif command == ":quit":
        return False
    else:
        console.print(STATION_HELP)
    return True


@app.command()
def station(
    output: str = typer.Option(None, "--output", "-o", help="Output folder"),
    staging: str = typer.Option(
        None,
        "--staging",
        "-s",
        help="Folder the recorder drops videos and stills into (default: SHIPSIGHT_STAGING or ./shipsight_staging)",
    ),
):
    """Run the interactive operator station reading barcodes from stdin."""
    config = _load_config(output, staging)
    capture = StagedFileCapture(config.staging_path)
    station_ = Station(config, capture)

    try:
        station_.select_output(LocalDirectoryStore(config.output_path))
    except ShipSightError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    _remember_output(config)

    console.print(f"[bold green]Station ready[/bold green] - output: {config.output_path}")
    console.print(f"[dim]Staging: {config.staging_path}[/dim]")
    console.print(STATION_HELP)

    shown = len(station_.log)
    try:
        while True:
            try:
                line = input("> ").strip()
            except EOFError:
                break
            if not line:
                continue
            try:
                if not _run_station_command(station_, line):
                    break
            except ShipSightError:
                # Already recorded in the session log, printed below
                pass
            for entry in station_.log.entries[shown:]:
                _print_entry(entry)
            shown = len(station_.log)
    finally:
        station_.shutdown()
        for entry in station_.log.entries[shown:]:
            _print_entry(entry)


@app.command()
def version():
    """Show ShipSight version."""
    from . import __version__
    console.print(f"ShipSight v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
