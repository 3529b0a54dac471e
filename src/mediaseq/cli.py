"""Command-line interface for mediaseq."""

import asyncio
import json
from pathlib import Path

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from mediaseq.config import get_settings
from mediaseq.logging import configure_logging

app = typer.Typer(
    name="mediaseq",
    help="mediaseq - crossfading playback sequencer",
    add_completion=False,
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode"),
) -> None:
    """mediaseq CLI."""
    settings = get_settings()
    if debug or settings.debug:
        configure_logging(log_level="DEBUG", log_file=settings.log_file)
    else:
        configure_logging(log_level=settings.log_level, log_file=settings.log_file)


# Config commands
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show current configuration."""
    settings = get_settings()
    config_dict = settings.model_dump(mode="json")

    if json_output:
        rprint(json.dumps(config_dict, indent=2))
        return

    table = Table(title="mediaseq Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for field_name, value in config_dict.items():
        table.add_row(field_name, str(value))

    console.print(table)


@app.command("simulate")
def simulate(
    playlist_path: Path = typer.Argument(..., help="YAML playlist file"),
    speed: float = typer.Option(1.0, "--speed", help="Simulated playback speed factor"),
    start: int = typer.Option(0, "--start", help="Index of the entry to start with"),
) -> None:
    """Play a playlist over simulated backends and report every transition."""
    from mediaseq.playlist import load_playlist
    from mediaseq.simulation import simulate_playlist

    try:
        playlist = load_playlist(playlist_path)
    except (OSError, ValueError) as e:
        rprint(f"[red]Cannot load playlist: {e}[/red]")
        raise typer.Exit(1)

    if not len(playlist):
        rprint("[yellow]Playlist is empty[/yellow]")
        raise typer.Exit(0)

    settings = get_settings()
    rprint(f"[cyan]Simulating[/cyan] {playlist_path} ({len(playlist)} entries, x{speed})")

    try:
        asyncio.run(
            simulate_playlist(playlist, settings, report=console.print, speed=speed, start=start)
        )
    except ValueError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    rprint("[green]Simulation complete![/green]")


if __name__ == "__main__":
    app()
