"""``rvg config`` commands: inspect and edit ``config.toml``."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import config_manager
from .cli_groups import config_grp
from .models import LayerHint
from .scanner import GRANULARITIES

console = Console()


@config_grp.command("show")
def show_config():
    """Show layer patterns, scan granularity and log level."""
    console.print(f"[bold]Config:[/bold] {config_manager.config_location()}")
    console.print(f"[bold]Scan granularity:[/bold] {config_manager.load_scan_granularity()}")
    console.print(f"[bold]Log level:[/bold] {config_manager.load_log_level()}")

    patterns = config_manager.load_layer_patterns()
    if not patterns:
        console.print("No layer patterns configured; built-in heuristics apply.")
        return

    table = Table(title="Layer patterns", show_header=True)
    table.add_column("Pattern", style="cyan")
    table.add_column("Layer")
    for pattern, layer in sorted(patterns.items()):
        table.add_row(escape(pattern), layer)
    console.print(table)


@config_grp.command("set-layer")
def set_layer(
    pattern: str = typer.Argument(..., help="Glob matched against the relative path or file name."),
    layer: str = typer.Argument(..., help="Layer name, e.g. utility or data-access."),
):
    """Assign a layer to files matching PATTERN during scans."""
    try:
        hint = LayerHint.parse(layer)
    except ValueError:
        choices = ", ".join(h.value for h in LayerHint)
        raise typer.BadParameter(f"Unknown layer '{layer}'. Choose one of: {choices}")

    if not config_manager.save_layer_pattern(pattern, hint.value):
        console.print("[red]✗[/red] Could not write config file.")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] {escape(pattern)} → {hint.value}")


@config_grp.command("unset-layer")
def unset_layer(pattern: str = typer.Argument(..., help="Pattern to remove.")):
    """Remove a layer pattern."""
    if not config_manager.remove_layer_pattern(pattern):
        raise typer.BadParameter(f"Pattern '{pattern}' is not configured.")
    console.print(f"[green]✓[/green] Removed {escape(pattern)}")


@config_grp.command("set-granularity")
def set_granularity(value: str = typer.Argument(..., help="file or symbol")):
    """Set the default scan granularity."""
    value = value.lower()
    if value not in GRANULARITIES:
        raise typer.BadParameter(f"Granularity must be one of: {', '.join(GRANULARITIES)}")
    if not config_manager.save_scan_granularity(value):
        console.print("[red]✗[/red] Could not write config file.")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Scan granularity set to {value}")
