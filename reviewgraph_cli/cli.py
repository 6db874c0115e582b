"""Typer-based CLI for ReviewGraph."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__, config_manager
from .cli_config import config_grp
from .errors import ResolutionError, ReviewGraphError
from .graph_export import export_dot, export_json, render_dot
from .loader import load_change_set, result_to_dict
from .models import ChangeSet, ResolutionResult
from .override import extract_override, parse_override_list
from .resolver import DependencyOrderResolver
from .scanner import ChangeSetScanner

app = typer.Typer(
    help="🧭 ReviewGraph CLI — present code changes in dependency order.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_grp, name="config")

console = Console()
err_console = Console(stderr=True)

FORMATS = {"text", "json", "dot"}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"ReviewGraph CLI v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else config_manager.load_log_level()
    pkg_logger = logging.getLogger("reviewgraph_cli")
    pkg_logger.setLevel(getattr(logging, level_name, logging.WARNING))
    if not any(isinstance(h, RichHandler) for h in pkg_logger.handlers):
        pkg_logger.addHandler(RichHandler(console=err_console, show_path=False))


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Log resolver and scanner details."),
):
    """ReviewGraph: order changed files and symbols so dependencies are reviewed first."""
    _configure_logging(verbose)


def _read_override(override: Optional[str], override_text: Optional[Path]) -> Optional[List[str]]:
    if override and override_text:
        raise typer.BadParameter("Use either --override or --override-text, not both.")
    if override:
        return parse_override_list(override)
    if override_text is None:
        return None

    try:
        text = override_text.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise typer.BadParameter(f"Cannot read {override_text.name}: {exc}")
    explicit = extract_override(text)
    if explicit is None:
        raise typer.BadParameter(f"No 'Review order' section found in {override_text.name}")
    return explicit


def _check_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(sorted(FORMATS))}")
    return fmt


def _fail(exc: ReviewGraphError) -> None:
    kind = exc.kind if isinstance(exc, ResolutionError) else type(exc).__name__
    err_console.print(f"[red]✗ {kind}:[/red] {escape(str(exc))}")
    raise typer.Exit(code=1)


def _print_table(change_set: ChangeSet, result: ResolutionResult) -> None:
    layers = {node.node_id: node.layer.value for node in change_set.nodes}
    table = Table(title="Review order", show_header=True, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Node", style="cyan")
    table.add_column("Layer")
    table.add_column("Note")

    position = 0
    for entry in result.entries:
        for node_id in entry.members:
            position += 1
            note = ""
            if entry.group is not None:
                note = f"[yellow]cycle group {entry.group + 1}[/yellow]"
            table.add_row(str(position), escape(node_id), layers.get(node_id, ""), note)
    console.print(table)

    for idx, members in enumerate(result.cycle_groups, start=1):
        console.print(
            f"[yellow]↻ Cycle group {idx} is mutually dependent:[/yellow] "
            + escape(", ".join(members))
        )
    for dependent, dependency in result.override_conflicts:
        console.print(
            f"[yellow]⚠ Override places {escape(dependent)} before its dependency "
            f"{escape(dependency)}[/yellow]"
        )
    for child, parent in result.nesting_conflicts:
        console.print(
            f"[yellow]⚠ Override places {escape(child)} before its parent {escape(parent)}[/yellow]"
        )


def _emit(change_set: ChangeSet, result: ResolutionResult, fmt: str, output: Optional[Path]) -> None:
    if output is not None:
        try:
            if fmt == "json":
                export_json(result, output)
            elif fmt == "dot":
                export_dot(change_set, result, output)
            else:
                output.write_text("\n".join(result.order) + "\n", encoding="utf-8")
        except OSError as exc:
            err_console.print(f"[red]✗ Cannot write {escape(str(output))}:[/red] {escape(str(exc))}")
            raise typer.Exit(code=1)
        typer.echo(f"Wrote {fmt} review order to {output}")
    elif fmt == "json":
        typer.echo(json.dumps(result_to_dict(result), indent=2))
    elif fmt == "dot":
        typer.echo(render_dot(change_set, result), nl=False)
    else:
        _print_table(change_set, result)


@app.command("resolve")
def resolve(
    change_set_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="Change-set document (.json or .toml)."
    ),
    override: Optional[str] = typer.Option(
        None, "--override", help="Explicit order, e.g. 'c.py, b.py, a.py'. Replaces the file's override."
    ),
    override_text: Optional[Path] = typer.Option(
        None, "--override-text", exists=True, dir_okay=False,
        help="Review request text containing a 'Review order' section.",
    ),
    fmt: str = typer.Option("text", "--format", "-f", help="Output format: text, json or dot."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write output to a file."),
):
    """Resolve the review order of a change-set document."""
    fmt = _check_format(fmt)
    explicit = _read_override(override, override_text)
    try:
        change_set = load_change_set(change_set_file)
        if explicit is not None:
            change_set = change_set.with_override(explicit)
        result = DependencyOrderResolver().resolve(change_set)
    except ReviewGraphError as exc:
        _fail(exc)
        return
    _emit(change_set, result, fmt, output)


@app.command("scan")
def scan(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root to scan."),
    changed: Optional[List[Path]] = typer.Option(
        None, "--changed", "-c", help="Changed file (repeatable). Defaults to every Python file."
    ),
    symbols: Optional[bool] = typer.Option(
        None, "--symbols/--files", help="Order functions and classes, or whole files."
    ),
    override: Optional[str] = typer.Option(None, "--override", help="Explicit order of node ids."),
    override_text: Optional[Path] = typer.Option(
        None, "--override-text", exists=True, dir_okay=False,
        help="Review request text containing a 'Review order' section.",
    ),
    fmt: str = typer.Option("text", "--format", "-f", help="Output format: text, json or dot."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write output to a file."),
):
    """Scan Python sources into a change-set and resolve its review order."""
    fmt = _check_format(fmt)
    explicit = _read_override(override, override_text)
    if symbols is None:
        granularity = config_manager.load_scan_granularity()
    else:
        granularity = "symbol" if symbols else "file"

    try:
        scanner = ChangeSetScanner(
            project_path,
            granularity=granularity,
            layer_patterns=config_manager.load_layer_patterns(),
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    try:
        change_set = scanner.scan(changed or None).with_override(explicit)
        result = DependencyOrderResolver().resolve(change_set)
    except ReviewGraphError as exc:
        _fail(exc)
        return
    _emit(change_set, result, fmt, output)


@app.command("validate")
def validate(
    change_set_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="Change-set document (.json or .toml)."
    ),
):
    """Check that a change-set document loads and resolves."""
    try:
        change_set = load_change_set(change_set_file)
        result = DependencyOrderResolver().resolve(change_set)
    except ReviewGraphError as exc:
        _fail(exc)
        return

    console.print(
        f"[green]✓ OK[/green] {len(change_set.nodes)} node(s), "
        f"{len(change_set.edges)} edge(s), {len(result.cycle_groups)} cycle group(s)"
    )
    if result.override_contradicts_dependencies:
        console.print(
            f"[yellow]⚠ Override contradicts {len(result.override_conflicts)} dependency edge(s)[/yellow]"
        )


if __name__ == "__main__":
    app()
