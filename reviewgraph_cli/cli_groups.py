"""Command hierarchy groups for the ReviewGraph CLI.

Provides logical grouping of commands under:
  rvg config   — Layer patterns, scan granularity, and logging settings
"""

from __future__ import annotations

import typer

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration — layer patterns and scan defaults.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
