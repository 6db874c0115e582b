"""Configuration paths and defaults for ReviewGraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("REVIEWGRAPH_HOME", str(Path.home() / ".reviewgraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_GRANULARITY = "file"
DEFAULT_LOG_LEVEL = "WARNING"

SKIP_DIRS = {
    ".venv", "venv", "__pycache__", "node_modules", ".git",
    "site-packages", ".tox", ".pytest_cache", "build", "dist",
    ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs",
    "egg-info", ".reviewgraph",
}
