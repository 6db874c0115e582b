"""Configuration manager for ReviewGraph using TOML files."""

from __future__ import annotations

import logging
from typing import Any, Dict

import toml

from .config import BASE_DIR, CONFIG_FILE, DEFAULT_GRANULARITY, DEFAULT_LOG_LEVEL

logger = logging.getLogger(__name__)


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    Returns:
        The parsed document, or an empty dict when the file is missing or
        unreadable.
    """
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    try:
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", CONFIG_FILE, exc)
        return False


def _table(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return section *name* of *config*, replacing a non-table value with an empty table."""
    section = config.get(name)
    if not isinstance(section, dict):
        if section is not None:
            logger.warning(
                "Ignoring [%s] in %s: expected a table, got %s",
                name,
                CONFIG_FILE,
                type(section).__name__,
            )
        section = {}
        config[name] = section
    return section


# ------------------------------------------------------------------
# Layer inference patterns
# ------------------------------------------------------------------

def load_layer_patterns() -> Dict[str, str]:
    """Load ``[layers]``: glob pattern -> layer name."""
    layers = _table(load_full_config(), "layers")
    return {str(k): str(v) for k, v in layers.items()}


def save_layer_pattern(pattern: str, layer: str) -> bool:
    """Map *pattern* to *layer*, preserving other sections."""
    config = load_full_config()
    _table(config, "layers")[pattern] = layer
    return _save_full_config(config)


def remove_layer_pattern(pattern: str) -> bool:
    """Drop *pattern* from ``[layers]``.

    Returns:
        False if the pattern was not configured.
    """
    config = load_full_config()
    layers = _table(config, "layers")
    if pattern not in layers:
        return False
    del layers[pattern]
    if not layers:
        config.pop("layers", None)
    return _save_full_config(config)


# ------------------------------------------------------------------
# Scan and logging settings
# ------------------------------------------------------------------

def load_scan_granularity() -> str:
    return str(_table(load_full_config(), "scan").get("granularity", DEFAULT_GRANULARITY))


def save_scan_granularity(granularity: str) -> bool:
    config = load_full_config()
    _table(config, "scan")["granularity"] = granularity
    return _save_full_config(config)


def load_log_level() -> str:
    return str(_table(load_full_config(), "logging").get("level", DEFAULT_LOG_LEVEL)).upper()


def config_location() -> str:
    return str(CONFIG_FILE if CONFIG_FILE.exists() else BASE_DIR)
