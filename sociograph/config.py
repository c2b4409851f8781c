"""Configuration paths and analysis defaults for Sociograph."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import toml

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("SOCIOGRAPH_HOME", str(Path.home() / ".sociograph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Per-repository working directory (commit cache lives here)
CACHE_DIR_NAME = ".sociograph"
CI_CONFIG_FILE = ".sociograph.yml"

SUPPORTED_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"}

SKIP_DIRS = {
    "node_modules", "dist", "build", ".next", "coverage",
    ".git", CACHE_DIR_NAME,
}

# Matched against file names, not paths
IGNORE_FILE_PATTERNS = ("*.test.*", "*.spec.*", "*.d.ts")

DEFAULT_ANALYSIS: Dict[str, Any] = {
    "git_limit": 500,
    "top": 4,
    "workers": 1,
    "cluster_min_size": 3,
}


def load_analysis_config(config_file: Path = CONFIG_FILE) -> Dict[str, Any]:
    """Load ``[analysis]`` defaults from the user TOML file.

    Unknown keys are ignored; a missing or malformed file yields the
    built-in defaults.
    """
    settings = DEFAULT_ANALYSIS.copy()
    if not config_file.exists():
        return settings

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config_file, exc)
        return settings

    section = data.get("analysis", {})
    for key, default in DEFAULT_ANALYSIS.items():
        value = section.get(key)
        if isinstance(value, type(default)):
            settings[key] = value
    return settings
