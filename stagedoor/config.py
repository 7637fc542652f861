"""Configuration loading for Stagedoor.

Settings live in ``stagedoor.yaml`` at the project root. Every key is
optional; missing keys take the values in DEFAULT_CONFIG, and command-line
options override both.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "stagedoor.yaml"

DEFAULT_CONFIG = {
    "output_dir": "dist",
    "host": "",
    "port": 8787,
    "not_found_path": "/404.html",
    "request_timeout": 10,
    "watch": True,
    "strict_directories": False,
}


def load_config(project_root: Path) -> dict[str, Any]:
    """Load server configuration from stagedoor.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    return config


def resolve_output_dir(project_root: Path, config: dict[str, Any]) -> Path:
    """Return the build output directory, relative paths taken from the project root."""
    output_dir = Path(str(config.get("output_dir") or DEFAULT_CONFIG["output_dir"]))
    if not output_dir.is_absolute():
        output_dir = project_root / output_dir
    return output_dir
