"""Locate the configuration file and resolve paths relative to it."""

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ENV_VAR = "MINDY_CONFIG"


def default_config_path() -> Path:
    """Return the configuration path from the environment or the project tree."""
    override = os.getenv(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return PROJECT_ROOT / "configuration" / "config.conf"


def resolve_relative(value: str, base_dir: Path) -> Path:
    """Anchor a relative path at ``base_dir``; absolute paths pass through."""
    candidate = Path(value).expanduser()
    if candidate.is_absolute():
        return candidate
    return base_dir / candidate
