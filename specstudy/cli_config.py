"""Configuration loading helpers for CLI entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

CONFIG_DIR = Path.home() / ".config" / "specstudy"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def load_config(
    *,
    cwd: Path,
    load_env: Callable[[Path], bool],
    config_env_file: Path = CONFIG_ENV_FILE,
) -> Path | None:
    """Load .env configuration with fallback to the user config directory.

    Search order:
    1. .env in the current working directory
    2. ~/.config/specstudy/.env

    Returns the file that was loaded, if any.
    """
    for candidate in (cwd / ".env", config_env_file):
        if candidate.is_file():
            load_env(candidate)
            logging.debug("Loaded configuration from %s", candidate)
            return candidate
    return None
