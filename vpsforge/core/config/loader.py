"""
Configuration loader — reads vpsforge.yml into Settings.

The file is optional: with no file, every setting takes its default.
Environment variables override the file:

    VPSFORGE_MODE          vibe | safe
    VPSFORGE_TARGET_USER   account that owns the installed tooling
    VPSFORGE_LOGS_DIR      where install logs and summaries go
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from vpsforge.core.errors import ConfigError
from vpsforge.core.models.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_FILE = "vpsforge.yml"

_ENV_OVERRIDES = {
    "VPSFORGE_MODE": "mode",
    "VPSFORGE_TARGET_USER": "target_user",
    "VPSFORGE_LOGS_DIR": "logs_dir",
}


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for vpsforge.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to vpsforge.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_yaml(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_settings(path: Path | None = None, search: bool = True) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit path to vpsforge.yml.  Must exist if given.
        search: When no path is given, look for one upward from cwd.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    data: dict = {}

    if path is not None and not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    if path is None and search:
        path = find_config_file()

    if path is not None:
        logger.debug("Loading settings from %s", path)
        data = _read_yaml(path)
        # Allow everything nested under a top-level "vpsforge" key
        if "vpsforge" in data and isinstance(data["vpsforge"], dict):
            data = data["vpsforge"]

    for env_name, key in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[key] = value

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        source = path or "environment"
        raise ConfigError(f"Invalid configuration ({source}): {e}") from e

    logger.info("Settings: mode=%s target_user=%s", settings.mode, settings.target_user)
    return settings
