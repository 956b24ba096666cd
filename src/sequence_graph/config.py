"""
Configuration management for the sequence graph engine.

Handles persistent editor settings including:
- Default wait inserted above new actions
- Layout gaps
- Location of the action-type catalog and the templates directory

Config is stored in config.json next to the executable/project root.
Environment variables (optionally from a .env file) take priority.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from sequence_graph.constants import DEFAULT_DELAY_MINUTES, LEVEL_GAP, SIBLING_GAP
from sequence_graph.paths import get_action_config_path, get_config_path, get_templates_dir

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "default_delay_minutes": DEFAULT_DELAY_MINUTES,
    "level_gap": LEVEL_GAP,
    "sibling_gap": SIBLING_GAP,
}

# setting key -> (environment variable, converter)
ENV_OVERRIDES = {
    "default_delay_minutes": ("SEQUENCE_DEFAULT_DELAY", int),
    "level_gap": ("SEQUENCE_LEVEL_GAP", int),
    "sibling_gap": ("SEQUENCE_SIBLING_GAP", int),
    "action_config_path": ("SEQUENCE_ACTION_CONFIG", str),
    "templates_dir": ("SEQUENCE_TEMPLATES_DIR", str),
}


def load_config() -> dict:
    """Load configuration from config.json."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    config_path = get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def get_settings() -> Dict[str, Any]:
    """
    Get the effective editor settings.

    Priority:
    1. Environment variables (a .env file is loaded first)
    2. Stored in config.json
    3. Built-in defaults
    """
    load_dotenv()

    settings = dict(DEFAULT_SETTINGS)
    settings["action_config_path"] = str(get_action_config_path())
    settings["templates_dir"] = str(get_templates_dir())
    settings.update({k: v for k, v in load_config().items() if v is not None})

    for key, (env_name, convert) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if not raw:
            continue
        try:
            settings[key] = convert(raw)
        except ValueError:
            logger.warning(f"Ignoring {env_name}={raw!r}: expected {convert.__name__}")

    return settings


def get_default_delay() -> int:
    """Minutes of the delay placed above a newly inserted action."""
    return int(get_settings()["default_delay_minutes"])


def get_layout_gaps() -> tuple[int, int]:
    """Return (level_gap, sibling_gap) used by the layout engine."""
    settings = get_settings()
    return int(settings["level_gap"]), int(settings["sibling_gap"])


def set_default_delay(minutes: int) -> None:
    """Save the default delay to config.json."""
    if minutes < 0:
        raise ValueError("Delay must be a non-negative number of minutes")
    config = load_config()
    config["default_delay_minutes"] = minutes
    save_config(config)


def resolve_path_setting(key: str) -> Path:
    """Return a path setting (action_config_path, templates_dir) as a Path."""
    return Path(get_settings()[key])
