"""
Path utilities for the sequence graph engine.

Handles path resolution for both development mode and frozen (PyInstaller) executables.
- In development: paths are relative to the project root
- When frozen: paths are relative to the executable location

External data (config.json, action_config.json, templates/) lives NEXT TO the executable, not bundled inside.
"""

import sys
from pathlib import Path


def get_app_dir() -> Path:
    """
    Get the application directory.

    - In development: the project root (parent of src/)
    - When frozen: the directory containing the executable
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Get the path to the editor settings file."""
    return get_app_dir() / "config.json"


def get_action_config_path() -> Path:
    """Get the default path of the action-type catalog."""
    return get_app_dir() / "action_config.json"


def get_templates_dir() -> Path:
    """Get the directory holding sequence templates."""
    return get_app_dir() / "templates"

