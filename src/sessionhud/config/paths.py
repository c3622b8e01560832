"""Platform-aware configuration and data path resolution.

Handles file locations for:
- Windows: %PROGRAMDATA% (system), %APPDATA% (user)
- Unix: /etc/ (system), ~/.config/sessionhud/ or ~/.sessionhud/ (user)
- Project: $cwd/.sessionhud/

Also resolves the per-user paths owned by the host assistant (credentials,
usage cache, event pipe), all rooted under ``~/.claude``.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "sessionhud"
SHORT_NAME = ".sessionhud"

# Directory of the host assistant inside the user's home
HOST_DIR = ".claude"
PLUGIN_NAME = "session-hud"


def get_system_config_path() -> Path | None:
    """Get system-level config path.

    Returns:
        Path to system config file, or None if not determinable.
        The file may not exist.
    """
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
    else:
        return Path("/etc") / APP_NAME / CONFIG_FILENAME
    return None


def get_user_config_path() -> Path | None:
    """Get user-level config path.

    Returns:
        Path to user config file, or None if not determinable.
        The file may not exist.
    """
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
    else:
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

        home = Path.home()

        xdg_default = home / ".config"
        if xdg_default.exists():
            return xdg_default / APP_NAME / CONFIG_FILENAME

        return home / SHORT_NAME / CONFIG_FILENAME

    return None


def get_project_config_path(session_root: str) -> Path:
    """Get project-level config path (may not exist)."""
    return Path(session_root) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(session_root: str | None = None) -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    Args:
        session_root: Optional project directory for project-level config.

    Returns:
        List of config paths in order: system, user, project.
        Later paths override earlier ones when merging.
    """
    paths: list[Path] = []

    system_path = get_system_config_path()
    if system_path:
        paths.append(system_path)

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if session_root:
        paths.append(get_project_config_path(session_root))

    return paths


def get_host_dir(home: Path) -> Path:
    """Directory where the host assistant keeps its per-user state."""
    return home / HOST_DIR


def get_credentials_path(home: Path) -> Path:
    return get_host_dir(home) / ".credentials.json"


def get_usage_cache_path(home: Path) -> Path:
    return get_host_dir(home) / "plugins" / PLUGIN_NAME / ".usage-cache.json"


def get_default_fifo_path(home: Path) -> Path:
    return get_host_dir(home) / "hud" / "events.fifo"
