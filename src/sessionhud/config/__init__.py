"""Configuration management for session-hud.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/sessionhud/ or %PROGRAMDATA%)
- User-level config (~/.config/sessionhud/ or %APPDATA%)
- Project-level config ($cwd/.sessionhud/)
- Environment variable overrides (highest priority)

Example usage:
    from sessionhud.config import load_config

    config = load_config(session_root="/path/to/project")
    print(config.display.show_tools)
    print(config.usage.cache_ttl)
"""

from sessionhud.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from sessionhud.config.paths import (
    get_config_paths,
    get_credentials_path,
    get_default_fifo_path,
    get_project_config_path,
    get_system_config_path,
    get_usage_cache_path,
    get_user_config_path,
)
from sessionhud.config.schema import (
    Config,
    DisplayConfig,
    GitConfig,
    LoggingConfig,
    StoreConfig,
    StreamConfig,
    UsageConfig,
)

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "DisplayConfig",
    "GitConfig",
    "LoggingConfig",
    "StoreConfig",
    "StreamConfig",
    "UsageConfig",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
    "get_credentials_path",
    "get_usage_cache_path",
    "get_default_fifo_path",
]
