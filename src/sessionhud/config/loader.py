"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass, with per-field validation
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from sessionhud.config.merge import merge_configs
from sessionhud.config.paths import get_config_paths
from sessionhud.config.schema import (
    Config,
    DisplayConfig,
    GitConfig,
    LoggingConfig,
    StoreConfig,
    StreamConfig,
    UsageConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("sessionhud.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"display", "git", "usage", "stream", "store", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables (highest priority)."""
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("SESSIONHUD_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    fifo_path = os.environ.get("SESSIONHUD_FIFO")
    if fifo_path:
        overrides.setdefault("stream", {})["fifo_path"] = fifo_path

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def _bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    return value if isinstance(value, bool) else default


def _number(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _choice(data: dict[str, Any], key: str, choices: tuple[Any, ...], default: Any) -> Any:
    value = data.get(key)
    return value if value in choices else default


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Invalid values fall back to their defaults field by field, so a single
    typo never discards the rest of the user's configuration.
    """
    d = _section(data, "display")
    defaults = DisplayConfig()
    display = DisplayConfig(
        show_model=_bool(d, "show_model", defaults.show_model),
        show_context_bar=_bool(d, "show_context_bar", defaults.show_context_bar),
        show_config_counts=_bool(d, "show_config_counts", defaults.show_config_counts),
        show_duration=_bool(d, "show_duration", defaults.show_duration),
        show_usage=_bool(d, "show_usage", defaults.show_usage),
        show_tools=_bool(d, "show_tools", defaults.show_tools),
        show_agents=_bool(d, "show_agents", defaults.show_agents),
        show_todos=_bool(d, "show_todos", defaults.show_todos),
        show_last_message=_bool(d, "show_last_message", defaults.show_last_message),
        path_levels=_choice(d, "path_levels", (1, 2, 3), defaults.path_levels),
        context_value=_choice(d, "context_value", ("percent", "tokens"), defaults.context_value),
        usage_threshold=int(_number(d, "usage_threshold", defaults.usage_threshold)),
        seven_day_threshold=int(_number(d, "seven_day_threshold", defaults.seven_day_threshold)),
        autocompact_buffer=_choice(
            d, "autocompact_buffer", ("enabled", "disabled"), defaults.autocompact_buffer
        ),
    )

    g = _section(data, "git")
    git = GitConfig(
        enabled=_bool(g, "enabled", True),
        show_dirty=_bool(g, "show_dirty", True),
        show_ahead_behind=_bool(g, "show_ahead_behind", False),
    )

    u = _section(data, "usage")
    usage_defaults = UsageConfig()
    default_plan = u.get("default_plan", usage_defaults.default_plan)
    usage = UsageConfig(
        enabled=_bool(u, "enabled", usage_defaults.enabled),
        cache_ttl=_number(u, "cache_ttl", usage_defaults.cache_ttl),
        failure_ttl=_number(u, "failure_ttl", usage_defaults.failure_ttl),
        timeout=_number(u, "timeout", usage_defaults.timeout),
        default_plan=default_plan if isinstance(default_plan, str) else usage_defaults.default_plan,
    )

    s = _section(data, "stream")
    stream_defaults = StreamConfig()
    fifo_path = s.get("fifo_path")
    stream = StreamConfig(
        fifo_path=fifo_path if isinstance(fifo_path, str) and fifo_path else None,
        backoff_min=_number(s, "backoff_min", stream_defaults.backoff_min),
        backoff_max=_number(s, "backoff_max", stream_defaults.backoff_max),
        stable_after=_number(s, "stable_after", stream_defaults.stable_after),
    )

    st = _section(data, "store")
    store_defaults = StoreConfig()
    store = StoreConfig(
        environment_interval=_number(st, "environment_interval", store_defaults.environment_interval),
        usage_interval=_number(st, "usage_interval", store_defaults.usage_interval),
        clock_interval=_number(st, "clock_interval", store_defaults.clock_interval),
    )

    log_data = _section(data, "logging")
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=verbose if isinstance(verbose, int) and not isinstance(verbose, bool) else None,
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        display=display,
        git=git,
        usage=usage,
        stream=stream,
        store=store,
        logging=logging_config,
        extra=extra,
    )


def load_config(
    session_root: str | None = None,
    reload: bool = False,
    extra_path: Path | None = None,
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Explicit file passed on the command line (extra_path)
    3. Project config ($session_root/.sessionhud/config.yaml)
    4. User config (~/.config/sessionhud/config.yaml or %APPDATA%)
    5. System config (/etc/sessionhud/ or %PROGRAMDATA%)

    Args:
        session_root: Project directory for project-level config.
        reload: Force reload even if cached.
        extra_path: Additional YAML layer, e.g. from ``--config``.

    Returns:
        Merged Config object.
    """
    global _cached_config

    cacheable = session_root is None and extra_path is None
    if _cached_config is not None and not reload and cacheable:
        return _cached_config

    layers: list[dict[str, Any]] = []

    for path in get_config_paths(session_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            layers.append(config_data)

    if extra_path is not None:
        layers.append(load_yaml_file(extra_path))

    env_config = env_overrides()
    if env_config:
        layers.append(env_config)

    config = dict_to_config(merge_configs(*layers))

    if cacheable:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config (for tests or forced reloads)."""
    global _cached_config
    _cached_config = None
