"""Configuration schema dataclasses for session-hud.

All fields carry defaults so that partial configs merge cleanly. The
defaults reproduce the out-of-the-box statusline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class DisplayConfig:
    """Which statusline elements are rendered.

    Example config.yaml:
        display:
          show_last_message: true
          path_levels: 2
          context_value: tokens
    """

    show_model: bool = True
    show_context_bar: bool = True
    show_config_counts: bool = True
    show_duration: bool = True
    show_usage: bool = True
    show_tools: bool = True
    show_agents: bool = True
    show_todos: bool = True
    show_last_message: bool = False
    path_levels: int = 1  # 1, 2 or 3 trailing path segments
    context_value: str = "percent"  # "percent" or "tokens"
    usage_threshold: int = 0  # Hide 5h usage below this percentage
    seven_day_threshold: int = 80  # Show 7d usage only at or above this
    autocompact_buffer: str = "enabled"  # "enabled" or "disabled"


@dataclass
class GitConfig:
    """Git segment of the session line."""

    enabled: bool = True
    show_dirty: bool = True
    show_ahead_behind: bool = False


@dataclass
class UsageConfig:
    """Remote usage fetch and its single-slot cache."""

    enabled: bool = True
    cache_ttl: float = 60.0  # Seconds a successful fetch stays fresh
    failure_ttl: float = 15.0  # Seconds a failed fetch is remembered
    timeout: float = 5.0  # Per-request timeout
    default_plan: str = "Pro"  # Plan assumed for an OAuth token without subscription type


@dataclass
class StreamConfig:
    """Event pipe location and reconnect policy."""

    fifo_path: str | None = None  # Default: ~/.claude/hud/events.fifo
    backoff_min: float = 0.5
    backoff_max: float = 30.0
    stable_after: float = 5.0  # Connection age that resets the backoff


@dataclass
class StoreConfig:
    """Periodic timers of the long-lived store (0 disables a timer)."""

    environment_interval: float = 30.0
    usage_interval: float = 60.0
    clock_interval: float = 1.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0..4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    display: DisplayConfig = field(default_factory=DisplayConfig)
    git: GitConfig = field(default_factory=GitConfig)
    usage: UsageConfig = field(default_factory=UsageConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are preserved here
    extra: dict[str, Any] = field(default_factory=dict)
