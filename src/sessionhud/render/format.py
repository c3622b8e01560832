"""Small formatting helpers shared by the line renderers."""

from __future__ import annotations

import math
from datetime import datetime

from rich.text import Text

BAR_WIDTH = 10


def context_style(percent: float) -> str:
    if percent >= 85:
        return "red"
    if percent >= 70:
        return "yellow"
    return "green"


def context_bar(percent: float, width: int = BAR_WIDTH) -> Text:
    """``██████░░░░`` coloured by how full the context is."""
    clamped = max(0.0, min(100.0, percent))
    filled = round(clamped / 100 * width)
    bar = Text()
    bar.append("█" * filled, style=context_style(clamped))
    bar.append("░" * (width - filled), style="dim")
    return bar


def format_tokens(n: int) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1000:
        return f"{n / 1000:.0f}k"
    return str(n)


def format_percent(percent: int | None) -> Text:
    if percent is None:
        return Text("--", style="dim")
    return Text(f"{percent}%", style=context_style(percent))


def format_elapsed(seconds: float) -> str:
    """Session-length style duration: ``<1m``, ``12m``, ``1h 5m``."""
    minutes = math.floor(seconds / 60)
    if minutes < 1:
        return "<1m"
    if minutes < 60:
        return f"{minutes}m"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if mins else f"{hours}h"


def format_short_elapsed(seconds: float) -> str:
    """Tool/agent style duration: ``8s``, ``2m 15s``."""
    seconds = max(0, math.floor(seconds))
    if seconds < 60:
        return f"{seconds}s"
    mins, secs = divmod(seconds, 60)
    return f"{mins}m {secs}s" if secs else f"{mins}m"


def format_reset_clock(reset_at: datetime | None, now: datetime, with_day: bool = False) -> str:
    """Local wall-clock reset time such as ``2:30 PM`` or ``Fri 12:29 PM``.

    Empty when unknown or already past.
    """
    if reset_at is None or reset_at <= now:
        return ""
    local = reset_at.astimezone()
    hour = local.hour % 12 or 12
    ampm = "PM" if local.hour >= 12 else "AM"
    clock = f"{hour}:{local.minute:02d} {ampm}"
    return f"{local.strftime('%a')} {clock}" if with_day else clock


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def project_path(cwd: str, levels: int = 1) -> str:
    """Last ``levels`` segments of ``cwd``, joined with ``/``."""
    segments = [s for s in cwd.replace("\\", "/").split("/") if s]
    if not segments:
        return "/"
    return "/".join(segments[-levels:])
