"""Rendering of session data as coloured terminal lines."""

from sessionhud.render.lines import RenderContext, session_line
from sessionhud.render.statusline import (
    build_context,
    fallback_line,
    render_lines,
    run_statusline,
    state_lines,
    to_ansi,
)

__all__ = [
    "RenderContext",
    "build_context",
    "fallback_line",
    "render_lines",
    "run_statusline",
    "session_line",
    "state_lines",
    "to_ansi",
]
