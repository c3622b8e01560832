"""One-shot statusline rendering and the watch-mode view."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import IO

from rich.console import Console
from rich.text import Text

from sessionhud.config.schema import Config
from sessionhud.environment import EnvironmentCounts, scan_environment
from sessionhud.git import get_git_status
from sessionhud.logging import get_logger
from sessionhud.models import TranscriptData
from sessionhud.render.format import format_elapsed
from sessionhud.render.lines import (
    RenderContext,
    agents_line,
    last_message_line,
    session_line,
    todos_line,
    tools_line,
)
from sessionhud.state.models import SessionState
from sessionhud.stdin import StdinPayload
from sessionhud.transcript import parse_transcript
from sessionhud.usage.fetcher import UsageDeps, get_usage

log = get_logger("render")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_ansi(line: Text) -> str:
    """Export a rich Text as a single ANSI-coloured string."""
    console = Console(force_terminal=True, color_system="256", width=10_000, highlight=False)
    with console.capture() as capture:
        console.print(line, end="", soft_wrap=True)
    return capture.get()


def render_lines(ctx: RenderContext) -> list[Text]:
    display = ctx.config.display
    lines: list[Text | None] = [session_line(ctx)]
    if display.show_tools:
        lines.append(tools_line(ctx.transcript.tools))
    if display.show_agents:
        lines.append(agents_line(ctx.transcript.agents, ctx.now))
    if display.show_todos:
        lines.append(todos_line(ctx.transcript.todos))
    if display.show_last_message:
        lines.append(last_message_line(ctx.transcript.last_user_message))
    return [line for line in lines if line is not None]


def fallback_line(stdin: StdinPayload | None) -> str:
    """Minimal output that needs nothing but the stdin payload."""
    if stdin is None:
        return "[session-hud] waiting for session data"
    return f"[{stdin.model_name}] {stdin.context_percent()}%"


async def build_context(
    stdin: StdinPayload,
    config: Config,
    home: Path | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> RenderContext:
    """Gather transcript, git, usage and environment data concurrently."""
    home = home or Path.home()

    async def usage():
        if not (config.usage.enabled and config.display.show_usage):
            return None
        deps = UsageDeps.from_config(config.usage)
        deps.home_dir = lambda: home
        deps.now = clock
        return await get_usage(deps)

    async def git():
        if not config.git.enabled:
            return None
        return await get_git_status(stdin.cwd)

    async def environment() -> EnvironmentCounts | None:
        if not config.display.show_config_counts:
            return None
        return await asyncio.to_thread(scan_environment, stdin.cwd, home)

    transcript, git_status, usage_data, counts = await asyncio.gather(
        asyncio.to_thread(parse_transcript, stdin.transcript_path, clock),
        git(),
        usage(),
        environment(),
        return_exceptions=True,
    )
    for name, result in (
        ("transcript", transcript),
        ("git", git_status),
        ("usage", usage_data),
        ("environment", counts),
    ):
        if isinstance(result, BaseException):
            log.debug("%s collection failed: %s", name, result)

    return RenderContext(
        stdin=stdin,
        now=clock(),
        config=config,
        transcript=transcript if isinstance(transcript, TranscriptData) else TranscriptData(),
        git=None if isinstance(git_status, BaseException) else git_status,
        usage=None if isinstance(usage_data, BaseException) else usage_data,
        environment=None if isinstance(counts, BaseException) else counts,
    )


async def run_statusline(
    stdin: StdinPayload | None,
    config: Config,
    out: IO[str],
    home: Path | None = None,
) -> int:
    """Render the statusline to ``out``. Always writes something."""
    if stdin is None:
        out.write(fallback_line(None) + "\n")
        return 0
    try:
        ctx = await build_context(stdin, config, home)
        lines = [to_ansi(line) for line in render_lines(ctx)]
    except Exception as e:
        log.warning("Statusline render failed: %s", e)
        lines = [fallback_line(stdin)]
    for line in lines:
        out.write(line + "\n")
    out.flush()
    return 0


_CONNECTION_STYLES = {
    "connected": "green",
    "connecting": "yellow",
    "reconnecting": "yellow",
    "disconnected": "red",
}


def state_lines(state: SessionState, config: Config) -> list[Text]:
    """Watch-mode view of the live session state."""
    status = state.connection.value
    header = Text.assemble(("● ", _CONNECTION_STYLES.get(status, "dim")), (status, "dim"))
    if state.context_percent is not None:
        header.append(f" | ctx {state.context_percent:.0f}%")
    header.append(f" | ${state.cost:.2f}")
    if state.compactions:
        header.append(f" | compacted ×{state.compactions}", style="dim")
    duration = state.session_duration()
    if duration is not None:
        header.append(f" | ⏱  {format_elapsed(duration)}", style="dim")
    header.append(" | idle" if state.is_idle else " | active", style="dim")

    display = config.display
    now = state.now or _utcnow()
    lines: list[Text | None] = [header]
    if display.show_tools:
        lines.append(tools_line(state.tools))
    if display.show_agents:
        lines.append(agents_line(state.agents, now))
    if display.show_todos:
        lines.append(todos_line(state.todos))
    if display.show_last_message:
        lines.append(last_message_line(state.last_user_message))
    return [line for line in lines if line is not None]
