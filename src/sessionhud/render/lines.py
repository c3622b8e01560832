"""Line renderers for the statusline and the watch view.

Each renderer returns a rich ``Text`` or None when it has nothing to show.
They read only the values passed in; fetching happens elsewhere.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from rich.text import Text

from sessionhud.config.schema import Config
from sessionhud.environment import EnvironmentCounts
from sessionhud.git import GitStatus
from sessionhud.models import (
    AgentEntry,
    AgentStatus,
    TodoItem,
    TodoStatus,
    ToolEntry,
    ToolStatus,
    TranscriptData,
)
from sessionhud.render.format import (
    context_bar,
    context_style,
    format_elapsed,
    format_percent,
    format_reset_clock,
    format_short_elapsed,
    format_tokens,
    project_path,
    truncate,
)
from sessionhud.stdin import StdinPayload
from sessionhud.usage.models import (
    ModelQuota,
    UsageData,
    is_limit_reached,
    most_restrictive_quota,
)

SEPARATOR = " | "
MAX_RUNNING_TOOLS = 2
MAX_COMPLETED_NAMES = 4
MAX_AGENTS_SHOWN = 3
MESSAGE_MAX_LEN = 80
TODO_MAX_LEN = 50
HIGH_CONTEXT_PERCENT = 85


@dataclass
class RenderContext:
    """Everything the one-shot statusline renders from."""

    stdin: StdinPayload
    now: datetime
    config: Config = field(default_factory=Config)
    transcript: TranscriptData = field(default_factory=TranscriptData)
    git: GitStatus | None = None
    usage: UsageData | None = None
    environment: EnvironmentCounts | None = None

    @property
    def session_duration(self) -> str | None:
        start = self.transcript.session_start
        if start is None:
            return None
        return format_elapsed(max(0.0, (self.now - start).total_seconds()))


def _join(parts: Sequence[Text], separator: str = SEPARATOR) -> Text:
    return Text(separator).join(parts)


def _git_part(git: GitStatus, config: Config) -> Text:
    inner = git.branch
    if config.git.show_dirty and git.is_dirty:
        inner += "*"
    if config.git.show_ahead_behind:
        if git.ahead > 0:
            inner += f" ↑{git.ahead}"
        if git.behind > 0:
            inner += f" ↓{git.behind}"
    return Text.assemble(("git:(", "magenta"), (inner, "cyan"), (")", "magenta"))


def _environment_parts(counts: EnvironmentCounts) -> list[Text]:
    parts = []
    for count, label in (
        (counts.claude_md, "CLAUDE.md"),
        (counts.rules, "rules"),
        (counts.mcp_servers, "MCPs"),
        (counts.hooks, "hooks"),
    ):
        if count > 0:
            parts.append(Text(f"{count} {label}", style="dim"))
    return parts


def _model_quota_part(quota: ModelQuota) -> Text:
    utilization = quota.utilization or 0
    short_name = quota.display_name.replace("Claude ", "").replace(" ", "", 1)[:8]
    part = Text(f"{short_name}: {utilization}%", style=context_style(utilization))
    if quota.weekly_hours_used is not None and quota.weekly_hours_limit is not None:
        part.append(
            f" ({quota.weekly_hours_used:g}/{quota.weekly_hours_limit:g}h/wk)", style="dim"
        )
    return part


def usage_parts(usage: UsageData, now: datetime, seven_day_threshold: int = 0) -> list[Text]:
    """Rate-limit windows, plan tier, hot model quota and compaction point.

    The seven-day window is shown at or above ``seven_day_threshold``, and
    always once a limit is hit.
    """
    if usage.plan_name is None:
        return []
    if usage.api_unavailable:
        return [Text("usage: ⚠", style="yellow")]

    parts: list[Text] = []
    seven_day_reset = format_reset_clock(usage.seven_day_reset_at, now, with_day=True)

    def seven_day() -> Text:
        text = Text("7d: ").append_text(format_percent(usage.seven_day))
        if seven_day_reset:
            text.append(f" (Resets {seven_day_reset})")
        return text

    if is_limit_reached(usage):
        warning = Text("⚠ 5h limit", style="red")
        if usage.five_hour == 100 and usage.five_hour_reset_in:
            reset_clock = format_reset_clock(usage.five_hour_reset_at, now)
            detail = usage.five_hour_reset_in
            if reset_clock:
                detail += f", Resets {reset_clock}"
            warning.append(f" ({detail})", style="red")
        if usage.seven_day is not None:
            warning = _join([warning, seven_day()])
        parts.append(warning)
    else:
        five_hour = Text("5h: ").append_text(format_percent(usage.five_hour))
        if usage.five_hour_reset_in:
            five_hour.append(f" ({usage.five_hour_reset_in})")
        if usage.seven_day is not None and usage.seven_day >= seven_day_threshold:
            five_hour = _join([five_hour, seven_day()])
        parts.append(five_hour)

    tier = usage.plan_tier
    if tier is not None and tier.tier:
        text = Text(tier.tier, style="blue")
        if tier.tokens_per_window:
            text.append(f" {format_tokens(tier.tokens_per_window)}/win", style="dim")
        parts.append(text)

    quota = most_restrictive_quota(usage)
    if quota is not None and quota.utilization is not None and quota.utilization >= 50:
        parts.append(_model_quota_part(quota))

    compaction = usage.compaction
    if compaction is not None and compaction.is_configured and compaction.buffer_percent != 80:
        parts.append(Text(f"compact@{compaction.buffer_percent}%", style="dim"))

    return parts


def display_percent(stdin: StdinPayload, config: Config) -> int:
    """Context percentage to show.

    A host-reported percentage is shown as is. A token-derived one includes
    the autocompact reserve unless that is disabled.
    """
    if stdin.used_percentage is None and config.display.autocompact_buffer == "enabled":
        return stdin.buffered_percent()
    return stdin.context_percent()


def session_line(ctx: RenderContext) -> Text:
    """``[Model | Plan] ██░░ 42% 84k/200k | project git:(main*) | ...``"""
    display = ctx.config.display
    stdin = ctx.stdin
    percent = display_percent(stdin, ctx.config)
    usage = ctx.usage if display.show_usage else None

    head = Text()
    if display.show_model:
        label = stdin.model_name
        if usage is not None and usage.plan_name:
            label = f"{label} | {usage.plan_name}"
        head.append(f"[{label}]", style="bold cyan")
        head.append(" ")
    if display.show_context_bar:
        head.append_text(context_bar(percent))
        head.append(" ")
    style = context_style(percent)
    if display.context_value == "tokens":
        size = stdin.context_window_size or 0
        head.append(f"{format_tokens(stdin.used_tokens())}/{format_tokens(size)}", style=style)
    else:
        head.append(f"{percent}%", style=style)
    parts = [head]

    if stdin.cwd:
        location = Text(project_path(stdin.cwd, display.path_levels), style="yellow")
        if ctx.config.git.enabled and ctx.git is not None:
            location.append(" ")
            location.append_text(_git_part(ctx.git, ctx.config))
        parts.append(location)

    if display.show_config_counts and ctx.environment is not None:
        parts.extend(_environment_parts(ctx.environment))

    if usage is not None and (usage.five_hour or 0) >= display.usage_threshold:
        parts.extend(usage_parts(usage, ctx.now, display.seven_day_threshold))

    duration = ctx.session_duration
    if display.show_duration and duration:
        parts.append(Text(f"⏱  {duration}", style="dim"))

    line = _join(parts)

    usage_block = stdin.current_usage
    if percent >= HIGH_CONTEXT_PERCENT and usage_block.context_tokens:
        cache = usage_block.cache_creation_input_tokens + usage_block.cache_read_input_tokens
        line.append(
            f" (in: {format_tokens(usage_block.input_tokens)}, cache: {format_tokens(cache)})",
            style="dim",
        )
    return line


def tools_line(tools: Sequence[ToolEntry]) -> Text | None:
    """Running tools with targets, then completed counts by tool name."""
    if not tools:
        return None
    parts: list[Text] = []

    running = [t for t in tools if t.status is ToolStatus.RUNNING][-MAX_RUNNING_TOOLS:]
    for tool in running:
        text = Text.assemble(("◐ ", "yellow"), (tool.name, "cyan"))
        if tool.target:
            text.append(f": {tool.target}", style="dim")
        parts.append(text)

    finished = Counter(t.name for t in tools if t.status is not ToolStatus.RUNNING)
    for name, count in finished.most_common(MAX_COMPLETED_NAMES):
        parts.append(Text.assemble(("✓ ", "green"), name, (f" ×{count}", "dim")))

    return _join(parts) if parts else None


def agents_line(agents: Sequence[AgentEntry], now: datetime) -> Text | None:
    """Running agents plus the most recently finished ones."""
    running = [a for a in agents if a.status is AgentStatus.RUNNING]
    finished = [a for a in agents if a.status is AgentStatus.COMPLETED][-2:]
    shown = (running + finished)[-MAX_AGENTS_SHOWN:]
    if not shown:
        return None

    lines = []
    for agent in shown:
        done = agent.status is AgentStatus.COMPLETED
        text = Text.assemble(("✓ " if done else "◐ ", "green" if done else "yellow"))
        text.append(agent.type, style="magenta")
        if agent.model:
            text.append(f" [{agent.model}]", style="dim")
        if agent.description:
            text.append(f": {truncate(agent.description, 40)}", style="dim")
        end = agent.end_time or now
        text.append(
            f" ({format_short_elapsed((end - agent.start_time).total_seconds())})", style="dim"
        )
        lines.append(text)
    return Text("\n").join(lines)


def todos_line(todos: Sequence[TodoItem]) -> Text | None:
    """Current todo and overall progress."""
    if not todos:
        return None
    done = sum(1 for t in todos if t.status is TodoStatus.COMPLETED)
    progress = f"({done}/{len(todos)})"

    current = next((t for t in todos if t.status is TodoStatus.IN_PROGRESS), None)
    if current is not None:
        return Text.assemble(
            ("▸ ", "yellow"), truncate(current.content, TODO_MAX_LEN), " ", (progress, "dim")
        )
    if done == len(todos):
        return Text.assemble(("✓ ", "green"), "All todos complete ", (progress, "dim"))
    return None


def last_message_line(message: str | None) -> Text | None:
    if not message:
        return None
    return Text(f"💬 {truncate(message, MESSAGE_MAX_LEN)}", style="dim")
