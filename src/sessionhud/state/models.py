"""Immutable session state produced by the reducer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sessionhud.environment import EnvironmentCounts
from sessionhud.models import AgentEntry, TodoItem, ToolEntry, ToolStatus
from sessionhud.stream.source import ConnectionStatus
from sessionhud.usage.models import UsageData


@dataclass(frozen=True)
class ContextSnapshot:
    """Context window usage as last reported by the host."""

    tokens: int | None = None
    percent: float | None = None  # 0..100
    window_size: int | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SessionState:
    """Everything known about the live session at one instant.

    A new instance is produced for every change; holders of an old
    reference keep seeing a consistent snapshot.
    """

    tools: tuple[ToolEntry, ...] = ()
    agents: tuple[AgentEntry, ...] = ()
    todos: tuple[TodoItem, ...] = ()
    context: ContextSnapshot | None = None
    cost: float = 0.0  # USD, never decreases within a session

    connection: ConnectionStatus = ConnectionStatus.DISCONNECTED
    session_id: str | None = None
    session_start: datetime | None = None
    last_user_message: str | None = None
    is_idle: bool = True
    compactions: int = 0

    now: datetime | None = None  # Last clock tick
    environment: EnvironmentCounts | None = None
    usage: UsageData | None = None

    @property
    def running_tools(self) -> list[ToolEntry]:
        return [t for t in self.tools if t.status is ToolStatus.RUNNING]

    @property
    def context_percent(self) -> float | None:
        return self.context.percent if self.context else None

    def session_duration(self) -> float | None:
        """Seconds since session start as of the last tick."""
        if self.session_start is None or self.now is None:
            return None
        return max(0.0, (self.now - self.session_start).total_seconds())
