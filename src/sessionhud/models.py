"""Session activity records shared by the transcript reader and the reducer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ToolStatus(Enum):
    """Lifecycle of a tool invocation."""

    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class AgentStatus(Enum):
    """Lifecycle of a sub-agent."""

    RUNNING = "running"
    COMPLETED = "completed"


class TodoStatus(Enum):
    """Status of a todo list item as reported by the assistant."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ToolEntry:
    """A tool invocation, keyed by its correlation id."""

    id: str
    name: str
    start_time: datetime
    target: str | None = None
    status: ToolStatus = ToolStatus.RUNNING
    end_time: datetime | None = None

    @property
    def duration(self) -> float | None:
        """Seconds between start and end, None while running."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


@dataclass(frozen=True)
class AgentEntry:
    """A sub-agent spawned by a Task tool invocation (same correlation id)."""

    id: str
    type: str
    start_time: datetime
    model: str | None = None
    description: str | None = None
    status: AgentStatus = AgentStatus.RUNNING
    end_time: datetime | None = None


@dataclass(frozen=True)
class TodoItem:
    content: str
    status: TodoStatus = TodoStatus.PENDING


@dataclass
class TranscriptData:
    """Snapshot reconstructed from a transcript file."""

    tools: list[ToolEntry] = field(default_factory=list)
    agents: list[AgentEntry] = field(default_factory=list)
    todos: list[TodoItem] = field(default_factory=list)
    session_start: datetime | None = None
    last_user_message: str | None = None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or epoch number into an aware datetime.

    Numbers above 1e11 are taken as milliseconds, smaller ones as seconds.
    Anything unparseable returns None rather than raising.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = value / 1000 if abs(value) > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
