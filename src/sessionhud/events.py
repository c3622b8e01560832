"""Lifecycle events delivered over the event pipe.

Each line on the pipe is one JSON object, e.g.::

    {"event": "PreToolUse", "session": "abc", "ts": 1735725600.5,
     "tool": "Read", "toolUseId": "toolu_1", "input": {"file_path": "a.py"}}

The parser stamps a receipt time on events that arrive without ``ts`` so
that the reducer never has to consult a clock.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sessionhud.models import parse_timestamp


class EventKind:
    """Event names understood by the reducer.

    Plain string constants rather than an Enum: unknown names coming off the
    wire must survive parsing untouched so newer producers cannot break
    older consumers.
    """

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    PRE_COMPACT = "PreCompact"
    SESSION_START = "SessionStart"
    CONTEXT_UPDATE = "ContextUpdate"
    COST_UPDATE = "CostUpdate"

    # Produced inside the process by the session store, never read from the pipe
    CONNECTION = "hud.connection"
    TICK = "hud.tick"
    ENVIRONMENT = "hud.environment"
    USAGE = "hud.usage"


@dataclass(frozen=True)
class HudEvent:
    """A parsed lifecycle event."""

    event: str
    ts: datetime
    session: str | None = None
    tool: str | None = None
    tool_use_id: str | None = None
    input: dict[str, Any] | None = None
    response: Any = None
    is_error: bool = False
    prompt: str | None = None
    context: dict[str, Any] | None = None
    cost: float | None = None
    # Structured values for internal events (connection status, usage data, ...)
    payload: Any = None

    def response_is_error(self) -> bool:
        """Whether the tool result reports a failure."""
        if self.is_error:
            return True
        if isinstance(self.response, dict):
            return bool(self.response.get("is_error") or self.response.get("error"))
        return False

    @classmethod
    def from_dict(cls, data: dict[str, Any], received_at: datetime) -> HudEvent | None:
        """Build an event from its wire form, None when it has no kind."""
        kind = data.get("event")
        if not isinstance(kind, str) or not kind:
            return None

        tool_input = data.get("input")
        context = data.get("context")
        cost = data.get("cost")
        prompt = data.get("prompt")
        tool = data.get("tool")
        tool_use_id = data.get("toolUseId")
        session = data.get("session")

        return cls(
            event=kind,
            ts=parse_timestamp(data.get("ts")) or received_at,
            session=session if isinstance(session, str) else None,
            tool=tool if isinstance(tool, str) else None,
            tool_use_id=str(tool_use_id) if tool_use_id not in (None, "") else None,
            input=tool_input if isinstance(tool_input, dict) else None,
            response=data.get("response"),
            is_error=data.get("isError") is True,
            prompt=prompt if isinstance(prompt, str) else None,
            context=context if isinstance(context, dict) else None,
            cost=float(cost) if isinstance(cost, (int, float)) and not isinstance(cost, bool) else None,
            payload=data.get("payload"),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_hud_event(
    line: str | bytes,
    clock: Callable[[], datetime] = _utcnow,
) -> HudEvent | None:
    """Parse one pipe line into an event, None for anything malformed."""
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return HudEvent.from_dict(data, received_at=clock())


def internal_event(kind: str, ts: datetime, payload: Any = None) -> HudEvent:
    """Build an event originating inside the process (timers, connection)."""
    return HudEvent(event=kind, ts=ts, payload=payload)
