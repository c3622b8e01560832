"""The session state reducer.

``reduce(state, event)`` is the only place session state changes. It does
no I/O and reads no clock: time comes from ``event.ts``, which the event
parser (or the store, for internal events) has already filled in.

When an event changes nothing, the very same state object is returned so
callers can skip notifying subscribers with ``new is old``.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import replace

from sessionhud.events import EventKind, HudEvent
from sessionhud.state.models import ContextSnapshot, SessionState
from sessionhud.stream.source import ConnectionStatus
from sessionhud.tracking import (
    TODO_TOOL,
    Ledger,
    complete_latest_agent,
    extract_user_text,
    is_uninformative,
    record_tool_result,
    record_tool_use,
)

Handler = Callable[[SessionState, HudEvent], SessionState]


def _ledger(state: SessionState) -> Ledger:
    return Ledger(
        tools={t.id: t for t in state.tools},
        agents={a.id: a for a in state.agents},
        todos=list(state.todos),
    )


def _with_ledger(state: SessionState, ledger: Ledger) -> SessionState:
    return replace(
        state,
        tools=tuple(ledger.trimmed_tools()),
        agents=tuple(ledger.trimmed_agents()),
        todos=tuple(ledger.todos),
    )


def _activate(state: SessionState, event: HudEvent) -> SessionState:
    """Mark the session busy, starting its clock if it has none yet."""
    if not state.is_idle and state.session_start is not None:
        return state
    return replace(
        state,
        is_idle=False,
        session_start=state.session_start or event.ts,
        session_id=state.session_id or event.session,
    )


def _pre_tool_use(state: SessionState, event: HudEvent) -> SessionState:
    if not event.tool:
        return state
    tool_id = event.tool_use_id or ""
    ledger = _ledger(state)
    # A todo update needs no correlation id; every other start does
    if tool_id or event.tool == TODO_TOOL:
        if record_tool_use(ledger, tool_id, event.tool, event.input, event.ts):
            state = _with_ledger(state, ledger)
    return _activate(state, event)


def _post_tool_use(state: SessionState, event: HudEvent) -> SessionState:
    if not event.tool_use_id:
        return state
    ledger = _ledger(state)
    if not record_tool_result(ledger, event.tool_use_id, event.response_is_error(), event.ts):
        return state
    return _with_ledger(state, ledger)


def _user_prompt_submit(state: SessionState, event: HudEvent) -> SessionState:
    text = extract_user_text(event.prompt)
    if not is_uninformative(text) and text != state.last_user_message:
        state = replace(state, last_user_message=text)
    return _activate(state, event)


def _stop(state: SessionState, event: HudEvent) -> SessionState:
    if state.is_idle:
        return state
    return replace(state, is_idle=True)


def _subagent_stop(state: SessionState, event: HudEvent) -> SessionState:
    ledger = _ledger(state)
    if event.tool_use_id and event.tool_use_id in ledger.agents:
        changed = record_tool_result(ledger, event.tool_use_id, False, event.ts)
    else:
        changed = complete_latest_agent(ledger, event.ts)
    return _with_ledger(state, ledger) if changed else state


def _pre_compact(state: SessionState, event: HudEvent) -> SessionState:
    return replace(state, compactions=state.compactions + 1)


def _session_start(state: SessionState, event: HudEvent) -> SessionState:
    return SessionState(
        connection=state.connection,
        environment=state.environment,
        usage=state.usage,
        now=state.now,
        session_id=event.session,
        session_start=event.ts,
    )


def _finite(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _context_update(state: SessionState, event: HudEvent) -> SessionState:
    context = event.context
    if not context:
        return state

    tokens = _finite(context.get("tokens"))
    window_size = _finite(context.get("windowSize"))
    percent = _finite(context.get("percent"))
    if percent is None and tokens is not None and window_size:
        percent = tokens / window_size * 100
    if percent is not None:
        percent = max(0.0, min(100.0, percent))

    return replace(
        state,
        context=ContextSnapshot(
            tokens=int(tokens) if tokens is not None else None,
            percent=percent,
            window_size=int(window_size) if window_size is not None else None,
            updated_at=event.ts,
        ),
    )


def _cost_update(state: SessionState, event: HudEvent) -> SessionState:
    increment = _finite(event.cost)
    if increment is None or increment <= 0:
        return state
    return replace(state, cost=state.cost + increment)


def _connection(state: SessionState, event: HudEvent) -> SessionState:
    status = event.payload
    if not isinstance(status, ConnectionStatus) or status is state.connection:
        return state
    return replace(state, connection=status)


def _tick(state: SessionState, event: HudEvent) -> SessionState:
    if event.ts == state.now:
        return state
    return replace(state, now=event.ts)


def _environment(state: SessionState, event: HudEvent) -> SessionState:
    if event.payload == state.environment:
        return state
    return replace(state, environment=event.payload)


def _usage(state: SessionState, event: HudEvent) -> SessionState:
    if event.payload == state.usage:
        return state
    return replace(state, usage=event.payload)


HANDLERS: dict[str, Handler] = {
    EventKind.PRE_TOOL_USE: _pre_tool_use,
    EventKind.POST_TOOL_USE: _post_tool_use,
    EventKind.USER_PROMPT_SUBMIT: _user_prompt_submit,
    EventKind.STOP: _stop,
    EventKind.SUBAGENT_STOP: _subagent_stop,
    EventKind.PRE_COMPACT: _pre_compact,
    EventKind.SESSION_START: _session_start,
    EventKind.CONTEXT_UPDATE: _context_update,
    EventKind.COST_UPDATE: _cost_update,
    EventKind.CONNECTION: _connection,
    EventKind.TICK: _tick,
    EventKind.ENVIRONMENT: _environment,
    EventKind.USAGE: _usage,
}


def reduce(state: SessionState, event: HudEvent) -> SessionState:
    """Apply one event. Unknown event kinds leave the state untouched."""
    handler = HANDLERS.get(event.event)
    if handler is None:
        return state
    return handler(state, event)
