"""session-hud: live heads-up status line for coding-assistant sessions."""

__version__ = "0.1.0"

# Public API
from sessionhud.config import Config, get_config, load_config
from sessionhud.events import EventKind, HudEvent, parse_hud_event
from sessionhud.models import (
    AgentEntry,
    AgentStatus,
    TodoItem,
    TodoStatus,
    ToolEntry,
    ToolStatus,
    TranscriptData,
)
from sessionhud.state import SessionState, SessionStore, StoreOptions, reduce
from sessionhud.stdin import StdinPayload, read_stdin
from sessionhud.stream import ConnectionStatus, EventStreamReader, ReplayEventSource
from sessionhud.transcript import TranscriptAccumulator, parse_transcript
from sessionhud.usage import UsageCache, UsageData, UsageDeps, get_usage

__all__ = [
    # Events and state
    "EventKind",
    "HudEvent",
    "parse_hud_event",
    "SessionState",
    "SessionStore",
    "StoreOptions",
    "reduce",
    # Event sources
    "ConnectionStatus",
    "EventStreamReader",
    "ReplayEventSource",
    # Transcript
    "TranscriptAccumulator",
    "TranscriptData",
    "parse_transcript",
    "AgentEntry",
    "AgentStatus",
    "TodoItem",
    "TodoStatus",
    "ToolEntry",
    "ToolStatus",
    # Usage
    "UsageCache",
    "UsageData",
    "UsageDeps",
    "get_usage",
    # Stdin
    "StdinPayload",
    "read_stdin",
    # Config
    "Config",
    "get_config",
    "load_config",
]
