"""Event ingestion: the pipe reader and its replay counterpart."""

from sessionhud.stream.backoff import Backoff
from sessionhud.stream.reader import EventStreamReader, PipeConnection, open_fifo
from sessionhud.stream.replay import ReplayEventSource
from sessionhud.stream.source import ConnectionStatus, EventSource

__all__ = [
    "Backoff",
    "ConnectionStatus",
    "EventSource",
    "EventStreamReader",
    "PipeConnection",
    "ReplayEventSource",
    "open_fifo",
]
