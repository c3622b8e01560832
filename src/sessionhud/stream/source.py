"""The event source interface consumed by the session store."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Protocol

from sessionhud.events import HudEvent


class ConnectionStatus(Enum):
    """Connectivity of an event source."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


EventListener = Callable[[HudEvent], None]
StatusListener = Callable[[ConnectionStatus], None]
Unsubscribe = Callable[[], None]


class EventSource(Protocol):
    """Anything that can feed lifecycle events to a SessionStore.

    Production uses EventStreamReader over a named pipe; replay and tests
    use ReplayEventSource, which delivers synchronously.
    """

    def on_event(self, listener: EventListener) -> Unsubscribe:
        """Register a listener for parsed events, in arrival order."""
        ...

    def on_status(self, listener: StatusListener) -> Unsubscribe:
        """Register a listener for connection status changes."""
        ...

    def get_status(self) -> ConnectionStatus:
        """Current connection status."""
        ...

    def switch_channel(self, path: str) -> None:
        """Move to another pipe path (session handoff)."""
        ...

    def close(self) -> None:
        """Stop for good and detach all listeners."""
        ...

    async def wait_closed(self) -> None:
        """Wait until everything started by the source has finished after close()."""
        ...
