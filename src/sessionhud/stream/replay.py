"""Synchronous in-process event source for replay and tests."""

from __future__ import annotations

from sessionhud.events import HudEvent
from sessionhud.stream.source import (
    ConnectionStatus,
    EventListener,
    StatusListener,
    Unsubscribe,
)


class ReplayEventSource:
    """Event source driven by explicit ``emit()`` calls.

    Delivery is inline: when ``emit()`` returns, every listener has seen the
    event. Status starts as ``connected`` and only changes through
    ``set_status()`` or ``close()``.
    """

    def __init__(self, path: str = "replay") -> None:
        self.path = path
        self._event_listeners: list[EventListener] = []
        self._status_listeners: list[StatusListener] = []
        self._status = ConnectionStatus.CONNECTED
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def on_event(self, listener: EventListener) -> Unsubscribe:
        self._event_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._event_listeners:
                self._event_listeners.remove(listener)

        return unsubscribe

    def on_status(self, listener: StatusListener) -> Unsubscribe:
        self._status_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._status_listeners:
                self._status_listeners.remove(listener)

        return unsubscribe

    def get_status(self) -> ConnectionStatus:
        return self._status

    def switch_channel(self, path: str) -> None:
        self.path = path

    def emit(self, event: HudEvent) -> None:
        if self._closed:
            return
        for listener in list(self._event_listeners):
            listener(event)

    def set_status(self, status: ConnectionStatus) -> None:
        """Simulate a connectivity change."""
        if self._closed or status is self._status:
            return
        self._status = status
        for listener in list(self._status_listeners):
            listener(status)

    def close(self) -> None:
        self._closed = True
        self._status = ConnectionStatus.DISCONNECTED
        self._event_listeners.clear()
        self._status_listeners.clear()

    async def wait_closed(self) -> None:
        """Nothing runs in the background; returns immediately."""
