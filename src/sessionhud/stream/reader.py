"""Event stream reader over a named pipe.

Reads newline-delimited JSON events from a FIFO written by the assistant's
hooks. The pipe may not exist yet, may have no writer, and is closed by the
writer whenever the assistant restarts, so the reader runs a reconnect loop:

    disconnected -> connecting -> connected -> (EOF/error) -> reconnecting
                        ^                                        |
                        +--------------- after backoff ----------+

Each valid line is handed to listeners as soon as it is read. Malformed
lines are dropped without touching the connection.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import stat
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sessionhud.events import HudEvent, parse_hud_event
from sessionhud.logging import get_logger
from sessionhud.stream.backoff import Backoff
from sessionhud.stream.source import (
    ConnectionStatus,
    EventListener,
    StatusListener,
    Unsubscribe,
)

log = get_logger("stream")

# Largest event line kept; tool inputs such as file contents can be big
LINE_LIMIT = 1024 * 1024


@dataclass
class PipeConnection:
    """An open pipe: the stream to read and the transport that owns the fd."""

    reader: asyncio.StreamReader
    transport: asyncio.BaseTransport | None = None

    def close(self) -> None:
        if self.transport is not None and not self.transport.is_closing():
            self.transport.close()


Opener = Callable[[str], Awaitable[PipeConnection]]


async def open_fifo(path: str) -> PipeConnection:
    """Open a named pipe for non-blocking reads on the running loop.

    Raises:
        FileNotFoundError: The pipe does not exist.
        OSError: The path is not a FIFO or cannot be opened.
    """
    if not stat.S_ISFIFO(os.stat(path).st_mode):
        raise OSError(f"not a named pipe: {path}")

    loop = asyncio.get_running_loop()
    fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
    pipe = os.fdopen(fd, "rb", buffering=0)

    reader = asyncio.StreamReader(limit=LINE_LIMIT)
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        transport, _ = await loop.connect_read_pipe(lambda: protocol, pipe)
    except Exception:
        pipe.close()
        raise
    return PipeConnection(reader=reader, transport=transport)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventStreamReader:
    """Reconnecting reader of HUD events from a named pipe.

    Must be created inside a running event loop; the read loop starts
    immediately.

    Example:
        reader = EventStreamReader("/home/me/.claude/hud/events.fifo")
        reader.on_event(lambda event: print(event.event))
        ...
        reader.close()
    """

    def __init__(
        self,
        path: str,
        backoff: Backoff | None = None,
        opener: Opener = open_fifo,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._path = path
        self._backoff = backoff or Backoff()
        self._opener = opener
        self._clock = clock

        self._status = ConnectionStatus.DISCONNECTED
        self._event_listeners: list[EventListener] = []
        self._status_listeners: list[StatusListener] = []

        self._closed = False
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task[None] | None = asyncio.get_running_loop().create_task(
            self._run()
        )

    @property
    def path(self) -> str:
        return self._path

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    def get_status(self) -> ConnectionStatus:
        return self._status

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

    def switch_channel(self, path: str) -> None:
        """Reconnect to a different pipe right away (no backoff wait)."""
        if self._closed or path == self._path:
            return
        log.info("Switching event pipe %s -> %s", self._path, path)
        self._path = path
        self._backoff.reset()
        self._wakeup.set()

    def close(self) -> None:
        """Stop reading. Terminal: no reconnects, no further notifications."""
        if self._closed:
            return
        self._closed = True
        self._event_listeners.clear()
        self._status_listeners.clear()
        self._status = ConnectionStatus.DISCONNECTED
        if self._task is not None:
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Await the end of the read loop after close()."""
        task = self._task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _set_status(self, status: ConnectionStatus) -> None:
        if self._closed or status is self._status:
            return
        self._status = status
        for listener in list(self._status_listeners):
            try:
                listener(status)
            except Exception as e:
                log.warning("Status listener error: %s", e)

    def _dispatch(self, event: HudEvent) -> None:
        for listener in list(self._event_listeners):
            if self._closed:
                return
            try:
                listener(event)
            except Exception as e:
                log.warning("Event listener error on %s: %s", event.event, e)

    async def _run(self) -> None:
        while not self._closed:
            self._wakeup.clear()
            self._set_status(ConnectionStatus.CONNECTING)
            path = self._path
            connection: PipeConnection | None = None
            connected_at: float | None = None
            try:
                connection = await self._opener(path)
                connected_at = time.monotonic()
                self._set_status(ConnectionStatus.CONNECTED)
                log.debug("Connected to event pipe %s", path)
                await self._read_until_eof(connection.reader, path)
            except asyncio.CancelledError:
                raise
            except OSError as e:
                log.debug("Event pipe %s unavailable: %s", path, e)
            except Exception as e:
                log.debug("Event pipe %s failed: %s", path, e)
            finally:
                if connection is not None:
                    connection.close()

            if self._closed:
                break
            if connected_at is not None:
                self._backoff.connected_for(time.monotonic() - connected_at)

            self._set_status(ConnectionStatus.RECONNECTING)
            if self._path != path:
                continue
            await self._sleep(self._backoff.next_delay())

    async def _read_until_eof(self, reader: asyncio.StreamReader, path: str) -> None:
        while not self._closed and self._path == path:
            read = asyncio.ensure_future(reader.readline())
            switched = asyncio.ensure_future(self._wakeup.wait())
            try:
                done, _ = await asyncio.wait(
                    {read, switched}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                for fut in (read, switched):
                    if not fut.done():
                        fut.cancel()
            if read not in done:
                return
            try:
                line = read.result()
            except ValueError as e:
                # readline() has already discarded the oversized line
                log.debug("Dropping oversized event line: %s", e)
                continue
            if not line:
                log.debug("Event pipe %s reached EOF", path)
                return
            event = parse_hud_event(line, clock=self._clock)
            if event is None:
                log.debug("Dropping malformed event line")
                continue
            self._dispatch(event)

    async def _sleep(self, delay: float) -> None:
        """Wait out the backoff, cut short by switch_channel()."""
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
