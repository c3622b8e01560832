"""Tests for the event stream reader, backoff and replay source."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from sessionhud.events import HudEvent
from sessionhud.stream import (
    Backoff,
    ConnectionStatus,
    EventStreamReader,
    PipeConnection,
    ReplayEventSource,
)

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until ``predicate()`` holds, failing the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class FakePipes:
    """Opener handing out in-memory stream readers.

    Paths listed in ``missing`` fail like a pipe that does not exist.
    """

    def __init__(self, missing: set[str] | None = None) -> None:
        self.missing = missing or set()
        self.opened: list[str] = []
        self.readers: list[asyncio.StreamReader] = []
        self.attempts = 0

    async def __call__(self, path: str) -> PipeConnection:
        self.attempts += 1
        if path in self.missing:
            raise FileNotFoundError(path)
        reader = asyncio.StreamReader()
        self.opened.append(path)
        self.readers.append(reader)
        return PipeConnection(reader=reader)

    @property
    def current(self) -> asyncio.StreamReader:
        return self.readers[-1]


class TestBackoff:
    """Reconnect delay policy."""

    def test_doubles_up_to_maximum(self) -> None:
        backoff = Backoff(minimum=0.5, maximum=3.0)
        assert [backoff.next_delay() for _ in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]

    def test_stable_connection_resets(self) -> None:
        backoff = Backoff(minimum=0.5, maximum=30.0, stable_after=5.0)
        backoff.next_delay()
        backoff.next_delay()
        backoff.connected_for(1.0)
        assert backoff.current == 2.0
        backoff.connected_for(5.0)
        assert backoff.current == 0.5

    def test_minimum_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Backoff(minimum=0)


class TestEventStreamReader:
    """Reconnecting pipe reader."""

    async def test_delivers_events_in_order_and_drops_malformed(self) -> None:
        pipes = FakePipes()
        reader = EventStreamReader("/tmp/hud.fifo", backoff=Backoff(minimum=0.01), opener=pipes)
        statuses: list[ConnectionStatus] = []
        events: list[HudEvent] = []
        reader.on_status(statuses.append)
        reader.on_event(events.append)
        try:
            await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED)
            pipes.current.feed_data(b'{"event": "PreToolUse", "tool": "Read", "toolUseId": "1"}\n')
            pipes.current.feed_data(b"{garbage\n")
            pipes.current.feed_data(b'{"event": "PostToolUse", "toolUseId": "1"}\n')
            await wait_until(lambda: len(events) == 2)

            assert [e.event for e in events] == ["PreToolUse", "PostToolUse"]
            assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
            assert reader.get_status() is ConnectionStatus.CONNECTED
        finally:
            reader.close()
            await reader.wait_closed()

    async def test_oversized_line_dropped_without_reconnect(self) -> None:
        pipes = FakePipes()
        reader = EventStreamReader("/tmp/hud.fifo", backoff=Backoff(minimum=0.01), opener=pipes)
        statuses: list[ConnectionStatus] = []
        events: list[HudEvent] = []
        reader.on_status(statuses.append)
        reader.on_event(events.append)
        try:
            await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED)
            content = "x" * 70_000
            pipes.current.feed_data(
                b'{"event": "PreToolUse", "tool": "Write", "toolUseId": "1", '
                b'"input": {"content": "' + content.encode() + b'"}}\n'
                b'{"event": "Stop"}\n'
            )
            await wait_until(lambda: len(events) == 1)

            assert events[0].event == "Stop"
            assert len(pipes.readers) == 1
            assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        finally:
            reader.close()
            await reader.wait_closed()

    async def test_reconnects_after_eof(self) -> None:
        pipes = FakePipes()
        reader = EventStreamReader("/tmp/hud.fifo", backoff=Backoff(minimum=0.01), opener=pipes)
        statuses: list[ConnectionStatus] = []
        reader.on_status(statuses.append)
        try:
            await wait_until(lambda: len(pipes.readers) == 1)
            pipes.current.feed_eof()
            await wait_until(lambda: len(pipes.readers) == 2)
            await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED)

            assert statuses == [
                ConnectionStatus.CONNECTING,
                ConnectionStatus.CONNECTED,
                ConnectionStatus.RECONNECTING,
                ConnectionStatus.CONNECTING,
                ConnectionStatus.CONNECTED,
            ]
        finally:
            reader.close()
            await reader.wait_closed()

    async def test_missing_pipe_backs_off_exponentially(self) -> None:
        pipes = FakePipes(missing={"/tmp/absent"})
        backoff = Backoff(minimum=0.01, maximum=1.0)
        reader = EventStreamReader("/tmp/absent", backoff=backoff, opener=pipes)
        try:
            await wait_until(lambda: pipes.attempts >= 3)
            assert backoff.current >= 0.04
            assert reader.get_status() in (
                ConnectionStatus.CONNECTING,
                ConnectionStatus.RECONNECTING,
            )
        finally:
            reader.close()
            await reader.wait_closed()

    async def test_close_is_terminal(self) -> None:
        pipes = FakePipes()
        reader = EventStreamReader("/tmp/hud.fifo", backoff=Backoff(minimum=0.01), opener=pipes)
        events: list[HudEvent] = []
        reader.on_event(events.append)
        await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED)

        reader.close()
        await reader.wait_closed()
        attempts = pipes.attempts
        pipes.current.feed_data(b'{"event": "Stop"}\n')
        await asyncio.sleep(0.05)

        assert events == []
        assert pipes.attempts == attempts
        assert reader.get_status() is ConnectionStatus.DISCONNECTED
        reader.close()

    async def test_switch_channel_skips_backoff(self) -> None:
        pipes = FakePipes(missing={"/tmp/old"})
        reader = EventStreamReader("/tmp/old", backoff=Backoff(minimum=10.0), opener=pipes)
        try:
            await wait_until(lambda: reader.get_status() is ConnectionStatus.RECONNECTING)
            reader.switch_channel("/tmp/new")
            await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED, timeout=1.0)
            assert pipes.opened == ["/tmp/new"]
            assert reader.path == "/tmp/new"
        finally:
            reader.close()
            await reader.wait_closed()

    async def test_switch_channel_drops_live_connection(self) -> None:
        pipes = FakePipes()
        reader = EventStreamReader("/tmp/a", backoff=Backoff(minimum=10.0), opener=pipes)
        try:
            await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED)
            reader.switch_channel("/tmp/a")
            reader.switch_channel("/tmp/b")
            await wait_until(lambda: pipes.opened == ["/tmp/a", "/tmp/b"], timeout=1.0)
        finally:
            reader.close()
            await reader.wait_closed()

    async def test_listener_errors_do_not_stop_delivery(self) -> None:
        pipes = FakePipes()
        reader = EventStreamReader("/tmp/hud.fifo", backoff=Backoff(minimum=0.01), opener=pipes)
        seen: list[str] = []

        def broken(event: HudEvent) -> None:
            raise RuntimeError("listener bug")

        reader.on_event(broken)
        reader.on_event(lambda e: seen.append(e.event))
        try:
            await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED)
            pipes.current.feed_data(b'{"event": "Stop"}\n{"event": "PreCompact"}\n')
            await wait_until(lambda: len(seen) == 2)
            assert seen == ["Stop", "PreCompact"]
        finally:
            reader.close()
            await reader.wait_closed()

    async def test_unsubscribe(self) -> None:
        pipes = FakePipes()
        reader = EventStreamReader("/tmp/hud.fifo", backoff=Backoff(minimum=0.01), opener=pipes)
        first: list[str] = []
        second: list[str] = []
        unsubscribe = reader.on_event(lambda e: first.append(e.event))
        reader.on_event(lambda e: second.append(e.event))
        unsubscribe()
        try:
            await wait_until(lambda: reader.get_status() is ConnectionStatus.CONNECTED)
            pipes.current.feed_data(b'{"event": "Stop"}\n')
            await wait_until(lambda: second == ["Stop"])
            assert first == []
        finally:
            reader.close()
            await reader.wait_closed()


class TestReplayEventSource:
    """Deterministic in-process source."""

    def test_emit_is_synchronous(self) -> None:
        source = ReplayEventSource()
        seen: list[str] = []
        source.on_event(lambda e: seen.append(e.event))
        source.emit(HudEvent("Stop", ts=T0))
        assert seen == ["Stop"]
        assert source.get_status() is ConnectionStatus.CONNECTED

    def test_status_changes_notify_once(self) -> None:
        source = ReplayEventSource()
        statuses: list[ConnectionStatus] = []
        source.on_status(statuses.append)
        source.set_status(ConnectionStatus.RECONNECTING)
        source.set_status(ConnectionStatus.RECONNECTING)
        assert statuses == [ConnectionStatus.RECONNECTING]

    def test_close_detaches(self) -> None:
        source = ReplayEventSource()
        seen: list[str] = []
        source.on_event(lambda e: seen.append(e.event))
        source.close()
        source.emit(HudEvent("Stop", ts=T0))
        assert seen == []
        assert source.closed
        assert source.get_status() is ConnectionStatus.DISCONNECTED
