"""Session store: the long-lived owner of session state.

The store connects an event source to the reducer. Every event from the
source, and every timer tick, becomes one ``reduce()`` call on the event
loop thread; the resulting state replaces the current one and subscribers
are told. Nothing else writes the state, so no locking is needed.

Timers (all optional, 0 disables):
    clock_interval        emits ``hud.tick`` so durations advance
    environment_interval  rescans CLAUDE.md / rules / MCP / hooks counts
    usage_interval        refetches remote usage data
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sessionhud.config.paths import get_default_fifo_path
from sessionhud.environment import EnvironmentCounts
from sessionhud.events import EventKind, HudEvent, internal_event
from sessionhud.logging import get_logger
from sessionhud.state.models import SessionState
from sessionhud.state.reducer import reduce
from sessionhud.stream.backoff import Backoff
from sessionhud.stream.reader import EventStreamReader
from sessionhud.stream.source import ConnectionStatus, EventSource, Unsubscribe
from sessionhud.usage.models import UsageData

if TYPE_CHECKING:
    from sessionhud.config.schema import Config

log = get_logger("store")

SourceFactory = Callable[[str], EventSource]
EnvironmentScanner = Callable[[], EnvironmentCounts]
UsageProvider = Callable[[], Awaitable["UsageData | None"]]
StateListener = Callable[[SessionState], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoreOptions:
    """Where to read events from and how often to refresh."""

    fifo_path: str
    environment_interval: float = 30.0
    usage_interval: float = 60.0
    clock_interval: float = 1.0

    @classmethod
    def from_config(cls, config: Config, home: Path | None = None) -> StoreOptions:
        fifo_path = config.stream.fifo_path or str(get_default_fifo_path(home or Path.home()))
        return cls(
            fifo_path=str(Path(fifo_path).expanduser()),
            environment_interval=config.store.environment_interval,
            usage_interval=config.store.usage_interval if config.usage.enabled else 0,
            clock_interval=config.store.clock_interval,
        )

    @classmethod
    def deterministic(cls, fifo_path: str = "replay") -> StoreOptions:
        """No timers at all, for replay and tests."""
        return cls(
            fifo_path=fifo_path,
            environment_interval=0,
            usage_interval=0,
            clock_interval=0,
        )


def reader_factory(config: Config) -> SourceFactory:
    """Source factory building pipe readers with the configured backoff."""

    def factory(path: str) -> EventSource:
        backoff = Backoff(
            minimum=config.stream.backoff_min,
            maximum=config.stream.backoff_max,
            stable_after=config.stream.stable_after,
        )
        return EventStreamReader(path, backoff=backoff)

    return factory


class SessionStore:
    """Holds the latest SessionState and keeps it current.

    Timers are only started when the store is built inside a running event
    loop; otherwise the store is driven purely by its source.

    Example:
        store = SessionStore(StoreOptions.from_config(config), reader_factory(config))
        store.subscribe(lambda state: print(len(state.tools)))
        ...
        store.dispose()
    """

    def __init__(
        self,
        options: StoreOptions,
        source_factory: SourceFactory = EventStreamReader,
        environment_scanner: EnvironmentScanner | None = None,
        usage_provider: UsageProvider | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._options = options
        self._environment_scanner = environment_scanner
        self._usage_provider = usage_provider
        self._clock = clock

        self._listeners: list[StateListener] = []
        self._timers: list[asyncio.Task[None]] = []
        self._closing: list[asyncio.Task[None]] = []
        self._disposed = False

        self._source = source_factory(options.fifo_path)
        self._state = SessionState(connection=self._source.get_status())
        self._unsubscribes: list[Unsubscribe] = [
            self._source.on_event(self._apply),
            self._source.on_status(self._on_status),
        ]
        self._start_timers()

    @property
    def source(self) -> EventSource:
        return self._source

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get_state(self) -> SessionState:
        """The latest snapshot. Never blocks, never partially updated."""
        return self._state

    def subscribe(self, listener: StateListener) -> Unsubscribe:
        """Call ``listener`` with the new state after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def switch_channel(self, path: str) -> None:
        """Follow the session to another event pipe."""
        if self._disposed:
            return
        self._options.fifo_path = path
        self._source.switch_channel(path)

    def dispatch(self, kind: str, payload: Any = None) -> None:
        """Reduce an internal event stamped with the store clock."""
        self._apply(internal_event(kind, self._clock(), payload))

    async def refresh_usage(self) -> None:
        """Fetch usage once; the result is dropped if the store was disposed."""
        if self._usage_provider is None or self._disposed:
            return
        try:
            data = await self._usage_provider()
        except Exception as e:
            log.debug("Usage refresh failed: %s", e)
            return
        if self._disposed:
            log.debug("Discarding usage result that arrived after dispose")
            return
        self.dispatch(EventKind.USAGE, data)

    def refresh_environment(self) -> None:
        if self._environment_scanner is None or self._disposed:
            return
        try:
            counts = self._environment_scanner()
        except Exception as e:
            log.debug("Environment scan failed: %s", e)
            return
        self.dispatch(EventKind.ENVIRONMENT, counts)

    def dispose(self) -> None:
        """Stop timers, close the source and drop all listeners. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        for task in self._timers:
            task.cancel()
        self._closing, self._timers = self._timers, []
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
        self._source.close()
        self._listeners.clear()
        log.debug("Session store disposed")

    async def wait_closed(self) -> None:
        """Await the cancelled timers and the source shutdown after dispose()."""
        tasks, self._closing = self._closing, []
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._source.wait_closed()

    async def __aenter__(self) -> SessionStore:
        return self

    async def __aexit__(self, *args: object) -> None:
        self.dispose()
        await self.wait_closed()

    def _apply(self, event: HudEvent) -> None:
        if self._disposed:
            return
        new_state = reduce(self._state, event)
        if new_state is self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                log.warning("State listener error: %s", e)

    def _on_status(self, status: ConnectionStatus) -> None:
        self.dispatch(EventKind.CONNECTION, status)

    def _start_timers(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running loop; store timers disabled")
            return

        options = self._options
        if options.clock_interval > 0:
            self._timers.append(
                loop.create_task(self._every(options.clock_interval, self._tick))
            )
        if options.environment_interval > 0 and self._environment_scanner is not None:
            self._timers.append(
                loop.create_task(
                    self._every(options.environment_interval, self._refresh_environment_async)
                )
            )
        if options.usage_interval > 0 and self._usage_provider is not None:
            self._timers.append(
                loop.create_task(self._every(options.usage_interval, self.refresh_usage))
            )

    async def _tick(self) -> None:
        self.dispatch(EventKind.TICK)

    async def _refresh_environment_async(self) -> None:
        self.refresh_environment()

    async def _every(self, interval: float, action: Callable[[], Awaitable[None]]) -> None:
        """Run ``action`` now and then every ``interval`` seconds until disposed."""
        while not self._disposed:
            await action()
            await asyncio.sleep(interval)
