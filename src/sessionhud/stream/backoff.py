"""Exponential reconnect delay."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Backoff:
    """Doubling delay between reconnect attempts, capped at ``maximum``.

    ``next_delay()`` returns the delay to wait now and doubles the next one.
    ``connected_for(seconds)`` is told how long the last connection lived:
    a connection that stayed up at least ``stable_after`` seconds resets the
    delay to ``minimum``.
    """

    minimum: float = 0.5
    maximum: float = 30.0
    stable_after: float = 5.0
    factor: float = 2.0
    _current: float = field(init=False)

    def __post_init__(self) -> None:
        if self.minimum <= 0:
            raise ValueError("minimum backoff must be positive")
        self.maximum = max(self.maximum, self.minimum)
        self._current = self.minimum

    @property
    def current(self) -> float:
        """Delay the next call to next_delay() will return."""
        return self._current

    def next_delay(self) -> float:
        delay = self._current
        self._current = min(self._current * self.factor, self.maximum)
        return delay

    def connected_for(self, seconds: float) -> None:
        if seconds >= self.stable_after:
            self.reset()

    def reset(self) -> None:
        self._current = self.minimum
