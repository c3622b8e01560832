"""The JSON payload the host pipes to the statusline command."""

from __future__ import annotations

import json
import math
import sys
from dataclasses import dataclass, field
from typing import IO, Any

from sessionhud.logging import get_logger

log = get_logger("stdin")

DEFAULT_CONTEXT_WINDOW = 200_000

# Share of the window the host keeps free for automatic compaction
AUTOCOMPACT_BUFFER_PERCENT = 0.165


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def context_tokens(self) -> int:
        """Tokens occupying the context window (output excluded)."""
        return (
            self.input_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
        )


@dataclass(frozen=True)
class StdinPayload:
    """Statusline input: model, working directory and context usage."""

    transcript_path: str | None = None
    cwd: str | None = None
    model_id: str | None = None
    model_display_name: str | None = None
    context_window_size: int | None = None
    used_percentage: float | None = None
    current_usage: TokenUsage = field(default_factory=TokenUsage)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StdinPayload:
        model = _dict(data.get("model"))
        window = _dict(data.get("context_window"))
        usage = _dict(window.get("current_usage"))
        size = _number(window.get("context_window_size"))

        return cls(
            transcript_path=_string(data.get("transcript_path")),
            cwd=_string(data.get("cwd")),
            model_id=_string(model.get("id")),
            model_display_name=_string(model.get("display_name")),
            context_window_size=int(size) if size is not None else None,
            used_percentage=_number(window.get("used_percentage")),
            current_usage=TokenUsage(
                input_tokens=_count(usage.get("input_tokens")),
                output_tokens=_count(usage.get("output_tokens")),
                cache_creation_input_tokens=_count(usage.get("cache_creation_input_tokens")),
                cache_read_input_tokens=_count(usage.get("cache_read_input_tokens")),
            ),
        )

    @property
    def model_name(self) -> str:
        return self.model_display_name or self.model_id or "Unknown"

    def context_percent(self) -> int:
        """Used share of the context window, 0..100.

        The host-reported percentage wins over anything derived from token
        counts. Without a window size there is nothing to divide by: 0.
        """
        if self.used_percentage is not None:
            return min(100, math.floor(self.used_percentage))

        size = self.context_window_size
        if not size or size <= 0:
            return 0
        return min(100, math.floor(self.current_usage.context_tokens / size * 100))

    def used_tokens(self) -> int:
        size = self.context_window_size or DEFAULT_CONTEXT_WINDOW
        if self.used_percentage is not None:
            return math.floor(size * self.used_percentage / 100)
        return self.current_usage.context_tokens

    def buffered_percent(self, buffer: float = AUTOCOMPACT_BUFFER_PERCENT) -> int:
        """Context percentage including the reserved compaction buffer."""
        size = self.context_window_size
        if not size or size <= 0:
            return 0
        total = self.current_usage.context_tokens + size * buffer
        return min(100, math.floor(total / size * 100 + 0.5))


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _string(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _count(value: Any) -> int:
    number = _number(value)
    return int(number) if number is not None and number > 0 else 0


def read_stdin(stream: IO[str] | None = None) -> StdinPayload | None:
    """Read and parse the payload; None on a TTY, empty input or bad JSON."""
    stream = stream if stream is not None else sys.stdin
    try:
        if stream.isatty():
            return None
        raw = stream.read()
    except (OSError, ValueError) as e:
        log.debug("Cannot read stdin: %s", e)
        return None

    if not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        log.debug("Invalid stdin JSON: %s", e)
        return None
    if not isinstance(data, dict):
        return None
    return StdinPayload.from_dict(data)
