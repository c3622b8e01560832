"""Transcript reader.

Rebuilds tool, agent and todo activity from the assistant's line-delimited
JSON transcript. The file is append-only and may be mid-write while we read
it, so every line is parsed on its own and bad lines are skipped.

Each transcript line looks like::

    {"type": "assistant", "timestamp": "2025-01-01T10:00:00Z",
     "message": {"content": [{"type": "tool_use", "id": "toolu_1",
                              "name": "Read", "input": {"file_path": "a.py"}}]}}
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sessionhud.logging import get_logger
from sessionhud.models import TranscriptData, parse_timestamp
from sessionhud.tracking import (
    Ledger,
    extract_user_text,
    is_uninformative,
    record_tool_result,
    record_tool_use,
)

log = get_logger("transcript")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptAccumulator:
    """Folds transcript entries into activity records.

    Usage:
        acc = TranscriptAccumulator()
        for entry in entries:
            acc.add_entry(entry)
        data = acc.snapshot()
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._ledger = Ledger()
        self._session_start: datetime | None = None
        self._last_user_message: str | None = None

    def add_line(self, line: str) -> bool:
        """Parse and apply one raw line. Returns False for skipped lines."""
        if not line.strip():
            return False
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            log.debug("Skipping malformed transcript line")
            return False
        if not isinstance(entry, dict):
            return False
        self.add_entry(entry)
        return True

    def add_entry(self, entry: dict[str, Any]) -> None:
        """Apply one decoded transcript entry."""
        stamped = parse_timestamp(entry.get("timestamp"))
        timestamp = stamped or self._clock()
        if self._session_start is None and stamped is not None:
            self._session_start = stamped

        message = entry.get("message")
        content = message.get("content") if isinstance(message, dict) else None

        if entry.get("type") == "user" and content:
            text = extract_user_text(content)
            if not is_uninformative(text):
                self._last_user_message = text

        if not isinstance(content, list):
            return

        for block in content:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            if block_type == "tool_use":
                tool_id = block.get("id")
                name = block.get("name")
                if tool_id and name:
                    record_tool_use(
                        self._ledger, str(tool_id), str(name), block.get("input"), timestamp
                    )
            elif block_type == "tool_result":
                tool_use_id = block.get("tool_use_id")
                if tool_use_id:
                    record_tool_result(
                        self._ledger, str(tool_use_id), bool(block.get("is_error")), timestamp
                    )

    def snapshot(self) -> TranscriptData:
        """Current accumulation, trimmed to the retention limits."""
        return TranscriptData(
            tools=self._ledger.trimmed_tools(),
            agents=self._ledger.trimmed_agents(),
            todos=list(self._ledger.todos),
            session_start=self._session_start,
            last_user_message=self._last_user_message,
        )


def parse_transcript(
    transcript_path: str | Path | None,
    clock: Callable[[], datetime] = _utcnow,
) -> TranscriptData:
    """Read a transcript file top to bottom into a TranscriptData snapshot.

    A missing path gives an empty snapshot. A read failure part-way through
    returns whatever was accumulated up to that point.
    """
    if not transcript_path:
        return TranscriptData()

    path = Path(transcript_path)
    if not path.is_file():
        return TranscriptData()

    acc = TranscriptAccumulator(clock=clock)
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            for line in f:
                acc.add_line(line)
    except Exception as e:
        log.debug("Transcript read failed for %s: %s", path, e)

    return acc.snapshot()
