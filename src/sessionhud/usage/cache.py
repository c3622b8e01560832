"""Single-slot file cache for usage data.

The statusline is a fresh process on every render, so the cache lives on
disk. Concurrent renders (several terminal tabs) may race; a lost update is
acceptable, a torn file is not, so writes go to a temp file in the same
directory and are swapped in with ``os.replace``.

File format::

    {"data": {...UsageData.to_dict()...}, "timestamp": 1735725600.0}
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sessionhud.logging import get_logger
from sessionhud.usage.models import UsageData

log = get_logger("usage.cache")

DEFAULT_TTL = 60.0
DEFAULT_FAILURE_TTL = 15.0


@dataclass
class UsageCache:
    """Handle on the cache slot.

    Attributes:
        path: Cache file location.
        ttl: Seconds a successful result stays valid.
        failure_ttl: Seconds an ``api_unavailable`` result stays valid.
    """

    path: Path
    ttl: float = DEFAULT_TTL
    failure_ttl: float = DEFAULT_FAILURE_TTL

    def ttl_for(self, data: UsageData) -> float:
        return self.failure_ttl if data.api_unavailable else self.ttl

    def read(self, now: datetime) -> UsageData | None:
        """Return the cached value if still fresh; any problem is a miss."""
        try:
            with open(self.path, encoding="utf-8") as f:
                record = json.load(f)
            data = UsageData.from_dict(record["data"])
            timestamp = float(record["timestamp"])
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            log.debug("Ignoring unreadable usage cache %s: %s", self.path, e)
            return None

        if now.timestamp() - timestamp >= self.ttl_for(data):
            return None
        return data

    def write(self, data: UsageData, now: datetime) -> None:
        """Atomically replace the slot; failures are logged and ignored."""
        record = {"data": data.to_dict(), "timestamp": now.timestamp()}
        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=".usage-", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            log.debug("Usage cache write failed: %s", e)
        finally:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)

    def clear(self) -> None:
        with contextlib.suppress(OSError):
            self.path.unlink()
