"""Root pytest configuration for all tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sessionhud.config import reset_config
from sessionhud.logging import reset_logging

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)

FIXED_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """A fixed aware clock value."""
    return FIXED_NOW


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Keep the host's env vars, the config cache and log handlers out of every test."""
    monkeypatch.delenv("SESSIONHUD_LOG", raising=False)
    monkeypatch.delenv("SESSIONHUD_FIFO", raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    reset_config()
    reset_logging()
    yield
    reset_config()
    reset_logging()
