"""Tests for the command-line interface."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from sessionhud import __version__
from sessionhud.cli import create_parser, run_cli, run_replay

EVENTS = [
    '{"event": "PreToolUse", "ts": 1735725600, "tool": "Read", "toolUseId": "t1", '
    '"input": {"file_path": "a.py"}}',
    "",
    "{broken",
    '{"event": "PostToolUse", "ts": 1735725601, "toolUseId": "t1"}',
    '{"event": "PreToolUse", "ts": 1735725602, "tool": "TodoWrite", '
    '"input": {"todos": [{"content": "a", "status": "pending"}, '
    '{"content": "b", "status": "completed"}]}}',
    '{"event": "PreToolUse", "ts": 1735725603, "tool": "Task", "toolUseId": "t2", '
    '"input": {"subagent_type": "explore"}}',
    '{"event": "CostUpdate", "ts": 1735725604, "cost": 0.25}',
    '{"event": "ContextUpdate", "ts": 1735725605, "context": {"tokens": 50000, "windowSize": 200000}}',
]


@pytest.fixture
def fixture_file(tmp_path: Path) -> Path:
    path = tmp_path / "events.jsonl"
    path.write_text("\n".join(EVENTS) + "\n", encoding="utf-8")
    return path


class TestParser:
    """Argument parsing."""

    def test_replay_args(self) -> None:
        parsed = create_parser().parse_args(["-vv", "replay", "-i", "x.jsonl", "--json"])
        assert parsed.mode == "replay"
        assert parsed.input == Path("x.jsonl")
        assert parsed.json is True
        assert parsed.verbose == 2

    def test_default_mode_is_statusline(self) -> None:
        assert create_parser().parse_args([]).mode is None

    def test_replay_requires_input(self) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["replay"])

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestReplay:
    """The replay command."""

    def test_summary_lines(self, fixture_file: Path) -> None:
        out, err = io.StringIO(), io.StringIO()
        assert run_replay(fixture_file, out=out, err=err) == 0

        assert out.getvalue().splitlines() == [
            "#1 PreToolUse tools=1 todos=0 agents=0 cost=$0.00",
            "#3 PostToolUse tools=1 todos=0 agents=0 cost=$0.00",
            "#4 PreToolUse tools=1 todos=2 agents=0 cost=$0.00",
            "#5 PreToolUse tools=1 todos=2 agents=1 cost=$0.00",
            "#6 CostUpdate tools=1 todos=2 agents=1 cost=$0.25",
            "#7 ContextUpdate tools=1 todos=2 agents=1 cost=$0.25",
        ]
        assert err.getvalue() == "Skipping invalid event line 2\n"

    def test_json_lines(self, fixture_file: Path) -> None:
        out = io.StringIO()
        run_replay(fixture_file, as_json=True, out=out, err=io.StringIO())

        records = [json.loads(line) for line in out.getvalue().splitlines()]
        assert [r["index"] for r in records] == [1, 3, 4, 5, 6, 7]
        assert records[0] == {
            "index": 1,
            "event": "PreToolUse",
            "tools": 1,
            "todos": 0,
            "agents": 0,
            "cost": 0.0,
            "contextPercent": None,
        }
        assert records[-1]["cost"] == 0.25
        assert records[-1]["contextPercent"] == 25.0

    def test_missing_file(self, tmp_path: Path) -> None:
        err = io.StringIO()
        assert run_replay(tmp_path / "nope.jsonl", out=io.StringIO(), err=err) == 1
        assert "Cannot read" in err.getvalue()


class TestStatuslineMode:
    """Default mode end to end."""

    def test_no_payload_prints_waiting(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        out = io.StringIO()
        assert run_cli([], stdin=io.StringIO(""), stdout=out) == 0
        assert out.getvalue() == "[session-hud] waiting for session data\n"
