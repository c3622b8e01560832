"""Tests for the statusline stdin payload."""

from __future__ import annotations

import io

from sessionhud.stdin import StdinPayload, read_stdin


def payload(**window) -> StdinPayload:
    return StdinPayload.from_dict({"model": {"display_name": "Opus"}, "context_window": window})


class TestContextPercent:
    """Context window percentage."""

    def test_used_percentage_wins(self) -> None:
        stdin = payload(
            used_percentage=42,
            context_window_size=200_000,
            current_usage={"input_tokens": 190_000},
        )
        assert stdin.context_percent() == 42

    def test_fractional_percentage_floored_and_capped(self) -> None:
        assert payload(used_percentage=42.9).context_percent() == 42
        assert payload(used_percentage=130).context_percent() == 100

    def test_token_fallback(self) -> None:
        stdin = payload(
            context_window_size=200_000,
            current_usage={
                "input_tokens": 30_000,
                "output_tokens": 99_000,
                "cache_creation_input_tokens": 10_000,
                "cache_read_input_tokens": 10_000,
            },
        )
        assert stdin.context_percent() == 25

    def test_missing_or_zero_size_is_zero(self) -> None:
        assert payload(current_usage={"input_tokens": 5}).context_percent() == 0
        assert payload(context_window_size=0, current_usage={"input_tokens": 5}).context_percent() == 0


class TestTokens:
    """Token counts and the compaction buffer."""

    def test_used_tokens_from_percentage(self) -> None:
        assert payload(used_percentage=50).used_tokens() == 100_000
        assert payload(used_percentage=50, context_window_size=1_000_000).used_tokens() == 500_000

    def test_used_tokens_from_counts(self) -> None:
        stdin = payload(current_usage={"input_tokens": 1_000, "cache_read_input_tokens": 500})
        assert stdin.used_tokens() == 1_500

    def test_buffered_percent(self) -> None:
        stdin = payload(context_window_size=200_000, current_usage={"input_tokens": 67_000})
        assert stdin.buffered_percent() == 50
        assert payload().buffered_percent() == 0


class TestPayloadFields:
    """Field extraction."""

    def test_model_name_fallbacks(self) -> None:
        assert StdinPayload.from_dict({"model": {"id": "claude-x"}}).model_name == "claude-x"
        assert StdinPayload.from_dict({}).model_name == "Unknown"

    def test_bad_types_ignored(self) -> None:
        stdin = StdinPayload.from_dict(
            {"cwd": 5, "model": "opus", "context_window": {"used_percentage": "42"}}
        )
        assert stdin.cwd is None
        assert stdin.used_percentage is None
        assert stdin.context_percent() == 0


class _TtyStream(io.StringIO):
    def isatty(self) -> bool:
        return True


class TestReadStdin:
    """Reading the payload."""

    def test_valid(self) -> None:
        stdin = read_stdin(io.StringIO('{"cwd": "/work/app", "transcript_path": "/t.jsonl"}'))
        assert stdin is not None
        assert stdin.cwd == "/work/app"
        assert stdin.transcript_path == "/t.jsonl"

    def test_empty_invalid_or_tty(self) -> None:
        assert read_stdin(io.StringIO("")) is None
        assert read_stdin(io.StringIO("  \n")) is None
        assert read_stdin(io.StringIO("{nope")) is None
        assert read_stdin(io.StringIO("[1]")) is None
        assert read_stdin(_TtyStream('{"cwd": "/x"}')) is None
