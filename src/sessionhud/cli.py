"""Command-line interface for session-hud."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import IO

from rich.console import Console, Group
from rich.live import Live

from sessionhud import __version__
from sessionhud.config import Config, load_config
from sessionhud.environment import scan_environment
from sessionhud.events import parse_hud_event
from sessionhud.logging import get_logger, setup_logging
from sessionhud.render.statusline import run_statusline, state_lines
from sessionhud.state.models import SessionState
from sessionhud.state.store import SessionStore, StoreOptions, reader_factory
from sessionhud.stdin import StdinPayload, read_stdin
from sessionhud.stream.replay import ReplayEventSource
from sessionhud.usage.fetcher import UsageDeps, get_usage

log = get_logger("cli")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="sessionhud",
        description="Heads-up status line for coding-assistant sessions",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file layered over the standard ones",
    )

    subparsers = parser.add_subparsers(dest="mode", help="Operating mode")

    subparsers.add_parser(
        "statusline",
        help="Render the status line from the JSON payload on stdin (default)",
    )

    replay_parser = subparsers.add_parser(
        "replay",
        help="Feed an event fixture through the session store",
    )
    replay_parser.add_argument(
        "--input",
        "-i",
        type=Path,
        required=True,
        help="Line-delimited JSON event file",
    )
    replay_parser.add_argument(
        "--json",
        action="store_true",
        help="Print one JSON object per event instead of a summary line",
    )

    watch_parser = subparsers.add_parser(
        "watch",
        help="Follow the live event pipe and redraw on every change",
    )
    watch_parser.add_argument(
        "--fifo",
        help="Event pipe path (default: ~/.claude/hud/events.fifo)",
    )

    return parser


def _load(parsed: argparse.Namespace, session_root: str | None = None) -> Config:
    config = load_config(session_root=session_root, extra_path=parsed.config)
    if parsed.verbose:
        config.logging.verbose = min(4, 1 + parsed.verbose)
    setup_logging(config.logging)
    return config


def replay_summary(index: int, event: str, state: SessionState, as_json: bool) -> str:
    """One output line of the replay command."""
    if as_json:
        return json.dumps(
            {
                "index": index,
                "event": event,
                "tools": len(state.tools),
                "todos": len(state.todos),
                "agents": len(state.agents),
                "cost": state.cost,
                "contextPercent": state.context_percent,
            }
        )
    return (
        f"#{index} {event} tools={len(state.tools)} todos={len(state.todos)} "
        f"agents={len(state.agents)} cost=${state.cost:.2f}"
    )


def run_replay(
    input_path: Path,
    as_json: bool = False,
    out: IO[str] | None = None,
    err: IO[str] | None = None,
) -> int:
    """Replay an event fixture through a timer-less store.

    Blank lines are not counted; invalid lines are reported and skipped.
    """
    out = out or sys.stdout
    err = err or sys.stderr

    try:
        contents = input_path.read_text(encoding="utf-8")
    except OSError as e:
        err.write(f"Cannot read {input_path}: {e}\n")
        return 1

    source = ReplayEventSource()
    store = SessionStore(StoreOptions.deterministic(), source_factory=lambda _path: source)
    try:
        lines = [line for line in contents.splitlines() if line.strip()]
        for index, line in enumerate(lines, start=1):
            event = parse_hud_event(line)
            if event is None:
                err.write(f"Skipping invalid event line {index}\n")
                continue
            source.emit(event)
            out.write(replay_summary(index, event.event, store.get_state(), as_json) + "\n")
    finally:
        store.dispose()
    return 0


async def run_watch(config: Config, fifo: str | None = None) -> int:
    """Long-lived mode: follow the event pipe until interrupted."""
    options = StoreOptions.from_config(config)
    if fifo:
        options.fifo_path = str(Path(fifo).expanduser())
    cwd = os.getcwd()

    async def usage_provider():
        return await get_usage(UsageDeps.from_config(config.usage))

    store = SessionStore(
        options,
        source_factory=reader_factory(config),
        environment_scanner=lambda: scan_environment(cwd),
        usage_provider=usage_provider,
    )
    console = Console()
    console.print(f"[dim]Watching {options.fifo_path}[/dim]")

    def view(state: SessionState) -> Group:
        return Group(*state_lines(state, config))

    try:
        with Live(view(store.get_state()), console=console, auto_refresh=False) as live:
            store.subscribe(lambda state: live.update(view(state), refresh=True))
            await asyncio.Event().wait()
    finally:
        store.dispose()
        await store.wait_closed()
    return 0


def run_cli(args: Sequence[str], stdin: IO[str] | None = None, stdout: IO[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.mode == "replay":
        _load(parsed)
        return run_replay(parsed.input, parsed.json)

    if parsed.mode == "watch":
        config = _load(parsed, session_root=os.getcwd())
        try:
            return asyncio.run(run_watch(config, parsed.fifo))
        except KeyboardInterrupt:
            return 130

    # statusline, also when no mode is given
    payload: StdinPayload | None = read_stdin(stdin)
    config = _load(parsed, session_root=payload.cwd if payload else None)
    return asyncio.run(run_statusline(payload, config, stdout or sys.stdout))


def main() -> int:
    """Console script entry point."""
    return run_cli(sys.argv[1:])
