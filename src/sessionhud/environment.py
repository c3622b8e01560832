"""Counts of the assistant configuration in effect for a project.

Shown on the session line as "2 CLAUDE.md | 3 rules | 1 MCPs | 4 hooks".
Every lookup is best effort: an unreadable file simply counts as absent.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sessionhud.config.paths import get_host_dir
from sessionhud.logging import get_logger

log = get_logger("environment")

MEMORY_FILE = "CLAUDE.md"


@dataclass(frozen=True)
class EnvironmentCounts:
    claude_md: int = 0
    rules: int = 0
    mcp_servers: int = 0
    hooks: int = 0


def _read_json(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        log.debug("Ignoring unreadable settings file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _count_rules(rules_dir: Path) -> int:
    if not rules_dir.is_dir():
        return 0
    try:
        return sum(1 for p in rules_dir.rglob("*.md") if p.is_file())
    except OSError as e:
        log.debug("Cannot scan rules in %s: %s", rules_dir, e)
        return 0


def _mcp_names(settings: dict[str, Any]) -> set[str]:
    servers = settings.get("mcpServers")
    return set(servers) if isinstance(servers, dict) else set()


def _hook_count(settings: dict[str, Any]) -> int:
    hooks = settings.get("hooks")
    if not isinstance(hooks, dict):
        return 0
    count = 0
    for matchers in hooks.values():
        if isinstance(matchers, list):
            count += len(matchers)
    return count


def scan_environment(cwd: str | Path | None, home: Path | None = None) -> EnvironmentCounts:
    """Count memory files, rules, MCP servers and hooks for ``cwd``.

    User-level files under ``~/.claude`` are always included; project-level
    ones only when ``cwd`` is given.
    """
    home = home or Path.home()
    host_dir = get_host_dir(home)

    memory_files = [host_dir / MEMORY_FILE]
    rule_dirs = [host_dir / "rules"]
    settings_files = [host_dir / "settings.json"]

    if cwd:
        project = Path(cwd)
        memory_files += [project / MEMORY_FILE, project / ".claude" / MEMORY_FILE]
        rule_dirs.append(project / ".claude" / "rules")
        settings_files += [
            project / ".claude" / "settings.json",
            project / ".claude" / "settings.local.json",
        ]
        mcp_file = project / ".mcp.json"
    else:
        mcp_file = None

    mcp_servers: set[str] = set()
    hooks = 0
    # cwd may be the home directory itself
    for path in dict.fromkeys(settings_files):
        settings = _read_json(path)
        mcp_servers |= _mcp_names(settings)
        hooks += _hook_count(settings)
    if mcp_file is not None:
        mcp_servers |= _mcp_names(_read_json(mcp_file))

    return EnvironmentCounts(
        claude_md=sum(1 for p in set(memory_files) if p.is_file()),
        rules=sum(_count_rules(d) for d in set(rule_dirs)),
        mcp_servers=len(mcp_servers),
        hooks=hooks,
    )
