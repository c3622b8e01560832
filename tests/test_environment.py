"""Tests for environment counting and git status."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sessionhud import git
from sessionhud.environment import EnvironmentCounts, scan_environment
from sessionhud.git import GitError, GitStatus, get_git_status


def write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


class TestScanEnvironment:
    """Counting memory files, rules, MCP servers and hooks."""

    def test_empty(self, tmp_path: Path) -> None:
        assert scan_environment(None, home=tmp_path) == EnvironmentCounts()

    def test_user_and_project(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        project = tmp_path / "project"
        (home / ".claude").mkdir(parents=True)
        (home / ".claude" / "CLAUDE.md").write_text("user")
        write_json(
            home / ".claude" / "settings.json",
            {
                "mcpServers": {"github": {}, "files": {}},
                "hooks": {"PreToolUse": [{"matcher": "*"}], "Stop": [{}, {}]},
            },
        )
        (project / ".claude" / "rules" / "nested").mkdir(parents=True)
        (project / "CLAUDE.md").write_text("project")
        (project / ".claude" / "rules" / "style.md").write_text("")
        (project / ".claude" / "rules" / "nested" / "tests.md").write_text("")
        (project / ".claude" / "rules" / "notes.txt").write_text("")
        write_json(project / ".claude" / "settings.local.json", {"hooks": {"Stop": [{}]}})
        write_json(project / ".mcp.json", {"mcpServers": {"github": {}, "db": {}}})

        counts = scan_environment(project, home=home)

        assert counts == EnvironmentCounts(claude_md=2, rules=2, mcp_servers=3, hooks=4)

    def test_home_as_project_not_double_counted(self, tmp_path: Path) -> None:
        (tmp_path / ".claude").mkdir()
        (tmp_path / ".claude" / "CLAUDE.md").write_text("")
        write_json(tmp_path / ".claude" / "settings.json", {"hooks": {"Stop": [{}]}})

        counts = scan_environment(tmp_path, home=tmp_path)

        assert counts.claude_md == 1
        assert counts.hooks == 1

    def test_invalid_settings_ignored(self, tmp_path: Path) -> None:
        (tmp_path / ".claude").mkdir()
        (tmp_path / ".claude" / "settings.json").write_text("{not json")
        assert scan_environment(None, home=tmp_path).hooks == 0


class FakeGit:
    """Canned answers for git subcommands."""

    def __init__(self, responses: dict[str, str | Exception]) -> None:
        self.responses = responses

    async def __call__(self, cwd, *args: str) -> str:
        key = " ".join(args)
        response = self.responses.get(key, GitError(f"unexpected: {key}"))
        if isinstance(response, Exception):
            raise response
        return response


class TestGitStatus:
    """Branch, dirty state and divergence."""

    async def test_no_cwd(self) -> None:
        assert await get_git_status(None) is None

    async def test_not_a_repository(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(git, "_git", FakeGit({}))
        assert await get_git_status("/tmp") is None

    async def test_dirty_with_upstream(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            git,
            "_git",
            FakeGit(
                {
                    "rev-parse --abbrev-ref HEAD": "main\n",
                    "status --porcelain": " M src/app.py\n",
                    "rev-parse --abbrev-ref @{upstream}": "origin/main\n",
                    "rev-list --left-right --count @{upstream}...HEAD": "1\t3\n",
                }
            ),
        )
        status = await get_git_status("/repo")
        assert status == GitStatus(
            branch="main",
            is_dirty=True,
            ahead=3,
            behind=1,
            uncommitted_count=1,
            single_file_name="src/app.py",
            has_upstream=True,
        )

    async def test_clean_without_upstream(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            git,
            "_git",
            FakeGit({"rev-parse --abbrev-ref HEAD": "feature\n", "status --porcelain": ""}),
        )
        status = await get_git_status("/repo")
        assert status == GitStatus(branch="feature")
