"""Git working tree status for the session line."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from sessionhud.logging import get_logger

log = get_logger("git")

GIT_TIMEOUT = 1.0


@dataclass(frozen=True)
class GitStatus:
    branch: str
    is_dirty: bool = False
    ahead: int = 0
    behind: int = 0
    uncommitted_count: int = 0
    single_file_name: str | None = None
    has_upstream: bool = False


class GitError(Exception):
    """A git command failed, timed out, or git is not installed."""


async def _git(cwd: str | Path, *args: str) -> str:
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        raise GitError(str(e)) from e

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=GIT_TIMEOUT)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise GitError(f"git {args[0]} timed out") from e

    if proc.returncode != 0:
        raise GitError(f"git {args[0]} exited with {proc.returncode}")
    return stdout.decode("utf-8", errors="replace")


async def get_git_status(cwd: str | Path | None) -> GitStatus | None:
    """Collect branch, dirty state and upstream divergence for ``cwd``.

    Returns None outside a repository or when git is unavailable. Partial
    failures after the branch lookup degrade to a clean, upstream-less tree.
    """
    if not cwd:
        return None

    try:
        branch = (await _git(cwd, "rev-parse", "--abbrev-ref", "HEAD")).strip()
    except GitError as e:
        log.debug("No git branch for %s: %s", cwd, e)
        return None
    if not branch:
        return None

    uncommitted = 0
    single_file = None
    try:
        lines = [
            line
            for line in (await _git(cwd, "status", "--porcelain")).splitlines()
            if line.strip()
        ]
        uncommitted = len(lines)
        if uncommitted == 1:
            # Strip the two-letter status code and its separator
            single_file = lines[0][3:].strip() or None
    except GitError as e:
        log.debug("git status failed: %s", e)

    ahead = behind = 0
    has_upstream = False
    try:
        upstream = await _git(cwd, "rev-parse", "--abbrev-ref", "@{upstream}")
        has_upstream = bool(upstream.strip())
        if has_upstream:
            counts = (
                await _git(cwd, "rev-list", "--left-right", "--count", "@{upstream}...HEAD")
            ).split()
            if len(counts) == 2:
                behind, ahead = (int(c) if c.isdigit() else 0 for c in counts)
    except GitError:
        has_upstream = False

    return GitStatus(
        branch=branch,
        is_dirty=uncommitted > 0,
        ahead=ahead,
        behind=behind,
        uncommitted_count=uncommitted,
        single_file_name=single_file,
        has_upstream=has_upstream,
    )
