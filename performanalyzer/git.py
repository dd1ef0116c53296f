"""Git subprocess helpers used to tag snapshots with their provenance."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from subprocess import CalledProcessError, run


class GitError(RuntimeError):
    """Raised when git command execution fails."""


def get_current_branch(repo: Path) -> str | None:
    """Return the checked-out branch name, or None on a detached HEAD."""
    try:
        branch = _run_git(repo, ["rev-parse", "--abbrev-ref", "HEAD"]).strip()
    except (GitError, OSError):
        return None
    if not branch or branch == "HEAD":
        return None
    return branch


def get_head_commit(repo: Path) -> str | None:
    """Return HEAD revision if present."""
    try:
        return _run_git(repo, ["rev-parse", "--verify", "HEAD"]).strip() or None
    except (GitError, OSError):
        return None


def detect_branch(repo: Path, env: Mapping[str, str] | None = None) -> str | None:
    """Resolve the branch from CI environment variables, then from git.

    ``GITHUB_HEAD_REF`` is set for pull requests, ``GITHUB_REF_NAME`` for pushes.
    """
    environ = os.environ if env is None else env
    for key in ("GITHUB_HEAD_REF", "GITHUB_REF_NAME"):
        value = environ.get(key, "").strip()
        if value:
            return value
    return get_current_branch(repo)


def detect_commit(repo: Path, env: Mapping[str, str] | None = None) -> str | None:
    environ = os.environ if env is None else env
    value = environ.get("GITHUB_SHA", "").strip()
    if value:
        return value
    return get_head_commit(repo)


def _run_git(repo: Path, args: list[str]) -> str:
    try:
        completed = run(
            ["git", *args],
            cwd=repo,
            check=True,
            capture_output=True,
            text=True,
        )
    except CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitError(stderr or f"git {' '.join(args)} failed") from exc

    return completed.stdout
