"""Git mode: compare the latest commit of the local and remote repositories."""

from __future__ import annotations

import logging
import shlex
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Sequence

from treesync import types
from treesync.ssh.commands import CommandRunner, run_with_markers
from treesync.ssh.transport import SSHCommandError, SSHConnectionError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%H|%ct"
REMOTE_GIT_CANDIDATES: tuple[str, ...] = ("git", "/usr/bin/git", "/usr/local/bin/git", "/opt/git/bin/git")
DUBIOUS_OWNERSHIP_MARKER = "dubious ownership"
COMMAND_TIMEOUT = 30.0


class GitQueryError(RuntimeError):
    """Raised when commit metadata cannot be read on either side."""


def parse_commit_line(output: str) -> types.CommitInfo:
    """Parse ``<hash>|<epoch>`` as printed by ``git log -1 --format=%H|%ct``."""
    line = output.strip().splitlines()[-1] if output.strip() else ""
    commit_hash, sep, epoch = line.partition("|")
    if not sep or not commit_hash:
        raise ValueError(f"Unexpected git log output: {output.strip()!r}")
    return types.CommitInfo(hash=commit_hash.strip(), timestamp=float(int(epoch.strip())))


def local_commit(repo_path: Path | str) -> types.CommitInfo:
    repo = Path(repo_path).expanduser()
    if not (repo / ".git").exists():
        raise GitQueryError(f"Git mode selected but no .git folder found at {repo / '.git'}")
    try:
        completed = subprocess.run(
            ["git", "-C", str(repo), "log", "-1", f"--format={LOG_FORMAT}"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise GitQueryError(f"Failed to run git locally: {exc}") from exc
    if completed.returncode != 0:
        raise GitQueryError(f"Failed to read local git commit: {completed.stderr.strip() or 'git log failed'}")
    try:
        return parse_commit_line(completed.stdout)
    except ValueError as exc:
        raise GitQueryError(f"Failed to read local git commit: {exc}") from exc


def remote_commit(
    runner: CommandRunner,
    remote_path: str,
    *,
    candidates: Sequence[str] = REMOTE_GIT_CANDIDATES,
) -> types.CommitInfo:
    """Query the remote repository containing ``remote_path``.

    ``remote_path`` may be a subdirectory; the repository root is resolved
    with ``rev-parse --show-toplevel`` before reading the log.
    """
    failures: List[str] = []
    for git in candidates:
        root_script = f"cd {shlex.quote(remote_path)} && {git} rev-parse --show-toplevel"
        try:
            root_result = run_with_markers(runner, root_script, timeout=COMMAND_TIMEOUT)
        except (SSHCommandError, SSHConnectionError) as exc:
            raise GitQueryError(f"Failed to query remote git: {exc}") from exc
        _raise_for_ownership(root_result.stderr, remote_path)
        if root_result.exit_code != 0 or not root_result.body:
            failures.append(f"{git}: {root_result.stderr.strip() or 'command not found'}")
            continue

        repo_root = root_result.body.splitlines()[-1].strip()
        log_script = f"cd {shlex.quote(repo_root)} && {git} log -1 --format={shlex.quote(LOG_FORMAT)}"
        try:
            log_result = run_with_markers(runner, log_script, timeout=COMMAND_TIMEOUT)
        except (SSHCommandError, SSHConnectionError) as exc:
            raise GitQueryError(f"Failed to query remote git: {exc}") from exc
        _raise_for_ownership(log_result.stderr, repo_root)
        if log_result.exit_code != 0 or not log_result.body:
            failures.append(f"{git}: exit code {log_result.exit_code}. {log_result.stderr.strip()}".rstrip())
            continue
        try:
            commit = parse_commit_line(log_result.body)
        except ValueError as exc:
            failures.append(f"{git}: {exc}")
            continue
        logger.debug("Remote git commit %s from %s", commit.short_hash, git)
        return commit

    logger.warning("Remote git query failed for every candidate: %s", " | ".join(failures))
    raise GitQueryError(
        "Failed to read remote git commit timestamp.\n\n"
        "Possible causes:\n"
        "- Git not installed on remote server\n"
        "- Remote path is not in a git repository\n"
        "- SSH connection failed\n\n"
        f"Details: {' | '.join(failures)}"
    )


def compare_git(
    local_repo: Path | str,
    remote_repo: str,
    runner: CommandRunner,
) -> types.ComparisonResult:
    """Recommend a direction from commit timestamps; hashes are informational."""
    local = local_commit(local_repo)
    remote = remote_commit(runner, remote_repo)
    logger.info("Local commit: %s at %s", local.short_hash, _fmt(local.timestamp))
    logger.info("Remote commit: %s at %s", remote.short_hash, _fmt(remote.timestamp))

    result = types.ComparisonResult(local_commit=local, remote_commit=remote)
    if local.timestamp > remote.timestamp:
        result.recommendation = types.Recommendation.SYNC_TO_REMOTE
        result.newer_local.append(f"Local repository (commit {local.short_hash}, {_fmt(local.timestamp)})")
    elif local.timestamp < remote.timestamp:
        result.recommendation = types.Recommendation.SYNC_TO_LOCAL
        result.newer_remote.append(f"Remote repository (commit {remote.short_hash}, {_fmt(remote.timestamp)})")
    else:
        result.recommendation = types.Recommendation.IN_SYNC
    return result


def _raise_for_ownership(stderr: str, repo_path: str) -> None:
    if DUBIOUS_OWNERSHIP_MARKER not in stderr.lower():
        return
    raise GitQueryError(
        "The remote repository is owned by a different user, so git refuses to read it.\n"
        "Run this on the remote server, then retry:\n\n"
        f"    git config --global --add safe.directory {_safe_directory(stderr, repo_path)}"
    )


def _safe_directory(stderr: str, fallback: str) -> str:
    # git prints the exact command it wants in its own hint.
    for line in stderr.splitlines():
        marker = "safe.directory"
        if marker in line and "--add" in line:
            return line.split(marker, 1)[1].strip()
    return shlex.quote(fallback)


def _fmt(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


__all__ = [
    "GitQueryError",
    "REMOTE_GIT_CANDIDATES",
    "compare_git",
    "local_commit",
    "parse_commit_line",
    "remote_commit",
]
