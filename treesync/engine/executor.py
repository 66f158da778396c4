"""Executor for applying a planned mirror over SFTP."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import paramiko

from treesync import cancellation, types
from treesync.ssh import copy as ssh_copy
from treesync.ssh.pool import ConnectionPool
from treesync.ssh.transport import SSHConnectionError

logger = logging.getLogger(__name__)

StatusSink = Callable[[str], None]


class ExecutionError(RuntimeError):
    """Raised when the executor cannot start at all."""


@dataclass
class ExecutionReport:
    """What a run did. ``failed`` pairs each path with the reason it failed."""

    direction: types.Direction
    transferred: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


def apply_plan(
    sync_plan: types.SyncPlan,
    *,
    local_root: Path | str,
    remote_root: str,
    pool: ConnectionPool,
    status: Optional[StatusSink] = None,
    cancel: cancellation.CancelToken | None = None,
    dry_run: bool = False,
) -> ExecutionReport:
    """Delete stale destination files, then copy every planned transfer.

    A failing file is recorded and the run continues with the next one.
    Cancellation stops the run between files and propagates.
    """
    report = ExecutionReport(direction=sync_plan.direction, dry_run=dry_run)
    if sync_plan.is_empty:
        _notify(status, "Nothing to do.")
        return report

    local_base = Path(local_root).expanduser()
    if dry_run:
        for path in sync_plan.to_delete:
            logger.info("Dry-run: Would delete %s", path)
            report.deleted.append(path)
        for entry in sync_plan.transfers:
            logger.info("Dry-run: Would copy %s", entry.path)
            report.transferred.append(entry.path)
        return report

    try:
        with pool.sftp() as sftp:
            _delete_all(sftp, sync_plan, local_base, remote_root, report, status, cancel)
            _transfer_all(sftp, sync_plan, local_base, remote_root, report, status, cancel)
    except SSHConnectionError as exc:
        raise ExecutionError(f"Couldn't connect to remote host: {exc}") from exc
    except paramiko.SSHException as exc:
        raise ExecutionError(f"Couldn't open SFTP session: {exc}") from exc

    logger.info(
        "Sync %s finished: %d copied, %d deleted, %d failed",
        sync_plan.direction.value,
        len(report.transferred),
        len(report.deleted),
        len(report.failed),
    )
    return report


def _delete_all(
    sftp: paramiko.SFTPClient,
    sync_plan: types.SyncPlan,
    local_base: Path,
    remote_root: str,
    report: ExecutionReport,
    status: Optional[StatusSink],
    cancel: cancellation.CancelToken | None,
) -> None:
    total = len(sync_plan.to_delete)
    for index, path in enumerate(sync_plan.to_delete, start=1):
        cancellation.check(cancel)
        _notify(status, f"Deleting {index}/{total}: {path}")
        try:
            if sync_plan.direction == types.Direction.TO_REMOTE:
                ssh_copy.remove_remote_file(sftp, _remote_path(remote_root, path))
            else:
                (local_base / path).unlink(missing_ok=True)
        except (ssh_copy.RemoteCopyError, OSError) as exc:
            logger.error("Failed to delete %s: %s", path, exc)
            report.failed.append((path, str(exc)))
            continue
        report.deleted.append(path)


def _transfer_all(
    sftp: paramiko.SFTPClient,
    sync_plan: types.SyncPlan,
    local_base: Path,
    remote_root: str,
    report: ExecutionReport,
    status: Optional[StatusSink],
    cancel: cancellation.CancelToken | None,
) -> None:
    total = len(sync_plan.transfers)
    for index, entry in enumerate(sync_plan.transfers, start=1):
        cancellation.check(cancel)
        _notify(status, f"Copying {index}/{total}: {entry.path}")
        local_path = local_base / entry.path
        remote_path = _remote_path(remote_root, entry.path)
        try:
            if sync_plan.direction == types.Direction.TO_REMOTE:
                ssh_copy.copy_local_to_remote(sftp, local_path=local_path, remote_path=remote_path, mtime=entry.mtime)
            else:
                ssh_copy.copy_remote_to_local(sftp, remote_path=remote_path, local_path=local_path, mtime=entry.mtime)
        except ssh_copy.RemoteCopyError as exc:
            logger.error("Failed to copy %s: %s", entry.path, exc)
            report.failed.append((entry.path, str(exc)))
            continue
        report.transferred.append(entry.path)


def _remote_path(root: str, rel_path: str) -> str:
    return posixpath.join(root.rstrip("/") or "/", rel_path)


def _notify(status: Optional[StatusSink], message: str) -> None:
    if status is not None:
        status(message)


__all__ = ["ExecutionError", "ExecutionReport", "StatusSink", "apply_plan"]
