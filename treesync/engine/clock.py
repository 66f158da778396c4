"""Replace SFTP-reported remote timestamps with authoritative UTC values.

SFTP listings can carry timestamps with server-local or truncated semantics.
The remote shell's ``stat`` reports epoch seconds, which are unambiguous, so
the corrector asks for them in batches and overwrites the listed values.
Failures only reduce accuracy: an entry that cannot be resolved keeps the
timestamp it was listed with.
"""

from __future__ import annotations

import logging
import shlex
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

import paramiko

from treesync import cancellation, types
from treesync.ssh.commands import CommandRunner, run_with_markers
from treesync.ssh.transport import SSHCommandError, SSHConnectionError

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
COMMAND_TIMEOUT = 60.0

_RECOVERABLE = (SSHCommandError, SSHConnectionError, paramiko.SSHException, OSError)


class BatchQueryError(RuntimeError):
    """Raised when a batch round trip does not yield one line per path."""


def build_stat_script(root: str, paths: Sequence[str]) -> str:
    """Shell snippet printing one epoch-seconds line per path, ``0`` if unknown.

    GNU ``stat -c %Y`` is tried first, then BSD ``stat -f %m``.
    """
    quoted = " ".join(shlex.quote(path) for path in paths)
    return (
        f"cd {shlex.quote(root)} || exit 1\n"
        f"for f in {quoted}; do "
        'stat -c %Y -- "$f" 2>/dev/null || stat -f %m -- "$f" 2>/dev/null || echo 0; '
        "done"
    )


def parse_epoch(line: str) -> Optional[float]:
    try:
        value = int(line.strip())
    except ValueError:
        return None
    if value <= 0:
        return None
    return float(value)


def query_batch(runner: CommandRunner, root: str, paths: Sequence[str]) -> List[Optional[float]]:
    """Fetch epoch seconds for ``paths`` in a single round trip."""
    result = run_with_markers(runner, build_stat_script(root, paths), timeout=COMMAND_TIMEOUT)
    if result.exit_code != 0:
        raise BatchQueryError(result.stderr.strip() or f"stat batch exited with {result.exit_code}")
    lines = result.body.splitlines() if result.body else []
    if len(lines) != len(paths):
        raise BatchQueryError(f"expected {len(paths)} timestamps, got {len(lines)}")
    return [parse_epoch(line) for line in lines]


def correct_remote_times(
    runner: CommandRunner,
    root: str,
    entries: Mapping[str, types.FileEntry],
    *,
    batch_size: int = BATCH_SIZE,
    max_workers: int = 1,
    cancel: cancellation.CancelToken | None = None,
) -> Dict[str, types.FileEntry]:
    """Return a copy of ``entries`` with authoritative remote timestamps.

    Only cancellation escapes; every other failure leaves the listed
    timestamps in place for the affected paths.
    """
    corrected: Dict[str, types.FileEntry] = dict(entries)
    paths = sorted(entries)
    if not paths:
        return corrected
    batches = [paths[i : i + batch_size] for i in range(0, len(paths), batch_size)]
    logger.debug("Correcting %d remote timestamps in %d batch(es)", len(paths), len(batches))

    updated = 0
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        pending: Dict[Future, List[str]] = {}
        try:
            for batch in batches:
                cancellation.check(cancel)
                pending[pool.submit(_resolve_batch, runner, root, batch, cancel)] = batch
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    pending.pop(future)
                    for path, epoch in future.result().items():
                        if epoch is None:
                            continue
                        if epoch != corrected[path].mtime:
                            corrected[path] = replace(corrected[path], mtime=epoch)
                            updated += 1
                cancellation.check(cancel)
        except cancellation.OperationCancelled:
            for future in pending:
                future.cancel()
            raise

    logger.debug("Remote clock correction updated %d of %d timestamps", updated, len(paths))
    return corrected


def _resolve_batch(
    runner: CommandRunner,
    root: str,
    batch: List[str],
    cancel: cancellation.CancelToken | None,
) -> Dict[str, Optional[float]]:
    cancellation.check(cancel)
    try:
        return dict(zip(batch, query_batch(runner, root, batch)))
    except (BatchQueryError, *_RECOVERABLE) as exc:
        logger.warning("Timestamp batch of %d failed (%s); querying files one by one.", len(batch), exc)

    resolved: Dict[str, Optional[float]] = {}
    for path in batch:
        cancellation.check(cancel)
        try:
            resolved[path] = query_batch(runner, root, [path])[0]
        except (BatchQueryError, *_RECOVERABLE) as exc:
            logger.debug("Keeping listed timestamp for %s: %s", path, exc)
            resolved[path] = None
    return resolved


__all__ = [
    "BATCH_SIZE",
    "BatchQueryError",
    "build_stat_script",
    "correct_remote_times",
    "parse_epoch",
    "query_batch",
]
