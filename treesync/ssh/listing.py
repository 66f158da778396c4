"""Remote directory listing over SFTP."""

from __future__ import annotations

import logging
import posixpath
import stat
from typing import Dict, Optional

import paramiko

from treesync import cancellation, types
from treesync.exclusions import ExclusionRules

logger = logging.getLogger(__name__)


class RemoteListingError(RuntimeError):
    """Raised when remote listing fails."""


def list_remote_entries(
    sftp: paramiko.SFTPClient,
    root: str,
    *,
    rules: ExclusionRules,
    purpose: types.Purpose,
    max_depth: Optional[int] = None,
    cancel: cancellation.CancelToken | None = None,
) -> Dict[str, types.FileEntry]:
    """List regular files under ``root`` keyed by relative path.

    Timestamps are the ones reported by the SFTP server; see
    :mod:`treesync.engine.clock` for correcting them.
    """
    entries: Dict[str, types.FileEntry] = {}
    _walk(sftp, root.rstrip("/") or "/", "", 0, entries, rules, purpose, max_depth, cancel)
    logger.debug("SFTP: found %d remote files under %s", len(entries), root)
    return entries


def _walk(
    sftp: paramiko.SFTPClient,
    remote_dir: str,
    rel_dir: str,
    depth: int,
    entries: Dict[str, types.FileEntry],
    rules: ExclusionRules,
    purpose: types.Purpose,
    max_depth: Optional[int],
    cancel: cancellation.CancelToken | None,
) -> None:
    cancellation.check(cancel)
    logger.debug("SFTP: listing %s", remote_dir)
    try:
        items = sftp.listdir_attr(remote_dir)
    except (OSError, paramiko.SSHException) as exc:
        raise RemoteListingError(f"Couldn't list remote directory {remote_dir}: {exc}") from exc

    for item in items:
        name = item.filename
        if name in (".", ".."):
            continue
        if not types.is_portable_name(name):
            logger.debug("SFTP: skipping %s in %s: name cannot be expressed as a relative path", name, remote_dir)
            continue
        mode = item.st_mode or 0
        rel_path = f"{rel_dir}/{name}" if rel_dir else name
        if stat.S_ISDIR(mode):
            if rules.should_exclude(name, types.EntryKind.FOLDER, purpose):
                logger.debug("SFTP: skipping excluded directory %s", rel_path)
                continue
            if max_depth is not None and depth >= max_depth:
                continue
            _walk(
                sftp,
                posixpath.join(remote_dir, name),
                rel_path,
                depth + 1,
                entries,
                rules,
                purpose,
                max_depth,
                cancel,
            )
        elif stat.S_ISREG(mode):
            if rules.should_exclude(name, types.EntryKind.FILE, purpose):
                continue
            entries[rel_path] = types.FileEntry(
                path=rel_path,
                size=item.st_size or 0,
                mtime=float(item.st_mtime or 0),
            )


__all__ = ["RemoteListingError", "list_remote_entries"]
