"""Snapshot builders for the local and remote trees."""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import paramiko

from treesync import cancellation, types
from treesync.exclusions import ExclusionRules
from treesync.ssh import listing
from treesync.ssh.pool import ConnectionPool
from treesync.ssh.transport import SSHConnectionError

logger = logging.getLogger(__name__)

# Root files plus one level of subdirectories.
QUICK_MAX_DEPTH = 1


class SnapshotError(RuntimeError):
    """Raised when a tree cannot be scanned."""


@dataclass(frozen=True)
class SnapshotResult:
    root: str
    entries: Dict[str, types.FileEntry]


def max_depth_for(mode: types.AnalysisMode) -> Optional[int]:
    return QUICK_MAX_DEPTH if mode == types.AnalysisMode.QUICK else None


def build_snapshot(
    root: Path | str,
    *,
    rules: ExclusionRules | None = None,
    purpose: types.Purpose = types.Purpose.ANALYSIS,
    max_depth: Optional[int] = None,
    cancel: cancellation.CancelToken | None = None,
) -> SnapshotResult:
    """Walk a local directory tree and record every included regular file."""
    base = Path(root).expanduser()
    if not base.exists():
        raise SnapshotError(f"Local folder doesn't exist: {base}")
    if not base.is_dir():
        raise SnapshotError(f"Local path {base} is not a directory.")

    resolved_rules = rules or ExclusionRules.build()
    entries: Dict[str, types.FileEntry] = {}

    def _raise(exc: OSError) -> None:
        raise SnapshotError(f"Error scanning {exc.filename}: {exc.strerror or exc}") from exc

    for current_root, dirs, files in os.walk(base, onerror=_raise):
        cancellation.check(cancel)
        current_path = Path(current_root)
        rel_dir = current_path.relative_to(base)
        depth = 0 if str(rel_dir) == "." else len(rel_dir.parts)

        if max_depth is not None and depth >= max_depth:
            dirs[:] = []
        else:
            dirs[:] = [
                d
                for d in dirs
                if not resolved_rules.should_exclude(d, types.EntryKind.FOLDER, purpose)
                and not (current_path / d).is_symlink()
                and _portable(d, current_path)
            ]

        for name in files:
            if resolved_rules.should_exclude(name, types.EntryKind.FILE, purpose):
                continue
            if not _portable(name, current_path):
                continue
            file_path = current_path / name
            try:
                stat_result = file_path.lstat()
            except FileNotFoundError:
                logger.debug("Skipping %s: removed during the scan", file_path)
                continue
            except OSError as exc:
                raise SnapshotError(f"Error reading {file_path}: {exc.strerror or exc}") from exc
            if not stat.S_ISREG(stat_result.st_mode):
                continue
            rel_file = name if depth == 0 else f"{rel_dir.as_posix()}/{name}"
            entries[rel_file] = types.FileEntry(path=rel_file, size=stat_result.st_size, mtime=stat_result.st_mtime)

    logger.debug("Found %d local files under %s", len(entries), base)
    return SnapshotResult(root=str(base), entries=entries)


def _portable(name: str, parent: Path) -> bool:
    if types.is_portable_name(name):
        return True
    logger.debug("Skipping %s in %s: name cannot be expressed as a relative path", name, parent)
    return False


def build_remote_snapshot(
    pool: ConnectionPool,
    root: str,
    *,
    rules: ExclusionRules | None = None,
    purpose: types.Purpose = types.Purpose.ANALYSIS,
    max_depth: Optional[int] = None,
    cancel: cancellation.CancelToken | None = None,
) -> SnapshotResult:
    """List the remote tree through one pooled SFTP session."""
    resolved_rules = rules or ExclusionRules.build()
    try:
        with pool.sftp() as sftp:
            entries = listing.list_remote_entries(
                sftp,
                root,
                rules=resolved_rules,
                purpose=purpose,
                max_depth=max_depth,
                cancel=cancel,
            )
    except SSHConnectionError as exc:
        raise SnapshotError(f"Couldn't connect to remote host: {exc}") from exc
    except listing.RemoteListingError as exc:
        raise SnapshotError(str(exc)) from exc
    except (paramiko.SSHException, OSError) as exc:
        raise SnapshotError(f"Couldn't open SFTP session: {exc}") from exc
    return SnapshotResult(root=root, entries=entries)


__all__ = [
    "QUICK_MAX_DEPTH",
    "SnapshotError",
    "SnapshotResult",
    "build_remote_snapshot",
    "build_snapshot",
    "max_depth_for",
]
