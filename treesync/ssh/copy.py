"""File transfer helpers built on top of an SFTP session.

Transfers land in a temporary name beside the target and are renamed over it
only once complete, so a failed transfer never leaves a truncated file with a
fresh timestamp in place of a good copy.
"""

from __future__ import annotations

import errno
import logging
import os
import posixpath
import uuid
from pathlib import Path

import paramiko

logger = logging.getLogger(__name__)


class RemoteCopyError(RuntimeError):
    """Raised when SFTP copy operations fail."""


def temp_name_for(name: str) -> str:
    return f"{name}.tmp_{uuid.uuid4().hex[:8]}"


def copy_local_to_remote(
    sftp: paramiko.SFTPClient,
    *,
    local_path: Path | str,
    remote_path: str,
    mtime: float | None = None,
) -> None:
    """Upload one file, creating missing parent directories.

    When ``mtime`` is given it is applied to the uploaded file so that the
    next comparison sees matching timestamps.
    """
    remote_dir = posixpath.dirname(remote_path)
    ensure_remote_dir(sftp, remote_dir)
    temp_path = posixpath.join(remote_dir, temp_name_for(posixpath.basename(remote_path)))
    try:
        sftp.put(str(local_path), temp_path)
        if mtime is not None:
            sftp.utime(temp_path, (mtime, mtime))
        sftp.posix_rename(temp_path, remote_path)
    except (OSError, paramiko.SSHException) as exc:
        _discard_remote_temp(sftp, temp_path)
        raise RemoteCopyError(f"Upload of {local_path} to {remote_path} failed: {exc}") from exc


def copy_remote_to_local(
    sftp: paramiko.SFTPClient,
    *,
    remote_path: str,
    local_path: Path | str,
    mtime: float | None = None,
) -> None:
    """Download one file, creating missing parent directories."""
    target = Path(local_path)
    temp_path = target.with_name(temp_name_for(target.name))
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        sftp.get(remote_path, str(temp_path))
        if mtime is not None:
            os.utime(temp_path, (mtime, mtime))
        os.replace(temp_path, target)
    except (OSError, paramiko.SSHException) as exc:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as cleanup_exc:
            logger.warning("Couldn't remove partial download %s: %s", temp_path, cleanup_exc)
        raise RemoteCopyError(f"Download of {remote_path} to {target} failed: {exc}") from exc


def _discard_remote_temp(sftp: paramiko.SFTPClient, temp_path: str) -> None:
    try:
        sftp.remove(temp_path)
    except FileNotFoundError:
        pass
    except (OSError, paramiko.SSHException) as exc:
        logger.warning("Couldn't remove partial upload %s: %s", temp_path, exc)


def remove_remote_file(sftp: paramiko.SFTPClient, remote_path: str) -> None:
    try:
        sftp.remove(remote_path)
    except FileNotFoundError:
        logger.debug("SFTP: %s already gone", remote_path)
    except (OSError, paramiko.SSHException) as exc:
        raise RemoteCopyError(f"Removing {remote_path} failed: {exc}") from exc


def ensure_remote_dir(sftp: paramiko.SFTPClient, remote_dir: str) -> None:
    """Create ``remote_dir`` and any missing parents."""
    if not remote_dir or remote_dir == "/":
        return
    missing = []
    current = remote_dir.rstrip("/")
    while current and current != "/":
        try:
            sftp.stat(current)
            break
        except FileNotFoundError:
            missing.append(current)
            current = posixpath.dirname(current)
        except (OSError, paramiko.SSHException) as exc:
            raise RemoteCopyError(f"Couldn't inspect remote directory {current}: {exc}") from exc
    for path in reversed(missing):
        try:
            sftp.mkdir(path)
            logger.debug("SFTP: created remote directory %s", path)
        except OSError as exc:
            # Another borrower may have created it in the meantime.
            if exc.errno == errno.EEXIST or _exists(sftp, path):
                continue
            raise RemoteCopyError(f"Couldn't create remote directory {path}: {exc}") from exc


def _exists(sftp: paramiko.SFTPClient, remote_path: str) -> bool:
    try:
        sftp.stat(remote_path)
    except OSError:
        return False
    return True


__all__ = [
    "RemoteCopyError",
    "copy_local_to_remote",
    "copy_remote_to_local",
    "ensure_remote_dir",
    "remove_remote_file",
    "temp_name_for",
]
