"""SSH and SFTP helpers for treesync."""

from .commands import BEGIN_MARKER, END_MARKER, CommandRunner, MarkerResult, run_with_markers, wrap_remote_command
from .copy import RemoteCopyError, copy_local_to_remote, copy_remote_to_local, ensure_remote_dir, remove_remote_file
from .listing import RemoteListingError, list_remote_entries
from .pool import ConnectionPool, MAX_CONNECTIONS
from .transport import (
    ConnectionSettings,
    SSHCommandError,
    SSHConnectionError,
    SSHResult,
    open_client,
    run_ssh_command,
)

__all__ = [
    "BEGIN_MARKER",
    "END_MARKER",
    "CommandRunner",
    "ConnectionPool",
    "ConnectionSettings",
    "MAX_CONNECTIONS",
    "MarkerResult",
    "RemoteCopyError",
    "RemoteListingError",
    "SSHCommandError",
    "SSHConnectionError",
    "SSHResult",
    "copy_local_to_remote",
    "copy_remote_to_local",
    "ensure_remote_dir",
    "list_remote_entries",
    "open_client",
    "remove_remote_file",
    "run_ssh_command",
    "run_with_markers",
    "wrap_remote_command",
]
