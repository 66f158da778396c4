"""Utilities for opening SSH connections and executing remote commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import paramiko

logger = logging.getLogger(__name__)

DEFAULT_PORT = 22
DEFAULT_CONNECT_TIMEOUT = 15.0


class SSHCommandError(RuntimeError):
    """Raised when an SSH command cannot be executed."""


class SSHConnectionError(RuntimeError):
    """Raised when a connection to the remote host cannot be established."""


@dataclass(frozen=True)
class ConnectionSettings:
    """Parameters needed to reach the remote host."""

    host: str
    port: int = DEFAULT_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    key_file: Optional[str] = None
    use_agent: bool = True
    secure: bool = True
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    def describe(self) -> str:
        user = f"{self.username}@" if self.username else ""
        return f"{user}{self.host}:{self.port}"


@dataclass
class SSHResult:
    exit_code: int
    stdout: str
    stderr: str


def open_client(settings: ConnectionSettings) -> paramiko.SSHClient:
    """Connect and authenticate a new SSH client."""
    client = paramiko.SSHClient()
    client.load_system_host_keys()
    if settings.secure:
        client.set_missing_host_key_policy(paramiko.RejectPolicy())
    else:
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    logger.debug("SSH: connecting to %s", settings.describe())
    try:
        client.connect(
            hostname=settings.host,
            port=settings.port,
            username=settings.username,
            password=settings.password or None,
            key_filename=settings.key_file or None,
            timeout=settings.connect_timeout,
            banner_timeout=settings.connect_timeout,
            auth_timeout=settings.connect_timeout,
            allow_agent=settings.use_agent,
            look_for_keys=settings.use_agent and not settings.password,
        )
    except paramiko.AuthenticationException as exc:
        client.close()
        raise SSHConnectionError(f"Authentication failed for {settings.describe()}: {exc}") from exc
    except paramiko.BadHostKeyException as exc:
        client.close()
        raise SSHConnectionError(f"Host key mismatch for {settings.host}: {exc}") from exc
    except paramiko.SSHException as exc:
        client.close()
        raise SSHConnectionError(f"Couldn't connect to {settings.describe()}: {exc}") from exc
    except OSError as exc:
        client.close()
        raise SSHConnectionError(f"Couldn't connect to {settings.describe()}: {exc}") from exc
    logger.debug("SSH: connected to %s", settings.describe())
    return client


def run_ssh_command(
    client: paramiko.SSHClient,
    command: str,
    *,
    timeout: float | None = None,
) -> SSHResult:
    """Execute a shell command on an open client and capture its output."""
    try:
        _, stdout_file, stderr_file = client.exec_command(command, timeout=timeout)
        stdout = stdout_file.read().decode("utf-8", errors="replace")
        stderr = stderr_file.read().decode("utf-8", errors="replace")
        exit_code = stdout_file.channel.recv_exit_status()
    except (paramiko.SSHException, OSError) as exc:
        raise SSHCommandError(f"Failed to execute SSH command: {exc}") from exc
    return SSHResult(
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
    )


__all__ = [
    "ConnectionSettings",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_PORT",
    "SSHCommandError",
    "SSHConnectionError",
    "SSHResult",
    "open_client",
    "run_ssh_command",
]
