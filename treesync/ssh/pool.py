"""Bounded pool of SSH connections shared by one analysis or sync run."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List

import paramiko

from .transport import ConnectionSettings, SSHResult, open_client, run_ssh_command

logger = logging.getLogger(__name__)

MAX_CONNECTIONS = 5

ClientFactory = Callable[[ConnectionSettings], paramiko.SSHClient]


class ConnectionPool:
    """Hands out at most ``size`` connections, each to one borrower at a time.

    Connections are opened lazily and reused until :meth:`close`, which must be
    called at the end of every run (the pool is a context manager).
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        *,
        size: int = MAX_CONNECTIONS,
        client_factory: ClientFactory = open_client,
    ) -> None:
        if size < 1:
            raise ValueError("Pool size must be at least 1.")
        self.settings = settings
        self.size = size
        self._client_factory = client_factory
        self._slots = threading.BoundedSemaphore(size)
        self._lock = threading.Lock()
        self._idle: List[paramiko.SSHClient] = []
        self._clients: List[paramiko.SSHClient] = []
        self._sftp: Dict[int, paramiko.SFTPClient] = {}
        self._closed = False

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def connection(self) -> Iterator[paramiko.SSHClient]:
        """Borrow a connection exclusively for the duration of the block."""
        self._slots.acquire()
        try:
            client = self._checkout()
            try:
                yield client
            finally:
                self._checkin(client)
        finally:
            self._slots.release()

    @contextmanager
    def sftp(self) -> Iterator[paramiko.SFTPClient]:
        """Borrow the SFTP session bound to one pooled connection."""
        with self.connection() as client:
            key = id(client)
            with self._lock:
                session = self._sftp.get(key)
            if session is None:
                session = client.open_sftp()
                with self._lock:
                    self._sftp[key] = session
            yield session

    def run(self, command: str, timeout: float | None = None) -> SSHResult:
        """Run a shell command on any free connection."""
        with self.connection() as client:
            return run_ssh_command(client, command, timeout=timeout)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sessions = list(self._sftp.values())
            clients = list(self._clients)
            self._sftp.clear()
            self._clients.clear()
            self._idle.clear()
        for session in sessions:
            try:
                session.close()
            except (paramiko.SSHException, OSError) as exc:
                logger.debug("SSH: error closing SFTP session: %s", exc)
        for client in clients:
            try:
                client.close()
            except (paramiko.SSHException, OSError) as exc:
                logger.debug("SSH: error closing connection: %s", exc)
        if clients:
            logger.debug("SSH: closed %d pooled connection(s)", len(clients))

    @property
    def open_connections(self) -> int:
        with self._lock:
            return len(self._clients)

    def _checkout(self) -> paramiko.SSHClient:
        with self._lock:
            if self._closed:
                raise RuntimeError("Connection pool is closed.")
            if self._idle:
                return self._idle.pop()
        # Connect outside the lock so other borrowers are not blocked.
        client = self._client_factory(self.settings)
        with self._lock:
            self._clients.append(client)
            logger.debug("SSH: opened pooled connection %d/%d", len(self._clients), self.size)
        return client

    def _checkin(self, client: paramiko.SSHClient) -> None:
        with self._lock:
            if not self._closed:
                self._idle.append(client)


__all__ = ["ClientFactory", "ConnectionPool", "MAX_CONNECTIONS"]
