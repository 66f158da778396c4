"""In-process stand-ins for the remote side used across the test suite.

``FakeSFTP`` serves a real temporary directory as the remote filesystem so
listings, uploads and timestamps behave like they do on a server.
``FakeSSHClient`` answers ``exec_command`` through a responder callable.
"""

from __future__ import annotations

import io
import os
import shlex
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import paramiko

from treesync.ssh import BEGIN_MARKER, END_MARKER, ConnectionPool, ConnectionSettings
from treesync.ssh.transport import SSHResult

Responder = Callable[[str], Tuple[int, str, str]]


class FakeSFTP:
    def __init__(self, base: Path) -> None:
        self.base = Path(base)
        self.listed: List[str] = []
        self.closed = False
        self.fail_listing: set[str] = set()

    def _local(self, remote_path: str) -> Path:
        return self.base / remote_path.lstrip("/")

    def listdir_attr(self, path: str = "."):
        self.listed.append(path)
        if path in self.fail_listing:
            raise PermissionError(13, "Permission denied", path)
        target = self._local(path)
        return [
            paramiko.SFTPAttributes.from_stat(os.lstat(target / name), name) for name in sorted(os.listdir(target))
        ]

    def stat(self, path: str):
        return paramiko.SFTPAttributes.from_stat(os.stat(self._local(path)))

    def mkdir(self, path: str, mode: int = 0o777) -> None:
        os.mkdir(self._local(path))

    def put(self, localpath: str, remotepath: str) -> None:
        shutil.copyfile(localpath, self._local(remotepath))

    def get(self, remotepath: str, localpath: str) -> None:
        shutil.copyfile(self._local(remotepath), localpath)

    def utime(self, path: str, times) -> None:
        os.utime(self._local(path), times)

    def posix_rename(self, oldpath: str, newpath: str) -> None:
        os.replace(self._local(oldpath), self._local(newpath))

    def remove(self, path: str) -> None:
        os.remove(self._local(path))

    def close(self) -> None:
        self.closed = True


class InterruptedSFTP(FakeSFTP):
    """Writes the first half of every transferred file, then drops the connection."""

    def _half_copy(self, source: Path, destination: Path) -> None:
        data = source.read_bytes()
        destination.write_bytes(data[: len(data) // 2])
        raise OSError("connection reset mid-transfer")

    def put(self, localpath: str, remotepath: str) -> None:
        self._half_copy(Path(localpath), self._local(remotepath))

    def get(self, remotepath: str, localpath: str) -> None:
        self._half_copy(self._local(remotepath), Path(localpath))


class _FakeChannel:
    def __init__(self, exit_code: int) -> None:
        self._exit_code = exit_code

    def recv_exit_status(self) -> int:
        return self._exit_code


class _FakeStream(io.BytesIO):
    def __init__(self, data: str, exit_code: int) -> None:
        super().__init__(data.encode("utf-8"))
        self.channel = _FakeChannel(exit_code)


class FakeSSHClient:
    def __init__(self, sftp: Optional[FakeSFTP] = None, responder: Optional[Responder] = None) -> None:
        self._sftp = sftp
        self._responder = responder or (lambda command: (127, "", "command not found"))
        self.commands: List[str] = []
        self.closed = False

    def open_sftp(self) -> FakeSFTP:
        if self._sftp is None:
            raise paramiko.SSHException("SFTP subsystem not available")
        return self._sftp

    def exec_command(self, command: str, timeout=None):
        self.commands.append(command)
        exit_code, stdout, stderr = self._responder(command)
        return None, _FakeStream(stdout, exit_code), _FakeStream(stderr, exit_code)

    def close(self) -> None:
        self.closed = True


def make_pool(sftp: Optional[FakeSFTP] = None, responder: Optional[Responder] = None, size: int = 2):
    """Real :class:`ConnectionPool` whose connections are :class:`FakeSSHClient` objects."""
    clients: List[FakeSSHClient] = []

    def factory(settings: ConnectionSettings) -> FakeSSHClient:
        client = FakeSSHClient(sftp, responder)
        clients.append(client)
        return client

    pool = ConnectionPool(ConnectionSettings(host="example.com"), size=size, client_factory=factory)
    return pool, clients


def marked(body: str) -> str:
    """Wrap ``body`` the way a remote shell prints a marker-wrapped script."""
    return f"Welcome banner\n{BEGIN_MARKER}\n{body}\n{END_MARKER}\n"


def stat_responder(epochs: Dict[str, int], *, fail_batches: bool = False) -> Responder:
    """Answer clock-correction scripts from ``epochs``; unknown paths print 0.

    With ``fail_batches`` only single-path scripts succeed.
    """

    def respond(command: str) -> Tuple[int, str, str]:
        head, _, rest = command.partition("for f in ")
        if not rest:
            return 127, "", "unexpected command"
        paths = shlex.split(rest.partition("; do")[0])
        if fail_batches and len(paths) > 1:
            return 0, marked("\n".join("1" for _ in paths[:-1])), ""
        lines = [str(epochs.get(path, 0)) for path in paths]
        return 0, marked("\n".join(lines)), ""

    return respond


def live_stat_responder(base: Path) -> Responder:
    """Answer clock-correction scripts from the files under ``base``."""

    def respond(command: str) -> Tuple[int, str, str]:
        cd_line = command.partition("cd ")[2].partition(" || exit 1")[0]
        root = base / shlex.split(cd_line)[0].lstrip("/")
        paths = shlex.split(command.partition("for f in ")[2].partition("; do")[0])
        lines = []
        for path in paths:
            try:
                lines.append(str(int(os.stat(root / path).st_mtime)))
            except FileNotFoundError:
                lines.append("0")
        return 0, marked("\n".join(lines)), ""

    return respond


class RecordingRunner:
    """Command channel returning canned :class:`SSHResult` objects in order."""

    def __init__(self, *results: SSHResult) -> None:
        self.results = list(results)
        self.commands: List[str] = []

    def run(self, command: str, timeout: float | None = None) -> SSHResult:
        self.commands.append(command)
        if not self.results:
            raise AssertionError(f"unexpected command: {command}")
        return self.results.pop(0)
