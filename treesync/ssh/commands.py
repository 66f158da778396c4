"""Helpers for executing remote commands with magic markers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol

from .transport import SSHResult

BEGIN_MARKER = "__TS_BEGIN__"
END_MARKER = "__TS_END__"


class CommandRunner(Protocol):
    """Anything able to run a shell command on the remote host."""

    def run(self, command: str, timeout: float | None = None) -> SSHResult:
        ...


@dataclass
class MarkerResult:
    exit_code: int
    body: str
    stderr: str


def wrap_remote_command(script: str) -> str:
    """Print markers around a shell snippet and preserve its exit status."""
    return f"printf '{BEGIN_MARKER}\\n'; {{ {script}\n}}; __ts_rc=$?; printf '{END_MARKER}\\n'; exit $__ts_rc"


def run_with_markers(
    runner: CommandRunner,
    script: str,
    *,
    timeout: float | None = None,
) -> MarkerResult:
    """Run ``script`` and keep only the output printed between the markers.

    Login banners and shell profile noise end up outside the markers.
    """
    ssh_result = runner.run(wrap_remote_command(script), timeout=timeout)
    return MarkerResult(
        exit_code=ssh_result.exit_code,
        body=_extract_between_markers(ssh_result.stdout),
        stderr=ssh_result.stderr,
    )


def _extract_between_markers(stdout: str) -> str:
    lines = stdout.splitlines()
    capturing = False
    body_lines: List[str] = []
    for line in lines:
        if not capturing:
            if line.strip() == BEGIN_MARKER:
                capturing = True
            continue
        if line.strip() == END_MARKER:
            break
        body_lines.append(line)
    return "\n".join(body_lines).strip()


__all__ = ["BEGIN_MARKER", "CommandRunner", "END_MARKER", "MarkerResult", "run_with_markers", "wrap_remote_command"]
