"""Project-wide logging utilities."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

DEFAULT_LEVEL = logging.INFO
VERBOSITY_TO_LEVEL = {
    -2: logging.ERROR,
    -1: logging.WARNING,
    0: logging.INFO,
    1: logging.DEBUG,
}
FILE_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def _level_for_counts(verbose: int = 0, quiet: int = 0) -> int:
    delta = max(-2, min(2, verbose - quiet))
    return VERBOSITY_TO_LEVEL.get(delta, logging.DEBUG if delta > 0 else logging.ERROR)


def configure_logging(
    *,
    verbose: int = 0,
    quiet: int = 0,
    stream: TextIO | None = None,
    log_file: Path | None = None,
) -> None:
    """Configure root logging for CLI usage.

    When ``log_file`` is given, a second handler records DEBUG and above to
    that file regardless of the console verbosity.
    """
    level = _level_for_counts(verbose, quiet)
    handler_stream = stream or sys.stderr

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
        existing.close()

    handler = logging.StreamHandler(handler_stream)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    handler.setLevel(level)
    root_logger.addHandler(handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)
    else:
        root_logger.setLevel(level)
    # paramiko's transport chatter is only useful when debugging connections.
    logging.getLogger("paramiko").setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)


__all__ = ["configure_logging"]
