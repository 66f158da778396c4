"""Tab completion support for the treesync CLI."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable

from . import config, types


def profile_completer(prefix: str, parsed_args: argparse.Namespace, **kwargs) -> Iterable[str]:
    """
    Complete profile names from the user's configuration directory.

    Args:
        prefix: The current partial profile name being typed
        parsed_args: Parsed arguments so far
        **kwargs: Additional context from argcomplete

    Returns:
        List of matching profile names
    """
    config_dir_arg = getattr(parsed_args, "config_dir", None)
    base = Path(config_dir_arg).expanduser() if config_dir_arg else None
    try:
        names = config.list_profiles(base)
    except OSError:
        return []
    return [name for name in names if name.startswith(prefix)]


def mode_completer(prefix: str, parsed_args: argparse.Namespace, **kwargs) -> Iterable[str]:
    """Complete analysis mode names."""
    return [mode.value for mode in types.AnalysisMode if mode.value.startswith(prefix)]


def direction_completer(prefix: str, parsed_args: argparse.Namespace, **kwargs) -> Iterable[str]:
    return [direction.value for direction in types.Direction if direction.value.startswith(prefix)]


__all__ = [
    "direction_completer",
    "mode_completer",
    "profile_completer",
]
