"""Planner: turn two snapshots into a one-way mirror plan."""

from __future__ import annotations

import logging
import math
from typing import Mapping

from treesync import types

logger = logging.getLogger(__name__)


def plan(
    direction: types.Direction,
    local_entries: Mapping[str, types.FileEntry],
    remote_entries: Mapping[str, types.FileEntry],
) -> types.SyncPlan:
    """Compute the transfers and deletions that make the destination mirror the source.

    A source file is transferred when the destination lacks it or holds a
    strictly older copy. Destination files the source lacks are deleted.
    Paths are matched exactly. Timestamps are compared in whole seconds, the
    resolution SFTP carries, so a file just uploaded is not planned again.
    """
    if direction == types.Direction.TO_REMOTE:
        source, destination = local_entries, remote_entries
    else:
        source, destination = remote_entries, local_entries

    out = types.SyncPlan(direction=direction)
    for path in sorted(source):
        entry = source[path]
        existing = destination.get(path)
        if existing is None or _whole_seconds(entry) > _whole_seconds(existing):
            out.transfers.append(entry)
    out.to_delete = sorted(path for path in destination if path not in source)

    logger.debug(
        "Planned %s: %d transfer(s), %d deletion(s)",
        direction.value,
        len(out.transfers),
        len(out.to_delete),
    )
    return out


def _whole_seconds(entry: types.FileEntry) -> int:
    return math.floor(entry.mtime)


__all__ = ["plan"]
