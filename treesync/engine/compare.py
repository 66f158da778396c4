"""Comparator: pair two snapshots and recommend a sync direction.

Pairs are classified by size first and timestamp second. When sizes match,
timestamp differences that look like a timezone offset or like the latency of
a just-finished transfer are not treated as edits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Mapping, Optional

from treesync import cancellation, types

logger = logging.getLogger(__name__)

DECISION_THRESHOLD = 3
TIMEZONE_OFFSETS_HOURS = (1.0, 2.0, 3.0, 4.0, 5.0, 5.5, 6.0)
TIMEZONE_TOLERANCE_SECONDS = 5 * 60
RECENT_SYNC_TOLERANCE_SECONDS = 5.0
LOGGED_PATHS_PER_CATEGORY = 20


class Classification:
    IN_SYNC = "in_sync"
    NEWER_LOCAL = "newer_local"
    NEWER_REMOTE = "newer_remote"


def is_timezone_shift(time_diff: float) -> bool:
    """True when ``|time_diff|`` sits within tolerance of a whole-zone offset."""
    magnitude = abs(time_diff)
    return any(
        abs(magnitude - hours * 3600) <= TIMEZONE_TOLERANCE_SECONDS for hours in TIMEZONE_OFFSETS_HOURS
    )


def is_recent_sync_jitter(time_diff: float) -> bool:
    return abs(time_diff) <= RECENT_SYNC_TOLERANCE_SECONDS


def classify_pair(local: types.FileEntry, remote: types.FileEntry) -> str:
    """Classify one path present on both sides."""
    size_diff = local.size - remote.size
    time_diff = local.mtime - remote.mtime
    if size_diff == 0:
        if time_diff == 0:
            return Classification.IN_SYNC
        if is_timezone_shift(time_diff) or is_recent_sync_jitter(time_diff):
            return Classification.IN_SYNC
    # Equal timestamps favour the remote copy.
    if time_diff > 0:
        return Classification.NEWER_LOCAL
    return Classification.NEWER_REMOTE


@dataclass
class _Tally:
    newer_local: List[str] = field(default_factory=list)
    newer_remote: List[str] = field(default_factory=list)
    local_only: List[str] = field(default_factory=list)
    remote_only: List[str] = field(default_factory=list)
    local_example: str = ""
    remote_example: str = ""


def compare(
    local: Mapping[str, types.FileEntry],
    remote: Mapping[str, types.FileEntry],
    mode: types.AnalysisMode = types.AnalysisMode.FULL,
    *,
    cancel: cancellation.CancelToken | None = None,
) -> types.ComparisonResult:
    """Compare two snapshots and build a :class:`ComparisonResult`."""
    local_case_map = types.fold_case_map(local)
    remote_case_map = types.fold_case_map(remote)
    tally = _Tally()
    early: Optional[types.Recommendation] = None

    for path, local_entry in local.items():
        cancellation.check(cancel)
        remote_entry = remote.get(path)
        if remote_entry is None:
            folded = remote_case_map.get(path.lower())
            remote_entry = remote.get(folded) if folded is not None else None

        if remote_entry is None:
            tally.local_only.append(path)
            if not tally.local_example:
                tally.local_example = f"Local only: {path} {_fmt(local_entry.mtime)}"
            continue

        verdict = classify_pair(local_entry, remote_entry)
        if verdict == Classification.NEWER_LOCAL:
            tally.newer_local.append(path)
            if not tally.local_example:
                tally.local_example = (
                    f"Local: {path} {_fmt(local_entry.mtime)} ({local_entry.size} bytes), "
                    f"Remote: {_fmt(remote_entry.mtime)} ({remote_entry.size} bytes)"
                )
        elif verdict == Classification.NEWER_REMOTE:
            tally.newer_remote.append(path)
            if not tally.remote_example:
                tally.remote_example = (
                    f"Remote: {remote_entry.path} {_fmt(remote_entry.mtime)} ({remote_entry.size} bytes), "
                    f"Local: {_fmt(local_entry.mtime)} ({local_entry.size} bytes)"
                )

        if mode == types.AnalysisMode.QUICK:
            early = _early_decision(tally)
            if early is not None:
                logger.info(
                    "Quick mode: %d files newer on one side; deciding without a full scan.", DECISION_THRESHOLD
                )
                break

    if early is None:
        for path, remote_entry in remote.items():
            cancellation.check(cancel)
            if path in local or path.lower() in local_case_map:
                continue
            tally.remote_only.append(path)
            if not tally.remote_example:
                tally.remote_example = f"Remote only: {path} {_fmt(remote_entry.mtime)}"

    result = types.ComparisonResult(
        newer_local=tally.newer_local,
        newer_remote=tally.newer_remote,
        local_only=tally.local_only,
        remote_only=tally.remote_only,
        early_decision=early is not None,
        local_case_map=local_case_map,
        remote_case_map=remote_case_map,
        local_example=tally.local_example,
        remote_example=tally.remote_example,
    )
    result.recommendation = early if early is not None else recommend(result)
    _log_result(result)
    return result


def recommend(result: types.ComparisonResult) -> types.Recommendation:
    """Reduce category totals to a single direction; ties go to the remote side."""
    local_total = result.total_local_needs_sync
    remote_total = result.total_remote_needs_sync
    if local_total == 0 and remote_total == 0:
        return types.Recommendation.IN_SYNC
    if remote_total == 0:
        return types.Recommendation.SYNC_TO_REMOTE
    if local_total == 0:
        return types.Recommendation.SYNC_TO_LOCAL
    if local_total >= remote_total:
        return types.Recommendation.SYNC_TO_REMOTE
    return types.Recommendation.SYNC_TO_LOCAL


def _early_decision(tally: _Tally) -> Optional[types.Recommendation]:
    if len(tally.newer_local) >= DECISION_THRESHOLD and not tally.newer_remote and not tally.local_only:
        return types.Recommendation.SYNC_TO_REMOTE
    if len(tally.newer_remote) >= DECISION_THRESHOLD and not tally.newer_local and not tally.remote_only:
        return types.Recommendation.SYNC_TO_LOCAL
    return None


def _log_result(result: types.ComparisonResult) -> None:
    for title, paths in (
        ("Files newer locally", result.newer_local),
        ("Files newer remotely", result.newer_remote),
        ("Files only present locally", result.local_only),
        ("Files only present remotely", result.remote_only),
    ):
        if not paths:
            continue
        logger.debug("%s (%d):", title, len(paths))
        for path in paths[:LOGGED_PATHS_PER_CATEGORY]:
            logger.debug("  - %s", path)
        if len(paths) > LOGGED_PATHS_PER_CATEGORY:
            logger.debug("  ... and %d more", len(paths) - LOGGED_PATHS_PER_CATEGORY)
    logger.info(
        "Comparison: %d newer locally, %d newer remotely, %d local-only, %d remote-only -> %s",
        result.newer_local_count,
        result.newer_remote_count,
        result.local_only_count,
        result.remote_only_count,
        result.recommendation.value,
    )


def _fmt(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


__all__ = [
    "Classification",
    "DECISION_THRESHOLD",
    "RECENT_SYNC_TOLERANCE_SECONDS",
    "TIMEZONE_OFFSETS_HOURS",
    "TIMEZONE_TOLERANCE_SECONDS",
    "classify_pair",
    "compare",
    "is_recent_sync_jitter",
    "is_timezone_shift",
    "recommend",
]
