"""Run orchestration: one analysis or one sync per call, one pool per run."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from treesync import cancellation, types
from treesync.config import ProfileConfig
from treesync.ssh.pool import ConnectionPool

from . import clock, compare, executor, git_compare, planner, snapshot

logger = logging.getLogger(__name__)

PoolFactory = Callable[..., ConnectionPool]


class SyncService:
    """Analyze and mirror the trees described by one profile.

    ``status`` receives short progress messages from the calling thread.
    ``cancel`` is checked throughout; cancellation propagates as
    :class:`~treesync.cancellation.OperationCancelled`.
    """

    def __init__(
        self,
        profile: ProfileConfig,
        *,
        status: Optional[executor.StatusSink] = None,
        cancel: cancellation.CancelToken | None = None,
        pool_factory: PoolFactory = ConnectionPool,
    ) -> None:
        self.profile = profile
        self.status = status
        self.cancel = cancel or cancellation.CancelToken()
        self._pool_factory = pool_factory
        self.rules = profile.to_exclusion_rules()

    @property
    def local_root(self) -> str:
        return str(self.profile.local_path)

    @property
    def remote_root(self) -> str:
        return self.profile.paths.remote

    def analyze(self, mode: types.AnalysisMode | None = None) -> types.ComparisonResult:
        """Compare both trees and recommend a direction.

        Scan and Git failures come back as an ``UNKNOWN`` result carrying the
        error message, as does a local tree without a single included file.
        """
        resolved_mode = types.AnalysisMode(mode or self.profile.analysis.mode)
        logger.info("Analyzing %s (%s mode)", self.profile.profile.name, resolved_mode.value)
        max_depth = snapshot.max_depth_for(resolved_mode)
        with self._open_pool() as pool:
            try:
                if resolved_mode == types.AnalysisMode.GIT:
                    self._notify("Reading latest commits...")
                    result = git_compare.compare_git(self.local_root, self.remote_root, pool)
                    self._notify("Analysis complete.")
                    return result
                local_entries = self._scan_local(purpose=types.Purpose.ANALYSIS, max_depth=max_depth)
                if not local_entries:
                    message = f"No local files found in {self.local_root}"
                    logger.error("Analysis failed: %s", message)
                    self._notify(message)
                    return types.ComparisonResult.failed(message)
                remote_entries = self._scan_remote(pool, purpose=types.Purpose.ANALYSIS, max_depth=max_depth)
            except (snapshot.SnapshotError, git_compare.GitQueryError) as exc:
                logger.error("Analysis failed: %s", exc)
                return types.ComparisonResult.failed(str(exc))
            self._notify("Comparing files...")
            result = compare.compare(local_entries, remote_entries, resolved_mode, cancel=self.cancel)
        self._notify("Analysis complete.")
        return result

    def plan_sync(self, direction: types.Direction) -> types.SyncPlan:
        """Rescan both trees in full and plan a mirror in ``direction``."""
        with self._open_pool() as pool:
            return self._plan(pool, direction)

    def sync(
        self,
        direction: types.Direction,
        *,
        dry_run: bool = False,
    ) -> Tuple[types.SyncPlan, executor.ExecutionReport]:
        """Plan and apply a mirror in ``direction`` over a single pool."""
        with self._open_pool() as pool:
            sync_plan = self._plan(pool, direction)
            report = self._apply(pool, sync_plan, dry_run=dry_run)
        return sync_plan, report

    def execute(self, sync_plan: types.SyncPlan, *, dry_run: bool = False) -> executor.ExecutionReport:
        """Apply a plan produced by :meth:`plan_sync`, e.g. after user confirmation."""
        with self._open_pool() as pool:
            return self._apply(pool, sync_plan, dry_run=dry_run)

    def _apply(self, pool: ConnectionPool, sync_plan: types.SyncPlan, *, dry_run: bool) -> executor.ExecutionReport:
        self._notify(f"Applying {len(sync_plan.transfers)} copy and {len(sync_plan.to_delete)} delete operation(s)...")
        return executor.apply_plan(
            sync_plan,
            local_root=self.local_root,
            remote_root=self.remote_root,
            pool=pool,
            status=self.status,
            cancel=self.cancel,
            dry_run=dry_run,
        )

    def _plan(self, pool: ConnectionPool, direction: types.Direction) -> types.SyncPlan:
        local_entries = self._scan_local(purpose=types.Purpose.SYNC, max_depth=None)
        remote_entries = self._scan_remote(pool, purpose=types.Purpose.SYNC, max_depth=None)
        source_is_local = direction == types.Direction.TO_REMOTE
        source = local_entries if source_is_local else remote_entries
        destination = remote_entries if source_is_local else local_entries
        if not source and destination:
            empty_root = self.local_root if source_is_local else self.remote_root
            raise snapshot.SnapshotError(
                f"No files found in {empty_root}; refusing to delete all {len(destination)} file(s) on the other side."
            )
        return planner.plan(direction, local_entries, remote_entries)

    def _scan_local(self, *, purpose: types.Purpose, max_depth: Optional[int]):
        self._notify("Scanning local files...")
        local = snapshot.build_snapshot(
            self.local_root,
            rules=self.rules,
            purpose=purpose,
            max_depth=max_depth,
            cancel=self.cancel,
        )
        logger.info("Found %d local files", len(local.entries))
        self._notify(f"Found {len(local.entries)} local file(s).")
        return local.entries

    def _scan_remote(self, pool: ConnectionPool, *, purpose: types.Purpose, max_depth: Optional[int]):
        self._notify("Scanning remote files...")
        remote = snapshot.build_remote_snapshot(
            pool,
            self.remote_root,
            rules=self.rules,
            purpose=purpose,
            max_depth=max_depth,
            cancel=self.cancel,
        )
        logger.info("Found %d remote files", len(remote.entries))
        self._notify(f"Found {len(remote.entries)} remote file(s).")
        self._notify("Correcting remote timestamps...")
        return clock.correct_remote_times(
            pool,
            self.remote_root,
            remote.entries,
            max_workers=pool.size,
            cancel=self.cancel,
        )

    def _open_pool(self) -> ConnectionPool:
        return self._pool_factory(self.profile.to_connection_settings())

    def _notify(self, message: str) -> None:
        if self.status is not None:
            self.status(message)


__all__ = ["SyncService"]
