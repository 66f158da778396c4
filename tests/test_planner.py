"""Tests for the mirror planner."""

from __future__ import annotations

import random
import unittest

from treesync import types
from treesync.engine import planner

T = 1_700_000_000.0


def entry(path: str, mtime: float = T, size: int = 1) -> types.FileEntry:
    return types.FileEntry(path=path, size=size, mtime=mtime)


def snap(*entries: types.FileEntry):
    return {e.path: e for e in entries}


class TestPlanner(unittest.TestCase):
    def test_to_remote_copies_missing_and_newer_and_deletes_extras(self):
        local = snap(entry("new.txt"), entry("newer.txt", T + 10), entry("same.txt"), entry("older.txt", T - 10))
        remote = snap(entry("newer.txt"), entry("same.txt"), entry("older.txt"), entry("stale.txt"))
        sync_plan = planner.plan(types.Direction.TO_REMOTE, local, remote)
        self.assertEqual(sync_plan.to_transfer, ["new.txt", "newer.txt"])
        self.assertEqual(sync_plan.to_delete, ["stale.txt"])
        self.assertEqual(sync_plan.direction, types.Direction.TO_REMOTE)

    def test_to_local_uses_remote_as_source(self):
        local = snap(entry("a.txt"), entry("local-only.txt"))
        remote = snap(entry("a.txt", T + 1), entry("b.txt"))
        sync_plan = planner.plan(types.Direction.TO_LOCAL, local, remote)
        self.assertEqual(sync_plan.to_transfer, ["a.txt", "b.txt"])
        self.assertEqual(sync_plan.to_delete, ["local-only.txt"])
        self.assertEqual(sync_plan.transfers[0].mtime, T + 1)

    def test_equal_timestamps_are_not_transferred(self):
        sync_plan = planner.plan(types.Direction.TO_REMOTE, snap(entry("a.txt", size=5)), snap(entry("a.txt", size=9)))
        self.assertTrue(sync_plan.is_empty)

    def test_sub_second_differences_are_ignored(self):
        local = snap(entry("a.txt", T + 0.75), entry("b.txt", T + 1.2))
        remote = snap(entry("a.txt", T), entry("b.txt", T))
        sync_plan = planner.plan(types.Direction.TO_REMOTE, local, remote)
        self.assertEqual(sync_plan.to_transfer, ["b.txt"])

    def test_paths_match_exactly(self):
        sync_plan = planner.plan(types.Direction.TO_REMOTE, snap(entry("Readme.md")), snap(entry("readme.md")))
        self.assertEqual(sync_plan.to_transfer, ["Readme.md"])
        self.assertEqual(sync_plan.to_delete, ["readme.md"])

    def test_applying_plan_mirrors_the_source(self):
        rng = random.Random(11)
        for direction in types.Direction:
            for _ in range(30):
                names = [f"dir{i % 3}/f{i}.txt" for i in range(25)]
                local = snap(*(entry(n, T + rng.choice([-5, 0, 5])) for n in names if rng.random() < 0.6))
                remote = snap(*(entry(n, T + rng.choice([-5, 0, 5])) for n in names if rng.random() < 0.6))
                sync_plan = planner.plan(direction, local, remote)
                source, destination = (local, remote) if direction == types.Direction.TO_REMOTE else (remote, local)
                result = {path: e for path, e in destination.items() if path not in sync_plan.to_delete}
                result.update({e.path: e for e in sync_plan.transfers})
                self.assertEqual(set(result), set(source))
                for path, e in result.items():
                    self.assertGreaterEqual(e.mtime, source[path].mtime)


if __name__ == "__main__":
    unittest.main()
