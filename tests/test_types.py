"""Tests for the core comparison data types."""

from __future__ import annotations

import unittest

from treesync import types


class TestNormalizeRelativePath(unittest.TestCase):
    def test_disallows_absolute_paths(self):
        with self.assertRaises(ValueError):
            types.normalize_relative_path("/tmp/file")

    def test_disallows_parent_escape(self):
        with self.assertRaises(ValueError):
            types.normalize_relative_path("../secret.txt")

    def test_normalizes_current_dir(self):
        self.assertEqual(types.normalize_relative_path("./folder/file.txt"), "folder/file.txt")

    def test_root_itself_is_not_a_file(self):
        with self.assertRaises(ValueError):
            types.normalize_relative_path(".")

    def test_windows_style_separators_are_normalized(self):
        self.assertEqual(types.normalize_relative_path("dir\\nested\\file.txt"), "dir/nested/file.txt")
        with self.assertRaises(ValueError):
            types.normalize_relative_path("C:\\data\\file.txt")

    def test_portable_names(self):
        self.assertTrue(types.is_portable_name("site.css"))
        self.assertTrue(types.is_portable_name("notes: draft.txt"))
        self.assertFalse(types.is_portable_name("a\\b.txt"))
        self.assertFalse(types.is_portable_name("c:stream"))


class TestFileEntry(unittest.TestCase):
    def test_file_entry_normalizes_path(self):
        entry = types.FileEntry(path="./dir/file.txt", size=10, mtime=1.0)
        self.assertEqual(entry.path, "dir/file.txt")

    def test_negative_size_rejected(self):
        with self.assertRaises(ValueError):
            types.FileEntry(path="a.txt", size=-1, mtime=0.0)


class TestComparisonResult(unittest.TestCase):
    def test_totals_combine_newer_and_only(self):
        result = types.ComparisonResult(
            newer_local=["a", "b"],
            newer_remote=["c"],
            local_only=["d"],
            remote_only=["e", "f", "g"],
        )
        self.assertEqual(result.total_local_needs_sync, 3)
        self.assertEqual(result.total_remote_needs_sync, 4)

    def test_failed_result_is_unknown(self):
        result = types.ComparisonResult.failed("boom")
        self.assertEqual(result.recommendation, types.Recommendation.UNKNOWN)
        self.assertEqual(result.error, "boom")
        self.assertEqual(result.total_local_needs_sync, 0)


class TestHelpers(unittest.TestCase):
    def test_fold_case_map_keeps_first_spelling(self):
        folded = types.fold_case_map(["Docs/Readme.MD", "docs/readme.md"])
        self.assertEqual(folded, {"docs/readme.md": "Docs/Readme.MD"})

    def test_commit_short_hash(self):
        commit = types.CommitInfo(hash="0123456789abcdef", timestamp=1.0)
        self.assertEqual(commit.short_hash, "0123456")

    def test_sync_plan_lists_transfer_paths(self):
        sync_plan = types.SyncPlan(
            direction=types.Direction.TO_REMOTE,
            transfers=[types.FileEntry(path="a.txt", size=1, mtime=1.0)],
        )
        self.assertEqual(sync_plan.to_transfer, ["a.txt"])
        self.assertFalse(sync_plan.is_empty)
        self.assertTrue(types.SyncPlan(direction=types.Direction.TO_LOCAL).is_empty)


if __name__ == "__main__":
    unittest.main()
