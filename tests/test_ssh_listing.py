"""Tests for remote listing utilities."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from treesync import types
from treesync.exclusions import ExclusionRules
from treesync.ssh import listing

from fakes import FakeSFTP


class TestRemoteListing(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.base = Path(self._tmp.name)
        root = self.base / "data"
        (root / "dir" / "deep").mkdir(parents=True)
        (root / "top.txt").write_text("top")
        (root / "dir" / "file.txt").write_text("hello")
        (root / "dir" / "deep" / "leaf.txt").write_text("leaf")
        (root / "vendor").mkdir()
        (root / "vendor" / "lib.php").write_text("lib")
        os.utime(root / "dir" / "file.txt", (1_700_000_000, 1_700_000_000))
        self.sftp = FakeSFTP(self.base)
        self.rules = ExclusionRules.build(folders_from_sync=["vendor"])

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_lists_regular_files_recursively(self):
        entries = listing.list_remote_entries(
            self.sftp, "/data/", rules=self.rules, purpose=types.Purpose.ANALYSIS
        )
        self.assertEqual(sorted(entries), ["dir/deep/leaf.txt", "dir/file.txt", "top.txt"])
        entry = entries["dir/file.txt"]
        self.assertEqual(entry.size, 5)
        self.assertEqual(entry.mtime, 1_700_000_000)

    def test_excluded_folders_are_never_listed(self):
        listing.list_remote_entries(self.sftp, "/data", rules=self.rules, purpose=types.Purpose.SYNC)
        self.assertNotIn("/data/vendor", self.sftp.listed)

    def test_depth_limit(self):
        entries = listing.list_remote_entries(
            self.sftp, "/data", rules=self.rules, purpose=types.Purpose.ANALYSIS, max_depth=1
        )
        self.assertEqual(sorted(entries), ["dir/file.txt", "top.txt"])
        self.assertNotIn("/data/dir/deep", self.sftp.listed)

    def test_names_with_backslashes_are_skipped(self):
        (self.base / "data" / "odd\\name.txt").write_text("odd")
        (self.base / "data" / "dir" / "back\\slash").mkdir()
        entries = listing.list_remote_entries(
            self.sftp, "/data", rules=self.rules, purpose=types.Purpose.ANALYSIS
        )
        self.assertEqual(sorted(entries), ["dir/deep/leaf.txt", "dir/file.txt", "top.txt"])
        self.assertNotIn("/data/dir/back\\slash", self.sftp.listed)

    def test_error_on_unreadable_directory(self):
        self.sftp.fail_listing.add("/data/dir")
        with self.assertRaises(listing.RemoteListingError):
            listing.list_remote_entries(self.sftp, "/data", rules=self.rules, purpose=types.Purpose.ANALYSIS)


if __name__ == "__main__":
    unittest.main()
