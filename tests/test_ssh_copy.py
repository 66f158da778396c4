"""Tests for remote copy helpers."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from treesync.ssh import copy

from fakes import FakeSFTP, InterruptedSFTP


class TestRemoteCopy(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.remote_base = self.tmp / "remote"
        self.remote_base.mkdir()
        self.sftp = FakeSFTP(self.remote_base)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_upload_creates_parents_and_sets_mtime(self):
        source = self.tmp / "page.html"
        source.write_text("<html>")
        copy.copy_local_to_remote(self.sftp, local_path=source, remote_path="/site/a/b/page.html", mtime=1_600_000_000)
        uploaded = self.remote_base / "site" / "a" / "b" / "page.html"
        self.assertEqual(uploaded.read_text(), "<html>")
        self.assertEqual(uploaded.stat().st_mtime, 1_600_000_000)

    def test_download_creates_parents_and_sets_mtime(self):
        (self.remote_base / "site").mkdir()
        (self.remote_base / "site" / "data.json").write_text("{}")
        target = self.tmp / "local" / "nested" / "data.json"
        copy.copy_remote_to_local(self.sftp, remote_path="/site/data.json", local_path=target, mtime=1_500_000_000)
        self.assertEqual(target.read_text(), "{}")
        self.assertEqual(target.stat().st_mtime, 1_500_000_000)

    def test_upload_replaces_existing_file_without_leftovers(self):
        source = self.tmp / "page.html"
        source.write_text("new")
        (self.remote_base / "site").mkdir()
        (self.remote_base / "site" / "page.html").write_text("old")
        copy.copy_local_to_remote(self.sftp, local_path=source, remote_path="/site/page.html")
        self.assertEqual((self.remote_base / "site" / "page.html").read_text(), "new")
        self.assertEqual(os.listdir(self.remote_base / "site"), ["page.html"])

    def test_failed_download_removes_partial_file(self):
        (self.remote_base / "big.bin").write_bytes(b"x" * 100)
        target = self.tmp / "big.bin"
        with self.assertRaises(copy.RemoteCopyError):
            copy.copy_remote_to_local(InterruptedSFTP(self.remote_base), remote_path="/big.bin", local_path=target)
        self.assertFalse(target.exists())
        self.assertNotIn("big.bin", " ".join(os.listdir(self.tmp)))

    def test_download_of_missing_file_raises(self):
        with self.assertRaises(copy.RemoteCopyError):
            copy.copy_remote_to_local(self.sftp, remote_path="/nope.txt", local_path=self.tmp / "nope.txt")

    def test_remove_tolerates_missing_file(self):
        (self.remote_base / "gone.txt").write_text("x")
        copy.remove_remote_file(self.sftp, "/gone.txt")
        self.assertFalse((self.remote_base / "gone.txt").exists())
        copy.remove_remote_file(self.sftp, "/gone.txt")

    def test_remove_permission_error_raises(self):
        sftp = mock.Mock()
        sftp.remove.side_effect = PermissionError(13, "Permission denied")
        with self.assertRaises(copy.RemoteCopyError):
            copy.remove_remote_file(sftp, "/locked.txt")

    def test_ensure_remote_dir_tolerates_concurrent_creation(self):
        sftp = mock.Mock()
        sftp.stat.side_effect = [FileNotFoundError(2, "missing"), mock.Mock(), mock.Mock()]
        sftp.mkdir.side_effect = OSError("Failure")
        copy.ensure_remote_dir(sftp, "/site/assets")
        sftp.mkdir.assert_called_once_with("/site/assets")


if __name__ == "__main__":
    unittest.main()
