"""Tests for exclusion rules."""

from __future__ import annotations

import unittest

from treesync import types
from treesync.exclusions import ExclusionRules

FILE = types.EntryKind.FILE
FOLDER = types.EntryKind.FOLDER
ANALYSIS = types.Purpose.ANALYSIS
SYNC = types.Purpose.SYNC


class TestExclusionRules(unittest.TestCase):
    def setUp(self) -> None:
        self.rules = ExclusionRules.build()

    def test_default_folders_are_excluded_case_insensitively(self):
        self.assertTrue(self.rules.should_exclude("node_modules", FOLDER, SYNC))
        self.assertTrue(self.rules.should_exclude("Node_Modules", FOLDER, ANALYSIS))
        self.assertFalse(self.rules.should_exclude("src", FOLDER, SYNC))

    def test_git_folder_is_excluded_from_analysis_only(self):
        self.assertTrue(self.rules.should_exclude(".git", FOLDER, ANALYSIS))
        self.assertFalse(self.rules.should_exclude(".git", FOLDER, SYNC))

    def test_extension_rules(self):
        self.assertTrue(self.rules.should_exclude("debug.LOG", FILE, SYNC))
        self.assertTrue(self.rules.should_exclude(".npmrc", FILE, SYNC))
        self.assertFalse(self.rules.should_exclude("index.php", FILE, SYNC))
        self.assertFalse(self.rules.should_exclude("Makefile", FILE, SYNC))

    def test_file_name_rules(self):
        self.assertTrue(self.rules.should_exclude("README.txt", FILE, ANALYSIS))
        self.assertFalse(self.rules.should_exclude("README.txt", FILE, SYNC))

    def test_names_match_whole_components_only(self):
        # A folder rule never matches a file of the same name.
        self.assertFalse(self.rules.should_exclude("bin", FILE, SYNC))
        self.assertFalse(self.rules.should_exclude("node_modules_backup", FOLDER, SYNC))

    def test_user_lists_merge_with_defaults(self):
        rules = ExclusionRules.build(
            extensions_from_sync=[".Bak"],
            folders_from_analysis=["Cache"],
            files_from_sync=["Secrets.env"],
        )
        self.assertTrue(rules.should_exclude("old.bak", FILE, SYNC))
        self.assertTrue(rules.should_exclude("cache", FOLDER, ANALYSIS))
        self.assertFalse(rules.should_exclude("cache", FOLDER, SYNC))
        self.assertTrue(rules.should_exclude("secrets.env", FILE, ANALYSIS))
        self.assertTrue(rules.should_exclude("node_modules", FOLDER, SYNC))

    def test_sync_exclusions_apply_to_analysis(self):
        rules = ExclusionRules.build(folders_from_sync=["uploads"])
        self.assertTrue(rules.should_exclude("uploads", FOLDER, ANALYSIS))
        self.assertTrue(rules.folders_for(SYNC) <= rules.folders_for(ANALYSIS))
        self.assertTrue(rules.extensions_for(SYNC) <= rules.extensions_for(ANALYSIS))
        self.assertTrue(rules.files_for(SYNC) <= rules.files_for(ANALYSIS))


if __name__ == "__main__":
    unittest.main()
