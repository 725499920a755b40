#!/usr/bin/env python3
"""Tests for quiltstack.stack.patchname module."""

import unittest

from quiltstack.stack.errors import InvalidName
from quiltstack.stack.patchname import PatchName


class TestPatchNameValidation(unittest.TestCase):
    """Tests for PatchName construction."""

    def test_valid_names(self):
        for name in ["fix-typo", "feature_2", "A-b_C-9", "x"]:
            self.assertEqual(PatchName(name), name)

    def test_invalid_names(self):
        for name in ["", "has space", "slash/name", "dot.name", "ümlaut"]:
            with self.assertRaises(InvalidName):
                PatchName(name)

    def test_behaves_like_str(self):
        """Test a PatchName hashes and compares like its string."""
        self.assertEqual({PatchName("p1"): 1}["p1"], 1)
        self.assertIs(PatchName(PatchName("p1")).__class__, PatchName)


class TestPatchNameMake(unittest.TestCase):
    """Tests for deriving names from messages."""

    def test_make_from_subject(self):
        self.assertEqual(PatchName.make("Fix the Parser: handle tabs\n\nBody text"), "fix-the-parser-handle-tabs")

    def test_make_truncates_at_word_boundary(self):
        name = PatchName.make("Refactor the transaction engine for atomic publishing", length_limit=30)
        self.assertEqual(name, "refactor-the-transaction")
        self.assertLessEqual(len(name), 30)

    def test_make_without_usable_characters(self):
        self.assertEqual(PatchName.make("!!!"), "patch")

    def test_make_unlimited(self):
        message = "a " * 40
        self.assertEqual(PatchName.make(message, length_limit=0), "-".join(["a"] * 40))


class TestPatchNameUniquify(unittest.TestCase):
    """Tests for picking unused names."""

    def test_unused_name_is_kept(self):
        self.assertEqual(PatchName("fix").uniquify({"other"}), "fix")

    def test_numbered_suffix(self):
        self.assertEqual(PatchName("fix").uniquify({"fix", "fix-1"}), "fix-2")

    def test_existing_suffix_is_incremented(self):
        self.assertEqual(PatchName("fix-3").uniquify({"fix-3"}), "fix-4")


if __name__ == "__main__":
    unittest.main()
