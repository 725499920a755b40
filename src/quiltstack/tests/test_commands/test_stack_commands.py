#!/usr/bin/env python3
"""Tests for quiltstack.commands.stack module."""

import argparse
import unittest
from unittest.mock import call, patch

from quiltstack.commands.stack import cmd_init, cmd_series, patch_name_completer
from quiltstack.git.fake import FakeRepository, build_stack
from quiltstack.stack.errors import StackAlreadyInitialized, StackNotInitialized

PATCHES = [("p1", {"a": "1"}), ("p2", {"b": "1"}), ("p3", {"c": "1"}), ("p4", {"d": "1"})]


class TestCmdInit(unittest.TestCase):
    """Tests for cmd_init function."""

    @patch("quiltstack.commands.stack.cout")
    def test_init(self, mock_cout):
        repo = FakeRepository()
        repo.set_head(repo.add_commit({"a": "1"}))
        cmd_init(repo, argparse.Namespace())
        self.assertIn("refs/stacks/master", repo.refs)
        with self.assertRaises(StackAlreadyInitialized):
            cmd_init(repo, argparse.Namespace())


class TestCmdSeries(unittest.TestCase):
    """Tests for cmd_series function."""

    @patch("quiltstack.commands.stack.cout")
    def test_series(self, mock_cout):
        repo = FakeRepository()
        build_stack(repo, {"x": "1"}, PATCHES, applied=2, hidden=["p4"])
        cmd_series(repo, argparse.Namespace(all=False))
        self.assertEqual(mock_cout.call_args_list, [
            call("+ {}\n", "p1", fg="green"),
            call("> {}\n", "p2", fg="cyan"),
            call("- {}\n", "p3", fg="gray"),
        ])

    @patch("quiltstack.commands.stack.cout")
    def test_series_all(self, mock_cout):
        repo = FakeRepository()
        build_stack(repo, {"x": "1"}, PATCHES, applied=2, hidden=["p4"])
        cmd_series(repo, argparse.Namespace(all=True))
        self.assertEqual(mock_cout.call_args_list[-1], call("! {}\n", "p4", fg="yellow"))

    def test_series_not_initialized(self):
        repo = FakeRepository()
        repo.set_head(repo.add_commit({"a": "1"}))
        with self.assertRaises(StackNotInitialized):
            cmd_series(repo, argparse.Namespace(all=False))


class TestPatchNameCompleter(unittest.TestCase):
    """Tests for patch_name_completer function."""

    def test_completes_visible_patches(self):
        repo = FakeRepository()
        build_stack(repo, {"x": "1"}, PATCHES, applied=2, hidden=["p4"])
        with patch("quiltstack.git.repository.GitRepository", return_value=repo):
            self.assertEqual(patch_name_completer("p", None), ["p1", "p2", "p3"])

    def test_no_stack(self):
        repo = FakeRepository()
        repo.set_head(repo.add_commit({"a": "1"}))
        with patch("quiltstack.git.repository.GitRepository", return_value=repo):
            self.assertEqual(patch_name_completer("p", None), [])


if __name__ == "__main__":
    unittest.main()
