#!/usr/bin/env python3
"""Tests for quiltstack.commands.navigation module."""

import argparse
import unittest
from unittest.mock import patch

from quiltstack.commands.navigation import cmd_goto, cmd_pop, cmd_push
from quiltstack.git.fake import FakeRepository, build_stack
from quiltstack.stack.errors import (
    AmbiguousName, DirtyWorktree, HiddenPatchAccess, InvalidName, StackError
)
from quiltstack.stack.patchname import PatchName
from quiltstack.stack.state import PatchDescriptor, Stack, StackState
from quiltstack.utils.config import QuiltstackConfig
from quiltstack.utils.logging import ExitException
from quiltstack.utils.types import CONFLICT_EXIT_CODE

PATCHES = [
    ("p1", {"p1.txt": "one\n"}),
    ("feature-a", {"a.txt": "a\n"}),
    ("feature-b", {"b.txt": "b\n"}),
    ("p4", {"p4.txt": "four\n"}),
]


def goto_args(patch=None, keep=False, merged=False):
    return argparse.Namespace(patch=patch, keep=keep, merged=merged)


def push_args(patches=(), all=False, number=1, keep=False, merged=False):
    return argparse.Namespace(patches=list(patches), all=all, number=number, keep=keep, merged=merged)


def pop_args(patch=None, all=False, number=1, keep=False):
    return argparse.Namespace(patch=patch, all=all, number=number, keep=keep)


class NavigationTestCase(unittest.TestCase):

    def setUp(self):
        self.repo = FakeRepository()
        cout_patcher = patch("quiltstack.commands.navigation.cout")
        self.mock_cout = cout_patcher.start()
        self.addCleanup(cout_patcher.stop)
        config_patcher = patch("quiltstack.commands.navigation.get_config", return_value=QuiltstackConfig())
        config_patcher.start()
        self.addCleanup(config_patcher.stop)

    def printed(self):
        return [c[0][0].format(*c[0][1:]) for c in self.mock_cout.call_args_list]

    def reload(self):
        return Stack.from_branch(self.repo, check=False)


class TestCmdGoto(NavigationTestCase):
    """Tests for cmd_goto function."""

    def test_goto_applied_patch(self):
        """Test going to an applied patch pops everything above it."""
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        rc = cmd_goto(self.repo, goto_args("p1"))
        self.assertIsNone(rc)
        stack = self.reload()
        self.assertEqual(stack.applied, ["p1"])
        self.assertEqual(stack.unapplied, ["feature-a", "feature-b", "p4"])
        self.assertIn("Now at patch p1\n", self.printed())
        self.assertIn("- p4\n", self.printed())

    def test_goto_unapplied_patch(self):
        """Test going to an unapplied patch pushes everything up to it."""
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=1)
        cmd_goto(self.repo, goto_args("feature-b"))
        stack = self.reload()
        self.assertEqual(stack.applied, ["p1", "feature-a", "feature-b"])
        self.assertEqual(stack.unapplied, ["p4"])
        self.assertEqual(self.repo.worktree["b.txt"], "b\n")

    def test_goto_top_is_noop(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=2)
        cmd_goto(self.repo, goto_args("feature-a"))
        self.assertEqual(self.repo.ref_updates, [])
        self.assertIn("Now at patch feature-a\n", self.printed())

    def test_goto_ambiguous_name(self):
        """Test a near miss lists the candidates and changes nothing."""
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=1)
        with self.assertRaises(AmbiguousName):
            cmd_goto(self.repo, goto_args("feature"))
        printed = self.printed()
        self.assertEqual(printed[0], "Possible patches:\n")
        self.assertIn("  feature-a\n", printed)
        self.assertIn("  feature-b\n", printed)
        self.assertEqual(self.repo.ref_updates, [])

    def test_goto_commit_prefix(self):
        stack = build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        oid = stack.state.commit_of("feature-a")
        cmd_goto(self.repo, goto_args(oid[:10]))
        self.assertEqual(self.reload().applied, ["p1", "feature-a"])

    def test_goto_hidden_patch(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=1, hidden=["p4"])
        with self.assertRaises(HiddenPatchAccess):
            cmd_goto(self.repo, goto_args("p4"))

    def test_goto_invalid_name(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=1)
        with self.assertRaises(InvalidName):
            cmd_goto(self.repo, goto_args("not a name"))

    def test_goto_requires_clean_worktree(self):
        """Test local changes stop goto unless --keep is given."""
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        self.repo.worktree["base.txt"] = "local\n"
        with self.assertRaises(DirtyWorktree):
            cmd_goto(self.repo, goto_args("p1"))
        self.assertEqual(self.reload().applied, ["p1", "feature-a", "feature-b", "p4"])

        cmd_goto(self.repo, goto_args("p1", keep=True))
        self.assertEqual(self.reload().applied, ["p1"])
        self.assertEqual(self.repo.worktree["base.txt"], "local\n")

    def test_goto_merged(self):
        """Test --merged reports patches already upstream and pushes them empty."""
        base = self.repo.add_commit({"a.txt": "base\n"})
        p1 = self.repo.add_commit({"a.txt": "base\n", "fix.txt": "fix\n"}, [base], "p1\n")
        upstream = self.repo.add_commit({"a.txt": "base\n", "fix.txt": "fix\n"}, [base], "upstream\n")
        state = StackState.from_lists(upstream, [], ["p1"], [], {PatchName("p1"): PatchDescriptor(p1)})
        self.repo.set_head(upstream)
        self.repo.refs["refs/stacks/master"] = self.repo.write_stack_state(state.to_json(), "initialize", None)

        cmd_goto(self.repo, goto_args("p1", merged=True))
        self.assertIn("Found 1 patch merged upstream\n", self.printed())
        self.assertIn("+ p1 (merged)\n", self.printed())
        stack = self.reload()
        self.assertEqual(self.repo.commit_tree(stack.branch_head), self.repo.commit_tree(upstream))

    @patch("quiltstack.commands.navigation.IS_TERMINAL", False)
    def test_goto_without_name_outside_terminal(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=1)
        with self.assertRaises(ExitException):
            cmd_goto(self.repo, goto_args())

    @patch("quiltstack.commands.navigation.IS_TERMINAL", True)
    @patch("quiltstack.commands.navigation.menu_choose", return_value=2)
    def test_goto_menu(self, mock_menu):
        """Test the menu lists applied and unapplied patches with the top selected."""
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=2)
        cmd_goto(self.repo, goto_args())
        lines = mock_menu.call_args[0][0]
        self.assertEqual(lines, ["+ p1", "> feature-a", "- feature-b", "- p4"])
        self.assertEqual(mock_menu.call_args[1]["initial_index"], 1)
        self.assertEqual(self.reload().applied, ["p1", "feature-a", "feature-b"])


class TestCmdPush(NavigationTestCase):
    """Tests for cmd_push function."""

    def test_push_next(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=1)
        cmd_push(self.repo, push_args())
        self.assertEqual(self.reload().applied, ["p1", "feature-a"])

    def test_push_all(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=0)
        cmd_push(self.repo, push_args(all=True))
        self.assertEqual(self.reload().unapplied, [])

    def test_push_nothing(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        with self.assertRaises(StackError):
            cmd_push(self.repo, push_args())

    def test_push_conflict_exit_code(self):
        """Test a conflicting push is left in place with the conflict exit code."""
        base = self.repo.add_commit({"a.txt": "base\n"})
        p1 = self.repo.add_commit({"a.txt": "mine\n"}, [base], "p1\n")
        upstream = self.repo.add_commit({"a.txt": "theirs\n"}, [base], "upstream\n")
        state = StackState.from_lists(upstream, [], ["p1"], [], {PatchName("p1"): PatchDescriptor(p1)})
        self.repo.set_head(upstream)
        self.repo.refs["refs/stacks/master"] = self.repo.write_stack_state(state.to_json(), "initialize", None)

        rc = cmd_push(self.repo, push_args(["p1"]))
        self.assertEqual(rc, CONFLICT_EXIT_CODE)
        self.assertIn("+ p1 (conflict)\n", self.printed())
        self.assertIn("  a.txt\n", self.printed())
        self.assertEqual(self.reload().applied, ["p1"])
        self.assertTrue(self.repo.has_conflicts())


class TestCmdPop(NavigationTestCase):
    """Tests for cmd_pop function."""

    def test_pop_top(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        cmd_pop(self.repo, pop_args())
        self.assertEqual(self.reload().applied, ["p1", "feature-a", "feature-b"])

    def test_pop_number(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        cmd_pop(self.repo, pop_args(number=2))
        stack = self.reload()
        self.assertEqual(stack.applied, ["p1", "feature-a"])
        self.assertEqual(stack.unapplied, ["feature-b", "p4"])
        printed = self.printed()
        self.assertLess(printed.index("- p4\n"), printed.index("- feature-b\n"))

    def test_pop_all(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        cmd_pop(self.repo, pop_args(all=True))
        self.assertEqual(self.reload().applied, [])
        self.assertIn("No patches applied\n", self.printed())

    def test_pop_named_patch(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=4)
        cmd_pop(self.repo, pop_args("feature-a"))
        self.assertEqual(self.reload().applied, ["p1"])

    def test_pop_unapplied_patch(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=1)
        with self.assertRaises(StackError):
            cmd_pop(self.repo, pop_args("p4"))

    def test_pop_empty_stack(self):
        build_stack(self.repo, {"base.txt": "base\n"}, PATCHES, applied=0)
        with self.assertRaises(StackError):
            cmd_pop(self.repo, pop_args())


if __name__ == "__main__":
    unittest.main()
