#!/usr/bin/env python3
"""Tests for quiltstack.main module."""

import unittest
from unittest.mock import MagicMock, patch

from quiltstack.main import main, make_parser, parse_args
from quiltstack.stack.errors import StackError


class TestParser(unittest.TestCase):
    """Tests for the argument parser."""

    def setUp(self):
        self.parser = make_parser()

    def test_goto(self):
        args = self.parser.parse_args(["goto", "-k", "--merged", "p1"])
        self.assertTrue(args.keep)
        self.assertTrue(args.merged)
        self.assertEqual(args.patch, "p1")

    def test_new_defaults(self):
        args = self.parser.parse_args(["new"])
        self.assertIsNone(args.name)
        self.assertIsNone(args.message)
        self.assertIsNone(args.submodules)
        self.assertEqual(args.pathspecs, [])

    def test_new_paths_after_double_dash(self):
        """Test the first word after `--` is a path, not the patch name."""
        args = parse_args(self.parser, ["new", "-m", "third", "--", "c"])
        self.assertIsNone(args.name)
        self.assertEqual(args.pathspecs, ["c"])

        args = parse_args(self.parser, ["new", "-r", "p1", "--", "a", "b"])
        self.assertEqual(args.name, "p1")
        self.assertEqual(args.pathspecs, ["a", "b"])

    @patch("sys.stderr", new_callable=MagicMock)
    def test_new_paths_require_double_dash(self, mock_stderr):
        with self.assertRaises(SystemExit):
            parse_args(self.parser, ["new", "p1", "path"])

    @patch("sys.stderr", new_callable=MagicMock)
    def test_paths_only_accepted_by_new(self, mock_stderr):
        with self.assertRaises(SystemExit):
            parse_args(self.parser, ["goto", "p1", "--", "path"])

    def test_new_submodule_flags(self):
        self.assertTrue(self.parser.parse_args(["new", "-r", "--submodules"]).submodules)
        self.assertFalse(self.parser.parse_args(["new", "-r", "--no-submodules"]).submodules)

    @patch("sys.stderr", new_callable=MagicMock)
    def test_new_submodule_flags_are_exclusive(self, mock_stderr):
        with self.assertRaises(SystemExit):
            self.parser.parse_args(["new", "--submodules", "--no-submodules"])

    @patch("sys.stderr", new_callable=MagicMock)
    def test_number_must_be_positive(self, mock_stderr):
        with self.assertRaises(SystemExit):
            self.parser.parse_args(["pop", "-n", "0"])
        self.assertEqual(self.parser.parse_args(["push", "-n", "2"]).number, 2)

    def test_series_alias(self):
        args = self.parser.parse_args(["s", "--all"])
        self.assertTrue(args.all)


class TestMain(unittest.TestCase):
    """Tests for the main entry point."""

    @patch("quiltstack.main.set_color_mode")
    @patch("quiltstack.main.open_current_repository")
    def test_exit_code_from_command(self, mock_open, mock_color):
        func = MagicMock(return_value=3)
        with patch("sys.argv", ["quiltstack", "series"]), patch("quiltstack.main.cmd_series", func):
            with self.assertRaises(SystemExit) as cm:
                main()
        self.assertEqual(cm.exception.code, 3)
        func.assert_called_once()

    @patch("quiltstack.main.error")
    @patch("quiltstack.main.set_color_mode")
    @patch("quiltstack.main.open_current_repository")
    def test_stack_error_is_reported(self, mock_open, mock_color, mock_error):
        mock_open.side_effect = StackError("not a git repository")
        with patch("sys.argv", ["quiltstack", "series"]):
            with self.assertRaises(SystemExit) as cm:
                main()
        self.assertEqual(cm.exception.code, 1)
        mock_error.assert_called_once_with("{}", "not a git repository")


if __name__ == "__main__":
    unittest.main()
