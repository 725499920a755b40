"""Main entry point for quiltstack."""

import argparse
import sys
from argparse import ArgumentParser
from typing import List, Optional

import argcomplete  # type: ignore

from quiltstack.commands.navigation import cmd_goto, cmd_pop, cmd_push
from quiltstack.commands.patch import cmd_new
from quiltstack.commands.stack import cmd_init, cmd_series, patch_name_completer
from quiltstack.git.repository import open_current_repository
from quiltstack.utils.logging import ExitException, error, set_color_mode, setup_logging
from quiltstack.utils.types import LOGLEVELS


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError("must be a positive number")
    return n


def make_parser() -> ArgumentParser:
    parser = ArgumentParser(description="Manage a stack of patches on top of a git branch")
    parser.add_argument(
        "--log-level", default="info", choices=LOGLEVELS.keys(),
        help="Set the log level",
    )
    parser.add_argument(
        "--color", default="auto", choices=["always", "auto", "never"],
        help="Colorize output and error",
    )

    subparsers = parser.add_subparsers(required=True, dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize the stack of the current branch")
    init_parser.set_defaults(func=cmd_init)

    # series
    series_parser = subparsers.add_parser("series", aliases=["s"], help="List the patches of the stack")
    series_parser.add_argument("--all", "-a", action="store_true", help="Include hidden patches")
    series_parser.set_defaults(func=cmd_series)

    _setup_new_command(subparsers)
    _setup_navigation_commands(subparsers)
    return parser


def _setup_new_command(subparsers):
    """Setup the new command."""
    new_parser = subparsers.add_parser(
        "new", help="Create a new patch at top of the stack",
        epilog="Paths to refresh go after `--`: quiltstack new -r [NAME] -- PATH...",
    )
    new_parser.add_argument("name", nargs="?", help="Name for new patch")
    new_parser.add_argument("-m", "--message", help="Use MESSAGE as the patch description")
    new_parser.add_argument(
        "--refresh", "-r", action="store_true",
        help="Refresh new patch with changes from work tree or index",
    )
    new_parser.add_argument("--index", "-i", action="store_true", help="Refresh from index instead of work tree")
    new_parser.add_argument(
        "--force", "-F", action="store_true",
        help="Force refresh with staged and unstaged changes",
    )
    submodule_group = new_parser.add_mutually_exclusive_group()
    submodule_group.add_argument(
        "--submodules", "-s", dest="submodules", action="store_const", const=True, default=None,
        help="Include submodules in patch content",
    )
    submodule_group.add_argument(
        "--no-submodules", dest="submodules", action="store_const", const=False,
        help="Exclude submodules in patch content",
    )
    new_parser.set_defaults(func=cmd_new, pathspecs=[])


def _setup_navigation_commands(subparsers):
    """Setup goto, push and pop."""
    goto_parser = subparsers.add_parser("goto", help="Go to patch by pushing or popping as necessary")
    goto_parser.add_argument("--keep", "-k", action="store_true", help="Keep the local changes")
    goto_parser.add_argument("--merged", "-m", action="store_true", help="Check for patches merged upstream")
    goto_parser.add_argument("patch", nargs="?", help="Patch to go to").completer = patch_name_completer
    goto_parser.set_defaults(func=cmd_goto)

    push_parser = subparsers.add_parser("push", help="Push one or more patches onto the stack")
    push_parser.add_argument("--all", "-a", action="store_true", help="Push all the unapplied patches")
    push_parser.add_argument("--number", "-n", type=_positive_int, default=1, help="Push the next NUMBER patches")
    push_parser.add_argument("--keep", "-k", action="store_true", help="Keep the local changes")
    push_parser.add_argument("--merged", "-m", action="store_true", help="Check for patches merged upstream")
    push_parser.add_argument("patches", nargs="*", help="Patches to push").completer = patch_name_completer
    push_parser.set_defaults(func=cmd_push)

    pop_parser = subparsers.add_parser("pop", help="Pop one or more patches from the stack")
    pop_parser.add_argument("--all", "-a", action="store_true", help="Pop all the applied patches")
    pop_parser.add_argument("--number", "-n", type=_positive_int, default=1, help="Pop the top NUMBER patches")
    pop_parser.add_argument("--keep", "-k", action="store_true", help="Keep the local changes")
    pop_parser.add_argument("patch", nargs="?", help="Pop down to and including PATCH").completer = patch_name_completer
    pop_parser.set_defaults(func=cmd_pop)


def parse_args(parser: ArgumentParser, argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse argv, handing everything after `--` to `new` as paths."""
    argv = list(sys.argv[1:] if argv is None else argv)
    paths: List[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, paths = argv[:split], argv[split + 1:]
    args = parser.parse_args(argv)
    if paths:
        if args.command != "new":
            parser.error("paths after `--` are only accepted by `new`")
        args.pathspecs = paths
    return args


def main():
    """Main entry point for quiltstack."""
    setup_logging()
    try:
        parser = make_parser()
        argcomplete.autocomplete(parser)
        args = parse_args(parser)
        setup_logging(LOGLEVELS[args.log_level])
        set_color_mode(args.color)

        repo = open_current_repository()
        rc = args.func(repo, args)
    except ExitException as e:
        error("{}", e.message)
        sys.exit(e.exit_code)
    sys.exit(rc or 0)
