"""User interface utilities for quiltstack."""

import os
import subprocess
import tempfile
from typing import List, Optional

from simple_term_menu import TerminalMenu  # type: ignore

from quiltstack.utils.logging import IS_TERMINAL, die
from quiltstack.utils.shell import run_always_return
from quiltstack.utils.types import CmdArgs

_MESSAGE_TEMPLATE = """
# Please enter the message for your patch. Lines starting
# with '#' will be ignored. An empty message aborts the patch.
"""


def menu_choose(lines: List[str], *, initial_index: int = 0) -> int:
    """Display a menu and return the index of the chosen line."""
    if not IS_TERMINAL:
        die("May only choose from menu when using a terminal")

    menu = TerminalMenu(lines, cursor_index=initial_index)
    idx = menu.show()
    if idx is None:
        die("Aborted")
    return idx


def strip_message_comments(text: str) -> str:
    """Drop comment lines and surrounding blank lines from an edited message."""
    lines = [l.rstrip() for l in text.splitlines() if not l.startswith("#")]
    return "\n".join(lines).strip()


def edit_message(initial: str = "") -> Optional[str]:
    """Let the user author a commit message in their editor.

    Returns None when the user leaves the message empty, which cancels the
    command before any stack change happens.
    """
    editor = run_always_return(CmdArgs(["git", "var", "GIT_EDITOR"]))
    fd, path = tempfile.mkstemp(prefix="quiltstack-", suffix=".txt")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(initial)
            f.write(_MESSAGE_TEMPLATE)
        rc = subprocess.call(["sh", "-c", editor + ' "$@"', editor, path])
        if rc != 0:
            die("Editor `{}` exited with status {}", editor, rc)
        with open(path) as f:
            message = strip_message_comments(f.read())
    finally:
        os.unlink(path)
    return message or None
