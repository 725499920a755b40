"""Shell execution utilities for quiltstack."""

import os
import shlex
import subprocess
import sys
from typing import Dict, Optional, Tuple

from quiltstack.utils.logging import debug, die
from quiltstack.utils.types import CmdArgs


def _check_returncode(sp: subprocess.CompletedProcess, cmd: CmdArgs):
    """Die if the subprocess exited with a non-zero status."""
    rc = sp.returncode
    if rc == 0:
        return
    stderr = sp.stderr.decode("UTF-8")
    if rc < 0:
        die("Killed by signal {}: {}. Stderr was:\n{}", -rc, shlex.join(cmd), stderr)
    else:
        die("Exited with status {}: {}. Stderr was:\n{}", rc, shlex.join(cmd), stderr)


def _spawn(
    cmd: CmdArgs,
    *,
    out: bool = False,
    input: Optional[bytes] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    debug("Running: {}", shlex.join(cmd))
    sys.stdout.flush()
    sys.stderr.flush()
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)
    return subprocess.run(
        cmd,
        input=input,
        stdout=1 if out else subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=full_env,
    )


def run_multiline(
    cmd: CmdArgs,
    *,
    check: bool = True,
    out: bool = False,
    input: Optional[bytes] = None,
    env: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """Run a command and return its output (with newlines preserved).

    Returns None when the command fails and ``check`` is False.
    """
    sp = _spawn(cmd, out=out, input=input, env=env)
    if check:
        _check_returncode(sp, cmd)
    if sp.returncode != 0:
        return None
    if sp.stdout is None:
        return ""
    return sp.stdout.decode("UTF-8")


def run_always_return(cmd: CmdArgs, **kwargs) -> str:
    """Run a command and always return output (asserts it's not None)."""
    out = run(cmd, **kwargs)
    assert out is not None
    return out


def run(cmd: CmdArgs, **kwargs) -> Optional[str]:
    """Run a command and return stripped output."""
    out = run_multiline(cmd, **kwargs)
    return None if out is None else out.strip()


def run_status(
    cmd: CmdArgs,
    *,
    input: Optional[bytes] = None,
    env: Optional[Dict[str, str]] = None,
) -> Tuple[int, str, str]:
    """Run a command whose exit status carries meaning.

    Returns (returncode, stdout, stderr) without dying on failure.
    """
    sp = _spawn(cmd, input=input, env=env)
    return sp.returncode, sp.stdout.decode("UTF-8"), sp.stderr.decode("UTF-8")


def remove_prefix(s: str, prefix: str) -> str:
    """Remove a prefix from a string, dying if not present."""
    if not s.startswith(prefix):
        die('Invalid string "{}": expected prefix "{}"', s, prefix)
    return s[len(prefix):]
