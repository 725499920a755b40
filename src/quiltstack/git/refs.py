"""Git ref operations for quiltstack."""

from typing import Optional

from quiltstack.stack.errors import RepositoryWriteFailure
from quiltstack.utils.shell import remove_prefix, run, run_status
from quiltstack.utils.types import BranchName, CmdArgs, Commit, PathName, STACK_REF_PREFIX


def get_current_branch() -> Optional[BranchName]:
    """Get the checked out branch, None on a detached HEAD."""
    s = run(CmdArgs(["git", "symbolic-ref", "-q", "HEAD"]), check=False)
    if s is not None:
        return BranchName(remove_prefix(s, "refs/heads/"))
    return None


def get_top_level_dir() -> Optional[PathName]:
    """Get the top-level directory of the work tree, None outside of one."""
    p = run(CmdArgs(["git", "rev-parse", "--show-toplevel"]), check=False)
    if p:
        return PathName(p)
    return None


def branch_ref(branch: BranchName) -> str:
    return "refs/heads/{}".format(branch)


def stack_ref(branch: BranchName) -> str:
    return "{}{}".format(STACK_REF_PREFIX, branch)


def read_ref(ref: str) -> Optional[Commit]:
    """Resolve a ref to a commit id, None if it does not exist."""
    c = run(CmdArgs(["git", "rev-parse", "-q", "--verify", "{}^{{commit}}".format(ref)]), check=False)
    if c:
        return Commit(c)
    return None


def update_ref(ref: str, new_commit: Commit, prev_commit: Optional[Commit], *, message: str = "quiltstack"):
    """Atomically move a ref from prev_commit to new_commit.

    A None prev_commit requires the ref to not exist yet. Any lock or
    compare-and-swap failure is reported, never retried.
    """
    cmd = ["git", "update-ref", "-m", message, ref, new_commit, prev_commit or ""]
    rc, _, stderr = run_status(CmdArgs(cmd))
    if rc != 0:
        raise RepositoryWriteFailure("cannot update {}: {}", ref, stderr.strip())
