"""Detect patches whose changes are already present upstream."""

from typing import List, Sequence

from quiltstack.git.abc import Repository
from quiltstack.stack.errors import CorruptState, NotFound
from quiltstack.stack.patchname import PatchName
from quiltstack.stack.state import PatchStatus, StackState
from quiltstack.utils.logging import debug
from quiltstack.utils.types import Tree


def is_merged(repo: Repository, head_tree: Tree, state: StackState, name: PatchName) -> bool:
    """True if applying the patch on top of ``head_tree`` would change nothing."""
    commit = state.commit_of(name)
    parents = repo.commit_parents(commit)
    if len(parents) != 1:
        raise CorruptState("patch `{}` does not have exactly one parent", name)
    result = repo.three_way_merge(repo.commit_tree(parents[0]), head_tree, repo.commit_tree(commit))
    merged = result.clean and result.tree == head_tree
    debug("Patch {} merged upstream: {}", name, merged)
    return merged


def check_merged(
    repo: Repository,
    head_tree: Tree,
    state: StackState,
    candidates: Sequence[PatchName],
) -> List[PatchName]:
    """Return the candidates already merged into ``head_tree``, in candidate order.

    Only reads the repository: trees produced by the trial merges are never
    referenced by anything.
    """
    merged = []
    for name in candidates:
        if name not in state or state.status(name) == PatchStatus.HIDDEN:
            raise NotFound("patch `{}` does not exist", name)
        if is_merged(repo, head_tree, state, name):
            merged.append(name)
    return merged
