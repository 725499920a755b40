"""Abstract base class for the repository operations the stack needs.

Implementations:
- GitRepository: drives the ``git`` executable through plumbing commands
- FakeRepository: in-memory object store, index and work tree for tests
"""

import dataclasses
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from quiltstack.stack.errors import DirtyIndex, DirtyWorktree, RepositoryStateConflict
from quiltstack.utils.types import BranchName, Commit, Tree


@dataclasses.dataclass(frozen=True)
class Signature:
    """Author identity, with the date in git's raw ``<epoch> <tz>`` format."""
    name: str
    email: str
    date: str


@dataclasses.dataclass(frozen=True)
class CommitInfo:
    message: str
    author: Signature


@dataclasses.dataclass(frozen=True)
class MergeResult:
    """Outcome of a three-way tree merge.

    ``tree`` is always written; when ``conflicts`` is non-empty it holds
    conflict markers for the listed paths.
    """
    tree: Tree
    conflicts: List[str] = dataclasses.field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.conflicts


class Repository(ABC):
    """Repository collaborator consumed by the stack engine."""

    @abstractmethod
    def current_branch(self) -> Optional[BranchName]:
        """Checked out branch, None on a detached HEAD."""
        ...

    @abstractmethod
    def head_commit(self) -> Commit:
        ...

    @abstractmethod
    def read_ref(self, ref: str) -> Optional[Commit]:
        ...

    @abstractmethod
    def update_ref(self, ref: str, new: Commit, old: Optional[Commit], message: str) -> None:
        """Compare-and-swap a ref, raising RepositoryWriteFailure on mismatch or lock failure."""
        ...

    @abstractmethod
    def operation_in_progress(self) -> Optional[str]:
        """Name of an interrupted merge, rebase, cherry-pick, revert or bisect."""
        ...

    @abstractmethod
    def has_conflicts(self) -> bool:
        """True when the index holds unmerged entries."""
        ...

    @abstractmethod
    def is_index_clean(self) -> bool:
        ...

    @abstractmethod
    def is_worktree_clean(self) -> bool:
        ...

    @abstractmethod
    def commit_tree(self, commit: Commit) -> Tree:
        ...

    @abstractmethod
    def commit_parents(self, commit: Commit) -> List[Commit]:
        ...

    @abstractmethod
    def commit_info(self, commit: Commit) -> CommitInfo:
        ...

    @abstractmethod
    def three_way_merge(self, base: Tree, ours: Tree, theirs: Tree) -> MergeResult:
        ...

    @abstractmethod
    def create_commit(
        self,
        tree: Tree,
        parents: Sequence[Commit],
        message: str,
        author: Optional[Signature] = None,
    ) -> Commit:
        ...

    @abstractmethod
    def checkout_tree(self, old: Tree, new: Tree, *, discard: bool = False, update_worktree: bool = True) -> None:
        """Move the index (and work tree) from ``old`` to ``new``.

        Local changes survive unless ``discard`` is set; a change that would
        be overwritten raises RepositoryWriteFailure and nothing is touched.
        Without ``update_worktree`` only the index moves, whatever the work
        tree holds.
        """
        ...

    @abstractmethod
    def checkout_conflicts(self, base: Tree, ours: Tree, theirs: Tree) -> None:
        """Leave a conflicting merge in the index and work tree for manual resolution."""
        ...

    @abstractmethod
    def write_stack_state(self, text: str, message: str, parent: Optional[Commit]) -> Commit:
        """Store a stack.json document in a new state commit."""
        ...

    @abstractmethod
    def read_stack_state(self, commit: Commit) -> str:
        ...

    @abstractmethod
    def index_tree(self) -> Tree:
        ...

    @abstractmethod
    def worktree_tree(self, paths: Sequence[str] = (), *, submodules: bool = False) -> Tree:
        """Tree of the index updated with tracked work tree changes under ``paths``."""
        ...

    def check_state_clean(self) -> None:
        operation = self.operation_in_progress()
        if operation is not None:
            raise RepositoryStateConflict("repository is in the middle of a {}", operation)

    def check_index_clean(self) -> None:
        if not self.is_index_clean():
            raise DirtyIndex("index not clean; use `--keep` or commit or stash your changes")

    def check_worktree_clean(self) -> None:
        if not self.is_worktree_clean():
            raise DirtyWorktree("work tree not clean; use `--keep` or commit or stash your changes")
