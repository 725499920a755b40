"""Stack state: the persisted applied/unapplied/hidden partition and its snapshot."""

import dataclasses
import enum
import json
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING

from quiltstack.git.abc import Repository
from quiltstack.git.refs import branch_ref, stack_ref
from quiltstack.stack.errors import (
    CorruptState, HeadMismatch, InvalidName, RepositoryStateConflict,
    StackAlreadyInitialized, StackError, StackNotInitialized
)
from quiltstack.stack.patchname import PatchName
from quiltstack.utils.logging import debug
from quiltstack.utils.types import BranchName, Commit, STACK_FORMAT_VERSION, Tree

if TYPE_CHECKING:
    from quiltstack.stack.transaction import ConflictMode, TransactionContext


class PatchStatus(enum.Enum):
    APPLIED = "applied"
    UNAPPLIED = "unapplied"
    HIDDEN = "hidden"


@dataclasses.dataclass(frozen=True)
class PatchDescriptor:
    """The commit holding a patch's changeset."""
    commit: Commit


class StackState:
    """Immutable partition of a stack's patches.

    Each patch name maps to exactly one PatchStatus, so a name can never be
    both applied and unapplied. Order within each status follows insertion
    order: applied bottom to top, unapplied in push order.
    """

    def __init__(
        self,
        head: Commit,
        statuses: Iterable[Tuple[PatchName, PatchStatus]],
        patches: Mapping[PatchName, PatchDescriptor],
    ):
        self.head = head
        self._statuses: Dict[PatchName, PatchStatus] = {}
        for name, status in statuses:
            if name in self._statuses:
                raise CorruptState("patch `{}` is listed more than once", name)
            self._statuses[name] = status
        self._patches: Dict[PatchName, PatchDescriptor] = dict(patches)

        missing = [n for n in self._statuses if n not in self._patches]
        if missing:
            raise CorruptState("no commit recorded for patch `{}`", missing[0])
        orphans = [n for n in self._patches if n not in self._statuses]
        if orphans:
            raise CorruptState("patch `{}` is neither applied, unapplied nor hidden", orphans[0])

    @classmethod
    def from_lists(
        cls,
        head: Commit,
        applied: Sequence[PatchName],
        unapplied: Sequence[PatchName],
        hidden: Sequence[PatchName],
        patches: Mapping[PatchName, PatchDescriptor],
    ) -> "StackState":
        statuses = (
            [(n, PatchStatus.APPLIED) for n in applied]
            + [(n, PatchStatus.UNAPPLIED) for n in unapplied]
            + [(n, PatchStatus.HIDDEN) for n in hidden]
        )
        return cls(head, statuses, patches)

    @classmethod
    def empty(cls, head: Commit) -> "StackState":
        return cls(head, [], {})

    def _with_status(self, status: PatchStatus) -> List[PatchName]:
        return [n for n, s in self._statuses.items() if s == status]

    @property
    def applied(self) -> List[PatchName]:
        return self._with_status(PatchStatus.APPLIED)

    @property
    def unapplied(self) -> List[PatchName]:
        return self._with_status(PatchStatus.UNAPPLIED)

    @property
    def hidden(self) -> List[PatchName]:
        return self._with_status(PatchStatus.HIDDEN)

    @property
    def patches(self) -> Mapping[PatchName, PatchDescriptor]:
        return dict(self._patches)

    def all_patches(self) -> Iterator[PatchName]:
        """All patch names: applied, then unapplied, then hidden."""
        yield from self.applied
        yield from self.unapplied
        yield from self.hidden

    def status(self, name: str) -> Optional[PatchStatus]:
        return self._statuses.get(name)  # type: ignore[call-overload]

    def __contains__(self, name) -> bool:
        return name in self._statuses

    def commit_of(self, name: str) -> Commit:
        return self._patches[name].commit  # type: ignore[index]

    def top(self) -> Optional[PatchName]:
        applied = self.applied
        return applied[-1] if applied else None

    def replace(
        self,
        *,
        head: Optional[Commit] = None,
        applied: Optional[Sequence[PatchName]] = None,
        unapplied: Optional[Sequence[PatchName]] = None,
        hidden: Optional[Sequence[PatchName]] = None,
        patches: Optional[Mapping[PatchName, PatchDescriptor]] = None,
    ) -> "StackState":
        """Return a new state with the given parts swapped out."""
        return StackState.from_lists(
            head if head is not None else self.head,
            applied if applied is not None else self.applied,
            unapplied if unapplied is not None else self.unapplied,
            hidden if hidden is not None else self.hidden,
            patches if patches is not None else self._patches,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, StackState):
            return NotImplemented
        return (
            self.head == other.head
            and list(self._statuses.items()) == list(other._statuses.items())
            and self._patches == other._patches
        )

    def __repr__(self) -> str:
        return "StackState(head={}, applied={}, unapplied={}, hidden={})".format(
            self.head, self.applied, self.unapplied, self.hidden
        )

    def to_json(self, prev: Optional[Commit] = None) -> str:
        doc = {
            "version": STACK_FORMAT_VERSION,
            "prev": prev,
            "head": self.head,
            "applied": self.applied,
            "unapplied": self.unapplied,
            "hidden": self.hidden,
            "patches": {name: {"oid": d.commit} for name, d in self._patches.items()},
        }
        return json.dumps(doc, indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> "StackState":
        try:
            doc = json.loads(text)
        except ValueError as e:
            raise CorruptState("stack metadata is not valid JSON: {}", e)
        if not isinstance(doc, dict):
            raise CorruptState("stack metadata is not a JSON object")
        if doc.get("version") != STACK_FORMAT_VERSION:
            raise CorruptState("unsupported stack metadata version {}", doc.get("version"))
        try:
            patches = {
                PatchName(name): PatchDescriptor(Commit(entry["oid"]))
                for name, entry in doc["patches"].items()
            }
            return cls.from_lists(
                Commit(doc["head"]),
                [PatchName(n) for n in doc["applied"]],
                [PatchName(n) for n in doc["unapplied"]],
                [PatchName(n) for n in doc["hidden"]],
                patches,
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise CorruptState("stack metadata is missing or has a malformed field: {}", e)
        except InvalidName as e:
            raise CorruptState("stack metadata holds an {}", e.message)


class Stack:
    """Read-only snapshot of a branch's stack, bound to its repository."""

    def __init__(
        self,
        repo: Repository,
        branch: BranchName,
        state: StackState,
        state_commit: Commit,
        branch_head: Commit,
    ):
        self.repo = repo
        self.branch = branch
        self.state = state
        self.state_commit = state_commit
        self.branch_head = branch_head

    @classmethod
    def from_branch(cls, repo: Repository, branch: Optional[BranchName] = None, *, check: bool = True) -> "Stack":
        """Load and validate the stack of ``branch`` (the current branch by default).

        With ``check`` the repository must not be in the middle of another
        operation and the branch head must be the top applied patch.
        """
        if branch is None:
            branch = repo.current_branch()
            if branch is None:
                raise StackError("not on a branch (HEAD is detached)")

        branch_head = repo.read_ref(branch_ref(branch))
        if branch_head is None:
            raise StackError("branch `{}` does not exist", branch)
        state_commit = repo.read_ref(stack_ref(branch))
        if state_commit is None:
            raise StackNotInitialized("branch `{}` not initialized; run `quiltstack init`", branch)

        state = StackState.from_json(repo.read_stack_state(state_commit))
        top = state.top()
        if top is not None and state.commit_of(top) != state.head:
            raise CorruptState(
                "recorded head {} is not the commit of top patch `{}`", state.head, top
            )
        debug("Loaded stack for {}: {}", branch, state)
        stack = cls(repo, branch, state, state_commit, branch_head)
        if check:
            stack.check_repository_state(conflicts_okay=True)
            stack.check_head_top_mismatch()
        return stack

    @property
    def applied(self) -> List[PatchName]:
        return self.state.applied

    @property
    def unapplied(self) -> List[PatchName]:
        return self.state.unapplied

    @property
    def hidden(self) -> List[PatchName]:
        return self.state.hidden

    def all_patches(self) -> Iterator[PatchName]:
        return self.state.all_patches()

    def has_patch(self, name: str) -> bool:
        return name in self.state

    @property
    def base(self) -> Commit:
        """The commit the bottom applied patch sits on."""
        applied = self.state.applied
        if not applied:
            return self.state.head
        parents = self.repo.commit_parents(self.state.commit_of(applied[0]))
        if len(parents) != 1:
            raise CorruptState("patch `{}` does not have exactly one parent", applied[0])
        return parents[0]

    @property
    def head_tree(self) -> Tree:
        return self.repo.commit_tree(self.branch_head)

    def check_repository_state(self, conflicts_okay: bool = False):
        self.repo.check_state_clean()
        if not conflicts_okay:
            self.check_conflicts()

    def check_conflicts(self):
        if self.repo.has_conflicts():
            raise RepositoryStateConflict("resolve outstanding conflicts first")

    def check_head_top_mismatch(self):
        if self.branch_head != self.state.head:
            raise HeadMismatch(
                "HEAD and stack top are not the same; the branch was modified outside of quiltstack"
            )

    def check_index_clean(self):
        self.repo.check_index_clean()

    def check_worktree_clean(self):
        self.repo.check_worktree_clean()

    def setup_transaction(
        self,
        conflict_mode: Optional["ConflictMode"] = None,
        *,
        discard_changes: bool = False,
        use_index_and_worktree: bool = True,
        require_clean: bool = False,
    ) -> "TransactionContext":
        from quiltstack.stack.transaction import ConflictMode, StackTransaction
        return StackTransaction.make_context(
            self,
            conflict_mode if conflict_mode is not None else ConflictMode.DISALLOW,
            discard_changes=discard_changes,
            use_index_and_worktree=use_index_and_worktree,
            require_clean=require_clean,
        )


def initialize(repo: Repository, branch: Optional[BranchName] = None) -> Stack:
    """Create empty stack metadata on top of the branch head."""
    if branch is None:
        branch = repo.current_branch()
        if branch is None:
            raise StackError("not on a branch (HEAD is detached)")
    if repo.read_ref(stack_ref(branch)) is not None:
        raise StackAlreadyInitialized("branch `{}` already initialized", branch)
    head = repo.read_ref(branch_ref(branch))
    if head is None:
        raise StackError("branch `{}` has no commits", branch)

    state = StackState.empty(head)
    state_commit = repo.write_stack_state(state.to_json(), "initialize", None)
    repo.update_ref(stack_ref(branch), state_commit, None, "quiltstack: initialize")
    return Stack(repo, branch, state, state_commit, head)
