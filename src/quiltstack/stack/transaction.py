"""Stack transactions.

A transaction is opened on a Stack snapshot and records intents (pop, push,
new patch) against a planned copy of the applied/unapplied lists. Nothing in
the repository changes until ``execute``, which replays the intents in
order, writing new commits as objects only, and then publishes the result:
work tree first, then the branch ref, then the stack metadata ref. When a
push conflicts and conflicts are not allowed, nothing is published and the
stack metadata stays exactly as it was.
"""

import dataclasses
import enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from quiltstack.git.abc import Repository
from quiltstack.git.refs import branch_ref, stack_ref
from quiltstack.stack.errors import (
    CorruptState, HiddenPatchAccess, MergeConflict, NotFound, PatchExists,
    RepositoryWriteFailure, StackError, TransactionError
)
from quiltstack.stack.merged import check_merged
from quiltstack.stack.patchname import PatchName
from quiltstack.stack.state import PatchDescriptor, Stack, StackState
from quiltstack.utils.logging import debug, error, info
from quiltstack.utils.types import Commit, Tree


class ConflictMode(enum.Enum):
    """Whether a conflicting push is left for manual resolution or aborts."""
    DISALLOW = "disallow"
    ALLOW = "allow"


class TransactionStatus(enum.Enum):
    OPEN = "open"
    EXECUTING = "executing"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclasses.dataclass(frozen=True)
class PopIntent:
    """Pop ``names`` (bottom to top); the top one is popped first."""
    names: Tuple[PatchName, ...]


@dataclasses.dataclass(frozen=True)
class PushIntent:
    name: PatchName
    already_merged: bool = False


@dataclasses.dataclass(frozen=True)
class NewAppliedIntent:
    """Put a freshly created patch commit on top of the applied patches."""
    name: PatchName
    commit: Commit


Intent = Union[PopIntent, PushIntent, NewAppliedIntent]


@dataclasses.dataclass
class PendingConflict:
    name: PatchName
    base: Tree
    ours: Tree
    theirs: Tree
    paths: List[str]


@dataclasses.dataclass
class ExecuteResult:
    """What an executed transaction did."""
    state: StackState
    pushed: List[PatchName] = dataclasses.field(default_factory=list)
    popped: List[PatchName] = dataclasses.field(default_factory=list)
    merged: List[PatchName] = dataclasses.field(default_factory=list)
    empty: List[PatchName] = dataclasses.field(default_factory=list)
    conflict: Optional[PendingConflict] = None
    written: int = 0

    @property
    def has_conflicts(self) -> bool:
        return self.conflict is not None


@dataclasses.dataclass
class TransactionContext:
    """Configuration a transaction runs with."""
    stack: Stack
    conflict_mode: ConflictMode = ConflictMode.DISALLOW
    discard_changes: bool = False
    use_index_and_worktree: bool = True
    require_clean: bool = False

    def begin(self) -> "StackTransaction":
        return StackTransaction(self)


class StackTransaction:
    """Records stack intents and applies them atomically on ``execute``."""

    def __init__(self, context: TransactionContext):
        self.context = context
        self.stack = context.stack
        self.repo: Repository = context.stack.repo
        self.status = TransactionStatus.OPEN
        self.intents: List[Intent] = []
        self._applied = list(self.stack.applied)
        self._unapplied = list(self.stack.unapplied)
        self._hidden = list(self.stack.hidden)
        self._new_patches: Dict[PatchName, Commit] = {}

    @staticmethod
    def make_context(
        stack: Stack,
        conflict_mode: ConflictMode,
        *,
        discard_changes: bool = False,
        use_index_and_worktree: bool = True,
        require_clean: bool = False,
    ) -> TransactionContext:
        return TransactionContext(
            stack,
            conflict_mode,
            discard_changes=discard_changes,
            use_index_and_worktree=use_index_and_worktree,
            require_clean=require_clean,
        )

    # Planned state, as seen after the recorded intents

    def applied(self) -> List[PatchName]:
        return list(self._applied)

    def unapplied(self) -> List[PatchName]:
        return list(self._unapplied)

    def hidden(self) -> List[PatchName]:
        return list(self._hidden)

    def _require_open(self):
        if self.status != TransactionStatus.OPEN:
            raise TransactionError("transaction is {}, no more changes can be recorded", self.status.value)

    def _has_new_commits(self) -> bool:
        return any(isinstance(i, (PushIntent, NewAppliedIntent)) for i in self.intents)

    # Intents

    def pop_patches(self, predicate: Callable[[PatchName], bool]) -> List[PatchName]:
        """Pop the first applied patch matching ``predicate`` and everything above it.

        The popped patches go to the front of the unapplied list in their
        original order, so the next push brings back the lowest of them.
        Returns the popped names, bottom to top.
        """
        self._require_open()
        first = next((i for i, name in enumerate(self._applied) if predicate(name)), None)
        if first is None:
            return []
        popped = self._applied[first:]
        self._applied = self._applied[:first]
        self._unapplied = popped + self._unapplied
        self.intents.append(PopIntent(tuple(popped)))
        return popped

    def push_patch(self, name: PatchName, already_merged: bool = False):
        """Push an unapplied patch on top of the planned applied patches."""
        self._require_open()
        if name not in self._unapplied:
            if name in self._applied:
                raise TransactionError("patch `{}` is already applied", name)
            if name in self._hidden:
                raise HiddenPatchAccess("cannot push hidden patch `{}`", name)
            raise NotFound("patch `{}` does not exist", name)
        self._unapplied.remove(name)
        self._applied.append(name)
        self.intents.append(PushIntent(name, already_merged))

    def new_applied(self, name: PatchName, commit: Commit):
        """Add a brand new patch on top of the planned applied patches."""
        self._require_open()
        if self.stack.has_patch(name) or name in self._new_patches:
            raise PatchExists("patch `{}` already exists", name)
        self._new_patches[name] = commit
        self._applied.append(name)
        self.intents.append(NewAppliedIntent(name, commit))

    def check_merged(self, candidates: List[PatchName]) -> List[PatchName]:
        """Which of ``candidates`` are already merged into the planned head."""
        self._require_open()
        if self._has_new_commits():
            raise TransactionError("merged patches must be checked before anything is pushed")
        if self._applied:
            head = self.stack.state.commit_of(self._applied[-1])
        else:
            head = self.stack.base
        return check_merged(self.repo, self.repo.commit_tree(head), self.stack.state, candidates)

    # Execution

    def execute(self, label: str) -> ExecuteResult:
        """Apply the recorded intents and publish the new stack state.

        Raises on any fatal failure, in which case the stack metadata is
        untouched. A conflict tolerated by ConflictMode.ALLOW is reported in
        the returned result instead.
        """
        self._require_open()
        self.status = TransactionStatus.EXECUTING
        try:
            if self.context.require_clean and not self.context.discard_changes:
                self.repo.check_index_clean()
                self.repo.check_worktree_clean()
            result = self._replay()
            self._publish(result, label)
            self.status = TransactionStatus.COMMITTED
            return result
        finally:
            if self.status == TransactionStatus.EXECUTING:
                self.status = TransactionStatus.ABORTED

    def _parent_of(self, name: PatchName, commit: Commit) -> Commit:
        parents = self.repo.commit_parents(commit)
        if len(parents) != 1:
            raise CorruptState("patch `{}` does not have exactly one parent", name)
        return parents[0]

    def _replay(self) -> ExecuteResult:
        state = self.stack.state
        head = state.head
        applied = list(state.applied)
        unapplied = list(state.unapplied)
        patches = dict(state.patches)
        result = ExecuteResult(state)

        try:
            for intent in self.intents:
                if isinstance(intent, PopIntent):
                    for name in reversed(intent.names):
                        assert applied[-1] == name
                        applied.pop()
                        unapplied.insert(0, name)
                        result.popped.append(name)
                    head = patches[applied[-1]].commit if applied else self.stack.base
                elif isinstance(intent, PushIntent):
                    commit = self._push(intent, head, patches[intent.name].commit, result)
                    unapplied.remove(intent.name)
                    applied.append(intent.name)
                    patches[intent.name] = PatchDescriptor(commit)
                    head = commit
                    result.pushed.append(intent.name)
                    if result.conflict is not None:
                        break
                else:
                    if self.repo.commit_parents(intent.commit) != [head]:
                        raise TransactionError("new patch `{}` is not based on the stack head", intent.name)
                    patches[intent.name] = PatchDescriptor(intent.commit)
                    applied.append(intent.name)
                    head = intent.commit
        except RepositoryWriteFailure as e:
            raise RepositoryWriteFailure(
                "{} ({} patch{} written as new commits before the failure); stack left unchanged",
                e.message, result.written, "" if result.written == 1 else "es",
            )

        result.state = StackState.from_lists(head, applied, unapplied, state.hidden, patches)
        return result

    def _push(self, intent: PushIntent, head: Commit, commit: Commit, result: ExecuteResult) -> Commit:
        """Materialize one push on top of ``head``; returns the patch's new commit."""
        name = intent.name
        parent = self._parent_of(name, commit)
        head_tree = self.repo.commit_tree(head)
        patch_tree = self.repo.commit_tree(commit)

        if intent.already_merged:
            result.merged.append(name)
            if parent == head and patch_tree == head_tree:
                return commit
            # The change is already upstream: keep the patch as an empty commit
            return self._recommit(commit, head_tree, head, result)

        if parent == head:
            debug("Patch {} already sits on {}", name, head)
            if patch_tree == head_tree:
                result.empty.append(name)
            return commit

        parent_tree = self.repo.commit_tree(parent)
        merge = self.repo.three_way_merge(parent_tree, head_tree, patch_tree)
        if not merge.clean:
            if self.context.conflict_mode == ConflictMode.DISALLOW:
                raise MergeConflict(name, result.written, merge.conflicts)
            info("Conflicts pushing {}: {}", name, ", ".join(merge.conflicts))
            result.conflict = PendingConflict(name, parent_tree, head_tree, patch_tree, merge.conflicts)
            return self._recommit(commit, head_tree, head, result)

        if merge.tree == head_tree:
            result.empty.append(name)
        return self._recommit(commit, merge.tree, head, result)

    def _recommit(self, commit: Commit, tree: Tree, parent: Commit, result: ExecuteResult) -> Commit:
        commit_info = self.repo.commit_info(commit)
        new_commit = self.repo.create_commit(tree, [parent], commit_info.message, commit_info.author)
        result.written += 1
        return new_commit

    def _checkout(self, old_tree: Tree, new_tree: Tree, update_worktree: bool):
        if old_tree != new_tree or self.context.discard_changes:
            self.repo.checkout_tree(
                old_tree, new_tree,
                discard=self.context.discard_changes,
                update_worktree=update_worktree,
            )

    def _publish(self, result: ExecuteResult, label: str):
        stack = self.stack
        old_head = stack.branch_head
        new_head = result.state.head
        message = "quiltstack: {}".format(label)
        if result.state == stack.state and result.conflict is None:
            debug("Transaction {} changed nothing", label)
            return

        # Content of new patches comes from the work tree, which stays as is
        update_worktree = any(isinstance(i, (PopIntent, PushIntent)) for i in self.intents)
        old_tree = self.repo.commit_tree(old_head)
        new_tree = self.repo.commit_tree(new_head)
        worktree_changed = False
        branch_moved = False
        try:
            if self.context.use_index_and_worktree:
                self._checkout(old_tree, new_tree, update_worktree)
                worktree_changed = True
                if result.conflict is not None:
                    c = result.conflict
                    self.repo.checkout_conflicts(c.base, c.ours, c.theirs)
            if new_head != old_head:
                self.repo.update_ref(branch_ref(stack.branch), new_head, old_head, message)
                branch_moved = True
            state_commit = self.repo.write_stack_state(
                result.state.to_json(prev=stack.state_commit), label, stack.state_commit
            )
            self.repo.update_ref(stack_ref(stack.branch), state_commit, stack.state_commit, message)
        except StackError as e:
            self._rollback(old_head, new_head, old_tree, new_tree, branch_moved, worktree_changed, update_worktree)
            raise RepositoryWriteFailure(
                "{} ({} patch{} written as new commits); stack left unchanged",
                e.message, result.written, "" if result.written == 1 else "es",
            )

    def _rollback(self, old_head, new_head, old_tree, new_tree, branch_moved, worktree_changed, update_worktree):
        if branch_moved:
            try:
                self.repo.update_ref(
                    branch_ref(self.stack.branch), old_head, new_head, "quiltstack: rollback"
                )
            except StackError as e:
                error("Could not move {} back to {}: {}", self.stack.branch, old_head, e.message)
        if worktree_changed:
            try:
                self._checkout(new_tree, old_tree, update_worktree)
            except StackError as e:
                error("Could not restore the work tree to {}: {}", old_tree, e.message)
