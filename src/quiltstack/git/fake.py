"""Fake repository for testing.

FakeRepository keeps trees, commits, refs, the index and the work tree in
memory. Trees are plain ``{path: content}`` dicts addressed by a content
hash, so tests can build histories without a git binary.
"""

import hashlib
import json
from typing import Dict, List, Optional, Sequence, Set

from quiltstack.git.abc import CommitInfo, MergeResult, Repository, Signature
from quiltstack.git.refs import branch_ref
from quiltstack.stack.errors import RepositoryWriteFailure
from quiltstack.utils.types import BranchName, Commit, Tree

DEFAULT_AUTHOR = Signature("Test Author", "author@example.com", "1700000000 +0000")


def _oid(kind: str, payload) -> str:
    data = json.dumps([kind, payload], sort_keys=True).encode("UTF-8")
    return hashlib.sha1(data).hexdigest()


def conflict_text(ours: Optional[str], theirs: Optional[str]) -> str:
    return "<<<<<<< ours\n{}=======\n{}>>>>>>> theirs\n".format(ours or "", theirs or "")


class FakeRepository(Repository):
    """In-memory implementation of the repository collaborator.

    Failure injection is configured through the constructor: ``in_progress``
    names an interrupted operation, ``failing_refs`` lists refs whose
    updates fail, and ``fail_checkout`` makes every checkout fail.
    """

    def __init__(
        self,
        *,
        branch: Optional[str] = "master",
        in_progress: Optional[str] = None,
        failing_refs: Optional[Set[str]] = None,
        fail_checkout: bool = False,
    ) -> None:
        self._branch = BranchName(branch) if branch is not None else None
        self._in_progress = in_progress
        self._failing_refs = set(failing_refs or ())
        self._fail_checkout = fail_checkout
        self.trees: Dict[Tree, Dict[str, str]] = {}
        self.commits: Dict[Commit, dict] = {}
        self.refs: Dict[str, Commit] = {}
        self.states: Dict[Commit, str] = {}
        self.index: Dict[str, str] = {}
        self.worktree: Dict[str, str] = {}
        self.unmerged: List[str] = []
        self.ref_updates: List[tuple] = []
        self.checkouts: List[tuple] = []

    # Test setup helpers

    def add_tree(self, files: Dict[str, str]) -> Tree:
        tree = Tree(_oid("tree", files))
        self.trees[tree] = dict(files)
        return tree

    def add_commit(
        self,
        files: Dict[str, str],
        parents: Sequence[Commit] = (),
        message: str = "commit\n",
        *,
        oid: Optional[str] = None,
    ) -> Commit:
        return self._store_commit(self.add_tree(files), parents, message, DEFAULT_AUTHOR, oid)

    def set_head(self, commit: Commit) -> None:
        """Point the current branch, index and work tree at ``commit``."""
        assert self._branch is not None
        self.refs[branch_ref(self._branch)] = commit
        files = self.files(commit)
        self.index = dict(files)
        self.worktree = dict(files)

    def files(self, commit: Commit) -> Dict[str, str]:
        return dict(self.trees[self.commit_tree(commit)])

    def _store_commit(self, tree, parents, message, author, oid=None) -> Commit:
        payload = [tree, list(parents), message, [author.name, author.email, author.date], len(self.commits)]
        commit = Commit(oid or _oid("commit", payload))
        self.commits[commit] = {
            "tree": tree,
            "parents": list(parents),
            "message": message,
            "author": author,
        }
        return commit

    # Repository interface

    def current_branch(self) -> Optional[BranchName]:
        return self._branch

    def head_commit(self) -> Commit:
        assert self._branch is not None
        return self.refs[branch_ref(self._branch)]

    def read_ref(self, ref: str) -> Optional[Commit]:
        return self.refs.get(ref)

    def update_ref(self, ref: str, new: Commit, old: Optional[Commit], message: str) -> None:
        if ref in self._failing_refs:
            raise RepositoryWriteFailure("cannot lock ref '{}'", ref)
        if self.refs.get(ref) != old:
            raise RepositoryWriteFailure("cannot update {}: expected {}, found {}", ref, old, self.refs.get(ref))
        self.refs[ref] = new
        self.ref_updates.append((ref, new, old, message))

    def operation_in_progress(self) -> Optional[str]:
        return self._in_progress

    def has_conflicts(self) -> bool:
        return bool(self.unmerged)

    def is_index_clean(self) -> bool:
        return self.index == self.files(self.head_commit())

    def is_worktree_clean(self) -> bool:
        return self.worktree == self.index

    def commit_tree(self, commit: Commit) -> Tree:
        return self.commits[commit]["tree"]

    def commit_parents(self, commit: Commit) -> List[Commit]:
        return list(self.commits[commit]["parents"])

    def commit_info(self, commit: Commit) -> CommitInfo:
        c = self.commits[commit]
        return CommitInfo(c["message"], c["author"])

    def three_way_merge(self, base: Tree, ours: Tree, theirs: Tree) -> MergeResult:
        b, o, t = self.trees[base], self.trees[ours], self.trees[theirs]
        merged: Dict[str, str] = {}
        conflicts = []
        for path in sorted(set(b) | set(o) | set(t)):
            bv, ov, tv = b.get(path), o.get(path), t.get(path)
            if ov == tv or bv == tv:
                value = ov
            elif bv == ov:
                value = tv
            else:
                conflicts.append(path)
                value = conflict_text(ov, tv)
            if value is not None:
                merged[path] = value
        return MergeResult(self.add_tree(merged), conflicts)

    def create_commit(
        self,
        tree: Tree,
        parents: Sequence[Commit],
        message: str,
        author: Optional[Signature] = None,
    ) -> Commit:
        return self._store_commit(tree, parents, message, author or DEFAULT_AUTHOR)

    def checkout_tree(self, old: Tree, new: Tree, *, discard: bool = False, update_worktree: bool = True) -> None:
        if self._fail_checkout:
            raise RepositoryWriteFailure("cannot check out the new stack head")
        old_files, new_files = self.trees[old], self.trees[new]
        if discard:
            self.index = dict(new_files)
            self.worktree = dict(new_files)
            self.unmerged = []
        else:
            changed = [p for p in set(old_files) | set(new_files) if old_files.get(p) != new_files.get(p)]
            targets = [self.index]
            if update_worktree:
                targets.append(self.worktree)
            for path in changed:
                for files in targets:
                    if files.get(path) not in (old_files.get(path), new_files.get(path)):
                        raise RepositoryWriteFailure("Entry '{}' would be overwritten by checkout", path)
            for path in changed:
                for files in targets:
                    if path in new_files:
                        files[path] = new_files[path]
                    else:
                        files.pop(path, None)
        self.checkouts.append((old, new, discard, update_worktree))

    def checkout_conflicts(self, base: Tree, ours: Tree, theirs: Tree) -> None:
        result = self.three_way_merge(base, ours, theirs)
        merged = self.trees[result.tree]
        self.worktree = dict(merged)
        self.index = {p: v for p, v in merged.items() if p not in result.conflicts}
        for path in result.conflicts:
            if path in self.trees[ours]:
                self.index[path] = self.trees[ours][path]
        self.unmerged = list(result.conflicts)

    def write_stack_state(self, text: str, message: str, parent: Optional[Commit]) -> Commit:
        tree = self.add_tree({"stack.json": text})
        parents = [parent] if parent is not None else []
        commit = self._store_commit(tree, parents, message, DEFAULT_AUTHOR)
        self.states[commit] = text
        return commit

    def read_stack_state(self, commit: Commit) -> str:
        return self.states[commit]

    def index_tree(self) -> Tree:
        return self.add_tree(self.index)

    def worktree_tree(self, paths: Sequence[str] = (), *, submodules: bool = False) -> Tree:
        files = dict(self.index)
        for path in set(self.index) | set(self.worktree):
            if path not in self.index:
                # untracked files are never picked up
                continue
            if paths and not any(path == p or path.startswith(p.rstrip("/") + "/") for p in paths):
                continue
            if path in self.worktree:
                files[path] = self.worktree[path]
            else:
                files.pop(path, None)
        return self.add_tree(files)


def build_stack(
    repo: FakeRepository,
    base_files: Dict[str, str],
    patches: Sequence[tuple],
    *,
    applied: int,
    hidden: Sequence[str] = (),
):
    """Seed ``repo`` with an initialized stack and return its snapshot.

    ``patches`` is a sequence of ``(name, changes)`` pairs in stack order,
    where ``changes`` maps paths to new content (None deletes the path).
    Each patch commit sits on the previous one; the first ``applied``
    patches are applied and the names in ``hidden`` are hidden.
    """
    from quiltstack.git.refs import stack_ref
    from quiltstack.stack.patchname import PatchName
    from quiltstack.stack.state import PatchDescriptor, Stack, StackState

    base = repo.add_commit(base_files, message="base\n")
    files = dict(base_files)
    parent = base
    descriptors = {}
    names = []
    for name, changes in patches:
        for path, content in changes.items():
            if content is None:
                files.pop(path, None)
            else:
                files[path] = content
        parent = repo.add_commit(files, [parent], message="{}\n".format(name))
        descriptors[PatchName(name)] = PatchDescriptor(parent)
        names.append(PatchName(name))

    applied_names = names[:applied]
    unapplied_names = [n for n in names[applied:] if n not in hidden]
    hidden_names = [n for n in names[applied:] if n in hidden]
    head = descriptors[applied_names[-1]].commit if applied_names else base
    state = StackState.from_lists(head, applied_names, unapplied_names, hidden_names, descriptors)
    repo.set_head(head)
    state_commit = repo.write_stack_state(state.to_json(), "initialize", None)
    repo.refs[stack_ref(repo.current_branch())] = state_commit
    return Stack.from_branch(repo)
