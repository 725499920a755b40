"""Repository operations backed by the git executable."""

import os
import shutil
import tempfile
from typing import List, Optional, Sequence

from quiltstack.git.abc import CommitInfo, MergeResult, Repository, Signature
from quiltstack.git.refs import get_current_branch, read_ref, update_ref
from quiltstack.stack.errors import RepositoryWriteFailure, StackError
from quiltstack.utils.logging import debug, die
from quiltstack.utils.shell import run, run_always_return, run_multiline, run_status
from quiltstack.utils.types import BranchName, CmdArgs, Commit, STACK_FILE, Tree

# Marker files git leaves behind while an operation waits for the user
_IN_PROGRESS_MARKERS = [
    ("rebase-merge", "rebase"),
    ("rebase-apply", "rebase"),
    ("MERGE_HEAD", "merge"),
    ("CHERRY_PICK_HEAD", "cherry-pick"),
    ("REVERT_HEAD", "revert"),
    ("BISECT_LOG", "bisect"),
]


def open_current_repository() -> "GitRepository":
    """Open the repository containing the current directory."""
    git_dir = run(CmdArgs(["git", "rev-parse", "--git-dir"]), check=False)
    if git_dir is None:
        raise StackError("not a git repository (or any of the parent directories)")
    return GitRepository()


def parse_signature(line: str) -> Signature:
    """Parse the value of an ``author`` commit header."""
    ident, _, date = line.rpartition(">")
    name, _, email = ident.partition("<")
    return Signature(name.strip(), email.strip(), date.strip())


def signature_env(author: Optional[Signature]) -> dict:
    if author is None:
        return {}
    return {
        "GIT_AUTHOR_NAME": author.name,
        "GIT_AUTHOR_EMAIL": author.email,
        "GIT_AUTHOR_DATE": author.date,
    }


class GitRepository(Repository):
    """Repository collaborator talking to git through plumbing commands."""

    def current_branch(self) -> Optional[BranchName]:
        return get_current_branch()

    def head_commit(self) -> Commit:
        return Commit(run_always_return(CmdArgs(["git", "rev-parse", "HEAD"])))

    def read_ref(self, ref: str) -> Optional[Commit]:
        return read_ref(ref)

    def update_ref(self, ref: str, new: Commit, old: Optional[Commit], message: str) -> None:
        update_ref(ref, new, old, message=message)

    def _git_path(self, name: str) -> str:
        return run_always_return(CmdArgs(["git", "rev-parse", "--git-path", name]))

    def operation_in_progress(self) -> Optional[str]:
        for marker, operation in _IN_PROGRESS_MARKERS:
            if os.path.exists(self._git_path(marker)):
                return operation
        return None

    def has_conflicts(self) -> bool:
        unmerged = run(CmdArgs(["git", "ls-files", "--unmerged"]))
        return bool(unmerged)

    def is_index_clean(self) -> bool:
        rc, _, _ = run_status(CmdArgs(["git", "diff-index", "--quiet", "--cached", "HEAD", "--"]))
        return rc == 0

    def is_worktree_clean(self) -> bool:
        run(CmdArgs(["git", "update-index", "-q", "--refresh"]), check=False)
        rc, _, _ = run_status(CmdArgs(["git", "diff-files", "--quiet"]))
        return rc == 0

    def commit_tree(self, commit: Commit) -> Tree:
        return Tree(run_always_return(CmdArgs(["git", "rev-parse", "{}^{{tree}}".format(commit)])))

    def commit_parents(self, commit: Commit) -> List[Commit]:
        line = run_always_return(CmdArgs(["git", "rev-list", "--parents", "-n", "1", commit]))
        return [Commit(c) for c in line.split()[1:]]

    def commit_info(self, commit: Commit) -> CommitInfo:
        raw = run_multiline(CmdArgs(["git", "cat-file", "commit", commit]))
        assert raw is not None
        headers, _, message = raw.partition("\n\n")
        author = None
        for header in headers.split("\n"):
            if header.startswith("author "):
                author = parse_signature(header[len("author "):])
        if author is None:
            die("Commit {} has no author", commit)
        return CommitInfo(message, author)

    def three_way_merge(self, base: Tree, ours: Tree, theirs: Tree) -> MergeResult:
        cmd = [
            "git", "merge-tree", "--write-tree", "--name-only", "--no-messages",
            "--merge-base={}".format(base), ours, theirs,
        ]
        rc, stdout, stderr = run_status(CmdArgs(cmd))
        if rc not in (0, 1):
            raise RepositoryWriteFailure("git merge-tree failed: {}", stderr.strip())
        lines = stdout.split("\n")
        tree = Tree(lines[0].strip())
        conflicts = []
        if rc == 1:
            for line in lines[1:]:
                if not line:
                    break
                if line not in conflicts:
                    conflicts.append(line)
        return MergeResult(tree, conflicts)

    def create_commit(
        self,
        tree: Tree,
        parents: Sequence[Commit],
        message: str,
        author: Optional[Signature] = None,
    ) -> Commit:
        cmd = ["git", "commit-tree", tree]
        for p in parents:
            cmd += ["-p", p]
        cmd += ["-F", "-"]
        rc, stdout, stderr = run_status(CmdArgs(cmd), input=message.encode("UTF-8"), env=signature_env(author))
        if rc != 0:
            raise RepositoryWriteFailure("cannot create commit: {}", stderr.strip())
        return Commit(stdout.strip())

    def checkout_tree(self, old: Tree, new: Tree, *, discard: bool = False, update_worktree: bool = True) -> None:
        if discard:
            cmd = ["git", "read-tree", "--reset", "-u", new]
        else:
            cmd = ["git", "read-tree", "-m"]
            # -i leaves the work tree alone and skips its up-to-date check
            cmd.append("-u" if update_worktree else "-i")
            cmd += [old, new]
        rc, _, stderr = run_status(CmdArgs(cmd))
        if rc != 0:
            raise RepositoryWriteFailure("cannot check out the new stack head: {}", stderr.strip())

    def checkout_conflicts(self, base: Tree, ours: Tree, theirs: Tree) -> None:
        rc, _, stderr = run_status(CmdArgs(["git", "read-tree", "-u", "-m", "--aggressive", base, ours, theirs]))
        if rc != 0:
            raise RepositoryWriteFailure("cannot check out the conflicting merge: {}", stderr.strip())
        # A non-zero status here only means some files kept conflict markers
        rc, _, _ = run_status(CmdArgs(["git", "merge-index", "-o", "-q", "git-merge-one-file", "-a"]))
        debug("merge-index exited with status {}", rc)

    def write_stack_state(self, text: str, message: str, parent: Optional[Commit]) -> Commit:
        blob = run_always_return(CmdArgs(["git", "hash-object", "-w", "--stdin"]), input=text.encode("UTF-8"))
        entry = "100644 blob {}\t{}\n".format(blob, STACK_FILE)
        tree = run_always_return(CmdArgs(["git", "mktree"]), input=entry.encode("UTF-8"))
        parents: List[Commit] = [parent] if parent is not None else []
        return self.create_commit(Tree(tree), parents, message)

    def read_stack_state(self, commit: Commit) -> str:
        text = run_multiline(CmdArgs(["git", "cat-file", "blob", "{}:{}".format(commit, STACK_FILE)]), check=False)
        if text is None:
            raise StackError("stack state commit {} has no {}", commit, STACK_FILE)
        return text

    def index_tree(self) -> Tree:
        return Tree(run_always_return(CmdArgs(["git", "write-tree"])))

    def _submodule_paths(self) -> List[str]:
        staged = run_multiline(CmdArgs(["git", "ls-files", "--stage", "--full-name", ":/"]))
        assert staged is not None
        paths = []
        for line in staged.split("\n"):
            if line.startswith("160000 "):
                paths.append(line.split("\t", 1)[1])
        return paths

    def worktree_tree(self, paths: Sequence[str] = (), *, submodules: bool = False) -> Tree:
        pathspec = list(paths) or [":/"]
        if not submodules:
            pathspec += [":(top,exclude){}".format(p) for p in self._submodule_paths()]

        tmpdir = tempfile.mkdtemp(prefix="quiltstack-index-")
        try:
            index = os.path.join(tmpdir, "index")
            shutil.copyfile(self._git_path("index"), index)
            env = {"GIT_INDEX_FILE": index}
            run(CmdArgs(["git", "add", "--update", "--"] + pathspec), env=env)
            return Tree(run_always_return(CmdArgs(["git", "write-tree"]), env=env))
        finally:
            shutil.rmtree(tmpdir)
