"""Error taxonomy for stack operations.

Every error is an ExitException, so the command layer reports it and exits
with a non-zero status without any extra plumbing.
"""

from typing import Sequence

from quiltstack.utils.logging import ExitException


class StackError(ExitException):
    pass


class InvalidName(StackError):
    pass


class NotFound(StackError):
    pass


class PatchExists(StackError):
    pass


class HiddenPatchAccess(StackError):
    pass


class AmbiguousName(StackError):
    """More than one known patch name is similar to the requested one."""

    def __init__(self, name: str, candidates: Sequence[str]):
        super().__init__("ambiguous patch name `{}`", name)
        self.candidates = list(candidates)


class AmbiguousCommitPrefix(StackError):
    """The requested commit id prefix matches several patches."""

    def __init__(self, prefix: str, candidates: Sequence[str]):
        super().__init__("ambiguous commit id `{}`", prefix)
        self.candidates = list(candidates)


class DirtyIndex(StackError):
    pass


class DirtyWorktree(StackError):
    pass


class RepositoryStateConflict(StackError):
    pass


class HeadMismatch(StackError):
    pass


class CorruptState(StackError):
    pass


class StackNotInitialized(StackError):
    pass


class StackAlreadyInitialized(StackError):
    pass


class TransactionError(StackError):
    """A transaction was driven outside of its allowed state."""


class MergeConflict(StackError):
    """A push produced conflicts while conflicts were not allowed.

    ``applied_count`` is the number of patches that had already been written
    as new commits when the conflict stopped the transaction.
    """

    def __init__(self, name: str, applied_count: int, paths: Sequence[str] = ()):
        super().__init__(
            "merge conflict pushing `{}` ({} patch{} written as new commits before the failure); "
            "stack left unchanged",
            name,
            applied_count,
            "" if applied_count == 1 else "es",
        )
        self.name = name
        self.applied_count = applied_count
        self.paths = list(paths)


class RepositoryWriteFailure(StackError):
    pass
