"""quiltstack - a stack of amendable patches on top of a git branch."""

from .main import main

from .utils.logging import ExitException, cout, die, debug, info, warning, error
from .utils.types import BranchName, Commit, Tree
from .utils.config import QuiltstackConfig, get_config, read_config

from .git.abc import Repository
from .git.repository import GitRepository, open_current_repository

from .stack.errors import (
    AmbiguousCommitPrefix, AmbiguousName, CorruptState, DirtyIndex, DirtyWorktree,
    HeadMismatch, HiddenPatchAccess, InvalidName, MergeConflict, NotFound,
    RepositoryStateConflict, RepositoryWriteFailure, StackError
)
from .stack.patchname import PatchName
from .stack.state import PatchDescriptor, PatchStatus, Stack, StackState, initialize
from .stack.resolve import jaro_winkler, resolve_patch
from .stack.merged import check_merged
from .stack.transaction import ConflictMode, ExecuteResult, StackTransaction, TransactionContext


def runner():
    main()
