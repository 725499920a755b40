"""Patch commands - new."""

from quiltstack.git.abc import Repository
from quiltstack.stack.errors import PatchExists, StackError
from quiltstack.stack.patchname import PatchName
from quiltstack.stack.state import Stack
from quiltstack.utils.config import get_config
from quiltstack.utils.logging import cout, die
from quiltstack.utils.types import Tree
from quiltstack.utils.ui import edit_message


def check_new_args(args):
    """Enforce the flag combinations argparse cannot express."""
    if args.index:
        if not args.refresh:
            die("--index requires --refresh")
        if args.pathspecs:
            die("--index cannot be combined with paths")
        if args.submodules is not None:
            die("--index cannot be combined with --submodules or --no-submodules")
        if args.force:
            die("--index cannot be combined with --force")
    is_refreshing = args.refresh or bool(args.pathspecs)
    if args.force and not is_refreshing:
        die("--force requires --refresh")
    if args.submodules is not None and not is_refreshing:
        die("--submodules and --no-submodules require --refresh")


def refresh_tree(repo: Repository, args) -> Tree:
    """Tree capturing the outstanding changes the new patch should hold."""
    if args.index:
        return repo.index_tree()
    if not args.force and not repo.is_index_clean() and not repo.is_worktree_clean():
        die("The index is dirty; consider using `--index` or `--force`")
    submodules = args.submodules
    if submodules is None:
        submodules = get_config().refresh_submodules
    return repo.worktree_tree(args.pathspecs, submodules=submodules)


def cmd_new(repo: Repository, args):
    """Create a new patch at the top of the stack."""
    check_new_args(args)
    stack = Stack.from_branch(repo)
    stack.check_conflicts()

    patchname = None
    if args.name is not None:
        patchname = PatchName.parse(args.name)
        if stack.has_patch(patchname):
            raise PatchExists("patch `{}` already exists", patchname)

    if args.refresh or args.pathspecs:
        tree = refresh_tree(repo, args)
    else:
        tree = stack.head_tree

    message = args.message
    if message is None:
        message = edit_message()
    if not message or not message.strip():
        raise StackError("aborting due to empty patch description")
    message = message.strip() + "\n"

    if patchname is None:
        patchname = PatchName.make(message, get_config().name_length).uniquify(set(stack.all_patches()))

    commit = repo.create_commit(tree, [stack.branch_head], message)
    trans = stack.setup_transaction().begin()
    trans.new_applied(patchname, commit)
    trans.execute("new: {}".format(patchname))
    cout("Now at patch {}\n", patchname, fg="cyan")
