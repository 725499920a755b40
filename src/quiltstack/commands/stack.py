"""Stack commands - init, series."""

from quiltstack.git.abc import Repository
from quiltstack.stack.state import Stack, initialize
from quiltstack.utils.logging import ExitException, cout


def patch_name_completer(prefix, parsed_args, **kwargs):
    """Argcomplete completer function for patch names."""
    from quiltstack.git.repository import GitRepository
    try:
        stack = Stack.from_branch(GitRepository(), check=False)
    except (Exception, ExitException):
        return []
    return [name for name in stack.applied + stack.unapplied if name.startswith(prefix)]


def cmd_init(repo: Repository, args):
    """Initialize the stack metadata of the current branch."""
    stack = initialize(repo)
    cout("Initialized stack on branch {}\n", stack.branch, fg="green")


def cmd_series(repo: Repository, args):
    """List the patches of the stack."""
    stack = Stack.from_branch(repo, check=False)
    top = stack.state.top()
    for name in stack.applied:
        if name == top:
            cout("> {}\n", name, fg="cyan")
        else:
            cout("+ {}\n", name, fg="green")
    for name in stack.unapplied:
        cout("- {}\n", name, fg="gray")
    if args.all:
        for name in stack.hidden:
            cout("! {}\n", name, fg="yellow")
