"""Navigation commands - goto, push, pop."""

from typing import List, Optional

from quiltstack.git.abc import Repository
from quiltstack.stack.errors import AmbiguousCommitPrefix, AmbiguousName, StackError
from quiltstack.stack.patchname import PatchName
from quiltstack.stack.resolve import resolve_patch
from quiltstack.stack.state import Stack
from quiltstack.stack.transaction import ConflictMode, ExecuteResult, StackTransaction
from quiltstack.utils.config import get_config
from quiltstack.utils.logging import IS_TERMINAL, cout, die
from quiltstack.utils.types import CONFLICT_EXIT_CODE
from quiltstack.utils.ui import menu_choose


def resolve_or_list(stack: Stack, text: str) -> PatchName:
    """Resolve a patch name, listing the candidates when it is ambiguous."""
    PatchName.parse(text)
    try:
        return resolve_patch(text, stack.state)
    except (AmbiguousName, AmbiguousCommitPrefix) as e:
        cout("Possible patches:\n")
        for name in e.candidates:
            cout("  {}\n", name)
        raise


def choose_patch(stack: Stack) -> PatchName:
    """Pick a patch from a menu of the applied and unapplied patches."""
    if not get_config().use_menu or not IS_TERMINAL:
        die("A patch name is required")
    names = stack.applied + stack.unapplied
    if not names:
        die("No patches to choose from")
    top = stack.state.top()
    lines = []
    for name in names:
        if name == top:
            lines.append("> {}".format(name))
        elif name in stack.applied:
            lines.append("+ {}".format(name))
        else:
            lines.append("- {}".format(name))
    initial = names.index(top) if top is not None else 0
    return names[menu_choose(lines, initial_index=initial)]


def report_result(result: ExecuteResult) -> Optional[int]:
    """Print what a transaction did; returns the conflict exit code if needed."""
    for name in result.popped:
        cout("- {}\n", name, fg="gray")
    for name in result.pushed:
        if result.conflict is not None and name == result.conflict.name:
            cout("+ {} (conflict)\n", name, fg="red")
        elif name in result.merged:
            cout("+ {} (merged)\n", name, fg="green")
        elif name in result.empty:
            cout("+ {} (empty)\n", name, fg="yellow")
        else:
            cout("+ {}\n", name, fg="green")

    if result.conflict is not None:
        cout("{} conflict{} in `{}`, resolve them and refresh the patch:\n",
             len(result.conflict.paths), "" if len(result.conflict.paths) == 1 else "s",
             result.conflict.name, fg="red")
        for path in result.conflict.paths:
            cout("  {}\n", path)
        return CONFLICT_EXIT_CODE

    top = result.state.top()
    if top is not None:
        cout("Now at patch {}\n", top, fg="cyan")
    else:
        cout("No patches applied\n")
    return None


def report_merged(merged: List[PatchName]):
    cout("Found {} patch{} merged upstream\n", len(merged), "" if len(merged) == 1 else "es")


def push_all(trans: StackTransaction, names: List[PatchName], *, merged: bool):
    already_merged = trans.check_merged(names) if merged else []
    if merged:
        report_merged(already_merged)
    for name in names:
        trans.push_patch(name, name in already_merged)


def cmd_goto(repo: Repository, args):
    """Go to a patch by pushing or popping as necessary."""
    stack = Stack.from_branch(repo)
    stack.check_conflicts()

    if args.patch is not None:
        patchname = resolve_or_list(stack, args.patch)
    else:
        patchname = choose_patch(stack)

    trans = stack.setup_transaction(require_clean=not args.keep).begin()
    applied = trans.applied()
    if patchname in applied:
        to_pop = set(applied[applied.index(patchname) + 1:])
        trans.pop_patches(lambda pn: pn in to_pop)
    else:
        unapplied = trans.unapplied()
        to_apply = unapplied[:unapplied.index(patchname) + 1]
        push_all(trans, to_apply, merged=args.merged)

    return report_result(trans.execute("goto"))


def cmd_push(repo: Repository, args):
    """Push patches onto the stack, leaving conflicts for manual resolution."""
    stack = Stack.from_branch(repo)
    stack.check_conflicts()

    context = StackTransaction.make_context(stack, ConflictMode.ALLOW, require_clean=not args.keep)
    trans = context.begin()
    unapplied = trans.unapplied()
    if args.all:
        names = unapplied
    elif args.patches:
        names = [resolve_or_list(stack, p) for p in args.patches]
    else:
        names = unapplied[:args.number]
    if not names:
        raise StackError("no patches to push")

    push_all(trans, names, merged=args.merged)
    return report_result(trans.execute("push"))


def cmd_pop(repo: Repository, args):
    """Pop patches off the stack."""
    stack = Stack.from_branch(repo)
    stack.check_conflicts()

    trans = stack.setup_transaction(require_clean=not args.keep).begin()
    applied = trans.applied()
    if not applied:
        raise StackError("no patches applied")
    if args.all:
        trans.pop_patches(lambda pn: True)
    elif args.patch is not None:
        patchname = resolve_or_list(stack, args.patch)
        if patchname not in applied:
            raise StackError("patch `{}` is not applied", patchname)
        trans.pop_patches(lambda pn: pn == patchname)
    else:
        to_pop = set(applied[-args.number:])
        trans.pop_patches(lambda pn: pn in to_pop)

    return report_result(trans.execute("pop"))
