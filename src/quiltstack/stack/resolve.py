"""Resolve user input to a patch name.

Resolution is layered: an exact name wins, then similar names are reported
as ambiguous, then the input is tried as an abbreviated commit id. Ambiguity
is always reported, never guessed.
"""

import re
from typing import List

from quiltstack.stack.errors import (
    AmbiguousCommitPrefix, AmbiguousName, HiddenPatchAccess, NotFound
)
from quiltstack.stack.patchname import PatchName
from quiltstack.stack.state import PatchStatus, StackState
from quiltstack.utils.types import MIN_OID_PREFIX, SIMILARITY_THRESHOLD

_HEX = re.compile(r"^[0-9a-fA-F]+$")

WINKLER_BOOST_THRESHOLD = 0.7
WINKLER_PREFIX_LIMIT = 4
WINKLER_SCALE = 0.1


def jaro(a: str, b: str) -> float:
    """Jaro similarity of two strings, between 0.0 and 1.0."""
    a_len, b_len = len(a), len(b)
    if a_len == 0 and b_len == 0:
        return 1.0
    if a_len == 0 or b_len == 0:
        return 0.0

    search_range = max(0, max(a_len, b_len) // 2 - 1)
    a_matched = [False] * a_len
    b_matched = [False] * b_len
    matches = 0
    for i, c in enumerate(a):
        lo = max(0, i - search_range)
        hi = min(b_len, i + search_range + 1)
        for j in range(lo, hi):
            if not b_matched[j] and b[j] == c:
                a_matched[i] = b_matched[j] = True
                matches += 1
                break
    if matches == 0:
        return 0.0

    a_seq = [c for c, m in zip(a, a_matched) if m]
    b_seq = [c for c, m in zip(b, b_matched) if m]
    transpositions = sum(1 for x, y in zip(a_seq, b_seq) if x != y) / 2
    return (matches / a_len + matches / b_len + (matches - transpositions) / matches) / 3


def jaro_winkler(a: str, b: str) -> float:
    """Jaro-Winkler similarity: Jaro boosted by the length of a common prefix."""
    sim = jaro(a, b)
    if sim <= WINKLER_BOOST_THRESHOLD:
        return sim
    prefix = 0
    for x, y in zip(a[:WINKLER_PREFIX_LIMIT], b[:WINKLER_PREFIX_LIMIT]):
        if x != y:
            break
        prefix += 1
    return sim + WINKLER_SCALE * prefix * (1.0 - sim)


def similar_patches(text: str, state: StackState) -> List[PatchName]:
    return [
        name for name in state.all_patches()
        if jaro_winkler(name, text) > SIMILARITY_THRESHOLD
    ]


def patches_by_commit_prefix(prefix: str, state: StackState) -> List[PatchName]:
    prefix = prefix.lower()
    return [
        name for name, descriptor in state.patches.items()
        if descriptor.commit.lower().startswith(prefix)
    ]


def looks_like_oid_prefix(text: str) -> bool:
    return len(text) >= MIN_OID_PREFIX and bool(_HEX.match(text))


def resolve_patch(text: str, state: StackState) -> PatchName:
    """Resolve ``text`` to exactly one known, non-hidden patch name."""
    status = state.status(text)
    if status is not None:
        if status == PatchStatus.HIDDEN:
            raise HiddenPatchAccess("cannot use hidden patch `{}`", text)
        return PatchName(text)

    similar = similar_patches(text, state)
    if similar:
        raise AmbiguousName(text, similar)

    if looks_like_oid_prefix(text):
        matches = patches_by_commit_prefix(text, state)
        if not matches:
            raise NotFound("no patch associated with `{}`", text)
        if len(matches) > 1:
            raise AmbiguousCommitPrefix(text, matches)
        if state.status(matches[0]) == PatchStatus.HIDDEN:
            raise HiddenPatchAccess("cannot use hidden patch `{}`", matches[0])
        return matches[0]

    raise NotFound("patch `{}` does not exist", text)
