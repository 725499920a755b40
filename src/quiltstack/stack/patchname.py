"""Patch names."""

import re
from typing import Collection

from quiltstack.stack.errors import InvalidName

_VALID_NAME = re.compile(r"^[A-Za-z0-9_-]+$")
_NUMBERED = re.compile(r"^(.*)-(\d+)$")


class PatchName(str):
    """A validated patch name.

    Names are non-empty and limited to ASCII letters, digits, dashes and
    underscores. Being a str subclass, a PatchName compares, hashes and
    serializes exactly like the underlying string.
    """

    def __new__(cls, value: str):
        if isinstance(value, PatchName):
            return value
        if not isinstance(value, str) or not _VALID_NAME.match(value):
            raise InvalidName(
                "invalid patch name `{}`: names may only contain alphanumeric characters, dashes and underscores",
                value,
            )
        return super().__new__(cls, value)

    @classmethod
    def parse(cls, value: str) -> "PatchName":
        return cls(value)

    @classmethod
    def make(cls, message: str, length_limit: int = 30) -> "PatchName":
        """Derive a patch name from the first line of a commit message."""
        first_line = message.strip().split("\n", 1)[0].lower()
        chars = []
        for c in first_line:
            if c.isascii() and (c.isalnum() or c in "-_"):
                chars.append(c)
            elif chars and chars[-1] != "-":
                chars.append("-")
        name = "".join(chars).strip("-")

        if length_limit > 0 and len(name) > length_limit:
            cut = name[:length_limit]
            word_end = cut.rfind("-")
            name = cut[:word_end] if word_end > 0 else cut
            name = name.strip("-")

        return cls(name or "patch")

    def uniquify(self, taken: Collection[str]) -> "PatchName":
        """Return this name, or a numbered variant of it not present in ``taken``."""
        if self not in taken:
            return self
        m = _NUMBERED.match(self)
        if m:
            base, n = m.group(1), int(m.group(2))
        else:
            base, n = str(self), 0
        while True:
            n += 1
            candidate = PatchName("{}-{}".format(base, n))
            if candidate not in taken:
                return candidate
