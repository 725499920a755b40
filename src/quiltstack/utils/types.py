"""Type aliases and constants for quiltstack."""

import logging
from typing import List, NewType

# Type aliases
BranchName = NewType("BranchName", str)
PathName = NewType("PathName", str)
Commit = NewType("Commit", str)
Tree = NewType("Tree", str)
CmdArgs = NewType("CmdArgs", List[str])

# Persisted stack layout
STACK_REF_PREFIX = "refs/stacks/"
STACK_FILE = "stack.json"
STACK_FORMAT_VERSION = 5

# Patch name resolution
SIMILARITY_THRESHOLD = 0.75
MIN_OID_PREFIX = 4

# Exit status of a command that left conflicts for manual resolution
CONFLICT_EXIT_CODE = 3

# Log levels
LOGLEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
