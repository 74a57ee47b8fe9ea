"""Issue detection and snapshot comparison."""

from .diff import DiffEntry, diff, snapshot_tree
from .issues import BUILTIN_RULES, detect

__all__ = ["BUILTIN_RULES", "DiffEntry", "detect", "diff", "snapshot_tree"]
