"""Structural diff between two snapshots' normalized trees.

Mappings are compared by key, sequences strictly by position, scalars by
value. Inserting into or reordering a list therefore shows up as a run of
``edited`` entries followed by a trailing ``added``/``removed``; there is no
content-based alignment of sequence elements.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

from ..core.models import ArtifactRecord, Finding
from ..core.snapshot import DIFF_FILE, Snapshot
from ..core.utils import write_json

ADDED = "added"
REMOVED = "removed"
EDITED = "edited"

PathKey = Union[str, int]


class _Missing:
    """Marks the absent side of an added or removed entry."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True)
class DiffEntry:
    """One change between the left-hand and right-hand tree."""

    path: Tuple[PathKey, ...]
    kind: str
    old: Any = MISSING
    new: Any = MISSING

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"path": list(self.path), "kind": self.kind}
        if self.old is not MISSING:
            data["old"] = self.old
        if self.new is not MISSING:
            data["new"] = self.new
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DiffEntry":
        return cls(
            path=tuple(data["path"]),
            kind=str(data["kind"]),
            old=data.get("old", MISSING),
            new=data.get("new", MISSING),
        )


def _shape(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "sequence"
    return "scalar"


def _same_scalar(lhs: Any, rhs: Any) -> bool:
    # True == 1 in Python, but a flag turning into a count is a change.
    if isinstance(lhs, bool) != isinstance(rhs, bool):
        return False
    return lhs == rhs


def _walk(lhs: Any, rhs: Any, path: Tuple[PathKey, ...], out: List[DiffEntry]) -> None:
    shape = _shape(lhs)
    if shape != _shape(rhs):
        out.append(DiffEntry(path, EDITED, lhs, rhs))
        return

    if shape == "mapping":
        for key, value in lhs.items():
            if key in rhs:
                _walk(value, rhs[key], path + (key,), out)
            else:
                out.append(DiffEntry(path + (key,), REMOVED, old=value))
        for key, value in rhs.items():
            if key not in lhs:
                out.append(DiffEntry(path + (key,), ADDED, new=value))
        return

    if shape == "sequence":
        shared = min(len(lhs), len(rhs))
        for index in range(shared):
            _walk(lhs[index], rhs[index], path + (index,), out)
        for index in range(shared, len(lhs)):
            out.append(DiffEntry(path + (index,), REMOVED, old=lhs[index]))
        for index in range(shared, len(rhs)):
            out.append(DiffEntry(path + (index,), ADDED, new=rhs[index]))
        return

    if not _same_scalar(lhs, rhs):
        out.append(DiffEntry(path, EDITED, lhs, rhs))


def diff(lhs: Any, rhs: Any) -> List[DiffEntry]:
    """Return the ordered change list turning ``lhs`` into ``rhs``."""

    entries: List[DiffEntry] = []
    _walk(lhs, rhs, (), entries)
    return entries


def snapshot_tree(records: Mapping[str, ArtifactRecord], findings: Sequence[Finding]) -> Dict[str, Any]:
    """The comparable tree for one snapshot: every record plus its findings."""

    return {
        "artifacts": {name: record.to_dict() for name, record in records.items()},
        "issues": [finding.to_dict() for finding in findings],
    }


def write_diff(snapshot: Snapshot, entries: Sequence[DiffEntry]) -> None:
    write_json(snapshot.processed_dir / DIFF_FILE, [entry.to_dict() for entry in entries])


__all__ = [
    "ADDED",
    "DiffEntry",
    "EDITED",
    "MISSING",
    "REMOVED",
    "diff",
    "snapshot_tree",
    "write_diff",
]
