"""The in-memory tree handed to report renderers."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Sequence

from ..analysis.diff import DiffEntry
from ..core.models import ArtifactRecord, Finding
from ..core.snapshot import Snapshot
from ..core.utils import now_utc

TOOL_NAME = "iostriage"


@dataclass(frozen=True)
class TriageReport:
    """Everything a renderer needs for one snapshot."""

    snapshot: Snapshot
    records: Mapping[str, ArtifactRecord]
    findings: Sequence[Finding]
    version: str
    diff: Sequence[DiffEntry] | None = None
    compared_to: Snapshot | None = None
    generated_at: datetime = field(default_factory=now_utc)

    def to_tree(self) -> Dict[str, Any]:
        tree: Dict[str, Any] = {
            "tool": {"name": TOOL_NAME, "version": self.version},
            "generatedAt": self.generated_at.isoformat(),
            "snapshot": {
                "deviceId": self.snapshot.device_id,
                "timestamp": self.snapshot.timestamp,
                "path": str(self.snapshot.root),
            },
            "artifacts": {name: record.to_dict() for name, record in self.records.items()},
            "issues": [finding.to_dict() for finding in self.findings],
        }
        if self.diff is not None:
            tree["diff"] = {
                "against": str(self.compared_to.root) if self.compared_to is not None else None,
                "entries": [entry.to_dict() for entry in self.diff],
            }
        return tree


__all__ = ["TOOL_NAME", "TriageReport"]
