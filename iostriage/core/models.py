"""Core data models for iostriage."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

SEVERITY_ORDER = {"Low": 1, "Medium": 2, "High": 3}


@dataclass(frozen=True)
class Evidence:
    """Normalized values a finding was derived from."""

    kind: str
    data: dict[str, object]

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "data": dict(self.data)}


@dataclass(frozen=True)
class Finding:
    """Heuristic security observation about a snapshot."""

    id: str
    title: str
    severity: str
    description: str
    recommendation: str
    evidence: Sequence[Evidence] = field(default_factory=tuple)
    tags: Sequence[str] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "severity": self.severity,
            "description": self.description,
            "recommendation": self.recommendation,
            "evidence": [item.to_dict() for item in self.evidence],
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Finding":
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            severity=str(data["severity"]),
            description=str(data.get("description", "")),
            recommendation=str(data.get("recommendation", "")),
            evidence=tuple(
                Evidence(kind=str(item["kind"]), data=dict(item.get("data", {})))
                for item in data.get("evidence", [])
            ),
            tags=tuple(data.get("tags", [])),
        )


@dataclass(frozen=True)
class ArtifactRecord:
    """Normalized form of one raw artifact type.

    ``details`` keeps full-fidelity data for diffing and inspection;
    ``summary`` holds counters derived from ``details`` alone.
    """

    name: str
    details: dict[str, Any] = field(default_factory=dict)
    summary: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"details": self.details, "summary": self.summary}

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "ArtifactRecord":
        return cls(
            name=name,
            details=dict(data.get("details", {})),
            summary=dict(data.get("summary", {})),
        )


def highest_severity(findings: Iterable[Finding]) -> str | None:
    highest = 0
    level: str | None = None
    for finding in findings:
        score = SEVERITY_ORDER.get(finding.severity, 0)
        if score > highest:
            highest = score
            level = finding.severity
    return level


__all__ = ["ArtifactRecord", "Evidence", "Finding", "SEVERITY_ORDER", "highest_severity"]
