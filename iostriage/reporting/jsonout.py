"""JSON reporting."""
from __future__ import annotations

from ..core.utils import json_dump
from .tree import TriageReport


def to_json(report: TriageReport) -> str:
    """Serialize a triage report to JSON."""

    return json_dump(report.to_tree())


__all__ = ["to_json"]
