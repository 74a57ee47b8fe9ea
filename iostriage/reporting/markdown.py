"""Markdown reporting."""
from __future__ import annotations

import json
from collections import Counter
from typing import Any, List

from ..analysis.diff import MISSING, DiffEntry
from ..core.models import Finding
from .tree import TOOL_NAME, TriageReport

_MAX_DIFF_ROWS = 200
_MAX_CELL = 60


def _cell(value: Any) -> str:
    if value is MISSING:
        return ""
    text = value if isinstance(value, str) else json.dumps(value, sort_keys=True, default=str)
    text = text.replace("|", "\\|").replace("\n", " ")
    if len(text) > _MAX_CELL:
        text = text[: _MAX_CELL - 3] + "..."
    return f"`{text}`" if text else ""


def _summary_table(findings: List[Finding]) -> List[str]:
    lines = ["| ID | Severity | Title |", "| --- | --- | --- |"]
    for finding in findings:
        lines.append(f"| {finding.id} | {finding.severity} | {finding.title} |")
    return lines


def _diff_table(entries: List[DiffEntry]) -> List[str]:
    lines = ["| Path | Change | Old | New |", "| --- | --- | --- | --- |"]
    for entry in entries[:_MAX_DIFF_ROWS]:
        path = "/".join(str(key) for key in entry.path) or "/"
        lines.append(f"| {path} | {entry.kind} | {_cell(entry.old)} | {_cell(entry.new)} |")
    if len(entries) > _MAX_DIFF_ROWS:
        lines.append("")
        lines.append(f"{len(entries) - _MAX_DIFF_ROWS} more change(s) in report.json.")
    return lines


def to_markdown(report: TriageReport) -> str:
    """Render a triage report to Markdown."""

    findings = list(report.findings)
    counts = Counter(finding.severity for finding in findings)
    lines: List[str] = [
        "# iOS Triage Report",
        "",
        f"**Device:** {report.snapshot.device_id}",
        f"**Snapshot:** {report.snapshot.timestamp}",
        f"**Generated by:** {TOOL_NAME} {report.version}",
        "",
        "## Severity Overview",
    ]
    for severity in ["High", "Medium", "Low"]:
        lines.append(f"- **{severity}:** {counts.get(severity, 0)} findings")
    lines.extend(["", "## Findings", ""])
    if findings:
        lines.extend(_summary_table(findings))
        lines.append("")
        for finding in findings:
            lines.extend(
                [
                    f"### {finding.title} ({finding.severity})",
                    "",
                    f"- **ID:** {finding.id}",
                    f"- **Severity:** {finding.severity}",
                    f"- **Recommendation:** {finding.recommendation}",
                    "",
                    finding.description,
                    "",
                ]
            )
    else:
        lines.append("No findings were identified.")
        lines.append("")

    lines.extend(["## Artifacts", ""])
    for name, record in report.records.items():
        lines.extend([f"### {name}", ""])
        if not record.summary:
            lines.extend(["No data.", ""])
            continue
        lines.extend(["| Field | Value |", "| --- | --- |"])
        for key in sorted(record.summary):
            lines.append(f"| {key} | {_cell(record.summary[key])} |")
        lines.append("")

    if report.diff is not None:
        against = report.compared_to.timestamp if report.compared_to is not None else "?"
        lines.extend([f"## Changes since snapshot {against}", ""])
        entries = list(report.diff)
        if entries:
            lines.extend(_diff_table(entries))
        else:
            lines.append("No changes.")
        lines.append("")
    return "\n".join(lines)


__all__ = ["to_markdown"]
