"""Crash report normalizer.

``idevicecrashreport --keep`` prints one ``Copy: <path>`` line per report it
copies. Each referenced report gets its size and a short preview recorded.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from ..core import snapshot as layout
from ..core.log import get_logger
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot
from ..extract.tasks import CRASH_REPORTS
from .base import iter_lines, require

logger = get_logger("normalize.crash_reports")

COPY_MARKER = "Copy: "
PREVIEW_BYTES = 500


def copied_filename(line: str, crash_dir: Path) -> str | None:
    if not line.startswith(COPY_MARKER):
        return None
    name = line[len(COPY_MARKER):].strip()
    if not name:
        return None
    root = crash_dir.resolve()
    # An absolute name replaces crash_dir in the join.
    target = (crash_dir / name).resolve()
    if not target.is_relative_to(root):
        logger.warning("ignoring crash report outside %s: %s", crash_dir, name)
        return None
    return target.relative_to(root).as_posix()


def preview(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {"size": None, "preview": [], "error": "file not found"}
    with path.open("rb") as fh:
        head = fh.read(PREVIEW_BYTES)
    return {
        "size": path.stat().st_size,
        "preview": head.decode("utf-8", errors="replace").splitlines(),
    }


class CrashReportsNormalizer:
    name = CRASH_REPORTS

    def normalize(self, snapshot: Snapshot) -> ArtifactRecord:
        crash_dir = snapshot.crash_reports_dir
        transcript = require(crash_dir / layout.CRASH_LOG_FILE)
        filenames: List[str] = []
        for line in iter_lines(transcript):
            name = copied_filename(line, crash_dir)
            if name is not None:
                filenames.append(name)
        reports = [{"filename": name, **preview(crash_dir / name)} for name in filenames]
        details = {"filenames": filenames, "reports": reports}
        return ArtifactRecord(name=self.name, details=details, summary={"reports": len(filenames)})


__all__ = ["COPY_MARKER", "CrashReportsNormalizer", "PREVIEW_BYTES", "copied_filename", "preview"]
