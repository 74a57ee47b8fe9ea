"""Backup transcript normalizer. Backups are optional, so no log is not an error."""
from __future__ import annotations

import re
from typing import Any, Dict

from ..core import snapshot as layout
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot
from ..extract.tasks import BACKUP
from .base import iter_lines

RECEIVED_MARKER = "Received "
_RECEIVED = re.compile(r"^Received (\d+) files?")
_STATUS = re.compile(r"^Backup (Successful|Failed)", re.IGNORECASE)


def summarize(details: Dict[str, Any]) -> Dict[str, Any]:
    if not details:
        return {}
    status = details.get("status")
    return {
        "files": details.get("received"),
        "successful": None if status is None else status.lower() == "successful",
    }


class BackupNormalizer:
    name = BACKUP

    def normalize(self, snapshot: Snapshot) -> ArtifactRecord:
        path = snapshot.backup_dir / layout.BACKUP_LOG_FILE
        if not path.is_file():
            return ArtifactRecord(name=self.name)
        received: int | None = None
        status: str | None = None
        for line in iter_lines(path):
            if line.startswith(RECEIVED_MARKER):
                match = _RECEIVED.match(line)
                if match:
                    received = int(match.group(1))
                continue
            match = _STATUS.match(line)
            if match:
                status = match.group(1)
        details = {"received": received, "status": status}
        return ArtifactRecord(name=self.name, details=details, summary=summarize(details))


__all__ = ["BackupNormalizer", "RECEIVED_MARKER", "summarize"]
