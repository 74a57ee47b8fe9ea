"""Syslog normalizer; the log text itself stays in the raw artifact."""
from __future__ import annotations

from ..core import snapshot as layout
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot
from ..extract.tasks import SYSLOG
from .base import require


class SyslogNormalizer:
    name = SYSLOG

    def normalize(self, snapshot: Snapshot) -> ArtifactRecord:
        path = require(snapshot.artifact(layout.SYSLOG_FILE))
        lines = 0
        with path.open("rb") as fh:
            for _ in fh:
                lines += 1
        details = {"file": layout.SYSLOG_FILE, "size": path.stat().st_size}
        return ArtifactRecord(name=self.name, details=details, summary={"lines": lines})


__all__ = ["SyslogNormalizer"]
