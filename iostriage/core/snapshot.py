"""On-disk layout of a device snapshot.

A snapshot lives at ``<base>/<device-id>/<timestamp>`` and owns three areas:
``artifacts/`` (raw captures), ``processed/`` (normalized JSON records) and
``reports/`` (rendered output).
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import SetupError
from .log import get_logger
from .utils import epoch_millis

logger = get_logger("snapshot")

ARTIFACTS = "artifacts"
PROCESSED = "processed"
REPORTS = "reports"

SYSLOG_FILE = "syslog.txt"
DEVICE_INFO_FILE = "deviceinfo.xml"
DEVICE_INFO_DOMAIN_PREFIX = "deviceinfo-"
INSTALLED_APPS_FILE = "installed-apps.xml"
PROVISIONING_DIR = "provisioning_profiles"
PROVISIONING_LOG_FILE = "provisioning-profiles.txt"
CRASH_REPORTS_DIR = "crash_reports"
CRASH_LOG_FILE = "crashlogs.txt"
BACKUP_DIR = "backup"
BACKUP_LOG_FILE = "backup_log.txt"

ISSUES_FILE = "issues.json"
DIFF_FILE = "diff.json"


@dataclass(frozen=True)
class Snapshot:
    """One timestamped capture of a device."""

    root: Path

    @property
    def device_id(self) -> str:
        return self.root.parent.name

    @property
    def timestamp(self) -> str:
        return self.root.name

    @property
    def artifacts_dir(self) -> Path:
        return self.root / ARTIFACTS

    @property
    def processed_dir(self) -> Path:
        return self.root / PROCESSED

    @property
    def reports_dir(self) -> Path:
        return self.root / REPORTS

    @property
    def crash_reports_dir(self) -> Path:
        return self.artifacts_dir / CRASH_REPORTS_DIR

    @property
    def backup_dir(self) -> Path:
        return self.artifacts_dir / BACKUP_DIR

    @property
    def provisioning_dir(self) -> Path:
        return self.artifacts_dir / PROVISIONING_DIR

    def artifact(self, name: str) -> Path:
        return self.artifacts_dir / name

    def processed(self, name: str) -> Path:
        return self.processed_dir / f"{name}.json"

    def prepare_processed(self) -> Path:
        if self.processed_dir.exists():
            logger.warning("Processed path already exists, overwriting previous processed data")
        else:
            self.processed_dir.mkdir()
        return self.processed_dir

    def prepare_reports(self) -> Path:
        self.reports_dir.mkdir(exist_ok=True)
        return self.reports_dir


def snapshot_path(base: Path, device_id: str, timestamp: int | str) -> Path:
    return Path(base) / device_id / str(timestamp)


def create_snapshot(base: Path, device_id: str, timestamp: int | str | None = None) -> Snapshot:
    """Create (or reuse) the directory tree for a new capture.

    Two captures in the same millisecond share a path; the later one
    overwrites the earlier one's artifacts.
    """

    base = Path(base)
    if base.exists() and not os.access(base, os.W_OK):
        raise PermissionError(f"Output directory {base} is not writable")
    if timestamp is None:
        timestamp = epoch_millis()
    root = snapshot_path(base, device_id, timestamp)
    root.joinpath(ARTIFACTS).mkdir(parents=True, exist_ok=True)
    logger.info("output directory set to %s", root)
    return Snapshot(root=root)


def open_snapshot(path: Path, *, require_processed: bool = False) -> Snapshot:
    """Open an existing snapshot, checking the areas a command needs."""

    snapshot = Snapshot(root=Path(path))
    if not snapshot.artifacts_dir.is_dir():
        raise SetupError(f"No artifact directory found at {snapshot.artifacts_dir}")
    if require_processed and not snapshot.processed_dir.is_dir():
        raise SetupError(f"No processed directory found at {snapshot.processed_dir}")
    return snapshot


__all__ = [
    "Snapshot",
    "create_snapshot",
    "open_snapshot",
    "snapshot_path",
]
