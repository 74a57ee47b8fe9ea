"""Artifact normalization: raw captures to processed records."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Sequence

from ..core.errors import TriageError
from ..core.log import get_logger
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot
from ..core.utils import read_json, write_json
from .backup import BackupNormalizer
from .base import Normalizer
from .crash_reports import CrashReportsNormalizer
from .device_info import DeviceInfoNormalizer
from .installed_apps import InstalledAppsNormalizer
from .provisioning import ProvisioningProfilesNormalizer
from .syslog import SyslogNormalizer

logger = get_logger("normalize")

NORMALIZERS: Sequence[Normalizer] = (
    DeviceInfoNormalizer(),
    InstalledAppsNormalizer(),
    ProvisioningProfilesNormalizer(),
    CrashReportsNormalizer(),
    SyslogNormalizer(),
    BackupNormalizer(),
)

ARTIFACT_NAMES = tuple(normalizer.name for normalizer in NORMALIZERS)


@dataclass
class ProcessingResult:
    """Which artifact types normalized cleanly and why the others did not."""

    records: Dict[str, ArtifactRecord] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.errors) and bool(self.records)

    def status(self) -> Dict[str, str]:
        report = {name: "ok" for name in self.records}
        report.update({name: f"error: {message}" for name, message in self.errors.items()})
        return report


def process_snapshot(snapshot: Snapshot, normalizers: Sequence[Normalizer] | None = None) -> ProcessingResult:
    """Run every normalizer concurrently and write one JSON file per record.

    Not safe to run twice at once against the same snapshot.
    """

    normalizers = tuple(normalizers if normalizers is not None else NORMALIZERS)
    snapshot.prepare_processed()
    result = ProcessingResult()
    with ThreadPoolExecutor(max_workers=max(1, len(normalizers))) as pool:
        futures = [(normalizer.name, pool.submit(normalizer.normalize, snapshot)) for normalizer in normalizers]
        for name, future in futures:
            target = snapshot.processed(name)
            try:
                record = future.result()
            except (TriageError, OSError) as exc:
                result.errors[name] = str(exc)
                target.unlink(missing_ok=True)
                logger.error("error processing %s: %s", name, exc)
                continue
            except Exception as exc:
                result.errors[name] = f"{type(exc).__name__}: {exc}"
                target.unlink(missing_ok=True)
                logger.exception("unexpected error processing %s", name)
                continue
            write_json(target, record.to_dict())
            result.records[name] = record
            logger.info("%s processed, written to %s", name, target.name)
    return result


def load_records(snapshot: Snapshot, names: Sequence[str] = ARTIFACT_NAMES) -> Dict[str, ArtifactRecord]:
    """Read back the processed records present for a snapshot."""

    records: Dict[str, ArtifactRecord] = {}
    for name in names:
        path = snapshot.processed(name)
        if path.is_file():
            records[name] = ArtifactRecord.from_dict(name, read_json(path))
        else:
            logger.warning("no processed %s record in %s", name, snapshot.processed_dir)
    return records


__all__ = [
    "ARTIFACT_NAMES",
    "NORMALIZERS",
    "ProcessingResult",
    "load_records",
    "process_snapshot",
]
