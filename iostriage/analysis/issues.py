"""Heuristic issue detection over normalized summaries."""
from __future__ import annotations

from functools import partial
from typing import Any, List, Mapping, Sequence

from ..core.models import ArtifactRecord, Evidence, Finding
from ..core.pipeline import run_pipeline
from ..core.registry import Rule
from ..core.snapshot import ISSUES_FILE, Snapshot
from ..core.utils import read_json, write_json
from ..extract.tasks import DEVICE_INFO, INSTALLED_APPS, PROVISIONING_PROFILES


def _summary(records: Mapping[str, ArtifactRecord], name: str) -> Mapping[str, Any]:
    record = records.get(name)
    return record.summary if record is not None else {}


def password_protection(records: Mapping[str, ArtifactRecord], *, latest_version: str) -> Finding | None:
    summary = _summary(records, DEVICE_INFO)
    if summary.get("passwordProtected") is not False:
        return None
    return Finding(
        id="IOS-D-001",
        title="Device not password protected",
        severity="Medium",
        description="The device has no passcode set, so anyone holding it can unlock it.",
        recommendation="Set a strong alphanumeric passcode on the device.",
        evidence=(Evidence(kind="device_info.summary", data={"passwordProtected": False}),),
        tags=("device", "passcode"),
    )


def os_version(records: Mapping[str, ArtifactRecord], *, latest_version: str) -> Finding | None:
    version = _summary(records, DEVICE_INFO).get("productVersion")
    if not version or version == latest_version:
        return None
    return Finding(
        id="IOS-D-002",
        title="iOS version is not the latest",
        severity="High",
        description=f"The device runs iOS {version} while the latest known release is {latest_version}.",
        recommendation="Update the device to the latest iOS release.",
        evidence=(
            Evidence(
                kind="device_info.summary",
                data={"productVersion": version, "latestVersion": latest_version},
            ),
        ),
        tags=("device", "patching"),
    )


def provisioning_profiles(records: Mapping[str, ArtifactRecord], *, latest_version: str) -> Finding | None:
    count = _summary(records, PROVISIONING_PROFILES).get("profiles") or 0
    if count < 1:
        return None
    return Finding(
        id="IOS-P-001",
        title="Provisioning profiles installed",
        severity="Medium",
        description=(
            f"{count} provisioning profile(s) are installed. Profiles allow apps that did not "
            "come from the App Store to run on the device."
        ),
        recommendation="Review each profile and remove any that are not expected.",
        evidence=(Evidence(kind="provisioning_profiles.summary", data={"profiles": count}),),
        tags=("provisioning",),
    )


def non_apple_signed_apps(records: Mapping[str, ArtifactRecord], *, latest_version: str) -> Finding | None:
    count = _summary(records, INSTALLED_APPS).get("nonAppleSigner") or 0
    if count < 1:
        return None
    return Finding(
        id="IOS-A-001",
        title="Applications not signed by Apple",
        severity="Medium",
        description=f"{count} installed application(s) carry a signer identity other than Apple's.",
        recommendation="Confirm every non-Apple-signed application is expected and remove the rest.",
        evidence=(Evidence(kind="installed_apps.summary", data={"nonAppleSigner": count}),),
        tags=("apps", "signing"),
    )


def arbitrary_loads(records: Mapping[str, ArtifactRecord], *, latest_version: str) -> Finding | None:
    tally = _summary(records, INSTALLED_APPS).get("atsTally") or {}
    count = tally.get("allowArbitraryLoads") or 0
    if count < 1:
        return None
    return Finding(
        id="IOS-A-002",
        title="Applications allowing arbitrary network loads",
        severity="Low",
        description=f"{count} application(s) disable App Transport Security for all connections.",
        recommendation="Check whether these applications send sensitive data over cleartext connections.",
        evidence=(Evidence(kind="installed_apps.summary", data={"allowArbitraryLoads": count}),),
        tags=("apps", "network"),
    )


BUILTIN_RULES: Sequence[Rule] = (
    password_protection,
    os_version,
    provisioning_profiles,
    non_apple_signed_apps,
    arbitrary_loads,
)


def detect(
    records: Mapping[str, ArtifactRecord],
    *,
    latest_version: str,
    rules: Sequence[Rule] | None = None,
) -> List[Finding]:
    """Evaluate each rule in order; every rule yields zero or more findings."""

    rules = BUILTIN_RULES if rules is None else rules
    stages = [partial(rule, records, latest_version=latest_version) for rule in rules]
    return run_pipeline(stages)


def write_issues(snapshot: Snapshot, findings: Sequence[Finding]) -> None:
    write_json(snapshot.processed_dir / ISSUES_FILE, [finding.to_dict() for finding in findings])


def load_issues(snapshot: Snapshot) -> List[Finding]:
    path = snapshot.processed_dir / ISSUES_FILE
    if not path.is_file():
        return []
    return [Finding.from_dict(item) for item in read_json(path)]


__all__ = [
    "BUILTIN_RULES",
    "arbitrary_loads",
    "detect",
    "load_issues",
    "non_apple_signed_apps",
    "os_version",
    "password_protection",
    "provisioning_profiles",
    "write_issues",
]
