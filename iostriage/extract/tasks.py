"""Capture task catalogue for the libimobiledevice toolset."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from ..core import snapshot as layout
from ..core.snapshot import Snapshot

# Lockdown domains queried individually by ideviceinfo -q.
DEVICE_INFO_DOMAINS: Tuple[str, ...] = (
    "com.apple.disk_usage",
    "com.apple.disk_usage.factory",
    "com.apple.mobile.battery",
    "com.apple.iqagent",
    "com.apple.purplebuddy",
    "com.apple.PurpleBuddy",
    "com.apple.mobile.chaperone",
    "com.apple.mobile.third_party_termination",
    "com.apple.mobile.lockdownd",
    "com.apple.mobile.lockdown_cache",
    "com.apple.xcode.developerdomain",
    "com.apple.international",
    "com.apple.mobile.data_sync",
    "com.apple.mobile.tethered_sync",
    "com.apple.mobile.mobile_application_usage",
    "com.apple.mobile.backup",
    "com.apple.mobile.nikita",
    "com.apple.mobile.restriction",
    "com.apple.mobile.user_preferences",
    "com.apple.mobile.sync_data_class",
    "com.apple.mobile.software_behavior",
    "com.apple.mobile.iTunes.SQLMusicLibraryPostProcessCommands",
    "com.apple.mobile.iTunes.accessories",
    "com.apple.mobile.internal",
    "com.apple.mobile.wireless_lockdown",
    "com.apple.fairplay",
    "com.apple.iTunes",
    "com.apple.mobile.iTunes.store",
    "com.apple.mobile.iTunes",
)

SYSLOG = "syslog"
DEVICE_INFO = "device_info"
INSTALLED_APPS = "installed_apps"
PROVISIONING_PROFILES = "provisioning_profiles"
CRASH_REPORTS = "crash_reports"
BACKUP = "backup"


@dataclass(frozen=True)
class Toolset:
    """Where the device toolset binaries live; ``None`` means ``$PATH``."""

    bin_dir: Path | None = None

    def command(self, binary: str, *args: str) -> List[str]:
        exe = str(self.bin_dir / binary) if self.bin_dir is not None else binary
        return [exe, *args]


@dataclass(frozen=True)
class CaptureTask:
    """One toolset invocation producing raw artifact data."""

    name: str
    argv: Tuple[str, ...]
    output: Path
    bounded: bool = True
    timeout: float | None = None
    workdir: Path | None = None


def device_id_command(toolset: Toolset) -> List[str]:
    return toolset.command("idevice_id", "-l")


def domain_task_name(domain: str) -> str:
    return f"{DEVICE_INFO}:{domain}"


def domain_file(domain: str) -> str:
    return f"{layout.DEVICE_INFO_DOMAIN_PREFIX}{domain}.xml"


def syslog_task(snapshot: Snapshot, udid: str, toolset: Toolset) -> CaptureTask:
    return CaptureTask(
        name=SYSLOG,
        argv=tuple(toolset.command("idevicesyslog", "-u", udid)),
        output=snapshot.artifact(layout.SYSLOG_FILE),
        bounded=False,
    )


def bounded_tasks(
    snapshot: Snapshot,
    udid: str,
    toolset: Toolset,
    *,
    backup: bool = False,
) -> List[CaptureTask]:
    """Build every bounded capture task for a snapshot."""

    tasks: List[CaptureTask] = [
        CaptureTask(
            name=DEVICE_INFO,
            argv=tuple(toolset.command("ideviceinfo", "-u", udid, "-x")),
            output=snapshot.artifact(layout.DEVICE_INFO_FILE),
        )
    ]
    for domain in DEVICE_INFO_DOMAINS:
        tasks.append(
            CaptureTask(
                name=domain_task_name(domain),
                argv=tuple(toolset.command("ideviceinfo", "-u", udid, "-q", domain, "-x")),
                output=snapshot.artifact(domain_file(domain)),
            )
        )
    tasks.append(
        CaptureTask(
            name=INSTALLED_APPS,
            argv=tuple(
                toolset.command(
                    "ideviceinstaller", "-u", udid, "--list-apps", "-o", "list_all", "-o", "xml"
                )
            ),
            output=snapshot.artifact(layout.INSTALLED_APPS_FILE),
        )
    )
    tasks.append(
        CaptureTask(
            name=PROVISIONING_PROFILES,
            argv=tuple(
                toolset.command("ideviceprovision", "-u", udid, "copy", str(snapshot.provisioning_dir))
            ),
            output=snapshot.artifact(layout.PROVISIONING_LOG_FILE),
            workdir=snapshot.provisioning_dir,
        )
    )
    tasks.append(
        CaptureTask(
            name=CRASH_REPORTS,
            argv=tuple(
                toolset.command(
                    "idevicecrashreport", "-u", udid, "--extract", "--keep", str(snapshot.crash_reports_dir)
                )
            ),
            output=snapshot.crash_reports_dir / layout.CRASH_LOG_FILE,
            workdir=snapshot.crash_reports_dir,
        )
    )
    if backup:
        tasks.append(
            CaptureTask(
                name=BACKUP,
                argv=tuple(
                    toolset.command("idevicebackup2", "-u", udid, "backup", "--full", str(snapshot.backup_dir))
                ),
                output=snapshot.backup_dir / layout.BACKUP_LOG_FILE,
                workdir=snapshot.backup_dir,
            )
        )
    return tasks


__all__ = [
    "BACKUP",
    "CRASH_REPORTS",
    "CaptureTask",
    "DEVICE_INFO",
    "DEVICE_INFO_DOMAINS",
    "INSTALLED_APPS",
    "PROVISIONING_PROFILES",
    "SYSLOG",
    "Toolset",
    "bounded_tasks",
    "device_id_command",
    "domain_file",
    "domain_task_name",
    "syslog_task",
]
