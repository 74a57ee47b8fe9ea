"""Installed applications normalizer.

Each application dictionary from ``ideviceinstaller`` is mapped once through
a typed field table; keys the table does not know land in an ``other``
bucket, and usage-description prompts are gathered separately.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Tuple

from ..core import snapshot as layout
from ..core.errors import ParseError
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot
from ..core.utils import to_jsonable
from ..extract.tasks import INSTALLED_APPS
from .base import load_plist

APPLE_SIGNER = "Apple iPhone OS Application Signing"
USAGE_DESCRIPTION_SUFFIX = "UsageDescription"

_APP_FIELDS: Dict[str, Tuple[str, type]] = {
    "CFBundleName": ("name", str),
    "CFBundleDisplayName": ("displayName", str),
    "CFBundleVersion": ("version", str),
    "CFBundleShortVersionString": ("shortVersion", str),
    "CFBundleIdentifier": ("bundleIdentifier", str),
    "SignerIdentity": ("signerIdentity", str),
    "ApplicationType": ("applicationType", str),
    "Path": ("path", str),
    "Container": ("container", str),
    "UIBackgroundModes": ("backgroundModes", list),
    "NSAppTransportSecurity": ("appTransportSecurity", dict),
    "Entitlements": ("entitlements", dict),
}

_IDENTITY = ("name", "version", "bundleIdentifier", "signerIdentity", "applicationType")


def parse_app(raw: Dict[str, Any]) -> Dict[str, Any]:
    app: Dict[str, Any] = {key: None for key in _IDENTITY}
    privacy: Dict[str, Any] = {}
    other: Dict[str, Any] = {}
    for key, value in raw.items():
        mapped = _APP_FIELDS.get(key)
        if mapped is not None and isinstance(value, mapped[1]):
            app[mapped[0]] = to_jsonable(value)
        elif key.endswith(USAGE_DESCRIPTION_SUFFIX):
            privacy[key] = to_jsonable(value)
        else:
            other[key] = to_jsonable(value)
    app["privacyUsage"] = privacy
    app["other"] = other
    return app


def _tally(counter: Counter) -> Dict[str, int]:
    return dict(sorted(counter.items()))


def summarize(details: Dict[str, Any]) -> Dict[str, Any]:
    apps: List[Dict[str, Any]] = details.get("apps", [])

    background_apps = 0
    background = Counter()
    ats_apps = 0
    ats = Counter({"allowArbitraryLoads": 0, "allowArbitraryLoadsInWebContent": 0, "exceptionDomains": 0})
    ats_domains = Counter()
    privacy_apps = 0
    privacy = Counter()
    entitled_apps = 0
    entitlements = Counter()

    for app in apps:
        modes = app.get("backgroundModes") or []
        if modes:
            background_apps += 1
            background.update(str(mode) for mode in modes)

        transport = app.get("appTransportSecurity") or {}
        if transport:
            ats_apps += 1
            if transport.get("NSAllowsArbitraryLoads") is True:
                ats["allowArbitraryLoads"] += 1
            if transport.get("NSAllowsArbitraryLoadsInWebContent") is True:
                ats["allowArbitraryLoadsInWebContent"] += 1
            domains = transport.get("NSExceptionDomains")
            if isinstance(domains, dict) and domains:
                ats["exceptionDomains"] += 1
                ats_domains.update(domains.keys())

        prompts = app.get("privacyUsage") or {}
        if prompts:
            privacy_apps += 1
            privacy.update(prompts.keys())

        granted = app.get("entitlements") or {}
        if granted:
            entitled_apps += 1
            entitlements.update(granted.keys())

    return {
        "totalApps": len(apps),
        "userApps": sum(1 for app in apps if app.get("applicationType") == "User"),
        "systemApps": sum(1 for app in apps if app.get("applicationType") == "System"),
        "nonAppleSigner": sum(1 for app in apps if app.get("signerIdentity") != APPLE_SIGNER),
        "backgroundModes": background_apps,
        "backgroundModeTally": _tally(background),
        "atsExceptions": ats_apps,
        "atsTally": _tally(ats),
        "atsExceptionDomains": _tally(ats_domains),
        "privacyAccess": privacy_apps,
        "privacyTally": _tally(privacy),
        "entitlements": entitled_apps,
        "entitlementTally": _tally(entitlements),
    }


class InstalledAppsNormalizer:
    name = INSTALLED_APPS

    def normalize(self, snapshot: Snapshot) -> ArtifactRecord:
        raw = load_plist(snapshot.artifact(layout.INSTALLED_APPS_FILE))
        if not isinstance(raw, list):
            raise ParseError(f"{layout.INSTALLED_APPS_FILE} does not contain an array of applications")
        apps = [parse_app(entry) for entry in raw if isinstance(entry, dict)]
        details = {"apps": apps}
        return ArtifactRecord(name=self.name, details=details, summary=summarize(details))


__all__ = ["APPLE_SIGNER", "InstalledAppsNormalizer", "parse_app", "summarize"]
