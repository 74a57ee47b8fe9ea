"""Provisioning profile normalizer."""
from __future__ import annotations

import hashlib
from typing import Any, Dict, List

from ..core.errors import ParseError
from ..core.log import get_logger
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot
from ..core.utils import maybe_import, to_jsonable
from ..extract.tasks import PROVISIONING_PROFILES
from .base import parse_plist

logger = get_logger("normalize.provisioning")

PROFILE_SUFFIX = ".mobileprovision"
_XML_START = b"<?xml"
_XML_END = b"</plist>"
_BULKY_KEYS = ("DeveloperCertificates", "DER-Encoded-Profile")


def embedded_plist(data: bytes) -> bytes:
    """Cut the XML property list out of its CMS signature envelope."""
    start = data.find(_XML_START)
    end = data.find(_XML_END, start if start != -1 else 0)
    if start == -1 or end == -1:
        return data
    return data[start : end + len(_XML_END)]


def _crypto_details(der: bytes) -> dict[str, object]:
    x509 = maybe_import("cryptography.x509")
    if x509 is None:
        return {}
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as exc:
        return {"certificateError": str(exc)}
    return {
        "subject": cert.subject.rfc4514_string(),
        "issuer": cert.issuer.rfc4514_string(),
        "serialNumber": format(cert.serial_number, "x"),
        "notValidBefore": cert.not_valid_before_utc.isoformat(),
        "notValidAfter": cert.not_valid_after_utc.isoformat(),
    }


def _certificates(profile: Dict[str, Any]) -> List[Dict[str, Any]]:
    certs: List[Dict[str, Any]] = []
    for der in profile.get("DeveloperCertificates", []) or []:
        if not isinstance(der, (bytes, bytearray)):
            continue
        entry: Dict[str, Any] = {"sha256": hashlib.sha256(der).hexdigest()}
        entry.update(_crypto_details(bytes(der)))
        certs.append(entry)
    return certs


def parse_profile(name: str, data: bytes) -> Dict[str, Any]:
    try:
        profile = parse_plist(embedded_plist(data), name)
        if not isinstance(profile, dict):
            raise ParseError(f"{name} does not contain a dictionary")
    except ParseError as exc:
        logger.warning("could not parse provisioning profile %s: %s", name, exc)
        return {"file": name, "parseError": str(exc)}
    entry: Dict[str, Any] = {"file": name}
    for key, value in profile.items():
        if key not in _BULKY_KEYS:
            entry[key] = to_jsonable(value)
    entry["DeveloperCertificates"] = _certificates(profile)
    return entry


def summarize(details: Dict[str, Any]) -> Dict[str, Any]:
    profiles = details.get("profiles", [])
    return {
        "profiles": len(profiles),
        "unparsable": sum(1 for profile in profiles if "parseError" in profile),
        "provisionsAllDevices": sum(1 for profile in profiles if profile.get("ProvisionsAllDevices") is True),
    }


class ProvisioningProfilesNormalizer:
    name = PROVISIONING_PROFILES

    def normalize(self, snapshot: Snapshot) -> ArtifactRecord:
        directory = snapshot.provisioning_dir
        profiles: List[Dict[str, Any]] = []
        if directory.is_dir():
            for path in sorted(directory.iterdir()):
                if path.is_file() and path.name.endswith(PROFILE_SUFFIX):
                    profiles.append(parse_profile(path.name, path.read_bytes()))
        details = {"profiles": profiles}
        return ArtifactRecord(name=self.name, details=details, summary=summarize(details))


__all__ = ["PROFILE_SUFFIX", "ProvisioningProfilesNormalizer", "embedded_plist", "parse_profile", "summarize"]
