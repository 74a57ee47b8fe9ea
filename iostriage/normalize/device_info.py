"""Device information normalizer."""
from __future__ import annotations

from typing import Any, Dict

from ..core import snapshot as layout
from ..core.errors import ParseError
from ..core.log import get_logger
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot
from ..core.utils import to_jsonable
from ..extract.tasks import DEVICE_INFO, DEVICE_INFO_DOMAINS, domain_file
from .base import load_plist, parse_plist

logger = get_logger("normalize.device_info")

_SUMMARY_FIELDS = {
    "DeviceName": "deviceName",
    "ProductType": "productType",
    "ProductVersion": "productVersion",
    "BuildVersion": "buildVersion",
    "SerialNumber": "serialNumber",
    "PasswordProtected": "passwordProtected",
    "ActivationState": "activationState",
}


def summarize(details: Dict[str, Any]) -> Dict[str, Any]:
    device = details.get("device", {})
    summary: Dict[str, Any] = {key: device.get(source) for source, key in _SUMMARY_FIELDS.items()}
    summary["domains"] = len(details.get("domains", {}))
    return summary


class DeviceInfoNormalizer:
    name = DEVICE_INFO

    def normalize(self, snapshot: Snapshot) -> ArtifactRecord:
        device = load_plist(snapshot.artifact(layout.DEVICE_INFO_FILE))
        if not isinstance(device, dict):
            raise ParseError(f"{layout.DEVICE_INFO_FILE} does not contain a dictionary")

        domains: Dict[str, Any] = {}
        for domain in DEVICE_INFO_DOMAINS:
            path = snapshot.artifact(domain_file(domain))
            if not path.is_file():
                continue
            data = path.read_bytes()
            if not data.strip():
                continue
            try:
                domains[domain] = to_jsonable(parse_plist(data, path.name))
            except ParseError as exc:
                logger.warning("skipping domain %s: %s", domain, exc)
                domains[domain] = {"parseError": str(exc)}

        details = {"device": to_jsonable(device), "domains": domains}
        return ArtifactRecord(name=self.name, details=details, summary=summarize(details))


__all__ = ["DeviceInfoNormalizer", "summarize"]
