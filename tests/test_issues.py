from iostriage.analysis.issues import BUILTIN_RULES, detect, load_issues, write_issues
from iostriage.core.models import ArtifactRecord, Finding
from iostriage.core.snapshot import Snapshot


def _records(**summaries: dict) -> dict:
    return {name: ArtifactRecord(name=name, summary=summary) for name, summary in summaries.items()}


def test_unprotected_device_on_latest_version_yields_one_finding() -> None:
    records = _records(device_info={"passwordProtected": False, "productVersion": "17.0"})
    findings = detect(records, latest_version="17.0")
    assert len(findings) == 1
    assert findings[0].id == "IOS-D-001"
    assert findings[0].severity == "Medium"


def test_any_version_deviation_is_high() -> None:
    for version in ("16.7", "17.1"):
        records = _records(device_info={"passwordProtected": True, "productVersion": version})
        findings = detect(records, latest_version="17.0")
        assert [(f.id, f.severity) for f in findings] == [("IOS-D-002", "High")]


def test_findings_follow_rule_order() -> None:
    records = _records(
        device_info={"passwordProtected": False, "productVersion": "16.0"},
        provisioning_profiles={"profiles": 2},
        installed_apps={"nonAppleSigner": 3, "atsTally": {"allowArbitraryLoads": 1}},
    )
    findings = detect(records, latest_version="17.0")
    assert [f.id for f in findings] == ["IOS-D-001", "IOS-D-002", "IOS-P-001", "IOS-A-001", "IOS-A-002"]
    assert [f.severity for f in findings] == ["Medium", "High", "Medium", "Medium", "Low"]


def test_missing_records_yield_nothing() -> None:
    assert detect({}, latest_version="17.0") == []
    clean = _records(
        device_info={"passwordProtected": True, "productVersion": "17.0"},
        provisioning_profiles={"profiles": 0},
        installed_apps={"nonAppleSigner": 0},
    )
    assert detect(clean, latest_version="17.0") == []


def test_extra_rules_extend_the_set() -> None:
    def jailbreak_hint(records, *, latest_version):
        if records.get("installed_apps") is None:
            return None
        return [
            Finding(
                id="X-001",
                title="Custom",
                severity="Low",
                description="d",
                recommendation="r",
            )
        ]

    records = _records(installed_apps={"nonAppleSigner": 0})
    findings = detect(records, latest_version="17.0", rules=(*BUILTIN_RULES, jailbreak_hint))
    assert [f.id for f in findings] == ["X-001"]


def test_issues_round_trip_through_processed_dir(snapshot: Snapshot) -> None:
    snapshot.prepare_processed()
    findings = detect(_records(device_info={"passwordProtected": False}), latest_version="17.0")
    write_issues(snapshot, findings)
    assert load_issues(snapshot) == findings
    write_issues(snapshot, [])
    assert load_issues(snapshot) == []
