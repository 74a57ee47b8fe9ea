from importlib.metadata import EntryPoint

import pytest

from iostriage.analysis.issues import os_version
from iostriage.core import registry


class _EntryPoints:
    def __init__(self, *eps: EntryPoint) -> None:
        self.eps = eps

    def select(self, group: str):
        return [ep for ep in self.eps if ep.group == group]


@pytest.fixture()
def plugins(monkeypatch: pytest.MonkeyPatch) -> None:
    eps = _EntryPoints(
        EntryPoint("b_version", "iostriage.analysis.issues:os_version", registry.RULES_GROUP),
        EntryPoint("a_broken", "iostriage.no_such_module:rule", registry.RULES_GROUP),
        EntryPoint("c_constant", "iostriage.core.snapshot:ISSUES_FILE", registry.RULES_GROUP),
        EntryPoint("other", "iostriage.analysis.issues:os_version", "something.else"),
    )
    monkeypatch.setattr(registry, "entry_points", lambda: eps)


def test_discover_only_reads_the_rules_group(plugins: None) -> None:
    found = registry.discover_rules()
    assert sorted(found) == ["a_broken", "b_version", "c_constant"]
    assert found["b_version"].source == "iostriage.analysis.issues"


def test_load_rule(plugins: None) -> None:
    assert registry.load_rule("b_version") is os_version
    with pytest.raises(KeyError):
        registry.load_rule("missing")
    with pytest.raises(TypeError):
        registry.load_rule("c_constant")


def test_broken_plugins_are_skipped(plugins: None) -> None:
    assert registry.load_plugin_rules() == [os_version]
