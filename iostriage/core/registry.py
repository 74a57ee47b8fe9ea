"""Discovery of third-party detection rules."""
from __future__ import annotations

from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any, Callable, Iterable, List, Mapping, Protocol

from .log import get_logger
from .models import Finding

logger = get_logger("registry")

RULES_GROUP = "iostriage.rules"


class Rule(Protocol):
    """A predicate over normalized summaries yielding zero or more findings."""

    def __call__(
        self, records: Mapping[str, Any], *, latest_version: str
    ) -> Finding | Iterable[Finding] | None:  # pragma: no cover - protocol
        ...


@dataclass
class RuleRecord:
    """Metadata about a discovered rule."""

    name: str
    load: Callable[[], Rule]
    source: str


def discover_rules() -> Mapping[str, RuleRecord]:
    """Discover rules registered via entry points."""

    discovered: dict[str, RuleRecord] = {}
    eps = entry_points().select(group=RULES_GROUP)
    for ep in eps:
        discovered[ep.name] = RuleRecord(
            name=ep.name,
            load=ep.load,
            source=ep.module or "unknown",
        )
    return discovered


def load_rule(name: str) -> Rule:
    rules = discover_rules()
    if name not in rules:
        raise KeyError(f"Rule '{name}' not found")
    rule = rules[name].load()
    if not callable(rule):
        raise TypeError(f"Rule '{name}' is not callable")
    return rule


def load_plugin_rules() -> List[Rule]:
    """Load every registered rule, ordered by entry-point name."""

    loaded: List[Rule] = []
    for name in sorted(discover_rules()):
        try:
            loaded.append(load_rule(name))
        except (ImportError, AttributeError, TypeError) as exc:
            logger.warning("skipping rule plugin %s: %s", name, exc)
    return loaded


__all__ = ["RULES_GROUP", "Rule", "RuleRecord", "discover_rules", "load_plugin_rules", "load_rule"]
