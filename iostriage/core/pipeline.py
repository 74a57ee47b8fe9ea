"""Pipeline utilities for composing detection rules."""
from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Sequence

from .log import get_logger
from .models import Finding

logger = get_logger("pipeline")


def _iter_findings(result: object) -> Iterator[Finding]:
    if result is None:
        return iter(())
    if isinstance(result, Finding):
        return iter((result,))
    if isinstance(result, Iterable):
        return (item for item in result if isinstance(item, Finding))
    return iter(())


def run_pipeline(stages: Sequence[Callable[[], object]]) -> List[Finding]:
    """Execute stages in order and collect the findings they yield."""

    findings: List[Finding] = []
    for stage in stages:
        produced = list(_iter_findings(stage()))
        logger.debug("stage %s produced %d finding(s)", getattr(stage, "__name__", stage), len(produced))
        findings.extend(produced)
    return findings


__all__ = ["run_pipeline"]
