"""Reporting helpers."""

from .jsonout import to_json
from .markdown import to_markdown
from .tree import TriageReport

__all__ = ["TriageReport", "to_json", "to_markdown"]
