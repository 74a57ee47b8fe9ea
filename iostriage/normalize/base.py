"""Shared pieces for artifact normalizers."""
from __future__ import annotations

import plistlib
from pathlib import Path
from typing import Any, Protocol

from ..core.errors import MissingArtifactError, ParseError
from ..core.models import ArtifactRecord
from ..core.snapshot import Snapshot


class Normalizer(Protocol):
    """Turns one raw artifact type of a snapshot into an ``ArtifactRecord``."""

    name: str

    def normalize(self, snapshot: Snapshot) -> ArtifactRecord:  # pragma: no cover - protocol
        ...


def require(path: Path) -> Path:
    if not path.is_file():
        raise MissingArtifactError(f"Could not read artifact {path}")
    return path


def parse_plist(data: bytes, source: str) -> Any:
    # plistlib reports some malformed values (e.g. a bad <date>) as
    # AttributeError or TypeError rather than ValueError.
    try:
        return plistlib.loads(data)
    except Exception as exc:
        raise ParseError(f"{source} is not a valid property list: {exc}") from exc


def load_plist(path: Path) -> Any:
    return parse_plist(require(path).read_bytes(), path.name)


def iter_lines(path: Path):
    """Yield decoded lines of a transcript without loading it whole."""
    with path.open("rb") as fh:
        for raw in fh:
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")


__all__ = ["Normalizer", "iter_lines", "load_plist", "parse_plist", "require"]
