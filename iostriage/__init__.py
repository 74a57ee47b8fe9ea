"""iostriage core package."""

from .core.models import ArtifactRecord, Evidence, Finding
from .core.snapshot import Snapshot

__all__ = [
    "ArtifactRecord",
    "Evidence",
    "Finding",
    "Snapshot",
]

__version__ = "0.2.0"
