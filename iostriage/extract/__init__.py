"""Raw artifact extraction."""

from .orchestrator import (
    ExtractionOrchestrator,
    ExtractionResult,
    TaskOutcome,
    TaskState,
    run_extraction,
)
from .tasks import CaptureTask, Toolset

__all__ = [
    "CaptureTask",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "TaskOutcome",
    "TaskState",
    "Toolset",
    "run_extraction",
]
