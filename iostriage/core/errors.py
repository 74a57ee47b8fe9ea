"""Error taxonomy for iostriage.

Fatal errors (``SetupError``, ``DeviceError``) stop the command that raised
them. ``TaskError`` and ``ParseError`` are captured into per-task and
per-artifact results so sibling work carries on with partial data.
"""
from __future__ import annotations


class TriageError(Exception):
    """Base class for iostriage errors."""


class SetupError(TriageError):
    """A prerequisite directory or file for a command is missing."""


class DeviceError(TriageError):
    """The device could not be resolved or talked to."""


class DeviceNotFoundError(DeviceError):
    """No authorized device is attached."""

    def __init__(self, message: str = "No authorized iDevice found. Plug in and authorize a device first.") -> None:
        super().__init__(message)


class DeviceCommunicationError(DeviceError):
    """The toolset answered with something other than a device identifier."""


class TaskError(TriageError):
    """A capture task or normalizer failed."""


class MissingArtifactError(TaskError):
    """A required raw artifact is absent from the snapshot."""


class ParseError(TriageError):
    """A raw artifact could not be parsed."""


__all__ = [
    "DeviceCommunicationError",
    "DeviceError",
    "DeviceNotFoundError",
    "MissingArtifactError",
    "ParseError",
    "SetupError",
    "TaskError",
    "TriageError",
]
