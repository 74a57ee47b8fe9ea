"""Logging setup for the iostriage.* logger hierarchy."""
from __future__ import annotations

import logging
import os
import sys

_ROOT = "iostriage"
_FORMAT = "%(asctime)s %(levelname)-7s %(message)s"
_DATEFMT = "%H:%M:%S"


def _resolve_level() -> int:
    raw = os.environ.get("IOSTRIAGE_LOG_LEVEL", "").strip().upper()
    if raw:
        return getattr(logging, raw, logging.INFO)
    return logging.INFO


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Set the iostriage logger level from CLI flags; flags override the env."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = _resolve_level()
    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        root.addHandler(handler)
        root.propagate = False
    else:
        for handler in root.handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setStream(sys.stderr)
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_ROOT}.{name}")


__all__ = ["configure_logging", "get_logger"]
