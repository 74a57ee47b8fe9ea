"""Utility helpers for iostriage."""
from __future__ import annotations

import base64
import importlib
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from types import ModuleType
from typing import Any


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def epoch_millis() -> int:
    return int(now_utc().timestamp() * 1000)


def json_dump(obj: Any) -> str:
    return json.dumps(obj, indent=2, sort_keys=True, default=_json_default)


def _json_default(obj: Any) -> Any:  # pragma: no cover - fallback for datetime etc.
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    if hasattr(obj, "__dict__"):
        return obj.__dict__
    return str(obj)


def to_jsonable(value: Any) -> Any:
    """Convert plist values (bytes, datetimes, UIDs) into JSON-safe values."""

    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def write_json(path: Path, obj: Any) -> None:
    path.write_text(json_dump(obj) + "\n", encoding="utf-8")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def maybe_import(module_name: str) -> ModuleType | None:
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError:
        return None


def env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


__all__ = [
    "env_bool",
    "epoch_millis",
    "json_dump",
    "maybe_import",
    "now_utc",
    "read_json",
    "to_jsonable",
    "write_json",
]
