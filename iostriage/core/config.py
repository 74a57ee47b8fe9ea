"""Configuration loading for iostriage."""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .utils import env_bool

CONFIG_PATH = Path.home() / ".config" / "iostriage" / "config.toml"

# Reference build used by the OS version rule; override per deployment.
DEFAULT_LATEST_VERSION = "26.0.1"


@dataclass(frozen=True)
class RuntimeConfig:
    """Computed runtime configuration values."""

    latest_version: str
    output_dir: Path
    tool_dir: Path | None
    verbose: bool


def _load_file_config(path: Path | None = None) -> dict[str, object]:
    path = path or CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError:  # pragma: no cover - invalid toml edge case
        return {}
    section = data.get("iostriage")
    if not isinstance(section, dict):
        return {}
    return section


def _path_or_none(value: object) -> Path | None:
    if isinstance(value, str) and value.strip():
        return Path(value).expanduser()
    return None


def load_config(
    *,
    cli_latest_version: Optional[str] = None,
    cli_output_dir: Optional[Path] = None,
    cli_tool_dir: Optional[Path] = None,
    cli_verbose: Optional[bool] = None,
    config_path: Optional[Path] = None,
) -> RuntimeConfig:
    """Compose runtime configuration: defaults < file < env < CLI."""

    file_config = _load_file_config(config_path)

    latest = file_config.get("latest_version")
    if not isinstance(latest, str) or not latest:
        latest = DEFAULT_LATEST_VERSION
    latest = os.getenv("IOSTRIAGE_LATEST_VERSION") or latest
    if cli_latest_version:
        latest = cli_latest_version

    output_dir = _path_or_none(file_config.get("output_dir")) or Path.cwd()
    output_dir = _path_or_none(os.getenv("IOSTRIAGE_OUTPUT_DIR")) or output_dir
    if cli_output_dir is not None:
        output_dir = cli_output_dir

    tool_dir = _path_or_none(file_config.get("tool_dir"))
    tool_dir = _path_or_none(os.getenv("IOSTRIAGE_TOOL_DIR")) or tool_dir
    if cli_tool_dir is not None:
        tool_dir = cli_tool_dir

    file_verbose = bool(file_config.get("verbose", False))
    env_verbose = env_bool("IOSTRIAGE_VERBOSE", file_verbose)
    verbose = cli_verbose if cli_verbose is not None else env_verbose

    return RuntimeConfig(
        latest_version=latest,
        output_dir=output_dir,
        tool_dir=tool_dir,
        verbose=verbose,
    )


__all__ = ["CONFIG_PATH", "DEFAULT_LATEST_VERSION", "RuntimeConfig", "load_config"]
