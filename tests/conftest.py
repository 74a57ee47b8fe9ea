import logging
import plistlib
from collections.abc import Iterator
from pathlib import Path

import pytest

from iostriage.core import config
from iostriage.core.snapshot import Snapshot, create_snapshot

UDID = "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture(autouse=True)
def isolate_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path_factory.mktemp("cfg") / "config.toml")
    for name in (
        "IOSTRIAGE_LATEST_VERSION",
        "IOSTRIAGE_OUTPUT_DIR",
        "IOSTRIAGE_TOOL_DIR",
        "IOSTRIAGE_VERBOSE",
        "IOSTRIAGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    # Handlers installed by configure_logging() capture the per-test stderr;
    # drop them so a later test never writes to a closed capture stream.
    yield
    root = logging.getLogger("iostriage")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True


@pytest.fixture
def snapshot(tmp_path: Path) -> Snapshot:
    return create_snapshot(tmp_path, UDID, 1484346254360)


def write_plist(path: Path, value: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(plistlib.dumps(value))
    return path
