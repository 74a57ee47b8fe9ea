from pathlib import Path

import pytest

from iostriage.core import config
from iostriage.core.config import DEFAULT_LATEST_VERSION, load_config


def test_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    cfg = load_config()
    assert cfg.latest_version == DEFAULT_LATEST_VERSION
    assert cfg.output_dir == tmp_path
    assert cfg.tool_dir is None
    assert cfg.verbose is False


def test_precedence_file_env_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config.CONFIG_PATH.write_text(
        '[iostriage]\nlatest_version = "17.4"\noutput_dir = "/srv/triage"\ntool_dir = "/opt/imd/bin"\nverbose = true\n'
    )
    cfg = load_config()
    assert cfg.latest_version == "17.4"
    assert cfg.output_dir == Path("/srv/triage")
    assert cfg.tool_dir == Path("/opt/imd/bin")
    assert cfg.verbose is True

    monkeypatch.setenv("IOSTRIAGE_LATEST_VERSION", "17.5")
    monkeypatch.setenv("IOSTRIAGE_VERBOSE", "0")
    cfg = load_config()
    assert cfg.latest_version == "17.5"
    assert cfg.verbose is False

    cfg = load_config(cli_latest_version="17.6", cli_tool_dir=tmp_path, cli_verbose=True)
    assert cfg.latest_version == "17.6"
    assert cfg.tool_dir == tmp_path
    assert cfg.verbose is True


def test_section_must_be_a_table(tmp_path: Path) -> None:
    config.CONFIG_PATH.write_text('iostriage = "nope"\n')
    assert load_config(cli_output_dir=tmp_path).latest_version == DEFAULT_LATEST_VERSION
