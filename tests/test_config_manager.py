import configparser

import pytest

from hls_cli.exceptions import ConfigurationError
from hls_cli.storage import config_manager
from hls_cli.storage.config_manager import ConfigManager


@pytest.fixture
def default_workspace(tmp_path, monkeypatch):
    workspace = tmp_path / "default-ws"
    monkeypatch.setattr(config_manager, "get_default_workspace", lambda: workspace)
    return workspace


def test_missing_file_yields_defaults(tmp_path, default_workspace):
    config = ConfigManager(tmp_path / "config.ini").load_config()

    assert config.workspace == str(default_workspace)
    assert config.segment_suffix == ".ts"
    assert config.segment_retry_limit is None
    assert config.config_path == str(tmp_path)


def test_saved_config_loads_back(tmp_path, default_workspace):
    path = tmp_path / "conf" / "config.ini"
    manager = ConfigManager(path)

    manager.save_new_config({"workspace": str(tmp_path / "ws"), "segment_retry_limit": 3})
    config = ConfigManager(path).load_config()

    assert config.workspace == str(tmp_path / "ws")
    assert config.segment_retry_limit == 3
    assert config.output_extension == "ts"


def test_cli_options_override_file_values(tmp_path, default_workspace):
    path = tmp_path / "config.ini"
    ConfigManager(path).save_new_config({"workspace": str(tmp_path / "ws")})

    config = ConfigManager(path).load_config(
        {"segment_suffix": ".m4s", "source_urls": ["http://h/a.m3u8"]}
    )

    assert config.segment_suffix == ".m4s"
    assert config.source_urls == ["http://h/a.m3u8"]


def test_missing_keys_are_migrated_into_the_file(tmp_path, default_workspace):
    path = tmp_path / "config.ini"
    path.write_text(f"[DEFAULT]\nworkspace = {tmp_path / 'ws'}\n", encoding="utf-8")

    config = ConfigManager(path).load_config()

    parser = configparser.ConfigParser()
    parser.read(path)
    assert parser["DEFAULT"]["probe_concurrency"] == "8"
    assert parser["DEFAULT"]["segment_retry_limit"] == ""
    assert config.workspace == str(tmp_path / "ws")


@pytest.mark.parametrize(
    "body",
    [
        "[DEFAULT]\nprobe_concurrency = many\n",
        "[DEFAULT]\nprobe_concurrency = 500\n",
        "not an ini file",
    ],
)
def test_invalid_file_raises_configuration_error(tmp_path, default_workspace, body):
    path = tmp_path / "config.ini"
    path.write_text(body, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        ConfigManager(path).load_config()
