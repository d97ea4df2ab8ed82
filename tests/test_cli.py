import pytest
from typer.testing import CliRunner

from hls_cli import __version__
from hls_cli.cli import app as cli_app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "config" / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_FILE", path)
    return path


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_writes_config_with_workspace(tmp_path, config_file):
    result = runner.invoke(cli_app.app, ["init", "--workspace", str(tmp_path / "ws")])

    assert result.exit_code == 0
    assert config_file.is_file()
    assert f"workspace = {tmp_path / 'ws'}" in config_file.read_text(encoding="utf-8")


def test_folder_prints_task_directory(tmp_path, config_file):
    result = runner.invoke(
        cli_app.app,
        ["folder", "http://host/x/show.m3u8", "--workspace", str(tmp_path)],
    )

    assert result.exit_code == 0
    assert result.output.replace("\n", "").strip().endswith("show")


def test_folder_rejects_local_paths(tmp_path, config_file):
    result = runner.invoke(
        cli_app.app, ["folder", "/tmp/show.m3u8", "--workspace", str(tmp_path)]
    )

    assert result.exit_code == 1


def test_clean_removes_task_directory(tmp_path, config_file):
    task_dir = tmp_path / "show"
    (task_dir / "segments").mkdir(parents=True)
    (task_dir / "URL").write_text("http://host/x/show.m3u8", encoding="utf-8")

    result = runner.invoke(
        cli_app.app,
        ["clean", "http://host/x/show.m3u8", "--workspace", str(tmp_path), "--force"],
    )

    assert result.exit_code == 0
    assert not task_dir.exists()


def test_download_without_urls_fails(config_file):
    result = runner.invoke(cli_app.app, ["download"])

    assert result.exit_code == 1
    assert "No URLs provided" in result.output


def test_validate_reports_invalid_config(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nprobe_concurrency = 0\n", encoding="utf-8")

    result = runner.invoke(cli_app.app, ["validate"])

    assert result.exit_code == 1
