from __future__ import annotations

from typer.testing import CliRunner

from breaktime.cli import app
from breaktime.config_file import load_config

runner = CliRunner()


def test_config_path_prints_location(tmp_path):
    path = tmp_path / "breaks.toml"
    result = runner.invoke(app, ["config", "--config", str(path), "--path"])
    assert result.exit_code == 0
    assert result.output.strip() == str(path)
    assert not path.exists()


def test_config_init_refuses_to_overwrite(tmp_path):
    path = tmp_path / "breaks.toml"

    first = runner.invoke(app, ["config", "--config", str(path), "--init"])
    assert first.exit_code == 0
    assert path.exists()

    second = runner.invoke(app, ["config", "--config", str(path), "--init"])
    assert second.exit_code == 1

    forced = runner.invoke(app, ["config", "--config", str(path), "--init", "--force"])
    assert forced.exit_code == 0


def test_config_prints_effective_settings(tmp_path):
    path = tmp_path / "breaks.toml"
    path.write_text('workday = "6 hours"\n', encoding="utf-8")

    result = runner.invoke(app, ["config", "--config", str(path)])

    assert result.exit_code == 0
    assert 'workday = "6 hours"' in result.output
    assert load_config(path).end_of_day.trigger_threshold.total_seconds() == 6 * 3600


def test_invalid_config_exits_with_error(tmp_path):
    path = tmp_path / "breaks.toml"
    path.write_text('workday = "forever"\n', encoding="utf-8")

    result = runner.invoke(app, ["config", "--config", str(path)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
