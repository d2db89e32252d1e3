"""Tests for the CLI commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from eventstore import __version__
from eventstore.cli import cli

pytestmark = pytest.mark.unit


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "eventstore.toml"
    path.write_text('[server]\nport = 4321\n\n[db]\nname = "cal"\nmax_pool_size = 3\n')
    return path


def test_version(runner: CliRunner):
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_check_config_prints_summary(runner: CliRunner, config_file: Path):
    result = runner.invoke(cli, ["check-config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "0.0.0.0:4321" in result.output
    assert "cal (pool 1..3)" in result.output


def test_check_config_reports_errors(runner: CliRunner, tmp_path: Path):
    bad = tmp_path / "eventstore.toml"
    bad.write_text('[logging]\nformat = "xml"\n')

    result = runner.invoke(cli, ["check-config", str(bad)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_serve_runs_uvicorn_with_overrides(runner: CliRunner, config_file: Path):
    with (
        patch("eventstore.cli.uvicorn.run") as mock_run,
        patch("eventstore.cli.configure_logging") as mock_logging,
    ):
        result = runner.invoke(cli, ["serve", "--config", str(config_file), "--port", "9999"])

    assert result.exit_code == 0, result.output
    mock_logging.assert_called_once()
    assert mock_logging.call_args.kwargs["service_name"] == "eventstore"
    kwargs = mock_run.call_args.kwargs
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["port"] == 9999
    assert kwargs["server_header"] is False
    app = mock_run.call_args.args[0]
    assert app.state.config.db.name == "cal"


def test_init_db_provisions_and_migrates(
    runner: CliRunner, config_file: Path, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@localhost:5432/postgres")
    with (
        patch("eventstore.cli.Database.provision", new_callable=AsyncMock) as mock_provision,
        patch("eventstore.migrations.run_migrations", new_callable=AsyncMock) as mock_migrate,
        patch("eventstore.cli.configure_logging"),
    ):
        result = runner.invoke(cli, ["init-db", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    mock_provision.assert_awaited_once()
    mock_migrate.assert_awaited_once_with("postgresql://u:p@localhost:5432/cal")
    assert "Database 'cal' is ready" in result.output
