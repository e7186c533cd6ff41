"""Tests for the command-line interface."""

import logging

import pytest
import yaml
from typer.testing import CliRunner

from tabdelta import __version__
from tabdelta.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo the handler the CLI attaches to the package logger."""
    package_logger = logging.getLogger("tabdelta")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate


@pytest.fixture
def config_file(tmp_path, source_db):
    path = tmp_path / "tabdelta.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "Connection": f"sqlite:///{source_db}",
                "Database": "main",
                "Type2": ["CUSTOMERS"],
                "Timestamps": ["LASTMODIFIED"],
                "Dispatch_Interval": 0,
            }
        )
    )
    return path


class TestCli:
    """Test CLI commands."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_validate(self, config_file):
        result = runner.invoke(app, ["validate", str(config_file)])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "Type 2 tables: CUSTOMERS" in result.output

    def test_validate_invalid(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("database: main\n")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Validation failed" in result.output

    def test_run(self, config_file, tmp_path):
        output_dir = tmp_path / "results"
        result = runner.invoke(
            app, ["run", str(config_file), "-o", str(output_dir), "--date", "2024-01-05"]
        )

        assert result.exit_code == 0, result.output
        assert "Run succeeded" in result.output
        assert "Tables exported: 3" in result.output
        assert "Program ran in" in result.output
        assert (output_dir / "2024_01_05" / "delta" / "delta.csv").exists()

    def test_run_verbose_lists_tables(self, config_file, tmp_path):
        result = runner.invoke(
            app,
            ["run", str(config_file), "-o", str(tmp_path / "out"), "-d", "2024-01-05", "-v"],
        )
        assert result.exit_code == 0, result.output
        assert "Incidents: 3 rows (exported)" in result.output

    def test_run_aborted_exits_nonzero(self, tmp_path):
        path = tmp_path / "tabdelta.yaml"
        path.write_text(
            f"connection: sqlite:///{tmp_path / 'missing' / 'source.db'}\ndatabase: main\n"
        )
        result = runner.invoke(app, ["run", str(path), "-o", str(tmp_path / "out")])
        assert result.exit_code == 1
        assert "Run aborted" in result.output
        assert "Program ran in" in result.output

    def test_run_bad_date(self, config_file):
        result = runner.invoke(app, ["run", str(config_file), "--date", "05/01/2024"])
        assert result.exit_code != 0

    def test_deltas(self, config_file, tmp_path):
        output_dir = tmp_path / "results"
        runner.invoke(app, ["run", str(config_file), "-o", str(output_dir), "-d", "2024-01-05"])

        result = runner.invoke(app, ["deltas", "-o", str(output_dir), "-d", "2024-01-06"])

        assert result.exit_code == 0
        assert "Delta from 2024-01-05 (1 tables)" in result.output
        assert "Incidents.LastModified from 2024-01-03T12:00:00Z (3 rows)" in result.output

    def test_deltas_none(self, tmp_path):
        result = runner.invoke(app, ["deltas", "-o", str(tmp_path), "-d", "2024-01-06"])
        assert result.exit_code == 0
        assert "No delta before 2024-01-06" in result.output

    def test_init(self, tmp_path):
        result = runner.invoke(app, ["init", "source", "-o", str(tmp_path)])
        assert result.exit_code == 0
        created = tmp_path / "source.yaml"
        assert created.exists()
        assert yaml.safe_load(created.read_text())["mode"] == "blacklist"

        again = runner.invoke(app, ["init", "source", "-o", str(tmp_path)])
        assert again.exit_code == 1
