"""Tests for the command-line interface, run against a SQLite store."""

from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from profitpilot import __version__
from profitpilot.cli import app
from profitpilot.stores.base import StoreError

runner = CliRunner()

BUDGET_CSV = """Revenue,
Food Revenue,60000
Wet Revenue,30000
Admin,
Rent,8000
Wages,12000
"""


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    for name in ("PROFITPILOT_SUPABASE_URL", "PROFITPILOT_SUPABASE_KEY", "PROFITPILOT_DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    config = {
        "store": {"type": "sql", "credentials": {"connection_string": f"sqlite:///{tmp_path / 'pl.db'}"}},
        "cache": {"path": str(tmp_path / "cache.json")},
    }
    path = tmp_path / "profitpilot.yaml"
    path.write_text(yaml.dump(config))
    return str(path)


@pytest.fixture
def imported(config_file: str, tmp_path: Path) -> str:
    budget = tmp_path / "budget.csv"
    budget.write_text(BUDGET_CSV)
    result = runner.invoke(app, ["import-budget", str(budget), "-c", config_file, "-y", "2025", "-m", "6"])
    assert result.exit_code == 0, result.stdout
    return config_file


def _args(config_file: str) -> list[str]:
    return ["-c", config_file, "-y", "2025", "-m", "6"]


class TestCLICommands:
    """CLI commands against a local database."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_report_help(self) -> None:
        result = runner.invoke(app, ["report", "--help"])
        assert result.exit_code == 0
        assert "--config" in result.stdout or "CONFIG" in result.stdout

    def test_import_then_report(self, imported: str) -> None:
        result = runner.invoke(app, ["report", *_args(imported)])
        assert result.exit_code == 0
        assert "Summary" in result.stdout

    def test_import_missing_file(self, config_file: str) -> None:
        result = runner.invoke(app, ["import-budget", "missing.csv", "-c", config_file])
        assert result.exit_code == 1
        assert "File not found" in result.stdout

    def test_report_to_markdown(self, imported: str, tmp_path: Path) -> None:
        output = tmp_path / "reports" / "june.md"
        result = runner.invoke(app, ["report", *_args(imported), "-o", str(output)])
        assert result.exit_code == 0
        content = output.read_text()
        assert "June 2025" in content
        assert "Food Revenue" in content

    def test_report_to_json(self, imported: str, tmp_path: Path) -> None:
        output = tmp_path / "june.json"
        result = runner.invoke(app, ["report", *_args(imported), "-o", str(output)])
        assert result.exit_code == 0
        assert '"operating_profit"' in output.read_text()

    def test_update_forecasts(self, imported: str) -> None:
        result = runner.invoke(app, ["update-forecasts", *_args(imported)])
        assert result.exit_code == 0
        assert "Updated" in result.stdout

    def test_set_forecast(self, imported: str) -> None:
        result = runner.invoke(
            app,
            ["set-forecast", "Rent", "--method", "discrete", "--value", "week1=100", "--value", "week2=50",
             *_args(imported)],
        )
        assert result.exit_code == 0
        assert "150.00" in result.stdout

    def test_set_forecast_unknown_method(self, imported: str) -> None:
        result = runner.invoke(app, ["set-forecast", "Rent", "--method", "guess", *_args(imported)])
        assert result.exit_code == 1

    def test_set_forecast_unknown_item(self, imported: str) -> None:
        result = runner.invoke(app, ["set-forecast", "Gas", *_args(imported)])
        assert result.exit_code == 1
        assert "No item named" in result.stdout

    def test_track(self, imported: str) -> None:
        result = runner.invoke(app, ["track", "Rent", "--type", "pro-rated", *_args(imported)])
        assert result.exit_code == 0
        assert "Pro-Rated" in result.stdout

    def test_track_invalid_type(self, imported: str) -> None:
        result = runner.invoke(app, ["track", "Rent", "--type", "weekly", *_args(imported)])
        assert result.exit_code == 1

    def test_snapshot(self, imported: str) -> None:
        result = runner.invoke(app, ["snapshot", *_args(imported)])
        assert result.exit_code == 0
        assert "Snapshot stored" in result.stdout

        result = runner.invoke(app, ["snapshot", "--show", *_args(imported)])
        assert result.exit_code == 0
        assert "Rent" in result.stdout

    def test_stores(self, config_file: str) -> None:
        result = runner.invoke(app, ["stores", "-c", config_file])
        assert result.exit_code == 0
        assert "healthy" in result.stdout


@pytest.fixture
def failing_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    for name in ("PROFITPILOT_SUPABASE_URL", "PROFITPILOT_SUPABASE_KEY", "PROFITPILOT_DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    config = {
        "store": {
            "type": "conftest.memory_stores",
            "options": {"seed": True, "fail_ids": ["a1"], "fail_settings": True},
        },
        "cache": {"enabled": False},
    }
    path = tmp_path / "failing.yaml"
    path.write_text(yaml.dump(config))
    return str(path)


class TestCLIStoreFailures:
    """Store write errors end the command with a message, not a traceback."""

    def test_track_write_rejected(self, failing_config: str) -> None:
        result = runner.invoke(app, ["track", "Rent", "--type", "pro-rated", *_args(failing_config)])
        assert result.exit_code == 1
        assert "write rejected for a1" in result.stdout
        assert not isinstance(result.exception, StoreError)

    def test_set_forecast_settings_store_offline(self, failing_config: str) -> None:
        result = runner.invoke(app, ["set-forecast", "Rent", "--method", "fixed", *_args(failing_config)])
        assert result.exit_code == 1
        assert "settings store offline" in result.stdout
        assert not isinstance(result.exception, StoreError)
