"""Tests for ict_lookup.cli — typer commands end to end."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from ict_lookup.cli import app
from ict_lookup.core.errors import SettingsError

from tests.conftest import T0, T1, dmc, write_results

runner = CliRunner()

SCANNED = dmc(1234)


@pytest.fixture(autouse=True)
def isolated_settings(settings_store):
    wide = Console(width=200)
    with patch("ict_lookup.cli._open_settings", return_value=settings_store), \
            patch("ict_lookup.cli.console", wide):
        yield settings_store


@pytest.fixture
def history_db(tmp_path):
    return write_results(tmp_path / "results.db", [
        (SCANNED, "ICT-01", "Passed", T1, "C:\\logs\\2-20240101-b.log"),
        (SCANNED, "ICT-01", "Failed", T0, "C:\\logs\\2-20240101-a.log"),
        (dmc(1233), "ICT-01", "Failed", T1, "C:\\logs\\1-20240101-c.log"),
    ])


@pytest.fixture
def products_file(tmp_path):
    path = tmp_path / "products"
    path.write_text("! test catalog\nController|GHI|3\n", encoding="utf-8")
    return str(path)


class TestLookup:
    def test_shows_panel_history(self, history_db, products_file):
        result = runner.invoke(
            app, ["lookup", SCANNED, "--db", history_db, "--products", products_file]
        )
        assert result.exit_code == 0, result.output
        assert "Controller" in result.output
        assert "ICT-01" in result.output
        assert "2024-01-01 09:30" in result.output
        assert "2024-01-01 08:00" in result.output

    def test_logs_column(self, history_db, products_file):
        result = runner.invoke(
            app,
            ["lookup", SCANNED, "--db", history_db, "--products", products_file, "--logs"],
        )
        assert result.exit_code == 0, result.output
        assert "2-20240101-b.log" in result.output

    def test_settings_used_when_no_flags(self, isolated_settings, history_db, products_file):
        isolated_settings.set_config("results_db", history_db)
        isolated_settings.set_config("products_file", products_file)
        result = runner.invoke(app, ["lookup", SCANNED])
        assert result.exit_code == 0, result.output
        assert "Controller" in result.output

    def test_no_history(self, history_db, products_file):
        result = runner.invoke(
            app, ["lookup", dmc(7777), "--db", history_db, "--products", products_file]
        )
        assert result.exit_code == 1
        assert "No test history" in result.output

    def test_short_dmc(self, history_db):
        result = runner.invoke(app, ["lookup", "ABC", "--db", history_db])
        assert result.exit_code == 1
        assert "shorter" in result.output

    def test_missing_results_db_setting(self):
        result = runner.invoke(app, ["lookup", SCANNED])
        assert result.exit_code == 1
        assert "results_db is not set" in result.output

    def test_bad_catalog(self, history_db, tmp_path):
        bad = tmp_path / "bad_products"
        bad.write_text("Controller|GHI|three\n", encoding="utf-8")
        result = runner.invoke(
            app, ["lookup", SCANNED, "--db", history_db, "--products", str(bad)]
        )
        assert result.exit_code == 1
        assert "invalid panel size" in result.output

    def test_zero_workers_rejected(self, history_db, products_file):
        result = runner.invoke(
            app,
            ["lookup", SCANNED, "--db", history_db, "--products", products_file,
             "--workers", "0"],
        )
        assert result.exit_code == 1
        assert "workers must be at least 1" in result.output

    def test_undecodable_catalog_resolves_unknown(self, tmp_path):
        db = write_results(tmp_path / "single.db", [
            (SCANNED, "ICT-01", "Passed", T1, "C:\\logs\\1-20240101-a.log"),
        ])
        legacy = tmp_path / "products"
        legacy.write_bytes("Vez\u00e9rl\u0151|GHI|3\n".encode("cp1250"))
        result = runner.invoke(
            app, ["lookup", SCANNED, "--db", db, "--products", str(legacy)]
        )
        assert result.exit_code == 0, result.output
        assert "Unknown" in result.output


class TestWatch:
    def test_scans_until_empty_line(self, history_db, products_file):
        result = runner.invoke(
            app,
            ["watch", "--db", history_db, "--products", products_file],
            input=f"{dmc(7777)}\n{SCANNED}\n\n",
        )
        assert result.exit_code == 0, result.output
        assert "No test history" in result.output
        assert "Controller" in result.output


class TestProducts:
    def test_lists_catalog(self, products_file):
        result = runner.invoke(app, ["products", "--products", products_file])
        assert result.exit_code == 0
        assert "Controller" in result.output
        assert "GHI" in result.output

    def test_empty_catalog(self, tmp_path):
        result = runner.invoke(app, ["products", "--products", str(tmp_path / "none")])
        assert result.exit_code == 0
        assert "No products loaded" in result.output

    def test_undecodable_catalog(self, tmp_path):
        legacy = tmp_path / "products"
        legacy.write_bytes("Vez\u00e9rl\u0151|GHI|3\n".encode("cp1250"))
        result = runner.invoke(app, ["products", "--products", str(legacy)])
        assert result.exit_code == 0
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "No products loaded" in result.output

    def test_directory_as_catalog(self, tmp_path):
        result = runner.invoke(app, ["products", "--products", str(tmp_path)])
        assert result.exit_code == 0
        assert "No products loaded" in result.output

    def test_settings_closed_when_resolve_fails(self, isolated_settings):
        with patch.object(isolated_settings, "resolve", side_effect=SettingsError("broken")), \
                patch.object(isolated_settings, "close") as mock_close:
            result = runner.invoke(app, ["products"])
        assert isinstance(result.exception, SettingsError)
        mock_close.assert_called_once()


class TestViewLog:
    @patch("ict_lookup.core.log_viewer.subprocess.Popen")
    def test_opens_log(self, mock_popen, tmp_path):
        log = tmp_path / "2-20240101-a.log"
        log.write_text("log", encoding="utf-8")
        result = runner.invoke(app, ["view-log", str(log), "--viewer", "viewer"])
        assert result.exit_code == 0, result.output
        mock_popen.assert_called_once_with(["viewer", str(log)])

    def test_missing_log(self, tmp_path):
        result = runner.invoke(app, ["view-log", str(tmp_path / "2-20240101-a.log")])
        assert result.exit_code == 1
        assert "Log file not found" in result.output

    def test_settings_closed_when_resolve_fails(self, isolated_settings):
        with patch.object(isolated_settings, "resolve", side_effect=SettingsError("broken")), \
                patch.object(isolated_settings, "close") as mock_close:
            result = runner.invoke(app, ["view-log", "2-20240101-a.log"])
        assert isinstance(result.exception, SettingsError)
        mock_close.assert_called_once()


class TestConfig:
    def test_set_and_get(self):
        result = runner.invoke(app, ["config", "set", "workers", "4"])
        assert result.exit_code == 0
        result = runner.invoke(app, ["config", "get", "workers"])
        assert "workers = 4" in result.output

    def test_get_all(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "products_file = products" in result.output
        assert "results_db = (not set)" in result.output

    def test_unknown_key(self):
        result = runner.invoke(app, ["config", "set", "colour", "blue"])
        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_unknown_action(self):
        result = runner.invoke(app, ["config", "drop"])
        assert result.exit_code == 1


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "ict-lookup" in result.output
