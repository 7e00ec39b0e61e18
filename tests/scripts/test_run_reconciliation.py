"""
Tests for scripts/run_reconciliation.py against a seeded SQLite database.
"""

import csv
import io

import pytest
import yaml

from scripts.run_reconciliation import main
from stock_engines.reporting import CSV_COLUMNS


@pytest.fixture
def store(seed):
    """Widget over by 2 (auto-fixable); Gizmo short by 40 (investigation)."""
    loc = seed.location("Main")
    widget = seed.product("Widget", "WID-001")
    gizmo = seed.product("Gizmo", "GIZ-001")
    seed.entry(*widget, loc, delta="100", balance="100", unit_cost="2")
    seed.stock(*widget, loc, "102")
    seed.entry(*gizmo, loc, delta="100", balance="100", unit_cost="25")
    seed.stock(*gizmo, loc, "60")
    return {"location": loc, "widget": widget, "gizmo": gizmo}


def _run(database_url, *argv) -> int:
    return main(["--db-url", database_url, *argv])


class TestReport:

    def test_prints_summary(self, database_url, store, capsys):
        assert _run(database_url, "report", "--business", "1") == 0

        out = capsys.readouterr().out
        assert "Variances: 2 (overages 1, shortages 1)" in out
        assert "Requires investigation: 1, auto-fixable: 1" in out
        assert "Gizmo (Default) @ Main: ledger 100, system 60, variance -40 [INVESTIGATE]" in out

    def test_writes_csv(self, database_url, store, tmp_path, capsys):
        csv_path = tmp_path / "recon.csv"

        assert _run(database_url, "report", "--business", "1", "--csv", str(csv_path)) == 0

        text = csv_path.read_text()
        assert text.endswith("\n")
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == list(CSV_COLUMNS)
        assert len(rows) == 3
        assert f"CSV written to {csv_path}" in capsys.readouterr().out


class TestFixAndHistory:

    def test_fix_then_history(self, database_url, store, capsys):
        _, widget_variation = store["widget"]

        assert _run(
            database_url, "fix", "--business", "1", "--user-id", "7", "--username", "ops",
        ) == 0
        assert "Fixed 1 variance(s)" in capsys.readouterr().out

        assert _run(
            database_url, "history", "--business", "1", "--variation", str(widget_variation),
        ) == 0
        out = capsys.readouterr().out
        assert "Widget (Default) @ Main: 2 -> 102 by ops" in out

    def test_history_without_corrections(self, database_url, store, capsys):
        _, gizmo_variation = store["gizmo"]

        assert _run(
            database_url, "history", "--business", "1", "--variation", str(gizmo_variation),
        ) == 0
        assert "No reconciliation corrections found." in capsys.readouterr().out


class TestInvestigate:

    def test_investigate_pair(self, database_url, store, capsys):
        _, gizmo_variation = store["gizmo"]

        assert _run(
            database_url, "investigate", "--business", "1",
            "--variation", str(gizmo_variation), "--location", str(store["location"]),
            "--days-back", "3650",
        ) == 0

        out = capsys.readouterr().out
        assert "Variance -40 (shortage), 1 transaction(s) analysed" in out
        assert "Recommendation: Review shrinkage policies" in out

    def test_invalid_days_back(self, database_url, store, capsys):
        _, gizmo_variation = store["gizmo"]

        assert _run(
            database_url, "investigate", "--business", "1",
            "--variation", str(gizmo_variation), "--location", str(store["location"]),
            "--days-back", "0",
        ) == 1
        assert "ERROR [INVALID_ARGUMENT]" in capsys.readouterr().err


class TestConfigOption:

    def test_override_file(self, database_url, store, tmp_path, capsys):
        override = tmp_path / "recon.yaml"
        override.write_text(yaml.safe_dump({"thresholds": {"percent": "50", "value": "5000",
                                                           "absolute_quantity": "50"}}))

        assert _run(database_url, "--config", str(override), "report", "--business", "1") == 0
        assert "Requires investigation: 0, auto-fixable: 2" in capsys.readouterr().out

    def test_bad_config_exits_non_zero(self, database_url, tmp_path, capsys):
        assert _run(
            database_url, "--config", str(tmp_path / "missing.yaml"), "report", "--business", "1",
        ) == 1
        assert "Failed to load config" in capsys.readouterr().err
