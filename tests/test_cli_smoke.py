from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from arb_sim import __version__
from arb_sim.config import Settings
from arb_sim.main import cli


def test_cli_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_backtest_smoke(tmp_path: Path) -> None:
    export = tmp_path / "bt.csv"
    result = CliRunner().invoke(
        cli,
        ["backtest", "--scenario", "bull", "--seed", "3", "--ticks", "5", "--export", str(export)],
    )
    assert result.exit_code == 0, result.output
    assert "Scenario: bull" in result.output
    assert "Ticks: 5/5" in result.output
    assert export.read_text(encoding="utf-8").startswith("ID,Scope,")


def test_cli_run_smoke(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        "arb_sim.main.get_settings",
        lambda: Settings(passive_interval_ms=10, openrouter_api_key=""),
    )
    export = tmp_path / "live.csv"
    result = CliRunner().invoke(cli, ["run", "--seconds", "0.05", "--export", str(export)])
    assert result.exit_code == 0, result.output
    assert "Mode: passive" in result.output
    assert "trade_count: 0" in result.output
    assert export.exists()


def test_cli_status() -> None:
    result = CliRunner().invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "[Market]" in result.output

