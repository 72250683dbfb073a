"""Backtest package exports."""

from arb_sim.backtest.metrics import compute_summary_metrics, equity_curve_from_trades
from arb_sim.backtest.runner import ScenarioRun, run_scenario
from arb_sim.backtest.types import (
    SCENARIOS,
    BacktestConfig,
    BacktestResult,
    ScenarioName,
    ScenarioSpec,
    TickOutcome,
    get_scenario,
)

__all__ = [
    "SCENARIOS",
    "BacktestConfig",
    "BacktestResult",
    "ScenarioName",
    "ScenarioRun",
    "ScenarioSpec",
    "TickOutcome",
    "compute_summary_metrics",
    "equity_curve_from_trades",
    "get_scenario",
    "run_scenario",
]
