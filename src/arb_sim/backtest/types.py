"""Shared types for scenario backtests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, cast

from arb_sim.config import Settings
from arb_sim.types import MarketState, Opportunity, TradeRecord, Trend

ScenarioName = Literal["bull", "bear", "volatile"]


@dataclass(frozen=True, slots=True)
class ScenarioSpec:
    """Market regime applied on top of a private copy of the live state."""

    name: ScenarioName
    drift_bias: float
    volatility_multiplier: float
    trend: Trend


SCENARIOS: dict[ScenarioName, ScenarioSpec] = {
    "bull": ScenarioSpec(name="bull", drift_bias=0.0006, volatility_multiplier=1.0, trend="BULLISH"),
    "bear": ScenarioSpec(name="bear", drift_bias=-0.0006, volatility_multiplier=1.0, trend="BEARISH"),
    "volatile": ScenarioSpec(
        name="volatile",
        drift_bias=0.0,
        volatility_multiplier=2.5,
        trend="NEUTRAL",
    ),
}


def get_scenario(name: str) -> ScenarioSpec:
    try:
        return SCENARIOS[cast(ScenarioName, name.lower())]
    except KeyError as exc:
        raise ValueError(f"unknown_scenario: {name}") from exc


@dataclass(slots=True)
class BacktestConfig:
    """Runtime parameters for one scenario replay."""

    ticks: int = 100
    pacing_ms: int = 45
    score_threshold: float = 20.0

    @classmethod
    def from_settings(cls, settings: Settings) -> BacktestConfig:
        return cls(
            ticks=settings.backtest_ticks,
            pacing_ms=settings.backtest_pacing_ms,
            score_threshold=settings.score_threshold,
        )


@dataclass(slots=True)
class EquityPoint:
    """Private equity after one replay tick."""

    tick: int
    equity: float


@dataclass(slots=True)
class TickOutcome:
    """What one replay tick produced; the unit the controller publishes."""

    tick: int
    market: MarketState
    opportunities: list[Opportunity]
    trade: TradeRecord | None
    equity: float
    progress_pct: float


@dataclass(slots=True)
class BacktestResult:
    """Result bundle for one scenario replay."""

    scenario: ScenarioName
    start_equity: float
    end_equity: float
    ticks_planned: int
    ticks_run: int
    cancelled: bool = False
    trades: list[TradeRecord] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    metrics: dict[str, float | int | None] = field(default_factory=dict)

    @property
    def net_yield(self) -> float:
        return self.end_equity - self.start_equity
