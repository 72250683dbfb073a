"""Scenario replay over a private copy of the market and equity."""

from __future__ import annotations

from arb_sim.backtest.metrics import compute_summary_metrics
from arb_sim.backtest.types import (
    BacktestConfig,
    BacktestResult,
    EquityPoint,
    ScenarioSpec,
    TickOutcome,
)
from arb_sim.config import Settings
from arb_sim.exec.paper import EquityLedger, PaperExecutor
from arb_sim.market.feed import PriceFeed
from arb_sim.strategy.scanner import OpportunityScanner
from arb_sim.types import MarketState, RandomSource
from arb_sim.utils.logging import get_logger


class ScenarioRun:
    """Isolated working context for one replay.

    Holds its own market copy and its own ledger. Nothing here is shared with
    the live session; callers publish each :class:`TickOutcome` themselves.
    """

    def __init__(
        self,
        *,
        scenario: ScenarioSpec,
        market: MarketState,
        equity: float,
        config: BacktestConfig,
        feed: PriceFeed,
        scanner: OpportunityScanner,
        executor: PaperExecutor,
    ) -> None:
        if config.ticks <= 0:
            raise ValueError("ticks_must_be_positive")
        self._scenario = scenario
        self._config = config
        self._feed = feed
        self._scanner = scanner
        self._executor = executor

        self._market = market.copy()
        self._market.volatility = market.volatility * scenario.volatility_multiplier
        self._market.trend = scenario.trend
        self._ledger = EquityLedger(equity)
        self._ticks_run = 0
        self._equity_curve = [EquityPoint(tick=0, equity=self._ledger.equity)]

    @property
    def scenario(self) -> ScenarioSpec:
        return self._scenario

    @property
    def done(self) -> bool:
        return self._ticks_run >= self._config.ticks

    @property
    def progress_pct(self) -> float:
        return self._ticks_run / self._config.ticks * 100.0

    @property
    def equity(self) -> float:
        return self._ledger.equity

    def step(self) -> TickOutcome:
        """Advance the private market one tick, scan it, maybe trade."""
        if self.done:
            raise RuntimeError("scenario_already_complete")

        self._market = self._feed.advance(self._market, self._scenario.drift_bias)
        opportunities = self._scanner.scan(self._market.prices)

        trade = None
        if opportunities and opportunities[0].composite_score > self._config.score_threshold:
            _, trade = self._executor.execute(
                opportunities[0],
                self._ledger,
                self._market.volatility,
                mode="silent",
                is_backtest=True,
            )

        self._ticks_run += 1
        self._equity_curve.append(EquityPoint(tick=self._ticks_run, equity=self._ledger.equity))
        return TickOutcome(
            tick=self._ticks_run,
            market=self._market.copy(),
            opportunities=opportunities,
            trade=trade,
            equity=self._ledger.equity,
            progress_pct=self.progress_pct,
        )

    def result(self, *, cancelled: bool = False) -> BacktestResult:
        trades = list(self._ledger.trades)
        return BacktestResult(
            scenario=self._scenario.name,
            start_equity=self._ledger.initial_equity,
            end_equity=self._ledger.equity,
            ticks_planned=self._config.ticks,
            ticks_run=self._ticks_run,
            cancelled=cancelled,
            trades=trades,
            equity_curve=list(self._equity_curve),
            metrics=compute_summary_metrics(
                [point.equity for point in self._equity_curve],
                trades,
            ),
        )


def run_scenario(
    *,
    scenario: ScenarioSpec,
    market: MarketState,
    equity: float,
    settings: Settings,
    rng: RandomSource,
    config: BacktestConfig | None = None,
) -> BacktestResult:
    """Headless replay: every tick back to back, no pacing."""
    logger = get_logger("arb_sim.backtest.runner")
    run = ScenarioRun(
        scenario=scenario,
        market=market,
        equity=equity,
        config=config or BacktestConfig.from_settings(settings),
        feed=PriceFeed(rng),
        scanner=OpportunityScanner.from_settings(settings, rng),
        executor=PaperExecutor(settings, rng),
    )
    while not run.done:
        run.step()

    result = run.result()
    logger.info(
        "backtest_completed",
        scenario=result.scenario,
        ticks=result.ticks_run,
        trades=len(result.trades),
        net_yield=round(result.net_yield, 4),
    )
    return result
