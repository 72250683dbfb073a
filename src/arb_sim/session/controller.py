"""Session orchestration: passive monitoring, autonomous trading, backtests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from arb_sim.ai.provider import EnrichmentProvider, build_enrichment_provider
from arb_sim.backtest.metrics import compute_summary_metrics, equity_curve_from_trades
from arb_sim.backtest.runner import ScenarioRun
from arb_sim.backtest.types import (
    BacktestConfig,
    BacktestResult,
    ScenarioSpec,
    TickOutcome,
    get_scenario,
)
from arb_sim.config import Settings
from arb_sim.exec.paper import EquityLedger, PaperExecutor
from arb_sim.market.feed import PriceFeed, build_initial_market_state, build_random_source
from arb_sim.session.state import InvalidTransitionError, SessionState
from arb_sim.strategy.scanner import OpportunityScanner
from arb_sim.types import (
    LessonCard,
    MarketState,
    Opportunity,
    RandomSource,
    SessionMode,
    TradeRecord,
)
from arb_sim.utils.ids import draw_id
from arb_sim.utils.logging import get_logger, log_session_event


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Everything a renderer needs, copied at one publish point."""

    mode: SessionMode
    autonomous_enabled: bool
    market: MarketState
    opportunities: tuple[Opportunity, ...]
    equity: float
    trades: tuple[TradeRecord, ...]
    lessons: tuple[LessonCard, ...]
    backtest_progress: float | None = None
    backtest_equity: float | None = None
    backtest_trades: tuple[TradeRecord, ...] = ()
    last_backtest: BacktestResult | None = None
    equity_curve: tuple[float, ...] = ()
    metrics: dict[str, float | int | None] = field(default_factory=dict)


SnapshotListener = Callable[[SessionSnapshot], None]


class SessionController:
    """Single owner of the live market, equity ledger and trade history.

    All mutations of live state happen on the event loop under one lock.
    A running backtest masks both the passive and the autonomous schedule.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        rng: RandomSource | None = None,
        enrichment: EnrichmentProvider | None = None,
        market: MarketState | None = None,
    ) -> None:
        self._settings = settings
        self._rng = rng if rng is not None else build_random_source(settings.random_seed)
        self._feed = PriceFeed(self._rng)
        self._scanner = OpportunityScanner.from_settings(settings, self._rng)
        self._executor = PaperExecutor(settings, self._rng, on_settled=self._schedule_enrichment)
        self._enrichment = enrichment if enrichment is not None else build_enrichment_provider(settings)
        self._logger = get_logger("arb_sim.session.controller")

        self._market = market.copy() if market is not None else build_initial_market_state(settings)
        self._ledger = EquityLedger(settings.initial_capital)
        self._opportunities: list[Opportunity] = []
        self._lessons: list[LessonCard] = []
        self._state = SessionState()

        self._lock = asyncio.Lock()
        self._passive_task: asyncio.Task[None] | None = None
        self._autonomous_task: asyncio.Task[None] | None = None
        self._enrichment_tasks: set[asyncio.Task[None]] = set()
        self._backtest_cancel = asyncio.Event()
        self._backtest_view: TickOutcome | None = None
        self._backtest_trades: list[TradeRecord] = []
        self._last_backtest: BacktestResult | None = None
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------ views

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def equity(self) -> float:
        return self._ledger.equity

    @property
    def trades(self) -> tuple[TradeRecord, ...]:
        return self._ledger.trades

    @property
    def opportunities(self) -> tuple[Opportunity, ...]:
        return tuple(self._opportunities)

    @property
    def market(self) -> MarketState:
        return self._market.copy()

    @property
    def lessons(self) -> tuple[LessonCard, ...]:
        return tuple(self._lessons)

    def snapshot(self) -> SessionSnapshot:
        view = self._backtest_view
        trades = self._ledger.trades
        curve = equity_curve_from_trades(trades, self._ledger.initial_equity)
        return SessionSnapshot(
            mode=self._state.mode,
            autonomous_enabled=self._state.autonomous_enabled,
            market=view.market.copy() if view else self._market.copy(),
            opportunities=tuple(view.opportunities if view else self._opportunities),
            equity=self._ledger.equity,
            trades=trades,
            lessons=tuple(self._lessons),
            backtest_progress=view.progress_pct if view else None,
            backtest_equity=view.equity if view else None,
            backtest_trades=tuple(self._backtest_trades) if view else (),
            last_backtest=self._last_backtest,
            equity_curve=tuple(curve),
            metrics=compute_summary_metrics(curve, trades),
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener for every published snapshot."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -------------------------------------------------------------- lifecycle

    async def start(self) -> None:
        """Start passive monitoring."""
        if self._passive_task is None or self._passive_task.done():
            self._passive_task = asyncio.create_task(self._passive_loop(), name="passive-scan")
            log_session_event(self._logger, event_type="started", mode=self._state.mode.value)
        self._publish()

    async def close(self) -> None:
        """Stop all scheduled ticking. In-flight enrichment is cancelled, not awaited."""
        self._backtest_cancel.set()
        ticking = [task for task in (self._passive_task, self._autonomous_task) if task is not None]
        for task in ticking:
            task.cancel()
        for task in list(self._enrichment_tasks):
            task.cancel()
        await asyncio.gather(*ticking, return_exceptions=True)
        self._passive_task = None
        self._autonomous_task = None
        log_session_event(self._logger, event_type="closed", mode=self._state.mode.value)

    async def __aenter__(self) -> SessionController:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ---------------------------------------------------------------- ticking

    async def tick(self) -> tuple[Opportunity, ...]:
        """One passive tick: advance live prices with zero drift and rescan."""
        if self._state.backtest_running:
            return tuple(self._opportunities)
        async with self._lock:
            if self._state.backtest_running:
                return tuple(self._opportunities)
            self._market = self._feed.advance(self._market, 0.0)
            self._opportunities = self._scanner.scan(self._market.prices)
            self._publish()
            return tuple(self._opportunities)

    async def autonomous_step(self) -> TradeRecord | None:
        """Execute the current best opportunity if it clears the threshold."""
        if not self._state.autonomous_enabled or self._state.backtest_running:
            return None
        async with self._lock:
            if not self._state.autonomous_enabled or self._state.backtest_running:
                return None
            if not self._opportunities:
                return None
            best = self._opportunities[0]
            if best.composite_score <= self._settings.score_threshold:
                return None
            _, record = self._executor.execute(
                best,
                self._ledger,
                self._market.volatility,
                mode="notify",
            )
            if record is not None:
                self._publish()
            return record

    async def _passive_loop(self) -> None:
        interval = self._settings.passive_interval_ms / 1000.0
        while True:
            await self.tick()
            await asyncio.sleep(interval)

    async def _autonomous_loop(self) -> None:
        interval = self._settings.autonomous_interval_ms / 1000.0
        while True:
            await self.autonomous_step()
            await asyncio.sleep(interval)

    # --------------------------------------------------------------- commands

    async def execute_opportunity(self, opportunity_id: str) -> TradeRecord | None:
        """Manually execute one opportunity from the current scan."""
        async with self._lock:
            if not self._state.allows_manual_execution:
                self._reject("execute_opportunity", "schedule_owns_opportunities")
                return None
            opportunity = next(
                (opp for opp in self._opportunities if opp.id == opportunity_id),
                None,
            )
            if opportunity is None:
                self._reject("execute_opportunity", "unknown_opportunity_id")
                return None
            _, record = self._executor.execute(
                opportunity,
                self._ledger,
                self._market.volatility,
                mode="notify",
            )
            if record is not None:
                self._publish()
            return record

    def set_autonomous(self, enabled: bool) -> None:
        """Toggle autonomous trading. Must be called from the event loop."""
        self._state = self._state.with_autonomous(enabled)
        if enabled and (self._autonomous_task is None or self._autonomous_task.done()):
            self._autonomous_task = asyncio.create_task(
                self._autonomous_loop(),
                name="autonomous-scan",
            )
        elif not enabled and self._autonomous_task is not None:
            self._autonomous_task.cancel()
            self._autonomous_task = None
        log_session_event(
            self._logger,
            event_type="autonomous_toggled",
            mode=self._state.mode.value,
            enabled=enabled,
        )
        self._publish()

    async def run_backtest(self, scenario: str | ScenarioSpec) -> BacktestResult | None:
        """Replay a scenario on a private copy of the live market and equity.

        Returns ``None`` when rejected (unknown scenario or one already running).
        """
        try:
            spec = get_scenario(scenario) if isinstance(scenario, str) else scenario
            self._state = self._state.begin_backtest()
        except (ValueError, InvalidTransitionError) as exc:
            self._reject("run_backtest", str(exc))
            return None

        self._backtest_cancel.clear()
        self._backtest_trades = []
        config = BacktestConfig.from_settings(self._settings)
        run: ScenarioRun | None = None
        cancelled = False
        # end_backtest() must run even when the lock wait is cancelled.
        try:
            async with self._lock:
                run = ScenarioRun(
                    scenario=spec,
                    market=self._market,
                    equity=self._ledger.equity,
                    config=config,
                    feed=self._feed,
                    scanner=self._scanner,
                    executor=self._executor,
                )
            log_session_event(
                self._logger,
                event_type="backtest_started",
                mode=self._state.mode.value,
                scenario=spec.name,
                ticks=config.ticks,
            )

            while not run.done:
                if self._backtest_cancel.is_set():
                    cancelled = True
                    break
                async with self._lock:
                    outcome = run.step()
                    if outcome.trade is not None:
                        self._backtest_trades.append(outcome.trade)
                    self._backtest_view = outcome
                    self._publish()
                await asyncio.sleep(config.pacing_ms / 1000.0)
        finally:
            self._state = self._state.end_backtest()
            self._backtest_view = None
            if run is not None:
                self._last_backtest = run.result(cancelled=cancelled or not run.done)
            self._publish()

        result = self._last_backtest
        if result is None:
            return None

        log_session_event(
            self._logger,
            event_type="backtest_completed",
            mode=self._state.mode.value,
            scenario=result.scenario,
            ticks=result.ticks_run,
            trades=len(result.trades),
            net_yield=round(result.net_yield, 4),
            cancelled=result.cancelled,
        )
        return result

    def cancel_backtest(self) -> bool:
        """Stop a running backtest before its next tick."""
        if not self._state.backtest_running:
            return False
        self._backtest_cancel.set()
        return True

    async def reset_session(self) -> None:
        """Restore starting capital and clear live history and lessons."""
        async with self._lock:
            self._ledger.reset(self._settings.initial_capital)
            self._lessons.clear()
            log_session_event(self._logger, event_type="reset", mode=self._state.mode.value)
            self._publish()

    # ------------------------------------------------------------- enrichment

    def _schedule_enrichment(self, record: TradeRecord) -> None:
        task = asyncio.get_running_loop().create_task(
            self._enrich(record),
            name=f"enrich-{record.id}",
        )
        self._enrichment_tasks.add(task)
        task.add_done_callback(self._enrichment_tasks.discard)

    async def _enrich(self, record: TradeRecord) -> None:
        try:
            analysis = await self._enrichment.analyze_trade(record)
        except Exception as exc:  # noqa: BLE001 - enrichment never touches settlement.
            self._logger.warning("enrichment_failed", trade_id=record.id, error=str(exc))
            analysis = None

        if analysis is None:
            self._logger.debug("rationale_unavailable", trade_id=record.id)
        elif self._ledger.attach_analysis(
            record.id,
            analysis.summary,
            analysis.layers.model_dump(),
        ):
            self._publish()

        if abs(record.net_profit) <= self._settings.lesson_profit_threshold:
            return
        try:
            lesson = await self._enrichment.generate_lesson(record)
        except Exception as exc:  # noqa: BLE001 - enrichment never touches settlement.
            self._logger.warning("lesson_generation_failed", trade_id=record.id, error=str(exc))
            return
        if lesson is None or self._ledger.find(record.id) is None:
            return
        card = LessonCard(
            id=draw_id(self._rng),
            trade_id=record.id,
            topic=lesson.topic,
            content=lesson.content,
            reasoning=lesson.reasoning,
            retention_score=lesson.retention_score,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._lessons.insert(0, card)
        del self._lessons[self._settings.max_lessons :]
        self._publish()

    # ------------------------------------------------------------- publishing

    def _reject(self, command: str, reason: str) -> None:
        self._logger.warning(
            "command_rejected",
            command=command,
            reason=reason,
            mode=self._state.mode.value,
        )

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:  # noqa: BLE001 - a renderer must not stop ticking.
                self._logger.warning("listener_failed", error=str(exc))
