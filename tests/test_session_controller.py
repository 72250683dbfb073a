from __future__ import annotations

import asyncio

import numpy as np
import pytest

from arb_sim.ai.schemas import AnalysisLayers, Lesson, TradeAnalysis
from arb_sim.config import Settings
from arb_sim.session.controller import SessionController, SessionSnapshot
from arb_sim.types import SessionMode, TradeRecord


class _RecordingProvider:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.analyzed: list[str] = []
        self.lessons_requested: list[str] = []

    async def analyze_trade(self, record: TradeRecord) -> TradeAnalysis | None:
        self.analyzed.append(record.id)
        if self.fail:
            raise RuntimeError("provider down")
        return TradeAnalysis(
            summary=f"analysis for {record.id}",
            layers=AnalysisLayers(l1="a", l2="b", l3="c", l4="d", l5="e"),
        )

    async def generate_lesson(self, record: TradeRecord) -> Lesson | None:
        self.lessons_requested.append(record.id)
        return Lesson(topic="Fees", content="Both legs pay.", reasoning=record.id, retention_score=70)


def _controller(provider: _RecordingProvider | None = None, **overrides: object) -> SessionController:
    params: dict[str, object] = {
        "random_seed": 5,
        "backtest_ticks": 10,
        "backtest_pacing_ms": 0,
        "passive_interval_ms": 10,
        "autonomous_interval_ms": 10,
    }
    params.update(overrides)
    settings = Settings(**params)
    return SessionController(
        settings,
        rng=np.random.default_rng(5),
        enrichment=provider or _RecordingProvider(),
    )


async def _drain() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_tick_publishes_ranked_opportunities() -> None:
    controller = _controller()
    seen: list[SessionSnapshot] = []
    controller.subscribe(seen.append)

    opportunities = await controller.tick()
    assert opportunities
    assert seen[-1].opportunities == opportunities
    scores = [opp.composite_score for opp in opportunities]
    assert scores == sorted(scores, reverse=True)
    assert seen[-1].mode is SessionMode.PASSIVE


@pytest.mark.asyncio
async def test_manual_execution_settles_and_attaches_rationale() -> None:
    provider = _RecordingProvider()
    controller = _controller(provider)
    opportunities = await controller.tick()

    record = await controller.execute_opportunity(opportunities[0].id)
    assert record is not None
    assert controller.equity == pytest.approx(10_000.0 + record.net_profit)

    await _drain()
    assert provider.analyzed == [record.id]
    stored = controller.trades[0]
    assert stored.rationale == f"analysis for {record.id}"
    assert stored.analysis_layers == {"l1": "a", "l2": "b", "l3": "c", "l4": "d", "l5": "e"}
    assert stored.net_profit == record.net_profit


@pytest.mark.asyncio
async def test_unknown_opportunity_is_a_no_op() -> None:
    controller = _controller()
    await controller.tick()
    assert await controller.execute_opportunity("does-not-exist") is None
    assert controller.trades == ()
    assert controller.equity == 10_000.0


@pytest.mark.asyncio
async def test_enrichment_failure_does_not_block_settlement() -> None:
    provider = _RecordingProvider(fail=True)
    controller = _controller(provider)
    opportunities = await controller.tick()

    record = await controller.execute_opportunity(opportunities[0].id)
    await _drain()
    assert record is not None
    assert provider.analyzed == [record.id]
    assert controller.trades[0].rationale is None
    assert controller.equity == pytest.approx(10_000.0 + record.net_profit)

    second = await controller.execute_opportunity(opportunities[0].id)
    assert second is not None
    assert len(controller.trades) == 2


@pytest.mark.asyncio
async def test_lessons_newest_first_and_capped() -> None:
    provider = _RecordingProvider()
    controller = _controller(provider, lesson_profit_threshold=0.0, max_lessons=1)
    opportunities = await controller.tick()

    first = await controller.execute_opportunity(opportunities[0].id)
    await _drain()
    second = await controller.execute_opportunity(opportunities[0].id)
    await _drain()

    assert first is not None and second is not None
    assert provider.lessons_requested == [first.id, second.id]
    assert [card.trade_id for card in controller.lessons] == [second.id]


@pytest.mark.asyncio
async def test_small_trades_do_not_request_lessons() -> None:
    provider = _RecordingProvider()
    controller = _controller(provider, lesson_profit_threshold=1e9)
    opportunities = await controller.tick()
    await controller.execute_opportunity(opportunities[0].id)
    await _drain()
    assert provider.lessons_requested == []
    assert controller.lessons == ()


@pytest.mark.asyncio
async def test_manual_execution_rejected_while_autonomous() -> None:
    controller = _controller(score_threshold=1e9)
    opportunities = await controller.tick()
    controller.set_autonomous(True)
    try:
        assert await controller.execute_opportunity(opportunities[0].id) is None
        assert controller.trades == ()
    finally:
        await controller.close()


@pytest.mark.asyncio
async def test_autonomous_step_respects_threshold() -> None:
    controller = _controller(score_threshold=0.0)
    await controller.tick()
    assert await controller.autonomous_step() is None

    controller.set_autonomous(True)
    try:
        record = await controller.autonomous_step()
        assert record is not None
        assert not record.is_backtest
    finally:
        await controller.close()

    blocked = _controller(score_threshold=1e9)
    await blocked.tick()
    blocked.set_autonomous(True)
    try:
        assert await blocked.autonomous_step() is None
    finally:
        await blocked.close()


@pytest.mark.asyncio
async def test_backtest_leaves_live_state_untouched() -> None:
    provider = _RecordingProvider()
    controller = _controller(provider)
    await controller.tick()
    live_prices = controller.market.prices
    seen: list[SessionSnapshot] = []
    controller.subscribe(seen.append)

    result = await controller.run_backtest("volatile")

    assert result is not None
    assert result.ticks_run == 10
    assert not result.cancelled
    assert result.net_yield == pytest.approx(sum(t.net_profit for t in result.trades))
    assert controller.equity == 10_000.0
    assert controller.trades == ()
    assert controller.market.prices == live_prices
    assert provider.analyzed == []

    during = [snap for snap in seen if snap.mode is SessionMode.BACKTEST]
    assert [snap.backtest_progress for snap in during if snap.backtest_progress is not None][-1] == 100.0
    assert all(snap.equity == 10_000.0 for snap in during)
    assert seen[-1].mode is SessionMode.PASSIVE
    assert seen[-1].last_backtest is result
    assert seen[-1].backtest_progress is None


@pytest.mark.asyncio
async def test_second_backtest_rejected_while_running() -> None:
    controller = _controller(backtest_pacing_ms=5, backtest_ticks=20)
    first = asyncio.create_task(controller.run_backtest("bull"))
    await asyncio.sleep(0)
    assert controller.state.backtest_running

    assert await controller.run_backtest("bear") is None
    result = await first
    assert result is not None
    assert result.scenario == "bull"
    assert not controller.state.backtest_running


@pytest.mark.asyncio
async def test_backtest_restores_autonomous_mode() -> None:
    controller = _controller(score_threshold=1e9)
    controller.set_autonomous(True)
    try:
        result = await controller.run_backtest("bear")
        assert result is not None
        assert controller.state.mode is SessionMode.AUTONOMOUS
    finally:
        await controller.close()


@pytest.mark.asyncio
async def test_cancel_backtest_stops_before_next_tick() -> None:
    controller = _controller(backtest_pacing_ms=5, backtest_ticks=50)
    assert controller.cancel_backtest() is False

    task = asyncio.create_task(controller.run_backtest("volatile"))
    await asyncio.sleep(0)
    assert controller.cancel_backtest() is True

    result = await task
    assert result is not None
    assert result.cancelled
    assert result.ticks_run < 50
    assert controller.state.mode is SessionMode.PASSIVE


@pytest.mark.asyncio
async def test_unknown_scenario_rejected() -> None:
    controller = _controller()
    assert await controller.run_backtest("sideways") is None
    assert controller.state.mode is SessionMode.PASSIVE


@pytest.mark.asyncio
async def test_reset_session_clears_history_and_lessons() -> None:
    controller = _controller(lesson_profit_threshold=0.0)
    opportunities = await controller.tick()
    record = await controller.execute_opportunity(opportunities[0].id)
    assert record is not None

    await controller.reset_session()
    await _drain()
    assert controller.equity == 10_000.0
    assert controller.trades == ()
    assert controller.lessons == ()


@pytest.mark.asyncio
async def test_start_and_close_cancel_ticking() -> None:
    controller = _controller()
    async with controller:
        controller.set_autonomous(True)
        await asyncio.sleep(0.05)
        names = {task.get_name() for task in asyncio.all_tasks()}
        assert {"passive-scan", "autonomous-scan"} <= names

    names = {task.get_name() for task in asyncio.all_tasks() if not task.done()}
    assert "passive-scan" not in names
    assert "autonomous-scan" not in names


@pytest.mark.asyncio
async def test_backtest_cancelled_while_waiting_for_lock_restores_mode() -> None:
    controller = _controller()
    async with controller._lock:
        task = asyncio.create_task(controller.run_backtest("bull"))
        await asyncio.sleep(0)
        assert controller.state.backtest_running
        task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not controller.state.backtest_running
    assert controller.state.mode is SessionMode.PASSIVE
    assert controller.snapshot().last_backtest is None
    assert await controller.run_backtest("bear") is not None


@pytest.mark.asyncio
async def test_snapshot_carries_live_equity_curve_and_metrics() -> None:
    controller = _controller()
    empty = controller.snapshot()
    assert empty.equity_curve == (10_000.0,)
    assert empty.metrics["trade_count"] == 0

    opportunities = await controller.tick()
    record = await controller.execute_opportunity(opportunities[0].id)
    assert record is not None

    snap = controller.snapshot()
    assert snap.equity_curve == pytest.approx((10_000.0, 10_000.0 + record.net_profit))
    assert snap.metrics["trade_count"] == 1
    assert snap.metrics["net_profit"] == pytest.approx(record.net_profit)

    await controller.reset_session()
    assert controller.snapshot().equity_curve == (10_000.0,)
