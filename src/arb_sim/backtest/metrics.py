"""Equity-curve and trade metrics for sessions and scenario replays."""

from __future__ import annotations

from statistics import fmean
from typing import Sequence

from arb_sim.types import TradeRecord


def equity_curve_from_trades(trades: Sequence[TradeRecord], initial_equity: float) -> list[float]:
    """Running equity: the starting balance, then one point per trade."""
    curve = [float(initial_equity)]
    for trade in trades:
        curve.append(curve[-1] + trade.net_profit)
    return curve


def compute_summary_metrics(
    equity_curve: Sequence[float],
    trades: Sequence[TradeRecord],
) -> dict[str, float | int | None]:
    """Compute key metrics for one session or replay."""
    if not equity_curve:
        return {
            "trade_count": 0,
            "net_profit": 0.0,
            "total_return_pct": 0.0,
            "max_drawdown_pct": 0.0,
            "max_drawdown_recovery_ticks": None,
            "expectancy_per_trade": 0.0,
            "win_rate_pct": 0.0,
            "take_profit_count": 0,
            "stop_loss_count": 0,
            "completed_count": 0,
        }

    start = equity_curve[0]
    end = equity_curve[-1]
    total_return_pct = ((end / start) - 1.0) * 100 if start > 0 else 0.0

    max_drawdown_pct, recovery_ticks = _max_drawdown_with_recovery(equity_curve)
    expectancy = fmean(trade.net_profit for trade in trades) if trades else 0.0
    win_count = sum(1 for trade in trades if trade.net_profit > 0)
    win_rate = (win_count / len(trades) * 100.0) if trades else 0.0

    return {
        "trade_count": len(trades),
        "net_profit": float(end - start),
        "total_return_pct": float(total_return_pct),
        "max_drawdown_pct": float(max_drawdown_pct),
        "max_drawdown_recovery_ticks": recovery_ticks,
        "expectancy_per_trade": float(expectancy),
        "win_rate_pct": float(win_rate),
        "take_profit_count": sum(1 for trade in trades if trade.status == "TAKE_PROFIT"),
        "stop_loss_count": sum(1 for trade in trades if trade.status == "STOP_LOSS"),
        "completed_count": sum(1 for trade in trades if trade.status == "COMPLETED"),
    }


def _max_drawdown_with_recovery(values: Sequence[float]) -> tuple[float, int | None]:
    if not values:
        return 0.0, None
    peak_value = values[0]
    peak_idx = 0
    max_dd = 0.0
    trough_idx = 0
    peak_idx_for_max_dd = 0

    for idx, value in enumerate(values):
        if value > peak_value:
            peak_value = value
            peak_idx = idx
        drawdown = 0.0 if peak_value <= 0 else (peak_value - value) / peak_value * 100.0
        if drawdown > max_dd:
            max_dd = drawdown
            trough_idx = idx
            peak_idx_for_max_dd = peak_idx

    if max_dd <= 0:
        return 0.0, 0

    recovery_ticks: int | None = None
    target = values[peak_idx_for_max_dd]
    for idx in range(trough_idx + 1, len(values)):
        if values[idx] >= target:
            recovery_ticks = idx - trough_idx
            break
    return max_dd, recovery_ticks
