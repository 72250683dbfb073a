"""Shared domain types for the arbitrage tick engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Protocol

Trend = Literal["BULLISH", "BEARISH", "NEUTRAL"]
TradeStatus = Literal["TAKE_PROFIT", "STOP_LOSS", "COMPLETED"]
ExecutionMode = Literal["notify", "silent"]

PriceMatrix = dict[str, dict[str, float]]


class RandomSource(Protocol):
    """Random draws used by the feed, scanner and executor.

    ``numpy.random.Generator`` satisfies this protocol.
    """

    def uniform(self, low: float, high: float) -> float:
        """Draw uniformly from ``[low, high)``."""

    def integers(self, low: int, high: int) -> int:
        """Draw an integer from ``[low, high)``."""


class SessionMode(str, Enum):
    """Which activity currently owns the tick schedule."""

    PASSIVE = "passive"
    AUTONOMOUS = "autonomous"
    BACKTEST = "backtest"


@dataclass(slots=True)
class MarketState:
    """Per-exchange per-pair prices plus volatility and trend label."""

    prices: PriceMatrix
    volatility: float
    trend: Trend = "NEUTRAL"

    def copy(self) -> MarketState:
        return MarketState(
            prices={exchange: dict(row) for exchange, row in self.prices.items()},
            volatility=self.volatility,
            trend=self.trend,
        )

    @property
    def exchanges(self) -> list[str]:
        return list(self.prices)


@dataclass(frozen=True, slots=True)
class Opportunity:
    """One detected cross-exchange spread, immutable once scanned."""

    id: str
    pair: str
    buy_exchange: str
    sell_exchange: str
    buy_price: float
    sell_price: float
    spread: float
    spread_pct: float
    signal_strength: float
    composite_score: float
    risk_score: int
    timestamp: str


@dataclass(frozen=True, slots=True)
class TradeRecord:
    """Settled simulated trade.

    Financial fields never change after creation. ``rationale`` and
    ``analysis_layers`` are attached at most once, by replacing the record
    inside its ledger.
    """

    id: str
    pair: str
    entry_exchange: str
    exit_exchange: str
    entry_price: float
    exit_price: float
    take_profit: float
    stop_loss: float
    amount: float
    allocation: float
    net_profit: float
    status: TradeStatus
    timestamp: str
    is_backtest: bool = False
    rationale: str | None = None
    analysis_layers: dict[str, str] | None = None


@dataclass(frozen=True, slots=True)
class LessonCard:
    """Retention note generated from a notable live trade."""

    id: str
    trade_id: str
    topic: str
    content: str
    reasoning: str
    retention_score: float
    created_at: str
