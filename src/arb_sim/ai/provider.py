"""Enrichment providers that annotate settled live trades."""

from __future__ import annotations

from typing import Protocol

from arb_sim.ai.openrouter_client import OpenRouterClient
from arb_sim.ai.schemas import AnalysisLayers, Lesson, TradeAnalysis
from arb_sim.config import Settings
from arb_sim.types import TradeRecord

_STATUS_TEXT = {
    "TAKE_PROFIT": "take-profit hit",
    "STOP_LOSS": "stop-loss hit",
    "COMPLETED": "closed at market",
}


class EnrichmentProvider(Protocol):
    """Provider interface for trade rationale and lessons."""

    async def analyze_trade(self, record: TradeRecord) -> TradeAnalysis | None:
        """Return an analysis for one settled trade, or ``None``."""

    async def generate_lesson(self, record: TradeRecord) -> Lesson | None:
        """Return a lesson for one notable trade, or ``None``."""


class OpenRouterEnrichmentProvider:
    """Production provider backed by OpenRouter."""

    def __init__(self, settings: Settings) -> None:
        self._client = OpenRouterClient(settings)

    async def analyze_trade(self, record: TradeRecord) -> TradeAnalysis | None:
        return await self._client.analyze_trade(record)

    async def generate_lesson(self, record: TradeRecord) -> Lesson | None:
        return await self._client.generate_lesson(record)


class HeuristicEnrichmentProvider:
    """Deterministic offline provider built from the trade's own numbers."""

    async def analyze_trade(self, record: TradeRecord) -> TradeAnalysis | None:
        captured_pct = _pct(record.take_profit - record.entry_price, record.entry_price)
        stop_pct = _pct(record.entry_price - record.stop_loss, record.entry_price)
        outcome = _STATUS_TEXT[record.status]
        summary = (
            f"{record.pair} {record.entry_exchange} -> {record.exit_exchange}: {outcome}, "
            f"net {record.net_profit:+.2f} USDT."
        )
        return TradeAnalysis(
            summary=summary,
            layers=AnalysisLayers(
                l1=(
                    f"Entry {record.entry_price:.4f} on {record.entry_exchange}, "
                    f"target {record.take_profit:.4f} on {record.exit_exchange}."
                ),
                l2=f"Cross-exchange spread of {captured_pct:.3f}% to the take-profit target.",
                l3=(
                    f"Stop {stop_pct:.3f}% below entry; allocation "
                    f"{record.allocation:.2f} USDT for {record.amount:.6f} units."
                ),
                l4=f"Exit at {record.exit_price:.4f} ({outcome}).",
                l5=(
                    "Spread captured after fees."
                    if record.net_profit > 0
                    else "Fees and slippage outweighed the spread."
                ),
            ),
        )

    async def generate_lesson(self, record: TradeRecord) -> Lesson | None:
        if record.status == "TAKE_PROFIT":
            topic = "Take-profit capture"
            content = "Targets set just inside the observed sell quote fill reliably."
        elif record.status == "STOP_LOSS":
            topic = "Stop-loss discipline"
            content = "A volatility-scaled stop caps the loss when the spread collapses."
        else:
            topic = "Market exit drift"
            content = "Exits between stop and target realize whatever the market offers."
        return Lesson(
            topic=topic,
            content=content,
            reasoning=(
                f"Execution {record.id} on {record.pair} returned "
                f"{record.net_profit:+.2f} USDT with status {record.status}."
            ),
            retention_score=min(100.0, 50.0 + abs(record.net_profit)),
        )


def build_enrichment_provider(settings: Settings) -> EnrichmentProvider:
    """OpenRouter when a key is configured, otherwise the offline heuristic."""
    if settings.has_openrouter:
        return OpenRouterEnrichmentProvider(settings)
    return HeuristicEnrichmentProvider()


def _pct(value: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return value / denominator * 100.0
