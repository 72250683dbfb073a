"""Cross-exchange spread detection and ranking."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from arb_sim.config import Settings
from arb_sim.types import Opportunity, RandomSource
from arb_sim.utils.ids import draw_id

_SPREAD_WEIGHT = 40.0
_SIGNAL_WEIGHT = 60.0
_RISK_SCORE_RANGE = (1, 9)


@dataclass(frozen=True, slots=True)
class PairSpread:
    """Deterministic part of one pair's evaluation."""

    pair: str
    buy_exchange: str
    sell_exchange: str
    buy_price: float
    sell_price: float
    median_price: float
    spread: float
    spread_pct: float
    signal_strength: float
    composite_score: float


def upper_median(values: Sequence[float]) -> float:
    """Element at ``len // 2`` of the ascending sort.

    For an even count this is the upper of the two middle values, not their
    mean.
    """
    if not values:
        raise ValueError("median_of_empty_sequence")
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def evaluate_pair(prices: Mapping[str, Mapping[str, float]], pair: str) -> PairSpread:
    """Compute spread, divergence signal and composite score for one pair.

    Ties on the lowest or highest price resolve to the exchange visited last.
    """
    if not prices:
        raise ValueError("empty_price_matrix")

    quotes = [(exchange, float(row[pair])) for exchange, row in prices.items()]
    median_price = upper_median([price for _, price in quotes])

    buy_exchange, buy_price = quotes[0]
    sell_exchange, sell_price = quotes[0]
    for exchange, price in quotes:
        if price <= buy_price:
            buy_exchange, buy_price = exchange, price
        if price >= sell_price:
            sell_exchange, sell_price = exchange, price

    spread = sell_price - buy_price
    spread_pct = spread / buy_price * 100.0
    buy_divergence = abs(buy_price - median_price) / median_price
    sell_divergence = abs(sell_price - median_price) / median_price
    signal_strength = min(1.0, (buy_divergence + sell_divergence) * 100.0)
    composite_score = spread_pct * _SPREAD_WEIGHT + signal_strength * _SIGNAL_WEIGHT

    return PairSpread(
        pair=pair,
        buy_exchange=buy_exchange,
        sell_exchange=sell_exchange,
        buy_price=buy_price,
        sell_price=sell_price,
        median_price=median_price,
        spread=spread,
        spread_pct=spread_pct,
        signal_strength=signal_strength,
        composite_score=composite_score,
    )


class OpportunityScanner:
    """Scans a price snapshot and returns opportunities best-first."""

    def __init__(
        self,
        pairs: Sequence[str],
        rng: RandomSource,
        *,
        min_spread_pct: float = 0.04,
    ) -> None:
        self._pairs = list(pairs)
        self._rng = rng
        self._min_spread_pct = min_spread_pct

    @classmethod
    def from_settings(cls, settings: Settings, rng: RandomSource) -> OpportunityScanner:
        return cls(settings.pairs, rng, min_spread_pct=settings.min_spread_pct)

    def scan(self, prices: Mapping[str, Mapping[str, float]]) -> list[Opportunity]:
        """Evaluate every configured pair and rank by composite score.

        Only ``id`` and ``risk_score`` are random; scores, prices and ordering
        are a pure function of ``prices``.
        """
        now = datetime.now(timezone.utc).isoformat()
        opportunities: list[Opportunity] = []
        for pair in self._pairs:
            evaluated = evaluate_pair(prices, pair)
            if evaluated.spread_pct <= self._min_spread_pct:
                continue
            risk_score = int(self._rng.integers(*_RISK_SCORE_RANGE))
            opportunities.append(
                Opportunity(
                    id=draw_id(self._rng),
                    pair=pair,
                    buy_exchange=evaluated.buy_exchange,
                    sell_exchange=evaluated.sell_exchange,
                    buy_price=evaluated.buy_price,
                    sell_price=evaluated.sell_price,
                    spread=evaluated.spread,
                    spread_pct=evaluated.spread_pct,
                    signal_strength=evaluated.signal_strength,
                    composite_score=evaluated.composite_score,
                    risk_score=risk_score,
                    timestamp=now,
                )
            )
        # sorted() is stable, so equal scores keep pair order.
        return sorted(opportunities, key=lambda opp: opp.composite_score, reverse=True)
