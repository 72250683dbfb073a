"""Synthetic multi-exchange price feed."""

from __future__ import annotations

import numpy as np

from arb_sim.config import Settings
from arb_sim.types import MarketState, RandomSource

# Seed prices per exchange, offset slightly so spreads exist from tick zero.
_REFERENCE_PRICES: dict[str, dict[str, float]] = {
    "Binance": {"BTC/USDT": 65_000.0, "ETH/USDT": 3_500.0, "SOL/USDT": 145.0, "LINK/USDT": 18.0},
    "Kraken": {"BTC/USDT": 65_050.0, "ETH/USDT": 3_490.0, "SOL/USDT": 146.0, "LINK/USDT": 17.5},
    "Coinbase": {"BTC/USDT": 64_980.0, "ETH/USDT": 3_510.0, "SOL/USDT": 144.0, "LINK/USDT": 18.2},
    "Bybit": {"BTC/USDT": 65_120.0, "ETH/USDT": 3_520.0, "SOL/USDT": 147.0, "LINK/USDT": 17.8},
}
_NEUTRAL_START_PRICE = 100.0

# Width of the uniform shock relative to the per-tick volatility fraction.
_SHOCK_WIDTH = 1.25


def build_initial_market_state(settings: Settings) -> MarketState:
    """Build the opening price matrix for the configured exchanges and pairs."""
    prices: dict[str, dict[str, float]] = {}
    for exchange in settings.exchanges:
        reference = _REFERENCE_PRICES.get(exchange, {})
        prices[exchange] = {
            pair: float(reference.get(pair, _NEUTRAL_START_PRICE)) for pair in settings.pairs
        }
    return MarketState(prices=prices, volatility=settings.volatility_pct, trend="NEUTRAL")


def build_random_source(seed: int | None = None) -> np.random.Generator:
    """Default random source; pass a seed for reproducible runs."""
    return np.random.default_rng(seed)


class PriceFeed:
    """Advances a market state by one stochastic tick.

    Every price is multiplied by ``1 + U(-1.25v, 1.25v) + drift`` where ``v``
    is the volatility percentage divided by 100. Prices are not clamped: at the
    configured volatilities a tick moves a price by well under one percent, so
    a price reaching zero is accepted as out of reach rather than guarded.
    """

    def __init__(self, rng: RandomSource) -> None:
        self._rng = rng

    def advance(
        self,
        state: MarketState,
        drift_bias: float = 0.0,
        volatility_override: float | None = None,
    ) -> MarketState:
        """Return the next state; ``state`` itself is left untouched."""
        volatility_pct = state.volatility if volatility_override is None else volatility_override
        if volatility_pct < 0:
            raise ValueError("volatility_must_be_non_negative")
        band = volatility_pct / 100.0 * _SHOCK_WIDTH

        next_prices: dict[str, dict[str, float]] = {}
        for exchange, row in state.prices.items():
            next_prices[exchange] = {
                pair: price * (1.0 + float(self._rng.uniform(-band, band)) + drift_bias)
                for pair, price in row.items()
            }
        return MarketState(prices=next_prices, volatility=state.volatility, trend=state.trend)
