"""Position sizing and exit rules for simulated arbitrage fills."""

from __future__ import annotations

from arb_sim.config import Settings
from arb_sim.types import TradeStatus

# Maximum fraction the take-profit target sits below the observed sell price.
MAX_TAKE_PROFIT_SLIPPAGE = 0.00005
# Stop distance per unit of volatility percentage.
STOP_LOSS_VOLATILITY_FACTOR = 0.003


class RiskEngine:
    """Rule-based sizing and take-profit / stop-loss resolution."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def compute_allocation(self, equity: float) -> float:
        """Quote-currency allocation: a fraction of equity, capped."""
        if equity <= 0:
            return 0.0
        return min(equity * self._settings.allocation_fraction, self._settings.max_allocation)

    def build_take_profit(self, sell_price: float, slippage_fraction: float) -> float:
        """Target fractionally below the observed sell price."""
        if not 0.0 <= slippage_fraction <= MAX_TAKE_PROFIT_SLIPPAGE:
            raise ValueError("slippage_fraction_out_of_range")
        return sell_price * (1.0 - slippage_fraction)

    def build_stop_loss(self, buy_price: float, volatility: float) -> float:
        """Stop below the entry; the band tightens as volatility rises."""
        return buy_price * (1.0 - volatility * STOP_LOSS_VOLATILITY_FACTOR)

    def resolve_exit(
        self,
        candidate_price: float,
        take_profit: float,
        stop_loss: float,
    ) -> tuple[TradeStatus, float]:
        """Pick the exit status and realized price.

        Take-profit is checked first: a candidate at or above the target
        resolves as take-profit even when it is also at or below the stop.
        """
        if candidate_price >= take_profit:
            return "TAKE_PROFIT", take_profit
        if candidate_price <= stop_loss:
            return "STOP_LOSS", stop_loss
        return "COMPLETED", candidate_price
