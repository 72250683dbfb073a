"""Simulated arbitrage execution against an in-memory equity ledger."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from arb_sim.config import Settings
from arb_sim.risk.rules import MAX_TAKE_PROFIT_SLIPPAGE, RiskEngine
from arb_sim.types import ExecutionMode, Opportunity, RandomSource, TradeRecord
from arb_sim.utils.ids import draw_id
from arb_sim.utils.logging import get_logger, log_trade_execution

# Realized-price noise per unit of volatility percentage.
_MARKET_NOISE_FACTOR = 0.03

SettlementHook = Callable[[TradeRecord], None]


class EquityLedger:
    """Equity balance plus the append-only history of settled trades."""

    def __init__(self, initial_equity: float) -> None:
        if initial_equity < 0:
            raise ValueError("initial_equity_must_be_non_negative")
        self._initial_equity = float(initial_equity)
        self._equity = float(initial_equity)
        self._trades: list[TradeRecord] = []

    @property
    def equity(self) -> float:
        return self._equity

    @property
    def initial_equity(self) -> float:
        return self._initial_equity

    @property
    def trades(self) -> tuple[TradeRecord, ...]:
        return tuple(self._trades)

    def apply(self, record: TradeRecord) -> None:
        """Book one settled trade."""
        self._equity += record.net_profit
        self._trades.append(record)

    def find(self, trade_id: str) -> TradeRecord | None:
        for record in self._trades:
            if record.id == trade_id:
                return record
        return None

    def attach_analysis(
        self,
        trade_id: str,
        rationale: str,
        layers: dict[str, str] | None = None,
    ) -> bool:
        """Attach a rationale once. Unknown ids and repeats are no-ops."""
        for idx, record in enumerate(self._trades):
            if record.id != trade_id:
                continue
            if record.rationale is not None:
                return False
            self._trades[idx] = replace(
                record,
                rationale=rationale,
                analysis_layers=dict(layers) if layers else None,
            )
            return True
        return False

    def reset(self, initial_equity: float | None = None) -> None:
        if initial_equity is not None:
            self._initial_equity = float(initial_equity)
        self._equity = self._initial_equity
        self._trades.clear()


class PaperExecutor:
    """Computes simulated fills and settles them into a ledger.

    ``mode="notify"`` hands every settled live trade to ``on_settled``;
    ``mode="silent"`` and backtest fills never do.
    """

    def __init__(
        self,
        settings: Settings,
        rng: RandomSource,
        *,
        on_settled: SettlementHook | None = None,
    ) -> None:
        self._settings = settings
        self._rng = rng
        self._risk = RiskEngine(settings)
        self._on_settled = on_settled
        self._logger = get_logger("arb_sim.exec.paper")

    def fill(
        self,
        opportunity: Opportunity,
        equity: float,
        volatility: float,
        *,
        is_backtest: bool = False,
    ) -> tuple[float, TradeRecord | None]:
        """Price one fill without touching any ledger.

        Returns ``(0.0, None)`` when ``equity`` is not positive.
        """
        if equity <= 0:
            self._logger.debug("execution_skipped_no_equity", equity=equity)
            return 0.0, None

        allocation = self._risk.compute_allocation(equity)
        take_profit = self._risk.build_take_profit(
            opportunity.sell_price,
            float(self._rng.uniform(0.0, MAX_TAKE_PROFIT_SLIPPAGE)),
        )
        stop_loss = self._risk.build_stop_loss(opportunity.buy_price, volatility)
        noise = float(self._rng.uniform(-0.5, 0.5)) * volatility * _MARKET_NOISE_FACTOR
        status, realized_price = self._risk.resolve_exit(
            take_profit * (1.0 + noise),
            take_profit,
            stop_loss,
        )

        tokens = allocation / opportunity.buy_price
        gross_return = tokens * realized_price
        fees = (allocation + gross_return) * self._settings.fee_rate
        net_profit = (gross_return - allocation) - fees

        record = TradeRecord(
            id=draw_id(self._rng),
            pair=opportunity.pair,
            entry_exchange=opportunity.buy_exchange,
            exit_exchange=opportunity.sell_exchange,
            entry_price=opportunity.buy_price,
            exit_price=realized_price,
            take_profit=take_profit,
            stop_loss=stop_loss,
            amount=tokens,
            allocation=allocation,
            net_profit=net_profit,
            status=status,
            timestamp=datetime.now(timezone.utc).isoformat(),
            is_backtest=is_backtest,
        )
        return net_profit, record

    def execute(
        self,
        opportunity: Opportunity,
        ledger: EquityLedger,
        volatility: float,
        *,
        mode: ExecutionMode = "notify",
        is_backtest: bool = False,
    ) -> tuple[float, TradeRecord | None]:
        """Fill against the ledger's current equity and book the result."""
        net_profit, record = self.fill(
            opportunity,
            ledger.equity,
            volatility,
            is_backtest=is_backtest,
        )
        if record is None:
            return 0.0, None

        ledger.apply(record)
        log_trade_execution(
            self._logger,
            trade_id=record.id,
            pair=record.pair,
            status=record.status,
            net_profit=net_profit,
            is_backtest=is_backtest,
            equity=round(ledger.equity, 4),
        )
        if mode == "notify" and not is_backtest and self._on_settled is not None:
            self._on_settled(record)
        return net_profit, record
