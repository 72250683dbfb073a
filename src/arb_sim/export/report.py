"""Trade history CSV export."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd  # type: ignore[import-untyped]

from arb_sim.types import TradeRecord

TRADE_HISTORY_COLUMNS = [
    "ID",
    "Scope",
    "Timestamp",
    "Pair",
    "Status",
    "Profit (USDT)",
    "Entry Exchange",
    "Exit Exchange",
    "Entry Price",
    "Exit Price",
    "Analysis Summary",
]

PENDING_ANALYSIS = "Awaiting analysis"


def trade_records_as_rows(records: Iterable[TradeRecord]) -> list[dict[str, Any]]:
    """Flatten records into export rows, numbers rounded to 4 decimals."""
    rows: list[dict[str, Any]] = []
    for record in records:
        rows.append(
            {
                "ID": record.id,
                "Scope": "SIM" if record.is_backtest else "LIVE",
                "Timestamp": record.timestamp,
                "Pair": record.pair,
                "Status": record.status,
                "Profit (USDT)": round(record.net_profit, 4),
                "Entry Exchange": record.entry_exchange,
                "Exit Exchange": record.exit_exchange,
                "Entry Price": round(record.entry_price, 4),
                "Exit Price": round(record.exit_price, 4),
                "Analysis Summary": record.rationale or PENDING_ANALYSIS,
            }
        )
    return rows


def render_trade_history(records: Iterable[TradeRecord]) -> str:
    """CSV text with a header row, even when there are no records."""
    frame = pd.DataFrame(trade_records_as_rows(records), columns=TRADE_HISTORY_COLUMNS)
    return frame.to_csv(index=False, float_format="%.4f")


def write_trade_history(path: Path, records: Iterable[TradeRecord]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_trade_history(records), encoding="utf-8")
    return path
