from __future__ import annotations

import pytest
from pydantic import ValidationError

from arb_sim.config import LogFormat, Settings, get_settings, reload_settings


def test_defaults_match_reference_values() -> None:
    settings = Settings(openrouter_api_key="")
    assert settings.exchanges == ["Binance", "Kraken", "Coinbase", "Bybit"]
    assert settings.initial_capital == 10_000.0
    assert settings.score_threshold == 20.0
    assert (settings.passive_interval_ms, settings.autonomous_interval_ms) == (400, 250)
    assert settings.log_format is LogFormat.CONSOLE
    assert not settings.has_openrouter


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAIRS", '["BTC/USDT", "ETH/USDT"]')
    monkeypatch.setenv("FEE_RATE", "0.001")
    settings = reload_settings()
    assert settings.pairs == ["BTC/USDT", "ETH/USDT"]
    assert settings.fee_rate == 0.001
    assert get_settings() is settings
    monkeypatch.delenv("PAIRS")
    monkeypatch.delenv("FEE_RATE")
    reload_settings()


def test_invalid_lists_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(exchanges=[])
    with pytest.raises(ValidationError):
        Settings(pairs=["BTC/USDT", "BTC/USDT"])
    with pytest.raises(ValidationError):
        Settings(volatility_pct=-1)
