from __future__ import annotations

from collections.abc import Iterable

import pytest

from arb_sim.config import Settings


class FixedRandom:
    """Replays queued draws, then falls back to the interval midpoint and a counter."""

    def __init__(self, uniforms: Iterable[float] = (), integers: Iterable[int] = ()) -> None:
        self._uniforms = list(uniforms)
        self._integers = list(integers)
        self.uniform_calls: list[tuple[float, float]] = []
        self._counter = 0

    def uniform(self, low: float, high: float) -> float:
        self.uniform_calls.append((low, high))
        if self._uniforms:
            return self._uniforms.pop(0)
        return (low + high) / 2.0

    def integers(self, low: int, high: int) -> int:
        if self._integers:
            return self._integers.pop(0)
        self._counter += 1
        return low + self._counter % (high - low)


@pytest.fixture
def fixed_random() -> type[FixedRandom]:
    return FixedRandom


@pytest.fixture
def settings() -> Settings:
    return Settings(
        random_seed=7,
        openrouter_api_key="",
        backtest_ticks=20,
        backtest_pacing_ms=0,
    )
