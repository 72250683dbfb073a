"""Identifiers drawn from the injected random source."""

from __future__ import annotations

from arb_sim.types import RandomSource

_ID_SPACE = 16**12


def draw_id(rng: RandomSource) -> str:
    """Twelve hex characters; reproducible under a seeded source."""
    return f"{int(rng.integers(0, _ID_SPACE)):012x}"
