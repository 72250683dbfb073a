"""arb-sim: simulated multi-exchange arbitrage tick engine."""

__version__ = "0.1.0"
