"""
Buy-and-hold benchmark for historical replay.
"""

import math
from dataclasses import dataclass


@dataclass
class BuyAndHoldBenchmark:
    """
    Puts all starting cash into the first revealed bar and holds.

    Tracks value, peak and max drawdown (percent) bar by bar.
    """
    starting_cash: float = 10000.0
    shares: int = 0
    start_price: float = 0.0
    last_price: float = 0.0
    peak_value: float = 0.0
    max_drawdown_pct: float = 0.0

    def __post_init__(self):
        self.peak_value = self.starting_cash

    @property
    def invested(self) -> bool:
        return self.shares > 0

    @property
    def leftover_cash(self) -> float:
        return self.starting_cash - self.shares * self.start_price

    @property
    def value(self) -> float:
        if not self.invested:
            return self.starting_cash
        return self.shares * self.last_price + self.leftover_cash

    @property
    def return_pct(self) -> float:
        return (self.value - self.starting_cash) / self.starting_cash * 100

    def update(self, close: float):
        """Mark the benchmark at the latest close, entering on the first bar."""
        if not self.invested and self.start_price == 0.0 and close > 0:
            self.start_price = close
            self.shares = int(math.floor(self.starting_cash / close))

        self.last_price = close
        if not self.invested:
            return

        value = self.value
        if value > self.peak_value:
            self.peak_value = value
        dd = (self.peak_value - value) / self.peak_value * 100 if self.peak_value > 0 else 0.0
        self.max_drawdown_pct = max(self.max_drawdown_pct, dd)

    def reset(self):
        self.shares = 0
        self.start_price = 0.0
        self.last_price = 0.0
        self.peak_value = self.starting_cash
        self.max_drawdown_pct = 0.0
