"""
Portfolio Ledger.

Cash, holdings, trade records and performance metrics for one actor
(the AI engine or the user). Buys and sells clamp to what the actor can
afford or actually holds and return None instead of failing.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


class Side(Enum):
    """Trade direction."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class Holding:
    """Open position in one symbol."""
    symbol: str
    quantity: int
    avg_cost: float

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.avg_cost

    def market_value(self, price: float) -> float:
        return self.quantity * price

    def unrealized_pnl(self, price: float) -> float:
        return (price - self.avg_cost) * self.quantity


@dataclass(frozen=True)
class TradeRecord:
    """Immutable record of an executed trade."""
    id: int
    symbol: str
    side: Side
    quantity: int
    price: float
    notional: float
    day: int
    tick: int
    pnl: Optional[float] = None          # SELL only
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def won(self) -> bool:
        return self.pnl is not None and self.pnl > 0

    def __repr__(self):
        return f"Trade(#{self.id} {self.side.value} {self.quantity} {self.symbol} @ ${self.price:.2f})"


@dataclass(frozen=True)
class PortfolioStats:
    """Read-only performance snapshot."""
    name: str
    cash: float
    total_value: float
    realized_pnl: float
    unrealized_pnl: float
    total_pnl: float
    total_return_pct: float
    win_rate: float
    sharpe: float
    max_drawdown: float
    trade_count: int
    holdings: Dict[str, Holding]


class PortfolioLedger:
    """
    Tracks cash and positions for a single actor.

    Responsibilities:
    - Clamp and execute buys/sells
    - Maintain volume-weighted average cost per holding
    - Record trade history
    - Track peak value, max drawdown and period returns
    """

    def __init__(
        self,
        name: str = "AI",
        starting_cash: float = 10000.0,
        annualization_factor: int = 252,
    ):
        """Initialize ledger with starting cash."""
        self.name = name
        self.starting_cash = starting_cash
        self.annualization_factor = annualization_factor

        self.cash = starting_cash
        self.holdings: Dict[str, Holding] = {}
        self.trades: List[TradeRecord] = []
        self.period_returns: List[float] = []

        self._next_id = 0
        self._peak_value = starting_cash
        self._max_drawdown = 0.0
        self._prev_value = starting_cash

    @property
    def peak_value(self) -> float:
        return self._peak_value

    @property
    def max_drawdown(self) -> float:
        """Largest peak-to-trough decline as a fraction of the peak."""
        return self._max_drawdown

    @property
    def max_drawdown_pct(self) -> float:
        return self._max_drawdown * 100

    def reset(self, cash: Optional[float] = None):
        """Reset ledger to its initial state."""
        if cash is not None:
            self.starting_cash = cash
        self.cash = self.starting_cash
        self.holdings.clear()
        self.trades.clear()
        self.period_returns.clear()
        self._next_id = 0
        self._peak_value = self.cash
        self._max_drawdown = 0.0
        self._prev_value = self.cash

    def holding(self, symbol: str) -> Optional[Holding]:
        """Copy of the holding for `symbol`, or None."""
        h = self.holdings.get(symbol)
        return replace(h) if h is not None else None

    # =========================================================================
    # TRADING
    # =========================================================================

    def buy(
        self,
        symbol: str,
        quantity: int,
        price: float,
        day: int = 0,
        tick: int = 0,
    ) -> Optional[TradeRecord]:
        """
        Buy up to `quantity` shares at `price`.

        Quantity is clamped down to what cash affords.

        Returns:
            BUY TradeRecord, or None if nothing could be bought
        """
        quantity = int(quantity)
        if price <= 0 or quantity <= 0:
            return None

        if quantity * price > self.cash:
            quantity = int(math.floor(self.cash / price))
            # Float division can round up by one share
            if quantity * price > self.cash:
                quantity -= 1
            if quantity <= 0:
                logger.debug(f"{self.name}: insufficient cash for {symbol} @ ${price:.2f}")
                return None

        total_cost = quantity * price
        self.cash -= total_cost

        h = self.holdings.get(symbol)
        if h is None:
            h = Holding(symbol=symbol, quantity=0, avg_cost=0.0)
            self.holdings[symbol] = h

        new_quantity = h.quantity + quantity
        h.avg_cost = (h.avg_cost * h.quantity + total_cost) / new_quantity
        h.quantity = new_quantity

        trade = self._record(Side.BUY, symbol, quantity, price, total_cost, day, tick)
        logger.debug(f"{self.name}: {trade}")
        return trade

    def sell(
        self,
        symbol: str,
        quantity: int,
        price: float,
        day: int = 0,
        tick: int = 0,
    ) -> Optional[TradeRecord]:
        """
        Sell up to `quantity` shares at `price`.

        Quantity is clamped to the held amount; the holding is removed
        once fully liquidated.

        Returns:
            SELL TradeRecord with realized P&L, or None if nothing held
        """
        h = self.holdings.get(symbol)
        if h is None or h.quantity <= 0 or price < 0:
            return None

        quantity = min(int(quantity), h.quantity)
        if quantity <= 0:
            return None

        revenue = quantity * price
        pnl = revenue - quantity * h.avg_cost

        self.cash += revenue
        h.quantity -= quantity
        if h.quantity <= 0:
            del self.holdings[symbol]

        trade = self._record(Side.SELL, symbol, quantity, price, revenue, day, tick, pnl)
        logger.debug(f"{self.name}: {trade} P&L ${pnl:.2f}")
        return trade

    def _record(
        self,
        side: Side,
        symbol: str,
        quantity: int,
        price: float,
        notional: float,
        day: int,
        tick: int,
        pnl: Optional[float] = None,
    ) -> TradeRecord:
        self._next_id += 1
        trade = TradeRecord(
            id=self._next_id,
            symbol=symbol,
            side=side,
            quantity=quantity,
            price=price,
            notional=notional,
            day=day,
            tick=tick,
            pnl=pnl,
        )
        self.trades.append(trade)
        return trade

    # =========================================================================
    # VALUATION
    # =========================================================================

    def total_value(self, prices: Mapping[str, float]) -> float:
        """Cash plus holdings marked at `prices` (missing price counts as 0)."""
        value = self.cash
        for symbol, h in self.holdings.items():
            value += h.market_value(prices.get(symbol, 0.0) or 0.0)
        return value

    def unrealized_pnl(self, prices: Mapping[str, float]) -> float:
        return sum(
            h.unrealized_pnl(prices.get(symbol, 0.0) or 0.0)
            for symbol, h in self.holdings.items()
        )

    def realized_pnl(self) -> float:
        return sum(t.pnl for t in self.trades if t.pnl is not None)

    def total_pnl(self, prices: Mapping[str, float]) -> float:
        return self.total_value(prices) - self.starting_cash

    def total_return_pct(self, prices: Mapping[str, float]) -> float:
        if self.starting_cash <= 0:
            return 0.0
        return self.total_pnl(prices) / self.starting_cash * 100

    def win_rate(self) -> float:
        """Fraction of SELL trades closed at a profit."""
        sells = [t for t in self.trades if t.side == Side.SELL and t.pnl is not None]
        if not sells:
            return 0.0
        return sum(1 for t in sells if t.pnl > 0) / len(sells)

    # =========================================================================
    # METRICS
    # =========================================================================

    def update_metrics(self, prices: Mapping[str, float]):
        """Record one period close: peak, drawdown and period return."""
        value = self.total_value(prices)

        if value > self._peak_value:
            self._peak_value = value

        dd = (self._peak_value - value) / self._peak_value if self._peak_value > 0 else 0.0
        self._max_drawdown = max(self._max_drawdown, dd)

        if self._prev_value > 0:
            self.period_returns.append((value - self._prev_value) / self._prev_value)
        self._prev_value = value

    def sharpe_ratio(self) -> float:
        """Annualized mean/stdev of period returns; 0 when undefined."""
        if len(self.period_returns) < 2:
            return 0.0

        returns = np.asarray(self.period_returns, dtype=float)
        std = returns.std()
        if std == 0 or not np.isfinite(std):
            return 0.0

        return float(returns.mean() / std * np.sqrt(self.annualization_factor))

    def stats(self, prices: Mapping[str, float]) -> PortfolioStats:
        """Read-only snapshot of the ledger."""
        return PortfolioStats(
            name=self.name,
            cash=self.cash,
            total_value=self.total_value(prices),
            realized_pnl=self.realized_pnl(),
            unrealized_pnl=self.unrealized_pnl(prices),
            total_pnl=self.total_pnl(prices),
            total_return_pct=self.total_return_pct(prices),
            win_rate=self.win_rate(),
            sharpe=self.sharpe_ratio(),
            max_drawdown=self._max_drawdown,
            trade_count=len(self.trades),
            holdings={s: replace(h) for s, h in self.holdings.items()},
        )

    def trades_frame(self) -> pd.DataFrame:
        """Get trade history as DataFrame."""
        if not self.trades:
            return pd.DataFrame()

        records = []
        for t in self.trades:
            records.append({
                'Id': t.id,
                'Symbol': t.symbol,
                'Side': t.side.value,
                'Quantity': t.quantity,
                'Price': t.price,
                'Notional': t.notional,
                'PnL': t.pnl,
                'Day': t.day,
                'Tick': t.tick,
                'Timestamp': t.timestamp,
            })

        return pd.DataFrame(records).set_index('Id')
