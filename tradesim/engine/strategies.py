"""
Strategy evaluators.

Five rule-based strategies, each a pure function of price history,
indicators, current holding and cash that proposes at most one BUY and
one SELL per instrument. Edges are normalized signal strengths.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from tradesim.engine.moves import Action, CandidateMove
from tradesim.indicators.technical import (
    calculate_bollinger_bands,
    calculate_rsi,
    calculate_sma,
    is_missing,
    last_value,
)
from tradesim.portfolio.ledger import Holding


# Signal thresholds
MOMENTUM_MIN_CHANGE = 0.01
MOMENTUM_RSI_CEILING = 75
MOMENTUM_RSI_FLOOR = 25
RSI_OVERSOLD = 30
RSI_OVERBOUGHT = 70
BOLLINGER_EDGE = 0.5
BREAKOUT_MIN_BARS = 10
BREAKOUT_MARGIN = 0.01
VALUE_DISCOUNT = 0.95
VALUE_PREMIUM = 1.08
SCALP_EDGE = 0.3
RECENT_WINDOW = 10


class StrategyKind(Enum):
    """Closed set of strategies; AUTO mode runs all of them in this order."""
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean_reversion"
    BREAKOUT = "breakout"
    VALUE = "value"
    SCALPING = "scalping"


@dataclass(frozen=True)
class PriceHistory:
    """Recent closes for one instrument; the last close is the live price."""
    symbol: str
    price: float
    closes: Tuple[float, ...]

    @property
    def recent(self) -> Tuple[float, ...]:
        return self.closes[-RECENT_WINDOW:]

    @property
    def price_change(self) -> float:
        """Fractional change across the recent window."""
        recent = self.recent
        if len(recent) < 2 or recent[0] == 0:
            return 0.0
        return (recent[-1] - recent[0]) / recent[0]


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Latest indicator values; NaN where not yet defined."""
    rsi: float
    sma20: float
    sma50: float
    bb_upper: float
    bb_lower: float


def compute_indicators(closes: Sequence[float]) -> IndicatorSnapshot:
    """Latest RSI, SMA20/50 and Bollinger values, shortening periods to fit."""
    n = len(closes)
    if n == 0:
        nan = float('nan')
        return IndicatorSnapshot(nan, nan, nan, nan, nan)

    bands = calculate_bollinger_bands(closes, min(20, n))
    return IndicatorSnapshot(
        rsi=last_value(calculate_rsi(closes, min(14, n - 1))),
        sma20=last_value(calculate_sma(closes, min(20, n))),
        sma50=last_value(calculate_sma(closes, min(50, n))),
        bb_upper=last_value(bands.upper),
        bb_lower=last_value(bands.lower),
    )


def max_affordable_shares(cash: float, price: float, risk_fraction: float) -> int:
    """Shares purchasable with at most `risk_fraction` of cash."""
    if price <= 0 or cash <= 0:
        return 0
    return int(math.floor(cash * risk_fraction / price))


def _size(total: int, fraction: float) -> int:
    return min(total, int(math.ceil(total * fraction)))


def _held(holding: Optional[Holding]) -> int:
    return holding.quantity if holding is not None and holding.quantity > 0 else 0


def _move(action: Action, history: PriceHistory, quantity: int, kind: StrategyKind,
          reason: str, edge: float) -> CandidateMove:
    return CandidateMove(
        action=action,
        symbol=history.symbol,
        quantity=quantity,
        price=history.price,
        strategy=kind.value,
        reason=reason,
        edge=edge or 0.0,
    )


# =============================================================================
# STRATEGIES
# =============================================================================

def momentum(history: PriceHistory, ind: IndicatorSnapshot, holding: Optional[Holding],
             cash: float, risk_fraction: float = 0.25) -> List[CandidateMove]:
    """Trend continuation, gated by RSI not being stretched."""
    moves = []
    change = history.price_change
    max_shares = max_affordable_shares(cash, history.price, risk_fraction)
    held = _held(holding)
    rsi = ind.rsi

    if is_missing(rsi):
        return moves

    if change > MOMENTUM_MIN_CHANGE and rsi < MOMENTUM_RSI_CEILING and max_shares > 0:
        moves.append(_move(
            Action.BUY, history, _size(max_shares, 0.5), StrategyKind.MOMENTUM,
            f"Uptrend detected (+{change * 100:.1f}%), RSI {rsi:.0f} not overbought",
            change,
        ))
    if change < -MOMENTUM_MIN_CHANGE and held > 0 and rsi > MOMENTUM_RSI_FLOOR:
        moves.append(_move(
            Action.SELL, history, _size(held, 0.5), StrategyKind.MOMENTUM,
            f"Downtrend detected ({change * 100:.1f}%), cutting losses",
            abs(change),
        ))
    return moves


def mean_reversion(history: PriceHistory, ind: IndicatorSnapshot, holding: Optional[Holding],
                   cash: float, risk_fraction: float = 0.25) -> List[CandidateMove]:
    """RSI extremes and lower Bollinger Band breaches."""
    moves = []
    max_shares = max_affordable_shares(cash, history.price, risk_fraction)
    held = _held(holding)
    rsi = ind.rsi

    if not is_missing(rsi):
        if rsi < RSI_OVERSOLD and max_shares > 0:
            moves.append(_move(
                Action.BUY, history, _size(max_shares, 0.6), StrategyKind.MEAN_REVERSION,
                f"RSI oversold ({rsi:.0f}), expecting bounce",
                (RSI_OVERSOLD - rsi) / 30,
            ))
        if rsi > RSI_OVERBOUGHT and held > 0:
            moves.append(_move(
                Action.SELL, history, _size(held, 0.6), StrategyKind.MEAN_REVERSION,
                f"RSI overbought ({rsi:.0f}), expecting pullback",
                (rsi - RSI_OVERBOUGHT) / 30,
            ))

    if not is_missing(ind.bb_lower) and history.price < ind.bb_lower and max_shares > 0:
        moves.append(_move(
            Action.BUY, history, _size(max_shares, 0.4), StrategyKind.MEAN_REVERSION,
            f"Price below lower Bollinger Band (${ind.bb_lower:.2f}), oversold",
            BOLLINGER_EDGE,
        ))
    return moves


def breakout(history: PriceHistory, ind: IndicatorSnapshot, holding: Optional[Holding],
             cash: float, risk_fraction: float = 0.25) -> List[CandidateMove]:
    """Price clearing the high or low of the preceding bars."""
    moves = []
    if len(history.closes) < BREAKOUT_MIN_BARS:
        return moves

    window = history.recent[:-1]
    if not window:
        return moves

    max_shares = max_affordable_shares(cash, history.price, risk_fraction)
    held = _held(holding)
    price = history.price
    range_high = max(window)
    range_low = min(window)

    if price > range_high * (1 + BREAKOUT_MARGIN) and max_shares > 0:
        moves.append(_move(
            Action.BUY, history, _size(max_shares, 0.5), StrategyKind.BREAKOUT,
            f"Price broke above range high ${range_high:.2f}",
            (price - range_high) / range_high,
        ))
    if price < range_low * (1 - BREAKOUT_MARGIN) and held > 0:
        moves.append(_move(
            Action.SELL, history, held, StrategyKind.BREAKOUT,
            f"Price broke below range low ${range_low:.2f}",
            (range_low - price) / range_low,
        ))
    return moves


def value(history: PriceHistory, ind: IndicatorSnapshot, holding: Optional[Holding],
          cash: float, risk_fraction: float = 0.25) -> List[CandidateMove]:
    """Deviation from the slow moving average."""
    moves = []
    sma = ind.sma50
    if is_missing(sma) or sma <= 0:
        return moves

    max_shares = max_affordable_shares(cash, history.price, risk_fraction)
    held = _held(holding)
    price = history.price

    if price < sma * VALUE_DISCOUNT and max_shares > 0:
        moves.append(_move(
            Action.BUY, history, _size(max_shares, 0.5), StrategyKind.VALUE,
            f"Trading 5%+ below SMA50 (${sma:.2f}), undervalued",
            (sma - price) / sma,
        ))
    if price > sma * VALUE_PREMIUM and held > 0:
        moves.append(_move(
            Action.SELL, history, _size(held, 0.5), StrategyKind.VALUE,
            f"Trading 8%+ above SMA50 (${sma:.2f}), overvalued",
            (price - sma) / sma,
        ))
    return moves


def scalping(history: PriceHistory, ind: IndicatorSnapshot, holding: Optional[Holding],
             cash: float, risk_fraction: float = 0.25) -> List[CandidateMove]:
    """Three-bar micro-trend: buy the dip, sell the pop."""
    moves = []
    if len(history.closes) < 3:
        return moves

    a, b, c = history.closes[-3:]
    max_shares = max_affordable_shares(cash, history.price, risk_fraction)
    held = _held(holding)

    if c < b < a and max_shares > 0:
        moves.append(_move(
            Action.BUY, history, _size(max_shares, 0.3), StrategyKind.SCALPING,
            "3-bar dip, quick scalp entry",
            SCALP_EDGE,
        ))
    if c > b > a and held > 0:
        moves.append(_move(
            Action.SELL, history, _size(held, 0.3), StrategyKind.SCALPING,
            "3-bar pop, taking quick profit",
            SCALP_EDGE,
        ))
    return moves


StrategyFn = Callable[..., List[CandidateMove]]

STRATEGIES: Dict[StrategyKind, StrategyFn] = {
    StrategyKind.MOMENTUM: momentum,
    StrategyKind.MEAN_REVERSION: mean_reversion,
    StrategyKind.BREAKOUT: breakout,
    StrategyKind.VALUE: value,
    StrategyKind.SCALPING: scalping,
}


def resolve_strategies(mode: str) -> List[StrategyKind]:
    """Strategies for a mode name; 'auto' expands to all five."""
    if mode == "auto":
        return list(StrategyKind)
    return [StrategyKind(mode)]
