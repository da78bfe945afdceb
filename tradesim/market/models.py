"""
Market data models.

Bars and quotes are immutable. An Instrument is the simulator's mutable
per-symbol state; consumers only ever see Quote and MarketSnapshot
copies of it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from config.universe import CompanyProfile


@dataclass(frozen=True)
class Bar:
    """One closed OHLCV period."""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    date: Optional[str] = None


@dataclass(frozen=True)
class TickPrint:
    """Raw per-tick price and volume."""
    tick: int
    price: float
    volume: int


@dataclass(frozen=True)
class Quote:
    """Point-in-time view of one instrument."""
    symbol: str
    name: str
    sector: str
    price: float
    open: float
    high: float
    low: float
    close: float
    volume: float
    bid: float
    ask: float
    prev_close: float
    base_price: float
    date: Optional[str] = None

    @property
    def change(self) -> float:
        return self.price - self.open

    @property
    def change_pct(self) -> float:
        return self.change / self.open * 100 if self.open > 0 else 0.0

    @property
    def spread(self) -> float:
        return self.ask - self.bid


@dataclass
class MarketEvent:
    """A news-like shock applied to one instrument."""
    event_type: str
    symbol: str
    text: str
    magnitude: float          # Total price effect (fraction)
    tick: int
    day: int
    duration: int
    remaining: int

    @property
    def active(self) -> bool:
        return self.remaining > 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            'type': self.event_type,
            'symbol': self.symbol,
            'text': self.text,
            'effect': self.magnitude,
            'tick': self.tick,
            'day': self.day,
            'duration': self.duration,
        }


@dataclass
class Instrument:
    """Mutable simulation state for one symbol."""
    profile: CompanyProfile
    price: float = 0.0
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    close: float = 0.0
    volume: int = 0
    prev_close: float = 0.0
    bid: float = 0.0
    ask: float = 0.0
    history: List[Bar] = field(default_factory=list)
    tick_history: List[TickPrint] = field(default_factory=list)
    day_prices: List[float] = field(default_factory=list)

    # Transient event state
    event_effect: float = 0.0       # Per-tick drift fraction
    event_vol: float = 1.0          # Volatility multiplier
    event_ticks: int = 0            # Remaining duration

    @classmethod
    def from_profile(cls, profile: CompanyProfile) -> 'Instrument':
        base = profile.base_price
        return cls(
            profile=profile,
            price=base,
            open=base,
            high=base,
            low=base,
            close=base,
            prev_close=base,
            bid=base - 0.01,
            ask=base + 0.01,
        )

    @property
    def symbol(self) -> str:
        return self.profile.symbol

    @property
    def base_price(self) -> float:
        return self.profile.base_price

    def clear_event(self):
        self.event_effect = 0.0
        self.event_vol = 1.0
        self.event_ticks = 0

    def partial_bar(self, day: int) -> Bar:
        """The still-open bar for the current day."""
        return Bar(
            time=day,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.price,
            volume=self.volume,
        )

    def to_quote(self) -> Quote:
        return Quote(
            symbol=self.symbol,
            name=self.profile.name,
            sector=self.profile.sector,
            price=self.price,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
            bid=self.bid,
            ask=self.ask,
            prev_close=self.prev_close,
            base_price=self.base_price,
        )


@dataclass(frozen=True)
class TickInfo:
    """Payload of the tick signal."""
    tick: int
    day: int
    intra_index: int
    symbol: Optional[str] = None
    bar: Optional[Bar] = None
    progress: Optional[float] = None
    revealed: Optional[int] = None
    total: Optional[int] = None


@dataclass(frozen=True)
class MarketSnapshot:
    """Immutable market view handed to the decision engine."""
    tick: int
    day: int
    quotes: Mapping[str, Quote]
    candles: Mapping[str, Tuple[Bar, ...]]

    @property
    def symbols(self) -> List[str]:
        return list(self.quotes.keys())

    @property
    def prices(self) -> Dict[str, float]:
        return {symbol: q.price for symbol, q in self.quotes.items()}

    def quote(self, symbol: str) -> Optional[Quote]:
        return self.quotes.get(symbol)

    def closes(self, symbol: str) -> List[float]:
        return [bar.close for bar in self.candles.get(symbol, ())]
