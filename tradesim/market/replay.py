"""
Replay Driver.

Reveals a pre-fetched OHLCV series one bar per tick with the same
play/pause/reset/tick/dayClose contract as the synthetic simulator.
Loading is asynchronous; a failed load moves to ERROR without touching
the bars already loaded, and play() or reset() resumes that series.
"""

import logging
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Optional

from config.settings import ReplaySettings
from tradesim.data.history_source import (
    DataSourceError,
    HistoricalDataSource,
    HistoryResult,
    SymbolInfo,
    YahooHistorySource,
    normalize_symbol,
)
from tradesim.market.models import Bar, MarketSnapshot, Quote, TickInfo
from tradesim.market.scheduler import SchedulerError, TickScheduler
from tradesim.market.signals import MarketSignal, SignalBus


logger = logging.getLogger(__name__)


class ReplayState(Enum):
    """Replay lifecycle."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    COMPLETE = "complete"
    ERROR = "error"


class ReplayDriver:
    """
    Historical bar replay for a single symbol.

    Signals: loading, loaded, error, play, pause, reset, tick, dayClose,
    complete.
    """

    ticks_per_day = 1

    def __init__(
        self,
        source: Optional[HistoricalDataSource] = None,
        settings: Optional[ReplaySettings] = None,
        scheduler: Optional[TickScheduler] = None,
    ):
        self.settings = settings or ReplaySettings()
        self.source = source or YahooHistorySource()
        self.signals = SignalBus()
        self.scheduler = scheduler or TickScheduler()

        self.state = ReplayState.IDLE
        self.symbol = self.settings.default_symbol
        self.range = self.settings.default_range
        self.symbol_info: Optional[SymbolInfo] = None
        self.error: Optional[str] = None

        self.bars: List[Bar] = []
        self.revealed: List[Bar] = []
        self.replay_index = 0
        self.tick = 0
        self.day = 0
        self.speed = 1.0

    # =========================================================================
    # LOADING
    # =========================================================================

    def on(self, signal: MarketSignal, listener):
        return self.signals.on(signal, listener)

    async def load(
        self,
        symbol: str,
        range_: Optional[str] = None,
    ) -> Optional[HistoryResult]:
        """
        Fetch history for `symbol` and reveal the first bar.

        Returns:
            The HistoryResult, or None if the fetch failed (state ERROR)
        """
        self.pause()
        symbol = normalize_symbol(symbol)
        range_ = range_ or self.settings.default_range

        self.state = ReplayState.LOADING
        self.error = None
        self.signals.emit(MarketSignal.LOADING, {'symbol': symbol})

        try:
            result = await self.source.fetch_history(symbol, range_, self.settings.interval)
            if not result.bars:
                raise DataSourceError("No historical data available")
        except DataSourceError as e:
            self._fail(str(e))
            return None
        except Exception as e:
            logger.exception(f"Unexpected failure loading {symbol}")
            self._fail(f"{type(e).__name__}: {e}")
            return None

        self.symbol = symbol
        self.range = result.range
        self.symbol_info = result.info
        self.bars = list(result.bars)
        self.revealed = []
        self.replay_index = 0
        self.tick = 0
        self.day = 0
        self.state = ReplayState.READY

        logger.info(f"Replay loaded: {symbol} {len(self.bars)} bars")
        self.signals.emit(MarketSignal.LOADED, {
            'symbol': symbol,
            'info': self.symbol_info,
            'total': len(self.bars),
        })

        self.advance()
        return result

    def _fail(self, message: str):
        self.state = ReplayState.ERROR
        self.error = message
        logger.warning(f"Replay load failed: {message}")
        self.signals.emit(MarketSignal.ERROR, {'error': message})

    # =========================================================================
    # CONTROLS
    # =========================================================================

    @property
    def paused(self) -> bool:
        return self.state != ReplayState.PLAYING

    @property
    def tick_delay(self) -> float:
        return max(self.settings.min_interval, self.settings.base_interval / self.speed)

    def set_speed(self, speed: float):
        if speed <= 0:
            raise ValueError(f"Speed must be positive, got {speed}")
        self.speed = speed
        if self.state == ReplayState.PLAYING:
            self.pause()
            self.play()

    def _recover(self):
        # A failed reload keeps the previous series playable
        if self.state == ReplayState.ERROR and self.bars:
            self.state = ReplayState.READY
            self.error = None

    def play(self):
        """
        Start timed replay.

        No-op until a series is loaded. If every bar is already revealed
        the replay completes immediately.
        """
        self._recover()
        if self.state != ReplayState.READY:
            return
        if self.is_complete:
            self._complete()
            return
        self.state = ReplayState.PLAYING
        try:
            self._schedule()
        except SchedulerError:
            self.state = ReplayState.READY
            raise
        self.signals.emit(MarketSignal.PLAY)

    def pause(self):
        self.scheduler.cancel()
        if self.state == ReplayState.PLAYING:
            self.state = ReplayState.READY
        self.signals.emit(MarketSignal.PAUSE)

    def reset(self):
        """Rewind to the first bar of the loaded series."""
        self.pause()
        self._recover()
        self.replay_index = 0
        self.revealed = []
        self.tick = 0
        self.day = 0
        if self.bars and self.state in (ReplayState.READY, ReplayState.COMPLETE):
            self.state = ReplayState.READY
            self.advance()
        self.signals.emit(MarketSignal.RESET)

    def _schedule(self):
        if self.state != ReplayState.PLAYING:
            return
        self.scheduler.schedule(self.tick_delay, self._on_timer)

    def _on_timer(self):
        if self.replay_index < len(self.bars):
            self.advance()
            self._schedule()
        else:
            self._complete()

    def _complete(self):
        self.scheduler.cancel()
        self.state = ReplayState.COMPLETE
        logger.info(f"Replay complete: {len(self.bars)} bars")
        self.signals.emit(MarketSignal.COMPLETE, {'total_days': len(self.bars)})

    # =========================================================================
    # TICK
    # =========================================================================

    def advance(self) -> Optional[TickInfo]:
        """Reveal exactly one bar; completes when none remain."""
        if self.state not in (ReplayState.READY, ReplayState.PLAYING):
            return None
        if self.replay_index >= len(self.bars):
            self._complete()
            return None

        bar = self.bars[self.replay_index]
        self.revealed.append(bar)
        self.day = self.replay_index
        self.tick += 1

        info = TickInfo(
            tick=self.tick,
            day=self.day,
            intra_index=0,
            symbol=self.symbol,
            bar=bar,
            progress=(self.replay_index + 1) / len(self.bars),
            revealed=self.replay_index + 1,
            total=len(self.bars),
        )
        self.replay_index += 1

        self.signals.emit(MarketSignal.TICK, info)
        self.signals.emit(MarketSignal.DAY_CLOSE, {'day': self.day})
        return info

    def run_to_end(self) -> int:
        """Reveal every remaining bar synchronously; returns bars revealed."""
        count = 0
        while self.state in (ReplayState.READY, ReplayState.PLAYING):
            if self.advance() is None:
                break
            count += 1
        return count

    # =========================================================================
    # VIEWS
    # =========================================================================

    @property
    def is_complete(self) -> bool:
        return bool(self.bars) and self.replay_index >= len(self.bars)

    @property
    def progress(self) -> float:
        if not self.bars:
            return 0.0
        return self.replay_index / len(self.bars)

    @property
    def current_date(self) -> str:
        return self.revealed[-1].date or '' if self.revealed else ''

    @property
    def start_date(self) -> str:
        return self.bars[0].date or '' if self.bars else ''

    @property
    def end_date(self) -> str:
        return self.bars[-1].date or '' if self.bars else ''

    def symbols(self) -> List[str]:
        return [self.symbol] if self.revealed else []

    def candles(self, symbol: Optional[str] = None, count: int = 500) -> List[Bar]:
        if symbol and symbol != self.symbol:
            return []
        if count <= 0:
            return []
        return self.revealed[-count:]

    def full_history(self) -> List[Bar]:
        return list(self.bars)

    def quote(self, symbol: Optional[str] = None) -> Optional[Quote]:
        """Synthetic quote from the latest revealed bar."""
        if symbol and symbol != self.symbol:
            return None
        if not self.revealed:
            return None

        last = self.revealed[-1]
        first = self.revealed[0]
        prev = self.revealed[-2] if len(self.revealed) > 1 else first
        spread = self.settings.quote_spread
        info = self.symbol_info

        return Quote(
            symbol=self.symbol,
            name=info.symbol if info else self.symbol,
            sector=f"{info.exchange} · {info.currency}" if info and info.exchange else '',
            price=last.close,
            open=last.open,
            high=last.high,
            low=last.low,
            close=last.close,
            volume=last.volume,
            bid=last.close * (1 - spread),
            ask=last.close * (1 + spread),
            prev_close=prev.close,
            base_price=first.open,
            date=last.date,
        )

    def quotes(self) -> List[Quote]:
        q = self.quote(self.symbol)
        return [q] if q else []

    def prices(self) -> Dict[str, float]:
        return {q.symbol: q.price for q in self.quotes()}

    def snapshot(self, candle_count: int = 500) -> MarketSnapshot:
        quotes = {q.symbol: q for q in self.quotes()}
        return MarketSnapshot(
            tick=self.tick,
            day=self.day,
            quotes=MappingProxyType(quotes),
            candles=MappingProxyType({
                s: tuple(self.candles(s, candle_count)) for s in quotes
            }),
        )
