"""
Market Simulator.

Discrete-tick synthetic market. Each tick may close/open a trading day,
spawn a random market event, and move every instrument's price by
noise + trend + mean reversion + event drift. Playback runs on a
TickScheduler whose delay is base_interval / speed.
"""

import logging
import math
from types import MappingProxyType
from typing import Dict, List, Optional, Sequence

import numpy as np

from config.settings import SimulationSettings
from config.universe import (
    COMPANIES,
    MARKET_EVENTS,
    CompanyProfile,
    EventTemplate,
    Scenario,
    get_scenario,
)
from tradesim.market.models import (
    Bar,
    Instrument,
    MarketEvent,
    MarketSnapshot,
    Quote,
    TickInfo,
    TickPrint,
)
from tradesim.market.scheduler import SchedulerError, TickScheduler
from tradesim.market.signals import MarketSignal, SignalBus


logger = logging.getLogger(__name__)


class MarketSimulator:
    """
    Synthetic multi-instrument market.

    Lifecycle signals: play, pause, reset, tick, dayClose, event.
    """

    def __init__(
        self,
        settings: Optional[SimulationSettings] = None,
        companies: Sequence[CompanyProfile] = COMPANIES,
        event_templates: Sequence[EventTemplate] = MARKET_EVENTS,
        scheduler: Optional[TickScheduler] = None,
    ):
        """Initialize all instruments at their base price."""
        self.settings = settings or SimulationSettings()
        self.companies = tuple(companies)
        self.event_templates = tuple(event_templates)
        self.signals = SignalBus()
        self.scheduler = scheduler or TickScheduler()

        self.scenario: Scenario = get_scenario(self.settings.scenario)
        self.tick = 0
        self.day = 0
        self.paused = True
        self.speed = 1.0

        self.instruments: Dict[str, Instrument] = {}
        self.active_events: List[MarketEvent] = []
        self.event_log: List[MarketEvent] = []

        self._rng = np.random.default_rng(self.settings.seed)
        self._init_instruments()

    @property
    def ticks_per_day(self) -> int:
        return self.settings.ticks_per_day

    def _init_instruments(self):
        self.instruments = {
            c.symbol: Instrument.from_profile(c) for c in self.companies
        }

    # =========================================================================
    # CONTROLS
    # =========================================================================

    def on(self, signal: MarketSignal, listener):
        return self.signals.on(signal, listener)

    def set_scenario(self, name: str):
        """Swap the scenario; applies from the next tick onward."""
        self.scenario = get_scenario(name)
        logger.info(f"Scenario set to {self.scenario.label}")

    def set_speed(self, speed: float):
        """Change playback speed, restarting the timer if playing."""
        if speed <= 0:
            raise ValueError(f"Speed must be positive, got {speed}")
        self.speed = speed
        if not self.paused:
            self.pause()
            self.play()

    @property
    def tick_delay(self) -> float:
        return max(self.settings.min_interval, self.settings.base_interval / self.speed)

    def play(self):
        """Start timed playback on the running event loop."""
        if not self.paused:
            return
        self.paused = False
        try:
            self._schedule()
        except SchedulerError:
            self.paused = True
            raise
        self.signals.emit(MarketSignal.PLAY)

    def pause(self):
        self.paused = True
        self.scheduler.cancel()
        self.signals.emit(MarketSignal.PAUSE)

    def reset(self):
        """Return every instrument to its base price and clear events and history."""
        self.pause()
        self.tick = 0
        self.day = 0
        self.active_events = []
        self.event_log = []
        self._rng = np.random.default_rng(self.settings.seed)
        self._init_instruments()
        logger.info("Market reset")
        self.signals.emit(MarketSignal.RESET)

    def _schedule(self):
        if self.paused:
            return
        self.scheduler.schedule(self.tick_delay, self._on_timer)

    def _on_timer(self):
        self.advance()
        self._schedule()

    # =========================================================================
    # TICK
    # =========================================================================

    def advance(self) -> TickInfo:
        """Run one tick synchronously."""
        intra_index = self.tick % self.ticks_per_day

        if intra_index == 0 and self.tick > 0:
            self._close_day()
            self.day += 1

        if intra_index == 0:
            self._open_day()

        self._maybe_spawn_event()

        for instrument in self.instruments.values():
            self._update_price(instrument)

        self._decay_events()

        self.tick += 1
        info = TickInfo(tick=self.tick, day=self.day, intra_index=intra_index)
        self.signals.emit(MarketSignal.TICK, info)
        return info

    def run_ticks(self, count: int) -> Optional[TickInfo]:
        info = None
        for _ in range(count):
            info = self.advance()
        return info

    def run_days(self, days: int) -> Optional[TickInfo]:
        return self.run_ticks(days * self.ticks_per_day)

    def _open_day(self):
        sc = self.scenario
        s = self.settings
        for inst in self.instruments.values():
            vol = inst.profile.volatility
            gap = (self._rng.random() - s.gap_bias) * vol * inst.price * s.gap_scale * sc.vol_mult
            inst.price = max(s.price_floor, inst.price + gap)
            inst.open = inst.price
            inst.high = inst.price
            inst.low = inst.price
            inst.volume = 0
            inst.day_prices = [inst.price]

    def _close_day(self):
        for inst in self.instruments.values():
            inst.close = inst.price
            inst.history.append(Bar(
                time=self.day,
                open=inst.open,
                high=inst.high,
                low=inst.low,
                close=inst.close,
                volume=inst.volume,
            ))
            inst.prev_close = inst.close

        logger.debug(f"Day {self.day} closed")
        self.signals.emit(MarketSignal.DAY_CLOSE, {'day': self.day})

    def _update_price(self, inst: Instrument):
        sc = self.scenario
        s = self.settings

        trend = inst.profile.trend * sc.trend_mult
        vol = inst.profile.volatility * sc.vol_mult * inst.event_vol

        reversion = (inst.base_price - inst.price) * s.reversion_coeff
        noise = (self._rng.random() - 0.5) * 2 * vol * inst.price
        event_drift = inst.event_effect * inst.price * s.event_drift_scale
        trend_drift = trend * inst.price

        inst.price = max(s.price_floor, inst.price + noise + trend_drift + reversion + event_drift)

        inst.high = max(inst.high, inst.price)
        inst.low = min(inst.low, inst.price)

        tick_volume = int(self._rng.integers(s.volume_min, s.volume_max))
        inst.volume += tick_volume

        inst.bid = inst.price * (1 - self._rng.random() * s.spread_fraction)
        inst.ask = inst.price * (1 + self._rng.random() * s.spread_fraction)
        inst.close = inst.price

        inst.day_prices.append(inst.price)
        inst.tick_history.append(TickPrint(tick=self.tick, price=inst.price, volume=tick_volume))

    # =========================================================================
    # EVENTS
    # =========================================================================

    def _maybe_spawn_event(self) -> Optional[MarketEvent]:
        probability = self.settings.event_probability * self.scenario.event_freq
        if not self.event_templates or self._rng.random() > probability:
            return None

        template = self.event_templates[int(self._rng.integers(len(self.event_templates)))]
        symbols = list(self.instruments.keys())
        symbol = symbols[int(self._rng.integers(len(symbols)))]
        return self.inject_event(template, symbol)

    def inject_event(self, template: EventTemplate, symbol: str) -> MarketEvent:
        """
        Apply `template` to `symbol` with a random magnitude and duration.

        A new event replaces any event already running on the instrument.
        """
        inst = self.instruments[symbol]

        min_effect, max_effect = template.price_effect
        magnitude = min_effect + self._rng.random() * (max_effect - min_effect)
        min_dur, max_dur = template.duration
        duration = max(1, int(math.floor(min_dur + self._rng.random() * (max_dur - min_dur))))

        superseded = [e for e in self.active_events if e.symbol == symbol]
        if superseded:
            logger.debug(f"{symbol}: new event overrides {len(superseded)} active event(s)")
            self.active_events = [e for e in self.active_events if e.symbol != symbol]

        # Total effect spread evenly over the duration
        inst.event_effect = magnitude / duration
        inst.event_vol = template.vol_effect
        inst.event_ticks = duration

        event = MarketEvent(
            event_type=template.event_type,
            symbol=symbol,
            text=template.describe(symbol),
            magnitude=magnitude,
            tick=self.tick,
            day=self.day,
            duration=duration,
            remaining=duration,
        )
        self.active_events.append(event)
        self.event_log.append(event)
        if len(self.event_log) > self.settings.event_log_limit:
            self.event_log.pop(0)

        logger.info(f"EVENT | {event.text} | effect {magnitude:+.2%} over {duration} ticks")
        self.signals.emit(MarketSignal.EVENT, event.to_payload())
        return event

    def _decay_events(self):
        for inst in self.instruments.values():
            if inst.event_ticks > 0:
                inst.event_ticks -= 1
                if inst.event_ticks <= 0:
                    inst.clear_event()

        for event in self.active_events:
            event.remaining -= 1
        self.active_events = [e for e in self.active_events if e.active]

    # =========================================================================
    # VIEWS
    # =========================================================================

    def symbols(self) -> List[str]:
        return list(self.instruments.keys())

    def quote(self, symbol: str) -> Optional[Quote]:
        inst = self.instruments.get(symbol)
        return inst.to_quote() if inst is not None else None

    def quotes(self) -> List[Quote]:
        return [inst.to_quote() for inst in self.instruments.values()]

    def prices(self) -> Dict[str, float]:
        return {symbol: inst.price for symbol, inst in self.instruments.items()}

    def candles(self, symbol: str, count: int = 200) -> List[Bar]:
        """Closed bars plus the current partial bar, at most `count` in total."""
        inst = self.instruments.get(symbol)
        if inst is None or count <= 0:
            return []

        has_partial = len(inst.day_prices) > 0
        keep = count - 1 if has_partial else count
        bars = inst.history[len(inst.history) - keep:] if keep > 0 else []
        bars = list(bars)
        if has_partial:
            bars.append(inst.partial_bar(self.day))
        return bars

    def intraday(self, symbol: str, count: int = 200) -> List[TickPrint]:
        inst = self.instruments.get(symbol)
        if inst is None or count <= 0:
            return []
        return inst.tick_history[-count:]

    def snapshot(self, candle_count: int = 200) -> MarketSnapshot:
        """Immutable view of quotes and candles for every instrument."""
        return MarketSnapshot(
            tick=self.tick,
            day=self.day,
            quotes=MappingProxyType({s: i.to_quote() for s, i in self.instruments.items()}),
            candles=MappingProxyType({
                s: tuple(self.candles(s, candle_count)) for s in self.instruments
            }),
        )
