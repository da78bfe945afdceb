"""
Tests for the synthetic market simulator, tick scheduler and signal bus.
"""

import asyncio

import pytest

import sys
from pathlib import Path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import SimulationSettings
from config.universe import COMPANIES, MARKET_EVENTS, SCENARIOS
from tradesim.market.scheduler import SchedulerError, TickScheduler
from tradesim.market.signals import MarketSignal, SignalBus
from tradesim.market.simulator import MarketSimulator


@pytest.fixture
def settings():
    return SimulationSettings(seed=123)


@pytest.fixture
def quiet_settings():
    """No random events."""
    return SimulationSettings(seed=123, event_probability=0.0)


@pytest.fixture
def market(settings):
    return MarketSimulator(settings)


class TestInitialState:

    def test_instruments_at_base_price(self, market):
        assert market.symbols() == [c.symbol for c in COMPANIES]
        for company in COMPANIES:
            inst = market.instruments[company.symbol]
            assert inst.price == company.base_price
            assert inst.history == []
            assert inst.bid < inst.price < inst.ask

    def test_reset_reproduces_initial_state(self, market):
        initial = {s: q for s, q in ((q.symbol, q) for q in market.quotes())}
        market.run_ticks(200)
        market.reset()

        assert market.tick == 0
        assert market.day == 0
        assert market.active_events == []
        assert market.event_log == []
        for q in market.quotes():
            assert q == initial[q.symbol]
            assert market.instruments[q.symbol].history == []

    def test_reset_is_deterministic_with_seed(self, market):
        market.run_ticks(150)
        first_run = market.prices()
        market.reset()
        market.run_ticks(150)

        assert market.prices() == first_run

    def test_reset_emits_signal(self, market):
        received = []
        market.on(MarketSignal.RESET, received.append)
        market.reset()

        assert received == [None]


class TestTicking:

    def test_tick_signal_payload(self, market):
        received = []
        market.on(MarketSignal.TICK, received.append)
        market.run_ticks(3)

        assert [info.tick for info in received] == [1, 2, 3]
        assert [info.intra_index for info in received] == [0, 1, 2]
        assert all(info.day == 0 for info in received)

    def test_day_closes_on_first_tick_of_next_day(self, market):
        closes = []
        market.on(MarketSignal.DAY_CLOSE, closes.append)

        market.run_days(1)
        assert closes == []
        assert market.day == 0

        market.advance()
        assert closes == [{'day': 0}]
        assert market.day == 1
        for inst in market.instruments.values():
            assert len(inst.history) == 1
            assert inst.history[0].time == 0

    def test_price_invariants(self, market):
        for _ in range(3 * market.ticks_per_day):
            market.advance()
            for inst in market.instruments.values():
                assert inst.price > 0
                assert inst.high >= inst.price >= inst.low

    def test_closed_bars_are_consistent(self, market):
        market.run_ticks(5 * market.ticks_per_day + 1)
        for inst in market.instruments.values():
            assert len(inst.history) == 5
            for bar in inst.history:
                assert bar.high >= max(bar.open, bar.close)
                assert bar.low <= min(bar.open, bar.close)
                assert bar.volume > 0

    def test_crash_scenario_keeps_prices_positive(self):
        market = MarketSimulator(SimulationSettings(seed=5, scenario="crash"))
        market.run_days(30)

        assert all(p > 0 for p in market.prices().values())

    def test_set_scenario_falls_back_to_normal(self, market):
        market.set_scenario("bull")
        assert market.scenario == SCENARIOS["bull"]

        market.set_scenario("no-such-scenario")
        assert market.scenario == SCENARIOS["normal"]


class TestEvents:

    def test_inject_event_sets_effect(self, quiet_settings):
        market = MarketSimulator(quiet_settings)
        template = MARKET_EVENTS[0]
        received = []
        market.on(MarketSignal.EVENT, received.append)

        event = market.inject_event(template, "NOVA")
        inst = market.instruments["NOVA"]

        lo, hi = template.price_effect
        assert lo <= event.magnitude <= hi
        assert template.duration[0] <= event.duration <= template.duration[1]
        assert inst.event_effect == pytest.approx(event.magnitude / event.duration)
        assert inst.event_vol == template.vol_effect
        assert received[0]['symbol'] == "NOVA"
        assert "NOVA" in received[0]['text']

    def test_event_expires_after_duration(self, quiet_settings):
        market = MarketSimulator(quiet_settings)
        event = market.inject_event(MARKET_EVENTS[4], "STBL")

        market.run_ticks(event.duration)

        inst = market.instruments["STBL"]
        assert inst.event_effect == 0.0
        assert inst.event_vol == 1.0
        assert market.active_events == []
        assert market.event_log == [event]

    def test_new_event_overrides_active_one(self, quiet_settings):
        market = MarketSimulator(quiet_settings)
        first = market.inject_event(MARKET_EVENTS[0], "QBIT")
        second = market.inject_event(MARKET_EVENTS[1], "QBIT")

        assert market.active_events == [second]
        assert first in market.event_log
        assert market.instruments["QBIT"].event_ticks == second.duration

    def test_event_log_is_capped(self):
        market = MarketSimulator(SimulationSettings(seed=1, event_probability=0.0, event_log_limit=5))
        events = [market.inject_event(MARKET_EVENTS[i % 12], "GLBX") for i in range(8)]

        assert market.event_log == events[-5:]

    def test_events_spawn_with_certain_probability(self):
        market = MarketSimulator(SimulationSettings(seed=3, event_probability=1.0))
        market.run_ticks(10)

        assert len(market.event_log) == 10


class TestViews:

    def test_candles_include_partial_bar(self, market):
        market.run_ticks(2 * market.ticks_per_day + 5)
        candles = market.candles("NOVA", 200)

        assert len(candles) == 3
        assert candles[-1].close == market.instruments["NOVA"].price

    def test_candles_respect_count(self, market):
        market.run_ticks(10 * market.ticks_per_day + 1)

        assert len(market.candles("NOVA", 4)) == 4
        assert market.candles("NOVA", 0) == []
        assert market.candles("XXXX", 4) == []

    def test_intraday(self, market):
        market.run_ticks(30)

        assert len(market.intraday("AERO", 10)) == 10
        assert market.intraday("AERO", 10)[-1].tick == 29

    def test_snapshot_is_read_only(self, market):
        market.run_ticks(10)
        snap = market.snapshot(50)

        assert snap.tick == 10
        assert set(snap.symbols) == set(market.symbols())
        with pytest.raises(TypeError):
            snap.quotes["NOVA"] = None

        market.run_ticks(10)
        assert snap.tick == 10

    def test_quote_unknown_symbol(self, market):
        assert market.quote("XXXX") is None


class TestPlayback:

    def test_tick_delay(self, market):
        assert market.tick_delay == pytest.approx(0.385)
        market.speed = 100
        assert market.tick_delay == pytest.approx(market.settings.min_interval)

    def test_invalid_speed(self, market):
        with pytest.raises(ValueError):
            market.set_speed(0)

    def test_play_without_event_loop(self, market):
        with pytest.raises(SchedulerError):
            market.play()
        assert market.paused

    def test_play_and_pause_on_event_loop(self):
        async def run():
            market = MarketSimulator(SimulationSettings(seed=9, base_interval=0.005, min_interval=0.001))
            ticks = []
            market.on(MarketSignal.TICK, ticks.append)

            market.play()
            await asyncio.sleep(0.1)
            market.set_speed(2.0)
            await asyncio.sleep(0.05)
            market.pause()
            stopped_at = len(ticks)
            await asyncio.sleep(0.05)
            return market, ticks, stopped_at

        market, ticks, stopped_at = asyncio.run(run())

        assert stopped_at > 0
        assert len(ticks) == stopped_at
        assert market.tick == stopped_at
        assert not market.scheduler.pending


class TestScheduler:

    def test_single_pending_callback(self):
        async def run():
            scheduler = TickScheduler()
            fired = []
            scheduler.schedule(0.01, lambda: fired.append("a"))
            scheduler.schedule(0.01, lambda: fired.append("b"))
            assert scheduler.pending
            await asyncio.sleep(0.05)
            return scheduler, fired

        scheduler, fired = asyncio.run(run())

        assert fired == ["b"]
        assert not scheduler.pending

    def test_cancel(self):
        async def run():
            scheduler = TickScheduler()
            fired = []
            scheduler.schedule(0.01, lambda: fired.append(1))
            scheduler.cancel()
            await asyncio.sleep(0.03)
            return fired

        assert asyncio.run(run()) == []

    def test_requires_running_loop(self):
        with pytest.raises(SchedulerError):
            TickScheduler().schedule(0.01, lambda: None)


class TestSignalBus:

    def test_emit_in_subscription_order(self):
        bus = SignalBus()
        calls = []
        bus.on(MarketSignal.TICK, lambda p: calls.append(("a", p)))
        bus.on(MarketSignal.TICK, lambda p: calls.append(("b", p)))

        bus.emit(MarketSignal.TICK, 1)

        assert calls == [("a", 1), ("b", 1)]

    def test_unsubscribe(self):
        bus = SignalBus()
        calls = []
        off = bus.on(MarketSignal.PLAY, calls.append)
        off()
        bus.emit(MarketSignal.PLAY)

        assert calls == []
        assert bus.listener_count(MarketSignal.PLAY) == 0

    def test_listener_can_unsubscribe_during_emit(self):
        bus = SignalBus()
        calls = []

        def once(payload):
            calls.append(payload)
            off()

        off = bus.on(MarketSignal.EVENT, once)
        bus.emit(MarketSignal.EVENT, "x")
        bus.emit(MarketSignal.EVENT, "y")

        assert calls == ["x"]
