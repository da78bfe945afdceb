"""
Market module - synthetic simulator and signals.

The replay driver depends on the data sources, which in turn use the bar
model from here; import it from tradesim.market.replay.
"""

from tradesim.market.signals import MarketSignal, SignalBus
from tradesim.market.scheduler import TickScheduler, SchedulerError
from tradesim.market.models import (
    Bar,
    TickPrint,
    Quote,
    MarketEvent,
    Instrument,
    TickInfo,
    MarketSnapshot,
)
from tradesim.market.simulator import MarketSimulator

__all__ = [
    'MarketSignal', 'SignalBus', 'TickScheduler', 'SchedulerError',
    'Bar', 'TickPrint', 'Quote', 'MarketEvent', 'Instrument', 'TickInfo',
    'MarketSnapshot', 'MarketSimulator',
]
