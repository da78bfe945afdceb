"""
Signal bus.

Named publish/subscribe channels used by the market drivers and the
decision engine. Each listener receives the payload of every signal it
subscribed to, in emission order.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class MarketSignal(Enum):
    """Signal names emitted by market drivers and the engine."""
    PLAY = "play"
    PAUSE = "pause"
    RESET = "reset"
    TICK = "tick"
    DAY_CLOSE = "dayClose"
    EVENT = "event"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"
    COMPLETE = "complete"
    TRADE = "trade"
    ANALYSIS = "analysis"


class SignalBus:
    """Callback registry keyed by signal."""

    def __init__(self):
        self._listeners: Dict[MarketSignal, List[Listener]] = defaultdict(list)

    def on(self, signal: MarketSignal, listener: Listener) -> Callable[[], None]:
        """
        Subscribe `listener` to `signal`.

        Returns:
            A callable that removes the subscription
        """
        self._listeners[signal].append(listener)
        return lambda: self.off(signal, listener)

    def off(self, signal: MarketSignal, listener: Listener):
        """Remove a subscription; unknown listeners are ignored."""
        listeners = self._listeners.get(signal, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, signal: MarketSignal, payload: Optional[Any] = None):
        """Dispatch `payload` to every listener of `signal`."""
        # Copy so listeners may unsubscribe while being dispatched
        for listener in list(self._listeners.get(signal, [])):
            listener(payload)

    def listener_count(self, signal: MarketSignal) -> int:
        return len(self._listeners.get(signal, []))

    def clear(self):
        self._listeners.clear()
