"""
Tick scheduler.

Owns at most one pending timer callback on the running asyncio event
loop. Scheduling again replaces the pending callback, so two ticks can
never be queued at once.
"""

import asyncio
import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class SchedulerError(Exception):
    """Raised when a tick is scheduled without an event loop."""
    pass


class TickScheduler:
    """Single-slot timer on top of `loop.call_later`."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as e:
            raise SchedulerError("Playback requires a running asyncio event loop") from e

    def schedule(self, delay: float, callback: Callable[[], None]):
        """Run `callback` after `delay` seconds, replacing any pending one."""
        loop = self._get_loop()
        self.cancel()
        self._handle = loop.call_later(delay, self._fire, callback)
        logger.debug(f"Tick scheduled in {delay:.3f}s")

    def cancel(self):
        """Drop the pending callback, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], None]):
        self._handle = None
        callback()
