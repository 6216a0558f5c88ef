"""
Polling scheduler for the metric families.

Every family runs in its own thread on a fixed cadence. All loops share a
single ``threading.Event`` as cancellation signal and ``Scheduler.run``
blocks until every loop has stopped.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable

from fritzbox_client_exceptions import FritzBoxException

logger = logging.getLogger(__name__)


class LoopState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


class Ticker:
    """
    Delivers one tick immediately and then one per interval on a fixed grid.

    Ticks that fall due while the caller is busy are coalesced into a single
    tick delivered as soon as ``wait`` is called again.
    """

    def __init__(self, interval: float, stop_event: threading.Event,
                 clock: Callable[[], float] = time.monotonic):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.stop_event = stop_event
        self.clock = clock
        self._next: float | None = None

    def wait(self) -> bool:
        """Block until the next tick. Returns False once the stop event is set."""
        if self.stop_event.is_set():
            return False

        if self._next is None:
            self._next = self.clock() + self.interval
            return True

        while True:
            remaining = self._next - self.clock()
            if remaining <= 0:
                break
            if self.stop_event.wait(remaining):
                return False

        missed = int((self.clock() - self._next) // self.interval)
        if missed > 0:
            logger.debug(f"Coalesced {missed} missed tick(s)")
        self._next += (missed + 1) * self.interval
        return True


class PollingLoop:

    def __init__(self, name: str, interval: float, poll: Callable[[], None],
                 stop_event: threading.Event, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.interval = interval
        self.poll = poll
        self.stop_event = stop_event
        self.clock = clock
        self.state = LoopState.IDLE

    def run(self) -> None:
        if self.state == LoopState.STOPPED:
            raise RuntimeError(f"{self.name} polling loop has already stopped")

        logger.info(f"Monitoring {self.name} metrics every {self.interval:g}s")
        ticker = Ticker(self.interval, self.stop_event, clock=self.clock)
        try:
            while ticker.wait():
                self.state = LoopState.POLLING
                try:
                    self.poll()
                except FritzBoxException as e:
                    logger.error(f"Failed to fetch {self.name} metrics: {e}")
                except Exception:
                    logger.exception(f"Unexpected error while fetching {self.name} metrics")
                finally:
                    self.state = LoopState.IDLE
        finally:
            self.state = LoopState.STOPPED
            logger.info(f"{self.name.capitalize()} monitoring stopped")


class Scheduler:

    def __init__(self, stop_event: threading.Event):
        self.stop_event = stop_event
        self.loops: list[PollingLoop] = []

    def add(self, name: str, interval: float, poll: Callable[[], None]) -> PollingLoop:
        loop = PollingLoop(name, interval, poll, self.stop_event)
        self.loops.append(loop)
        return loop

    def run(self) -> None:
        threads = [
            threading.Thread(target=loop.run, name=f"{loop.name}-metrics", daemon=True)
            for loop in self.loops
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
