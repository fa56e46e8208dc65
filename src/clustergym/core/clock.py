"""Discrete-event clock on top of simpy.

All simulation work runs as callbacks dispatched by one ``simpy.Environment``.
Callbacks scheduled for the same instant fire in the order they were
scheduled.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import simpy
from simpy.core import StopSimulation

_log = logging.getLogger("clustergym.clock")


class PeriodicTask:
    """A task resubmitted every ``interval`` seconds once it completes."""

    def __init__(
        self,
        clock: "SimClock",
        interval: float,
        fn: Callable[[], Any],
        start: float = 0.0,
        name: str = "task",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.clock = clock
        self.interval = float(interval)
        self.fn = fn
        self.name = name
        self.ticks = 0
        self.cancelled = False
        clock.schedule(start, self._fire)

    def _fire(self) -> None:
        if self.cancelled:
            return
        self.clock.schedule(self.interval, self._fire)
        self.ticks += 1
        self.fn()

    def cancel(self) -> None:
        self.cancelled = True


class SimClock:
    def __init__(self, env: Optional[simpy.Environment] = None) -> None:
        self.env = env or simpy.Environment()
        self.stopped = False

    @property
    def now(self) -> float:
        return float(self.env.now)

    def schedule(self, delay: float, fn: Callable[..., Any], *args: Any) -> simpy.Event:
        if delay < 0:
            raise ValueError(f"cannot schedule in the past (delay={delay})")
        event = self.env.timeout(delay)
        event.callbacks.append(lambda _evt: self._dispatch(fn, args))
        return event

    def every(
        self,
        interval: float,
        fn: Callable[[], Any],
        start: float = 0.0,
        name: str = "task",
    ) -> PeriodicTask:
        return PeriodicTask(self, interval, fn, start=start, name=name)

    def run(self, until: float) -> None:
        """Advance to ``until``; callbacks due exactly at ``until`` stay queued."""
        if self.stopped or until <= self.now:
            return
        self.env.run(until=until)

    def stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        _log.info("clock stopped at t=%.6f", self.now)

    def _dispatch(self, fn: Callable[..., Any], args: tuple) -> None:
        if self.stopped:
            return
        fn(*args)
        if self.stopped:
            raise StopSimulation(None)
