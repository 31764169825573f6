"""Controllable clock for tests and offline replay."""

import threading


class ManualClock:
    """
    Monotonic clock that only moves when told to.

    Usage:
        clock = ManualClock()
        sampler = FrameSampler(..., clock=clock, background=False)
        clock.advance(5.0)
        sampler.poll()
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, now: float) -> float:
        with self._lock:
            if now < self._now:
                raise ValueError("ManualClock cannot move backwards")
            self._now = float(now)
            return self._now
