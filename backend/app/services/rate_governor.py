import logging
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

_DAY_SECONDS = 86400


class RateGovernor:
    """Non-blocking quota check for the upstream API.

    Tracks calls in a rolling per-minute window and a per-day counter that
    resets at UTC midnight. ``try_acquire`` never sleeps and never raises: a
    denied call is the caller's cue to serve cached or synthetic data.
    """

    def __init__(self, max_per_minute: int = 5, max_per_day: int = 25, period: float = 60.0,
                 clock: Callable[[], float] = time.time):
        self.max_per_minute = max_per_minute
        self.max_per_day = max_per_day
        self.period = period
        self._clock = clock
        self._calls: deque[float] = deque()
        self._day = self._day_index(clock())
        self._day_count = 0

    @staticmethod
    def _day_index(ts: float) -> int:
        return int(ts // _DAY_SECONDS)

    def _roll(self, now: float):
        while self._calls and now - self._calls[0] >= self.period:
            self._calls.popleft()
        day = self._day_index(now)
        if day != self._day:
            self._day = day
            self._day_count = 0

    def try_acquire(self) -> bool:
        # No awaits in here, so concurrent tasks on one event loop cannot interleave mid-update
        now = self._clock()
        self._roll(now)
        if len(self._calls) >= self.max_per_minute:
            logger.info(f"Rate governor: per-minute limit of {self.max_per_minute} reached")
            return False
        if self._day_count >= self.max_per_day:
            logger.info(f"Rate governor: daily limit of {self.max_per_day} reached")
            return False
        self._calls.append(now)
        self._day_count += 1
        return True

    @property
    def used_minute(self) -> int:
        self._roll(self._clock())
        return len(self._calls)

    @property
    def used_day(self) -> int:
        self._roll(self._clock())
        return self._day_count

    def seconds_until_available(self) -> float:
        now = self._clock()
        self._roll(now)
        if self._day_count >= self.max_per_day:
            return (self._day + 1) * _DAY_SECONDS - now
        if len(self._calls) < self.max_per_minute:
            return 0.0
        return max(self.period - (now - self._calls[0]), 0.0)
