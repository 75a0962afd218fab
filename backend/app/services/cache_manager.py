import time
from dataclasses import dataclass, field
from typing import Any, Callable

from app.config import Settings
from app.services.market_hours import is_market_hours, seconds_until_market_close
from app.services.timeframes import Timeframe

QUOTE = "quote"
OVERVIEW = "overview"


def chart_kind(timeframe: Timeframe) -> str:
    return f"chart:{timeframe.token}"


@dataclass
class CacheEntry:
    payload: Any
    fetched_at: float  # epoch seconds
    ttl: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl


@dataclass
class CacheStore:
    """In-process map of (symbol, kind) -> CacheEntry.

    Stale entries are kept, not evicted: they are the fallback when a live
    refresh fails. ``get`` returns an entry regardless of freshness; callers
    check ``is_fresh`` themselves.
    """

    clock: Callable[[], float] = time.time
    _entries: dict[tuple[str, str], CacheEntry] = field(default_factory=dict)

    def now(self) -> float:
        return self.clock()

    def get(self, symbol: str, kind: str) -> CacheEntry | None:
        return self._entries.get((symbol, kind))

    def get_fresh(self, symbol: str, kind: str) -> CacheEntry | None:
        entry = self.get(symbol, kind)
        if entry is not None and entry.is_fresh(self.now()):
            return entry
        return None

    def set(self, symbol: str, kind: str, payload: Any, ttl: float) -> CacheEntry:
        entry = CacheEntry(payload=payload, fetched_at=self.now(), ttl=ttl)
        self._entries[(symbol, kind)] = entry
        return entry

    def delete(self, symbol: str, kind: str):
        self._entries.pop((symbol, kind), None)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def symbols(self, kind: str) -> list[str]:
        return [symbol for (symbol, k) in self._entries if k == kind]

    def expiring(self, kind: str, within: float) -> list[str]:
        """Symbols whose entry of this kind is still fresh but expires within `within` seconds, oldest first.

        Entries that already went stale are left alone: only a new request refreshes them.
        """
        now = self.now()
        due = [
            (entry.fetched_at, symbol)
            for (symbol, k), entry in self._entries.items()
            if k == kind and entry.ttl - within < entry.age(now) < entry.ttl
        ]
        return [symbol for _, symbol in sorted(due)]


def quote_ttl(settings: Settings) -> int:
    return settings.quote_cache_ttl_market if is_market_hours() else settings.quote_cache_ttl_closed


def chart_ttl(settings: Settings, timeframe: Timeframe) -> int:
    if timeframe.intraday:
        return settings.chart_cache_ttl_intraday
    if is_market_hours():
        return settings.chart_cache_ttl_daily
    # Daily and weekly bars cannot change before the next close
    return max(settings.chart_cache_ttl_daily, seconds_until_market_close())
