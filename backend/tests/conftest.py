import asyncio
from datetime import datetime, timezone

import pytest

from app.config import Settings
from app.schemas.stock import Quote, SeriesPoint
from app.services.exceptions import UpstreamError
from app.services.symbol_catalog import DEFAULT_CATALOG


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_717_606_800.0):  # 2024-06-05 17:00 UTC
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_quote(symbol: str, price: float, **extra) -> Quote:
    record = DEFAULT_CATALOG.lookup(symbol)
    values = dict(
        symbol=record.symbol,
        name=record.name,
        price=price,
        change=1.0,
        change_percent=round(1.0 / (price - 1.0) * 100, 4),
        volume=1_000_000,
        previous_close=price - 1.0,
        sector=record.sector,
        industry=record.industry,
        asset_class=record.asset_class,
        last_updated=datetime.now(timezone.utc),
    )
    values.update(extra)
    return Quote(**values)


def make_bars(closes: list[float]) -> list[SeriesPoint]:
    return [
        SeriesPoint(
            timestamp=datetime(2024, 6, 4, 14, 30 + i, tzinfo=timezone.utc),
            open=close,
            high=close + 1,
            low=close - 1,
            close=close,
            volume=100,
        )
        for i, close in enumerate(closes)
    ]


class FakeUpstream:
    """Stands in for AlphaVantageClient; counts calls and can be told to fail or stall."""

    def __init__(self, prices: dict[str, float] | None = None, enabled: bool = True):
        self.enabled = enabled
        self.prices = dict(prices or {})
        self.bars: dict[str, list[SeriesPoint]] = {}
        self.overviews: dict[str, dict] = {}
        self.delays: dict[str, float] = {}
        self.failing: set[str] = set()
        self.quote_calls: list[str] = []
        self.series_calls: list[tuple[str, str]] = []
        self.overview_calls: list[str] = []
        self.search_calls: list[str] = []
        self.search_results = []

    async def fetch_quote(self, symbol: str) -> Quote:
        self.quote_calls.append(symbol)
        if symbol in self.delays:
            await asyncio.sleep(self.delays[symbol])
        if symbol in self.failing or symbol not in self.prices:
            raise UpstreamError("boom", symbol, "quote")
        return make_quote(symbol, self.prices[symbol])

    async def fetch_overview(self, symbol: str) -> dict:
        self.overview_calls.append(symbol)
        if symbol not in self.overviews:
            raise UpstreamError("no overview", symbol, "overview")
        return self.overviews[symbol]

    async def fetch_series(self, symbol: str, timeframe: str) -> list[SeriesPoint]:
        self.series_calls.append((symbol, timeframe))
        if symbol in self.failing:
            raise UpstreamError("boom", symbol, "series")
        return list(self.bars.get(symbol, []))

    async def search_symbols(self, keywords: str):
        self.search_calls.append(keywords)
        if "search" in self.failing:
            raise UpstreamError("boom", keywords, "search")
        return list(self.search_results)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        alpha_vantage_api_key="",
        enrich_with_overview=False,
        warmup_batch_size=3,
        warmup_batch_delay=0.0,
        database_url="",
    )


@pytest.fixture
def upstream():
    return FakeUpstream({"AAPL": 190.5, "MSFT": 410.25, "NVDA": 120.0})
