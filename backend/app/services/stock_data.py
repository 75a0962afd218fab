"""
Stock data service: quotes and chart series with caching, rate-limit awareness
and graceful fallback.

Every lookup follows the same order:

    fresh cache -> rate governor -> live fetch -> stale cache
        -> persisted snapshot (quotes only) -> synthetic data

Results are tagged internally (``Sourced``) with where they came from; the
public ``get_*`` methods return the plain payload and never raise. A quote's
``source`` and ``last_updated`` fields tell callers whether it is live.

Concurrent refreshes of the same (symbol, kind) share one in-flight task, so a
burst of identical requests costs a single upstream call.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from app.config import Settings, get_settings
from app.database import get_session_factory
from app.schemas.stock import DataSource, Quote, SeriesPoint, WarmupReport
from app.services.alpha_vantage import AlphaVantageClient
from app.services.cache_manager import OVERVIEW, QUOTE, CacheStore, chart_kind, chart_ttl, quote_ttl
from app.services.exceptions import UpstreamError
from app.services.rate_governor import RateGovernor
from app.services.snapshot_store import QuoteSnapshotStore
from app.services.symbol_catalog import (
    DEFAULT_CATALOG,
    POPULAR_SYMBOLS,
    SymbolCatalog,
    is_valid_symbol,
    normalize_symbol,
)
from app.services.synthetic import SyntheticDataGenerator
from app.services.timeframes import DEFAULT_TIMEFRAME, Timeframe, get_timeframe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sourced:
    source: DataSource
    payload: Any


def apply_overview(quote: Quote, overview: dict) -> Quote:
    """Merge company fundamentals into a quote, ignoring blank or nonsensical values."""
    updates = {}
    for key in ("name", "description", "sector", "industry"):
        if overview.get(key):
            updates[key] = overview[key]
    market_cap = overview.get("market_cap")
    if market_cap and market_cap > 0:
        updates["market_cap"] = market_cap
    pe_ratio = overview.get("pe_ratio")
    if pe_ratio and pe_ratio > 0:
        updates["pe_ratio"] = pe_ratio
    high, low = overview.get("week52_high"), overview.get("week52_low")
    if high and low and 0 < low <= high:
        updates["week52_high"] = high
        updates["week52_low"] = low
    return quote.model_copy(update=updates)


def widen_week52(quote: Quote) -> Quote:
    """52-week bounds lag the current price; stretch them so low <= price <= high."""
    if quote.week52_high <= 0 or quote.week52_low <= 0:
        return quote
    return quote.model_copy(update={
        "week52_high": max(quote.week52_high, quote.price),
        "week52_low": min(quote.week52_low, quote.price),
    })


class StockDataService:
    def __init__(
        self,
        client: AlphaVantageClient,
        governor: RateGovernor,
        settings: Settings | None = None,
        catalog: SymbolCatalog = DEFAULT_CATALOG,
        generator: SyntheticDataGenerator | None = None,
        store: CacheStore | None = None,
        snapshots: QuoteSnapshotStore | None = None,
    ):
        self.client = client
        self.governor = governor
        self.settings = settings if settings is not None else get_settings()
        self.catalog = catalog
        self.generator = generator if generator is not None else SyntheticDataGenerator()
        self.store = store if store is not None else CacheStore()
        self.snapshots = snapshots
        # Synthetic results are kept apart so they can never shadow real data
        self._synthetic = CacheStore(clock=self.store.clock)
        self._inflight: dict[tuple[str, str], asyncio.Future] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "StockDataService":
        client = AlphaVantageClient(
            api_key=settings.alpha_vantage_api_key,
            base_url=settings.alpha_vantage_base_url,
            timeout=settings.upstream_timeout,
        )
        governor = RateGovernor(settings.rate_limit_per_minute, settings.rate_limit_per_day)
        session_factory = get_session_factory()
        snapshots = QuoteSnapshotStore(session_factory) if session_factory is not None else None
        return cls(client, governor, settings=settings, snapshots=snapshots)

    # --- Quotes ---

    async def get_stock_data(self, symbol: str) -> Quote:
        return (await self.get_stock_data_sourced(symbol)).payload

    async def get_stock_data_sourced(self, symbol: str) -> Sourced:
        symbol = normalize_symbol(symbol)
        fresh = self.store.get_fresh(symbol, QUOTE)
        if fresh is not None:
            logger.debug(f"Cache hit: quote for {symbol}")
            return Sourced(DataSource.LIVE, fresh.payload)
        return await self._coalesce(symbol, QUOTE, lambda: self._refresh_quote(symbol))

    async def get_multiple_stocks(self, symbols: list[str]) -> list[Quote]:
        """Quotes for all symbols, fetched concurrently, in input order."""
        results = await asyncio.gather(
            *(self.get_stock_data(symbol) for symbol in symbols),
            return_exceptions=True,
        )
        quotes = []
        for symbol, result in zip(symbols, results):
            if isinstance(result, Exception):
                logger.error(f"Quote lookup failed for {symbol}: {result}")
                result = self._synthetic_quote(normalize_symbol(symbol))
            quotes.append(result)
        return quotes

    async def get_current_price(self, symbol: str) -> float:
        return (await self.get_stock_data(symbol)).price

    async def _fetch_quote(self, symbol: str) -> Quote:
        quote = await self.client.fetch_quote(symbol)
        if self.settings.enrich_with_overview:
            overview = await self._get_overview(symbol)
            if overview:
                quote = apply_overview(quote, overview)
        return widen_week52(quote)

    async def _get_overview(self, symbol: str) -> dict | None:
        fresh = self.store.get_fresh(symbol, OVERVIEW)
        if fresh is not None:
            return fresh.payload
        overview = await self._try_live(symbol, OVERVIEW, self.client.fetch_overview)
        if overview is not None:
            self.store.set(symbol, OVERVIEW, overview, self.settings.overview_cache_ttl)
            return overview
        stale = self.store.get(symbol, OVERVIEW)
        return stale.payload if stale is not None else None

    async def _refresh_quote(self, symbol: str) -> Sourced:
        quote = await self._try_live(symbol, QUOTE, self._fetch_quote)
        if quote is not None:
            self.store.set(symbol, QUOTE, quote, quote_ttl(self.settings))
            if self.snapshots is not None:
                await self.snapshots.save(quote)
            logger.info(f"Live quote for {symbol}: ${quote.price}")
            return Sourced(DataSource.LIVE, quote)

        stale = self.store.get(symbol, QUOTE)
        if stale is not None:
            logger.info(f"Serving stale quote for {symbol}")
            return Sourced(DataSource.STALE, stale.payload.model_copy(update={"source": DataSource.STALE}))

        if self.snapshots is not None:
            snapshot = await self.snapshots.load(symbol)
            if snapshot is not None:
                logger.info(f"Serving persisted quote snapshot for {symbol}")
                return Sourced(DataSource.STALE, snapshot)

        logger.info(f"Serving synthetic quote for {symbol}")
        return Sourced(DataSource.SYNTHETIC, self._synthetic_quote(symbol))

    def _synthetic_quote(self, symbol: str) -> Quote:
        cached = self._synthetic.get_fresh(symbol, QUOTE)
        if cached is not None:
            return cached.payload
        quote = self.generator.synthetic_quote(self.catalog.lookup(symbol))
        self._synthetic.set(symbol, QUOTE, quote, self.settings.synthetic_cache_ttl)
        return quote

    # --- Charts ---

    async def get_stock_chart_data(self, symbol: str, timeframe: str = DEFAULT_TIMEFRAME) -> list[SeriesPoint]:
        return (await self.get_stock_chart_data_sourced(symbol, timeframe)).payload

    async def get_stock_chart_data_sourced(self, symbol: str, timeframe: str = DEFAULT_TIMEFRAME) -> Sourced:
        symbol = normalize_symbol(symbol)
        tf = get_timeframe(timeframe)
        kind = chart_kind(tf)
        fresh = self.store.get_fresh(symbol, kind)
        if fresh is not None:
            logger.debug(f"Cache hit: {tf.token} chart for {symbol}")
            return Sourced(DataSource.LIVE, fresh.payload)
        return await self._coalesce(symbol, kind, lambda: self._refresh_chart(symbol, tf))

    async def _refresh_chart(self, symbol: str, tf: Timeframe) -> Sourced:
        kind = chart_kind(tf)
        bars = await self._try_live(symbol, kind, lambda s: self.client.fetch_series(s, tf.token))
        if bars:
            self.store.set(symbol, kind, bars, chart_ttl(self.settings, tf))
            return Sourced(DataSource.LIVE, bars)
        if bars is not None:
            logger.info(f"Upstream has no {tf.token} data for {symbol}")

        stale = self.store.get(symbol, kind)
        if stale is not None:
            logger.info(f"Serving stale {tf.token} chart for {symbol}")
            return Sourced(DataSource.STALE, stale.payload)

        logger.info(f"Serving synthetic {tf.token} chart for {symbol}")
        return Sourced(DataSource.SYNTHETIC, self._synthetic_chart(symbol, tf))

    def _synthetic_chart(self, symbol: str, tf: Timeframe) -> list[SeriesPoint]:
        kind = chart_kind(tf)
        cached = self._synthetic.get_fresh(symbol, kind)
        if cached is not None:
            return cached.payload
        bars = self.generator.synthetic_series(self.catalog.lookup(symbol), tf.token, self._reference_price(symbol))
        self._synthetic.set(symbol, kind, bars, self.settings.synthetic_cache_ttl)
        return bars

    def _reference_price(self, symbol: str) -> float | None:
        """Last known price for the symbol, real or synthetic, so a synthetic chart ends where the quote is."""
        for store in (self.store, self._synthetic):
            entry = store.get(symbol, QUOTE)
            if entry is not None:
                return entry.payload.price
        return None

    # --- Shared refresh machinery ---

    async def _try_live(self, symbol: str, kind: str, fetch: Callable[[str], Awaitable[Any]]):
        """One live attempt, or None when the upstream is unavailable, denied or failing."""
        if not self.client.enabled:
            logger.debug(f"No API key configured, skipping live {kind} for {symbol}")
            return None
        if not is_valid_symbol(symbol):
            logger.info(f"Not a tradable symbol, skipping live {kind} for '{symbol}'")
            return None
        if not self.governor.try_acquire():
            logger.warning(f"Rate limit reached, skipping live {kind} for {symbol}")
            return None
        try:
            return await fetch(symbol)
        except UpstreamError as e:
            logger.warning(f"Live {kind} fetch failed for {symbol}: {e}")
        except Exception:
            logger.exception(f"Unexpected error fetching {kind} for {symbol}")
        return None

    async def _coalesce(self, symbol: str, kind: str, refresh: Callable[[], Awaitable[Sourced]]) -> Sourced:
        key = (symbol, kind)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(refresh())
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.debug(f"Joining in-flight {kind} refresh for {symbol}")
        # Shielded so one cancelled caller does not cancel the refresh for everyone else
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Future):
        if self._inflight.get(key) is task:
            del self._inflight[key]

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    # --- Warm-up and background refresh ---

    async def initialize_stock_cache(self, symbols: list[str] | None = None) -> WarmupReport:
        """Warm the quote cache for a watchlist. Symbols that cannot be served live are logged, not raised."""
        symbols = [normalize_symbol(s) for s in (symbols or POPULAR_SYMBOLS)]
        report = WarmupReport(requested=len(symbols))
        batch_size = max(self.settings.warmup_batch_size, 1)
        logger.info(f"Warming stock cache for {len(symbols)} symbols")

        for start in range(0, len(symbols), batch_size):
            batch = symbols[start:start + batch_size]
            results = await asyncio.gather(
                *(self.get_stock_data_sourced(symbol) for symbol in batch),
                return_exceptions=True,
            )
            for symbol, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.warning(f"Warm-up failed for {symbol}: {result}")
                    report.not_live.append(symbol)
                    continue
                if result.source == DataSource.LIVE:
                    report.live += 1
                    continue
                if result.source == DataSource.STALE:
                    report.stale += 1
                else:
                    report.synthetic += 1
                report.not_live.append(symbol)

            if self.settings.warmup_batch_delay > 0 and start + batch_size < len(symbols):
                await asyncio.sleep(self.settings.warmup_batch_delay)

        logger.info(
            f"Stock cache warm-up complete: {report.live} live, {report.stale} stale, "
            f"{report.synthetic} synthetic"
        )
        return report

    initialize_stock_data = initialize_stock_cache

    async def refresh_expiring_quotes(self, within: float, limit: int) -> list[str]:
        """Re-fetch up to `limit` cached quotes that are still fresh but expire within `within` seconds.

        A quote whose refresh failed goes stale and is skipped by later cycles until a request touches it.
        """
        due = [s for s in self.store.expiring(QUOTE, within) if (s, QUOTE) not in self._inflight][:limit]
        for symbol in due:
            await self._coalesce(symbol, QUOTE, lambda s=symbol: self._refresh_quote(s))
        return due
