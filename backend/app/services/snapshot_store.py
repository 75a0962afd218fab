import logging
from datetime import timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.cache import StockQuoteCache
from app.schemas.stock import DataSource, Quote

logger = logging.getLogger(__name__)


class QuoteSnapshotStore:
    """Persists the last live quote per symbol so it survives restarts.

    Read only as a stale fallback. Database errors are logged and reported as
    a miss; they never reach the caller.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def save(self, quote: Quote) -> bool:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(StockQuoteCache).where(StockQuoteCache.symbol == quote.symbol)
                )
                existing = result.scalar_one_or_none()
                values = {
                    "current_price": quote.price,
                    "change_amount": quote.change,
                    "change_percent": quote.change_percent,
                    "volume": quote.volume,
                    "market_cap": quote.market_cap,
                    "pe_ratio": quote.pe_ratio or None,
                    "quote_data": quote.model_dump(mode="json"),
                    "fetched_at": quote.last_updated,
                }
                if existing:
                    for key, value in values.items():
                        setattr(existing, key, value)
                else:
                    db.add(StockQuoteCache(symbol=quote.symbol, **values))
                await db.commit()
            return True
        except Exception as e:
            logger.warning(f"Could not persist quote snapshot for {quote.symbol}: {e}")
            return False

    async def load(self, symbol: str) -> Quote | None:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(StockQuoteCache).where(StockQuoteCache.symbol == symbol)
                )
                cached = result.scalar_one_or_none()
        except Exception as e:
            logger.warning(f"Could not read quote snapshot for {symbol}: {e}")
            return None

        if cached is None or not cached.quote_data:
            return None
        try:
            quote = Quote.model_validate(cached.quote_data)
        except ValueError as e:
            logger.warning(f"Discarding unreadable quote snapshot for {symbol}: {e}")
            return None

        fetched_at = cached.fetched_at
        if fetched_at is not None and fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        return quote.model_copy(update={
            "last_updated": fetched_at or quote.last_updated,
            "source": DataSource.STALE,
        })

