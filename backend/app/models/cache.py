from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Float, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class StockQuoteCache(Base):
    """Last live quote per symbol, served as stale data when the upstream is unavailable."""

    __tablename__ = "stock_quote_cache"

    symbol: Mapped[str] = mapped_column(String(20), primary_key=True)
    current_price: Mapped[float] = mapped_column(Float)
    change_amount: Mapped[float] = mapped_column(Float, default=0)
    change_percent: Mapped[float] = mapped_column(Float, default=0)
    volume: Mapped[int] = mapped_column(BigInteger, default=0)
    market_cap: Mapped[float] = mapped_column(Float, default=0)
    pe_ratio: Mapped[float | None] = mapped_column(Float, nullable=True)
    quote_data: Mapped[dict | None] = mapped_column(JSON)  # full serialized Quote
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
