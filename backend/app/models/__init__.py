from app.models.cache import StockQuoteCache

__all__ = [
    "StockQuoteCache",
]
