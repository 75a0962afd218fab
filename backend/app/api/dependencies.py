from functools import lru_cache

from app.config import get_settings
from app.services.search_index import SearchIndex
from app.services.stock_data import StockDataService


@lru_cache
def get_stock_service() -> StockDataService:
    """Process-wide service instance: one cache and one rate budget for all requests."""
    return StockDataService.from_settings(get_settings())


@lru_cache
def get_search_index() -> SearchIndex:
    settings = get_settings()
    service = get_stock_service()
    return SearchIndex(
        catalog=service.catalog,
        client=service.client,
        governor=service.governor,
        limit=settings.search_result_limit,
        sparse_threshold=settings.search_sparse_threshold,
        cache_ttl=settings.search_cache_ttl,
    )
