import logging
import time
from typing import Callable

from app.schemas.stock import SearchResult
from app.services.alpha_vantage import AlphaVantageClient
from app.services.exceptions import InvalidQuery, UpstreamError
from app.services.rate_governor import RateGovernor
from app.services.symbol_catalog import DEFAULT_CATALOG, SymbolCatalog

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2

# Local match ranks
EXACT_SYMBOL = 1.0
SYMBOL_PREFIX = 0.8
NAME_PREFIX = 0.6
SYMBOL_SUBSTRING = 0.4
NAME_SUBSTRING = 0.2


def score_match(query: str, symbol: str, name: str) -> float:
    """Rank a catalog entry against a query; 0 means no match."""
    q_upper = query.upper()
    q_lower = query.lower()
    name_lower = name.lower()
    if symbol == q_upper:
        return EXACT_SYMBOL
    if symbol.startswith(q_upper):
        return SYMBOL_PREFIX
    if name_lower.startswith(q_lower) or any(word.startswith(q_lower) for word in name_lower.split()):
        return NAME_PREFIX
    if q_upper in symbol:
        return SYMBOL_SUBSTRING
    if q_lower in name_lower:
        return NAME_SUBSTRING
    return 0.0


class SearchIndex:
    """Symbol search over the local catalog, topped up from the upstream when local hits are sparse."""

    def __init__(
        self,
        catalog: SymbolCatalog = DEFAULT_CATALOG,
        client: AlphaVantageClient | None = None,
        governor: RateGovernor | None = None,
        limit: int = 10,
        sparse_threshold: int = 3,
        cache_ttl: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.catalog = catalog
        self.client = client
        self.governor = governor
        self.limit = limit
        self.sparse_threshold = sparse_threshold
        self.cache_ttl = cache_ttl
        self._clock = clock
        # Upstream results per query: query -> (results, timestamp)
        self._upstream_cache: dict[str, tuple[list[SearchResult], float]] = {}

    def search_local(self, query: str) -> list[SearchResult]:
        scored = []
        for record in self.catalog.records():
            score = score_match(query, record.symbol, record.name)
            if score > 0:
                scored.append(SearchResult(
                    symbol=record.symbol,
                    name=record.name,
                    asset_class=record.asset_class,
                    match_score=score,
                    source="local",
                ))
        scored.sort(key=lambda r: (-r.match_score, len(r.symbol), r.symbol))
        return scored

    async def search(self, query: str | None) -> list[SearchResult]:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            raise InvalidQuery(f"Query must be at least {MIN_QUERY_LENGTH} characters long", query)

        results = self.search_local(query)
        if len(results) < self.sparse_threshold:
            seen = {r.symbol for r in results}
            for match in await self._search_upstream(query):
                # Local entries win: they carry richer display metadata
                if match.symbol not in seen:
                    seen.add(match.symbol)
                    results.append(match)

        logger.info(f"Search '{query}': {len(results)} matches")
        return results[:self.limit]

    async def _search_upstream(self, query: str) -> list[SearchResult]:
        key = query.upper()
        now = self._clock()
        cached = self._upstream_cache.get(key)
        if cached and now - cached[1] < self.cache_ttl:
            return cached[0]

        if self.client is None or not self.client.enabled:
            return []
        if self.governor is not None and not self.governor.try_acquire():
            logger.info(f"Rate limit reached, local-only search for '{query}'")
            return []
        try:
            results = await self.client.search_symbols(query)
        except UpstreamError as e:
            logger.warning(f"Upstream search failed for '{query}': {e}")
            return []

        results.sort(key=lambda r: -r.match_score)
        self._upstream_cache[key] = (results, now)

        # Prune old cache entries periodically
        if len(self._upstream_cache) > 500:
            cutoff = now - self.cache_ttl
            stale = [k for k, v in self._upstream_cache.items() if v[1] < cutoff]
            for k in stale:
                del self._upstream_cache[k]

        return results
