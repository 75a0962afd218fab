"""
Alpha Vantage client: quotes, company overviews, OHLC time series and symbol search.

Every call is bounded by a total timeout and raises ``UpstreamError`` on
non-200 responses, malformed payloads, upstream throttling notes and
timeouts. Nothing is caught here; the stock data service decides what to
serve instead. Rate accounting also happens in the caller, before each call.
"""
import asyncio
import logging
import math
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from app.schemas.stock import AssetClass, Quote, SearchResult, SeriesPoint
from app.services.exceptions import UpstreamError
from app.services.symbol_catalog import DEFAULT_CATALOG, SymbolCatalog, normalize_symbol
from app.services.timeframes import Timeframe, get_timeframe, window_start

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.alphavantage.co/query"
HEADERS = {
    "Accept": "application/json",
    "User-Agent": "SimVest/1.0",
}

_SEARCH_TYPES = {
    "equity": AssetClass.EQUITY,
    "etf": AssetClass.ETF,
    "cryptocurrency": AssetClass.CRYPTO,
    "crypto": AssetClass.CRYPTO,
}


def _to_float(value) -> float | None:
    """Parse an upstream numeric string; 'None', '-', blanks and NaN become None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
        if value in ("", "-", "None", "null"):
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _to_int(value) -> int:
    result = _to_float(value)
    return max(int(result), 0) if result is not None else 0


def _exchange_tz(meta: dict):
    name = next((v for k, v in meta.items() if k.endswith("Time Zone")), None)
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown upstream time zone '{name}', assuming UTC")
        return timezone.utc


def _parse_timestamp(raw: str, tz) -> datetime | None:
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=tz)
        except (TypeError, ValueError):
            continue
    return None


def _parse_bars(raw: dict, tz) -> list[SeriesPoint]:
    """Parse a time series mapping, dropping malformed bars and sorting ascending."""
    bars = []
    for stamp, values in raw.items():
        if not isinstance(values, dict):
            continue
        ts = _parse_timestamp(stamp, tz)
        o = _to_float(values.get("1. open"))
        h = _to_float(values.get("2. high"))
        l = _to_float(values.get("3. low"))
        c = _to_float(values.get("4. close"))
        if ts is None or o is None or h is None or l is None or c is None:
            continue
        if h < l or not (l <= o <= h) or not (l <= c <= h) or l < 0:
            continue
        bars.append(SeriesPoint(
            timestamp=ts,
            open=o,
            high=h,
            low=l,
            close=c,
            volume=_to_int(values.get("5. volume")),
        ))
    bars.sort(key=lambda b: b.timestamp)
    return bars


def _trim(bars: list[SeriesPoint], timeframe: Timeframe) -> list[SeriesPoint]:
    if not bars:
        return bars
    start = window_start(timeframe, bars[-1].timestamp)
    if start is not None:
        bars = [b for b in bars if b.timestamp >= start]
    return [b.model_copy(update={"timestamp": b.timestamp.astimezone(timezone.utc)}) for b in bars]


def _parse_global_quote(raw: dict) -> dict:
    price = _to_float(raw.get("05. price")) or 0.0
    prev_close = _to_float(raw.get("08. previous close")) or 0.0
    change = _to_float(raw.get("09. change"))
    change_pct = _to_float(raw.get("10. change percent"))

    # Derive change from the previous close when possible so sign and percent agree
    if prev_close > 0:
        change = round(price - prev_close, 4)
        change_pct = round(change / prev_close * 100, 4)
    else:
        change = change or 0.0
        change_pct = change_pct or 0.0
        if change_pct and change and (change_pct > 0) != (change > 0):
            change_pct = -change_pct
        prev_close = round(price - change, 4) if price - change > 0 else 0.0

    return {
        "symbol": raw.get("01. symbol", ""),
        "price": price,
        "open": _to_float(raw.get("02. open")) or 0.0,
        "high": _to_float(raw.get("03. high")) or 0.0,
        "low": _to_float(raw.get("04. low")) or 0.0,
        "volume": _to_int(raw.get("06. volume")),
        "latest_trading_day": raw.get("07. latest trading day") or "",
        "previous_close": prev_close,
        "change": change,
        "change_percent": change_pct,
    }


class AlphaVantageClient:
    def __init__(self, api_key: str = "", base_url: str = DEFAULT_BASE_URL, timeout: float = 5.0,
                 catalog: SymbolCatalog = DEFAULT_CATALOG, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = (api_key or "").strip()
        self.base_url = base_url
        self.timeout = timeout
        self.catalog = catalog
        self.transport = transport
        self.enabled = bool(self.api_key)

    async def _send(self, params: dict) -> httpx.Response:
        async with httpx.AsyncClient(headers=HEADERS, timeout=self.timeout, transport=self.transport) as client:
            return await client.get(self.base_url, params=params)

    async def _get(self, params: dict, symbol: str = "", kind: str = "") -> dict:
        if not self.enabled:
            raise UpstreamError("Alpha Vantage API key is not configured", symbol, kind)

        function = params.get("function", "")
        try:
            resp = await asyncio.wait_for(self._send({**params, "apikey": self.api_key}), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamError(f"Alpha Vantage {function} timed out after {self.timeout}s", symbol, kind, e) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Alpha Vantage {function} request failed: {type(e).__name__}", symbol, kind, e) from e

        if resp.status_code != 200:
            raise UpstreamError(f"Alpha Vantage {function} returned {resp.status_code}", symbol, kind)
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"Alpha Vantage {function} returned invalid JSON", symbol, kind, e) from e
        if not isinstance(data, dict):
            raise UpstreamError(f"Alpha Vantage {function} returned an unexpected payload", symbol, kind)

        if data.get("Error Message"):
            raise UpstreamError(f"Alpha Vantage error: {data['Error Message']}", symbol, kind)
        note = data.get("Note") or data.get("Information")
        if note:
            raise UpstreamError(f"Alpha Vantage limit: {note}", symbol, kind, rate_limited=True)
        return data

    async def fetch_quote(self, symbol: str) -> Quote:
        symbol = normalize_symbol(symbol)
        data = await self._get({"function": "GLOBAL_QUOTE", "symbol": symbol}, symbol, "quote")
        raw = data.get("Global Quote")
        if not isinstance(raw, dict) or not raw:
            raise UpstreamError("No quote data received", symbol, "quote")

        parsed = _parse_global_quote(raw)
        if parsed["price"] <= 0:
            raise UpstreamError("Quote payload has no usable price", symbol, "quote")

        record = self.catalog.lookup(symbol)
        price = parsed["price"]
        return Quote(
            symbol=symbol,
            name=record.name,
            price=price,
            change=parsed["change"],
            change_percent=parsed["change_percent"],
            volume=parsed["volume"],
            sector=record.sector,
            industry=record.industry,
            description=f"{record.name} is a publicly traded company.",
            asset_class=record.asset_class,
            open=parsed["open"],
            high=max(parsed["high"], price),
            low=min(parsed["low"], price) if parsed["low"] > 0 else price,
            previous_close=parsed["previous_close"],
            latest_trading_day=parsed["latest_trading_day"],
            logo=record.logo,
            categories=list(record.categories),
            last_updated=datetime.now(timezone.utc),
        )

    async def fetch_overview(self, symbol: str) -> dict:
        """Company fundamentals; fields the upstream leaves blank come back as None."""
        symbol = normalize_symbol(symbol)
        data = await self._get({"function": "OVERVIEW", "symbol": symbol}, symbol, "overview")
        if not data.get("Symbol"):
            raise UpstreamError("No overview data received", symbol, "overview")
        return {
            "name": data.get("Name") or None,
            "description": data.get("Description") or None,
            "sector": (data.get("Sector") or "").title() or None,
            "industry": (data.get("Industry") or "").title() or None,
            "market_cap": _to_float(data.get("MarketCapitalization")),
            "pe_ratio": _to_float(data.get("PERatio")),
            "week52_high": _to_float(data.get("52WeekHigh")),
            "week52_low": _to_float(data.get("52WeekLow")),
        }

    async def fetch_series(self, symbol: str, timeframe: str) -> list[SeriesPoint]:
        """OHLC bars for the timeframe, ascending. An empty list means the upstream has no data."""
        symbol = normalize_symbol(symbol)
        tf = get_timeframe(timeframe)
        kind = f"series:{tf.token}"
        params = {"function": tf.function, "symbol": symbol}
        if tf.interval:
            params["interval"] = tf.interval
            params["extended_hours"] = "false"
        if tf.outputsize:
            params["outputsize"] = tf.outputsize

        data = await self._get(params, symbol, kind)
        series_key = next((k for k in data if "Series" in k), None)
        if series_key is None:
            raise UpstreamError("No time series in payload", symbol, kind)
        raw = data[series_key]
        if not isinstance(raw, dict):
            raise UpstreamError("Malformed time series payload", symbol, kind)
        if not raw:
            return []

        bars = _parse_bars(raw, _exchange_tz(data.get("Meta Data") or {}))
        dropped = len(raw) - len(bars)
        if dropped:
            logger.warning(f"Dropped {dropped} malformed bars for {symbol} ({tf.token})")
        return _trim(bars, tf)

    async def search_symbols(self, keywords: str) -> list[SearchResult]:
        data = await self._get({"function": "SYMBOL_SEARCH", "keywords": keywords}, keywords, "search")
        matches = data.get("bestMatches")
        if not isinstance(matches, list):
            raise UpstreamError("Malformed search payload", keywords, "search")

        results = []
        for match in matches:
            if not isinstance(match, dict):
                continue
            symbol = normalize_symbol(match.get("1. symbol", ""))
            if not symbol:
                continue
            results.append(SearchResult(
                symbol=symbol,
                name=match.get("2. name") or symbol,
                asset_class=_SEARCH_TYPES.get((match.get("3. type") or "").lower(), AssetClass.EQUITY),
                match_score=min(max(_to_float(match.get("9. matchScore")) or 0.0, 0.0), 1.0),
                region=match.get("4. region") or "",
                currency=match.get("8. currency") or "",
                source="upstream",
            ))
        return results
