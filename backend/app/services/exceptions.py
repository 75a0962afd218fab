"""Error types for the market-data layer.

Only ``InvalidQuery`` is meant to reach API callers. ``UpstreamError`` is
raised by the upstream client and absorbed by the stock data service, which
falls back to cached or synthetic data instead.
"""


class StockDataError(Exception):
    pass


class UpstreamError(StockDataError):
    def __init__(self, message: str, symbol: str = "", kind: str = "", cause: Exception | None = None,
                 rate_limited: bool = False):
        super().__init__(message)
        self.symbol = symbol
        self.kind = kind
        self.cause = cause
        self.rate_limited = rate_limited

    def __str__(self) -> str:
        base = super().__str__()
        if self.symbol or self.kind:
            return f"{base} (symbol={self.symbol or '-'}, kind={self.kind or '-'})"
        return base


class InvalidQuery(StockDataError):
    def __init__(self, message: str, query: str | None = None):
        super().__init__(message)
        self.query = query
