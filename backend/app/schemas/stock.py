from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AssetClass(str, Enum):
    EQUITY = "equity"
    CRYPTO = "crypto"
    ETF = "etf"


class DataSource(str, Enum):
    LIVE = "live"
    STALE = "stale"
    SYNTHETIC = "synthetic"


class Logo(CamelModel):
    background: str
    color: str = "#FFFFFF"
    text: str
    emoji: str


class SymbolRecord(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    symbol: str
    name: str
    asset_class: AssetClass = AssetClass.EQUITY
    sector: str = "Unknown"
    industry: str = "Unknown"
    base_price: float = 100.0  # seed for synthetic data
    volatility: float = 0.025  # typical daily move as a fraction
    logo: Logo
    categories: tuple[str, ...] = ("stocks",)
    known: bool = True


class Quote(CamelModel):
    symbol: str
    name: str
    price: float = Field(ge=0)
    change: float = 0
    change_percent: float = 0
    volume: int = Field(default=0, ge=0)
    market_cap: float = Field(default=0, ge=0)  # 0 = unknown
    pe_ratio: float = Field(default=0, ge=0)  # 0 = unknown / not applicable
    week52_high: float = 0
    week52_low: float = 0
    sector: str = "Unknown"
    industry: str = "Unknown"
    description: str = ""
    asset_class: AssetClass = AssetClass.EQUITY
    open: float = 0
    high: float = 0
    low: float = 0
    previous_close: float = 0
    latest_trading_day: str = ""
    logo: Logo | None = None
    categories: list[str] = []
    last_updated: datetime
    source: DataSource = DataSource.LIVE


class SeriesPoint(CamelModel):
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


class SearchResult(CamelModel):
    symbol: str
    name: str
    asset_class: AssetClass = AssetClass.EQUITY
    match_score: float = 0
    region: str = ""
    currency: str = ""
    source: str = "local"  # local, upstream


class ChartSummary(CamelModel):
    change: float = 0
    change_percent: float = 0
    min: float = 0
    max: float = 0


class WarmupReport(CamelModel):
    requested: int = 0
    live: int = 0
    stale: int = 0
    synthetic: int = 0
    not_live: list[str] = []


# --- Response envelopes ---


class StockResponse(CamelModel):
    success: bool = True
    data: Quote


class StockListResponse(CamelModel):
    success: bool = True
    data: list[Quote]


class PriceResponse(CamelModel):
    success: bool = True
    symbol: str
    price: float
    source: DataSource


class ChartResponse(CamelModel):
    success: bool = True
    data: list[SeriesPoint]
    timeframe: str
    source: DataSource
    summary: ChartSummary


class SearchResponse(CamelModel):
    success: bool = True
    data: list[SearchResult]


class InitResponse(CamelModel):
    success: bool = True
    message: str
    report: WarmupReport | None = None


class RateLimitStatus(CamelModel):
    per_minute: int
    per_day: int
    used_minute: int
    used_day: int
    retry_after: float = 0  # seconds until the next live call is allowed


class ApiStatusResponse(CamelModel):
    success: bool = True
    has_api_key: bool
    message: str
    rate_limit: RateLimitStatus
