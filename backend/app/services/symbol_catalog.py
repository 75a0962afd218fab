"""
Static reference table of tradable symbols.

Supplies display metadata (name, sector, logo) for quotes, seed prices for
synthetic data, and the local side of symbol search. Loaded once at import,
never mutated.
"""
import re

from app.schemas.stock import AssetClass, Logo, SymbolRecord

DEFAULT_BASE_PRICE = 100.0
DEFAULT_VOLATILITY = 0.025

_FALLBACK_COLORS = ["#0077B6", "#F7B104", "#0fae37", "#9C27B0", "#d93025", "#3F51B5"]
_FALLBACK_EMOJIS = ["📈", "💰", "🚀", "⭐", "💎", "🔥"]

_VOLATILITY = {
    AssetClass.CRYPTO: 0.05,
    AssetClass.ETF: 0.015,
    AssetClass.EQUITY: DEFAULT_VOLATILITY,
}
_HIGH_BETA = {"TSLA", "NVDA", "AMD", "COIN"}

# symbol, name, asset class, sector, industry, base price, logo background, emoji, categories
_CATALOG_ROWS = [
    ("AAPL", "Apple Inc.", AssetClass.EQUITY, "Technology", "Consumer Electronics", 175.43, "#000000", "🍎", ("popular", "tech")),
    ("MSFT", "Microsoft Corporation", AssetClass.EQUITY, "Technology", "Software", 384.52, "#00a4ef", "💻", ("popular", "tech")),
    ("GOOGL", "Alphabet Inc.", AssetClass.EQUITY, "Technology", "Internet Services", 142.87, "#4285F4", "🔍", ("popular", "tech")),
    ("AMZN", "Amazon.com Inc.", AssetClass.EQUITY, "Consumer Discretionary", "Internet Retail", 147.98, "#ff9900", "📦", ("popular", "tech")),
    ("TSLA", "Tesla Inc.", AssetClass.EQUITY, "Consumer Discretionary", "Automobiles", 248.42, "#cc0000", "🚗", ("popular", "automotive")),
    ("META", "Meta Platforms Inc.", AssetClass.EQUITY, "Technology", "Internet Services", 324.76, "#0668E1", "🌐", ("popular", "tech")),
    ("NVDA", "NVIDIA Corporation", AssetClass.EQUITY, "Technology", "Semiconductors", 481.23, "#76b900", "🎮", ("popular", "tech", "ai")),
    ("NFLX", "Netflix Inc.", AssetClass.EQUITY, "Communication Services", "Entertainment", 456.78, "#E50914", "🎬", ("popular", "entertainment")),
    ("AMD", "Advanced Micro Devices Inc.", AssetClass.EQUITY, "Technology", "Semiconductors", 142.34, "#ED1C24", "⚡", ("tech", "semiconductors")),
    ("INTC", "Intel Corporation", AssetClass.EQUITY, "Technology", "Semiconductors", 43.21, "#0071C5", "🔧", ("tech", "semiconductors")),
    ("CRM", "Salesforce Inc.", AssetClass.EQUITY, "Technology", "Software", 267.89, None, None, ("tech",)),
    ("ORCL", "Oracle Corporation", AssetClass.EQUITY, "Technology", "Software", 112.45, None, None, ("tech",)),
    ("ADBE", "Adobe Inc.", AssetClass.EQUITY, "Technology", "Software", 523.67, None, None, ("tech",)),
    ("PYPL", "PayPal Holdings Inc.", AssetClass.EQUITY, "Financial Services", "Payments", 67.89, None, None, ("fintech",)),
    ("UBER", "Uber Technologies Inc.", AssetClass.EQUITY, "Technology", "Ride Sharing", 56.78, None, None, ("tech",)),
    ("SPOT", "Spotify Technology S.A.", AssetClass.EQUITY, "Communication Services", "Entertainment", 234.56, None, None, ("entertainment",)),
    ("JPM", "JPMorgan Chase & Co.", AssetClass.EQUITY, "Financial Services", "Banks", 156.78, None, None, ("finance",)),
    ("JNJ", "Johnson & Johnson", AssetClass.EQUITY, "Healthcare", "Pharmaceuticals", 167.89, None, None, ("healthcare",)),
    ("PG", "Procter & Gamble Co.", AssetClass.EQUITY, "Consumer Staples", "Household Products", 145.67, None, None, ("consumer",)),
    ("KO", "The Coca-Cola Company", AssetClass.EQUITY, "Consumer Staples", "Beverages", 58.90, None, None, ("consumer",)),
    ("DIS", "The Walt Disney Company", AssetClass.EQUITY, "Communication Services", "Entertainment", 91.20, None, None, ("entertainment",)),
    ("WMT", "Walmart Inc.", AssetClass.EQUITY, "Consumer Staples", "Discount Stores", 160.15, None, None, ("consumer",)),
    ("V", "Visa Inc.", AssetClass.EQUITY, "Financial Services", "Payments", 258.40, None, None, ("finance", "fintech")),
    ("COIN", "Coinbase Global Inc.", AssetClass.EQUITY, "Financial Services", "Crypto Exchanges", 155.30, None, None, ("fintech", "crypto")),
    ("BTC", "Bitcoin", AssetClass.CRYPTO, "Cryptocurrency", "Digital Currency", 65000.00, "#F7931A", "₿", ("crypto",)),
    ("ETH", "Ethereum", AssetClass.CRYPTO, "Cryptocurrency", "Digital Currency", 3500.00, "#627EEA", "💠", ("crypto",)),
    ("SOL", "Solana", AssetClass.CRYPTO, "Cryptocurrency", "Digital Currency", 150.00, "#9945FF", "☀️", ("crypto",)),
    ("LTC", "Litecoin", AssetClass.CRYPTO, "Cryptocurrency", "Digital Currency", 72.50, "#345D9D", "🪙", ("crypto",)),
    ("DOGE", "Dogecoin", AssetClass.CRYPTO, "Cryptocurrency", "Digital Currency", 0.16, "#C2A633", "🐕", ("crypto",)),
    ("SPY", "SPDR S&P 500 ETF Trust", AssetClass.ETF, "Index Fund", "Large Blend", 450.10, None, None, ("etf", "index")),
    ("QQQ", "Invesco QQQ Trust", AssetClass.ETF, "Index Fund", "Large Growth", 385.60, None, None, ("etf", "index", "tech")),
    ("VOO", "Vanguard S&P 500 ETF", AssetClass.ETF, "Index Fund", "Large Blend", 413.75, None, None, ("etf", "index")),
    ("XLE", "Energy Select Sector SPDR Fund", AssetClass.ETF, "Energy", "Sector Fund", 88.40, None, None, ("etf", "sector")),
    ("XLK", "Technology Select Sector SPDR Fund", AssetClass.ETF, "Technology", "Sector Fund", 195.30, None, None, ("etf", "sector", "tech")),
    ("XLF", "Financial Select Sector SPDR Fund", AssetClass.ETF, "Financial Services", "Sector Fund", 38.90, None, None, ("etf", "sector")),
    ("ARKK", "ARK Innovation ETF", AssetClass.ETF, "Technology", "Thematic Fund", 48.25, None, None, ("etf", "tech")),
]

# Watchlist warmed at startup
POPULAR_SYMBOLS = [
    "AAPL", "MSFT", "GOOGL", "AMZN", "TSLA", "META", "NVDA", "NFLX", "AMD", "INTC",
    "CRM", "ORCL", "ADBE", "PYPL", "UBER", "SPOT", "JPM", "JNJ", "PG", "KO",
]

_SYMBOL_RE = re.compile(r"^[A-Z0-9.\-]{1,10}$")


def normalize_symbol(symbol: str) -> str:
    return (symbol or "").strip().upper()


def is_valid_symbol(symbol: str) -> bool:
    """Tickers are 1-10 chars of letters, digits, dots and dashes (AAPL, BRK.B, BTC)."""
    return bool(_SYMBOL_RE.match(symbol or ""))


def _symbol_hash(symbol: str) -> int:
    return sum(ord(ch) for ch in symbol)


def make_logo(symbol: str, background: str | None = None, emoji: str | None = None) -> Logo:
    h = _symbol_hash(symbol)
    return Logo(
        background=background or _FALLBACK_COLORS[h % len(_FALLBACK_COLORS)],
        text=symbol[:2],
        emoji=emoji or _FALLBACK_EMOJIS[h % len(_FALLBACK_EMOJIS)],
    )


def _volatility_for(symbol: str, asset_class: AssetClass) -> float:
    if symbol in _HIGH_BETA:
        return 0.04
    return _VOLATILITY.get(asset_class, DEFAULT_VOLATILITY)


class SymbolCatalog:
    def __init__(self, records: list[SymbolRecord]):
        self._records = {r.symbol: r for r in records}

    @classmethod
    def from_rows(cls, rows) -> "SymbolCatalog":
        records = []
        for symbol, name, asset_class, sector, industry, price, background, emoji, categories in rows:
            records.append(SymbolRecord(
                symbol=symbol,
                name=name,
                asset_class=asset_class,
                sector=sector,
                industry=industry,
                base_price=price,
                volatility=_volatility_for(symbol, asset_class),
                logo=make_logo(symbol, background, emoji),
                categories=categories,
            ))
        return cls(records)

    def __contains__(self, symbol: str) -> bool:
        return normalize_symbol(symbol) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, symbol: str) -> SymbolRecord | None:
        return self._records.get(normalize_symbol(symbol))

    def lookup(self, symbol: str) -> SymbolRecord:
        """Catalog record for the symbol, or a generic unknown-issuer record."""
        return self.get(symbol) or self.unknown_record(symbol)

    def records(self) -> list[SymbolRecord]:
        return list(self._records.values())

    @staticmethod
    def unknown_record(symbol: str) -> SymbolRecord:
        symbol = normalize_symbol(symbol) or "UNKNOWN"
        return SymbolRecord(
            symbol=symbol,
            name=f"{symbol} (unknown issuer)",
            base_price=DEFAULT_BASE_PRICE,
            volatility=DEFAULT_VOLATILITY,
            logo=make_logo(symbol),
            known=False,
        )


DEFAULT_CATALOG = SymbolCatalog.from_rows(_CATALOG_ROWS)
