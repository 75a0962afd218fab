"""API request validation utilities."""
from fastapi import HTTPException

from app.services.symbol_catalog import is_valid_symbol, normalize_symbol
from app.services.timeframes import TIMEFRAMES

MAX_BATCH_SYMBOLS = 50


def validate_ticker(ticker: str) -> str:
    """Validate and normalize ticker symbol.

    Args:
        ticker: Raw ticker string from request

    Returns:
        Validated and normalized ticker (uppercase, stripped)

    Raises:
        HTTPException: If ticker is invalid
    """
    if not ticker or not ticker.strip():
        raise HTTPException(status_code=400, detail="Ticker cannot be empty")

    ticker = normalize_symbol(ticker)

    # Examples: AAPL, BRK.B, SPY, BTC
    if not is_valid_symbol(ticker):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid ticker format: '{ticker}'. Use 1-10 alphanumeric characters."
        )

    return ticker


def validate_timeframe(timeframe: str) -> str:
    token = (timeframe or "").strip().upper()
    if token not in TIMEFRAMES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid timeframe: '{timeframe}'. Use one of {', '.join(TIMEFRAMES)}."
        )
    return token


def parse_symbol_list(raw: str) -> list[str]:
    """Comma-separated tickers, validated, in request order. Duplicates are kept."""
    symbols = [validate_ticker(part) for part in raw.split(",") if part.strip()]
    if not symbols:
        raise HTTPException(status_code=400, detail="At least one symbol is required")
    if len(symbols) > MAX_BATCH_SYMBOLS:
        raise HTTPException(
            status_code=400,
            detail=f"Too many symbols: {len(symbols)}. Maximum is {MAX_BATCH_SYMBOLS}."
        )
    return symbols
