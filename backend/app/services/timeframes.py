"""Chart timeframe tokens and how each maps to upstream calls and bar layout."""
from dataclasses import dataclass
from datetime import datetime, timedelta

DEFAULT_TIMEFRAME = "1D"


@dataclass(frozen=True)
class Timeframe:
    token: str
    function: str  # upstream time series function
    interval: str | None  # intraday interval, None for daily/weekly
    outputsize: str | None
    bar: str  # 5min, 60min, daily, weekly
    lookback_days: int | None  # calendar days kept, counted back from the newest bar
    synthetic_bars: int
    intraday: bool = False


TIMEFRAMES: dict[str, Timeframe] = {
    "1D": Timeframe("1D", "TIME_SERIES_INTRADAY", "5min", "compact", "5min", None, 78, intraday=True),
    "1W": Timeframe("1W", "TIME_SERIES_INTRADAY", "60min", "compact", "60min", 7, 35, intraday=True),
    "1M": Timeframe("1M", "TIME_SERIES_DAILY", None, "compact", "daily", 30, 21),
    "3M": Timeframe("3M", "TIME_SERIES_DAILY", None, "compact", "daily", 91, 63),
    "6M": Timeframe("6M", "TIME_SERIES_DAILY", None, "full", "daily", 182, 126),
    "1Y": Timeframe("1Y", "TIME_SERIES_DAILY", None, "full", "daily", 365, 252),
    "YTD": Timeframe("YTD", "TIME_SERIES_DAILY", None, "full", "daily", None, 0),
    "MAX": Timeframe("MAX", "TIME_SERIES_WEEKLY", None, None, "weekly", None, 260),
}


def is_valid_timeframe(token: str | None) -> bool:
    return bool(token) and token.strip().upper() in TIMEFRAMES


def get_timeframe(token: str | None) -> Timeframe:
    """Resolve a timeframe token; unknown or empty tokens resolve to 1D."""
    if not token:
        return TIMEFRAMES[DEFAULT_TIMEFRAME]
    return TIMEFRAMES.get(token.strip().upper(), TIMEFRAMES[DEFAULT_TIMEFRAME])


def window_start(timeframe: Timeframe, newest: datetime) -> datetime | None:
    """Earliest timestamp kept for the timeframe, relative to the newest bar.

    Returns None when the whole payload is kept. For 1D the window is the
    newest bar's calendar day (one trading session).
    """
    if timeframe.token == "1D":
        return newest.replace(hour=0, minute=0, second=0, microsecond=0)
    if timeframe.token == "YTD":
        return newest.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    if timeframe.lookback_days is None:
        return None
    return newest - timedelta(days=timeframe.lookback_days)
