"""
Synthetic market data, the fallback of last resort.

Generates a bounded random walk that ends at a seed price, so charts look
continuous and a synthetic quote agrees with its own intraday series. Values
vary between calls; OHLC ordering, strictly increasing timestamps and
change/percent sign agreement always hold. Nothing here touches the network
or shared state, and nothing here raises for a valid record.
"""
from datetime import datetime, time, timedelta, timezone

import numpy as np

from app.schemas.stock import AssetClass, DataSource, Quote, SeriesPoint, SymbolRecord
from app.services.market_hours import (
    last_completed_session,
    session_open,
    trading_days_back,
    trading_days_since,
)
from app.services.symbol_catalog import DEFAULT_BASE_PRICE
from app.services.timeframes import Timeframe, get_timeframe


MAX_STEP = 0.02  # max close-to-close move per bar
MAX_WICK = 0.01

# Per-bar volatility relative to a record's daily volatility
_BAR_SCALE = {
    "5min": 0.12,
    "60min": 0.35,
    "daily": 1.0,
    "weekly": 2.0,
}
_BAR_VOLUME = {
    "5min": (20_000, 600_000),
    "60min": (200_000, 5_000_000),
    "daily": (1_000_000, 50_000_000),
    "weekly": (5_000_000, 250_000_000),
}
_INTRADAY_STEP = {
    "5min": timedelta(minutes=5),
    "60min": timedelta(hours=1),
}


def _floor_to(ts: datetime, step: timedelta) -> datetime:
    seconds = int(step.total_seconds())
    epoch = int(ts.timestamp())
    return datetime.fromtimestamp(epoch - epoch % seconds, tz=timezone.utc)


class SyntheticDataGenerator:
    def __init__(self, rng: np.random.Generator | None = None, clock=None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # --- Timestamps ---

    def _timestamps(self, tf: Timeframe, asset_class: AssetClass, now: datetime) -> list[datetime]:
        crypto = asset_class == AssetClass.CRYPTO
        session = last_completed_session(now)

        if tf.bar == "5min":
            step = _INTRADAY_STEP["5min"]
            if crypto:
                end = _floor_to(now, step)
                return [end - step * i for i in range(tf.synthetic_bars - 1, -1, -1)]
            start = session_open(session)
            return [start + step * i for i in range(tf.synthetic_bars)]

        if tf.bar == "60min":
            step = _INTRADAY_STEP["60min"]
            if crypto:
                end = _floor_to(now, step)
                return [end - step * i for i in range(7 * 24 - 1, -1, -1)]
            per_session = 7
            days = trading_days_back(session, max(tf.synthetic_bars // per_session, 1))
            return [session_open(d) + step * h for d in days for h in range(per_session)]

        if tf.bar == "weekly":
            end = datetime.combine(session, time(0), tzinfo=timezone.utc)
            return [end - timedelta(weeks=i) for i in range(tf.synthetic_bars - 1, -1, -1)]

        # Daily bars
        if crypto:
            end = datetime.combine(now.date(), time(0), tzinfo=timezone.utc)
            if tf.token == "YTD":
                count = (now.date() - now.date().replace(month=1, day=1)).days + 1
            else:
                count = tf.lookback_days or tf.synthetic_bars
            return [end - timedelta(days=i) for i in range(count - 1, -1, -1)]

        if tf.token == "YTD":
            count = max(trading_days_since(session.replace(month=1, day=1), session), 1)
        else:
            count = tf.synthetic_bars
        return [datetime.combine(d, time(0), tzinfo=timezone.utc) for d in trading_days_back(session, count)]

    # --- Series ---

    def synthetic_series(self, record: SymbolRecord, timeframe: str,
                         base_price: float | None = None) -> list[SeriesPoint]:
        """Random-walk OHLC bars for the timeframe whose last close equals ``base_price``."""
        tf = get_timeframe(timeframe)
        base = base_price if base_price and base_price > 0 else (record.base_price or DEFAULT_BASE_PRICE)
        stamps = self._timestamps(tf, record.asset_class, self._clock())
        n = len(stamps)

        sigma = max(record.volatility, 0.0) * _BAR_SCALE[tf.bar] / 2
        steps = np.clip(self.rng.normal(0.0, sigma, n), -MAX_STEP, MAX_STEP)

        closes = np.cumprod(1.0 + steps)
        closes = closes * (base / closes[-1])
        opens = np.empty(n)
        opens[1:] = closes[:-1]
        opens[0] = closes[0] / (1.0 + steps[0])

        wick = min(sigma, MAX_WICK)
        highs = np.maximum(opens, closes) * (1.0 + self.rng.uniform(0.0, wick, n))
        lows = np.minimum(opens, closes) * (1.0 - self.rng.uniform(0.0, wick, n))

        # Rounding and flooring are monotonic, so low <= open/close <= high survives them
        decimals = 2 if base >= 1 else 6
        floor = 10.0 ** -decimals
        opens, highs, lows, closes = (
            np.maximum(np.round(values, decimals), floor) for values in (opens, highs, lows, closes)
        )
        lo_vol, hi_vol = _BAR_VOLUME[tf.bar]
        volumes = self.rng.integers(lo_vol, hi_vol, n)

        return [
            SeriesPoint(
                timestamp=stamps[i],
                open=float(opens[i]),
                high=float(highs[i]),
                low=float(lows[i]),
                close=float(closes[i]),
                volume=int(volumes[i]),
            )
            for i in range(n)
        ]

    # --- Quotes ---

    def synthetic_quote(self, record: SymbolRecord) -> Quote:
        """A quote derived from a fresh synthetic trading day around the record's seed price."""
        seed = record.base_price if record.base_price > 0 else DEFAULT_BASE_PRICE
        base = seed * (1.0 + self.rng.uniform(-0.03, 0.03))
        bars = self.synthetic_series(record, "1D", base)

        price = bars[-1].close
        previous_close = bars[0].open
        decimals = 2 if price >= 1 else 6
        change = round(price - previous_close, decimals)
        change_percent = round(change / previous_close * 100, 4) if previous_close else 0.0
        day_high = max(b.high for b in bars)
        day_low = min(b.low for b in bars)

        market_cap = 0.0
        pe_ratio = 0.0
        if record.known and record.asset_class == AssetClass.EQUITY:
            market_cap = float(round(price * self.rng.integers(100_000_000, 16_000_000_000)))
            pe_ratio = round(float(self.rng.uniform(15, 40)), 2)

        return Quote(
            symbol=record.symbol,
            name=record.name,
            price=price,
            change=change,
            change_percent=change_percent,
            volume=sum(b.volume for b in bars),
            market_cap=market_cap,
            pe_ratio=pe_ratio,
            week52_high=round(day_high * float(self.rng.uniform(1.05, 1.4)), decimals),
            week52_low=round(day_low * float(self.rng.uniform(0.65, 0.95)), decimals),
            sector=record.sector,
            industry=record.industry,
            description=f"{record.name} is a publicly traded company.",
            asset_class=record.asset_class,
            open=bars[0].open,
            high=day_high,
            low=day_low,
            previous_close=previous_close,
            latest_trading_day=bars[-1].timestamp.date().isoformat(),
            logo=record.logo,
            categories=list(record.categories),
            last_updated=self._clock(),
            source=DataSource.SYNTHETIC,
        )
