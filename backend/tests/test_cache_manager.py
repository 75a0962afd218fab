"""Tests for the in-process cache store, TTL policy and market-hours helpers."""
from datetime import date, datetime, timezone

from conftest import FakeClock

from app.services.cache_manager import QUOTE, CacheStore, chart_kind, chart_ttl
from app.services.market_hours import (
    is_market_hours,
    last_completed_session,
    seconds_until_market_close,
    trading_days_back,
)
from app.services.timeframes import TIMEFRAMES, get_timeframe, is_valid_timeframe


def test_entry_freshness_follows_ttl():
    clock = FakeClock()
    store = CacheStore(clock=clock)
    store.set("AAPL", QUOTE, "payload", ttl=60)

    assert store.get_fresh("AAPL", QUOTE).payload == "payload"
    clock.advance(60)
    assert store.get_fresh("AAPL", QUOTE) is None
    # expired entries stay available as stale fallback
    assert store.get("AAPL", QUOTE).payload == "payload"


def test_kinds_are_independent():
    store = CacheStore(clock=FakeClock())
    store.set("AAPL", QUOTE, 1, ttl=60)
    store.set("AAPL", chart_kind(TIMEFRAMES["1M"]), 2, ttl=60)

    assert store.get("AAPL", QUOTE).payload == 1
    assert store.get("AAPL", "chart:1M").payload == 2
    assert store.get("AAPL", "chart:1D") is None
    assert len(store) == 2


def test_expiring_lists_oldest_first():
    clock = FakeClock()
    store = CacheStore(clock=clock)
    store.set("MSFT", QUOTE, 1, ttl=60)
    clock.advance(10)
    store.set("AAPL", QUOTE, 1, ttl=60)
    clock.advance(10)
    store.set("NVDA", QUOTE, 1, ttl=600)

    clock.advance(36)  # MSFT 56s old, AAPL 46s old, NVDA 36s old
    assert store.expiring(QUOTE, within=15) == ["MSFT", "AAPL"]
    assert store.expiring(QUOTE, within=1) == []

    clock.advance(10)  # MSFT now stale, AAPL 56s old
    assert store.expiring(QUOTE, within=15) == ["AAPL"]


def test_chart_ttl_for_intraday_is_short(settings):
    assert chart_ttl(settings, TIMEFRAMES["1D"]) == settings.chart_cache_ttl_intraday
    assert chart_ttl(settings, TIMEFRAMES["1Y"]) >= settings.chart_cache_ttl_daily


def test_timeframe_lookup():
    assert get_timeframe("1m").token == "1M"
    assert get_timeframe(None).token == "1D"
    assert get_timeframe("bogus").token == "1D"
    assert is_valid_timeframe("ytd")
    assert not is_valid_timeframe("5Y")


def test_market_hours():
    assert is_market_hours(datetime(2024, 6, 5, 15, 0, tzinfo=timezone.utc))
    assert not is_market_hours(datetime(2024, 6, 5, 22, 0, tzinfo=timezone.utc))
    assert not is_market_hours(datetime(2024, 6, 8, 15, 0, tzinfo=timezone.utc))  # Saturday


def test_last_completed_session_skips_weekend():
    sunday = datetime(2024, 6, 9, 12, 0, tzinfo=timezone.utc)
    assert last_completed_session(sunday) == date(2024, 6, 7)

    friday_after_close = datetime(2024, 6, 7, 21, 30, tzinfo=timezone.utc)
    assert last_completed_session(friday_after_close) == date(2024, 6, 7)


def test_trading_days_back():
    days = trading_days_back(date(2024, 6, 10), 3)  # Monday
    assert days == [date(2024, 6, 6), date(2024, 6, 7), date(2024, 6, 10)]


def test_seconds_until_market_close():
    assert seconds_until_market_close(datetime(2024, 6, 5, 20, 0, tzinfo=timezone.utc)) == 3600
    # Saturday: next close is Monday 21:00
    saturday = datetime(2024, 6, 8, 21, 0, tzinfo=timezone.utc)
    assert seconds_until_market_close(saturday) == 2 * 86400
    # never below one minute
    assert seconds_until_market_close(datetime(2024, 6, 5, 20, 59, 30, tzinfo=timezone.utc)) == 60
