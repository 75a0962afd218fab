from datetime import date, datetime, timedelta, timezone

# US market: 9:30-16:00 ET = 14:30-21:00 UTC (roughly, ignoring DST)
SESSION_OPEN_UTC = (14, 30)
SESSION_CLOSE_UTC = (21, 0)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def is_trading_day(day: date) -> bool:
    return day.weekday() < 5


def is_market_hours(now: datetime | None = None) -> bool:
    now = _now(now)
    if not is_trading_day(now.date()):
        return False
    minutes = now.hour * 60 + now.minute
    return SESSION_OPEN_UTC[0] * 60 + SESSION_OPEN_UTC[1] <= minutes < SESSION_CLOSE_UTC[0] * 60


def session_open(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, *SESSION_OPEN_UTC, tzinfo=timezone.utc)


def session_close(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, *SESSION_CLOSE_UTC, tzinfo=timezone.utc)


def last_completed_session(now: datetime | None = None) -> date:
    """Most recent trading day whose session has closed."""
    now = _now(now)
    day = now.date()
    if not (is_trading_day(day) and now >= session_close(day)):
        day -= timedelta(days=1)
    while not is_trading_day(day):
        day -= timedelta(days=1)
    return day


def trading_days_back(end: date, count: int) -> list[date]:
    """`count` trading days ending at `end` (inclusive), ascending."""
    days = []
    day = end
    while len(days) < count:
        if is_trading_day(day):
            days.append(day)
        day -= timedelta(days=1)
    return days[::-1]


def trading_days_since(start: date, end: date) -> int:
    count = 0
    day = start
    while day <= end:
        if is_trading_day(day):
            count += 1
        day += timedelta(days=1)
    return count


def seconds_until_market_close(now: datetime | None = None) -> int:
    """
    Seconds until the next market close (21:00 UTC on a trading day).

    Note: This uses simplified market hours (ignoring DST transitions).
    """
    now = _now(now)
    day = now.date()
    while not is_trading_day(day) or now >= session_close(day):
        day += timedelta(days=1)
    seconds_until = (session_close(day) - now).total_seconds()
    return int(max(seconds_until, 60))  # Minimum 1 minute
