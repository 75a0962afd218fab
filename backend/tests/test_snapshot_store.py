"""Tests for persisted quote snapshots against in-memory SQLite."""
import asyncio
from datetime import datetime, timezone

from conftest import make_quote
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base
from app.schemas.stock import DataSource
from app.services.snapshot_store import QuoteSnapshotStore


async def make_store():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, QuoteSnapshotStore(async_sessionmaker(engine, expire_on_commit=False))


def test_save_then_load_marks_quote_stale():
    fetched = datetime(2024, 6, 4, 20, 0, tzinfo=timezone.utc)

    async def scenario():
        engine, store = await make_store()
        saved = await store.save(make_quote("AAPL", 190.5, last_updated=fetched, pe_ratio=29.0))
        loaded = await store.load("AAPL")
        await engine.dispose()
        return saved, loaded

    saved, loaded = asyncio.run(scenario())

    assert saved is True
    assert loaded.symbol == "AAPL"
    assert loaded.price == 190.5
    assert loaded.pe_ratio == 29.0
    assert loaded.source == DataSource.STALE
    assert loaded.last_updated == fetched


def test_save_overwrites_previous_snapshot():
    async def scenario():
        engine, store = await make_store()
        await store.save(make_quote("MSFT", 400.0))
        await store.save(make_quote("MSFT", 410.25))
        loaded = await store.load("MSFT")
        await engine.dispose()
        return loaded

    assert asyncio.run(scenario()).price == 410.25


def test_missing_symbol_loads_none():
    async def scenario():
        engine, store = await make_store()
        loaded = await store.load("NVDA")
        await engine.dispose()
        return loaded

    assert asyncio.run(scenario()) is None


def test_database_errors_are_absorbed():
    def broken_factory():
        raise RuntimeError("database unavailable")

    store = QuoteSnapshotStore(broken_factory)

    assert asyncio.run(store.save(make_quote("AAPL", 190.5))) is False
    assert asyncio.run(store.load("AAPL")) is None
