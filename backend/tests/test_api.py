"""Tests for the HTTP surface."""
import numpy as np
import pytest
from conftest import FakeClock, FakeUpstream
from fastapi.testclient import TestClient

from app.api.dependencies import get_search_index, get_stock_service
from app.main import app
from app.services.alpha_vantage import AlphaVantageClient
from app.services.cache_manager import CacheStore
from app.services.rate_governor import RateGovernor
from app.services.search_index import SearchIndex
from app.services.stock_data import StockDataService
from app.services.synthetic import SyntheticDataGenerator


def build_service(client, settings):
    clock = FakeClock()
    return StockDataService(
        client,
        RateGovernor(5, 25, clock=clock),
        settings=settings,
        generator=SyntheticDataGenerator(rng=np.random.default_rng(3)),
        store=CacheStore(clock=clock),
    )


@pytest.fixture
def service(settings):
    return build_service(AlphaVantageClient(api_key=""), settings)


@pytest.fixture
def client(service):
    app.dependency_overrides[get_stock_service] = lambda: service
    app.dependency_overrides[get_search_index] = lambda: SearchIndex(
        client=service.client, governor=service.governor
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_get_stock_uses_camel_case(client):
    resp = client.get("/api/stocks/aapl")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["symbol"] == "AAPL"
    assert data["price"] > 0
    assert data["source"] == "synthetic"
    for key in ("changePercent", "marketCap", "peRatio", "week52High", "week52Low", "lastUpdated", "assetClass"):
        assert key in data


def test_invalid_ticker_is_400(client):
    resp = client.get("/api/stocks/WAYTOOLONGSYMBOL")
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "Invalid ticker" in resp.json()["error"]


def test_price_endpoint(client):
    body = client.get("/api/stocks/MSFT/price").json()
    assert body["symbol"] == "MSFT"
    assert body["price"] > 0
    assert body["source"] == "synthetic"


def test_batch_endpoint_preserves_order(client):
    body = client.get("/api/stocks", params={"symbols": "NVDA, aapl,MSFT"}).json()
    assert [q["symbol"] for q in body["data"]] == ["NVDA", "AAPL", "MSFT"]


def test_batch_endpoint_requires_symbols(client):
    resp = client.get("/api/stocks", params={"symbols": " , "})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_chart_defaults_to_one_day(client):
    body = client.get("/api/stocks/AAPL/chart").json()

    assert body["success"] is True
    assert body["timeframe"] == "1D"
    assert body["source"] == "synthetic"
    assert len(body["data"]) == 78
    point = body["data"][0]
    assert set(point) == {"timestamp", "open", "high", "low", "close", "volume"}
    summary = body["summary"]
    assert summary["min"] <= summary["max"]
    assert "changePercent" in summary


def test_chart_timeframe_is_case_insensitive(client):
    body = client.get("/api/stocks/BTC/chart", params={"timeframe": "1m"}).json()
    assert body["timeframe"] == "1M"
    assert len(body["data"]) == 30


def test_unknown_timeframe_is_400(client):
    resp = client.get("/api/stocks/AAPL/chart", params={"timeframe": "5Y"})
    assert resp.status_code == 400
    body = resp.json()
    assert set(body) == {"success", "error"}
    assert body["success"] is False
    assert "5Y" in body["error"]


@pytest.mark.parametrize("params", [{}, {"q": ""}, {"q": "A"}])
def test_search_rejects_short_queries(client, params):
    resp = client.get("/api/stocks/search", params=params)
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_search(client):
    body = client.get("/api/stocks/search", params={"q": "AA"}).json()
    assert body["success"] is True
    assert body["data"][0]["symbol"] == "AAPL"
    assert "matchScore" in body["data"][0]


def test_init_warms_cache(client):
    body = client.post("/api/stocks/init").json()
    assert body["success"] is True
    assert body["report"]["requested"] == 20
    assert body["report"]["synthetic"] == 20
    assert len(body["report"]["notLive"]) == 20


def test_init_get_explains_usage(client):
    body = client.get("/api/stocks/init").json()
    assert body["success"] is True
    assert "POST" in body["message"]


def test_status_without_key(client):
    body = client.get("/api/alpha-vantage-status").json()
    assert body["success"] is True
    assert body["hasApiKey"] is False
    assert body["rateLimit"]["perMinute"] == 5
    assert body["rateLimit"]["usedDay"] == 0


def test_status_never_leaks_key(settings):
    secret = "SUPERSECRETKEY123"
    service = build_service(AlphaVantageClient(api_key=secret), settings)
    app.dependency_overrides[get_stock_service] = lambda: service
    try:
        resp = TestClient(app).get("/api/alpha-vantage-status")
    finally:
        app.dependency_overrides.clear()

    assert resp.json()["hasApiKey"] is True
    assert secret not in resp.text
    assert str(len(secret)) not in resp.text


def test_live_quote_reported_as_live(settings):
    upstream = FakeUpstream({"AAPL": 190.5})
    service = build_service(upstream, settings)
    app.dependency_overrides[get_stock_service] = lambda: service
    try:
        body = TestClient(app).get("/api/stocks/AAPL").json()
    finally:
        app.dependency_overrides.clear()

    assert body["data"]["price"] == 190.5
    assert body["data"]["source"] == "live"
