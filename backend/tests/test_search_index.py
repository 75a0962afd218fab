"""Tests for symbol search."""
import asyncio

import pytest
from conftest import FakeClock, FakeUpstream

from app.schemas.stock import SearchResult
from app.services.exceptions import InvalidQuery
from app.services.rate_governor import RateGovernor
from app.services.search_index import SearchIndex, score_match


def upstream_match(symbol, name, score=0.5):
    return SearchResult(symbol=symbol, name=name, match_score=score, source="upstream")


@pytest.fixture
def index():
    return SearchIndex()


def test_score_ranks():
    assert score_match("AAPL", "AAPL", "Apple Inc.") == 1.0
    assert score_match("AA", "AAPL", "Apple Inc.") == 0.8
    assert score_match("micro", "AMD", "Advanced Micro Devices Inc.") == 0.6
    assert score_match("PL", "AAPL", "Apple Inc.") == 0.4
    assert score_match("soft", "MSFT", "Microsoft Corporation") == 0.2
    assert score_match("xyz", "AAPL", "Apple Inc.") == 0.0


@pytest.mark.parametrize("query", [None, "", " ", "A", " a "])
def test_short_queries_rejected(index, query):
    with pytest.raises(InvalidQuery):
        asyncio.run(index.search(query))


def test_prefix_query_puts_aapl_first(index):
    results = asyncio.run(index.search("AA"))
    assert results[0].symbol == "AAPL"


def test_name_search_is_case_insensitive(index):
    results = asyncio.run(index.search("apple"))
    assert results[0].symbol == "AAPL"
    assert results[0].name == "Apple Inc."


def test_exact_symbol_beats_prefix(index):
    results = asyncio.run(index.search("META"))
    assert results[0].symbol == "META"
    assert results[0].match_score == 1.0


def test_ties_break_on_shorter_symbol():
    # several names contain the word "Technology" and no symbol matches
    index = SearchIndex(limit=50)
    results = [r for r in asyncio.run(index.search("technology")) if r.match_score == 0.6]
    symbols = [r.symbol for r in results]
    assert symbols == sorted(symbols, key=lambda s: (len(s), s))


def test_results_capped_at_limit():
    index = SearchIndex(limit=3)
    assert len(asyncio.run(index.search("inc"))) == 3


def test_sparse_results_consult_upstream():
    upstream = FakeUpstream()
    upstream.search_results = [upstream_match("TSCO.LON", "Tesco PLC", 0.7), upstream_match("TSCDY", "Tesco plc", 0.9)]
    index = SearchIndex(client=upstream, governor=RateGovernor(5, 25, clock=FakeClock()))

    results = asyncio.run(index.search("tesco"))

    assert upstream.search_calls == ["tesco"]
    assert [r.symbol for r in results] == ["TSCDY", "TSCO.LON"]
    assert all(r.source == "upstream" for r in results)


def test_local_results_win_over_upstream_duplicates():
    upstream = FakeUpstream()
    upstream.search_results = [upstream_match("KO", "COCA-COLA CO"), upstream_match("COKE", "Coca-Cola Consolidated")]
    index = SearchIndex(client=upstream, governor=RateGovernor(5, 25, clock=FakeClock()))

    results = asyncio.run(index.search("coca"))

    assert [r.symbol for r in results] == ["KO", "COKE"]
    assert results[0].name == "The Coca-Cola Company"
    assert results[0].source == "local"


def test_dense_results_skip_upstream():
    upstream = FakeUpstream()
    index = SearchIndex(client=upstream, governor=RateGovernor(5, 25, clock=FakeClock()))

    asyncio.run(index.search("inc"))

    assert upstream.search_calls == []


def test_upstream_results_are_cached():
    clock = FakeClock()
    upstream = FakeUpstream()
    upstream.search_results = [upstream_match("TSCDY", "Tesco plc")]
    index = SearchIndex(client=upstream, governor=RateGovernor(5, 25, clock=clock), cache_ttl=3600, clock=clock)

    asyncio.run(index.search("tesco"))
    asyncio.run(index.search("TESCO"))
    assert len(upstream.search_calls) == 1

    clock.advance(3601)
    asyncio.run(index.search("tesco"))
    assert len(upstream.search_calls) == 2


def test_upstream_skipped_when_rate_limited():
    upstream = FakeUpstream()
    index = SearchIndex(client=upstream, governor=RateGovernor(0, 0, clock=FakeClock()))

    assert asyncio.run(index.search("tesco")) == []
    assert upstream.search_calls == []


def test_upstream_skipped_without_key():
    upstream = FakeUpstream(enabled=False)
    index = SearchIndex(client=upstream, governor=RateGovernor(5, 25, clock=FakeClock()))

    asyncio.run(index.search("tesco"))
    assert upstream.search_calls == []


def test_upstream_failure_returns_local_results():
    upstream = FakeUpstream()
    upstream.failing.add("search")
    index = SearchIndex(client=upstream, governor=RateGovernor(5, 25, clock=FakeClock()))

    results = asyncio.run(index.search("netflix"))

    assert [r.symbol for r in results] == ["NFLX"]
