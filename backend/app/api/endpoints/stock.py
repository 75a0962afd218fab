from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_search_index, get_stock_service
from app.api.validation import parse_symbol_list, validate_ticker, validate_timeframe
from app.schemas.stock import (
    ChartResponse,
    ChartSummary,
    InitResponse,
    PriceResponse,
    SearchResponse,
    SeriesPoint,
    StockListResponse,
    StockResponse,
)
from app.services.search_index import SearchIndex
from app.services.stock_data import StockDataService
from app.services.timeframes import DEFAULT_TIMEFRAME

router = APIRouter(prefix="/api/stocks", tags=["stocks"])


def summarize(bars: list[SeriesPoint]) -> ChartSummary:
    """Period change from first to last close, plus the low/high range."""
    if not bars:
        return ChartSummary()
    first, last = bars[0].close, bars[-1].close
    change = last - first
    return ChartSummary(
        change=round(change, 6),
        change_percent=round(change / first * 100, 4) if first else 0,
        min=min(bar.low for bar in bars),
        max=max(bar.high for bar in bars),
    )


@router.get("", response_model=StockListResponse)
async def get_stocks(
    symbols: str = Query(""),
    service: StockDataService = Depends(get_stock_service),
):
    tickers = parse_symbol_list(symbols)
    return StockListResponse(data=await service.get_multiple_stocks(tickers))


@router.get("/search", response_model=SearchResponse)
async def search_stocks(
    q: str | None = Query(None, max_length=50),
    index: SearchIndex = Depends(get_search_index),
):
    """Search for symbols by ticker or company name."""
    # InvalidQuery for short queries is turned into a 400 by the app handler
    return SearchResponse(data=await index.search(q))


@router.post("/init", response_model=InitResponse)
async def init_stock_cache(service: StockDataService = Depends(get_stock_service)):
    report = await service.initialize_stock_cache()
    return InitResponse(
        message=f"Stock cache initialized: {report.live} of {report.requested} symbols live",
        report=report,
    )


@router.get("/init", response_model=InitResponse)
async def init_stock_cache_usage():
    return InitResponse(message="POST to this endpoint to warm the stock cache for popular symbols")


@router.get("/{symbol}", response_model=StockResponse)
async def get_stock(symbol: str, service: StockDataService = Depends(get_stock_service)):
    symbol = validate_ticker(symbol)
    return StockResponse(data=await service.get_stock_data(symbol))


@router.get("/{symbol}/price", response_model=PriceResponse)
async def get_stock_price(symbol: str, service: StockDataService = Depends(get_stock_service)):
    symbol = validate_ticker(symbol)
    quote = await service.get_stock_data(symbol)
    return PriceResponse(symbol=quote.symbol, price=quote.price, source=quote.source)


@router.get("/{symbol}/chart", response_model=ChartResponse)
async def get_stock_chart(
    symbol: str,
    timeframe: str = Query(DEFAULT_TIMEFRAME),
    service: StockDataService = Depends(get_stock_service),
):
    symbol = validate_ticker(symbol)
    timeframe = validate_timeframe(timeframe)
    result = await service.get_stock_chart_data_sourced(symbol, timeframe)
    return ChartResponse(
        data=result.payload,
        timeframe=timeframe,
        source=result.source,
        summary=summarize(result.payload),
    )
