from fastapi import APIRouter, Depends

from app.api.dependencies import get_stock_service
from app.schemas.stock import ApiStatusResponse, RateLimitStatus
from app.services.stock_data import StockDataService

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/alpha-vantage-status", response_model=ApiStatusResponse)
async def alpha_vantage_status(service: StockDataService = Depends(get_stock_service)):
    """Whether live data is possible. Never reveals the key itself."""
    governor = service.governor
    has_key = service.client.enabled
    if has_key:
        message = "Alpha Vantage API key configured; live data enabled"
    else:
        message = "No Alpha Vantage API key configured; serving simulated data"
    return ApiStatusResponse(
        has_api_key=has_key,
        message=message,
        rate_limit=RateLimitStatus(
            per_minute=governor.max_per_minute,
            per_day=governor.max_per_day,
            used_minute=governor.used_minute,
            used_day=governor.used_day,
            retry_after=round(governor.seconds_until_available(), 1),
        ),
    )
