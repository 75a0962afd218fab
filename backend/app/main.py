import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.dependencies import get_stock_service
from app.api.endpoints import status, stock
from app.config import get_settings
from app.database import create_tables, dispose_engine
from app.services.background_refresh import BackgroundRefresher
from app.services.exceptions import InvalidQuery

settings = get_settings()

logging.basicConfig(level=settings.log_level.upper())
# httpx logs full request URLs at INFO, and those carry the API key
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup work before the app serves requests; stops the background refresher on shutdown."""
    if await create_tables():
        logger.info("Quote snapshot persistence enabled")

    service = get_stock_service()
    if not service.client.enabled:
        logger.warning("ALPHA_VANTAGE_API_KEY not set; serving simulated market data")
    if settings.warm_cache_on_startup:
        await service.initialize_stock_cache()

    refresher = BackgroundRefresher(
        service,
        interval=settings.background_refresh_interval,
        batch=settings.background_refresh_batch,
        threshold=settings.background_refresh_threshold,
    )
    refresher.start()
    app.state.refresher = refresher
    try:
        yield
    finally:
        await refresher.stop()
        await dispose_engine()


app = FastAPI(title="SimVest API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(stock.router)
app.include_router(status.router)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(InvalidQuery)
async def invalid_query_handler(request: Request, exc: InvalidQuery):
    return error_response(400, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return error_response(400, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal server error")


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "SimVest"}
