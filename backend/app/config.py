from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    alpha_vantage_api_key: str = ""
    alpha_vantage_base_url: str = "https://www.alphavantage.co/query"
    upstream_timeout: float = 5.0  # seconds, per upstream call

    # Upstream plan limits (free tier by default)
    rate_limit_per_minute: int = 5
    rate_limit_per_day: int = 25

    # Cache TTLs in seconds
    quote_cache_ttl_market: int = 60  # 1 min during market hours
    quote_cache_ttl_closed: int = 900  # 15 min when market closed
    overview_cache_ttl: int = 86400  # 24h
    chart_cache_ttl_intraday: int = 300  # 5 min
    chart_cache_ttl_daily: int = 3600  # 1h
    synthetic_cache_ttl: int = 300
    search_cache_ttl: int = 3600

    enrich_with_overview: bool = True

    search_result_limit: int = 10
    search_sparse_threshold: int = 3

    # Cache warm-up
    warmup_batch_size: int = 3
    warmup_batch_delay: float = 0.0
    warm_cache_on_startup: bool = False

    # Background refresh (0 disables it)
    background_refresh_interval: float = 0.0
    background_refresh_batch: int = 5
    background_refresh_threshold: int = 15

    # Empty disables persisted quote snapshots
    database_url: str = ""

    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env"}

    @property
    def has_api_key(self) -> bool:
        return bool(self.alpha_vantage_api_key.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()
