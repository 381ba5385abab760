"""Application configuration."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = "Seller Analytics Core"
    app_version: str = "1.0.0"
    debug: bool = False

    # Cache
    cache_backend: str = "file"  # "file" or "memory"
    cache_dir: str = "cache"
    cache_default_ttl_ms: int = 15 * 60 * 1000
    single_flight: bool = True

    # Wildberries statistics API
    statistics_api_url: str = "https://statistics-api.wildberries.ru/api/v5"
    report_page_limit: int = 100000

    # Timeouts and retries
    request_timeout: int = 30
    request_max_retries: int = 2
    retry_backoff_seconds: float = 1.0

    # Pricing policy
    target_margin_percent: float = 15.0
    slow_sales_rate: float = 0.2
    overstock_quantity: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
