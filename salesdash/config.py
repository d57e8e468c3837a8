from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Remote data gateway (NocoDB proxy). Unset base URL means demo mode.
    GATEWAY_BASE_URL: str | None = None
    GATEWAY_TOKEN: str | None = None
    GATEWAY_PAGE_SIZE: int = 1000
    GATEWAY_MAX_PAGES: int = 500
    GATEWAY_MAX_RETRIES: int = 2
    GATEWAY_RETRY_BACKOFF: float = 0.5

    # Calendar-day comparisons happen in the viewer's zone
    DASHBOARD_TIMEZONE: str = "America/Bogota"

    # =================================================================
    # CACHE SETTINGS
    # =================================================================
    CACHE_FRESH_SECONDS: float = 300.0  # 5 minutes
    CACHE_MAX_AGE_SECONDS: float = 1800.0  # 30 minutes
    CACHE_REQUEST_TIMEOUT: float = 10.0
    CACHE_CYCLE_TIMEOUT_FACTOR: int = 5
    CACHE_FUNNEL_TIMEOUT_FACTOR: int = 3
    CACHE_UNFILTERED_DELAY: float = 0.05

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def is_gateway_configured(self) -> bool:
        """Demo mode is anything without a usable gateway URL."""
        return bool(self.GATEWAY_BASE_URL and self.GATEWAY_BASE_URL.strip())

    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.DASHBOARD_TIMEZONE)

    def get_gateway_config(self) -> dict:
        """Keyword arguments for GatewayClient."""
        return {
            "base_url": (self.GATEWAY_BASE_URL or "").strip().rstrip("/"),
            "token": self.GATEWAY_TOKEN,
            "page_size": self.GATEWAY_PAGE_SIZE,
            "max_pages": self.GATEWAY_MAX_PAGES,
            "max_retries": self.GATEWAY_MAX_RETRIES,
            "retry_backoff": self.GATEWAY_RETRY_BACKOFF,
        }

    def get_cache_config(self) -> dict:
        """
        Keyword arguments for CacheCoordinator.
        Timeouts for the whole cycle and the funnel fetch scale off the
        per-collection timeout.
        """
        return {
            "fresh_seconds": self.CACHE_FRESH_SECONDS,
            "max_age_seconds": self.CACHE_MAX_AGE_SECONDS,
            "request_timeout": self.CACHE_REQUEST_TIMEOUT,
            "cycle_timeout": self.CACHE_REQUEST_TIMEOUT * self.CACHE_CYCLE_TIMEOUT_FACTOR,
            "funnel_timeout": self.CACHE_REQUEST_TIMEOUT * self.CACHE_FUNNEL_TIMEOUT_FACTOR,
            "unfiltered_delay": self.CACHE_UNFILTERED_DELAY,
        }


settings = Settings()
