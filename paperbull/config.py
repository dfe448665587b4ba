from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "paperbull"
    app_env: str = "development"
    debug: bool = True

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    database_url: str = "sqlite+aiosqlite:///./paperbull.db"
    database_sync_url: str = "sqlite:///./paperbull.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Market data sources
    alpha_vantage_api_key: Optional[str] = None
    alpha_vantage_base_url: str = "https://www.alphavantage.co/query"
    coingecko_api_key: Optional[str] = None
    coingecko_base_url: str = "https://pro-api.coingecko.com/api/v3"
    yahoo_base_url: str = "https://query1.finance.yahoo.com"
    market_data_timeout: float = 15.0
    market_data_cache_ttl: int = 600  # 10 minutes

    # Backtesting defaults
    backtest_commission_rate: float = 0.001  # 0.1% per side
    backtest_slippage: float = 0.0005  # 0.05%
    backtest_initial_capital: float = 10_000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @model_validator(mode="after")
    def _validate_rates(self) -> "Settings":
        """Trading cost rates can never be negative."""
        if self.backtest_commission_rate < 0:
            raise ValueError("BACKTEST_COMMISSION_RATE must be >= 0.")
        if self.backtest_slippage < 0:
            raise ValueError("BACKTEST_SLIPPAGE must be >= 0.")
        return self

    @model_validator(mode="after")
    def _validate_production(self) -> "Settings":
        """Reject insecure defaults when running in production."""
        if not self.is_production:
            return self
        if self.debug:
            raise ValueError("DEBUG must be False in production.")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
