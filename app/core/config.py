from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    PROJECT_NAME: str = "SmartExpenseAnalytics"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5000",
        "http://localhost:8000",
    ]

    # Analytics
    DEFAULT_MONTHLY_BUDGET: float = Field(default=50000.0)
    DEFAULT_PROJECTION_MONTHS: int = 3
    MAX_PROJECTION_MONTHS: int = 120
    CURRENCY_SYMBOL: str = "₹"
    MICRO_TRANSACTION_THRESHOLD: float = 500.0

    # Rate limiting (per client address)
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_CLEANUP_SECONDS: int = 60 * 5

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
