import datetime as dt

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    app_env: str = "dev"
    port: int = 8000

    # Mongo
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "smartapi"

    # Market calendar (NSE). Holidays are plain data so runs are reproducible;
    # override with TRADING_HOLIDAYS='["2025-02-26", ...]' in .env
    timezone: str = "Asia/Kolkata"
    trading_holidays: list[dt.date] = [
        dt.date(2024, 3, 29),   # Holi
        dt.date(2024, 8, 15),   # Independence Day
        dt.date(2024, 10, 2),   # Gandhi Jayanti
    ]
    default_exchange: str = "NSE"

    # Angel One SmartAPI
    rate_limit_marker: str = "exceeding access rate"
    max_attempts: int = 5
    backoff_base_seconds: float = 1.0
    candle_request_delay_seconds: float = 0.5

    # Fan-out
    max_concurrent_accounts: int = 4
    account_timeout_seconds: float | None = 300.0

    # Logging
    log_file: str = "server.log"
    log_level: str = "INFO"

    # Daily run after market close (market timezone)
    scheduler_enabled: bool = False
    schedule_hour: int = 15
    schedule_minute: int = 45

    # IMPORTANT: ignore extra keys in .env to avoid crashes
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

settings = Settings()
