# discount_service/core/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values come from the process environment; a local .env is optional.
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"

    # --- Database ---
    DATABASE_URL_LOCAL: str = "sqlite:///./discounts.db"
    DATABASE_URL_PROD: Optional[str] = None

    # --- Auth ---
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    LOG_LEVEL: str = "INFO"

    # --- Voucher codes ---
    VOUCHER_CODE_LENGTH: int = 8
    MAX_GENERATED_CODES: int = 50
    CODE_GENERATION_MAX_ATTEMPTS: int = 100  # per code
    DUPLICATE_CODE_MAX_ATTEMPTS: int = 100
    CODE_BATCH_INSERT_RETRIES: int = 3

    CURRENCY_SYMBOL: str = "$"

    @property
    def DATABASE_URL(self) -> str:
        if self.ENV == "local" or not self.DATABASE_URL_PROD:
            return self.DATABASE_URL_LOCAL
        return self.DATABASE_URL_PROD


# Create a single instance of the settings
settings = Settings()
