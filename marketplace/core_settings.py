from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SERVICE_NAME: str = "orders-service"
    SERVICE_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "marketplace"
    POSTGRES_USER: str = "marketplace"
    POSTGRES_PASSWORD: str = "marketplace"
    # Overrides the Postgres parts when set (sqlite URLs are used by tests)
    DATABASE_URL: Optional[str] = None
    RUN_MIGRATIONS: bool = False

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"

    TAX_RATE: Decimal = Decimal("0.10")
    DEFAULT_COUNTRY: str = "US"

    PAYMENT_DELAY_MIN_SECONDS: float = 2.0
    PAYMENT_DELAY_MAX_SECONDS: float = 4.0
    PAYMENT_SUCCESS_RATE_CARD: float = 0.92
    PAYMENT_SUCCESS_RATE_UPI: float = 0.96
    PAYMENT_SUCCESS_RATE_WALLET: float = 0.98

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
