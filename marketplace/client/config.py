from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    BASE_URL: str = "http://localhost:8000"
    TOKEN: Optional[str] = None

    # Request bounds, seconds
    CREATE_ORDER_TIMEOUT: float = 20.0
    PAYMENT_TIMEOUT: float = 20.0
    DEFAULT_TIMEOUT: float = 30.0

    # How long each payment phase stays on screen, seconds
    SUCCESS_DISPLAY_SECONDS: float = 2.0
    FAILURE_DISPLAY_SECONDS: float = 3.0
    PACING_ENABLED: bool = True

    PAYMENT_METHODS_CACHE_TTL: int = 300
    DEFAULT_COUNTRY: str = "US"

    class Config:
        env_file = ".env"
        env_prefix = "MARKETPLACE_"
        extra = "ignore"


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
