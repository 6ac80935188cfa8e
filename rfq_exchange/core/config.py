from functools import lru_cache
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Sealed-Bid RFQ Exchange"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"
    default_page_size: int = 12
    max_page_size: int = 100

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── BIDDING RULES ───────────
    bid_grace_window_seconds: int = 300  # hard-delete window after submission
    vat_rate_percent: Decimal = Decimal("18")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
