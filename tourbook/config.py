"""
tourbook settings, read once at import time.

Values come from the process environment first, then from a local .env file,
then from the defaults below. Only SECRET_KEY has no default: the service
refuses to start without one.

Usage:
    from tourbook.config import settings
    settings.DEFAULT_PAGE_LIMIT
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tunables for the Tours API, grouped by the component that reads them."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Tours API"
    APP_VERSION: str = "0.1.0"
    # "production" hides programming-error details from clients and marks
    # the auth cookie as secure
    ENVIRONMENT: Literal["development", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/tours.db"

    # --- Authentication ---
    # REQUIRED: No default, forces the operator to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 90 * 24 * 60
    JWT_COOKIE_EXPIRE_DAYS: int = 90
    PASSWORD_RESET_EXPIRE_MINUTES: int = 10

    # --- Query pipeline ---
    DEFAULT_PAGE_LIMIT: int = 100

    # --- Email ---
    EMAIL_HOST: str = "localhost"
    EMAIL_PORT: int = 25
    EMAIL_USERNAME: str | None = None
    EMAIL_PASSWORD: str | None = None
    EMAIL_FROM: str = "Tours <hello@tours.example>"
    EMAIL_USE_TLS: bool = False

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# Shared instance; tests patch attributes on it
settings = Settings()
