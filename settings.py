# settings.py
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_JWT_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: str = "dev"

    # -----------------------
    # Storage
    # -----------------------
    DATABASE_URL: str = ""
    STORE_BACKEND: Literal["memory", "postgres"] = "memory"

    # -----------------------
    # JWT
    # -----------------------
    JWT_SECRET: str = Field(default=DEV_JWT_SECRET, min_length=16)
    JWT_ALG: str = Field(default="HS256")
    JWT_ACCESS_MINUTES: int = Field(default=60)

    # -----------------------
    # Payout economics
    # -----------------------
    CURRENCY: str = "INR"
    DEFAULT_PAYOUT_AMOUNT: int = 500
    PLATFORM_FEE_PERCENT: float = 2.0
    GST_PERCENT: float = 18.0

    # -----------------------
    # Enrollment review
    # -----------------------
    REASON_MAX_LENGTH: int = 500
    BULK_MAX_ITEMS: int = 100
    BULK_MAX_WORKERS: int = 1
    EXPIRE_INTERVAL_SECONDS: int = 300

    # -----------------------
    # Wallet
    # -----------------------
    ADD_FUNDS_MIN: int = 1000
    ADD_FUNDS_MAX: int = 10_000_000


settings = Settings()


def validate_env_settings() -> None:
    """
    Fail fast on unsafe config outside dev/test.
    """
    env = (settings.ENV or "").strip().lower()
    if env not in {"staging", "prod", "production"}:
        return

    missing: list[str] = []
    if not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if settings.STORE_BACKEND != "postgres":
        missing.append("STORE_BACKEND")
    secret = settings.JWT_SECRET or ""
    if secret == DEV_JWT_SECRET or len(secret) < 32:
        missing.append("JWT_SECRET")

    if missing:
        raise RuntimeError(f"Missing or unsafe settings for ENV={env}: {', '.join(missing)}")
