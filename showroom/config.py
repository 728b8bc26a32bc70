"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Runtime environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("SHOWROOM_ENV", "dev").lower()

# Environments where a missing webhook secret is tolerated.
RELAXED_ENVS = {"dev", "local", "test"}

# Upstream payout statuses that may be retried by an operator.
RETRYABLE_PAYOUT_STATUSES = {"", "pending", "ready", "failed"}


class Settings(BaseSettings):
    """Environment configuration for the Showroom Market backend."""

    app_env: str = ENV
    LOG_LEVEL: str = "INFO"
    SITE_URL: str = "https://showroommarket.com"
    SUPPORT_EMAIL: str = "support@showroommarket.com"
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://showroommarket.com",
        "https://www.showroommarket.com",
        "http://localhost:8888",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # --- Stripe ----------------------------------------------------------
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    STRIPE_CONNECT_COUNTRY: str = "US"
    PAYOUT_CURRENCY: str = "usd"

    # --- Airtable --------------------------------------------------------
    AIRTABLE_API_KEY: str | None = Field(
        default=None,
        validation_alias=AliasChoices("AIRTABLE_API_KEY", "AIRTABLE_TOKEN"),
    )
    AIRTABLE_BASE_ID: str | None = None
    AIRTABLE_TABLE: str = "Listings"
    AIRTABLE_VIEW: str | None = None
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"

    # --- Admin authentication --------------------------------------------
    ADMIN_SECRET_TOKEN: str | None = None
    ADMIN_TOKEN_SIGNING_SECRET: str | None = None
    ADMIN_LOGIN_PASSCODE: str | None = None
    ADMIN_TOKEN_TTL_SECONDS: int = 60 * 30

    # --- MailerSend ------------------------------------------------------
    MAILERSEND_API_KEY: str | None = None
    MAILERSEND_FROM_EMAIL: str | None = None
    MAILERSEND_FROM_NAME: str = "Showroom Market"
    MAILERSEND_API_URL: str = "https://api.mailersend.com/v1/email"
    OPS_ALERT_EMAIL: str | None = None

    # --- Checkout / onboarding pages ------------------------------------
    CHECKOUT_SUCCESS_PATH: str = "/success.html"
    CHECKOUT_CANCEL_PATH: str = "/cancel.html"
    ONBOARDING_REFRESH_PATH: str = "/onboarding-refresh.html"
    ONBOARDING_RETURN_PATH: str = "/onboarding-return.html"

    # --- Listing workflow ------------------------------------------------
    PAYOUT_HOLD_HOURS: float = 24.0
    PAYOUT_PROCESSING_STALE_MINUTES: int = 30
    PICKUP_QR_MARKER: str = "SMK"
    PICKUP_QR_MIN_TOKEN_LENGTH: int = 8
    RECORD_ID_PREFIX: str = "rec"
    QR_IMAGE_BASE_URL: str = "https://api.qrserver.com/v1/create-qr-code/"
    RISKY_SELLER_CHARGEBACK_THRESHOLD: int = 2

    # --- Scheduler -------------------------------------------------------
    SCHEDULER_ENABLED: bool = False
    PAYOUT_SWEEP_INTERVAL_MINUTES: int = 15
    RISK_SCAN_INTERVAL_HOURS: int = 24

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator(
        "STRIPE_WEBHOOK_SECRET",
        "ADMIN_SECRET_TOKEN",
        "ADMIN_TOKEN_SIGNING_SECRET",
        "ADMIN_LOGIN_PASSCODE",
    )
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty secrets to ``None`` for easier validation."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("SITE_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def site_link(self, path: str) -> str:
        """Return an absolute URL on the public site."""

        return f"{self.SITE_URL}/{path.lstrip('/')}"


class AppInfo(BaseModel):
    name: str = "showroom-market-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "RELAXED_ENVS",
    "RETRYABLE_PAYOUT_STATUSES",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
