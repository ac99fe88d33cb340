"""Application settings and configuration."""

import sys

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "wtx-referrals"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console | json
    allowed_origins: str = "http://localhost:5173"

    # Database
    database_url: str = "sqlite:///./wtx.db"
    database_echo: bool = False

    # Public site the affiliate link points at: <public_origin>?ref=<code>
    public_origin: str = "http://localhost:5173"

    # Referral codes
    referral_code_length: int = Field(default=8, ge=6, le=20)

    # Visitor attribution (stored code carried across unrelated page views)
    referral_storage_key: str = "referral_code"
    referral_session_ttl_days: int = Field(default=30, ge=1)

    # Intake
    default_phone_region: str = "US"

    # Rate limits (slowapi syntax), enforced in production unless overridden
    rate_limit_enabled: bool | None = None
    rate_limit_storage_uri: str = "memory://"
    rate_limit_default: str = "200/minute"
    rate_limit_click: str = "60/minute"
    rate_limit_form: str = "10/minute"

    # Admin triage
    submissions_page_size: int = Field(default=100, ge=1, le=500)


# Global settings instance
settings = Settings()

# ── Sanity checks ─────────────────────────────────────────────────────
if settings.env == "production" and settings.database_url.startswith("sqlite"):
    print(
        "\n❌  FATAL: DATABASE_URL points at SQLite in production.\n"
        "   Configure a server database, e.g. postgresql+psycopg://...\n",
        file=sys.stderr,
    )
    sys.exit(1)
