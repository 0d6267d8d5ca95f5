"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./edify.db"
DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"
DEFAULT_EMAIL_ACTION_SECRET = "dev-email-action-secret-change-in-production"
SEVERITY_LEVELS = ("low", "medium", "high", "critical")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    app_url: str = "https://app.aiedify.com"
    environment: str = "development"
    allowed_origins: str = ""  # Comma separated; empty uses the defaults in main.py
    secret_key: str = DEFAULT_SECRET_KEY

    # Auth provider tokens (HS256 shared secret with the organisation provider)
    auth_jwt_secret: str = ""  # Defaults to secret_key if not set
    jwt_algorithm: str = "HS256"
    auth_jwt_audience: str = ""  # Empty disables audience verification

    # AI Service
    openai_api_key: str = ""
    ai_generation_model: str = "gpt-4o"  # Model used by the content tools
    ai_classifier_model: str = "gpt-4o-mini"  # Model used by the safety classifiers
    ai_moderation_model: str = "omni-moderation-latest"
    ai_timeout_seconds: int = 120
    ai_classifier_timeout_seconds: int = 30

    # Content safety
    content_block_min_severity: str = "medium"  # Flags at or above this severity block a request

    # Pricing
    exchange_rate_url: str = "https://api.exchangerate-api.com/v4/latest/USD"
    exchange_rate_cache_hours: int = 3
    fallback_usd_to_gbp_rate: float = 0.79

    # Email
    resend_api_key: str = ""
    email_api_url: str = "https://api.resend.com/emails"
    moderation_email_from: str = "AiEdify Moderator <moderator@aiedify.com>"
    email_action_secret: str = DEFAULT_EMAIL_ACTION_SECRET
    email_timeout_seconds: int = 15

    # Listings
    violations_default_page_size: int = 10
    violations_max_page_size: int = 100
    history_max_page_size: int = 100

    @field_validator("content_block_min_severity", mode="before")
    @classmethod
    def normalize_severity(cls, value):
        """Lower-case the blocking severity so env values are case-insensitive."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate security configuration and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if not self.auth_jwt_secret:
            self.auth_jwt_secret = self.secret_key

        # Security validation
        if self.environment == "production":
            if self.secret_key == DEFAULT_SECRET_KEY:
                raise ValueError("secret_key must be changed from default value in production")
            if self.email_action_secret == DEFAULT_EMAIL_ACTION_SECRET:
                raise ValueError("email_action_secret must be changed from default value in production")

        if self.jwt_algorithm not in ["HS256", "HS384", "HS512"]:
            raise ValueError(f"Unsupported JWT algorithm: {self.jwt_algorithm}. Use HS256, HS384, or HS512.")

        if self.content_block_min_severity not in SEVERITY_LEVELS:
            raise ValueError(
                f"content_block_min_severity must be one of {', '.join(SEVERITY_LEVELS)}"
            )

        if self.exchange_rate_cache_hours < 0:
            raise ValueError("exchange_rate_cache_hours cannot be negative")

        if self.violations_default_page_size < 1 or self.violations_default_page_size > self.violations_max_page_size:
            raise ValueError("violations_default_page_size must be between 1 and violations_max_page_size")

        if self.history_max_page_size < 1:
            raise ValueError("history_max_page_size must be at least 1")

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:  # pragma: no cover
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logger.warning("Invalid DATABASE_URL; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            old_drivername = drivername
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {old_drivername} -> {parsed.drivername}")
        # Use render_as_string to properly re-encode special characters in password
        self.database_url = parsed.render_as_string(hide_password=False)

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
