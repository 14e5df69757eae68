"""
MealPass settings, read from the environment or a .env file.

Business-day rules (cutoff, timezone) and provider credentials live here;
the cutoff time itself is a runtime setting stored in the database.
"""

from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Environment(str, Enum):
    """Application environment types"""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """
    Application settings with validation.
    Settings are loaded from environment variables or .env file.
    """

    # Application settings
    app_name: str = Field(default="MealPass", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT, description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")

    # Database settings - PostgreSQL
    database_url: str = Field(
        default="postgresql+psycopg2://user@localhost:5432/mealpass",
        description="SQLAlchemy connection URL",
    )
    db_echo: bool = Field(default=False, description="SQLAlchemy echo SQL statements")
    db_init_attempts: int = Field(
        default=8, ge=1, description="Database initialization retry attempts"
    )
    db_init_delay_sec: float = Field(
        default=2.0, ge=0, description="Delay between DB init attempts"
    )

    # MongoDB settings (meal / add-on catalog)
    mongo_uri: str = Field(
        default="mongodb://localhost:27017", description="MongoDB connection URI"
    )
    mongo_db_name: str = Field(default="mealpass", description="MongoDB database name")

    # Business clock
    business_timezone: str = Field(
        default="Asia/Riyadh", description="Timezone used for day boundaries and cutoff"
    )

    # Payment provider
    payment_provider: str = Field(default="moyasar", description="Payment provider name")
    moyasar_api_url: str = Field(
        default="https://api.moyasar.com", description="Moyasar API base URL"
    )
    moyasar_secret_key: Optional[str] = Field(
        default=None, description="Moyasar secret API key"
    )
    moyasar_webhook_secret: Optional[str] = Field(
        default=None, description="Shared secret expected in webhook payloads"
    )
    provider_timeout_sec: float = Field(
        default=15.0, gt=0, description="Timeout for payment provider calls"
    )
    app_url: str = Field(
        default="http://localhost:8000", description="Public base URL for callbacks"
    )
    currency: str = Field(default="SAR", description="Billing currency")

    # Notifications
    push_gateway_url: Optional[str] = Field(
        default=None, description="Push gateway endpoint; notifications are skipped if unset"
    )

    # Scheduler
    scheduler_enabled: bool = Field(
        default=True, description="Run the daily cutoff scheduler in-process"
    )
    cutoff_check_interval_sec: int = Field(
        default=60, ge=1, description="Interval between cutoff checks"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s %(levelname)s %(name)s: %(message)s",
        description="Log format string",
    )

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(
        default=True, description="Allow CORS credentials"
    )
    cors_allow_methods: list[str] = Field(
        default=["*"], description="Allowed HTTP methods"
    )
    cors_allow_headers: list[str] = Field(
        default=["*"], description="Allowed HTTP headers"
    )

    # API settings
    api_prefix: str = Field(default="/api", description="API route prefix")
    api_title: str = Field(default="MealPass API", description="API documentation title")
    api_description: str = Field(
        default="Meal subscriptions: day lifecycle, credit ledger and payments",
        description="API documentation description",
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        """Validate and normalize environment value"""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @field_validator("business_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Fail at startup rather than at the first cutoff check"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @field_validator("app_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        """Check if running in testing environment"""
        return self.environment == Environment.TESTING


# Global settings instance
settings = Settings()
