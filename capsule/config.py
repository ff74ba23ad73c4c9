"""
Application configuration management using Pydantic Settings.

This module provides a type-safe, centralized configuration system
that loads from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All settings can be overridden via .env file or environment variables.
    Settings are validated at startup using Pydantic.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===== Storage =====
    DATABASE_URL: str | None = Field(
        default=None,
        description="Relational store URL (sqlite:///path). If unset, notes are kept in JSON files"
    )

    NOTES_FILE: str = Field(
        default="notes.json",
        description="JSON file holding notes when no DATABASE_URL is configured"
    )

    UNSENT_NOTES_FILE: str = Field(
        default="unsent_notes.json",
        description="JSON file holding staged drafts when no DATABASE_URL is configured"
    )

    # ===== Mail Transport (Optional) =====
    SMTP_HOST: str | None = Field(
        default=None,
        description="SMTP server host"
    )

    SMTP_PORT: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (465 uses implicit TLS, anything else STARTTLS)"
    )

    SMTP_USER: str | None = Field(
        default=None,
        description="SMTP login user"
    )

    SMTP_PASSWORD: str | None = Field(
        default=None,
        description="SMTP login secret"
    )

    RESEND_API_KEY: str | None = Field(
        default=None,
        description="Resend API key, used when SMTP credentials are not set"
    )

    EMAIL_FROM_ADDRESS: str | None = Field(
        default=None,
        description="Sender address. Defaults to SMTP_USER for SMTP delivery"
    )

    # ===== Delivery Settings =====
    DELIVERY_SCHEDULE: str = Field(
        default="0 9 * * *",
        description="Crontab expression for the delivery check (default: daily at 09:00)"
    )

    DELIVERY_TIMEZONE: str = Field(
        default="UTC",
        description="Timezone the delivery schedule is evaluated in"
    )

    DELIVERY_PACING_SECONDS: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Pause between consecutive sends within one run"
    )

    EMAIL_PROBE_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        gt=0.0,
        description="Deadline for the transport connectivity probe"
    )

    EMAIL_SEND_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0.0,
        description="Deadline for a single send"
    )

    # ===== Application Settings =====
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    @field_validator("DELIVERY_SCHEDULE")
    @classmethod
    def validate_schedule(cls, v: str) -> str:
        """Require a standard 5-field crontab expression."""
        if len(v.split()) != 5:
            raise ValueError(f"DELIVERY_SCHEDULE must have 5 fields, got {v!r}")
        return v

    @field_validator("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "RESEND_API_KEY", "DATABASE_URL", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty env vars as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    # ===== Computed Properties =====

    @property
    def smtp_configured(self) -> bool:
        """Check if SMTP credentials are complete."""
        return (
            self.SMTP_HOST is not None
            and self.SMTP_USER is not None
            and self.SMTP_PASSWORD is not None
        )

    @property
    def email_configured(self) -> bool:
        """Check if any mail transport can be built."""
        return self.smtp_configured or self.RESEND_API_KEY is not None

    @property
    def use_database(self) -> bool:
        return self.DATABASE_URL is not None

    @property
    def database_path(self) -> str:
        """Filesystem path from a sqlite:/// URL."""
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL is not configured")
        url = self.DATABASE_URL
        for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
            if url.startswith(prefix):
                return url[len(prefix):]
        raise ValueError(f"Unsupported DATABASE_URL: {url!r} (expected sqlite:///path)")


# Global configuration instance
# Import this in other modules: from capsule.config import config
config = AppConfig()


if __name__ == "__main__":
    print("Configuration loaded successfully!")
    print(f"Storage: {'database ' + config.database_path if config.use_database else config.NOTES_FILE}")
    print(f"SMTP: {'✓' if config.smtp_configured else '✗'}")
    print(f"Resend: {'✓' if config.RESEND_API_KEY else '✗'}")
    print(f"Schedule: {config.DELIVERY_SCHEDULE} ({config.DELIVERY_TIMEZONE})")
