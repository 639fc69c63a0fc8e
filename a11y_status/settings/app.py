"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from a11y_status.fetch.config import DEFAULT_API_URL, DEFAULT_SOURCE_TIMEZONE, ClientConfig
from a11y_status.fetch.models import RetryPolicy
from a11y_status.status.predicates import DEFAULT_GRACE_PERIOD_DAYS


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="A11Y_STATUS_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_url: str = Field(default=DEFAULT_API_URL, description="Upstream status endpoint")
    request_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    max_retries: int = Field(default=0, ge=0, le=10)
    db_path: Path = Field(default=Path("state/a11y_status.sqlite"))
    source_timezone: str = Field(default=DEFAULT_SOURCE_TIMEZONE)
    grace_period_days: int = Field(default=DEFAULT_GRACE_PERIOD_DAYS, ge=0)
    debug: bool = Field(default=False, description="Surface error detail to users")
    json_logs: bool = Field(default=True)

    @field_validator("source_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone upstream timestamps are expressed in."""
        return ZoneInfo(self.source_timezone)

    def to_client_config(self) -> ClientConfig:
        """Build the status client configuration."""
        return ClientConfig(
            base_url=self.api_url,
            timeout_seconds=self.request_timeout_seconds,
            retry_policy=RetryPolicy(max_retries=self.max_retries),
            source_timezone=self.source_timezone,
        )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
