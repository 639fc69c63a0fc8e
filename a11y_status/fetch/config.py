"""Configuration model for the upstream status client."""

from typing import Annotated
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from a11y_status.fetch.constants import DEFAULT_MAX_RESPONSE_SIZE_BYTES
from a11y_status.fetch.models import RetryPolicy


DEFAULT_API_URL = "https://webserv.wsu.edu/accessibility/training/service"
DEFAULT_SOURCE_TIMEZONE = "America/Los_Angeles"


class ClientConfig(BaseModel):
    """Configuration for the certification status client.

    Central configuration for upstream requests including the endpoint,
    timeout, retry policy, and the timezone expiration dates are reported in.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: Annotated[str, Field(min_length=1)] = DEFAULT_API_URL
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "a11y-status/1.0"
    )
    timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = 10.0
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=100 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    source_timezone: Annotated[str, Field(min_length=1)] = DEFAULT_SOURCE_TIMEZONE

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure the base URL is an absolute http(s) URL."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            msg = f"base_url must be an absolute http(s) URL, got {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("source_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Ensure the timezone name resolves."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone upstream expiration dates are expressed in."""
        return ZoneInfo(self.source_timezone)
