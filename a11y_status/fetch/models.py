"""Data models for the upstream status client."""

import random
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

from a11y_status.fetch.constants import (
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
)


class FetchErrorClass(str, Enum):
    """Classification of status fetch errors for retry decisions and reporting.

    - TRANSPORT_ERROR: Network, DNS, TLS failure or request timeout
    - HTTP_ERROR: Upstream answered with a non-200 status
    - EMPTY_RESPONSE: 200 OK with a null or empty payload (soft failure)
    - PARSE_ERROR: Malformed JSON, unexpected shape, or missing fields
    """

    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    PARSE_ERROR = "PARSE_ERROR"


class FetchError(BaseModel):
    """Typed error from a status fetch.

    Carries enough detail for retry decisions and for operator diagnostics
    without exposing it to end users by default.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: FetchErrorClass = Field(description="Classification of the error")
    message: Annotated[str, Field(min_length=1, description="Human-readable message")]
    status_code: int | None = Field(
        default=None, description="HTTP status code if available"
    )

    @property
    def is_soft(self) -> bool:
        """Whether the error means "no new information" rather than a failure."""
        return self.error_class == FetchErrorClass.EMPTY_RESPONSE


class RawStatus(BaseModel):
    """Certification status as reported by upstream, decoded to real types.

    ``expires`` stays in the upstream string format; the reconciler parses it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    certified: bool
    expires: str | None = None
    training_url: str = ""


class StatusFetchResult(BaseModel):
    """Result of fetching one identity: either a RawStatus or a FetchError."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    identity: Annotated[str, Field(min_length=1)]
    raw: RawStatus | None = None
    error: FetchError | None = None
    status_code: int = Field(default=0, ge=0, le=599)
    attempts: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "StatusFetchResult":
        if (self.raw is None) == (self.error is None):
            msg = "StatusFetchResult requires exactly one of raw or error"
            raise ValueError(msg)
        return self

    @property
    def is_success(self) -> bool:
        """Check if upstream returned a usable status."""
        return self.raw is not None


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Uses exponential backoff: delay = base_delay_ms * (exponential_base ^ attempt).
    Defaults to no retries so a refresh inside a user request is bounded by
    a single timeout.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 0
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 250
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 5000
    exponential_base: Annotated[float, Field(ge=1.0, le=5.0)] = 2.0
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1

    def should_retry(self, error: FetchError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            error: The error that occurred.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if the request should be retried.
        """
        if attempt >= self.max_retries:
            return False

        if error.error_class == FetchErrorClass.TRANSPORT_ERROR:
            return True

        if error.error_class == FetchErrorClass.HTTP_ERROR and error.status_code:
            return (
                HTTP_STATUS_SERVER_ERROR_MIN
                <= error.status_code
                < HTTP_STATUS_SERVER_ERROR_MAX
            )

        return False

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay_ms)

        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)


class ResponseSizeExceededError(Exception):
    """Raised when response size exceeds the configured limit."""
