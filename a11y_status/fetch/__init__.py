"""Upstream certification status client.

This module provides the bounded HTTP fetch of one identity's status with:
- Decoding of upstream string booleans and date strings at the boundary
- Classification of transport, HTTP, empty-response and parse failures
- Optional retry policy with exponential backoff
- Maximum response size enforcement
- Metrics collection for observability
"""

from a11y_status.fetch.client import StatusClient
from a11y_status.fetch.config import (
    DEFAULT_API_URL,
    DEFAULT_SOURCE_TIMEZONE,
    ClientConfig,
)
from a11y_status.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    EXPIRES_FORMAT,
    NID_QUERY_PARAM,
)
from a11y_status.fetch.metrics import FetchMetrics
from a11y_status.fetch.models import (
    FetchError,
    FetchErrorClass,
    RawStatus,
    ResponseSizeExceededError,
    RetryPolicy,
    StatusFetchResult,
)
from a11y_status.fetch.parser import (
    EmptyPayloadError,
    PayloadParseError,
    decode_certified,
    parse_expires,
    parse_status_payload,
)


__all__ = [
    # Client
    "StatusClient",
    # Config
    "ClientConfig",
    "DEFAULT_API_URL",
    "DEFAULT_SOURCE_TIMEZONE",
    # Models
    "FetchError",
    "FetchErrorClass",
    "RawStatus",
    "ResponseSizeExceededError",
    "RetryPolicy",
    "StatusFetchResult",
    # Parsing
    "EmptyPayloadError",
    "PayloadParseError",
    "decode_certified",
    "parse_expires",
    "parse_status_payload",
    # Constants
    "DEFAULT_MAX_RESPONSE_SIZE_BYTES",
    "EXPIRES_FORMAT",
    "NID_QUERY_PARAM",
    # Metrics
    "FetchMetrics",
]
