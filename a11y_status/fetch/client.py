"""HTTP client for the upstream certification status service."""

import time
from io import BytesIO

import httpx
import structlog

from a11y_status.fetch.config import ClientConfig
from a11y_status.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_OK,
    NID_QUERY_PARAM,
)
from a11y_status.fetch.metrics import FetchMetrics
from a11y_status.fetch.models import (
    FetchError,
    FetchErrorClass,
    ResponseSizeExceededError,
    StatusFetchResult,
)
from a11y_status.fetch.parser import (
    EmptyPayloadError,
    PayloadParseError,
    parse_status_payload,
)


logger = structlog.get_logger()


class StatusClient:
    """Fetches and decodes one identity's certification status.

    Provides a bounded GET against the configured endpoint with:
    - Failure classification into transport, HTTP, empty and parse errors
    - Optional retries with exponential backoff
    - Maximum response size enforcement
    - Metrics collection

    The client never touches the status store.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
        metrics: FetchMetrics | None = None,
    ) -> None:
        """Initialize the status client.

        Args:
            config: Client configuration.
            transport: Optional httpx transport (used by tests and embedders).
            metrics: Optional metrics instance.
        """
        self._config = config
        self._transport = transport
        self._metrics = metrics or FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch")

    @property
    def config(self) -> ClientConfig:
        """Get the client configuration."""
        return self._config

    def build_url(self, identity: str) -> httpx.URL:
        """Build the request URL for an identity.

        Args:
            identity: Canonical network ID.

        Returns:
            Base URL with the NID query parameter merged in.
        """
        return httpx.URL(self._config.base_url).copy_merge_params(
            {NID_QUERY_PARAM: identity}
        )

    def fetch(
        self,
        identity: str,
        timeout: float | None = None,
    ) -> StatusFetchResult:
        """Fetch the certification status for one identity.

        Args:
            identity: Canonical network ID.
            timeout: Optional per-call timeout overriding the configured one.

        Returns:
            StatusFetchResult holding either the decoded status or the error.
        """
        start_time_ns = time.perf_counter_ns()
        url = self.build_url(identity)
        log = self._log.bind(identity=identity, host=url.host)

        result = self._execute_with_retry(
            identity=identity,
            url=url,
            timeout=timeout if timeout is not None else self._config.timeout_seconds,
            log=log,
        )

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)
        if result.error is not None:
            self._metrics.record_failure(result.error.error_class)

        log.info(
            "status_fetch_complete",
            status_code=result.status_code,
            attempts=result.attempts,
            duration_ms=round(duration_ms, 2),
            certified=result.raw.certified if result.raw else None,
            error_class=result.error.error_class.value if result.error else None,
        )

        return result

    def _execute_with_retry(
        self,
        identity: str,
        url: httpx.URL,
        timeout: float,
        log: structlog.stdlib.BoundLogger,
    ) -> StatusFetchResult:
        """Execute the request, retrying per the configured policy."""
        policy = self._config.retry_policy
        attempt = 0

        while True:
            result = self._execute_single(identity, url, timeout, log, attempt)

            if result.error is None or not policy.should_retry(result.error, attempt):
                return result

            delay_ms = policy.get_delay_ms(attempt)
            attempt += 1
            self._metrics.record_retry()
            log.debug(
                "retry_attempt",
                attempt=attempt,
                delay_ms=delay_ms,
                max_retries=policy.max_retries,
                error_class=result.error.error_class.value,
            )
            time.sleep(delay_ms / 1000.0)

    def _execute_single(
        self,
        identity: str,
        url: httpx.URL,
        timeout: float,
        log: structlog.stdlib.BoundLogger,
        attempt: int,
    ) -> StatusFetchResult:
        """Execute a single HTTP request and classify the outcome."""
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
        }
        attempts = attempt + 1

        try:
            with (
                httpx.Client(
                    timeout=timeout,
                    follow_redirects=True,
                    transport=self._transport,
                ) as client,
                client.stream("GET", url, headers=headers) as response,
            ):
                status_code = response.status_code

                if status_code != HTTP_STATUS_OK:
                    self._metrics.record_request(status_code, 0)
                    return self._error(
                        identity,
                        FetchErrorClass.HTTP_ERROR,
                        f"Status request for {url} returned HTTP code {status_code}",
                        status_code=status_code,
                        attempts=attempts,
                    )

                body = self._read_body_with_limit(response)
                self._metrics.record_request(status_code, len(body))

        except httpx.TimeoutException as e:
            return self._error(
                identity,
                FetchErrorClass.TRANSPORT_ERROR,
                f"Request timed out after {timeout}s: {e}",
                attempts=attempts,
            )

        except ResponseSizeExceededError as e:
            return self._error(
                identity,
                FetchErrorClass.PARSE_ERROR,
                str(e),
                status_code=HTTP_STATUS_OK,
                attempts=attempts,
            )

        except httpx.HTTPError as e:
            return self._error(
                identity,
                FetchErrorClass.TRANSPORT_ERROR,
                f"Transport failure: {type(e).__name__}: {e}",
                attempts=attempts,
            )

        try:
            raw = parse_status_payload(body, self._config.tzinfo)
        except EmptyPayloadError as e:
            log.warning("status_fetch_empty_response", identity=identity)
            return self._error(
                identity,
                FetchErrorClass.EMPTY_RESPONSE,
                str(e),
                status_code=HTTP_STATUS_OK,
                attempts=attempts,
            )
        except PayloadParseError as e:
            return self._error(
                identity,
                FetchErrorClass.PARSE_ERROR,
                str(e),
                status_code=HTTP_STATUS_OK,
                attempts=attempts,
            )

        return StatusFetchResult(
            identity=identity,
            raw=raw,
            status_code=HTTP_STATUS_OK,
            attempts=attempts,
        )

    def _error(
        self,
        identity: str,
        error_class: FetchErrorClass,
        message: str,
        status_code: int | None = None,
        attempts: int = 1,
    ) -> StatusFetchResult:
        """Build a failed StatusFetchResult."""
        return StatusFetchResult(
            identity=identity,
            error=FetchError(
                error_class=error_class,
                message=message,
                status_code=status_code,
            ),
            status_code=status_code or 0,
            attempts=attempts,
        )

    def _read_body_with_limit(self, response: httpx.Response) -> bytes:
        """Read response body with size limit.

        Args:
            response: Streaming HTTP response.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
        """
        max_size = self._config.max_response_size_bytes

        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > max_size:
            msg = f"Response size {content_length} exceeds limit {max_size}"
            raise ResponseSizeExceededError(msg)

        buffer = BytesIO()
        total_read = 0

        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)

        return buffer.getvalue()
