"""Errors raised by the status service."""


class StatusServiceError(Exception):
    """Base exception for status service errors."""


class StatusNotFoundError(StatusServiceError):
    """Raised when an identity has no cached record and none could be fetched."""

    def __init__(self, identity: str) -> None:
        """Initialize the error.

        Args:
            identity: Identity with no record.
        """
        self.identity = identity
        super().__init__(f"No certification status for {identity!r}")
