"""Domain exceptions for the status store.

This module defines a hierarchy of exceptions for the store layer,
separating infrastructure errors (database issues) from data errors
(records that cannot be decoded).
"""


class StatusStoreError(Exception):
    """Base exception for all status store errors.

    All exceptions raised by the store should inherit from this class
    to enable consistent error handling at the application level.
    """


class StoreConnectionError(StatusStoreError):
    """Raised when the database connection fails or is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class RecordDecodeError(StatusStoreError):
    """Raised when a persisted record cannot be decoded into a StatusRecord.

    Covers unknown record shapes, shapes newer than this code understands,
    and values that cannot be coerced into the record's types.
    """

    def __init__(self, message: str, identity: str | None = None) -> None:
        """Initialize the decode error.

        Args:
            message: Human-readable error message.
            identity: Identity whose record failed to decode, when known.
        """
        self.identity = identity
        prefix = f"Record for {identity!r}: " if identity else ""
        super().__init__(f"{prefix}{message}")


class MigrationError(StatusStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")


class StoreOperationError(StatusStoreError):
    """Raised when the database rejects a read or write."""

    def __init__(self, operation: str, message: str) -> None:
        """Initialize the operation error.

        Args:
            operation: Name of the store operation that failed.
            message: Error reported by the database.
        """
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")
