"""Metrics collection for status refreshes."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class RefreshMetrics:
    """Metrics for refresh orchestration.

    Attributes:
        refresh_total: Refreshes requested.
        refresh_skipped_total: Refreshes skipped because the cache was fresh.
        refresh_stored_total: Refreshes that stored a merged record.
        refresh_failed_total: Refreshes that failed, by error class.
        expiration_preserved_total: Merges that kept a previous expiration.
    """

    refresh_total: int = 0
    refresh_skipped_total: int = 0
    refresh_stored_total: int = 0
    refresh_failed_total: dict[str, int] = field(default_factory=dict)
    expiration_preserved_total: int = 0

    _instance: ClassVar["RefreshMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RefreshMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_refresh(self) -> None:
        """Record a refresh request."""
        self.refresh_total += 1

    def record_skipped(self) -> None:
        """Record a refresh skipped as fresh."""
        self.refresh_skipped_total += 1

    def record_stored(self, expiration_preserved: bool = False) -> None:
        """Record a stored merge."""
        self.refresh_stored_total += 1
        if expiration_preserved:
            self.expiration_preserved_total += 1

    def record_failed(self, reason: str) -> None:
        """Record a failed refresh.

        Args:
            reason: Error class value or exception name.
        """
        self.refresh_failed_total[reason] = self.refresh_failed_total.get(reason, 0) + 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary."""
        return {
            "refresh_total": self.refresh_total,
            "refresh_skipped_total": self.refresh_skipped_total,
            "refresh_stored_total": self.refresh_stored_total,
            "refresh_failed_total": dict(self.refresh_failed_total),
            "expiration_preserved_total": self.expiration_preserved_total,
        }
