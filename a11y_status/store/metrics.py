"""Metrics collection for the status store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for status store operations.

    Attributes:
        store_gets_total: Total record lookups.
        store_hits_total: Lookups that found a record.
        store_puts_total: Total records written.
        store_deletes_total: Total records deleted.
        records_upgraded_total: Legacy records rewritten in the current shape.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of transactions.
    """

    store_gets_total: int = 0
    store_hits_total: int = 0
    store_puts_total: int = 0
    store_deletes_total: int = 0
    records_upgraded_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_get(self, hit: bool) -> None:
        """Record a lookup and whether it found a record."""
        self.store_gets_total += 1
        if hit:
            self.store_hits_total += 1

    def record_put(self) -> None:
        """Record a write."""
        self.store_puts_total += 1

    def record_delete(self) -> None:
        """Record a delete."""
        self.store_deletes_total += 1

    def record_upgraded(self, count: int) -> None:
        """Record legacy records rewritten by an upgrade."""
        self.records_upgraded_total += count

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "store_gets_total": self.store_gets_total,
            "store_hits_total": self.store_hits_total,
            "store_puts_total": self.store_puts_total,
            "store_deletes_total": self.store_deletes_total,
            "records_upgraded_total": self.records_upgraded_total,
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
        }

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that found a record."""
        if self.store_gets_total == 0:
            return 0.0
        return self.store_hits_total / self.store_gets_total


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count."""
        self.affected_rows += rows
