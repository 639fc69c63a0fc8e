"""Status store interface and the in-memory implementation."""

import threading
from typing import Protocol

from a11y_status.status.models import StatusRecord
from a11y_status.store.metrics import StoreMetrics


class StatusStore(Protocol):
    """Per-identity key-value cache of StatusRecord.

    No TTL eviction happens inside a store; staleness is decided by the
    caller. ``put`` is last-writer-wins.
    """

    def get(self, identity: str) -> StatusRecord | None:
        """Get the cached record for an identity, or None."""
        ...

    def put(self, identity: str, record: StatusRecord) -> None:
        """Store a record, replacing any existing one."""
        ...

    def delete(self, identity: str) -> bool:
        """Delete an identity's record. Returns True if one existed."""
        ...

    def identities(self) -> list[str]:
        """List every identity with a cached record, sorted."""
        ...


class InMemoryStatusStore:
    """Dict-backed StatusStore for tests and embedders without a database."""

    def __init__(self, metrics: StoreMetrics | None = None) -> None:
        """Initialize an empty store.

        Args:
            metrics: Optional metrics instance.
        """
        self._records: dict[str, StatusRecord] = {}
        self._lock = threading.Lock()
        self._metrics = metrics or StoreMetrics.get_instance()

    def get(self, identity: str) -> StatusRecord | None:
        """Get the cached record for an identity, or None."""
        with self._lock:
            record = self._records.get(identity)
        self._metrics.record_get(hit=record is not None)
        return record

    def put(self, identity: str, record: StatusRecord) -> None:
        """Store a record, replacing any existing one."""
        with self._lock:
            self._records[identity] = record
        self._metrics.record_put()

    def delete(self, identity: str) -> bool:
        """Delete an identity's record. Returns True if one existed."""
        with self._lock:
            existed = self._records.pop(identity, None) is not None
        if existed:
            self._metrics.record_delete()
        return existed

    def identities(self) -> list[str]:
        """List every identity with a cached record, sorted."""
        with self._lock:
            return sorted(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
