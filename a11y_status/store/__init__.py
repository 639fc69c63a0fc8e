"""Status record storage.

This module provides per-identity caching of certification records:
- A StatusStore protocol with in-memory and SQLite implementations
- Normalize-on-read decoding of legacy record shapes
- Bulk upgrade of legacy rows to the current shape
"""

from a11y_status.store.base import InMemoryStatusStore, StatusStore
from a11y_status.store.codec import (
    LEGACY_SNAKE_CASE_VERSION,
    LEGACY_UPSTREAM_VERSION,
    decode_record,
    detect_version,
    encode_record,
    loads_record,
)
from a11y_status.store.errors import (
    MigrationError,
    RecordDecodeError,
    StatusStoreError,
    StoreConnectionError,
    StoreOperationError,
)
from a11y_status.store.metrics import StoreMetrics
from a11y_status.store.migrations import CURRENT_VERSION, MigrationManager
from a11y_status.store.sqlite import SqliteStatusStore, UpgradeReport


__all__ = [
    # Stores
    "InMemoryStatusStore",
    "SqliteStatusStore",
    "StatusStore",
    "UpgradeReport",
    # Codec
    "LEGACY_SNAKE_CASE_VERSION",
    "LEGACY_UPSTREAM_VERSION",
    "decode_record",
    "detect_version",
    "encode_record",
    "loads_record",
    # Errors
    "MigrationError",
    "RecordDecodeError",
    "StatusStoreError",
    "StoreConnectionError",
    "StoreOperationError",
    # Migrations
    "CURRENT_VERSION",
    "MigrationManager",
    # Metrics
    "StoreMetrics",
]
