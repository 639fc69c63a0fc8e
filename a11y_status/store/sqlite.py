"""SQLite status store implementation."""

import json
import sqlite3
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo
from pathlib import Path
from typing import Any

import structlog

from a11y_status.status.models import RECORD_SCHEMA_VERSION, StatusRecord
from a11y_status.store.codec import decode_record, detect_version, encode_record, loads_record
from a11y_status.store.errors import (
    RecordDecodeError,
    StoreConnectionError,
    StoreOperationError,
)
from a11y_status.store.metrics import StoreMetrics, TransactionContext
from a11y_status.store.migrations import CURRENT_VERSION, MigrationManager


logger = structlog.get_logger()


@dataclass
class UpgradeReport:
    """Outcome of rewriting legacy records in the current shape."""

    upgraded: int = 0
    failed: list[str] = field(default_factory=list)


class SqliteStatusStore:
    """SQLite-backed StatusStore.

    Stores one JSON payload per identity. Payloads written by older revisions
    are decoded on read and can be rewritten in place by ``upgrade_records``.
    Uses WAL mode for reliability and supports schema migrations.
    """

    def __init__(
        self,
        db_path: Path | str,
        source_tz: tzinfo = UTC,
        metrics: StoreMetrics | None = None,
    ) -> None:
        """Initialize the status store.

        Args:
            db_path: Path to SQLite database file.
            source_tz: Timezone assumed for naive timestamps in legacy payloads.
            metrics: Optional metrics instance.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._source_tz = source_tz
        self._conn: sqlite3.Connection | None = None
        self._metrics = metrics or StoreMetrics.get_instance()
        self._log = logger.bind(component="store", db_path=str(self._db_path))

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._log.debug("connecting_to_database")

        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.debug("database_closed")

    def __enter__(self) -> "SqliteStatusStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(tx_id=tx_id, start_time_ns=start_ns, operation=operation)

        try:
            yield ctx
            conn.commit()
        except Exception as e:
            conn.rollback()
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._log.error(
                "transaction_failed",
                tx_id=tx_id,
                op=operation,
                duration_ms=round(duration_ms, 2),
                error=str(e),
            )
            if isinstance(e, sqlite3.Error):
                raise StoreOperationError(operation, str(e)) from e
            raise

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_tx_duration(duration_ms)
        self._log.debug(
            "transaction_complete",
            tx_id=tx_id,
            op=operation,
            affected_rows=ctx.affected_rows,
            duration_ms=round(duration_ms, 2),
        )

    @contextmanager
    def _query(self, operation: str) -> Generator[sqlite3.Connection]:
        """Context manager for reads that reports database errors as store errors.

        Args:
            operation: Name of the operation for logging.

        Yields:
            The open connection.
        """
        conn = self._ensure_connected()
        try:
            yield conn
        except sqlite3.Error as e:
            self._log.error("query_failed", op=operation, error=str(e))
            raise StoreOperationError(operation, str(e)) from e

    # ===== Record Operations =====

    def get(self, identity: str) -> StatusRecord | None:
        """Get the cached record for an identity.

        Legacy payloads are normalized on read; the row is left as-is.

        Args:
            identity: Canonical identity.

        Returns:
            The StatusRecord, or None if not found.

        Raises:
            RecordDecodeError: If the stored payload cannot be decoded.
            StoreOperationError: If the query fails.
        """
        with self._query("get_record") as conn:
            row = conn.execute(
                "SELECT payload FROM status_records WHERE identity = ?",
                (identity,),
            ).fetchone()
        self._metrics.record_get(hit=row is not None)

        if row is None:
            return None

        return loads_record(row["payload"], self._source_tz, identity)

    def put(self, identity: str, record: StatusRecord) -> None:
        """Store a record, replacing any existing one (last writer wins).

        Args:
            identity: Canonical identity.
            record: Record to store.

        Raises:
            StoreOperationError: If the database rejects the write.
        """
        now = datetime.now(UTC)

        with self._transaction("put_record") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO status_records (
                    identity, payload, record_version, last_checked, updated_at
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(identity) DO UPDATE SET
                    payload = excluded.payload,
                    record_version = excluded.record_version,
                    last_checked = excluded.last_checked,
                    updated_at = excluded.updated_at
                """,
                (
                    identity,
                    encode_record(record),
                    record.schema_version,
                    record.last_checked.isoformat(),
                    now.isoformat(),
                ),
            )
            ctx.add_affected_rows(1)

        self._metrics.record_put()

    def delete(self, identity: str) -> bool:
        """Delete an identity's record.

        Args:
            identity: Canonical identity.

        Returns:
            True if a record was deleted.
        """
        with self._transaction("delete_record") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "DELETE FROM status_records WHERE identity = ?",
                (identity,),
            )
            ctx.add_affected_rows(cursor.rowcount)

        deleted = ctx.affected_rows > 0
        if deleted:
            self._metrics.record_delete()
            self._log.info("record_deleted", identity=identity)
        return deleted

    def identities(self) -> list[str]:
        """List every identity with a stored record, sorted."""
        with self._query("list_identities") as conn:
            rows = conn.execute(
                "SELECT identity FROM status_records ORDER BY identity"
            ).fetchall()
        return [row["identity"] for row in rows]

    # ===== Legacy Records =====

    def import_payload(self, identity: str, payload: dict[str, Any]) -> int:
        """Store a payload exactly as given, in whatever shape it is in.

        Used to bring in records exported from older deployments. The payload
        must be decodable; it is stored untouched so ``upgrade_records`` can
        rewrite it later.

        Args:
            identity: Canonical identity.
            payload: Record payload of any known shape.

        Returns:
            Detected record shape version.

        Raises:
            RecordDecodeError: If the payload is not a known shape.
        """
        decode_record(payload, self._source_tz, identity)
        version = detect_version(payload)
        now = datetime.now(UTC)

        with self._transaction("import_payload") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO status_records (
                    identity, payload, record_version, last_checked, updated_at
                ) VALUES (?, ?, ?, NULL, ?)
                ON CONFLICT(identity) DO UPDATE SET
                    payload = excluded.payload,
                    record_version = excluded.record_version,
                    last_checked = excluded.last_checked,
                    updated_at = excluded.updated_at
                """,
                (identity, json.dumps(payload, sort_keys=True), version, now.isoformat()),
            )
            ctx.add_affected_rows(1)

        return version

    def count_legacy_records(self) -> int:
        """Count records stored in an older shape."""
        with self._query("count_legacy_records") as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM status_records WHERE record_version < ?",
                (RECORD_SCHEMA_VERSION,),
            ).fetchone()
        return int(row[0])

    def upgrade_records(self) -> UpgradeReport:
        """Rewrite every legacy record in the current shape.

        Records that cannot be decoded are left untouched and reported.

        Returns:
            UpgradeReport with the number upgraded and the identities that failed.
        """
        with self._query("select_legacy_records") as conn:
            rows = conn.execute(
                """
                SELECT identity, payload FROM status_records
                WHERE record_version < ?
                ORDER BY identity
                """,
                (RECORD_SCHEMA_VERSION,),
            ).fetchall()
        report = UpgradeReport()

        for row in rows:
            identity = row["identity"]
            try:
                record = loads_record(row["payload"], self._source_tz, identity)
            except RecordDecodeError as e:
                self._log.error("record_upgrade_failed", identity=identity, error=str(e))
                report.failed.append(identity)
                continue

            self.put(identity, record)
            report.upgraded += 1

        self._metrics.record_upgraded(report.upgraded)
        self._log.info(
            "records_upgraded",
            upgraded=report.upgraded,
            failed=len(report.failed),
        )
        return report

    # ===== Stats =====

    def get_stats(self) -> dict[str, int]:
        """Get record counts.

        Returns:
            Dictionary with total and legacy record counts.
        """
        with self._query("get_stats") as conn:
            total = conn.execute("SELECT COUNT(*) FROM status_records").fetchone()[0]
        return {
            "status_records": int(total),
            "legacy_records": self.count_legacy_records(),
        }

    def get_schema_version(self) -> int:
        """Get current database schema version."""
        conn = self._ensure_connected()
        return MigrationManager(conn).get_current_version()
