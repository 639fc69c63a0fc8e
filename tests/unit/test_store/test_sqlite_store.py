"""Unit tests for the SQLite status store."""

import json
import sqlite3
import tempfile
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from a11y_status.status.models import RECORD_SCHEMA_VERSION, StatusRecord
from a11y_status.store.codec import LEGACY_SNAKE_CASE_VERSION, LEGACY_UPSTREAM_VERSION
from a11y_status.store.errors import (
    RecordDecodeError,
    StatusStoreError,
    StoreConnectionError,
    StoreOperationError,
)
from a11y_status.store.metrics import StoreMetrics
from a11y_status.store.migrations import CURRENT_VERSION
from a11y_status.store.sqlite import SqliteStatusStore
from tests.helpers.time import FIXED_NOW, PACIFIC


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "status.sqlite"


@pytest.fixture
def store(temp_db_path: Path) -> Generator[SqliteStatusStore]:
    """Create a connected status store."""
    store = SqliteStatusStore(temp_db_path, source_tz=PACIFIC, metrics=StoreMetrics())
    store.connect()
    yield store
    store.close()


CERTIFIED_RECORD = StatusRecord(
    is_certified=True,
    was_certified=True,
    expire_date=datetime(2030, 3, 7, 18, 52, tzinfo=PACIFIC),
    training_url="https://x/train",
    last_checked=FIXED_NOW,
)


class TestConnection:
    """Tests for connection lifecycle."""

    def test_requires_connect(self, temp_db_path: Path) -> None:
        """Test that operations fail before connect()."""
        store = SqliteStatusStore(temp_db_path)

        with pytest.raises(StoreConnectionError):
            store.get("jdoe")

    def test_context_manager(self, temp_db_path: Path) -> None:
        """Test that the context manager connects and closes."""
        with SqliteStatusStore(temp_db_path) as store:
            assert store.is_connected
            assert store.get_schema_version() == CURRENT_VERSION

        assert not store.is_connected

    def test_creates_parent_directories(self, temp_db_path: Path) -> None:
        """Test that a nested path is created."""
        nested = temp_db_path.parent / "a" / "b" / "status.sqlite"

        with SqliteStatusStore(nested):
            pass

        assert nested.exists()

    def test_connect_is_idempotent(self, store: SqliteStatusStore) -> None:
        """Test a second connect() is a no-op."""
        store.connect()

        assert store.get_schema_version() == CURRENT_VERSION


class TestRecords:
    """Tests for record operations."""

    def test_get_missing(self, store: SqliteStatusStore) -> None:
        """Test that unknown identities return None."""
        assert store.get("nobody") is None

    def test_put_then_get(self, store: SqliteStatusStore) -> None:
        """Test a stored record is returned intact."""
        store.put("jdoe", CERTIFIED_RECORD)

        assert store.get("jdoe") == CERTIFIED_RECORD

    def test_persists_across_connections(self, temp_db_path: Path) -> None:
        """Test durability."""
        with SqliteStatusStore(temp_db_path) as store:
            store.put("jdoe", CERTIFIED_RECORD)

        with SqliteStatusStore(temp_db_path) as store:
            assert store.get("jdoe") == CERTIFIED_RECORD

    def test_put_replaces(self, store: SqliteStatusStore) -> None:
        """Test last-writer-wins."""
        store.put("jdoe", CERTIFIED_RECORD)
        expired = CERTIFIED_RECORD.model_copy(update={"is_certified": False})
        store.put("jdoe", expired)

        record = store.get("jdoe")
        assert record is not None
        assert record.is_certified is False
        assert store.get_stats()["status_records"] == 1

    def test_delete(self, store: SqliteStatusStore) -> None:
        """Test delete reports whether a record existed."""
        store.put("jdoe", CERTIFIED_RECORD)

        assert store.delete("jdoe") is True
        assert store.delete("jdoe") is False
        assert store.get("jdoe") is None

    def test_identities(self, store: SqliteStatusStore) -> None:
        """Test sorted identity listing."""
        for identity in ("carol", "alice", "bob"):
            store.put(identity, CERTIFIED_RECORD)

        assert store.identities() == ["alice", "bob", "carol"]

    def test_corrupt_payload_raises_with_identity(self, store: SqliteStatusStore) -> None:
        """Test that undecodable rows name the identity."""
        store.import_payload("jdoe", {"isCertified": "True"})
        conn = store._ensure_connected()
        conn.execute("UPDATE status_records SET payload = '{oops' WHERE identity = 'jdoe'")
        conn.commit()

        with pytest.raises(RecordDecodeError) as exc_info:
            store.get("jdoe")

        assert exc_info.value.identity == "jdoe"


def reject_writes_for(store: SqliteStatusStore, identity: str) -> None:
    """Install a trigger that makes SQLite abort writes for one identity."""
    conn = store._ensure_connected()
    conn.execute(
        f"""
        CREATE TRIGGER reject_{identity} BEFORE INSERT ON status_records
        WHEN NEW.identity = '{identity}'
        BEGIN
            SELECT RAISE(ABORT, 'database or disk is full');
        END
        """
    )
    conn.commit()


class TestDatabaseErrors:
    """Tests that SQLite failures surface as store errors."""

    def test_rejected_write_raises_store_error(self, store: SqliteStatusStore) -> None:
        """Test that a failing write is wrapped and rolled back."""
        reject_writes_for(store, "jdoe")

        with pytest.raises(StoreOperationError, match="put_record failed") as exc_info:
            store.put("jdoe", CERTIFIED_RECORD)

        assert isinstance(exc_info.value, StatusStoreError)
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)
        assert store.get("jdoe") is None

    def test_other_identities_still_writable(self, store: SqliteStatusStore) -> None:
        """Test that the connection stays usable after a failed write."""
        reject_writes_for(store, "jdoe")

        with pytest.raises(StoreOperationError):
            store.put("jdoe", CERTIFIED_RECORD)
        store.put("asmith", CERTIFIED_RECORD)

        assert store.identities() == ["asmith"]

    def test_failed_read_raises_store_error(self, store: SqliteStatusStore) -> None:
        """Test that a failing query is wrapped."""
        conn = store._ensure_connected()
        conn.execute("DROP TABLE status_records")
        conn.commit()

        with pytest.raises(StoreOperationError, match="get_record failed"):
            store.get("jdoe")


class TestLegacyRecords:
    """Tests for importing and upgrading legacy shapes."""

    def test_import_reports_version(self, store: SqliteStatusStore) -> None:
        """Test shape detection on import."""
        upstream = {"isCertified": "True", "Expires": "Mar 7 2030 6:52PM", "trainingURL": ""}
        snake = {"is_certified": False, "was_certified": True}

        assert store.import_payload("a", upstream) == LEGACY_UPSTREAM_VERSION
        assert store.import_payload("b", snake) == LEGACY_SNAKE_CASE_VERSION
        assert store.count_legacy_records() == 2

    def test_import_rejects_unknown_shape(self, store: SqliteStatusStore) -> None:
        """Test that garbage is not imported."""
        with pytest.raises(RecordDecodeError):
            store.import_payload("a", {"foo": "bar"})

        assert store.identities() == []

    def test_legacy_rows_decode_on_read(self, store: SqliteStatusStore) -> None:
        """Test normalize-on-read."""
        store.import_payload(
            "jdoe",
            {"isCertified": "True", "Expires": "Mar 7 2030 6:52PM", "trainingURL": ""},
        )

        record = store.get("jdoe")

        assert record is not None
        assert record.is_certified is True
        assert record.expire_date == datetime(2030, 3, 7, 18, 52, tzinfo=PACIFIC)
        assert store.count_legacy_records() == 1

    def test_upgrade_rewrites_legacy_rows(self, store: SqliteStatusStore) -> None:
        """Test the one-shot upgrade."""
        store.import_payload("a", {"isCertified": "False", "Expires": "", "trainingURL": ""})
        store.import_payload("b", {"is_certified": True, "last_checked": 1710504000})
        store.put("c", CERTIFIED_RECORD)

        report = store.upgrade_records()

        assert report.upgraded == 2
        assert report.failed == []
        assert store.count_legacy_records() == 0
        row = store._ensure_connected().execute(
            "SELECT payload, record_version FROM status_records WHERE identity = 'b'"
        ).fetchone()
        assert row["record_version"] == RECORD_SCHEMA_VERSION
        assert json.loads(row["payload"])["last_checked"] == "2024-03-15T12:00:00Z"

    def test_upgrade_continues_past_failures(self, store: SqliteStatusStore) -> None:
        """Test that one bad row does not stop the upgrade."""
        store.import_payload("good", {"is_certified": True})
        store.import_payload("bad", {"is_certified": True})
        conn = store._ensure_connected()
        conn.execute("UPDATE status_records SET payload = '[]' WHERE identity = 'bad'")
        conn.commit()

        report = store.upgrade_records()

        assert report.upgraded == 1
        assert report.failed == ["bad"]
        assert store.count_legacy_records() == 1

    def test_upgrade_is_idempotent(self, store: SqliteStatusStore) -> None:
        """Test a second upgrade has nothing to do."""
        store.import_payload("a", {"is_certified": True})
        store.upgrade_records()

        report = store.upgrade_records()

        assert report.upgraded == 0


class TestStats:
    """Tests for statistics."""

    def test_get_stats(self, store: SqliteStatusStore) -> None:
        """Test record counts."""
        store.put("jdoe", CERTIFIED_RECORD)
        store.import_payload("asmith", {"is_certified": False})

        assert store.get_stats() == {"status_records": 2, "legacy_records": 1}

    def test_last_checked_column(self, store: SqliteStatusStore) -> None:
        """Test the indexed last_checked column is populated."""
        store.put("jdoe", CERTIFIED_RECORD)

        row = store._ensure_connected().execute(
            "SELECT last_checked FROM status_records WHERE identity = 'jdoe'"
        ).fetchone()

        assert datetime.fromisoformat(row["last_checked"]) == FIXED_NOW
        assert datetime.fromisoformat(row["last_checked"]).tzinfo is not None
        assert FIXED_NOW.tzinfo is UTC
