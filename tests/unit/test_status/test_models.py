"""Unit tests for status record models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from a11y_status.status.models import (
    RECORD_SCHEMA_VERSION,
    CertificationState,
    RecordSnapshot,
    StatusRecord,
)
from tests.helpers.time import FIXED_NOW


class TestStatusRecord:
    """Tests for StatusRecord."""

    def test_certified_promotes_was_certified(self) -> None:
        """A certified record is always marked as ever certified."""
        record = StatusRecord(
            is_certified=True,
            was_certified=False,
            last_checked=FIXED_NOW,
        )

        assert record.was_certified is True

    def test_uncertified_keeps_was_certified(self) -> None:
        """Test that an expired record keeps its history."""
        record = StatusRecord(
            is_certified=False,
            was_certified=True,
            last_checked=FIXED_NOW,
        )

        assert record.is_certified is False
        assert record.was_certified is True

    def test_naive_datetimes_become_utc(self) -> None:
        """Naive timestamps are treated as UTC."""
        record = StatusRecord(
            is_certified=True,
            was_certified=True,
            expire_date=datetime(2030, 1, 1),
            last_checked=datetime(2024, 3, 15),
        )

        assert record.expire_date == datetime(2030, 1, 1, tzinfo=UTC)
        assert record.last_checked.tzinfo is UTC

    def test_defaults(self) -> None:
        """Test default field values."""
        record = StatusRecord(is_certified=False, was_certified=False, last_checked=FIXED_NOW)

        assert record.expire_date is None
        assert record.training_url == ""
        assert record.schema_version == RECORD_SCHEMA_VERSION

    def test_frozen(self) -> None:
        """Records are immutable."""
        record = StatusRecord(is_certified=False, was_certified=False, last_checked=FIXED_NOW)

        with pytest.raises(ValidationError):
            record.is_certified = True  # type: ignore[misc]

    def test_rejects_unknown_fields(self) -> None:
        """Test that extra fields are forbidden."""
        with pytest.raises(ValidationError):
            StatusRecord(
                is_certified=False,
                was_certified=False,
                last_checked=FIXED_NOW,
                isCertified="True",  # type: ignore[call-arg]
            )

    def test_to_storage_shape(self) -> None:
        """Test the persisted JSON shape."""
        record = StatusRecord(
            is_certified=True,
            was_certified=True,
            expire_date=datetime(2030, 3, 7, 18, 52, tzinfo=UTC),
            training_url="https://x/train",
            last_checked=FIXED_NOW,
        )

        stored = record.to_storage()

        assert stored == {
            "is_certified": True,
            "was_certified": True,
            "expire_date": "2030-03-07T18:52:00Z",
            "training_url": "https://x/train",
            "last_checked": "2024-03-15T12:00:00Z",
            "schema_version": RECORD_SCHEMA_VERSION,
        }


class TestCertificationState:
    """Tests for CertificationState helpers."""

    def test_certified_states(self) -> None:
        """Test is_certified on each state."""
        assert CertificationState.CERTIFIED_OK.is_certified
        assert CertificationState.CERTIFIED_EXPIRING_SOON.is_certified
        assert not CertificationState.UNCERTIFIED_EXPIRED.is_certified
        assert not CertificationState.UNCERTIFIED_NEVER.is_certified

    def test_only_ok_needs_no_attention(self) -> None:
        """Every state but CERTIFIED_OK warrants a reminder."""
        needing = [state for state in CertificationState if state.needs_attention]

        assert CertificationState.CERTIFIED_OK not in needing
        assert len(needing) == 3


class TestRecordSnapshot:
    """Tests for RecordSnapshot."""

    def test_label(self) -> None:
        """Test the short label for listings."""
        record = StatusRecord(is_certified=False, was_certified=True, last_checked=FIXED_NOW)
        snapshot = RecordSnapshot(
            identity="asmith",
            record=record,
            state=CertificationState.UNCERTIFIED_EXPIRED,
            as_of=FIXED_NOW,
        )

        assert snapshot.label == "Expired"
