"""Models for certification status records and their classification."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Version of the persisted record shape written by this code
RECORD_SCHEMA_VERSION = 2


class CertificationState(str, Enum):
    """Certification state of one identity at a point in time.

    Priority order when classifying:
    - UNCERTIFIED_NEVER: not certified now, never certified
    - UNCERTIFIED_EXPIRED: not certified now, certified in the past
    - CERTIFIED_EXPIRING_SOON: certified, less than one calendar month left
    - CERTIFIED_OK: certified, at least one calendar month left
    """

    UNCERTIFIED_NEVER = "uncertified_never"
    UNCERTIFIED_EXPIRED = "uncertified_expired"
    CERTIFIED_EXPIRING_SOON = "certified_expiring_soon"
    CERTIFIED_OK = "certified_ok"

    @property
    def is_certified(self) -> bool:
        """Whether the state is one of the certified states."""
        return self in (
            CertificationState.CERTIFIED_EXPIRING_SOON,
            CertificationState.CERTIFIED_OK,
        )

    @property
    def needs_attention(self) -> bool:
        """Whether the identity should be nagged about this state."""
        return self != CertificationState.CERTIFIED_OK


# Short labels used in listings and logs
STATE_LABELS: dict[CertificationState, str] = {
    CertificationState.UNCERTIFIED_NEVER: "None",
    CertificationState.UNCERTIFIED_EXPIRED: "Expired",
    CertificationState.CERTIFIED_EXPIRING_SOON: "Expiring soon",
    CertificationState.CERTIFIED_OK: "Certified",
}


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class StatusRecord(BaseModel):
    """Cached certification status for one identity.

    ``was_certified`` is monotonic: a record reporting ``is_certified`` is
    always promoted to ``was_certified`` on construction.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_certified: bool
    was_certified: bool
    expire_date: datetime | None = Field(
        default=None, description="Expiration reported upstream"
    )
    training_url: str = Field(default="", description="Training course URL")
    last_checked: datetime = Field(description="When the record was last refreshed")
    schema_version: int = Field(default=RECORD_SCHEMA_VERSION, ge=1)

    @model_validator(mode="before")
    @classmethod
    def promote_was_certified(cls, data: Any) -> Any:
        """Never allow a certified record that was not certified."""
        if isinstance(data, dict) and data.get("is_certified") is True:
            data = {**data, "was_certified": True}
        return data

    @field_validator("expire_date", "last_checked")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Store timestamps timezone-aware."""
        if v is None:
            return None
        return ensure_aware(v)

    def to_storage(self) -> dict[str, Any]:
        """Serialize to the persisted JSON-compatible shape."""
        return self.model_dump(mode="json")


class RecordSnapshot(BaseModel):
    """A record together with its classification at a given instant.

    This is the plain data handed to UI collaborators.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    identity: str
    record: StatusRecord
    state: CertificationState
    as_of: datetime

    @property
    def label(self) -> str:
        """Short human label for the state."""
        return STATE_LABELS[self.state]
