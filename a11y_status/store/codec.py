"""Normalize-on-read decoding of persisted status records.

Earlier revisions persisted records in other shapes:

- v0: the upstream keys as-is (``isCertified``, ``Expires``, ``trainingURL``),
  with ``"True"``/``"False"`` strings for the certification flag.
- v1: snake_case keys (``is_certified``, ``expire_date`` ...) but no
  ``schema_version``; timestamps as MySQL ``YYYY-MM-DD HH:MM:SS`` strings or
  PHP ``DateTime`` JSON objects.
- v2: the current shape, written by ``StatusRecord.to_storage``.

``decode_record`` recognises the variant by its keys and always returns a
current ``StatusRecord``.
"""

import json
from datetime import UTC, datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError

from a11y_status.fetch.parser import (
    PayloadParseError,
    decode_certified,
    parse_expires,
)
from a11y_status.status.models import RECORD_SCHEMA_VERSION, StatusRecord
from a11y_status.store.errors import RecordDecodeError


LEGACY_UPSTREAM_VERSION = 0
LEGACY_SNAKE_CASE_VERSION = 1

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_TRUTHY_STRINGS = frozenset({"1", "true", "yes", "on"})


def detect_version(payload: dict[str, Any]) -> int:
    """Work out which record shape a payload is in.

    Args:
        payload: Decoded JSON payload.

    Returns:
        Shape version number.

    Raises:
        RecordDecodeError: If the shape is not recognised.
    """
    if "schema_version" in payload:
        version = payload["schema_version"]
        if not isinstance(version, int) or isinstance(version, bool):
            msg = f"schema_version must be an integer, got {version!r}"
            raise RecordDecodeError(msg)
        return version
    if "is_certified" in payload:
        return LEGACY_SNAKE_CASE_VERSION
    if "isCertified" in payload:
        return LEGACY_UPSTREAM_VERSION
    msg = f"Unrecognised record shape with keys {sorted(payload)}"
    raise RecordDecodeError(msg)


def _coerce_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    msg = f"Cannot interpret {value!r} as a boolean"
    raise RecordDecodeError(msg)


def _coerce_datetime(value: Any, tz: tzinfo) -> datetime | None:
    """Coerce the timestamp encodings seen across record versions."""
    if value is None or value is False or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    if isinstance(value, int | float) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, dict) and "date" in value:
        # PHP DateTime serialized through json_encode
        zone: tzinfo = tz
        zone_name = value.get("timezone")
        if isinstance(zone_name, str):
            try:
                zone = ZoneInfo(zone_name)
            except (ZoneInfoNotFoundError, ValueError):
                zone = tz
        return _coerce_datetime(str(value["date"]), zone)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            try:
                return parse_expires(value, tz)
            except ValueError as e:
                msg = f"Unparseable timestamp {value!r}"
                raise RecordDecodeError(msg) from e
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)
    msg = f"Cannot interpret {value!r} as a timestamp"
    raise RecordDecodeError(msg)


def _decode_upstream_shape(payload: dict[str, Any], tz: tzinfo) -> dict[str, Any]:
    try:
        certified = decode_certified(payload.get("isCertified"))
    except PayloadParseError as e:
        raise RecordDecodeError(str(e)) from e
    return {
        "is_certified": certified,
        "was_certified": _coerce_bool(payload.get("was_certified")) or certified,
        "expire_date": _coerce_datetime(payload.get("Expires"), tz),
        "training_url": payload.get("trainingURL") or "",
        "last_checked": _coerce_datetime(payload.get("last_checked"), tz) or _EPOCH,
    }


def _decode_snake_case_shape(payload: dict[str, Any], tz: tzinfo) -> dict[str, Any]:
    certified = _coerce_bool(payload.get("is_certified"))
    return {
        "is_certified": certified,
        "was_certified": _coerce_bool(payload.get("was_certified")) or certified,
        "expire_date": _coerce_datetime(payload.get("expire_date"), tz),
        "training_url": payload.get("training_url") or "",
        "last_checked": _coerce_datetime(payload.get("last_checked"), tz) or _EPOCH,
    }


def decode_record(
    payload: Any,
    tz: tzinfo = UTC,
    identity: str | None = None,
) -> StatusRecord:
    """Decode a persisted payload of any known shape into a StatusRecord.

    Args:
        payload: Decoded JSON payload.
        tz: Timezone for naive legacy timestamps (the host's local time).
        identity: Identity the payload belongs to, for error messages.

    Returns:
        StatusRecord in the current shape.

    Raises:
        RecordDecodeError: If the payload cannot be decoded.
    """
    if not isinstance(payload, dict):
        msg = f"Expected a JSON object, got {type(payload).__name__}"
        raise RecordDecodeError(msg, identity)

    try:
        version = detect_version(payload)

        if version > RECORD_SCHEMA_VERSION:
            msg = (
                f"Record schema version {version} is newer than supported "
                f"version {RECORD_SCHEMA_VERSION}"
            )
            raise RecordDecodeError(msg)

        if version == RECORD_SCHEMA_VERSION:
            return StatusRecord.model_validate(payload)

        if version == LEGACY_SNAKE_CASE_VERSION:
            fields = _decode_snake_case_shape(payload, tz)
        else:
            fields = _decode_upstream_shape(payload, tz)

        return StatusRecord(**fields)

    except RecordDecodeError as e:
        if identity and e.identity is None:
            raise RecordDecodeError(str(e), identity) from e
        raise
    except ValidationError as e:
        msg = f"Invalid record fields: {e.error_count()} validation error(s)"
        raise RecordDecodeError(msg, identity) from e


def encode_record(record: StatusRecord) -> str:
    """Serialize a record to the JSON text persisted by the SQLite store."""
    return json.dumps(record.to_storage(), sort_keys=True)


def loads_record(
    text: str,
    tz: tzinfo = UTC,
    identity: str | None = None,
) -> StatusRecord:
    """Decode persisted JSON text of any known shape.

    Raises:
        RecordDecodeError: If the text is not JSON or not a known shape.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Stored payload is not valid JSON: {e.msg}"
        raise RecordDecodeError(msg, identity) from e
    return decode_record(payload, tz, identity)
