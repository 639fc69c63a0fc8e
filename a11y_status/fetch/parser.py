"""Decoding of upstream certification payloads.

The upstream service answers with JSON that is either ``null``, an object, or
(historically) a one-element array wrapping that object. Booleans arrive as
the strings ``"True"``/``"False"`` and expiration dates in a fixed
``Mon D YYYY h:mmAM/PM`` format. Everything is decoded here so that no
string-typed values leak past the client boundary.
"""

import json
from datetime import datetime, tzinfo
from typing import Any

from a11y_status.fetch.constants import (
    CERTIFIED_MARKER,
    EXPIRES_FORMAT,
    KEY_EXPIRES,
    KEY_IS_CERTIFIED,
    KEY_TRAINING_URL,
)
from a11y_status.fetch.models import RawStatus


# Expires and trainingURL may be absent for identities that never certified
REQUIRED_KEYS = (KEY_IS_CERTIFIED,)


class EmptyPayloadError(Exception):
    """Raised when upstream returned no data for the identity."""


class PayloadParseError(Exception):
    """Raised when the payload cannot be decoded into a RawStatus."""


def decode_certified(value: Any) -> bool:
    """Decode the upstream isCertified marker into a real boolean.

    Args:
        value: Raw value, normally the string "True" or "False".

    Returns:
        True only for the truthy marker (or a JSON true).

    Raises:
        PayloadParseError: If the value is neither a string nor a boolean.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == CERTIFIED_MARKER
    msg = f"isCertified has unexpected type {type(value).__name__}"
    raise PayloadParseError(msg)


def parse_expires(value: str | None, tz: tzinfo) -> datetime | None:
    """Parse an upstream expiration string into an aware datetime.

    Whitespace runs are collapsed first, so SQL Server style padding
    ("Mar  7 2030  6:52PM") parses the same as "Mar 7 2030 6:52PM".

    Args:
        value: Raw expiration string, or None.
        tz: Timezone the upstream wall-clock value is expressed in.

    Returns:
        Aware datetime, or None when no expiration was reported.

    Raises:
        ValueError: If the string does not match the upstream format.
    """
    if value is None:
        return None
    normalized = " ".join(value.split())
    if not normalized:
        return None
    return datetime.strptime(normalized, EXPIRES_FORMAT).replace(tzinfo=tz)


def _unwrap(payload: Any) -> Any:
    """Strip the historical one-element array wrapper."""
    if isinstance(payload, list):
        if not payload:
            return None
        return payload[0]
    return payload


def parse_status_payload(body: bytes, tz: tzinfo) -> RawStatus:
    """Decode an upstream response body.

    Args:
        body: Raw response body.
        tz: Source timezone, used to validate the expiration format.

    Returns:
        Decoded RawStatus.

    Raises:
        EmptyPayloadError: If the body is empty, null, or an empty container.
        PayloadParseError: If the body is malformed or missing fields.
    """
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        raise EmptyPayloadError("Empty response body")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Malformed JSON: {e.msg} at position {e.pos}"
        raise PayloadParseError(msg) from e

    record = _unwrap(payload)
    if record is None or record == {}:
        raise EmptyPayloadError("Upstream returned no certification data")

    if not isinstance(record, dict):
        msg = f"Expected a JSON object, got {type(record).__name__}"
        raise PayloadParseError(msg)

    missing = [key for key in REQUIRED_KEYS if key not in record]
    if missing:
        msg = f"Missing expected fields: {', '.join(missing)}"
        raise PayloadParseError(msg)

    expires = record.get(KEY_EXPIRES)
    if expires is not None and not isinstance(expires, str):
        msg = f"Expires has unexpected type {type(expires).__name__}"
        raise PayloadParseError(msg)

    try:
        parse_expires(expires, tz)
    except ValueError as e:
        msg = f"Unparseable Expires value {expires!r}"
        raise PayloadParseError(msg) from e

    training_url = record.get(KEY_TRAINING_URL) or ""
    if not isinstance(training_url, str):
        msg = f"trainingURL has unexpected type {type(training_url).__name__}"
        raise PayloadParseError(msg)

    return RawStatus(
        certified=decode_certified(record[KEY_IS_CERTIFIED]),
        expires=expires or None,
        training_url=training_url.strip(),
    )
