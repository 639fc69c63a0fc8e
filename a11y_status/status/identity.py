"""Canonical identity keys (WSU network IDs).

A person's status is cached under one key. The key comes from an explicitly
configured network ID when there is one, otherwise from the local part of
their email address. Both derivations go through the same sanitization so
they land on the same record.
"""

import html
import re
import unicodedata


_TAG_PATTERN = re.compile(r"<[^>]*>")
_ENTITY_PATTERN = re.compile(r"&[a-zA-Z0-9#]+;")
_DISALLOWED_PATTERN = re.compile(r"[^a-z0-9 _.\-@]", re.IGNORECASE)
_WHITESPACE_PATTERN = re.compile(r"\s+")


class InvalidIdentityError(ValueError):
    """Raised when no usable identity can be derived."""


def sanitize_identity(value: str) -> str:
    """Sanitize a raw identifier the way WordPress sanitizes usernames.

    Strips tags and HTML entities, folds accented characters to ASCII,
    drops characters outside ``[a-z0-9 _.-@]``, and collapses whitespace.

    Args:
        value: Raw identifier.

    Returns:
        Sanitized identifier (may be empty).
    """
    text = _TAG_PATTERN.sub("", html.unescape(value))
    text = _ENTITY_PATTERN.sub("", text)
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = _DISALLOWED_PATTERN.sub("", text)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def email_local_part(email: str) -> str:
    """Return everything before the final ``@`` of an address.

    Multiple ``@`` separators before the domain are dropped, not kept.

    Args:
        email: Email address.

    Returns:
        The local part, or an empty string when there is no ``@``.
    """
    parts = email.split("@")
    return "".join(parts[:-1])


def canonicalize_identity(value: str) -> str:
    """Canonicalize an identifier into a cache key.

    Args:
        value: Raw network ID.

    Returns:
        Lower-cased sanitized key.

    Raises:
        InvalidIdentityError: If nothing usable remains.
    """
    key = sanitize_identity(value).lower()
    if not key:
        msg = f"Identity {value!r} is empty after sanitization"
        raise InvalidIdentityError(msg)
    return key


def derive_identity(nid: str | None = None, email: str | None = None) -> str:
    """Derive the canonical identity for a person.

    Args:
        nid: Explicitly configured network ID, if any.
        email: Email address used as the fallback source.

    Returns:
        Canonical identity key.

    Raises:
        InvalidIdentityError: If neither input yields a usable key.
    """
    if nid and nid.strip():
        return canonicalize_identity(nid)

    if email:
        return canonicalize_identity(email_local_part(email))

    msg = "An identity needs either a network ID or an email address"
    raise InvalidIdentityError(msg)
