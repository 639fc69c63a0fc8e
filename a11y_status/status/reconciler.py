"""Reconciliation of freshly fetched status with the cached record."""

from datetime import UTC, datetime, tzinfo

import structlog

from a11y_status.fetch.models import RawStatus
from a11y_status.fetch.parser import parse_expires
from a11y_status.status.models import StatusRecord, ensure_aware


logger = structlog.get_logger()


class StatusReconciler:
    """Merges a fresh upstream status into any previously cached record.

    Rules:
    - ``is_certified`` always follows the fresh status
    - ``was_certified`` never goes back to false
    - a previously certified identity that upstream now reports as not
      certified keeps its known ``expire_date``; an upstream record that
      disappears is treated as an anomaly, not a revocation date
    - ``last_checked`` becomes ``now`` and never moves backwards
    - an empty fresh ``training_url`` keeps the previous one

    ``merge`` is pure: the same inputs always produce the same record.
    """

    def __init__(self, source_tz: tzinfo = UTC) -> None:
        """Initialize the reconciler.

        Args:
            source_tz: Timezone upstream expiration strings are expressed in.
        """
        self._source_tz = source_tz

    def merge(
        self,
        previous: StatusRecord | None,
        fresh: RawStatus,
        now: datetime,
    ) -> StatusRecord:
        """Merge a fresh status into the previous record.

        Args:
            previous: Cached record, or None for a first fetch.
            fresh: Decoded upstream status.
            now: Time of the refresh.

        Returns:
            The reconciled record.

        Raises:
            ValueError: If ``fresh.expires`` is not in the upstream format.
        """
        now = ensure_aware(now)
        is_certified = fresh.certified
        was_certified = is_certified or (previous is not None and previous.was_certified)

        expire_date = parse_expires(fresh.expires, self._source_tz)
        preserved_expiration = False
        if previous is not None and previous.was_certified and not is_certified:
            expire_date = previous.expire_date
            preserved_expiration = True

        last_checked = now
        training_url = fresh.training_url
        if previous is not None:
            if previous.last_checked > now:
                last_checked = previous.last_checked
            if not training_url:
                training_url = previous.training_url

        if preserved_expiration:
            logger.debug(
                "expiration_preserved",
                component="reconciler",
                expire_date=expire_date.isoformat() if expire_date else None,
            )

        return StatusRecord(
            is_certified=is_certified,
            was_certified=was_certified,
            expire_date=expire_date,
            training_url=training_url,
            last_checked=last_checked,
        )
