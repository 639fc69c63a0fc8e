"""Reminder text composed from a record's certification state."""

from datetime import datetime

import structlog
from jinja2 import Environment, PackageLoader, StrictUndefined
from pydantic import BaseModel, ConfigDict

from a11y_status.status.models import CertificationState, StatusRecord, ensure_aware
from a11y_status.status.predicates import (
    DEFAULT_GRACE_PERIOD_DAYS,
    classify,
    grace_period_remaining,
    human_time_diff,
)


logger = structlog.get_logger()

SUBJECTS: dict[CertificationState, str] = {
    CertificationState.UNCERTIFIED_NEVER: "Please take the WSU Accessibility Training.",
    CertificationState.UNCERTIFIED_EXPIRED: (
        "Please renew your WSU Accessibility Training certification."
    ),
    CertificationState.CERTIFIED_EXPIRING_SOON: (
        "WSU Accessibility Training certification expiring soon."
    ),
    CertificationState.CERTIFIED_OK: "Your WSU Accessibility Training certification is current.",
}


class Reminder(BaseModel):
    """A composed reminder message."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    subject: str
    body: str
    state: CertificationState
    should_notify: bool


def format_long_date(value: datetime) -> str:
    """Format a date like "March 7, 2030"."""
    return f"{value:%B} {value.day}, {value.year}"


def format_days(count: int) -> str:
    """Format a whole number of days like "1 day" or "12 days"."""
    return f"{count} day" if count == 1 else f"{count} days"


class ReminderComposer:
    """Builds reminder text from a StatusRecord.

    The message is driven only by ``classify`` so reminders always agree with
    the notices shown elsewhere. There is no network or store access.
    """

    def __init__(self, grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS) -> None:
        """Initialize the composer.

        Args:
            grace_period_days: Default grace period length for new identities.
        """
        self._grace_period_days = grace_period_days
        self._log = logger.bind(component="reminder")
        self._env = Environment(
            loader=PackageLoader("a11y_status.reminder", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            undefined=StrictUndefined,
        )
        self._env.filters["long_date"] = format_long_date
        self._env.filters["days"] = format_days

    def compose(
        self,
        record: StatusRecord,
        now: datetime,
        display_name: str | None = None,
        registered_at: datetime | None = None,
        grace_period_days: int | None = None,
    ) -> Reminder:
        """Compose the reminder for a record at ``now``.

        Args:
            record: Status record to describe.
            now: Instant to classify at.
            display_name: Name to greet, if known.
            registered_at: When the identity first appeared; enables the
                grace period sentence for never-certified identities.
            grace_period_days: Override of the grace period length.

        Returns:
            Reminder with subject, body, state and whether to send it.
        """
        now = ensure_aware(now)
        state = classify(record, now)
        days = grace_period_days if grace_period_days is not None else self._grace_period_days

        grace_remaining: int | None = None
        if registered_at is not None:
            grace_remaining = grace_period_remaining(registered_at, now, days)

        expire_date = record.expire_date
        time_diff = human_time_diff(now, expire_date) if expire_date else None

        template = self._env.get_template(f"{state.value}.txt")
        body = template.render(
            display_name=display_name,
            expire_date=expire_date,
            expire_passed=expire_date is not None and expire_date <= now,
            time_diff=time_diff,
            grace_remaining=grace_remaining,
            training_url=record.training_url,
        ).strip()

        self._log.debug("reminder_composed", state=state.value)

        return Reminder(
            subject=SUBJECTS[state],
            body=body,
            state=state,
            should_notify=state.needs_attention,
        )
