"""Reminder composition for certification notices and emails."""

from a11y_status.reminder.composer import (
    SUBJECTS,
    Reminder,
    ReminderComposer,
    format_days,
    format_long_date,
)


__all__ = [
    "SUBJECTS",
    "Reminder",
    "ReminderComposer",
    "format_days",
    "format_long_date",
]
