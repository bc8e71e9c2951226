"""
Domain models for medications and reminders.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from meditrack.core.datetime_utils import reminder_clock


@dataclass(frozen=True)
class Medication:
    """A medication the patient takes. All three fields are free text."""

    name: str
    dosage: str
    schedule: str


@dataclass(frozen=True)
class Reminder:
    """
    A one-off reminder.

    `date` is "YYYY-MM-DD" and `time` is 24-hour "HH:MM". Both stay plain
    strings; due checks compare them lexicographically against the current
    clock rendered in the same zero-padded format.
    """

    message: str
    date: str
    time: str

    def is_due(self, now: Optional[datetime] = None) -> bool:
        return is_reminder_due(self, now)


def is_reminder_due(reminder: Reminder, now: Optional[datetime] = None) -> bool:
    """
    Check whether a reminder is due at a given moment.

    A reminder is due on its own date once its time has been reached. It
    stays due for the rest of that day; there is no acknowledgement state.

    Args:
        reminder: The reminder to evaluate.
        now: The moment to evaluate at. Defaults to the local wall clock.

    Returns:
        True if `reminder.date` is today and `reminder.time` <= now.
    """
    today, current_time = reminder_clock(now)
    return reminder.date == today and reminder.time <= current_time
