"""
Datetime utilities for MediTrack.

This module provides consistent time handling across the application:
- Health record timestamps are integer seconds since the epoch
- Reminder dates and times are zero-padded "YYYY-MM-DD" / "HH:MM" strings
- Display and reminder evaluation use the local wall clock

Design Principles:
- Storage: epoch seconds (flat file and SQLite INTEGER column)
- Reminders: fixed-width strings, so lexicographic order equals time order
- Display: local time, "%Y-%m-%d %H:%M"

Usage:
    from meditrack.core.datetime_utils import epoch_now, reminder_clock, format_timestamp

    # Timestamp for a newly entered measurement
    ts = epoch_now()

    # Strings to compare a reminder against
    today, current_time = reminder_clock(datetime.now())

    # Human-readable capture time
    format_timestamp(ts)  # "2024-01-15 10:30"
"""
import logging
import time
from datetime import datetime
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

REMINDER_DATE_FORMAT = "%Y-%m-%d"
REMINDER_TIME_FORMAT = "%H:%M"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M"


# =============================================================================
# CORE UTILITIES
# =============================================================================

def epoch_now() -> int:
    """
    Get the current time as whole seconds since the epoch.

    Returns:
        int: Current Unix timestamp.
    """
    return int(time.time())


def local_now() -> datetime:
    """Get the current local wall-clock time (naive)."""
    return datetime.now()


def from_epoch(ts: int) -> datetime:
    """Convert an epoch timestamp to naive local time."""
    return datetime.fromtimestamp(ts)


# =============================================================================
# REMINDER CLOCK
# =============================================================================

def reminder_clock(now: Optional[datetime] = None) -> Tuple[str, str]:
    """
    Render a moment as the (date, time) strings reminders are compared with.

    Args:
        now: The moment to render. Defaults to the local wall clock.

    Returns:
        Tuple of ("YYYY-MM-DD", "HH:MM").

    Example:
        >>> reminder_clock(datetime(2024, 1, 5, 9, 3))
        ('2024-01-05', '09:03')
    """
    if now is None:
        now = local_now()
    return now.strftime(REMINDER_DATE_FORMAT), now.strftime(REMINDER_TIME_FORMAT)


def is_valid_reminder_date(value: str) -> bool:
    """Check that a string is a real calendar date in "YYYY-MM-DD" form."""
    if len(value) != 10:
        return False
    try:
        datetime.strptime(value, REMINDER_DATE_FORMAT)
    except ValueError:
        return False
    return True


def is_valid_reminder_time(value: str) -> bool:
    """Check that a string is a 24-hour "HH:MM" time."""
    if len(value) != 5:
        return False
    try:
        datetime.strptime(value, REMINDER_TIME_FORMAT)
    except ValueError:
        return False
    return True


# =============================================================================
# FORMATTING
# =============================================================================

def format_timestamp(ts: int) -> str:
    """
    Format an epoch timestamp for display in local time.

    Example:
        >>> format_timestamp(0)  # with TZ=UTC
        '1970-01-01 00:00'
    """
    return from_epoch(ts).strftime(DISPLAY_FORMAT)
