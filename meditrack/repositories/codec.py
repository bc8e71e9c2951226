"""
Canonical storage mapping shared by the flat-file and SQLite backends.

Both backends persist a record as (tag, value1, value2, captured_at):
- tag is the RecordKind value ("BP", "Weight", "Sugar")
- value1/value2 are the payload in field order; value2 is None for
  single-value kinds
- captured_at is epoch seconds

Text-field rules live here too, so the two backends (and the input schemas)
agree on what may be stored.
"""
import logging
import math
from typing import List, Optional, Sequence, Tuple, Union

from meditrack.core.exceptions import ConstraintViolationError, InvalidInputError, RecordParseError
from meditrack.core.metric_registry import get_metric
from meditrack.models import HealthRecord, Medication, Patient, Reminder, RecordKind, create_record

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"
RESERVED_CHARACTERS = (FIELD_SEPARATOR, "\n", "\r")

RecordRow = Tuple[str, float, Optional[float], int]


# =============================================================================
# TEXT FIELDS
# =============================================================================

def find_reserved_character(value: str) -> Optional[str]:
    """Return the first reserved character in a value, or None."""
    for ch in RESERVED_CHARACTERS:
        if ch in value:
            return ch
    return None


def check_text_fields(owner: str, **values: str) -> None:
    """
    Reject text that would break the delimited line format.

    Args:
        owner: Label for error context (e.g. "patient", "medication").
        **values: Field name to value.

    Raises:
        ConstraintViolationError: If a value contains "|" or a line break.
    """
    for name, value in values.items():
        if find_reserved_character(value) is not None:
            raise ConstraintViolationError(field=f"{owner}.{name}", value=value)


def check_patient_text(patient: Patient) -> None:
    """Validate every text field a patient owns before anything is written."""
    check_text_fields("patient", name=patient.name, contact=patient.contact)
    for medication in patient.medications:
        check_text_fields(
            "medication",
            name=medication.name,
            dosage=medication.dosage,
            schedule=medication.schedule,
        )
    for reminder in patient.reminders:
        check_text_fields("reminder", message=reminder.message, date=reminder.date, time=reminder.time)


# =============================================================================
# HEALTH RECORDS
# =============================================================================

def record_to_row(record: HealthRecord) -> RecordRow:
    """Map a record to (tag, value1, value2, captured_at)."""
    values = record.values()
    value2 = values[1] if len(values) > 1 else None
    return record.kind.value, values[0], value2, record.captured_at


def _as_int(name: str, value: Union[int, float]) -> int:
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{name} must be a whole number, got {value!r}")
        return int(value)
    return int(value)


def record_from_row(
    tag: str,
    value1: Union[int, float, None],
    value2: Union[int, float, None],
    captured_at: Union[int, float, None]
) -> HealthRecord:
    """
    Rebuild a record from its canonical row.

    Raises:
        RecordParseError: If the tag is unknown or the values do not fit the kind.
    """
    try:
        kind = RecordKind(tag)
    except ValueError:
        raise RecordParseError(f"Unknown record type {tag!r}", tag=tag)

    arity = get_metric(kind.value).arity
    raw_values = (value1, value2)[:arity]
    try:
        if any(v is None for v in raw_values) or captured_at is None:
            raise ValueError("missing value")
        if kind is RecordKind.BLOOD_PRESSURE:
            values: Sequence[Union[int, float]] = tuple(
                _as_int(name, v) for name, v in zip(("systolic", "diastolic"), raw_values)
            )
        else:
            values = tuple(float(v) for v in raw_values)
        return create_record(kind, values, captured_at=_as_int("timestamp", captured_at))
    except (TypeError, ValueError, InvalidInputError) as e:
        detail = e.detail if isinstance(e, InvalidInputError) else str(e)
        raise RecordParseError(f"Bad {tag} values: {detail}", tag=tag)


# =============================================================================
# FLAT-FILE TOKENS
# =============================================================================

def format_number(value: Union[int, float]) -> str:
    """Format a number so float(text) gives the same value back."""
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ConstraintViolationError(field="record.value", value=repr(value))
        return repr(value)
    return str(value)


def record_to_tokens(record: HealthRecord) -> str:
    """Render a record line: "<tag> <field1> [<field2>] <timestamp>"."""
    tokens = [record.kind.value]
    tokens.extend(format_number(v) for v in record.values())
    tokens.append(str(record.captured_at))
    return " ".join(tokens)


def record_from_tokens(line: str) -> HealthRecord:
    """
    Parse a record line.

    Raises:
        RecordParseError: On unknown tags, wrong token counts or bad numbers.
    """
    tokens = line.split()
    if not tokens:
        raise RecordParseError("Empty record line")

    tag = tokens[0]
    try:
        arity = get_metric(tag).arity
    except KeyError:
        raise RecordParseError(f"Unknown record type {tag!r}", tag=tag)

    if len(tokens) != arity + 2:
        raise RecordParseError(
            f"{tag} record needs {arity} value(s) and a timestamp, got {len(tokens) - 1} token(s)",
            tag=tag,
        )

    try:
        if tag == RecordKind.BLOOD_PRESSURE.value:
            numbers: List[Union[int, float]] = [int(t) for t in tokens[1:-1]]
        else:
            numbers = [float(t) for t in tokens[1:-1]]
        captured_at = int(tokens[-1])
    except ValueError as e:
        raise RecordParseError(f"Bad number in {tag} record: {e}", tag=tag)

    value2 = numbers[1] if len(numbers) > 1 else None
    return record_from_row(tag, numbers[0], value2, captured_at)


def split_fields(line: str, expected: int = 3) -> Tuple[str, ...]:
    """
    Split a "|"-delimited line into exactly `expected` fields.

    Raises:
        RecordParseError: If the separator count is wrong.
    """
    parts = line.split(FIELD_SEPARATOR)
    if len(parts) != expected:
        raise RecordParseError(
            f"Expected {expected - 1} '{FIELD_SEPARATOR}' separators, found {len(parts) - 1}"
        )
    return tuple(parts)


def join_fields(*values: str) -> str:
    return FIELD_SEPARATOR.join(values)


def medication_from_fields(fields: Sequence[str]) -> Medication:
    name, dosage, schedule = fields
    return Medication(name=name, dosage=dosage, schedule=schedule)


def reminder_from_fields(fields: Sequence[str]) -> Reminder:
    message, date, time = fields
    return Reminder(message=message, date=date, time=time)
