"""
Pydantic schemas for input entering the domain layer.

A caller (menu loop, script, import job) hands raw values to these schemas;
they validate and convert them into domain objects. Text fields may not
hold the flat-file separator or line breaks, so anything accepted here can
be stored by either backend.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from meditrack.core.datetime_utils import is_valid_reminder_date, is_valid_reminder_time
from meditrack.core.exceptions import InvalidInputError
from meditrack.core.metric_registry import get_metric
from meditrack.models import HealthRecord, Medication, Patient, RecordKind, Reminder, create_record
from meditrack.models.health_record import MAX_EXACT_VALUE, MAX_TIMESTAMP
from meditrack.repositories.codec import find_reserved_character


def _check_storable(value: str) -> str:
    ch = find_reserved_character(value)
    if ch is not None:
        raise ValueError(f"must not contain {ch!r}")
    return value


class PatientCreate(BaseModel):
    """Schema for registering a new patient."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Patient's full name",
        examples=["John Doe"],
    )
    age: int = Field(..., ge=0, le=150, description="Age in years", examples=[42])
    contact: str = Field(
        "",
        max_length=200,
        description="Free-text contact information",
        examples=["555-0100"],
    )

    @field_validator("name", "contact")
    @classmethod
    def check_text(cls, value: str) -> str:
        return _check_storable(value)

    def to_patient(self) -> Patient:
        return Patient(name=self.name, age=self.age, contact=self.contact)


class HealthRecordCreate(BaseModel):
    """Schema for a new measurement.

    `values` are in field order: BP takes systolic then diastolic, Weight
    and Sugar take one value. `captured_at` defaults to the time of entry.
    """

    kind: RecordKind = Field(..., description="Record kind or tag", examples=["BP"])
    values: List[float] = Field(
        ...,
        min_length=1,
        max_length=2,
        description="Measurement values in field order",
        examples=[[120, 80]],
    )
    captured_at: Optional[int] = Field(
        None,
        ge=0,
        le=MAX_TIMESTAMP,
        description="Capture time in seconds since the epoch (defaults to now)",
    )

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, value):
        try:
            return RecordKind.parse(value)
        except InvalidInputError as e:
            raise ValueError(e.detail)

    @model_validator(mode="after")
    def check_arity(self) -> "HealthRecordCreate":
        expected = get_metric(self.kind.value).arity
        if len(self.values) != expected:
            raise ValueError(f"{self.kind.value} takes {expected} value(s), got {len(self.values)}")
        if self.kind is RecordKind.BLOOD_PRESSURE:
            for value in self.values:
                if not float(value).is_integer():
                    raise ValueError(f"blood pressure values must be whole numbers, got {value}")
                if abs(value) > MAX_EXACT_VALUE:
                    raise ValueError(f"blood pressure value out of range: {value}")
        return self

    def to_record(self) -> HealthRecord:
        if self.kind is RecordKind.BLOOD_PRESSURE:
            values = [int(v) for v in self.values]
        else:
            values = list(self.values)
        return create_record(self.kind, values, captured_at=self.captured_at)


class MedicationCreate(BaseModel):
    """Schema for adding a medication."""

    name: str = Field(..., min_length=1, max_length=200, examples=["Metformin"])
    dosage: str = Field("", max_length=100, examples=["500mg"])
    schedule: str = Field("", max_length=200, examples=["Twice a day"])

    @field_validator("name", "dosage", "schedule")
    @classmethod
    def check_text(cls, value: str) -> str:
        return _check_storable(value)

    def to_medication(self) -> Medication:
        return Medication(name=self.name, dosage=self.dosage, schedule=self.schedule)


class ReminderCreate(BaseModel):
    """Schema for adding a reminder.

    Date and time must be zero-padded ("2024-01-05", "09:00"); due checks
    rely on that to compare them as strings.
    """

    message: str = Field(..., min_length=1, max_length=500, examples=["Take medication"])
    date: str = Field(..., description="YYYY-MM-DD", examples=["2024-01-15"])
    time: str = Field(..., description="HH:MM, 24-hour", examples=["08:00"])

    @field_validator("message")
    @classmethod
    def check_text(cls, value: str) -> str:
        return _check_storable(value)

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        if not is_valid_reminder_date(value):
            raise ValueError("date must be a real date in YYYY-MM-DD form")
        return value

    @field_validator("time")
    @classmethod
    def check_time(cls, value: str) -> str:
        if not is_valid_reminder_time(value):
            raise ValueError("time must be HH:MM (24-hour)")
        return value

    def to_reminder(self) -> Reminder:
        return Reminder(message=self.message, date=self.date, time=self.time)
