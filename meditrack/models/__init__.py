"""
Domain models for MediTrack.

Framework-free dataclasses shared by both storage backends.
"""
from meditrack.models.health_record import (
    AlertLevel,
    BloodPressureRecord,
    BloodSugarRecord,
    HealthRecord,
    RECORD_TYPES,
    RecordKind,
    WeightRecord,
    create_record,
)
from meditrack.models.care import Medication, Reminder, is_reminder_due
from meditrack.models.patient import BMIResult, Patient, classify_bmi

__all__ = [
    "AlertLevel",
    "BloodPressureRecord",
    "BloodSugarRecord",
    "HealthRecord",
    "RECORD_TYPES",
    "RecordKind",
    "WeightRecord",
    "create_record",
    "Medication",
    "Reminder",
    "is_reminder_due",
    "BMIResult",
    "Patient",
    "classify_bmi",
]
