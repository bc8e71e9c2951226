"""
Shared pytest fixtures for MediTrack tests.

Fixture Hierarchy:
    temp_flat_path → flat_repo
    temp_db → sqlite_repo
    sample_patients (plain domain objects, no storage)

Every storage fixture works on a fresh temporary file, so tests never touch
the configured data directory.
"""
import os
import tempfile

import pytest

from meditrack.models import (
    BloodPressureRecord,
    BloodSugarRecord,
    Medication,
    Patient,
    Reminder,
    WeightRecord,
)
from meditrack.repositories import Database, FlatFileRepository, SqlitePatientRepository

# 2024-01-15 10:30:00 UTC
BASE_TS = 1705314600


@pytest.fixture
def temp_flat_path(tmp_path):
    """Path for a flat file that does not exist yet."""
    return str(tmp_path / "meditrack_data.txt")


@pytest.fixture
def flat_repo(temp_flat_path):
    """FlatFileRepository on a fresh temporary path."""
    return FlatFileRepository(file_path=temp_flat_path)


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    This fixture creates a fresh SQLite database in a temp file,
    ensuring complete isolation between tests.
    """
    fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    db = Database(db_path=db_path)
    yield db

    # Cleanup
    db.close()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def sqlite_repo(temp_db):
    """Create a SqlitePatientRepository with the test database."""
    return SqlitePatientRepository(db=temp_db)


def make_patients():
    """Two patients covering every record kind, medications and reminders."""
    nazra = Patient(name="Nazra Mastoor", age=58, contact="555-0101")
    nazra.add_record(BloodPressureRecord(systolic=120, diastolic=80, captured_at=BASE_TS))
    nazra.add_record(BloodSugarRecord(sugar=95.0, captured_at=BASE_TS + 60))
    nazra.add_record(WeightRecord(weight=62.5, captured_at=BASE_TS + 120))
    nazra.add_medication(Medication(name="Metformin", dosage="500mg", schedule="Twice a day"))
    nazra.add_reminder(Reminder(message="Check sugar", date="2024-01-15", time="08:00"))
    nazra.add_reminder(Reminder(message="Doctor visit", date="2024-01-20", time="10:00"))

    asgar = Patient(name="Asgar Ali Ansari", age=64, contact="")
    asgar.add_record(BloodPressureRecord(systolic=150, diastolic=95, captured_at=BASE_TS + 300))
    asgar.add_record(WeightRecord(weight=75.0, captured_at=BASE_TS + 400))
    asgar.add_medication(Medication(name="Amlodipine", dosage="5mg", schedule="Morning"))

    return [nazra, asgar]


@pytest.fixture
def sample_patients():
    """Fresh list of sample patients for each test."""
    return make_patients()
