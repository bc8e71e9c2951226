"""
Unit tests for the flat-file repository.
Tests the save/load round trip, the on-disk layout and how corrupt files
are reported.
"""
import os

import pytest

from meditrack.core.exceptions import (
    BackendUnavailableError,
    ConstraintViolationError,
    RecordCountError,
    RecordParseError,
)
from meditrack.models import Medication, Patient, Reminder, WeightRecord
from meditrack.repositories import FlatFileRepository

SINGLE_PATIENT = (
    "1\n"
    "Jane Doe|34|555-0100\n"
    "2\n"
    "BP 120 80 1705314600\n"
    "Weight 70.5 1705314660\n"
    "1\n"
    "Metformin|500mg|Twice a day\n"
    "1\n"
    "Take medication|2024-01-15|08:00\n"
)


def write_file(path, text):
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def read_file(path):
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def test_missing_file_loads_empty(flat_repo):
    """A first run has no file and no errors."""
    result = flat_repo.load_with_report()

    assert result.patients == []
    assert result.ok, "Missing file should not be reported as an error"
    assert flat_repo.load() == []


def test_round_trip(flat_repo, sample_patients):
    """Saved patients load back equal, in order."""
    flat_repo.save(sample_patients)
    loaded = flat_repo.load()

    assert loaded == sample_patients
    assert [p.name for p in loaded] == ["Nazra Mastoor", "Asgar Ali Ansari"]


def test_file_layout(flat_repo, sample_patients, temp_flat_path):
    """The file follows the count-prefixed line layout."""
    flat_repo.save(sample_patients)
    lines = read_file(temp_flat_path).split("\n")

    assert lines[0] == "2"
    assert lines[1] == "Nazra Mastoor|58|555-0101"
    assert lines[2] == "3"
    assert lines[3] == "BP 120 80 1705314600"
    assert lines[4] == "Sugar 95.0 1705314660"
    assert lines[5] == "Weight 62.5 1705314720"
    assert lines[6] == "1"
    assert lines[7] == "Metformin|500mg|Twice a day"
    assert lines[8] == "2"
    assert lines[9] == "Check sugar|2024-01-15|08:00"
    assert lines[-1] == "", "File should end with a newline"
    assert "\r" not in read_file(temp_flat_path)


def test_parse_hand_written_file(flat_repo, temp_flat_path):
    write_file(temp_flat_path, SINGLE_PATIENT)
    result = flat_repo.load_with_report()

    assert result.ok
    assert result.declared_count == 1
    patient = result.patients[0]
    assert (patient.name, patient.age, patient.contact) == ("Jane Doe", 34, "555-0100")
    assert patient.records[1] == WeightRecord(weight=70.5, captured_at=1705314660)
    assert patient.medications == [Medication(name="Metformin", dosage="500mg", schedule="Twice a day")]
    assert patient.reminders == [Reminder(message="Take medication", date="2024-01-15", time="08:00")]


def test_crlf_line_endings_accepted(flat_repo, temp_flat_path):
    write_file(temp_flat_path, SINGLE_PATIENT.replace("\n", "\r\n"))
    result = flat_repo.load_with_report()

    assert result.ok
    assert result.patients[0].contact == "555-0100"
    assert result.patients[0].reminders[0].time == "08:00"


def test_save_is_idempotent(flat_repo, sample_patients, temp_flat_path):
    """save(load()) reproduces the same file."""
    flat_repo.save(sample_patients)
    first = read_file(temp_flat_path)

    flat_repo.save(flat_repo.load())
    assert read_file(temp_flat_path) == first


def test_empty_collection(flat_repo, temp_flat_path):
    flat_repo.save([])

    assert read_file(temp_flat_path) == "0\n"
    result = flat_repo.load_with_report()
    assert result.ok
    assert result.patients == []


def test_float_values_survive_exactly(flat_repo):
    patient = Patient(name="Jane Doe", age=34, contact="")
    patient.add_record(WeightRecord(weight=0.1 + 0.2, captured_at=1705314600))
    flat_repo.save([patient])

    assert flat_repo.load()[0].records[0].weight == 0.1 + 0.2


def test_empty_text_fields(flat_repo):
    patient = Patient(name="Jane Doe", age=34, contact="")
    patient.add_medication(Medication(name="Aspirin", dosage="", schedule=""))
    flat_repo.save([patient])

    loaded = flat_repo.load()[0]
    assert loaded.contact == ""
    assert loaded.medications[0] == Medication(name="Aspirin", dosage="", schedule="")


# =============================================================================
# CORRUPT FILES
# =============================================================================

def test_fewer_blocks_than_declared(flat_repo, sample_patients, temp_flat_path):
    """Declared 3, two complete blocks: both load, the shortfall is reported."""
    flat_repo.save(sample_patients)
    text = read_file(temp_flat_path)
    write_file(temp_flat_path, "3" + text[1:])

    result = flat_repo.load_with_report()

    assert result.loaded_count == 2
    assert result.declared_count == 3
    assert len(result.errors) == 1
    error = result.errors[0]
    assert isinstance(error, RecordParseError)
    assert "end of file" in error.detail
    assert error.context["patient_number"] == 3
    assert error.context["loaded"] == 2


@pytest.mark.parametrize("count", ["10001", "-1"])
def test_unreasonable_patient_count(flat_repo, temp_flat_path, count):
    write_file(temp_flat_path, count + SINGLE_PATIENT[1:])
    result = flat_repo.load_with_report()

    assert result.patients == []
    assert isinstance(result.errors[0], RecordCountError)


def test_max_patients_is_configurable(temp_flat_path):
    write_file(temp_flat_path, "2\n")
    result = FlatFileRepository(file_path=temp_flat_path, max_patients=1).load_with_report()

    assert result.patients == []
    assert isinstance(result.errors[0], RecordCountError)


def test_non_numeric_patient_count(flat_repo, temp_flat_path):
    write_file(temp_flat_path, "two\n")
    result = flat_repo.load_with_report()

    assert result.patients == []
    assert isinstance(result.errors[0], RecordParseError)
    assert result.errors[0].context["line_number"] == 1


def test_empty_file_is_reported(flat_repo, temp_flat_path):
    write_file(temp_flat_path, "")
    result = flat_repo.load_with_report()

    assert result.patients == []
    assert isinstance(result.errors[0], RecordParseError)


def test_bad_separator_keeps_earlier_patients(flat_repo, temp_flat_path):
    second = "Broken Patient|64\n0\n0\n0\n"
    write_file(temp_flat_path, "2" + SINGLE_PATIENT[1:] + second)

    result = flat_repo.load_with_report()

    assert [p.name for p in result.patients] == ["Jane Doe"]
    error = result.errors[0]
    assert isinstance(error, RecordParseError)
    assert error.context["line_number"] == 10
    assert error.detail.startswith("Line 10:")


def test_unknown_record_type(flat_repo, temp_flat_path):
    write_file(
        temp_flat_path,
        "1\nJane Doe|34|555-0100\n1\nCholesterol 200 1705314600\n0\n0\n",
    )
    result = flat_repo.load_with_report()

    assert result.patients == []
    error = result.errors[0]
    assert isinstance(error, RecordParseError)
    assert "Cholesterol" in error.detail
    assert error.context["line_number"] == 4


@pytest.mark.parametrize("line", [
    "BP 120 1705314600",
    "Weight 70.5",
    "Sugar abc 1705314600",
    "BP 120.5 80 1705314600",
    "Weight 70.5 1705314600.5",
])
def test_malformed_record_lines(flat_repo, temp_flat_path, line):
    write_file(temp_flat_path, f"1\nJane Doe|34|\n1\n{line}\n0\n0\n")
    result = flat_repo.load_with_report()

    assert result.patients == []
    assert isinstance(result.errors[0], RecordParseError)


def test_invalid_age(flat_repo, temp_flat_path):
    write_file(temp_flat_path, "1\nJane Doe|thirty|\n0\n0\n0\n")
    result = flat_repo.load_with_report()

    assert result.patients == []
    assert "age" in result.errors[0].detail


# =============================================================================
# SAVE FAILURES
# =============================================================================

@pytest.mark.parametrize("field,value", [
    ("name", "Jane|Doe"),
    ("contact", "555\n0100"),
    ("contact", "555\r0100"),
])
def test_reserved_characters_rejected(flat_repo, sample_patients, temp_flat_path, field, value):
    """A field that would break the layout aborts the save before writing."""
    flat_repo.save(sample_patients)
    before = read_file(temp_flat_path)

    setattr(sample_patients[1], field, value)
    with pytest.raises(ConstraintViolationError) as exc_info:
        flat_repo.save(sample_patients)

    assert exc_info.value.context["field"] == f"patient.{field}"
    assert read_file(temp_flat_path) == before, "Failed save must leave the old file intact"


def test_reserved_character_in_medication(flat_repo, temp_flat_path):
    patient = Patient(name="Jane Doe", age=34, contact="")
    patient.add_medication(Medication(name="A|B", dosage="", schedule=""))

    with pytest.raises(ConstraintViolationError):
        flat_repo.save([patient])
    assert not os.path.exists(temp_flat_path)


def test_unwritable_location(tmp_path, sample_patients):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    repo = FlatFileRepository(file_path=str(blocker / "data.txt"))

    with pytest.raises(BackendUnavailableError):
        repo.save(sample_patients)


def test_no_temp_files_left_behind(flat_repo, sample_patients, tmp_path):
    flat_repo.save(sample_patients)
    flat_repo.save(sample_patients)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["meditrack_data.txt"]
