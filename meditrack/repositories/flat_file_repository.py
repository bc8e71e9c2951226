"""
Flat-file repository for the whole patient collection.

File layout (UTF-8, one item per line):

    <patientCount>
    <name>|<age>|<contact>
    <recordCount>
    <kindTag> <field1> [<field2>] <timestamp>
    ...
    <medicationCount>
    <name>|<dosage>|<schedule>
    ...
    <reminderCount>
    <message>|<date>|<time>
    ...
    (repeated per patient)

Lines are written with "\\n"; "\\r\\n" is accepted on read.
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from meditrack.core.config import FLAT_FILE_PATH, MAX_ENTRIES, MAX_PATIENTS
from meditrack.core.exceptions import (
    BackendUnavailableError,
    MediTrackError,
    RecordCountError,
    RecordParseError,
)
from meditrack.models import Patient
from meditrack.repositories.base import LoadResult, PatientRepository
from meditrack.repositories.codec import (
    check_patient_text,
    join_fields,
    medication_from_fields,
    record_from_tokens,
    record_to_tokens,
    reminder_from_fields,
    split_fields,
)

logger = logging.getLogger(__name__)


class _LineReader:
    """Sequential access to the lines of a file, tracking line numbers."""

    def __init__(self, text: str):
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        self._lines = [line[:-1] if line.endswith("\r") else line for line in lines]
        self._pos = 0

    @property
    def line_number(self) -> int:
        """1-based number of the line most recently read."""
        return self._pos

    def next_line(self, what: str) -> str:
        if self._pos >= len(self._lines):
            raise RecordParseError(
                f"Unexpected end of file while reading {what}",
                line_number=self._pos + 1,
            )
        line = self._lines[self._pos]
        self._pos += 1
        return line

    def remaining(self) -> List[str]:
        return [line for line in self._lines[self._pos:] if line.strip()]


class FlatFileRepository(PatientRepository):
    """
    Stores the patient collection in a single delimited text file.

    Every save rewrites the whole file. Writes go to a temporary sibling
    first and replace the target in one step, so a failed save leaves the
    previous file untouched.
    """

    backend_name = "flat"

    def __init__(
        self,
        file_path: Optional[str] = None,
        max_patients: Optional[int] = None,
        max_entries: Optional[int] = None
    ):
        """
        Initialize the flat-file repository.

        Args:
            file_path: Path of the data file. Defaults to config FLAT_FILE_PATH.
            max_patients: Highest patient count accepted on load.
            max_entries: Highest per-patient record, medication or reminder count.
        """
        self.file_path = file_path or FLAT_FILE_PATH
        self.max_patients = max_patients if max_patients is not None else MAX_PATIENTS
        self.max_entries = max_entries if max_entries is not None else MAX_ENTRIES

    # =========================================================================
    # SAVE
    # =========================================================================

    def encode(self, patients: Sequence[Patient]) -> str:
        """
        Render the collection in the flat-file format.

        Raises:
            ConstraintViolationError: If a text field holds "|" or a line break.
        """
        for patient in patients:
            check_patient_text(patient)

        lines = [str(len(patients))]
        for patient in patients:
            lines.append(join_fields(patient.name, str(patient.age), patient.contact))
            lines.append(str(len(patient.records)))
            lines.extend(record_to_tokens(record) for record in patient.records)
            lines.append(str(len(patient.medications)))
            lines.extend(
                join_fields(m.name, m.dosage, m.schedule) for m in patient.medications
            )
            lines.append(str(len(patient.reminders)))
            lines.extend(
                join_fields(r.message, r.date, r.time) for r in patient.reminders
            )
        return "\n".join(lines) + "\n"

    def save(self, patients: Sequence[Patient]) -> None:
        """
        Overwrite the data file with the given collection.

        Raises:
            ConstraintViolationError: If a field cannot be stored; nothing is written.
            BackendUnavailableError: If the file cannot be written.
        """
        content = self.encode(patients)
        target = Path(self.file_path)

        tmp_path = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            logger.error(f"Error: Could not write {self.file_path}: {e}")
            raise BackendUnavailableError(operation="save", path=self.file_path, reason=str(e))
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

        logger.info(
            "Data saved to flat file",
            extra={"path": self.file_path, "patients": len(patients)},
        )

    # =========================================================================
    # LOAD
    # =========================================================================

    def load_with_report(self) -> LoadResult:
        """
        Load the collection, reporting problems instead of raising them.

        - A missing file is an empty collection, not an error.
        - A bad patient count loads nothing.
        - Any other malformed line stops the load; patients completed
          before it are kept, the partial one is dropped.
        """
        path = Path(self.file_path)
        if not path.exists():
            logger.info(
                "No previous data found. Starting a new session.",
                extra={"path": self.file_path},
            )
            return LoadResult()

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            return self._failed(RecordParseError(f"File is not valid UTF-8: {e}", path=self.file_path))
        except OSError as e:
            return self._failed(BackendUnavailableError(operation="load", path=self.file_path, reason=str(e)))

        return self.decode(text)

    def decode(self, text: str) -> LoadResult:
        """Parse flat-file content into a LoadResult."""
        result = LoadResult()
        reader = _LineReader(text)

        try:
            declared = self._read_count(reader, "patient", self.max_patients)
        except MediTrackError as e:
            logger.warning(f"Could not read patient count: {e.detail}. File may be corrupt.")
            result.errors.append(e)
            return result
        result.declared_count = declared

        for index in range(declared):
            try:
                patient = self._read_patient(reader)
            except MediTrackError as e:
                e.context.update(patient_number=index + 1, loaded=index, declared=declared)
                result.errors.append(e)
                logger.warning(
                    f"Error loading patient {index + 1}: {e.detail}. "
                    f"Loaded {index} of {declared} patients.",
                    extra={"path": self.file_path},
                )
                break
            result.patients.append(patient)

        leftover = reader.remaining()
        if result.ok and leftover:
            logger.warning(
                "Ignoring content after the declared patients",
                extra={"path": self.file_path, "extra_lines": len(leftover)},
            )

        logger.info(
            "Data loaded from flat file",
            extra={"path": self.file_path, "loaded": result.loaded_count, "declared": declared},
        )
        return result

    def _failed(self, error: MediTrackError) -> LoadResult:
        logger.error(f"Could not load {self.file_path}: {error.detail}")
        return LoadResult(errors=[error])

    def _read_count(self, reader: _LineReader, what: str, maximum: int) -> int:
        line = reader.next_line(f"{what} count").strip()
        try:
            count = int(line)
        except ValueError:
            raise RecordParseError(
                f"Could not read {what} count from {line!r}",
                line_number=reader.line_number,
            )
        if count < 0 or count > maximum:
            raise RecordCountError(what, count, maximum, line_number=reader.line_number)
        return count

    def _read_delimited(self, reader: _LineReader, what: str):
        line = reader.next_line(what)
        try:
            return split_fields(line)
        except RecordParseError as e:
            raise RecordParseError(f"Error parsing {what}: {e.detail}", line_number=reader.line_number)

    def _read_patient(self, reader: _LineReader) -> Patient:
        name, age_text, contact = self._read_delimited(reader, "patient data")
        try:
            age = int(age_text.strip())
        except ValueError:
            raise RecordParseError(f"Invalid age {age_text!r}", line_number=reader.line_number)

        patient = Patient(name=name, age=age, contact=contact)

        for _ in range(self._read_count(reader, "record", self.max_entries)):
            line = reader.next_line("health record")
            try:
                patient.add_record(record_from_tokens(line))
            except RecordParseError as e:
                context = {k: v for k, v in e.context.items() if k != "line_number"}
                raise RecordParseError(e.detail, line_number=reader.line_number, **context)

        for _ in range(self._read_count(reader, "medication", self.max_entries)):
            patient.add_medication(medication_from_fields(self._read_delimited(reader, "medication")))

        for _ in range(self._read_count(reader, "reminder", self.max_entries)):
            patient.add_reminder(reminder_from_fields(self._read_delimited(reader, "reminder")))

        return patient
