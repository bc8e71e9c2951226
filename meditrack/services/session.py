"""
Session service: one load -> mutate -> save cycle against one backend.

Architecture:
    Caller (menu loop, script) → MediTrackSession → PatientRepository

The session owns its repository (and through it the file path or SQLite
connection) from construction until close(). It holds the in-memory
collection explicitly; nothing is kept in module globals. A session works
with a single backend; moving data between backends goes through
services.migration.
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Sequence, Tuple, Union

from meditrack.core.exceptions import InvalidInputError
from meditrack.core.logging_config import clear_session_id, set_session_id
from meditrack.models import HealthRecord, Medication, Patient, RecordKind, Reminder
from meditrack.repositories.base import LoadResult, PatientRepository
from meditrack.schemas import (
    HealthRecordCreate,
    MedicationCreate,
    PatientCreate,
    ReminderCreate,
    validate_input,
)

logger = logging.getLogger(__name__)


class MediTrackSession:
    """
    Owns a repository and the patient collection loaded from it.

    Usage:
        with MediTrackSession(FlatFileRepository("data.txt")) as session:
            session.load()
            patient = session.add_patient("Jane Doe", 34, "555-0100")
            session.add_record(0, "BP", [120, 80])
            session.save()
    """

    def __init__(self, repository: PatientRepository, session_id: Optional[str] = None):
        """
        Initialize the session.

        Args:
            repository: Backend to load from and save to. The session takes
                ownership and closes it on close().
            session_id: Identifier attached to log lines. Generated if omitted.
        """
        self._repo = repository
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.patients: List[Patient] = []
        self.last_load: Optional[LoadResult] = None
        self._closed = False

    @property
    def repository(self) -> PatientRepository:
        return self._repo

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def __enter__(self) -> "MediTrackSession":
        set_session_id(self.session_id)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the backend handle. Safe to call more than once."""
        if self._closed:
            return
        try:
            self._repo.close()
        finally:
            self._closed = True
            logger.debug("Session closed", extra={"backend": self._repo.backend_name})
            clear_session_id()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Session is closed")

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> LoadResult:
        """
        Replace the in-memory collection with what the backend holds.

        Never raises for storage problems; inspect the returned LoadResult
        (also kept as `last_load`).
        """
        self._check_open()
        result = self._repo.load_with_report()
        self.patients = list(result.patients)
        self.last_load = result
        if result.ok:
            logger.info(
                f"Loaded {result.loaded_count} patients",
                extra={"backend": self._repo.backend_name},
            )
        else:
            logger.warning(
                f"Loaded {result.loaded_count} patients with {len(result.errors)} error(s)",
                extra={
                    "backend": self._repo.backend_name,
                    "errors": [e.to_dict() for e in result.errors],
                },
            )
        return result

    def save(self) -> None:
        """
        Persist the whole in-memory collection, replacing stored contents.

        Raises:
            PersistenceError: If the backend rejected the save.
        """
        self._check_open()
        self._repo.save(self.patients)

    # -------------------------------------------------------------------------
    # Patients
    # -------------------------------------------------------------------------

    def add_patient(self, name: str, age: int, contact: str = "") -> Patient:
        """
        Validate and append a new patient.

        Raises:
            InvalidInputError: If a field is missing, out of range or unstorable.
        """
        data = validate_input(PatientCreate, name=name, age=age, contact=contact)
        patient = data.to_patient()
        self.patients.append(patient)
        logger.info(f"Patient '{patient.name}' added", extra={"position": len(self.patients) - 1})
        return patient

    def get_patient(self, index: int) -> Patient:
        """
        Get a patient by position (0-based, in load/insertion order).

        Raises:
            InvalidInputError: If there is no patient at that position.
        """
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self.patients):
            raise InvalidInputError(
                f"Invalid selection: {index!r} (have {len(self.patients)} patients)",
                index=index,
            )
        return self.patients[index]

    def add_record(
        self,
        index: int,
        kind: Union[RecordKind, str],
        values: Sequence[float],
        captured_at: Optional[int] = None
    ) -> HealthRecord:
        """Validate a measurement and append it to a patient's records."""
        patient = self.get_patient(index)
        data = validate_input(HealthRecordCreate, kind=kind, values=list(values), captured_at=captured_at)
        record = data.to_record()
        patient.add_record(record)
        return record

    def add_medication(self, index: int, name: str, dosage: str = "", schedule: str = "") -> Medication:
        """Validate a medication and append it to a patient."""
        patient = self.get_patient(index)
        medication = validate_input(MedicationCreate, name=name, dosage=dosage, schedule=schedule).to_medication()
        patient.add_medication(medication)
        return medication

    def add_reminder(self, index: int, message: str, date: str, time: str) -> Reminder:
        """Validate a reminder and append it to a patient."""
        patient = self.get_patient(index)
        reminder = validate_input(ReminderCreate, message=message, date=date, time=time).to_reminder()
        patient.add_reminder(reminder)
        return reminder

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def due_reminders(self, now: Optional[datetime] = None) -> List[Tuple[Patient, Reminder]]:
        """
        Every due reminder across all patients, paired with its patient.

        Run at session start to surface what is due, and on demand after.
        """
        due = []
        for patient in self.patients:
            for reminder in patient.due_reminders(now):
                due.append((patient, reminder))
        return due
