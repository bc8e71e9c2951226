"""
SQLite repository for the whole patient collection.

Schema (four tables, dependents cascade from patients):
    patients(id, name, age, contact)
    health_records(id, patient_id, type, value1, value2, timestamp)
    medications(id, patient_id, name, dosage, schedule)
    reminders(id, patient_id, message, date, time)

Architecture:
    SqlitePatientRepository owns a Database (one connection per session).
    All SQL is encapsulated here - no SQL in the model or service layers.

Saves are full replaces: every patient row is deleted (cascading to the
dependent tables) and the collection is inserted again. Patient ids are
reassigned on every save, so an id read before a save is meaningless after.
"""
import logging
import sqlite3
from typing import Dict, List, Optional, Sequence, Tuple

from meditrack.core.exceptions import (
    BackendUnavailableError,
    ConstraintViolationError,
    MediTrackError,
    RecordParseError,
)
from meditrack.models import Medication, Patient, Reminder
from meditrack.repositories.base import Database, LoadResult, PatientRepository
from meditrack.repositories.codec import record_from_row, record_to_row

logger = logging.getLogger(__name__)

TABLES = ("patients", "health_records", "medications", "reminders")


def _text(value: Optional[str]) -> str:
    return value if value is not None else ""


class SqlitePatientRepository(PatientRepository):
    """
    Repository mapping the patient collection onto four SQLite tables.

    The repository holds its Database for the whole session; close() (or
    leaving a `with` block) releases the connection.
    """

    backend_name = "sqlite"

    def __init__(self, db: Optional[Database] = None):
        """
        Initialize the SQLite repository.

        Args:
            db: Database instance for data access. Defaults to one on the
                configured DATABASE_PATH.
        """
        self._db = db or Database()
        self._tables_ready = False

    @property
    def db(self) -> Database:
        return self._db

    def close(self) -> None:
        self._db.close()

    # =========================================================================
    # SCHEMA
    # =========================================================================

    def create_tables(self) -> None:
        """
        Create the four tables if they do not exist. Idempotent.

        Raises:
            BackendUnavailableError: If the database cannot be opened or written.
        """
        conn = self._db.get_connection()
        cursor = conn.cursor()

        try:
            # patients first (referenced by foreign keys)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS patients (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    age INTEGER,
                    contact TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS health_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    patient_id INTEGER,
                    type TEXT,
                    value1 REAL,
                    value2 REAL,
                    timestamp INTEGER,
                    FOREIGN KEY (patient_id) REFERENCES patients(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS medications (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    patient_id INTEGER,
                    name TEXT,
                    dosage TEXT,
                    schedule TEXT,
                    FOREIGN KEY (patient_id) REFERENCES patients(id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS reminders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    patient_id INTEGER,
                    message TEXT,
                    date TEXT,
                    time TEXT,
                    FOREIGN KEY (patient_id) REFERENCES patients(id) ON DELETE CASCADE
                )
            """)

            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"SQL error creating tables: {e}")
            raise BackendUnavailableError(operation="create_tables", path=self._db.db_path, reason=str(e))

        self._tables_ready = True
        logger.info(f"Tables created or already exist in {self._db.db_path}")

    def _ready_connection(self) -> sqlite3.Connection:
        if not self._tables_ready:
            self.create_tables()
        return self._db.get_connection()

    # =========================================================================
    # SAVE
    # =========================================================================

    def save(self, patients: Sequence[Patient]) -> None:
        """
        Replace everything stored with the given collection, atomically.

        Deletes every patient (the dependent tables cascade), then inserts
        each patient with a fresh id and its owned rows. Any failure rolls
        the whole save back.

        Raises:
            ConstraintViolationError: If a number is too large for an SQLite column.
            BackendUnavailableError: If the store cannot be opened or written.
        """
        conn = self._ready_connection()
        cursor = conn.cursor()
        patient = None

        try:
            cursor.execute("BEGIN TRANSACTION")
            cursor.execute("DELETE FROM patients")

            for patient in patients:
                cursor.execute(
                    "INSERT INTO patients (name, age, contact) VALUES (?, ?, ?)",
                    (patient.name, patient.age, patient.contact)
                )
                patient_id = cursor.lastrowid

                cursor.executemany(
                    """
                    INSERT INTO health_records (patient_id, type, value1, value2, timestamp)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [(patient_id,) + record_to_row(record) for record in patient.records]
                )
                cursor.executemany(
                    "INSERT INTO medications (patient_id, name, dosage, schedule) VALUES (?, ?, ?, ?)",
                    [(patient_id, m.name, m.dosage, m.schedule) for m in patient.medications]
                )
                cursor.executemany(
                    "INSERT INTO reminders (patient_id, message, date, time) VALUES (?, ?, ?, ?)",
                    [(patient_id, r.message, r.date, r.time) for r in patient.reminders]
                )

            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Error saving patients: {e}. Transaction rolled back.")
            raise BackendUnavailableError(operation="save", path=self._db.db_path, reason=str(e))
        except OverflowError as e:
            conn.rollback()
            logger.error(f"Error saving patients: {e}. Transaction rolled back.")
            raise ConstraintViolationError(
                field="patient",
                value=patient.name if patient is not None else "",
                reason="holds a number too large for SQLite",
            )
        except Exception:
            conn.rollback()
            raise

        logger.info(
            "All data saved to database",
            extra={"path": self._db.db_path, "patients": len(patients)},
        )

    # =========================================================================
    # LOAD
    # =========================================================================

    def load_with_report(self) -> LoadResult:
        """
        Load every patient in id order, with owned rows in id order.

        Problems are reported in the result rather than raised. An
        undecodable row stops the load; patients completed before it are kept.
        """
        result = LoadResult()
        try:
            conn = self._ready_connection()
            cursor = conn.cursor()
            cursor.execute("SELECT id, name, age, contact FROM patients ORDER BY id")
            rows = cursor.fetchall()
        except MediTrackError as e:
            logger.error(f"Could not load from {self._db.db_path}: {e.detail}")
            result.errors.append(e)
            return result
        except sqlite3.Error as e:
            logger.error(f"Could not load from {self._db.db_path}: {e}")
            result.errors.append(
                BackendUnavailableError(operation="load", path=self._db.db_path, reason=str(e))
            )
            return result

        result.declared_count = len(rows)

        for row in rows:
            try:
                patient = self._load_patient(cursor, row)
            except RecordParseError as e:
                e.context.update(patient_id=row[0], loaded=len(result.patients), declared=len(rows))
                result.errors.append(e)
                logger.warning(
                    f"Error loading patient id={row[0]}: {e.detail}. "
                    f"Loaded {len(result.patients)} of {len(rows)} patients."
                )
                break
            except sqlite3.Error as e:
                result.errors.append(
                    BackendUnavailableError(operation="load", path=self._db.db_path, reason=str(e))
                )
                logger.error(f"Database error loading patient id={row[0]}: {e}")
                break
            result.patients.append(patient)

        logger.info(
            "Loaded patients from database",
            extra={"path": self._db.db_path, "loaded": result.loaded_count},
        )
        return result

    def _load_patient(self, cursor: sqlite3.Cursor, row: Tuple) -> Patient:
        patient_id, name, age, contact = row
        patient = Patient(name=_text(name), age=age if age is not None else 0, contact=_text(contact))

        cursor.execute(
            """
            SELECT type, value1, value2, timestamp FROM health_records
            WHERE patient_id = ? ORDER BY id
            """,
            (patient_id,)
        )
        for record_type, value1, value2, timestamp in cursor.fetchall():
            patient.add_record(record_from_row(_text(record_type), value1, value2, timestamp))

        cursor.execute(
            "SELECT name, dosage, schedule FROM medications WHERE patient_id = ? ORDER BY id",
            (patient_id,)
        )
        for med_name, dosage, schedule in cursor.fetchall():
            patient.add_medication(
                Medication(name=_text(med_name), dosage=_text(dosage), schedule=_text(schedule))
            )

        cursor.execute(
            "SELECT message, date, time FROM reminders WHERE patient_id = ? ORDER BY id",
            (patient_id,)
        )
        for message, date, time in cursor.fetchall():
            patient.add_reminder(Reminder(message=_text(message), date=_text(date), time=_text(time)))

        return patient

    # =========================================================================
    # INSPECTION
    # =========================================================================

    def table_counts(self) -> Dict[str, int]:
        """
        Row count per table.

        Returns:
            Dictionary mapping each of the four table names to its row count.
        """
        cursor = self._ready_connection().cursor()
        counts = {}
        for table in TABLES:
            cursor.execute(f"SELECT COUNT(*) FROM {table}")
            counts[table] = cursor.fetchone()[0]
        return counts

    def patient_ids(self) -> List[int]:
        """Surrogate ids currently assigned, in id order."""
        cursor = self._ready_connection().cursor()
        cursor.execute("SELECT id FROM patients ORDER BY id")
        return [row[0] for row in cursor.fetchall()]
