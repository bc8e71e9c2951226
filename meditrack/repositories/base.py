"""
Base repository types and the SQLite connection manager.

This module handles:
- The repository interface both backends implement
- LoadResult, the report a load hands back instead of raising
- Database, a session-scoped SQLite connection owner

Single-writer assumption: nothing here locks the backing file or store.
Two sessions working on the same path at once is unsupported.
"""
import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from meditrack.core.config import DATABASE_BUSY_TIMEOUT, DATABASE_PATH
from meditrack.core.exceptions import BackendUnavailableError, MediTrackError
from meditrack.models import Patient

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """
    Outcome of loading a patient collection.

    Attributes:
        patients: Every patient decoded completely. A patient whose block
            was cut short by an error is never included.
        errors: Problems met while loading, in the order they occurred.
        declared_count: Patient count the store claimed to hold, if it
            declares one (the flat file does).
    """
    patients: List[Patient] = field(default_factory=list)
    errors: List[MediTrackError] = field(default_factory=list)
    declared_count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def loaded_count(self) -> int:
        return len(self.patients)


class PatientRepository(ABC):
    """
    Storage backend for a whole patient collection.

    The collection is replaced wholesale in both directions: `save` writes
    every patient and drops whatever was stored before; `load` rebuilds the
    full collection.
    """

    #: Short backend name used in logs and migration summaries.
    backend_name: str = "abstract"

    @abstractmethod
    def load_with_report(self) -> LoadResult:
        """Load every patient, collecting errors instead of raising them."""

    @abstractmethod
    def save(self, patients: Sequence[Patient]) -> None:
        """
        Persist the collection, replacing previous contents.

        Raises:
            PersistenceError: If nothing could be saved. No partial save is left.
        """

    def load(self) -> List[Patient]:
        """
        Load every patient. Never raises for storage problems.

        Errors are logged; use load_with_report() to inspect them.
        """
        return self.load_with_report().patients

    def close(self) -> None:
        """Release any handle the repository holds. Safe to call twice."""

    def __enter__(self) -> "PatientRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Database:
    """
    SQLite connection owner for one session.

    Features:
    - One connection, opened on first use and held until close()
    - Foreign key constraints enabled (needed for ON DELETE CASCADE)
    - Busy timeout so an external reader briefly holding a lock does not
      fail a save immediately

    Usage:
        db = Database(db_path="/tmp/test.db")
        conn = db.get_connection()
        ...
        db.close()
    """

    def __init__(self, db_path: Optional[str] = None, busy_timeout: Optional[int] = None):
        """
        Initialize the connection manager. Nothing is opened yet.

        Args:
            db_path: Path to SQLite database file. Defaults to config DATABASE_PATH.
            busy_timeout: SQLite busy timeout in milliseconds. Defaults to config value.
        """
        self.db_path = db_path or DATABASE_PATH
        self.busy_timeout = busy_timeout if busy_timeout is not None else DATABASE_BUSY_TIMEOUT
        self._conn: Optional[sqlite3.Connection] = None

    def _configure_connection(self, conn: sqlite3.Connection) -> None:
        """
        Configure connection settings.

        Args:
            conn: SQLite connection to configure.
        """
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout)}")
        conn.execute("PRAGMA foreign_keys = ON")

    def get_connection(self) -> sqlite3.Connection:
        """
        Get the session connection, opening it on first use.

        Returns:
            sqlite3.Connection: Connection with foreign keys enabled.

        Raises:
            BackendUnavailableError: If the database cannot be opened.
        """
        if self._conn is not None:
            return self._conn

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            self._configure_connection(conn)
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Error opening database {self.db_path}: {e}")
            raise BackendUnavailableError(operation="open", path=self.db_path, reason=str(e))

        self._conn = conn
        logger.info(
            f"Database opened: {self.db_path} "
            f"(busy_timeout={self.busy_timeout}ms)"
        )
        return conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        """Close the connection if it is open."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        finally:
            self._conn = None
            logger.debug(f"Database closed: {self.db_path}")
