"""
Factory functions wiring configuration to repositories.

Architecture Flow:
    MediTrackSession (service layer)
         ↓ injected
    PatientRepository (flat file or SQLite)
         ↓ injected
    Database (SQLite connection, SQLite backend only)

Usage:
    from meditrack.core.dependencies import get_repository

    with get_repository() as repo:
        patients = repo.load()

Testing:
    Pass explicit paths instead of relying on settings:
    get_repository("flat", path=str(tmp_path / "data.txt"))
"""
import logging
from typing import Optional

from meditrack.core.config import settings

logger = logging.getLogger(__name__)


def get_database(path: Optional[str] = None) -> "Database":
    """
    Create a Database for the configured (or given) SQLite path.

    Import here to avoid circular imports with repositories.
    """
    from meditrack.repositories.base import Database

    return Database(
        db_path=path or settings.database_path,
        busy_timeout=settings.meditrack_db_busy_timeout,
    )


def get_repository(backend: Optional[str] = None, path: Optional[str] = None) -> "PatientRepository":
    """
    Create the repository for a backend.

    Args:
        backend: "flat" or "sqlite". Defaults to MEDITRACK_BACKEND.
        path: Data file path. Defaults to the configured path for the backend.

    Returns:
        PatientRepository: A fresh repository; the caller owns and closes it.

    Raises:
        ValueError: If the backend name is unknown.
    """
    from meditrack.repositories import FlatFileRepository, SqlitePatientRepository

    backend = backend or settings.meditrack_backend
    logger.debug(f"Creating {backend} repository", extra={"path": path})

    if backend == "flat":
        return FlatFileRepository(
            file_path=path or settings.flat_file_path,
            max_patients=settings.meditrack_max_patients,
            max_entries=settings.meditrack_max_entries,
        )
    if backend == "sqlite":
        return SqlitePatientRepository(db=get_database(path))
    raise ValueError(f"Unknown backend: {backend!r} (expected 'flat' or 'sqlite')")
