"""
Repository layer for patient persistence.

Two interchangeable backends share one canonical record mapping (codec):
- FlatFileRepository: a single delimited text file
- SqlitePatientRepository: four related SQLite tables
"""
from meditrack.repositories.base import Database, LoadResult, PatientRepository
from meditrack.repositories.flat_file_repository import FlatFileRepository
from meditrack.repositories.sqlite_repository import SqlitePatientRepository

__all__ = [
    "Database",
    "LoadResult",
    "PatientRepository",
    "FlatFileRepository",
    "SqlitePatientRepository",
]
