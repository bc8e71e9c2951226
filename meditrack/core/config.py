"""
Configuration module for MediTrack.
Uses Pydantic BaseSettings for validation - bad values fail fast at import.
"""
import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings with validation.
    Every field can be overridden from the environment or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage Configuration
    meditrack_data_dir: str = Field(default="data", description="Directory holding the data files")
    meditrack_flat_file: str = Field(default="meditrack_data.txt", description="Flat-file store filename")
    meditrack_db_file: str = Field(default="meditrack.db", description="SQLite store filename")
    meditrack_backend: Literal["flat", "sqlite"] = Field(
        default="sqlite",
        description="Backend used by a session when none is given explicitly",
    )
    meditrack_db_busy_timeout: int = Field(default=5000, ge=0, description="SQLite busy timeout in milliseconds")

    # Load limits (a count beyond these is treated as corruption)
    meditrack_max_patients: int = Field(default=10000, gt=0, description="Maximum patient count in a flat file")
    meditrack_max_entries: int = Field(
        default=100000,
        gt=0,
        description="Maximum records, medications or reminders per patient in a flat file",
    )

    @model_validator(mode="after")
    def validate_paths(self) -> "Settings":
        """Warn when both backends would point at the same file."""
        if self.meditrack_flat_file == self.meditrack_db_file:
            logger.warning(
                "MEDITRACK_FLAT_FILE and MEDITRACK_DB_FILE are identical - "
                "the two backends will overwrite each other"
            )
        return self

    @property
    def flat_file_path(self) -> str:
        """Get the full flat-file path."""
        return str(Path(self.meditrack_data_dir) / self.meditrack_flat_file)

    @property
    def database_path(self) -> str:
        """Get the full database path."""
        return str(Path(self.meditrack_data_dir) / self.meditrack_db_file)


# Create global settings instance - fails fast on invalid config
settings = Settings()

FLAT_FILE_PATH = settings.flat_file_path
DATABASE_PATH = settings.database_path
DATABASE_BUSY_TIMEOUT = settings.meditrack_db_busy_timeout
MAX_PATIENTS = settings.meditrack_max_patients
MAX_ENTRIES = settings.meditrack_max_entries
