"""
Move a patient collection from one backend to another.

Loading and saving stay single-backend; this is the only path that reads
one store and writes another. The target is replaced wholesale, like any
save.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from meditrack.core.exceptions import MediTrackError
from meditrack.repositories.base import PatientRepository

logger = logging.getLogger(__name__)


@dataclass
class MigrationSummary:
    """
    What a migration did (or, for a dry run, would do).

    Attributes:
        source: Source backend name.
        target: Target backend name.
        loaded: Patients read from the source.
        saved: Patients written to the target (0 for a dry run or refusal).
        records: Health records across the loaded patients.
        errors: Problems the source load reported.
        dry_run: True if the target was left untouched on purpose.
        refused: True if load errors stopped the save.
    """
    source: str
    target: str
    loaded: int = 0
    saved: int = 0
    records: int = 0
    errors: List[MediTrackError] = field(default_factory=list)
    dry_run: bool = False
    refused: bool = False

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "target": self.target,
            "loaded": self.loaded,
            "saved": self.saved,
            "records": self.records,
            "errors": [e.to_dict() for e in self.errors],
            "dry_run": self.dry_run,
            "refused": self.refused,
        }


def migrate(
    source: PatientRepository,
    target: PatientRepository,
    force: bool = False,
    dry_run: bool = False
) -> MigrationSummary:
    """
    Copy every patient from `source` into `target`.

    Args:
        source: Repository to load from.
        target: Repository to save to. Its previous contents are replaced.
        force: Save whatever loaded even if the source reported errors.
            Patients after the first error are lost in that case.
        dry_run: Load and count only; never touch the target.

    Returns:
        MigrationSummary: Counts and any load errors.

    Raises:
        PersistenceError: If the target rejected the save.
    """
    result = source.load_with_report()
    summary = MigrationSummary(
        source=source.backend_name,
        target=target.backend_name,
        loaded=result.loaded_count,
        records=sum(len(p.records) for p in result.patients),
        errors=list(result.errors),
        dry_run=dry_run,
    )

    if result.errors:
        logger.warning(
            f"Source load reported {len(result.errors)} error(s)",
            extra={"errors": [e.to_dict() for e in result.errors], "force": force},
        )
        if not force and not dry_run:
            summary.refused = True
            logger.error("Migration refused; rerun with force to save the partial collection")
            return summary

    if dry_run:
        logger.info(
            f"Dry run: would migrate {summary.loaded} patients",
            extra={"source": summary.source, "target": summary.target},
        )
        return summary

    target.save(result.patients)
    summary.saved = len(result.patients)
    logger.info(
        f"Migrated {summary.saved} patients",
        extra={"source": summary.source, "target": summary.target, "records": summary.records},
    )
    return summary
