"""
Service layer: sessions over one backend and migrations between backends.
"""
from meditrack.services.migration import MigrationSummary, migrate
from meditrack.services.session import MediTrackSession

__all__ = ["MediTrackSession", "MigrationSummary", "migrate"]
