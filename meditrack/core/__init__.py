"""
Core module for configuration, logging and shared utilities.

This module provides:
- Settings: Application configuration via pydantic-settings
- Factories: repository construction from settings
- Exceptions: Domain-specific exception classes
- Datetime utilities: epoch timestamps and reminder clock strings
- Metric registry: measurement display data and alert thresholds
"""
from meditrack.core.config import settings, Settings

from meditrack.core.dependencies import get_database, get_repository

from meditrack.core.exceptions import (
    MediTrackError,
    RecordParseError,
    RecordCountError,
    PersistenceError,
    BackendUnavailableError,
    ConstraintViolationError,
    InvalidInputError,
)

from meditrack.core.datetime_utils import (
    epoch_now,
    local_now,
    from_epoch,
    reminder_clock,
    format_timestamp,
)

from meditrack.core.metric_registry import (
    MetricDefinition,
    get_metric,
    list_metrics,
)

__all__ = [
    # Settings
    "settings",
    "Settings",
    # Factories
    "get_database",
    "get_repository",
    # Exceptions
    "MediTrackError",
    "RecordParseError",
    "RecordCountError",
    "PersistenceError",
    "BackendUnavailableError",
    "ConstraintViolationError",
    "InvalidInputError",
    # Datetime utilities
    "epoch_now",
    "local_now",
    "from_epoch",
    "reminder_clock",
    "format_timestamp",
    # Metric registry
    "MetricDefinition",
    "get_metric",
    "list_metrics",
]
