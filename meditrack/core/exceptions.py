"""
Shared exception classes for MediTrack.

This module provides:
- Custom exception hierarchy for domain-specific errors
- Consistent error structure (detail message plus keyword context)

Every error here is recoverable at the caller boundary. Loading never raises
these past the repository: load errors are collected into a LoadResult.
Saving and domain queries raise them for the caller to report.

Usage:
    from meditrack.core.exceptions import InvalidInputError, BackendUnavailableError

    # In the domain layer
    raise InvalidInputError("Height must be greater than zero", height=height)

    # At the caller boundary
    try:
        repository.save(patients)
    except PersistenceError as exc:
        print(exc.detail)
"""
from typing import Any, Dict, Optional


# =============================================================================
# BASE EXCEPTION CLASS
# =============================================================================

class MediTrackError(Exception):
    """
    Base exception for all MediTrack domain errors.

    All custom exceptions should inherit from this class.
    Provides a consistent error structure with a detail message and context.
    """

    detail: str = "An unexpected error occurred"

    def __init__(self, detail: Optional[str] = None, **kwargs: Any):
        """
        Initialize the exception.

        Args:
            detail: Human-readable error message. Uses class default if not provided.
            **kwargs: Additional context to include when the error is reported.
        """
        self.detail = detail or self.__class__.detail
        self.context = kwargs
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for structured logging and reports."""
        result: Dict[str, Any] = {"error": self.__class__.__name__, "detail": self.detail}
        if self.context:
            result["context"] = self.context
        return result


# =============================================================================
# LOAD EXCEPTIONS
# =============================================================================

class RecordParseError(MediTrackError):
    """Raised when a stored line or row cannot be decoded."""

    detail = "Malformed data in storage"

    def __init__(
        self,
        detail: Optional[str] = None,
        line_number: Optional[int] = None,
        **kwargs: Any
    ):
        if detail and line_number is not None:
            detail = f"Line {line_number}: {detail}"
        super().__init__(detail=detail, line_number=line_number, **kwargs)


class RecordCountError(MediTrackError):
    """Raised when a stored count is outside the sane range."""

    detail = "Stored count outside the accepted range"

    def __init__(self, what: str, count: Any, maximum: int, **kwargs: Any):
        detail = f"Unreasonable {what} count ({count}); expected 0..{maximum}"
        super().__init__(detail=detail, what=what, count=count, maximum=maximum, **kwargs)


# =============================================================================
# PERSISTENCE EXCEPTIONS
# =============================================================================

class PersistenceError(MediTrackError):
    """Base exception for failed saves. Nothing is persisted when raised."""

    detail = "Persistence operation failed"


class BackendUnavailableError(PersistenceError):
    """Raised when the file or store cannot be opened or written."""

    detail = "Storage backend unavailable"

    def __init__(self, operation: Optional[str] = None, **kwargs: Any):
        detail = f"Storage backend unavailable during {operation}" if operation else self.detail
        super().__init__(detail=detail, operation=operation, **kwargs)


class ConstraintViolationError(PersistenceError):
    """Raised when a field value cannot be stored faithfully by the backend."""

    detail = "Field contains a reserved character"

    def __init__(
        self,
        field: str,
        value: str,
        reason: str = "contains a reserved character",
        **kwargs: Any
    ):
        detail = f"Field '{field}' {reason}: {value!r}"
        super().__init__(detail=detail, field=field, value=value, **kwargs)


# =============================================================================
# DOMAIN EXCEPTIONS
# =============================================================================

class InvalidInputError(MediTrackError):
    """Raised when a caller supplies input the domain cannot act on."""

    detail = "Invalid input"
