"""
Pydantic schemas for validating caller input.
"""
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

from meditrack.core.exceptions import InvalidInputError
from meditrack.schemas.patient import (
    HealthRecordCreate,
    MedicationCreate,
    PatientCreate,
    ReminderCreate,
)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_input(schema: Type[SchemaT], **data: Any) -> SchemaT:
    """
    Validate raw input against a schema.

    Raises:
        InvalidInputError: With one message per failing field in its context.
    """
    try:
        return schema(**data)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidInputError(
            f"Invalid {schema.__name__}: " + "; ".join(problems),
            errors=problems,
        )


__all__ = [
    "HealthRecordCreate",
    "MedicationCreate",
    "PatientCreate",
    "ReminderCreate",
    "validate_input",
]
