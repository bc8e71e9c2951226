"""
Domain model for patients.

A Patient exclusively owns its health records, medications and reminders.
The three collections are append-only and keep insertion order, which is
also the order both backends persist them in.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from meditrack.core.exceptions import InvalidInputError
from meditrack.models.care import Medication, Reminder, is_reminder_due
from meditrack.models.health_record import HealthRecord, RecordKind

logger = logging.getLogger(__name__)

BMI_UNDERWEIGHT = "Underweight"
BMI_NORMAL = "Normal weight"
BMI_OVERWEIGHT = "Overweight"
BMI_OBESITY = "Obesity"


def classify_bmi(bmi: float) -> str:
    """Map a BMI value to its WHO category."""
    if bmi < 18.5:
        return BMI_UNDERWEIGHT
    if bmi < 25:
        return BMI_NORMAL
    if bmi < 30:
        return BMI_OVERWEIGHT
    return BMI_OBESITY


@dataclass(frozen=True)
class BMIResult:
    """Outcome of a BMI calculation."""

    bmi: float
    weight: float
    height: float
    category: str


@dataclass
class Patient:
    """Model representing a patient and everything recorded for them."""

    name: str
    age: int
    contact: str
    records: List[HealthRecord] = field(default_factory=list)
    medications: List[Medication] = field(default_factory=list)
    reminders: List[Reminder] = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Mutators (append-only)
    # -------------------------------------------------------------------------

    def add_record(self, record: HealthRecord) -> None:
        if not isinstance(record, HealthRecord):
            raise InvalidInputError(f"Not a health record: {record!r}")
        self.records.append(record)

    def add_medication(self, medication: Medication) -> None:
        self.medications.append(medication)

    def add_reminder(self, reminder: Reminder) -> None:
        self.reminders.append(reminder)

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def most_recent_weight(self) -> Optional[float]:
        """
        Get the weight from the last Weight record added.

        "Most recent" means last in insertion order, not latest
        `captured_at`: a back-dated entry added later still wins.

        Returns:
            The weight in kg, or None if no Weight record exists.
        """
        for record in reversed(self.records):
            if record.kind is RecordKind.WEIGHT:
                return record.values()[0]
        return None

    def compute_bmi(self, height: float) -> BMIResult:
        """
        Calculate BMI from the most recent weight and a height in meters.

        Args:
            height: Height in meters; must be greater than zero.

        Returns:
            BMIResult with the raw BMI value and its category.

        Raises:
            InvalidInputError: If there is no usable weight or height <= 0.
        """
        weight = self.most_recent_weight()
        if weight is None or weight <= 0:
            raise InvalidInputError(
                "BMI cannot be calculated. No weight records found.",
                patient=self.name,
            )
        if isinstance(height, bool) or not isinstance(height, (int, float)) or not height > 0:
            raise InvalidInputError(
                "Invalid height. Cannot calculate BMI.",
                patient=self.name,
                height=height,
            )

        bmi = weight / (height * height)
        result = BMIResult(bmi=bmi, weight=weight, height=float(height), category=classify_bmi(bmi))
        logger.debug(
            "BMI calculated",
            extra={"patient": self.name, "bmi": round(bmi, 2), "category": result.category},
        )
        return result

    def trend(self, kind: Union[RecordKind, str]) -> List[HealthRecord]:
        """
        Get every record of one kind, in insertion order.

        Args:
            kind: RecordKind, storage tag ("BP", "Weight", "Sugar") or kind name.

        Returns:
            Matching records; an empty list when there are none.

        Raises:
            InvalidInputError: If the kind is not recognised.
        """
        resolved = RecordKind.parse(kind)
        return [record for record in self.records if record.kind is resolved]

    def due_reminders(self, now: Optional[datetime] = None) -> List[Reminder]:
        """Reminders due at `now` (defaults to the local clock). Pure."""
        return [reminder for reminder in self.reminders if is_reminder_due(reminder, now)]
