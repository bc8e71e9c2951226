"""
Domain model for health measurements.

A health record is exactly one of a closed set of kinds. Each kind is a
frozen dataclass carrying its own payload plus `captured_at`, the capture
time in seconds since the epoch. Records are never mutated: neither the kind
nor the timestamp changes after construction.

Adding a measurement kind means adding a RecordKind member, a record class,
a RECORD_TYPES entry and a metrics.yaml entry. The module refuses to import
if those disagree.
"""
import logging
import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import ClassVar, Dict, Optional, Sequence, Tuple, Type, Union

from meditrack.core.datetime_utils import epoch_now, format_timestamp
from meditrack.core.exceptions import InvalidInputError
from meditrack.core.metric_registry import MetricDefinition, get_metric, list_metrics

logger = logging.getLogger(__name__)


class RecordKind(str, Enum):
    """Measurement kinds. Values are the storage tags used by both backends."""

    BLOOD_PRESSURE = "BP"
    WEIGHT = "Weight"
    BLOOD_SUGAR = "Sugar"

    @classmethod
    def parse(cls, value: Union["RecordKind", str]) -> "RecordKind":
        """
        Resolve a kind from an enum member, a storage tag or a member name.

        Accepts "BP", "bp", "BLOOD_PRESSURE", "blood pressure" and so on.

        Raises:
            InvalidInputError: If the value names no known kind
        """
        if isinstance(value, RecordKind):
            return value
        if isinstance(value, str):
            cleaned = value.strip()
            for kind in cls:
                if cleaned == kind.value:
                    return kind
            normalized = cleaned.upper().replace(" ", "_")
            for kind in cls:
                if normalized in (kind.name, kind.value.upper()):
                    return kind
        raise InvalidInputError(f"Unknown record kind: {value!r}", kind=str(value))


class AlertLevel(str, Enum):
    """Alert tier of a single measurement."""

    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"


# SQLite keeps payload values in REAL columns, exact only up to 2**53,
# and timestamps in a signed 64-bit INTEGER column.
MAX_EXACT_VALUE = 2 ** 53
MAX_TIMESTAMP = 2 ** 63 - 1


def _require_int(name: str, value: object, limit: int = MAX_EXACT_VALUE) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}", field=name)
    if not -limit <= value <= limit:
        raise InvalidInputError(f"{name} out of range: {value}", field=name, limit=limit)


def _require_number(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{name} must be a number, got {value!r}", field=name)
    if not math.isfinite(value):
        raise InvalidInputError(f"{name} must be finite, got {value!r}", field=name)


class HealthRecord:
    """
    Base class for every measurement kind.

    Subclasses are frozen dataclasses that declare `kind` and implement
    `values()`, `from_values()` and `alert()`.
    """

    kind: ClassVar[RecordKind]
    captured_at: int

    @property
    def metric(self) -> MetricDefinition:
        """Registry entry (display name, unit, thresholds) for this kind."""
        return get_metric(self.kind.value)

    def values(self) -> Tuple[Union[int, float], ...]:
        """Ordered numeric payload, as stored after the tag."""
        raise NotImplementedError

    @classmethod
    def from_values(
        cls,
        values: Sequence[Union[int, float]],
        captured_at: Optional[int] = None
    ) -> "HealthRecord":
        """Build a record of this kind from its ordered payload."""
        raise NotImplementedError

    def alert(self) -> Optional[AlertLevel]:
        """Alert tier for this reading, or None if the kind has no tiers."""
        return None

    def _check_timestamp(self) -> None:
        _require_int("captured_at", self.captured_at, MAX_TIMESTAMP)

    def value_text(self) -> str:
        return " ".join(f"{v:g}" for v in self.values())

    def summary(self) -> str:
        """
        One-line description, with the alert message appended when the
        reading is outside its normal range.

        Example:
            "2024-01-15 10:30 - Blood Pressure: 150/85 mmHg  <-- ALERT: High Blood Pressure!"
        """
        metric = self.metric
        text = f"{format_timestamp(self.captured_at)} - {metric.display_name}: {self.value_text()}"
        if metric.unit:
            text += f" {metric.unit}"
        level = self.alert()
        if level is not None and level is not AlertLevel.NORMAL:
            message = metric.alert_message(level.value)
            if message:
                text += f"  <-- ALERT: {message}"
        return text


@dataclass(frozen=True)
class BloodPressureRecord(HealthRecord):
    """Systolic/diastolic reading in mmHg."""

    systolic: int
    diastolic: int
    captured_at: int = field(default_factory=epoch_now)

    kind: ClassVar[RecordKind] = RecordKind.BLOOD_PRESSURE

    def __post_init__(self) -> None:
        _require_int("systolic", self.systolic)
        _require_int("diastolic", self.diastolic)
        self._check_timestamp()

    def values(self) -> Tuple[int, int]:
        return (self.systolic, self.diastolic)

    @classmethod
    def from_values(cls, values, captured_at=None) -> "BloodPressureRecord":
        systolic, diastolic = values
        if captured_at is None:
            return cls(systolic=systolic, diastolic=diastolic)
        return cls(systolic=systolic, diastolic=diastolic, captured_at=captured_at)

    def value_text(self) -> str:
        return f"{self.systolic}/{self.diastolic}"

    def alert(self) -> AlertLevel:
        # HIGH is checked first; a reading matching both tiers reports HIGH.
        metric = self.metric
        if (self.systolic >= metric.threshold("high_systolic")
                or self.diastolic >= metric.threshold("high_diastolic")):
            return AlertLevel.HIGH
        if (self.systolic <= metric.threshold("low_systolic")
                or self.diastolic <= metric.threshold("low_diastolic")):
            return AlertLevel.LOW
        return AlertLevel.NORMAL


@dataclass(frozen=True)
class WeightRecord(HealthRecord):
    """Body weight in kilograms. No alert tiers."""

    weight: float
    captured_at: int = field(default_factory=epoch_now)

    kind: ClassVar[RecordKind] = RecordKind.WEIGHT

    def __post_init__(self) -> None:
        _require_number("weight", self.weight)
        self._check_timestamp()

    def values(self) -> Tuple[float]:
        return (self.weight,)

    @classmethod
    def from_values(cls, values, captured_at=None) -> "WeightRecord":
        (weight,) = values
        if captured_at is None:
            return cls(weight=weight)
        return cls(weight=weight, captured_at=captured_at)


@dataclass(frozen=True)
class BloodSugarRecord(HealthRecord):
    """Blood glucose in mg/dL (assumed fasting)."""

    sugar: float
    captured_at: int = field(default_factory=epoch_now)

    kind: ClassVar[RecordKind] = RecordKind.BLOOD_SUGAR

    def __post_init__(self) -> None:
        _require_number("sugar", self.sugar)
        self._check_timestamp()

    def values(self) -> Tuple[float]:
        return (self.sugar,)

    @classmethod
    def from_values(cls, values, captured_at=None) -> "BloodSugarRecord":
        (sugar,) = values
        if captured_at is None:
            return cls(sugar=sugar)
        return cls(sugar=sugar, captured_at=captured_at)

    def alert(self) -> AlertLevel:
        metric = self.metric
        if self.sugar >= metric.threshold("high"):
            return AlertLevel.HIGH
        if self.sugar < metric.threshold("low"):
            return AlertLevel.LOW
        return AlertLevel.NORMAL


RECORD_TYPES: Dict[RecordKind, Type[HealthRecord]] = {
    BloodPressureRecord.kind: BloodPressureRecord,
    WeightRecord.kind: WeightRecord,
    BloodSugarRecord.kind: BloodSugarRecord,
}


def _check_closed_set() -> None:
    """Fail the import if kinds, record classes and the registry disagree."""
    missing = [kind.name for kind in RecordKind if kind not in RECORD_TYPES]
    if missing:
        raise RuntimeError(f"No record class for kinds: {missing}")

    registry_tags = set(list_metrics())
    kind_tags = {kind.value for kind in RecordKind}
    if registry_tags != kind_tags:
        raise RuntimeError(
            f"metrics.yaml tags {sorted(registry_tags)} do not match record kinds {sorted(kind_tags)}"
        )

    for kind, record_cls in RECORD_TYPES.items():
        payload = [f.name for f in fields(record_cls) if f.name != "captured_at"]
        if tuple(payload) != get_metric(kind.value).fields:
            raise RuntimeError(
                f"metrics.yaml fields for '{kind.value}' do not match {record_cls.__name__}: {payload}"
            )


_check_closed_set()


def create_record(
    kind: Union[RecordKind, str],
    values: Sequence[Union[int, float]],
    captured_at: Optional[int] = None
) -> HealthRecord:
    """
    Construct the record variant for a kind from its ordered field values.

    Args:
        kind: RecordKind, storage tag or kind name.
        values: Payload in field order (BP: systolic, diastolic).
        captured_at: Capture time in epoch seconds; defaults to now.

    Returns:
        The matching HealthRecord subclass instance.

    Raises:
        InvalidInputError: If the kind is unknown or the payload is malformed.
    """
    resolved = RecordKind.parse(kind)
    record_cls = RECORD_TYPES[resolved]
    expected = get_metric(resolved.value).arity
    if len(values) != expected:
        raise InvalidInputError(
            f"{resolved.value} takes {expected} value(s), got {len(values)}",
            kind=resolved.value,
        )
    return record_cls.from_values(tuple(values), captured_at)
