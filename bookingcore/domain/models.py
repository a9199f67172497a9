"""
Domain models for appointments, booking periods and capacity figures.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterator, List, Optional

from pendulum import DateTime

from .exceptions import ValidationError
from .timezones import as_instant


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: "AppointmentStatus | str") -> "AppointmentStatus":
        """Coerce a raw status string, raising ValidationError for unknown values."""
        try:
            return cls(value)
        except ValueError as exc:
            allowed = ", ".join(status.value for status in cls)
            raise ValidationError("status", f"{value!r} is not one of: {allowed}") from exc


@dataclass
class Appointment:
    """
    A booking held by the external appointment store.

    Invariant: ``start`` and ``end`` are UTC instants and end > start.
    ``party_size`` is taken as-is; dirty values are tolerated by the
    utilization math rather than rejected here.
    """
    business_id: str
    user_id: str
    start: DateTime
    end: DateTime
    party_size: Optional[int] = 1
    status: AppointmentStatus = AppointmentStatus.PENDING
    user_timezone: Optional[str] = None
    description: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        self.start = as_instant(self.start)
        self.end = as_instant(self.end)
        if self.end <= self.start:
            raise ValidationError(
                "end",
                f"end time {self.end} must be after start time {self.start}",
            )
        self.status = AppointmentStatus.parse(self.status)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def booked_units(self) -> int:
        """Party size counted toward capacity; missing or negative counts as 0."""
        if not self.party_size or self.party_size < 0:
            return 0
        return self.party_size


@dataclass(frozen=True)
class Period:
    """
    A half-open range of calendar days, ``[start, end)``.

    Days are interpreted in whatever zone the caller supplies alongside.
    """
    start: date
    end: date

    def __post_init__(self):
        if self.end <= self.start:
            raise ValidationError(
                "period",
                f"end {self.end.isoformat()} must be after start {self.start.isoformat()}",
            )

    @classmethod
    def single_day(cls, day: date) -> "Period":
        return cls(start=day, end=day + timedelta(days=1))

    @classmethod
    def week_of(cls, first_day: date) -> "Period":
        """Seven consecutive days starting at ``first_day``."""
        return cls(start=first_day, end=first_day + timedelta(days=7))

    def days(self) -> Iterator[date]:
        """Iterate over every calendar day in the period."""
        current = self.start
        while current < self.end:
            yield current
            current += timedelta(days=1)

    def day_count(self) -> int:
        return (self.end - self.start).days

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    def cache_token(self) -> str:
        return f"{self.start.isoformat()}:{self.end.isoformat()}"

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


@dataclass(frozen=True)
class CapacitySnapshot:
    """
    Booked versus total capacity for a period. Derived, never stored.

    ``utilization_percentage`` is None when the capacity is unknown (<= 0).
    It is not clamped at 100 so overbooking stays visible.
    """
    period_start: date
    period_end: date
    booked_units: int
    total_capacity_units: int
    utilization_percentage: Optional[float]

    @property
    def available_units(self) -> int:
        return max(self.total_capacity_units - self.booked_units, 0)


@dataclass(frozen=True)
class UtilizationSummary:
    """Aggregate booking statistics over a period."""
    period_start: date
    period_end: date
    total_appointments: int
    average_utilization: Optional[float]
    daily_units: Dict[str, int] = field(default_factory=dict)
    peak_hours: List[str] = field(default_factory=list)
    slow_hours: List[str] = field(default_factory=list)
