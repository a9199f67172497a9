"""
Capacity utilization math.

Pure domain logic without any I/O: given appointments and a capacity figure
it works out how much of a period is booked. Appointments are bucketed by
the calendar day their start falls on in the business's zone, not by raw
UTC date, so a late-evening booking in New York still counts for that
evening's day even though it is already tomorrow in UTC.
"""

from collections import Counter
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from .exceptions import ValidationError
from .models import Appointment, AppointmentStatus, CapacitySnapshot, Period, UtilizationSummary
from .timezones import ensure_timezone

DEFAULT_MEDIUM_THRESHOLD = 60.0
DEFAULT_HIGH_THRESHOLD = 80.0


class UtilizationBand(str, Enum):
    """Colour band for a utilization percentage."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def utilization_band(
    percentage: Optional[float],
    medium_threshold: float = DEFAULT_MEDIUM_THRESHOLD,
    high_threshold: float = DEFAULT_HIGH_THRESHOLD,
) -> UtilizationBand | None:
    """
    Classify a percentage: LOW below 60, MEDIUM from 60, HIGH from 80.

    Returns None when the percentage is unknown.
    """
    if not 0 <= medium_threshold < high_threshold:
        raise ValidationError(
            "thresholds",
            f"expected 0 <= medium < high, got {medium_threshold} and {high_threshold}",
        )
    if percentage is None:
        return None
    if percentage >= high_threshold:
        return UtilizationBand.HIGH
    if percentage >= medium_threshold:
        return UtilizationBand.MEDIUM
    return UtilizationBand.LOW


def utilization_percentage(booked_units: int, total_capacity: int) -> Optional[float]:
    """booked / capacity * 100, or None when capacity is unknown (<= 0)."""
    if total_capacity <= 0:
        return None
    return booked_units / total_capacity * 100


class UtilizationCalculator:
    """
    Computes capacity snapshots from appointment intervals.

    Args:
        excluded_statuses: Statuses that never count toward booked units
            (e.g. cancelled bookings)
    """

    def __init__(self, excluded_statuses: Iterable[AppointmentStatus | str] = ()):
        self.excluded_statuses = frozenset(
            AppointmentStatus.parse(status) for status in excluded_statuses
        )

    def utilization(
        self,
        appointments: Sequence[Appointment],
        total_capacity: int,
        period_start: date,
        period_end: date,
        timezone_id: str,
    ) -> CapacitySnapshot:
        """
        Booked versus total capacity for the calendar days ``[start, end)``.

        Args:
            appointments: Candidate appointments (may include other days)
            total_capacity: Bookable units for the period; <= 0 means unknown
            period_start: First calendar day, inclusive
            period_end: Last calendar day, exclusive
            timezone_id: Zone whose calendar decides which day a booking is on

        Returns:
            CapacitySnapshot for the period
        """
        period = Period(start=period_start, end=period_end)
        ensure_timezone(timezone_id)

        booked = sum(
            appointment.booked_units()
            for appointment in self._in_period(appointments, period, timezone_id)
        )

        return CapacitySnapshot(
            period_start=period.start,
            period_end=period.end,
            booked_units=booked,
            total_capacity_units=total_capacity,
            utilization_percentage=utilization_percentage(booked, total_capacity),
        )

    def daily(
        self,
        appointments: Sequence[Appointment],
        total_capacity: int,
        period: Period,
        timezone_id: str,
    ) -> List[CapacitySnapshot]:
        """One single-day snapshot for every day in ``period``."""
        return [
            self.utilization(
                appointments,
                total_capacity,
                day,
                day + timedelta(days=1),
                timezone_id,
            )
            for day in period.days()
        ]

    def week(
        self,
        appointments: Sequence[Appointment],
        daily_capacity: int,
        week_start: date,
        timezone_id: str,
    ) -> CapacitySnapshot:
        """
        Sum of seven single-day snapshots starting at ``week_start``.

        Partial weeks are not special-cased; callers pass the exact start.
        """
        week = Period.week_of(week_start)
        days = self.daily(appointments, daily_capacity, week, timezone_id)

        booked = sum(day.booked_units for day in days)
        capacity = sum(day.total_capacity_units for day in days)

        return CapacitySnapshot(
            period_start=week.start,
            period_end=week.end,
            booked_units=booked,
            total_capacity_units=capacity,
            utilization_percentage=utilization_percentage(booked, capacity),
        )

    def summarize(
        self,
        appointments: Sequence[Appointment],
        daily_capacity: int,
        period: Period,
        timezone_id: str,
    ) -> UtilizationSummary:
        """
        Aggregate statistics: units per day, average utilization across
        days, and the busiest and quietest local hours.
        """
        ensure_timezone(timezone_id)
        counted = list(self._in_period(appointments, period, timezone_id))

        daily_units: Dict[str, int] = {day.isoformat(): 0 for day in period.days()}
        hour_units: Counter = Counter()

        for appointment in counted:
            local_start = appointment.start.in_timezone(timezone_id)
            units = appointment.booked_units()
            daily_units[local_start.date().isoformat()] += units
            hour_units[f"{local_start.hour:02d}:00"] += units

        total_units = sum(daily_units.values())
        average = utilization_percentage(total_units, daily_capacity * period.day_count())

        # Counter.most_common keeps insertion order for ties
        ranked = [hour for hour, _ in hour_units.most_common()]

        return UtilizationSummary(
            period_start=period.start,
            period_end=period.end,
            total_appointments=len(counted),
            average_utilization=average,
            daily_units=daily_units,
            peak_hours=ranked[:3],
            slow_hours=ranked[-3:],
        )

    def _in_period(
        self,
        appointments: Iterable[Appointment],
        period: Period,
        timezone_id: str,
    ) -> Iterable[Appointment]:
        for appointment in appointments:
            if appointment.status in self.excluded_statuses:
                continue
            local_day = appointment.start.in_timezone(timezone_id).date()
            if period.contains(local_day):
                yield appointment
