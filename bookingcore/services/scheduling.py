"""
Application service for booking appointments and reading capacity.

The service normalizes caller input (wall-clock fields or free text plus a
timezone) to UTC, hands persistence to an appointment store, and serves
utilization figures through a cache-aside read path. Both collaborators are
plain protocols so the real persistence layer or an in-memory stand-in can
be plugged in.

Concurrent bookings for the same business are not serialized here; if
overbooking has to be prevented, the store must do it (conditional insert
or a serializable transaction).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Tuple, TypeVar
from urllib.parse import quote

from pendulum import DateTime

from ..domain.exceptions import CollaboratorError, SchedulingError, ValidationError
from ..domain.lifecycle import ensure_transition
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    CapacitySnapshot,
    Period,
    UtilizationSummary,
)
from ..domain.nl_parser import parse_natural_time
from ..domain.timezones import (
    CivilTime,
    InstantLike,
    detect_timezone,
    ensure_timezone,
    format_in_zone,
    local_to_utc,
    resolve_timezone,
)
from ..domain.utilization import UtilizationCalculator
from .cache import TTLCache

logger = logging.getLogger(__name__)

R = TypeVar("R")


class AppointmentStoreProtocol(Protocol):
    """Persistence operations the service needs. All times are UTC instants."""

    async def get_by_business_and_range(
        self,
        business_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        """Return appointments of a business starting in ``[start, end)``."""

    async def insert(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment and return it with its id assigned."""

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """Persist a status change and return the updated appointment."""

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        """Return a single appointment, or None if it does not exist."""


class BusinessProfileProtocol(Protocol):
    """Business profile lookups used for capacity math and zone fallback."""

    async def get_capacity(self, business_id: str) -> int:
        """Bookable units per day; <= 0 when unknown."""

    async def get_timezone(self, business_id: str) -> Optional[str]:
        """The business's IANA zone, if one is configured."""


@dataclass
class SchedulingSettings:
    """Tunables for the scheduling service."""
    default_timezone: Optional[str] = None
    default_duration_minutes: int = 60
    utilization_ttl_seconds: float = 120.0
    excluded_statuses: Tuple[AppointmentStatus, ...] = (AppointmentStatus.CANCELLED,)


@dataclass
class BookingResult:
    """Outcome of a booking request at the caller boundary."""
    success: bool
    message: str
    appointment: Optional[Appointment] = None
    error: Optional[SchedulingError] = None


class SchedulingService:
    """
    Orchestrates time normalization, persistence and cached utilization reads.

    The cache is injected so its lifetime is explicit: construct one per
    process or worker and call ``clear_all()`` on it to reset.
    """

    CACHE_NAMESPACE = "capacity"

    def __init__(
        self,
        store: AppointmentStoreProtocol,
        profiles: BusinessProfileProtocol,
        cache: TTLCache[Any],
        calculator: Optional[UtilizationCalculator] = None,
        settings: Optional[SchedulingSettings] = None,
    ) -> None:
        self._store = store
        self._profiles = profiles
        self._cache = cache
        self._settings = settings or SchedulingSettings()
        self._calculator = calculator or UtilizationCalculator(self._settings.excluded_statuses)

    async def create_from_local_time(
        self,
        business_id: str,
        user_id: str,
        civil_time: CivilTime,
        timezone_id: Optional[str],
        party_size: int,
        *,
        duration_minutes: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Appointment:
        """
        Book an appointment given wall-clock fields in a timezone.

        Args:
            business_id: Business being booked
            user_id: Person booking
            civil_time: Local start date and time
            timezone_id: Zone of ``civil_time``; None uses the business zone
            party_size: Units to reserve, must be positive
            duration_minutes: Length of the slot (default from settings)
            description: Free-text note stored with the appointment

        Returns:
            The stored appointment

        Raises:
            TimezoneError: If ``timezone_id`` is not a recognized zone
            ValidationError: If party size or duration are not positive
            CollaboratorError: If the store fails
        """
        zone = await self._resolve_zone(business_id, timezone_id)
        self._validate_party_size(party_size)
        start = local_to_utc(civil_time, zone)

        return await self._book(
            business_id=business_id,
            user_id=user_id,
            start=start,
            zone=zone,
            party_size=party_size,
            duration_minutes=duration_minutes,
            description=description,
        )

    async def create_from_natural_language(
        self,
        business_id: str,
        user_id: str,
        text: str,
        timezone_id: Optional[str],
        party_size: int,
        *,
        duration_minutes: Optional[int] = None,
        description: Optional[str] = None,
        now: Optional[InstantLike] = None,
    ) -> Appointment:
        """
        Book an appointment from free text such as "tomorrow 10 AM".

        A ParseError is raised before anything reaches the store.
        """
        zone = await self._resolve_zone(business_id, timezone_id)
        self._validate_party_size(party_size)
        start = parse_natural_time(text, zone, now=now)

        return await self._book(
            business_id=business_id,
            user_id=user_id,
            start=start,
            zone=zone,
            party_size=party_size,
            duration_minutes=duration_minutes,
            description=description,
        )

    async def book_from_voice(
        self,
        business_id: str,
        user_id: str,
        text: str,
        timezone_id: Optional[str] = None,
        party_size: int = 1,
        *,
        duration_minutes: Optional[int] = None,
        description: Optional[str] = None,
        now: Optional[InstantLike] = None,
    ) -> BookingResult:
        """
        Caller-facing booking entry point for voice and chat agents.

        Never raises a SchedulingError; failures come back as an unsuccessful
        result whose message says which input was wrong.
        """
        try:
            zone = await self._resolve_zone(business_id, timezone_id)
            appointment = await self.create_from_natural_language(
                business_id,
                user_id,
                text,
                zone,
                party_size,
                duration_minutes=duration_minutes,
                description=description,
                now=now,
            )
        except SchedulingError as exc:
            logger.warning("Booking request for business %s rejected: %s", business_id, exc)
            return BookingResult(success=False, message=str(exc), error=exc)

        local_start = format_in_zone(appointment.start, zone, "long")
        return BookingResult(
            success=True,
            message=f"Appointment booked successfully on {local_start}",
            appointment=appointment,
        )

    async def update_status(
        self,
        appointment_id: str,
        status: AppointmentStatus | str,
    ) -> Appointment:
        """
        Move an appointment to a new status if the lifecycle allows it.

        Raises:
            StateError: If the transition is not permitted
            ValidationError: If the appointment does not exist
        """
        target = AppointmentStatus.parse(status)
        current = await self._call("fetch appointment", self._store.get, appointment_id)
        if current is None:
            raise ValidationError("appointment_id", f"no appointment with id {appointment_id!r}")

        ensure_transition(current.status, target)

        updated = await self._call(
            "update appointment status",
            self._store.update_status,
            appointment_id,
            target,
        )
        self.invalidate(updated.business_id)
        logger.info(
            "Appointment %s moved %s -> %s",
            appointment_id,
            current.status.value,
            target.value,
        )
        return updated

    async def get_utilization(
        self,
        business_id: str,
        period: Period,
        timezone_id: Optional[str] = None,
    ) -> CapacitySnapshot:
        """
        Capacity snapshot for a period, served from cache when fresh.

        The business capacity is per day, so a multi-day period is measured
        against ``capacity * number of days``.
        """
        zone = await self._resolve_zone(business_id, timezone_id)
        key = self._cache_key(business_id, period, zone, "snapshot")

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        appointments, daily_capacity = await self._load_period(business_id, period, zone)
        snapshot = self._calculator.utilization(
            appointments,
            daily_capacity * period.day_count(),
            period.start,
            period.end,
            zone,
        )

        self._cache.set(key, snapshot, ttl=self._settings.utilization_ttl_seconds)
        return snapshot

    async def get_utilization_summary(
        self,
        business_id: str,
        period: Period,
        timezone_id: Optional[str] = None,
    ) -> UtilizationSummary:
        """Daily units, average utilization and peak/slow hours for a period."""
        zone = await self._resolve_zone(business_id, timezone_id)
        key = self._cache_key(business_id, period, zone, "summary")

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        appointments, daily_capacity = await self._load_period(business_id, period, zone)
        summary = self._calculator.summarize(appointments, daily_capacity, period, zone)

        self._cache.set(key, summary, ttl=self._settings.utilization_ttl_seconds)
        return summary

    def invalidate(self, business_id: str, period: Optional[Period] = None) -> int:
        """
        Drop cached figures for a business, optionally only for one period.

        Returns:
            Number of removed cache entries
        """
        prefix = self._cache_prefix(business_id)
        if period is not None:
            prefix += f"{period.cache_token()}:"

        removed = self._cache.clear_by_prefix(prefix)
        logger.info("Invalidated %d cached entries for %s", removed, prefix)
        return removed

    async def _book(
        self,
        *,
        business_id: str,
        user_id: str,
        start: DateTime,
        zone: str,
        party_size: int,
        duration_minutes: Optional[int],
        description: Optional[str],
    ) -> Appointment:
        duration = (
            self._settings.default_duration_minutes
            if duration_minutes is None
            else duration_minutes
        )
        if duration <= 0:
            raise ValidationError("duration_minutes", f"must be greater than zero, got {duration}")

        appointment = Appointment(
            business_id=business_id,
            user_id=user_id,
            start=start,
            end=start.add(minutes=duration),
            party_size=party_size,
            status=AppointmentStatus.PENDING,
            user_timezone=zone,
            description=description,
        )

        created = await self._call("insert appointment", self._store.insert, appointment)
        self.invalidate(business_id)
        logger.info(
            "Booked appointment %s for business %s at %s (party of %d)",
            created.id,
            business_id,
            created.start.to_iso8601_string(),
            party_size,
        )
        return created

    async def _load_period(
        self,
        business_id: str,
        period: Period,
        zone: str,
    ) -> Tuple[List[Appointment], int]:
        start = local_to_utc(CivilTime.from_date(period.start), zone)
        end = local_to_utc(CivilTime.from_date(period.end), zone)

        appointments = await self._call(
            "fetch appointments",
            self._store.get_by_business_and_range,
            business_id,
            start,
            end,
        )
        capacity = await self._call(
            "look up business capacity",
            self._profiles.get_capacity,
            business_id,
        )
        return list(appointments), capacity

    async def _resolve_zone(self, business_id: str, timezone_id: Optional[str]) -> str:
        """
        Explicit zone if given (must be valid), else the business zone,
        else the service default.
        """
        if timezone_id is not None:
            return ensure_timezone(timezone_id)

        fallback = self._settings.default_timezone or detect_timezone()
        business_zone = await self._call(
            "look up business timezone",
            self._profiles.get_timezone,
            business_id,
        )
        if business_zone:
            return resolve_timezone(business_zone, fallback=fallback)
        return fallback

    def _cache_prefix(self, business_id: str) -> str:
        # ids are quoted so "a" never prefixes the keys of "a:b"
        return f"{self.CACHE_NAMESPACE}:{quote(business_id, safe='')}:"

    def _cache_key(self, business_id: str, period: Period, zone: str, kind: str) -> str:
        return f"{self._cache_prefix(business_id)}{period.cache_token()}:{zone}:{kind}"

    @staticmethod
    def _validate_party_size(party_size: int) -> None:
        if not isinstance(party_size, int) or isinstance(party_size, bool) or party_size <= 0:
            raise ValidationError("party_size", f"must be a positive integer, got {party_size!r}")

    @staticmethod
    async def _call(operation: str, func: Callable[..., Awaitable[R]], *args: Any) -> R:
        """Await a collaborator call, wrapping foreign failures in CollaboratorError."""
        try:
            return await func(*args)
        except SchedulingError:
            raise
        except Exception as exc:
            logger.error("%s failed: %s", operation, exc)
            raise CollaboratorError(operation, str(exc)) from exc
