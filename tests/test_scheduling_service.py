"""
Tests for the SchedulingService orchestration layer.
"""

import asyncio
from datetime import date
from typing import List, Optional

import pendulum
import pytest

from bookingcore.adapters.memory_store import InMemoryAppointmentStore, StaticBusinessDirectory
from bookingcore.domain.exceptions import (
    CollaboratorError,
    ParseError,
    StateError,
    TimezoneError,
    ValidationError,
)
from bookingcore.domain.models import Appointment, AppointmentStatus, Period
from bookingcore.domain.timezones import CivilTime
from bookingcore.services.cache import TTLCache
from bookingcore.services.scheduling import SchedulingService, SchedulingSettings

NOW = pendulum.datetime(2025, 10, 30, 12, 0, tz="UTC")
HALLOWEEN = Period.single_day(date(2025, 10, 31))


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class CountingStore(InMemoryAppointmentStore):
    """In-memory store that records range queries."""

    def __init__(self, appointments: Optional[List[Appointment]] = None):
        super().__init__(appointments)
        self.range_calls = 0

    async def get_by_business_and_range(self, business_id, start, end):
        self.range_calls += 1
        return await super().get_by_business_and_range(business_id, start, end)


class BrokenStore(InMemoryAppointmentStore):
    """Store whose every call fails like an unreachable database."""

    async def get_by_business_and_range(self, business_id, start, end):
        raise RuntimeError("connection refused")

    async def insert(self, appointment):
        raise RuntimeError("connection refused")


def _appointment(start_utc: str, party_size: int, status=AppointmentStatus.CONFIRMED) -> Appointment:
    start = pendulum.parse(start_utc)
    return Appointment(
        business_id="salon",
        user_id="guest",
        start=start,
        end=start.add(hours=1),
        party_size=party_size,
        status=status,
    )


def _build_service(
    appointments: Optional[List[Appointment]] = None,
    business_timezone: Optional[str] = "America/New_York",
    settings: Optional[SchedulingSettings] = None,
    store: Optional[InMemoryAppointmentStore] = None,
):
    store = store if store is not None else CountingStore(appointments)
    directory = StaticBusinessDirectory(
        {"salon": 50},
        {"salon": business_timezone} if business_timezone else {},
    )
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    service = SchedulingService(store=store, profiles=directory, cache=cache, settings=settings)
    return service, store, cache, clock


class TestCreateFromLocalTime:
    """Tests for booking from wall-clock fields."""

    def test_converts_to_utc(self):
        service, store, _, _ = _build_service()

        created = asyncio.run(
            service.create_from_local_time("salon", "u1", CivilTime(2025, 10, 31, 10, 0), "Asia/Kolkata", 2)
        )

        assert created.id
        assert created.start == pendulum.datetime(2025, 10, 31, 4, 30, tz="UTC")
        assert created.end == pendulum.datetime(2025, 10, 31, 5, 30, tz="UTC")
        assert created.status is AppointmentStatus.PENDING
        assert created.user_timezone == "Asia/Kolkata"
        assert created.party_size == 2
        assert store.all() == [created]

    def test_custom_duration(self):
        service, _, _, _ = _build_service()

        created = asyncio.run(
            service.create_from_local_time(
                "salon", "u1", CivilTime(2025, 10, 31, 10, 0), "UTC", 1, duration_minutes=90
            )
        )

        assert created.duration_minutes() == 90

    def test_falls_back_to_business_timezone(self):
        service, _, _, _ = _build_service()

        created = asyncio.run(
            service.create_from_local_time("salon", "u1", CivilTime(2025, 10, 31, 10, 0), None, 1)
        )

        assert created.start == pendulum.datetime(2025, 10, 31, 14, 0, tz="UTC")
        assert created.user_timezone == "America/New_York"

    def test_falls_back_to_configured_default(self):
        settings = SchedulingSettings(default_timezone="Europe/Berlin")
        service, _, _, _ = _build_service(business_timezone=None, settings=settings)

        created = asyncio.run(
            service.create_from_local_time("salon", "u1", CivilTime(2025, 10, 31, 10, 0), None, 1)
        )

        assert created.start == pendulum.datetime(2025, 10, 31, 9, 0, tz="UTC")
        assert created.user_timezone == "Europe/Berlin"

    def test_invalid_business_timezone_fails_closed(self):
        settings = SchedulingSettings(default_timezone="Asia/Tokyo")
        service, _, _, _ = _build_service(business_timezone="Moon/Tranquility", settings=settings)

        created = asyncio.run(
            service.create_from_local_time("salon", "u1", CivilTime(2025, 10, 31, 10, 0), None, 1)
        )

        assert created.user_timezone == "Asia/Tokyo"

    def test_explicit_invalid_timezone_raises(self):
        service, store, _, _ = _build_service()

        with pytest.raises(TimezoneError):
            asyncio.run(
                service.create_from_local_time("salon", "u1", CivilTime(2025, 10, 31, 10, 0), "Not/AZone", 1)
            )

        assert store.all() == []

    @pytest.mark.parametrize("party_size", [0, -2, True, 2.5, "3"])
    def test_invalid_party_size(self, party_size):
        service, store, _, _ = _build_service()

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(
                service.create_from_local_time(
                    "salon", "u1", CivilTime(2025, 10, 31, 10, 0), "UTC", party_size
                )
            )

        assert exc_info.value.field == "party_size"
        assert store.all() == []

    def test_invalid_duration(self):
        service, _, _, _ = _build_service()

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(
                service.create_from_local_time(
                    "salon", "u1", CivilTime(2025, 10, 31, 10, 0), "UTC", 1, duration_minutes=0
                )
            )

        assert exc_info.value.field == "duration_minutes"


class TestCreateFromNaturalLanguage:
    """Tests for booking from free text."""

    def test_tomorrow_morning(self):
        service, _, _, _ = _build_service()

        created = asyncio.run(
            service.create_from_natural_language(
                "salon", "u1", "tomorrow 10 AM", "Asia/Kolkata", 4, now=NOW
            )
        )

        assert created.start == pendulum.datetime(2025, 10, 31, 4, 30, tz="UTC")

    def test_parse_error_stores_nothing(self):
        service, store, _, _ = _build_service()

        with pytest.raises(ParseError):
            asyncio.run(
                service.create_from_natural_language("salon", "u1", "today 25:00", "UTC", 1, now=NOW)
            )

        assert store.all() == []


class TestBookFromVoice:
    """Tests for the caller-facing booking result."""

    def test_success_message_in_local_time(self):
        service, _, _, _ = _build_service()

        result = asyncio.run(
            service.book_from_voice("salon", "u1", "tomorrow 10 AM", "Asia/Kolkata", now=NOW)
        )

        assert result.success
        assert result.message == "Appointment booked successfully on Friday, October 31, 2025 at 10:00 AM"
        assert result.appointment.start == pendulum.datetime(2025, 10, 31, 4, 30, tz="UTC")
        assert result.error is None

    def test_uses_business_timezone_by_default(self):
        service, _, _, _ = _build_service()

        result = asyncio.run(service.book_from_voice("salon", "u1", "tomorrow at 3", now=NOW))

        assert result.appointment.start == pendulum.datetime(2025, 10, 31, 19, 0, tz="UTC")

    def test_failure_is_reported_not_raised(self):
        service, store, _, _ = _build_service()

        result = asyncio.run(service.book_from_voice("salon", "u1", "   ", "UTC", now=NOW))

        assert not result.success
        assert isinstance(result.error, ParseError)
        assert "text" in result.message
        assert store.all() == []

    def test_invalid_timezone_is_reported(self):
        service, _, _, _ = _build_service()

        result = asyncio.run(service.book_from_voice("salon", "u1", "tomorrow 10 AM", "Nowhere/Land", now=NOW))

        assert not result.success
        assert isinstance(result.error, TimezoneError)


class TestUtilization:
    """Tests for cached utilization reads."""

    def _seeded(self):
        return _build_service(
            [
                _appointment("2025-10-31T13:00:00Z", 15),
                _appointment("2025-11-01T00:00:00Z", 10),
                _appointment("2025-10-31T16:00:00Z", 8, status=AppointmentStatus.CANCELLED),
            ]
        )

    def test_snapshot_in_business_timezone(self):
        service, _, _, _ = self._seeded()

        snapshot = asyncio.run(service.get_utilization("salon", HALLOWEEN))

        assert snapshot.booked_units == 25
        assert snapshot.total_capacity_units == 50
        assert snapshot.utilization_percentage == 50.0

    def test_week_capacity_scales_with_days(self):
        service, _, _, _ = self._seeded()

        snapshot = asyncio.run(service.get_utilization("salon", Period.week_of(date(2025, 10, 27))))

        assert snapshot.total_capacity_units == 350
        assert snapshot.booked_units == 25

    def test_second_read_is_served_from_cache(self):
        service, store, cache, _ = self._seeded()

        first = asyncio.run(service.get_utilization("salon", HALLOWEEN))
        second = asyncio.run(service.get_utilization("salon", HALLOWEEN))

        assert first == second
        assert store.range_calls == 1
        assert cache.has("capacity:salon:2025-10-31:2025-11-01:America/New_York:snapshot")

    def test_cache_expires_after_ttl(self):
        service, store, _, clock = self._seeded()

        asyncio.run(service.get_utilization("salon", HALLOWEEN))
        clock.now += 121
        asyncio.run(service.get_utilization("salon", HALLOWEEN))

        assert store.range_calls == 2

    def test_booking_invalidates_cache(self):
        service, store, _, _ = self._seeded()
        asyncio.run(service.get_utilization("salon", HALLOWEEN))

        asyncio.run(
            service.create_from_local_time("salon", "u2", CivilTime(2025, 10, 31, 12, 0), None, 5)
        )
        snapshot = asyncio.run(service.get_utilization("salon", HALLOWEEN))

        assert store.range_calls == 2
        assert snapshot.booked_units == 30

    def test_summary(self):
        service, _, _, _ = self._seeded()

        summary = asyncio.run(service.get_utilization_summary("salon", HALLOWEEN))

        assert summary.total_appointments == 2
        assert summary.daily_units == {"2025-10-31": 25}
        assert summary.peak_hours == ["09:00", "20:00"]

    def test_invalidate_single_period(self):
        service, _, cache, _ = self._seeded()
        next_day = Period.single_day(date(2025, 11, 1))
        asyncio.run(service.get_utilization("salon", HALLOWEEN))
        asyncio.run(service.get_utilization_summary("salon", HALLOWEEN))
        asyncio.run(service.get_utilization("salon", next_day))

        removed = service.invalidate("salon", HALLOWEEN)

        assert removed == 2
        assert len(cache) == 1

    def test_store_failure_is_wrapped(self):
        service, _, _, _ = _build_service(store=BrokenStore())

        with pytest.raises(CollaboratorError) as exc_info:
            asyncio.run(service.get_utilization("salon", HALLOWEEN))

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.operation == "fetch appointments"


class TestUpdateStatus:
    """Tests for lifecycle transitions through the service."""

    def _booked(self):
        service, store, cache, clock = _build_service()
        created = asyncio.run(
            service.create_from_local_time("salon", "u1", CivilTime(2025, 10, 31, 10, 0), None, 3)
        )
        return service, created, cache

    def test_confirm_then_complete(self):
        service, created, _ = self._booked()

        confirmed = asyncio.run(service.update_status(created.id, "confirmed"))
        completed = asyncio.run(service.update_status(created.id, AppointmentStatus.COMPLETED))

        assert confirmed.status is AppointmentStatus.CONFIRMED
        assert completed.status is AppointmentStatus.COMPLETED

    def test_completed_cannot_reopen(self):
        service, created, _ = self._booked()
        asyncio.run(service.update_status(created.id, "confirmed"))
        asyncio.run(service.update_status(created.id, "completed"))

        with pytest.raises(StateError):
            asyncio.run(service.update_status(created.id, "pending"))

    def test_cancellation_frees_capacity(self):
        service, created, cache = self._booked()
        before = asyncio.run(service.get_utilization("salon", HALLOWEEN))

        asyncio.run(service.update_status(created.id, "cancelled"))
        after = asyncio.run(service.get_utilization("salon", HALLOWEEN))

        assert before.booked_units == 3
        assert after.booked_units == 0

    def test_unknown_appointment(self):
        service, _, _ = self._booked()

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(service.update_status("missing", "confirmed"))

        assert exc_info.value.field == "appointment_id"

    def test_unknown_status(self):
        service, created, _ = self._booked()

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(service.update_status(created.id, "archived"))

        assert exc_info.value.field == "status"

    def test_insert_failure_is_wrapped(self):
        service, _, _, _ = _build_service(store=BrokenStore())

        with pytest.raises(CollaboratorError) as exc_info:
            asyncio.run(
                service.create_from_local_time("salon", "u1", CivilTime(2025, 10, 31, 10, 0), "UTC", 1)
            )

        assert isinstance(exc_info.value.__cause__, RuntimeError)


class TestCacheKeys:
    """Tests for per-business cache isolation."""

    def test_invalidation_does_not_touch_ids_sharing_a_prefix(self):
        directory = StaticBusinessDirectory({"a": 10, "a:b": 10}, {"a": "UTC", "a:b": "UTC"})
        cache = TTLCache(clock=FakeClock())
        service = SchedulingService(store=CountingStore(), profiles=directory, cache=cache)
        asyncio.run(service.get_utilization("a", HALLOWEEN))
        asyncio.run(service.get_utilization("a:b", HALLOWEEN))

        removed = service.invalidate("a")

        assert removed == 1
        assert len(cache) == 1
