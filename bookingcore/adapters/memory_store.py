"""
In-process appointment store and business directory.

Stand-ins for the hosted database: the in-memory store backs tests and the
JSON-backed variant lets the CLI keep bookings between runs.
"""

import json
import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from pendulum import DateTime

from ..domain.models import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)


class InMemoryAppointmentStore:
    """
    Appointment store kept in a dict, keyed by appointment id.

    Implements ``AppointmentStoreProtocol``.
    """

    def __init__(self, appointments: Optional[List[Appointment]] = None):
        self._appointments: Dict[str, Appointment] = {}
        for appointment in appointments or []:
            stored = appointment if appointment.id else replace(appointment, id=self._new_id())
            self._appointments[stored.id] = stored

    async def get_by_business_and_range(
        self,
        business_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        matches = [
            appointment
            for appointment in self._appointments.values()
            if appointment.business_id == business_id and start <= appointment.start < end
        ]
        return sorted(matches, key=lambda appointment: appointment.start)

    async def insert(self, appointment: Appointment) -> Appointment:
        stored = replace(appointment, id=appointment.id or self._new_id())
        self._appointments[stored.id] = stored
        self._persist()
        return stored

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        existing = self._appointments.get(appointment_id)
        if existing is None:
            raise KeyError(f"Appointment {appointment_id} not found")

        updated = replace(existing, status=status)
        self._appointments[appointment_id] = updated
        self._persist()
        return updated

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    def all(self) -> List[Appointment]:
        """Every stored appointment, ordered by start."""
        return sorted(self._appointments.values(), key=lambda appointment: appointment.start)

    def _persist(self) -> None:
        """Hook for subclasses that write through to durable storage."""

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())


class JsonAppointmentStore(InMemoryAppointmentStore):
    """
    In-memory store that loads from and writes back to a JSON file.

    File format: a list of objects with ``start``/``end`` as ISO 8601 UTC
    strings and the remaining appointment fields as plain values.
    """

    def __init__(self, data_file: Path):
        self.data_file = data_file
        super().__init__(self._load())

    def _load(self) -> List[Appointment]:
        """
        Read the data file; a missing file is an empty store.

        Raises:
            ValueError: If the file is not JSON or its root is not a list
        """
        if not self.data_file.exists():
            return []

        with open(self.data_file, "r", encoding="utf-8") as f:
            try:
                records = json.load(f)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {self.data_file}: {exc}") from exc

        if not isinstance(records, list):
            raise ValueError(f"Expected a list of appointments in {self.data_file}")

        appointments: List[Appointment] = []
        for record in records:
            if not isinstance(record, dict):
                logger.warning("Skipping non-object appointment record %r", record)
                continue
            try:
                appointments.append(appointment_from_dict(record))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping invalid appointment record %r: %s", record, e)
        return appointments

    def _persist(self) -> None:
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.data_file, "w", encoding="utf-8") as f:
            json.dump([appointment_to_dict(a) for a in self.all()], f, indent=2)


class StaticBusinessDirectory:
    """
    Business profile lookup backed by a fixed mapping.

    Implements ``BusinessProfileProtocol``; unknown businesses have capacity
    0 (unknown) and no timezone.
    """

    def __init__(
        self,
        capacities: Dict[str, int],
        timezones: Optional[Dict[str, str]] = None,
    ):
        self._capacities = dict(capacities)
        self._timezones = dict(timezones or {})

    async def get_capacity(self, business_id: str) -> int:
        return self._capacities.get(business_id, 0)

    async def get_timezone(self, business_id: str) -> Optional[str]:
        return self._timezones.get(business_id)


def appointment_to_dict(appointment: Appointment) -> Dict[str, Any]:
    """Serialize an appointment to JSON-friendly values."""
    return {
        "id": appointment.id,
        "business_id": appointment.business_id,
        "user_id": appointment.user_id,
        "start": appointment.start.to_iso8601_string(),
        "end": appointment.end.to_iso8601_string(),
        "party_size": appointment.party_size,
        "status": appointment.status.value,
        "user_timezone": appointment.user_timezone,
        "description": appointment.description,
    }


def appointment_from_dict(record: Dict[str, Any]) -> Appointment:
    """Build an appointment from a stored record."""
    return Appointment(
        id=record.get("id"),
        business_id=record["business_id"],
        user_id=record["user_id"],
        start=record["start"],
        end=record["end"],
        party_size=record.get("party_size", 1),
        status=record.get("status", AppointmentStatus.PENDING.value),
        user_timezone=record.get("user_timezone"),
        description=record.get("description"),
    )
