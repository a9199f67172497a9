"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .exceptions import (
    CollaboratorError,
    ParseError,
    SchedulingError,
    StateError,
    TimezoneError,
    ValidationError,
)
from .lifecycle import can_transition, ensure_transition
from .models import Appointment, AppointmentStatus, CapacitySnapshot, Period, UtilizationSummary
from .nl_parser import parse_natural_time
from .timezones import CivilTime, local_to_utc, utc_to_local
from .utilization import UtilizationBand, UtilizationCalculator, utilization_band

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "CapacitySnapshot",
    "CivilTime",
    "CollaboratorError",
    "ParseError",
    "Period",
    "SchedulingError",
    "StateError",
    "TimezoneError",
    "UtilizationBand",
    "UtilizationCalculator",
    "UtilizationSummary",
    "ValidationError",
    "can_transition",
    "ensure_transition",
    "local_to_utc",
    "parse_natural_time",
    "utc_to_local",
    "utilization_band",
]
