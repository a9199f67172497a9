"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .cache import CacheEntry, TTLCache
from .scheduling import (
    AppointmentStoreProtocol,
    BookingResult,
    BusinessProfileProtocol,
    SchedulingService,
    SchedulingSettings,
)

__all__ = [
    "AppointmentStoreProtocol",
    "BookingResult",
    "BusinessProfileProtocol",
    "CacheEntry",
    "SchedulingService",
    "SchedulingSettings",
    "TTLCache",
]
