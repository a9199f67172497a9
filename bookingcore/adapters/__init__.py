"""
Adapters layer - Stand-ins for the external store and business profiles.
"""

from .memory_store import InMemoryAppointmentStore, JsonAppointmentStore, StaticBusinessDirectory

__all__ = ["InMemoryAppointmentStore", "JsonAppointmentStore", "StaticBusinessDirectory"]
