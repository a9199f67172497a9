"""
In-process TTL cache for derived read-side aggregates.

Entries expire lazily on lookup; there is no background sweep. The cache is
owned by whoever constructs it (one per process or worker) and is never
shared between processes, which is fine because it only memoizes values
that can always be recomputed from the store.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0


@dataclass
class CacheEntry(Generic[T]):
    """
    A cached value with its timing metadata.

    Invariant: at creation ``expiry == created_at + original_ttl``. A refresh
    replaces ``value`` and moves ``expiry`` to ``now + original_ttl`` while
    ``created_at`` and ``original_ttl`` stay untouched.
    """
    value: T
    created_at: float
    expiry: float
    original_ttl: float

    def is_expired(self, now: float) -> bool:
        return now > self.expiry


class TTLCache(Generic[T]):
    """
    Keyed store with per-entry expiry.

    Args:
        default_ttl: TTL in seconds used when ``set`` is called without one
        clock: Monotonic time source in seconds; injectable for tests
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._clock = clock
        self._default_ttl = self._validate_ttl(default_ttl)

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @default_ttl.setter
    def default_ttl(self, ttl: float) -> None:
        self._default_ttl = self._validate_ttl(ttl)
        logger.debug("Default TTL set to %.3fs", ttl)

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``, replacing any existing entry."""
        now = self._clock()
        actual_ttl = self._default_ttl if ttl is None else self._validate_ttl(ttl)

        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            expiry=now + actual_ttl,
            original_ttl=actual_ttl,
        )
        logger.debug("SET %s (ttl=%.3fs)", key, actual_ttl)

    def get(self, key: str) -> Optional[T]:
        """Return the live value for ``key``, or None if absent or expired."""
        entry = self._live_entry(key)
        return entry.value if entry is not None else None

    def get_with_metadata(self, key: str) -> Optional[CacheEntry[T]]:
        """Return the live entry including its timing metadata."""
        return self._live_entry(key)

    def has(self, key: str) -> bool:
        """Same expiry check as ``get`` without returning the value."""
        return self._live_entry(key) is not None

    def refresh(self, key: str, new_value: T) -> bool:
        """
        Replace the value of a live entry and renew it for its original TTL.

        The new expiry is ``now + original_ttl``, anchored to the TTL the entry
        was created with rather than stacked onto the old expiry.

        Returns:
            True if refreshed; False if the key was absent or already expired
        """
        entry = self._live_entry(key)
        if entry is None:
            logger.debug("REFRESH %s - not found or expired", key)
            return False

        now = self._clock()
        self._entries[key] = CacheEntry(
            value=new_value,
            created_at=entry.created_at,
            expiry=now + entry.original_ttl,
            original_ttl=entry.original_ttl,
        )
        logger.debug("REFRESH %s (renewed for %.3fs)", key, entry.original_ttl)
        return True

    def clear(self, key: str) -> None:
        """Remove a single key."""
        self._entries.pop(key, None)
        logger.debug("CLEAR %s", key)

    def clear_by_prefix(self, prefix: str) -> int:
        """
        Remove every key starting with ``prefix`` (linear scan).

        Returns:
            Number of removed entries
        """
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        logger.debug("CLEAR_BY_PREFIX %s removed %d entries", prefix, len(doomed))
        return len(doomed)

    def clear_all(self) -> None:
        """Drop every entry; also the reset hook for tests."""
        logger.debug("CLEAR_ALL removing %d entries", len(self._entries))
        self._entries.clear()

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""
        return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def _live_entry(self, key: str) -> Optional[CacheEntry[T]]:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("MISS %s", key)
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("EXPIRED %s", key)
            return None

        logger.debug("HIT %s", key)
        return entry

    @staticmethod
    def _validate_ttl(ttl: float) -> float:
        if ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl}")
        return float(ttl)
