"""
Timezone conversion helpers.

Appointments are always stored as UTC instants. These functions translate
between UTC and the wall-clock time of a named IANA zone, both for booking
input and for display.

DST policy for ``local_to_utc``: wall-clock fields are resolved with
``fold=0`` (PEP 495). A repeated wall-clock time (fall back) resolves to its
earlier occurrence; a skipped one (spring forward) is read with the offset in
force before the transition, so 02:30 inside a 02:00-03:00 gap becomes 03:30
local time.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone as dt_timezone, tzinfo
from typing import List, Optional, Union

import pendulum
from pendulum import DateTime

from .exceptions import SchedulingError, TimezoneError, ValidationError

logger = logging.getLogger(__name__)

InstantLike = Union[DateTime, datetime, str]

DATETIME_PRESETS = {
    "short": "MMM D, YYYY, h:mm A",
    "medium": "MMMM D, YYYY h:mm A",
    "long": "dddd, MMMM D, YYYY [at] h:mm A",
}

DATE_PRESETS = {
    "short": "M/D/YYYY",
    "medium": "MMM D, YYYY",
    "long": "MMMM D, YYYY",
}

FALLBACK_TIMEZONE = "UTC"


@dataclass(frozen=True)
class CivilTime:
    """
    Wall-clock date and time, meaningful only together with a timezone.

    Never persisted; exists while converting input or rendering output.
    """
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0

    def __post_init__(self):
        try:
            date(self.year, self.month, self.day)
        except (TypeError, ValueError) as exc:
            raise ValidationError("date", str(exc)) from exc
        if not 0 <= self.hour <= 23:
            raise ValidationError("hour", f"must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValidationError("minute", f"must be between 0 and 59, got {self.minute}")

    @classmethod
    def from_date(cls, day: date, hour: int = 0, minute: int = 0) -> "CivilTime":
        """Build a civil time from a calendar date plus hour and minute."""
        return cls(day.year, day.month, day.day, hour, minute)

    def date(self) -> date:
        """Return the calendar date part."""
        return date(self.year, self.month, self.day)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d} {self.hour:02d}:{self.minute:02d}"


def _tzinfo(timezone_id: str) -> tzinfo:
    """Look up a zone, mapping every lookup failure to TimezoneError."""
    if not isinstance(timezone_id, str) or not timezone_id.strip():
        raise TimezoneError(timezone_id)
    try:
        return pendulum.timezone(timezone_id)
    except (ValueError, KeyError, OSError) as exc:
        raise TimezoneError(timezone_id) from exc


def ensure_timezone(timezone_id: str) -> str:
    """
    Validate an IANA timezone identifier.

    Returns:
        The identifier, unchanged

    Raises:
        TimezoneError: If the identifier is not a recognized zone
    """
    _tzinfo(timezone_id)
    return timezone_id


def is_valid_timezone(timezone_id: object) -> bool:
    """Check whether a value names a recognized IANA zone."""
    try:
        _tzinfo(timezone_id)  # type: ignore[arg-type]
    except TimezoneError:
        return False
    return True


def resolve_timezone(timezone_id: Optional[str], fallback: str = FALLBACK_TIMEZONE) -> str:
    """
    Return ``timezone_id`` if it is valid, otherwise ``fallback``.

    Invalid or missing values fail closed with a warning instead of leaking
    into stored data.
    """
    if timezone_id is not None and is_valid_timezone(timezone_id):
        return timezone_id
    logger.warning("Unrecognized timezone %r, falling back to %s", timezone_id, fallback)
    return fallback


def as_instant(value: InstantLike) -> DateTime:
    """
    Normalize a datetime-like value to a UTC pendulum DateTime.

    Args:
        value: pendulum DateTime, timezone-aware datetime, or ISO 8601 string
            (strings without an offset are read as UTC)

    Raises:
        ValidationError: If the value is naive or cannot be parsed
    """
    if isinstance(value, str):
        try:
            parsed = pendulum.parse(value, tz="UTC")
        except ValueError as exc:
            raise ValidationError("instant", f"could not parse {value!r}") from exc
        if not isinstance(parsed, DateTime):
            raise ValidationError("instant", f"{value!r} is not a date-time")
        return parsed.in_timezone("UTC")

    if not isinstance(value, datetime):
        raise ValidationError("instant", f"expected a datetime, got {type(value).__name__}")

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValidationError("instant", "naive datetimes are not allowed; attach a timezone")

    if isinstance(value, DateTime):
        return value.in_timezone("UTC")

    return pendulum.instance(value.astimezone(dt_timezone.utc)).in_timezone("UTC")


def _localize(instant: InstantLike, timezone_id: str) -> DateTime:
    zone = _tzinfo(timezone_id)
    return as_instant(instant).in_timezone(zone)


def local_to_utc(civil_time: CivilTime, timezone_id: str) -> DateTime:
    """
    Interpret wall-clock fields in ``timezone_id`` and return the UTC instant.

    Example:
        10:00 on 2025-10-31 in Asia/Kolkata -> 2025-10-31T04:30:00+00:00
    """
    zone = _tzinfo(timezone_id)
    wall_clock = datetime(
        civil_time.year,
        civil_time.month,
        civil_time.day,
        civil_time.hour,
        civil_time.minute,
        tzinfo=zone,
        fold=0,
    )
    return as_instant(wall_clock)


def utc_to_local(instant: InstantLike, timezone_id: str) -> CivilTime:
    """Render an instant as wall-clock fields in ``timezone_id``."""
    local = _localize(instant, timezone_id)
    return CivilTime(local.year, local.month, local.day, local.hour, local.minute)


def format_in_zone(instant: InstantLike, timezone_id: str, pattern: str = "medium") -> str:
    """
    Format an instant as wall-clock text in a timezone.

    Args:
        instant: The instant to render
        timezone_id: IANA timezone identifier
        pattern: 'short', 'medium', 'long' or a pendulum format string

    Returns:
        Formatted text, e.g. "Oct 31, 2025, 10:00 AM" for 'short'
    """
    fmt = DATETIME_PRESETS.get(pattern, pattern)
    return _localize(instant, timezone_id).format(fmt, locale="en")


def format_time_only(instant: InstantLike, timezone_id: str, use_24_hour: bool = False) -> str:
    """Format only the time of day, e.g. "10:00 AM" or "14:00"."""
    fmt = "HH:mm" if use_24_hour else "h:mm A"
    return _localize(instant, timezone_id).format(fmt, locale="en")


def format_date_only(instant: InstantLike, timezone_id: str, style: str = "medium") -> str:
    """Format only the calendar date using a 'short', 'medium' or 'long' preset."""
    fmt = DATE_PRESETS.get(style, DATE_PRESETS["medium"])
    return _localize(instant, timezone_id).format(fmt, locale="en")


def detect_timezone() -> str:
    """
    Return the local environment's IANA zone, or "UTC" if it cannot be read.

    Never raises.
    """
    try:
        name = getattr(pendulum.local_timezone(), "name", None)
    except Exception as exc:  # pragma: no cover - platform dependent
        logger.warning("Failed to detect local timezone, defaulting to UTC: %s", exc)
        return FALLBACK_TIMEZONE

    if not name or not is_valid_timezone(name):
        logger.warning("Local timezone %r is not an IANA zone, defaulting to UTC", name)
        return FALLBACK_TIMEZONE

    return name


def timezone_abbreviation(timezone_id: str, instant: Optional[InstantLike] = None) -> str:
    """Short zone label such as "IST" or "PST"; empty string on failure."""
    try:
        local = _localize(instant if instant is not None else pendulum.now("UTC"), timezone_id)
    except SchedulingError as exc:
        logger.warning("Failed to get timezone abbreviation for %r: %s", timezone_id, exc)
        return ""
    return local.tzname() or ""


def timezone_offset(timezone_id: str, instant: Optional[InstantLike] = None) -> str:
    """UTC offset of a zone at an instant (default now), e.g. "+05:30"."""
    local = _localize(instant if instant is not None else pendulum.now("UTC"), timezone_id)
    return local.format("Z")


def is_in_past(instant: InstantLike, timezone_id: str, now: Optional[InstantLike] = None) -> bool:
    """
    Check whether an instant lies before "now", comparing wall-clock
    renderings of both in the given zone.
    """
    current = now if now is not None else pendulum.now("UTC")
    return _localize(instant, timezone_id).naive() < _localize(current, timezone_id).naive()


@dataclass(frozen=True)
class TimezoneOption:
    """A selectable zone for business profile forms and the CLI."""
    value: str
    label: str


TIMEZONE_OPTIONS: List[TimezoneOption] = [
    # US
    TimezoneOption("America/New_York", "Eastern Time (US)"),
    TimezoneOption("America/Chicago", "Central Time (US)"),
    TimezoneOption("America/Denver", "Mountain Time (US)"),
    TimezoneOption("America/Phoenix", "Arizona (No DST)"),
    TimezoneOption("America/Los_Angeles", "Pacific Time (US)"),
    TimezoneOption("America/Anchorage", "Alaska Time"),
    TimezoneOption("Pacific/Honolulu", "Hawaii Time"),
    # Canada
    TimezoneOption("America/Toronto", "Eastern Time (Canada)"),
    TimezoneOption("America/Vancouver", "Pacific Time (Canada)"),
    # Europe
    TimezoneOption("Europe/London", "London (GMT/BST)"),
    TimezoneOption("Europe/Paris", "Paris (CET/CEST)"),
    TimezoneOption("Europe/Berlin", "Berlin (CET/CEST)"),
    TimezoneOption("Europe/Rome", "Rome (CET/CEST)"),
    TimezoneOption("Europe/Madrid", "Madrid (CET/CEST)"),
    TimezoneOption("Europe/Moscow", "Moscow (MSK)"),
    # Asia
    TimezoneOption("Asia/Dubai", "Dubai (GST)"),
    TimezoneOption("Asia/Kolkata", "India (IST)"),
    TimezoneOption("Asia/Singapore", "Singapore (SGT)"),
    TimezoneOption("Asia/Hong_Kong", "Hong Kong (HKT)"),
    TimezoneOption("Asia/Tokyo", "Tokyo (JST)"),
    TimezoneOption("Asia/Seoul", "Seoul (KST)"),
    TimezoneOption("Asia/Shanghai", "Shanghai (CST)"),
    # Australia
    TimezoneOption("Australia/Sydney", "Sydney (AEDT/AEST)"),
    TimezoneOption("Australia/Melbourne", "Melbourne (AEDT/AEST)"),
    TimezoneOption("Australia/Perth", "Perth (AWST)"),
    # Latin America
    TimezoneOption("America/Sao_Paulo", "São Paulo (BRT)"),
    TimezoneOption("America/Argentina/Buenos_Aires", "Buenos Aires (ART)"),
    TimezoneOption("America/Mexico_City", "Mexico City (CST)"),
    # Africa
    TimezoneOption("Africa/Cairo", "Cairo (EET)"),
    TimezoneOption("Africa/Johannesburg", "Johannesburg (SAST)"),
    TimezoneOption("Africa/Lagos", "Lagos (WAT)"),
    # Middle East
    TimezoneOption("Asia/Jerusalem", "Jerusalem (IST)"),
    TimezoneOption("Asia/Riyadh", "Riyadh (AST)"),
    # Pacific
    TimezoneOption("Pacific/Auckland", "Auckland (NZDT/NZST)"),
    TimezoneOption("Pacific/Fiji", "Fiji (FJT)"),
]


def get_timezone_option(timezone_id: str) -> TimezoneOption | None:
    """Find a catalogue entry by its IANA identifier."""
    for option in TIMEZONE_OPTIONS:
        if option.value == timezone_id:
            return option
    return None
