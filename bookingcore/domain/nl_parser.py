"""
Natural-language time parsing for voice and chat booking requests.

Turns phrases like "tomorrow 10 AM", "today 15:00" or "12/25 at 2:30 PM"
into UTC instants. The rules run in a fixed order and each one only
overrides the fields it recognizes:

1. Relative day: "tomorrow" -> today + 1, "today" -> today, else today.
   "Today" is the calendar date in the caller's zone.
2. Explicit date: ``MM/DD`` or ``MM-DD`` replaces month and day; the year
   stays the caller's current year. The token stays in the text, so the
   time rules below may still read its month as an hour ("12/25 at 3" is
   12:00).
3. Time of day, first match wins:
   a. 12-hour ``H[:MM] am|pm`` (12 pm -> 12, 12 am -> 0, other pm +12)
   b. 24-hour ``HH:MM``
   c. bare 1-2 digit number; below 7 without "am" it is read as PM
      (business hours heuristic, "3" -> 15:00, "7" -> 07:00)
   No token at all leaves the time at midnight.
4. Date and time are combined and converted with ``local_to_utc``.
"""

import re
from datetime import date, timedelta
from typing import Optional, Tuple

import pendulum
from pendulum import DateTime

from .exceptions import ParseError, ValidationError
from .timezones import CivilTime, InstantLike, as_instant, ensure_timezone, local_to_utc

# Bare numbers below this hour are assumed to be PM.
BUSINESS_HOURS_PM_CUTOFF = 7

_DATE_PATTERN = re.compile(r"(\d{1,2})[/\-](\d{1,2})")
_TIME_12H_PATTERN = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b")
_TIME_24H_PATTERN = re.compile(r"(\d{1,2}):(\d{2})")
_BARE_NUMBER_PATTERN = re.compile(r"\b(\d{1,2})\b")
_AM_WORD_PATTERN = re.compile(r"\bam\b")


def parse_natural_time(
    text: str,
    timezone_id: str,
    now: Optional[InstantLike] = None,
) -> DateTime:
    """
    Parse a natural-language time expression into a UTC instant.

    Args:
        text: Free text such as "tomorrow 10 AM"
        timezone_id: IANA zone the caller speaks in
        now: Reference instant; defaults to the current time

    Returns:
        UTC pendulum DateTime

    Raises:
        ParseError: If the text is blank or a recognized token is out of range
        TimezoneError: If the timezone is not recognized
    """
    ensure_timezone(timezone_id)

    if not isinstance(text, str) or not text.strip():
        raise ParseError(str(text), "text", "expression is empty")

    lowered = text.lower().strip()
    reference = as_instant(now) if now is not None else pendulum.now("UTC")
    today = reference.in_timezone(timezone_id).date()

    target_date = _resolve_relative_day(lowered, today)

    explicit_date = _extract_explicit_date(text, lowered, today.year)
    if explicit_date is not None:
        target_date = explicit_date

    hour, minute = _extract_time(text, lowered)

    civil = CivilTime(target_date.year, target_date.month, target_date.day, hour, minute)
    return local_to_utc(civil, timezone_id)


def _resolve_relative_day(lowered: str, today: date) -> date:
    if "tomorrow" in lowered:
        return today + timedelta(days=1)
    # "today" and no relative word at all both mean today
    return today


def _extract_explicit_date(text: str, lowered: str, year: int) -> Optional[date]:
    """Find a ``MM/DD`` token and turn it into a date in ``year``."""
    match = _DATE_PATTERN.search(lowered)
    if not match:
        return None

    month = int(match.group(1))
    day = int(match.group(2))
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise ParseError(text, "date", f"{match.group(0)!r} is not a valid month/day") from exc


def _extract_time(text: str, lowered: str) -> Tuple[int, int]:
    match = _TIME_12H_PATTERN.search(lowered)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.group(2) else 0
        if not 1 <= hour <= 12:
            raise ParseError(text, "time", f"{match.group(0)!r} is not a valid 12-hour time")
        is_pm = match.group(3) == "pm"
        if is_pm and hour != 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0
        return _checked(text, hour, minute, match.group(0))

    match = _TIME_24H_PATTERN.search(lowered)
    if match:
        return _checked(text, int(match.group(1)), int(match.group(2)), match.group(0))

    match = _BARE_NUMBER_PATTERN.search(lowered)
    if match:
        hour = int(match.group(1))
        if hour < BUSINESS_HOURS_PM_CUTOFF and not _AM_WORD_PATTERN.search(lowered):
            hour += 12
        return _checked(text, hour, 0, match.group(0))

    return 0, 0


def _checked(text: str, hour: int, minute: int, token: str) -> Tuple[int, int]:
    try:
        CivilTime(2000, 1, 1, hour, minute)
    except ValidationError as exc:
        raise ParseError(text, "time", f"{token!r} is out of range") from exc
    return hour, minute
