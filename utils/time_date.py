from datetime import date as dt_date, datetime, time, timedelta
from typing import Any, Optional
from exceptions.custom_errors import ParseError
from utils.constants import MINUTES_PER_DAY, WEEKDAY_NAMES

"""
Local wall-clock date/time helpers.

Boundary strings are `YYYY-MM-DD` (dates), `HH:MM` (24h times) and
`YYYY-MM-DDTHH:MM[:SS]` (date-times). No time zones are involved anywhere;
every value is a naive local date or time.
"""

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMATS = {5: "%H:%M", 8: "%H:%M:%S"}
DATETIME_SEPARATORS = ("T", " ")

_WEEKDAY_ALIASES = {
    "monday": "mon",
    "tuesday": "tue",
    "wednesday": "wed",
    "thursday": "thu",
    "friday": "fri",
    "saturday": "sat",
    "sunday": "sun",
}


def is_valid_date(value: Any) -> bool:
    """True when `value` is a well-formed `YYYY-MM-DD` string naming a real calendar day."""
    try:
        parse_local_date(value)
    except ParseError:
        return False
    return True


def parse_local_date(value: Any) -> dt_date:
    """Parse a `YYYY-MM-DD` string (or pass through a date) into a `datetime.date`."""
    if isinstance(value, datetime):
        raise ParseError(f"Expected a date, got a date-time: {value!r}")
    if isinstance(value, dt_date):
        return value
    if not isinstance(value, str):
        raise ParseError(f"Unsupported date type: {type(value).__name__}")
    text = value.strip()
    # strptime tolerates missing zero padding
    if len(text) != 10:
        raise ParseError(f"Could not parse date string '{value}'")
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as e:
        raise ParseError(f"Invalid calendar date '{value}': {e}") from e


def is_valid_time(value: Any) -> bool:
    """True when `value` is a well-formed 24h `HH:MM` string."""
    try:
        parse_local_time(value)
    except ParseError:
        return False
    return True


def parse_local_time(value: Any) -> time:
    """Parse an `HH:MM` (seconds optional) string into a `datetime.time`."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ParseError(f"Unsupported time type: {type(value).__name__}")
    text = value.strip()
    fmt = TIME_FORMATS.get(len(text))
    if fmt is None:
        raise ParseError(f"Could not parse time string '{value}'")
    try:
        return datetime.strptime(text, fmt).time()
    except ValueError as e:
        raise ParseError(f"Time out of range '{value}': {e}") from e


def parse_local_datetime(value: Any) -> datetime:
    """Parse a local `YYYY-MM-DDTHH:MM[:SS]` string into a naive `datetime`."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            raise ParseError(f"Expected a local date-time without zone: {value!r}")
        return value
    if not isinstance(value, str):
        raise ParseError(f"Unsupported date-time type: {type(value).__name__}")
    text = value.strip()
    if len(text) < 11 or text[10] not in DATETIME_SEPARATORS:
        raise ParseError(f"Could not parse date-time string '{value}'")
    return datetime.combine(parse_local_date(text[:10]), parse_local_time(text[11:]))


def format_date(value: dt_date) -> str:
    return value.strftime(DATE_FORMAT)


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def format_datetime(value: datetime) -> str:
    """Format as `YYYY-MM-DDTHH:MM`; lexical order matches chronological order."""
    return value.strftime("%Y-%m-%dT%H:%M")


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minute(minute: int) -> time:
    if not 0 <= minute < MINUTES_PER_DAY:
        raise ValueError(f"Minute of day out of range: {minute}")
    return time(minute // 60, minute % 60)


def add_days(value: dt_date, days: int) -> dt_date:
    return value + timedelta(days=days)


def days_between(start: dt_date, end: dt_date) -> int:
    """Whole days from `start` to `end` (negative when `end` is earlier)."""
    return (end - start).days


def combine(day: dt_date, minute: Optional[int]) -> Optional[datetime]:
    """Date + minute-of-day as a naive datetime; None for untimed placements."""
    if minute is None:
        return None
    return datetime.combine(day, time_from_minute(minute))


def normalise_weekday(value: Any) -> str:
    """
    Normalise a weekday to its three-letter lowercase name.

    Accepts `mon`..`sun`, full names in any case, or integers with 0 = Monday
    (the `datetime.date.weekday()` convention).
    """
    if isinstance(value, int) and not isinstance(value, bool):
        if not 0 <= value <= 6:
            raise ParseError(f"Weekday index out of range: {value}")
        return WEEKDAY_NAMES[value]
    if isinstance(value, str):
        name = value.strip().lower()
        name = _WEEKDAY_ALIASES.get(name, name)
        if name in WEEKDAY_NAMES:
            return name
    raise ParseError(f"Unknown weekday: {value!r}")


def weekday_index(name: str) -> int:
    return WEEKDAY_NAMES.index(normalise_weekday(name))
