"""Canonical forms for extracted entities.

Each entity type has one pure normalizer. ``normalize_entity`` dispatches on
type and never raises: a normalizer that fails logs the failure and the
surface value is returned unchanged.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Callable

from .taxonomy import EntityType

logger = logging.getLogger(__name__)


class NormalizationFailure(ValueError):
    """A type-specific normalizer could not produce a canonical value."""

    pass


RELATIVE_DAYS: dict[str, int] = {
    "today": 0,
    "tonight": 0,
    "this evening": 0,
    "this morning": 0,
    "this afternoon": 0,
    "tomorrow": 1,
    "yesterday": -1,
    "next week": 7,
    "last week": -7,
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

HONORIFICS: dict[str, str] = {
    "dr": "Dr.",
    "mr": "Mr.",
    "mrs": "Mrs.",
    "ms": "Ms.",
    "prof": "Prof.",
    "sir": "Sir",
    "dame": "Dame",
}

_TIME_12H = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([ap])\.?m\.?$", re.IGNORECASE)
_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
_WEEKDAY = re.compile(r"^(?:(next|this|last)\s+)?(" + "|".join(WEEKDAYS) + r")$", re.IGNORECASE)
# Full month names and their common abbreviations, nothing else
MONTH_NAME_PATTERN = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\b\.?"
)

_MONTH_DAY = re.compile(
    rf"^({MONTH_NAME_PATTERN})\s+(\d{{1,2}})(?:st|nd|rd|th)?$", re.IGNORECASE
)
_NUMERIC_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?$")
_WHITESPACE = re.compile(r"\s+")


def _clean(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def _to_date(now: datetime | date | None) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def normalize_time(value: str) -> str | None:
    """Convert "2pm", "2:30 pm" or "14:30" to 24-hour "HH:MM".

    Returns:
        The normalized time, or None if the value is not a clock time

    Raises:
        NormalizationFailure: If the value looks like a time but is out of range
    """
    match = _TIME_12H.match(value)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if not 1 <= hour <= 12 or minute > 59:
            raise NormalizationFailure(f"Invalid 12-hour time: {value!r}")
        is_pm = match.group(3).lower() == "p"
        if is_pm and hour != 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0
        return f"{hour:02d}:{minute:02d}"

    match = _TIME_24H.match(value)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise NormalizationFailure(f"Invalid 24-hour time: {value!r}")
        return f"{hour:02d}:{minute:02d}"

    return None


def normalize_datetime(value: str, now: datetime | date | None = None) -> str:
    """Resolve relative day words and clock times to canonical strings.

    Relative words resolve to ISO dates against ``now`` (today if omitted).
    Weekday names resolve to their next occurrence. Clock times become
    24-hour "HH:MM". Anything else is returned cleaned but unchanged.

    Args:
        value: Surface datetime phrase
        now: Reference point for relative terms

    Returns:
        Canonical datetime string
    """
    text = _clean(value)
    lowered = text.lower()
    today = _to_date(now)

    if lowered in RELATIVE_DAYS:
        return (today + timedelta(days=RELATIVE_DAYS[lowered])).isoformat()

    time_value = normalize_time(lowered)
    if time_value is not None:
        return time_value

    match = _WEEKDAY.match(lowered)
    if match:
        modifier, name = match.groups()
        target = WEEKDAYS.index(name)
        delta = (target - today.weekday()) % 7
        if modifier == "next":
            delta = delta + 7 if delta == 0 else delta
        elif modifier == "last":
            delta = delta - 7 if delta else -7
        return (today + timedelta(days=delta)).isoformat()

    match = _MONTH_DAY.match(lowered)
    if match:
        month = MONTHS[match.group(1)[:3]]
        try:
            return date(today.year, month, int(match.group(2))).isoformat()
        except ValueError as e:
            raise NormalizationFailure(f"Invalid calendar date: {value!r}") from e

    match = _NUMERIC_DATE.match(lowered)
    if match:
        month, day, year = match.groups()
        if year is None:
            full_year = today.year
        elif len(year) == 2:
            full_year = 2000 + int(year)
        else:
            full_year = int(year)
        try:
            return date(full_year, int(month), int(day)).isoformat()
        except ValueError as e:
            raise NormalizationFailure(f"Invalid calendar date: {value!r}") from e

    return text


def normalize_person(value: str) -> str:
    """Title-case a name, expanding honorific abbreviations."""
    words = []
    for word in _clean(value).split(" "):
        key = word.lower().rstrip(".")
        words.append(HONORIFICS.get(key, word.capitalize()))
    return " ".join(words)


def normalize_location(value: str) -> str:
    """Title-case a location name, keeping short codes such as "TX" upper-case."""
    return " ".join(
        w if w.isupper() and len(w.strip(",.")) <= 3 else w.capitalize()
        for w in _clean(value).split(" ")
    )


def normalize_event(value: str) -> str:
    """Lower-case an event name for canonical comparison."""
    return _clean(value).lower()


def normalize_contact(value: str) -> str:
    """Canonicalize emails, handles and phone numbers.

    Emails and handles are lower-cased. Ten-digit phone numbers become
    "(555) 123-4567" and eleven-digit numbers with a leading 1 become
    "+1 (555) 123-4567". Anything else is returned unchanged.
    """
    text = _clean(value)
    if "@" in text or text.lower().startswith(("http://", "https://")):
        return text.lower()

    digits = re.sub(r"\D", "", text)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+1 ({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return text


_NORMALIZERS: dict[EntityType, Callable[[str], str]] = {
    EntityType.PERSON: normalize_person,
    EntityType.LOCATION: normalize_location,
    EntityType.EVENT: normalize_event,
    EntityType.CONTACT: normalize_contact,
}


def normalize_entity(
    value: str,
    entity_type: EntityType,
    now: datetime | date | None = None,
) -> str:
    """Normalize an entity value according to its type.

    Args:
        value: Surface text of the entity
        entity_type: Type used to pick the normalizer
        now: Reference point for relative datetime terms

    Returns:
        Normalized value, or the cleaned surface value if normalization failed
    """
    try:
        if entity_type == EntityType.DATETIME:
            return normalize_datetime(value, now)
        return _NORMALIZERS[entity_type](value)
    except Exception as e:
        logger.warning("Normalization failed for %s %r: %s", entity_type.value, value, e)
        return _clean(value)


__all__ = [
    "HONORIFICS",
    "NormalizationFailure",
    "normalize_contact",
    "normalize_datetime",
    "normalize_entity",
    "normalize_event",
    "normalize_location",
    "normalize_person",
    "normalize_time",
]
