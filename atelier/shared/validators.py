"""Shared validation and parsing utilities"""

import re
from datetime import date, datetime, timezone
from typing import Optional


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to already be UTC"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value) -> Optional[datetime]:
    """
    Parse ISO-ish date/datetime strings ("2026-02-10", "2026-02-10T10:00:00.000Z").

    Returns None when the value is missing or unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    raw = str(value).strip()
    if not raw:
        return None
    try:
        return to_utc_naive(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        return None


def parse_date(value) -> Optional[date]:
    """Parse a YYYY-MM-DD (or full ISO datetime) string into a date"""
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


TIME_LABEL_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def parse_visit_datetime(visit_date, visit_time: Optional[str] = None) -> Optional[datetime]:
    """
    Combine a visit date and an optional HH:MM label into the visit start.

    When visit_time is given only the calendar day of visit_date is used.
    Without visit_time, visit_date must carry its own time component.
    """
    if not visit_date:
        return None

    if visit_time:
        match = TIME_LABEL_PATTERN.match(str(visit_time).strip())
        day = parse_date(visit_date)
        if not match or day is None:
            return None
        return datetime(
            day.year, day.month, day.day, int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
        )

    raw = str(visit_date)
    if "T" not in raw and " " not in raw.strip():
        return None
    return parse_datetime(raw)
