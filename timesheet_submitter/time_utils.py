"""
Time and date helpers for timesheet entries.

Entries store times as minutes since midnight and dates as ISO strings;
the form expects "mm/dd/yyyy" dates and decimal hours.
"""

import re
from datetime import datetime
from typing import Union


class TimeParseError(Exception):
    """Exception raised when a time or date value cannot be parsed."""
    pass


_HHMM_RE = re.compile(r'^(\d{1,2}):(\d{2})$')
_ISO_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_US_RE = re.compile(r'^\d{1,2}/\d{1,2}/\d{4}$')


def parse_time_to_minutes(value: Union[str, int]) -> int:
    """
    Parse a time value into minutes since midnight.

    Accepted formats:
    - "HH:MM" (24h): "09:00" → 540, "24:00" → 1440
    - Plain minutes: "540" or 540 → 540

    Args:
        value: Time value

    Returns:
        Minutes since midnight (0-1440)

    Raises:
        TimeParseError: If the format is invalid or the time is out of range

    Examples:
        >>> parse_time_to_minutes("09:15")
        555
        >>> parse_time_to_minutes("600")
        600
    """
    if isinstance(value, int):
        minutes = value
    else:
        text = str(value).strip()
        if not text:
            raise TimeParseError("Time value cannot be empty")

        match = _HHMM_RE.match(text)
        if match:
            hours, mins = int(match.group(1)), int(match.group(2))
            if mins >= 60:
                raise TimeParseError(f"Invalid minutes in time: '{text}'")
            minutes = hours * 60 + mins
        elif text.isdigit():
            minutes = int(text)
        else:
            raise TimeParseError(f"Invalid time format: '{text}'. Expected HH:MM or minutes")

    if not (0 <= minutes <= 1440):
        raise TimeParseError(f"Time {minutes} out of range (must be 0-1440 minutes)")

    return minutes


def format_minutes(minutes: int) -> str:
    """
    Format minutes since midnight as "HH:MM".

    Examples:
        >>> format_minutes(555)
        '09:15'
    """
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_hours(hours: float) -> str:
    """Format decimal hours for the form ("1.5", "8", "0.25")."""
    return f"{hours:.2f}".rstrip('0').rstrip('.')


def normalize_date_to_iso(value: str) -> str:
    """
    Normalize a date to ISO format (YYYY-MM-DD).

    Accepts ISO dates and US-style "mm/dd/yyyy" dates. Impossible dates
    (e.g. "2025-04-31") are rejected.

    Args:
        value: Date string

    Returns:
        ISO date string

    Raises:
        TimeParseError: If the date is malformed or does not exist
    """
    text = (value or '').strip()

    if _ISO_RE.match(text):
        fmt = '%Y-%m-%d'
    elif _US_RE.match(text):
        fmt = '%m/%d/%Y'
    else:
        raise TimeParseError(f"Invalid date format: '{text}'. Expected YYYY-MM-DD or mm/dd/yyyy")

    try:
        parsed = datetime.strptime(text, fmt)
    except ValueError:
        raise TimeParseError(f"Invalid calendar date: '{text}'")

    return parsed.strftime('%Y-%m-%d')


def iso_to_form_date(iso_date: str) -> str:
    """
    Convert an ISO date to the form's "mm/dd/yyyy" format.

    Examples:
        >>> iso_to_form_date("2025-01-15")
        '01/15/2025'
    """
    try:
        parsed = datetime.strptime(iso_date, '%Y-%m-%d')
    except ValueError:
        raise TimeParseError(f"Invalid ISO date: '{iso_date}'")
    return parsed.strftime('%m/%d/%Y')
