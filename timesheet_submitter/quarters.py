"""
Quarter routing: map entry dates to form instances.

Each quarter has its own instance of the external form. The window table
is a rolling pair holding the current quarter and the one before it, and
must be updated at the start of every quarter (edit the defaults below or
pass a JSON file with --quarters). Dates outside both windows are
unroutable.
"""

import json
from collections import OrderedDict
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar
from urllib.parse import urlparse

from .models import FormTarget, QuarterWindow

T = TypeVar('T')

DEFAULT_QUARTER_WINDOWS: List[QuarterWindow] = [
    QuarterWindow(
        id='Q3-2026',
        name='Q3 2026',
        start_date='2026-07-01',
        end_date='2026-09-30',
        form_url='https://forms.example.test/b/form/7c1e0a55d2a94b6f8e3b9d01a4c6f2e7',
        form_id='7c1e0a55d2a94b6f8e3b9d01a4c6f2e7',
    ),
    QuarterWindow(
        id='Q4-2026',
        name='Q4 2026',
        start_date='2026-10-01',
        end_date='2026-12-31',
        form_url='https://forms.example.test/b/form/0e4b6d3f9a8c47d2b1f5e6a7c8d9e0f1',
        form_id='0e4b6d3f9a8c47d2b1f5e6a7c8d9e0f1',
    ),
]


class QuarterConfigError(Exception):
    """Raised when a quarter window file is malformed."""
    pass


def _parse_iso(date_str: str) -> Optional[date]:
    if not isinstance(date_str, str) or len(date_str) != 10:
        return None
    try:
        return datetime.strptime(date_str, '%Y-%m-%d').date()
    except ValueError:
        return None


def get_quarter_for_date(date_str: str,
                         windows: Sequence[QuarterWindow] = DEFAULT_QUARTER_WINDOWS
                         ) -> Optional[QuarterWindow]:
    """
    Find the quarter window containing a date.

    The date must be strictly YYYY-MM-DD; malformed or impossible dates
    (e.g. "2025-04-31") are unroutable. Windows are assumed not to overlap,
    the first match wins.

    Args:
        date_str: Date in YYYY-MM-DD format
        windows: Quarter window table

    Returns:
        The containing window, or None
    """
    target = _parse_iso(date_str)
    if target is None:
        return None

    for window in windows:
        start = _parse_iso(window.start_date)
        end = _parse_iso(window.end_date)
        if start is None or end is None:
            continue
        if start <= target <= end:
            return window

    return None


def validate_quarter_availability(date_str: str,
                                  windows: Sequence[QuarterWindow] = DEFAULT_QUARTER_WINDOWS
                                  ) -> Optional[str]:
    """
    Check that a date can be routed.

    Returns:
        An error message listing the available quarters, or None when routable
    """
    if not date_str:
        return "Please enter a date"

    if get_quarter_for_date(date_str, windows) is None:
        available = " or ".join(
            f"{w.name} ({w.start_date[5:7]}/{w.start_date[8:]}-{w.end_date[5:7]}/{w.end_date[8:]})"
            for w in windows
        )
        return f"Date must be in {available}"

    return None


def group_entries_by_quarter(entries: Iterable[T],
                             windows: Sequence[QuarterWindow] = DEFAULT_QUARTER_WINDOWS
                             ) -> Dict[str, List[T]]:
    """
    Group entries (anything with a ``date`` attribute) by quarter id.

    Unroutable entries are left out. Groups keep the window table's order.
    """
    grouped: Dict[str, List[T]] = OrderedDict((w.id, []) for w in windows)
    for entry in entries:
        window = get_quarter_for_date(entry.date, windows)
        if window is not None:
            grouped[window.id].append(entry)
    return OrderedDict((k, v) for k, v in grouped.items() if v)


def get_quarter_by_id(quarter_id: str,
                      windows: Sequence[QuarterWindow] = DEFAULT_QUARTER_WINDOWS
                      ) -> Optional[QuarterWindow]:
    for window in windows:
        if window.id == quarter_id:
            return window
    return None


def get_current_quarter(windows: Sequence[QuarterWindow] = DEFAULT_QUARTER_WINDOWS,
                        today: Optional[date] = None) -> Optional[QuarterWindow]:
    """Return the window containing today's date, if any."""
    today = today or date.today()
    return get_quarter_for_date(today.isoformat(), windows)


def build_form_target(window: QuarterWindow) -> FormTarget:
    """
    Derive the submission endpoint and success URL patterns for a window.

    Example:
        >>> build_form_target(DEFAULT_QUARTER_WINDOWS[0]).submission_endpoint
        'https://forms.example.test/api/submit/7c1e0a55d2a94b6f8e3b9d01a4c6f2e7'
    """
    parsed = urlparse(window.form_url)
    host = parsed.netloc
    scheme = parsed.scheme or 'https'
    return FormTarget(
        quarter_id=window.id,
        base_url=window.form_url,
        form_id=window.form_id,
        submission_endpoint=f"{scheme}://{host}/api/submit/{window.form_id}",
        success_url_patterns=[
            f"**{host}/api/submit/{window.form_id}",
            f"**{host}/api/submit/**",
        ],
    )


def load_quarter_windows(path: str) -> List[QuarterWindow]:
    """
    Load the quarter window table from a JSON file.

    Expected format: a list of objects with keys id, name, start_date,
    end_date, form_url and form_id.

    Raises:
        QuarterConfigError: If the file is missing or malformed
    """
    file_path = Path(path)
    if not file_path.exists():
        raise QuarterConfigError(f"Quarter file not found: {path}")

    try:
        raw = json.loads(file_path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as e:
        raise QuarterConfigError(f"Failed to read quarter file: {e}")

    if not isinstance(raw, list) or not raw:
        raise QuarterConfigError("Quarter file must contain a non-empty list")

    windows = []
    for index, item in enumerate(raw):
        try:
            window = QuarterWindow(**item)
        except TypeError as e:
            raise QuarterConfigError(f"Invalid quarter definition at index {index}: {e}")
        if _parse_iso(window.start_date) is None or _parse_iso(window.end_date) is None:
            raise QuarterConfigError(f"Invalid dates in quarter '{window.id}'")
        if window.start_date > window.end_date:
            raise QuarterConfigError(f"Quarter '{window.id}' ends before it starts")
        windows.append(window)

    return windows
