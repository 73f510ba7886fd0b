"""
Central CSV schema definition for timesheet entry imports.

This module defines the single source of truth for the import format,
including canonical headers, optional columns and legacy aliases.
"""

from typing import Dict, List, Optional, Tuple


class CSVSchema:
    """
    Defines the canonical CSV format for timesheet entries.

    One row per entry; times as "HH:MM" or minutes since midnight,
    dates as "YYYY-MM-DD" or "mm/dd/yyyy".
    """

    DATE = 'date'
    TIME_IN = 'time_in'
    TIME_OUT = 'time_out'
    PROJECT = 'project'
    TOOL = 'tool'
    CHARGE_CODE = 'charge_code'
    TASK_DESCRIPTION = 'task_description'

    # Canonical headers in correct order
    CANONICAL_HEADERS: List[str] = [
        DATE,
        TIME_IN,
        TIME_OUT,
        PROJECT,
        TOOL,
        CHARGE_CODE,
        TASK_DESCRIPTION,
    ]

    # Columns that may be left out of the file entirely
    OPTIONAL_HEADERS: List[str] = [TOOL, CHARGE_CODE]

    # Maps legacy header names to canonical names
    LEGACY_ALIASES: Dict[str, str] = {
        'start': TIME_IN,
        'start_time': TIME_IN,
        'end': TIME_OUT,
        'end_time': TIME_OUT,
        'description': TASK_DESCRIPTION,
        'task': TASK_DESCRIPTION,
        'project_code': PROJECT,
        'detail_charge_code': CHARGE_CODE,
    }

    ENCODING = 'utf-8'
    DELIMITER = ','
    NEWLINE = ''  # Use '' for universal newline mode in Python's csv module

    @classmethod
    def normalize_header(cls, header: str) -> str:
        """
        Normalize a header name to canonical form.

        Examples:
            >>> CSVSchema.normalize_header('  Date  ')
            'date'
            >>> CSVSchema.normalize_header('description')
            'task_description'
        """
        normalized = header.strip().lower().replace(' ', '_')
        return cls.LEGACY_ALIASES.get(normalized, normalized)

    @classmethod
    def required_headers(cls) -> List[str]:
        return [h for h in cls.CANONICAL_HEADERS if h not in cls.OPTIONAL_HEADERS]

    @classmethod
    def validate_headers(cls, headers: Optional[List[str]]) -> Tuple[bool, Optional[str]]:
        """
        Validate that all required headers are present.

        Accepts both canonical and legacy header names.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not headers:
            return False, "CSV file is empty or has no headers"

        normalized_headers = [cls.normalize_header(h) for h in headers]
        missing = [h for h in cls.required_headers() if h not in normalized_headers]

        if missing:
            return False, f"CSV missing required headers: {', '.join(missing)}"

        return True, None

    @classmethod
    def create_header_mapping(cls, csv_headers: List[str]) -> Dict[str, str]:
        """
        Create a mapping from CSV headers (as written) to canonical headers.

        Examples:
            >>> CSVSchema.create_header_mapping(['Start', 'description'])
            {'Start': 'time_in', 'description': 'task_description'}
        """
        return {header: cls.normalize_header(header) for header in csv_headers}
