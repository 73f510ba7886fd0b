"""
CSV loader for timesheet entries.

This module handles loading and parsing CSV files into TimesheetEntry
objects ready for insertion into the local store. Range and alignment rules
are left to the store, which reports them per batch.
"""

import csv
from pathlib import Path
from typing import Dict, List, Optional

from .csv_schema import CSVSchema
from .models import TimesheetEntry
from .time_utils import TimeParseError, normalize_date_to_iso, parse_time_to_minutes


class CSVLoadError(Exception):
    """Raised when CSV loading fails."""
    pass


class CSVLoader:
    """
    Loads timesheet entries from CSV files.

    Expected CSV format:
        date,time_in,time_out,project,tool,charge_code,task_description
        2025-01-15,09:00,10:00,PRJ-100,Excel,CC-1,Weekly report
        01/16/2025,540,600,PRJ-200,,,Code review
    """

    def __init__(self, file_path: str):
        """
        Initialize the CSV loader.

        Args:
            file_path: Path to the CSV file

        Raises:
            CSVLoadError: If file doesn't exist
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise CSVLoadError(f"CSV file not found: {file_path}")

    def load(self) -> List[TimesheetEntry]:
        """
        Load entries from the CSV file.

        Returns:
            List of TimesheetEntry objects

        Raises:
            CSVLoadError: If the CSV format is invalid or a row is malformed
        """
        try:
            with open(self.file_path, 'r', encoding=CSVSchema.ENCODING,
                      newline=CSVSchema.NEWLINE) as f:
                reader = csv.DictReader(f, delimiter=CSVSchema.DELIMITER)
                is_valid, error = CSVSchema.validate_headers(reader.fieldnames)
                if not is_valid:
                    raise CSVLoadError(error)
                mapping = CSVSchema.create_header_mapping(reader.fieldnames)
                return self._parse_rows(reader, mapping)
        except CSVLoadError:
            raise
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            raise CSVLoadError(f"Failed to load CSV: {e}")

    def _parse_rows(self, reader: csv.DictReader, mapping: Dict[str, str]) -> List[TimesheetEntry]:
        entries = []
        for line_num, row_dict in enumerate(reader, start=2):  # Start at 2 (header is line 1)
            normalized = {
                mapping[k]: (v or '').strip()
                for k, v in row_dict.items()
                if k is not None
            }
            if not any(normalized.values()):
                continue  # blank line
            try:
                entries.append(self._parse_row(normalized))
            except (ValueError, TimeParseError) as e:
                raise CSVLoadError(f"Error on line {line_num}: {e}")

        if not entries:
            raise CSVLoadError("CSV file contains no valid data rows")

        return entries

    def _parse_row(self, row: Dict[str, str]) -> TimesheetEntry:
        """
        Parse a single normalized row.

        Raises:
            ValueError: If a required value is missing
            TimeParseError: If a date or time cannot be parsed
        """
        for key in CSVSchema.required_headers():
            if not row.get(key):
                raise ValueError(f"Missing value for '{key}'")

        return TimesheetEntry(
            date=normalize_date_to_iso(row[CSVSchema.DATE]),
            time_in=parse_time_to_minutes(row[CSVSchema.TIME_IN]),
            time_out=parse_time_to_minutes(row[CSVSchema.TIME_OUT]),
            project=row[CSVSchema.PROJECT],
            task_description=row[CSVSchema.TASK_DESCRIPTION],
            tool=_optional(row.get(CSVSchema.TOOL)),
            charge_code=_optional(row.get(CSVSchema.CHARGE_CODE)),
        )


def _optional(value: Optional[str]) -> Optional[str]:
    return value if value else None


def load_csv(file_path: str) -> List[TimesheetEntry]:
    """
    Convenience function to load a CSV file.

    Raises:
        CSVLoadError: If loading fails
    """
    return CSVLoader(file_path).load()
