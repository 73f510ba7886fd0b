"""
Tests for quarter routing.
"""

import json
from dataclasses import replace
from datetime import date

import pytest

from timesheet_submitter.models import TimesheetEntry
from timesheet_submitter.quarters import (
    DEFAULT_QUARTER_WINDOWS,
    QuarterConfigError,
    build_form_target,
    get_current_quarter,
    get_quarter_by_id,
    get_quarter_for_date,
    group_entries_by_quarter,
    load_quarter_windows,
    validate_quarter_availability,
)


class TestGetQuarterForDate:
    """Tests for get_quarter_for_date()."""

    @pytest.mark.parametrize('day,expected', [
        ('2026-07-01', 'Q3-2026'),
        ('2026-09-30', 'Q3-2026'),
        ('2026-10-01', 'Q4-2026'),
        ('2026-12-31', 'Q4-2026'),
    ])
    def test_boundaries_are_inclusive(self, day, expected):
        """Test first and last days belong to their window."""
        assert get_quarter_for_date(day).id == expected

    @pytest.mark.parametrize('day', ['2026-06-30', '2027-01-01', '2025-01-15'])
    def test_outside_every_window(self, day):
        """Test dates outside both windows are unroutable."""
        assert get_quarter_for_date(day) is None

    @pytest.mark.parametrize('day', ['2026-09-31', '2026-7-01', '10/15/2026', '', 'not-a-date', None])
    def test_malformed_or_impossible(self, day):
        """Test strict parsing rejects bad and impossible dates."""
        assert get_quarter_for_date(day) is None

    def test_first_match_wins(self):
        """Test overlapping windows resolve to the first one listed."""
        first, second = DEFAULT_QUARTER_WINDOWS
        overlapping = [second, replace(first, start_date='2026-07-01', end_date='2026-12-31')]

        assert get_quarter_for_date('2026-11-01', overlapping).id == 'Q4-2026'


class TestAvailability:
    """Tests for validate_quarter_availability()."""

    def test_routable(self):
        """Test routable dates produce no message."""
        assert validate_quarter_availability('2026-10-15') is None

    def test_empty(self):
        """Test empty dates are reported."""
        assert validate_quarter_availability('') == 'Please enter a date'

    def test_lists_available_quarters(self):
        """Test the message names both windows."""
        message = validate_quarter_availability('2025-01-15')

        assert message == 'Date must be in Q3 2026 (07/01-09/30) or Q4 2026 (10/01-12/31)'


class TestGrouping:
    """Tests for grouping and lookups."""

    def test_group_entries_by_quarter(self):
        """Test groups follow window order and skip unroutable entries."""
        entries = [
            TimesheetEntry('2026-10-02', 540, 600, 'P', 'a'),
            TimesheetEntry('2026-08-01', 540, 600, 'P', 'b'),
            TimesheetEntry('2024-01-01', 540, 600, 'P', 'c'),
            TimesheetEntry('2026-10-01', 540, 600, 'P', 'd'),
        ]

        grouped = group_entries_by_quarter(entries)

        assert list(grouped) == ['Q3-2026', 'Q4-2026']
        assert [e.task_description for e in grouped['Q4-2026']] == ['a', 'd']

    def test_get_quarter_by_id(self):
        """Test lookup by id."""
        assert get_quarter_by_id('Q3-2026').name == 'Q3 2026'
        assert get_quarter_by_id('Q1-2020') is None

    def test_get_current_quarter(self):
        """Test the current quarter follows the given day."""
        assert get_current_quarter(today=date(2026, 10, 19)).id == 'Q4-2026'
        assert get_current_quarter(today=date(2027, 2, 1)) is None


class TestFormTarget:
    """Tests for build_form_target()."""

    def test_endpoint_and_patterns(self):
        """Test the endpoint is derived from the form host and id."""
        target = build_form_target(DEFAULT_QUARTER_WINDOWS[1])

        assert target.quarter_id == 'Q4-2026'
        assert target.base_url == DEFAULT_QUARTER_WINDOWS[1].form_url
        assert target.submission_endpoint == (
            'https://forms.example.test/api/submit/0e4b6d3f9a8c47d2b1f5e6a7c8d9e0f1'
        )
        assert target.success_url_patterns[0].endswith('/api/submit/0e4b6d3f9a8c47d2b1f5e6a7c8d9e0f1')


class TestLoadQuarterWindows:
    """Tests for loading the window table from JSON."""

    def _write(self, tmp_path, data):
        path = tmp_path / 'quarters.json'
        path.write_text(json.dumps(data), encoding='utf-8')
        return str(path)

    def test_valid_file(self, tmp_path):
        """Test a well-formed file is loaded."""
        path = self._write(tmp_path, [{
            'id': 'Q1-2027', 'name': 'Q1 2027', 'start_date': '2027-01-01',
            'end_date': '2027-03-31', 'form_url': 'https://forms.example.test/b/form/x',
            'form_id': 'x',
        }])

        (window,) = load_quarter_windows(path)

        assert window.id == 'Q1-2027'

    def test_missing_file(self, tmp_path):
        """Test a missing file raises QuarterConfigError."""
        with pytest.raises(QuarterConfigError, match='not found'):
            load_quarter_windows(str(tmp_path / 'nope.json'))

    @pytest.mark.parametrize('data', [
        [],
        {'id': 'Q1'},
        [{'id': 'Q1-2027', 'name': 'Q1'}],
        [{'id': 'Q1-2027', 'name': 'Q1', 'start_date': '2027-02-30', 'end_date': '2027-03-31',
          'form_url': 'u', 'form_id': 'x'}],
        [{'id': 'Q1-2027', 'name': 'Q1', 'start_date': '2027-03-31', 'end_date': '2027-01-01',
          'form_url': 'u', 'form_id': 'x'}],
    ])
    def test_malformed_files(self, tmp_path, data):
        """Test malformed tables are rejected."""
        with pytest.raises(QuarterConfigError):
            load_quarter_windows(self._write(tmp_path, data))
