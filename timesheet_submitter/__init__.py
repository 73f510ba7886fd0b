"""
Timesheet Submitter - automated submission of timesheet entries to a web form.

This package keeps a deduplicated local store of timesheet entries and
submits pending entries to the quarterly web form with Playwright,
verifying every submission.
"""

__version__ = '1.0.0'
__author__ = 'Timesheet Automation'

from .config import Config
from .csv_loader import CSVLoadError, load_csv
from .models import EntryStatus, QuarterWindow, RunSummary, TimesheetEntry
from .orchestrator import SubmissionOrchestrator, run_submission
from .quarters import get_quarter_for_date
from .store import TimesheetStore

__all__ = [
    'Config',
    'CSVLoadError',
    'EntryStatus',
    'QuarterWindow',
    'RunSummary',
    'SubmissionOrchestrator',
    'TimesheetEntry',
    'TimesheetStore',
    'get_quarter_for_date',
    'load_csv',
    'run_submission',
]
