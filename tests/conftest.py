"""
Shared fixtures for the timesheet submitter tests.
"""

import logging

import pytest

from timesheet_submitter.logging_utils import LOGGER_NAME
from timesheet_submitter.models import TimesheetEntry
from timesheet_submitter.store import TimesheetStore


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by setup_logging() so they never outlive a captured stream."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.propagate = True


@pytest.fixture
def log_records():
    """Capture package log records (the package logger does not propagate)."""
    logger = logging.getLogger(LOGGER_NAME)
    handler = _ListHandler()
    original_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler.records
    logger.removeHandler(handler)
    logger.setLevel(original_level)


@pytest.fixture
def store():
    """In-memory store, discarded after the test."""
    with TimesheetStore(':memory:') as s:
        yield s


@pytest.fixture
def make_entry():
    def _make(date='2026-10-15', time_in=540, time_out=600, project='PRJ-100',
              task_description='Weekly report', **kwargs):
        return TimesheetEntry(date=date, time_in=time_in, time_out=time_out,
                              project=project, task_description=task_description, **kwargs)
    return _make
