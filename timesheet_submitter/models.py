"""
Data models for timesheet submission.

This module defines the data structures used throughout the application,
including timesheet entries, quarter windows, field specifications,
submission outcomes, store results and run summaries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

MINUTES_PER_DAY = 1440
SLOT_MINUTES = 15


class EntryStatus(str, Enum):
    """Submission status of a stored entry."""
    PENDING = 'pending'
    SUBMITTED = 'submitted'
    FAILED = 'failed'


@dataclass
class TimesheetEntry:
    """
    A single time-tracking record.

    Times are minutes since midnight. Construction never validates so that
    invalid rows can still reach the store and be reported there; call
    validate() to check them up front.

    Attributes:
        date: Entry date (YYYY-MM-DD)
        time_in: Start minute (0-1439, multiple of 15)
        time_out: End minute (1-1440, multiple of 15, after time_in)
        project: Project code
        task_description: Free-text description of the work
        tool: Tool name (optional)
        charge_code: Detail charge code (optional)
        id: Store id (None until persisted)
        status: Submission status
        last_error: Reason of the last failed submission
        submitted_at: ISO timestamp of the successful submission
    """
    date: str
    time_in: int
    time_out: int
    project: str
    task_description: str
    tool: Optional[str] = None
    charge_code: Optional[str] = None
    id: Optional[int] = None
    status: EntryStatus = EntryStatus.PENDING
    last_error: Optional[str] = None
    submitted_at: Optional[str] = None

    @property
    def hours(self) -> float:
        """Duration in hours, always derived from the minute range."""
        return (self.time_out - self.time_in) / 60.0

    @property
    def natural_key(self):
        return (self.date, self.time_in, self.project, self.task_description)

    def validate(self) -> List[str]:
        """
        Check the minute range and required text fields.

        Returns:
            List of problems (empty when the entry is valid)
        """
        problems = []
        if not (0 <= self.time_in < MINUTES_PER_DAY):
            problems.append(f"time_in out of range: {self.time_in}")
        if not (0 < self.time_out <= MINUTES_PER_DAY):
            problems.append(f"time_out out of range: {self.time_out}")
        if self.time_out <= self.time_in:
            problems.append("time_out must be after time_in")
        if self.time_in % SLOT_MINUTES or self.time_out % SLOT_MINUTES:
            problems.append("times must be multiples of 15 minutes")
        if not self.project or not self.project.strip():
            problems.append("project is required")
        if not self.task_description or not self.task_description.strip():
            problems.append("task_description is required")
        return problems


@dataclass(frozen=True)
class QuarterWindow:
    """
    A named date range routed to one instance of the external form.

    Attributes:
        id: Short identifier (e.g. "Q3-2026")
        name: Display name
        start_date: First day, inclusive (YYYY-MM-DD)
        end_date: Last day, inclusive (YYYY-MM-DD)
        form_url: URL of the form instance
        form_id: Identifier of the form instance
    """
    id: str
    name: str
    start_date: str
    end_date: str
    form_url: str
    form_id: str


@dataclass(frozen=True)
class FormTarget:
    """Everything needed to open and verify one form instance."""
    quarter_id: str
    base_url: str
    form_id: str
    submission_endpoint: str
    success_url_patterns: List[str]


def _always_valid(value: str) -> bool:
    return True


def _default_error(value: str) -> str:
    return f"Invalid value: {value}"


@dataclass(frozen=True)
class FieldSpec:
    """
    Static description of one form field.

    Attributes:
        key: Field key used in value mappings (e.g. "project_code")
        label: Human-readable label
        locator: Playwright selector (None is a configuration error)
        type: Explicit widget type ("dropdown", "select", "text"), None to detect
        validation: Predicate applied to the value before filling
        error_message: Builds the message for a rejected value
        optional: Whether an empty value may be skipped
        inject_value: Whether the value is set directly instead of typed
    """
    key: str
    label: str
    locator: Optional[str]
    type: Optional[str] = None
    validation: Callable[[str], bool] = _always_valid
    error_message: Callable[[str], str] = _default_error
    optional: bool = False
    inject_value: bool = False


@dataclass
class SubmissionOutcome:
    """
    Result of one submit attempt.

    Attributes:
        success: Whether the submission was confirmed
        method: "network" or "dom" when confirmed, None otherwise
        matched_responses: Number of responses matching the success criteria
        correlation_ids: Request/trace ids collected from matched responses
        submission_ids: Submission ids parsed from response bodies
        tokens: Submission tokens parsed from response bodies (diagnostic only)
    """
    success: bool
    method: Optional[str] = None
    matched_responses: int = 0
    correlation_ids: List[str] = field(default_factory=list)
    submission_ids: List[str] = field(default_factory=list)
    tokens: List[str] = field(default_factory=list)


@dataclass
class InsertResult:
    """Result of inserting one entry. Duplicates are reported, not raised."""
    success: bool
    is_duplicate: bool = False
    changes: int = 0
    error: Optional[str] = None


@dataclass
class BatchInsertResult:
    """Result of an all-or-nothing batch insert."""
    success: bool
    total: int
    inserted: int = 0
    duplicates: int = 0
    errors: int = 0
    error_message: Optional[str] = None


@dataclass
class DuplicateGroup:
    """A natural key that occurs more than once in the store."""
    date: str
    time_in: int
    project: str
    task_description: str
    count: int
    ids: List[int] = field(default_factory=list)


@dataclass
class RunSummary:
    """
    Summary of a submission run.

    Attributes:
        total: Entries considered
        submitted: Entries confirmed as submitted
        failed: Entries marked failed
        unroutable: Entries whose date has no quarter window
        skipped: Entries left pending because the run stopped early
        filled: Entries filled without submitting (fill-only mode)
        failures: Failure reason per entry id
        stopped_early: Whether the run stopped before processing all entries
        per_quarter: Submitted count per quarter id
    """
    total: int = 0
    submitted: int = 0
    failed: int = 0
    unroutable: int = 0
    skipped: int = 0
    filled: int = 0
    failures: Dict[int, str] = field(default_factory=dict)
    stopped_early: bool = False
    per_quarter: Dict[str, int] = field(default_factory=dict)

    def record_success(self, quarter_id: str):
        self.submitted += 1
        self.per_quarter[quarter_id] = self.per_quarter.get(quarter_id, 0) + 1

    def record_failure(self, entry_id: Optional[int], reason: str):
        self.failed += 1
        self.failures[entry_id if entry_id is not None else -1] = reason

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0 and self.unroutable == 0 and not self.stopped_early

    def format_summary(self) -> str:
        """
        Format the summary as a human-readable string.

        Returns:
            Formatted summary text
        """
        lines = [
            "\n" + "=" * 60,
            "SUBMISSION SUMMARY",
            "=" * 60,
            "\nEntries:",
            f"  Total: {self.total}",
            f"  Submitted: {self.submitted}",
            f"  Failed: {self.failed}",
            f"  Unroutable: {self.unroutable}",
            f"  Not attempted: {self.skipped}",
        ]

        if self.filled:
            lines.append(f"  Filled only: {self.filled}")

        if self.per_quarter:
            lines.append("\nBy Quarter:")
            for quarter_id, count in sorted(self.per_quarter.items()):
                lines.append(f"  {quarter_id}: {count}")

        if self.failures:
            lines.append("\nFailures:")
            for entry_id, reason in self.failures.items():
                lines.append(f"  - entry {entry_id}: {reason}")

        if self.stopped_early:
            lines.append("\nRun stopped early after a failed entry.")

        lines.append("=" * 60 + "\n")
        return "\n".join(lines)
