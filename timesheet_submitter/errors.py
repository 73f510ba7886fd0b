"""
Exception types for the submission pipeline.

Timing problems (ElementNotVisible, SubmissionUnverified) are retried by the
orchestrator. Configuration problems (LocatorNotFound) and lost dropdown
selections (DropdownCommitFailed) propagate immediately. Duplicates are never
raised: the store reports them as InsertResult values.
"""

from typing import Optional


class SubmitterError(Exception):
    """Base class for all pipeline errors."""
    pass


class LocatorNotFound(SubmitterError):
    """A field spec carries no locator (configuration error)."""

    def __init__(self, field_name: str):
        super().__init__(f"Field locator is missing for field: {field_name}")
        self.field_name = field_name


class ElementNotVisible(SubmitterError):
    """An element did not become visible within its wait budget."""

    def __init__(self, field_name: str, selector: str, timeout: float):
        super().__init__(
            f"Field '{field_name}' did not become visible within {timeout:.1f}s "
            f"(selector: {selector})"
        )
        self.field_name = field_name
        self.selector = selector
        self.timeout = timeout


class DropdownCommitFailed(SubmitterError):
    """The activation key that commits a dropdown selection could not be sent."""

    def __init__(self, field_name: str, cause: Exception):
        super().__init__(f"Could not commit dropdown selection for '{field_name}': {cause}")
        self.field_name = field_name
        self.cause = cause


class SubmissionUnverified(SubmitterError):
    """A submit attempt could not be confirmed by network or DOM signals."""
    pass


class SubmitControlNotFound(SubmissionUnverified):
    """No visible, enabled submit control matched any configured selector."""

    def __init__(self, selectors_tried: int):
        super().__init__(f"No submit button found ({selectors_tried} selector(s) tried)")
        self.selectors_tried = selectors_tried


class LoginStepTimeout(SubmitterError):
    """A mandatory login step did not find its element in time."""

    def __init__(self, step_name: str, selector: Optional[str]):
        super().__init__(f"Login step '{step_name}' timed out waiting for {selector}")
        self.step_name = step_name
        self.selector = selector


class BotNavigationError(SubmitterError):
    """Navigation to the form failed after all attempts."""
    pass


class StoreError(SubmitterError):
    """Base class for local store failures."""
    pass


class ConstraintViolation(StoreError):
    """A row violated a non-uniqueness constraint (range, alignment, status)."""

    def __init__(self, message: str, entry_index: Optional[int] = None):
        super().__init__(message)
        self.entry_index = entry_index


class StatusUpdateMismatch(StoreError):
    """A status transition touched fewer rows than requested."""

    def __init__(self, expected: int, updated: int):
        super().__init__(
            f"Database update mismatch: expected {expected} rows, updated {updated} rows"
        )
        self.expected = expected
        self.updated = updated
