"""
DOM configuration for the timesheet web form.

This module defines the field table, login steps, submit control selectors,
success phrases and dropdown option patterns used to drive the form.
All selectors use Playwright locator syntax.

IMPORTANT: These selectors target the live vendor-hosted form. If its DOM
changes, this module will need to be updated.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import FieldSpec


def _is_number_between(low: float, high: float):
    def check(value: str) -> bool:
        try:
            return low <= float(value) <= high
        except (TypeError, ValueError):
            return False
    return check


# Field table, keyed by field key
FIELD_DEFINITIONS: Dict[str, FieldSpec] = {
    'project_code': FieldSpec(
        key='project_code',
        label='Project',
        locator="input[aria-label='Project Task']",
        validation=lambda v: bool(v) and v != 'DISALLOWED',
        error_message=lambda v: f"Project code '{v}' is not allowed.",
        inject_value=True,
    ),
    'date': FieldSpec(
        key='date',
        label='Date',
        locator="input[placeholder='mm/dd/yyyy']",
        validation=lambda v: bool(v),
        error_message=lambda v: f"Date '{v}' must be mm/dd/yyyy",
        inject_value=True,
    ),
    'hours': FieldSpec(
        key='hours',
        label='Hours',
        locator="input[aria-label='Hours']",
        validation=_is_number_between(0.0, 24.0),
        error_message=lambda v: "Hours must be between 0.0 and 24.0",
        inject_value=True,
    ),
    'task_description': FieldSpec(
        key='task_description',
        label='Task Description',
        locator="role=textbox[name='Task Description']",
        validation=lambda v: bool(str(v).strip()),
        error_message=lambda v: "Task description is required",
        inject_value=True,
    ),
    'tool': FieldSpec(
        key='tool',
        label='Tool',
        locator="input[aria-label*='Tool']",
        optional=True,
        inject_value=True,
    ),
    'detail_code': FieldSpec(
        key='detail_code',
        label='Detail Charge Code',
        locator="input[aria-label='Detail Charge Code']",
        type='dropdown',
        error_message=lambda v: f"Detail code '{v}' is not allowed.",
        optional=True,
        inject_value=True,
    ),
}

# Order in which fields are filled
FIELD_ORDER: List[str] = [
    'project_code',
    'date',
    'hours',
    'tool',
    'task_description',
    'detail_code',
]

# Fields that must have a value before the page is touched
REQUIRED_FIELDS: List[str] = ['project_code', 'date', 'hours']

# Fields whose aria-invalid state is inspected after filling
VALIDATED_FIELDS = frozenset({'project_code', 'date', 'hours', 'task_description'})

# Some projects expose their tool under a project-specific label
PROJECT_TO_TOOL_LABEL: Dict[str, str] = {
    'OSC-BBB': 'BBB Tool',
    'FL-Carver Techs': 'Carver Tool',
    'FL-Carver Tools': 'Carver Tool',
    'SWFL-EQUIP': 'SWFL Tool',
}


def get_tool_locator(project: str) -> Optional[str]:
    """
    Get the project-specific tool locator, if the project has one.

    Example:
        >>> get_tool_locator("OSC-BBB")
        "input[aria-label='BBB Tool']"
    """
    label = PROJECT_TO_TOOL_LABEL.get(project)
    if label is None:
        return None
    return f"input[aria-label='{label}']"


@dataclass(frozen=True)
class LoginStep:
    """
    One step of the login sequence.

    Attributes:
        name: Step name (for logs)
        action: "wait", "input" or "click"
        locator: Element to act on (wait steps use it as the element to wait for)
        value_key: Credential key for input steps ("email" or "password")
        wait_condition: Element state for wait steps
        expects_navigation: Whether the action navigates
        optional: A timed-out optional step is skipped
        sensitive: The step's value must never be logged
    """
    name: str
    action: str
    locator: str
    value_key: Optional[str] = None
    wait_condition: str = 'visible'
    expects_navigation: bool = False
    optional: bool = False
    sensitive: bool = False


LOGIN_STEPS: List[LoginStep] = [
    LoginStep('Wait for Login Form', 'wait', '#loginEmail', optional=True),
    LoginStep('Email Input', 'input', '#loginEmail', value_key='email', sensitive=True, optional=True),
    LoginStep('Continue', 'click', '#formControl', expects_navigation=True, optional=True),
    LoginStep('Wait for SSO Choice', 'wait', 'a.clsJspButtonWide', optional=True),
    LoginStep('Login with company account', 'click', 'a.clsJspButtonWide',
              expects_navigation=True, optional=True),
    LoginStep('Wait for Account Email', 'wait', '#i0116'),
    LoginStep('Account Email', 'input', '#i0116', value_key='email', sensitive=True),
    LoginStep('Account Next', 'click', '#idSIButton9', expects_navigation=True, optional=True),
    LoginStep('Wait for Password', 'wait', '#passwordInput'),
    LoginStep('Password Input', 'input', '#passwordInput', value_key='password', sensitive=True),
    LoginStep('Password Submit', 'click', '#submitButton', expects_navigation=True, optional=True),
    LoginStep('Stay Signed In Prompt', 'wait', '#idBtn_Back', optional=True),
    LoginStep('Stay Signed In No', 'click', '#idBtn_Back', expects_navigation=True, optional=True),
    LoginStep('Wait for Form Page Ready', 'wait', FIELD_DEFINITIONS['project_code'].locator),
]


# Submit control: primary selector first, then fallbacks in priority order
SUBMIT_BUTTON_LOCATOR = "button[data-client-id='form_submit_btn']"

SUBMIT_BUTTON_FALLBACK_LOCATORS: List[str] = [
    "button:has-text('Submit')",
    "button:has-text('Save')",
    "button:has-text('Send')",
    "input[type='submit']",
    "button[type='submit']",
    "button.submit",
    "button[aria-label*='submit']",
    "button[title*='submit']",
]


def get_submit_selectors() -> List[str]:
    return [SUBMIT_BUTTON_LOCATOR] + SUBMIT_BUTTON_FALLBACK_LOCATORS


# Phrases that mark a successful submission (matched case-insensitively)
SUBMIT_SUCCESS_INDICATORS: List[str] = [
    'submissionId',
    'confirmation',
    "success! we've captured your submission",
    'form submitted successfully',
    'thank you for your submission',
]

# Option containers checked, in priority order, after typing into a dropdown
DROPDOWN_OPTION_SELECTORS: List[str] = [
    '[role="listbox"] [role="option"]',
    '.dropdown-option',
    '.option',
    'li',
    '[data-value]',
    '.dropdown-menu .dropdown-item',
    '.select-options .option',
]

# Key pressed to commit a dropdown selection
DROPDOWN_COMMIT_KEY = 'Enter'

# Response headers carrying request correlation ids
CORRELATION_HEADERS: List[str] = [
    'x-request-id',
    'x-amzn-trace-id',
    'x-correlation-id',
]
