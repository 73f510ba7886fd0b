"""
Configuration for the timesheet submitter.

This module centralizes timeouts, wait tuning, submission verification and
retry settings. Browser timeouts are in milliseconds (Playwright's unit);
everything driven by the backoff waiter is in seconds.
"""

import os
from dataclasses import dataclass, field, fields
from typing import List, Optional

from .selectors import SUBMIT_SUCCESS_INDICATORS

# Environment variables whose names differ from the upper-cased field name
ENV_ALIASES = {
    'db_path': 'TIMESHEET_DB',
    'email': 'TIMESHEET_EMAIL',
    'headless': 'BROWSER_HEADLESS',
    'stop_on_row_failure': 'AUTOMATION_STOP_ON_ROW_FAILURE',
    'response_content_validation': 'ENABLE_RESPONSE_CONTENT_VALIDATION',
    'aria_disabled_check': 'ENABLE_ARIA_DISABLED_CHECK',
}


@dataclass(frozen=True)
class WaitSettings:
    """
    Tuning for one family of backoff waits.

    Attributes:
        base_timeout: First sleep between polls (seconds)
        max_timeout: Total wait budget (seconds)
        multiplier: Growth factor applied to the sleep after each poll
        enabled: When False, sleep base_timeout once and evaluate once
    """
    base_timeout: float = 0.2
    max_timeout: float = 10.0
    multiplier: float = 1.2
    enabled: bool = True

    def bounded(self, max_timeout: float) -> 'WaitSettings':
        """Return a copy whose budget is capped at max_timeout."""
        return WaitSettings(
            base_timeout=min(self.base_timeout, max_timeout),
            max_timeout=min(self.max_timeout, max_timeout),
            multiplier=self.multiplier,
            enabled=self.enabled,
        )


@dataclass
class Config:
    """
    Application configuration.

    Attributes:
        db_path: Path of the SQLite store (":memory:" for a throwaway store)
        quarters_path: Optional JSON file with the quarter window table
        email: Login email for the form's SSO
        headless: Whether to run the browser in headless mode
        navigation_timeout: Timeout for page navigation (milliseconds)
        element_timeout: Default Playwright timeout for element operations (milliseconds)
        dynamic_wait_enabled: Use exponential backoff waits (False = one fixed sleep)
        dynamic_wait_base_timeout: First backoff sleep (seconds)
        dynamic_wait_max_timeout: Backoff budget for optional/best-effort waits (seconds)
        dynamic_wait_multiplier: Backoff growth factor
        global_timeout: Backoff budget for required elements (seconds)
        submit_after_filling: Submit the form after filling (False = fill-only)
        submit_verify_timeout: Budget for confirming a submission (seconds)
        submit_detection_timeout: Budget for finding an eligible submit control (seconds)
        submit_success_min_status: Lowest HTTP status counted as success
        submit_success_max_status: Highest HTTP status counted as success
        response_content_validation: Require a success phrase or submission id in the body
        submit_button_require_enabled: Skip disabled submit controls
        aria_disabled_check: Skip submit controls with aria-disabled set
        success_indicators: Phrases that mark a successful submission
        quick_retry_delay: Delay before the re-click retry (seconds)
        full_refill_delay: Delay before the re-fill retry (seconds)
        stop_on_row_failure: Stop the run when an entry exhausts its retries
        login_max_attempts: Navigation attempts before login gives up
        login_backoff: Delay between navigation attempts (seconds)
        screenshot_dir: Directory for failure screenshots (None disables them)
        dry_run: Plan the run without opening a browser
        verbose: Enable debug logging
    """
    db_path: str = "timesheet.sqlite3"
    quarters_path: Optional[str] = None
    email: Optional[str] = None

    # Browser
    headless: bool = False
    navigation_timeout: int = 30000  # 30 seconds
    element_timeout: int = 10000     # 10 seconds

    # Backoff waiting
    dynamic_wait_enabled: bool = True
    dynamic_wait_base_timeout: float = 0.2
    dynamic_wait_max_timeout: float = 10.0
    dynamic_wait_multiplier: float = 1.2
    global_timeout: float = 10.0

    # Submission
    submit_after_filling: bool = True
    submit_verify_timeout: float = 3.0
    submit_detection_timeout: float = 10.0
    submit_success_min_status: int = 200
    submit_success_max_status: int = 299
    response_content_validation: bool = True
    submit_button_require_enabled: bool = True
    aria_disabled_check: bool = True
    success_indicators: List[str] = field(
        default_factory=lambda: list(SUBMIT_SUCCESS_INDICATORS)
    )

    # Retry ladder
    quick_retry_delay: float = 1.0
    full_refill_delay: float = 2.0
    stop_on_row_failure: bool = True

    # Login
    login_max_attempts: int = 3
    login_backoff: float = 1.0

    # Diagnostics / CLI
    screenshot_dir: Optional[str] = None
    dry_run: bool = False
    verbose: bool = False

    def wait_settings(self) -> WaitSettings:
        """Backoff settings for best-effort waits (dropdown options, page load)."""
        return WaitSettings(
            base_timeout=self.dynamic_wait_base_timeout,
            max_timeout=self.dynamic_wait_max_timeout,
            multiplier=self.dynamic_wait_multiplier,
            enabled=self.dynamic_wait_enabled,
        )

    def element_wait_settings(self) -> WaitSettings:
        """Backoff settings for required elements (fields, login steps)."""
        return WaitSettings(
            base_timeout=self.dynamic_wait_base_timeout,
            max_timeout=self.global_timeout,
            multiplier=self.dynamic_wait_multiplier,
            enabled=self.dynamic_wait_enabled,
        )

    def verify_wait_settings(self) -> WaitSettings:
        """Backoff settings for submission verification (starts at half the base sleep)."""
        return WaitSettings(
            base_timeout=self.dynamic_wait_base_timeout * 0.5,
            max_timeout=min(self.submit_verify_timeout, self.global_timeout),
            multiplier=self.dynamic_wait_multiplier,
            enabled=self.dynamic_wait_enabled,
        )

    def validate(self):
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.db_path:
            raise ValueError("Database path is required")

        if self.dynamic_wait_base_timeout <= 0:
            raise ValueError("dynamic_wait_base_timeout must be positive")

        if self.dynamic_wait_multiplier < 1.0:
            raise ValueError(
                f"dynamic_wait_multiplier must be >= 1.0, got: {self.dynamic_wait_multiplier}"
            )

        for name in ('dynamic_wait_max_timeout', 'global_timeout',
                     'submit_verify_timeout', 'submit_detection_timeout'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if not (100 <= self.submit_success_min_status <= self.submit_success_max_status <= 599):
            raise ValueError(
                f"Invalid success status range: "
                f"{self.submit_success_min_status}-{self.submit_success_max_status}"
            )

        if self.quick_retry_delay < 0 or self.full_refill_delay < 0:
            raise ValueError("Retry delays cannot be negative")

        if self.login_max_attempts < 1:
            raise ValueError(f"login_max_attempts must be at least 1, got: {self.login_max_attempts}")

        if not self.success_indicators:
            raise ValueError("success_indicators cannot be empty")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> 'Config':
        """
        Build a configuration from environment variables.

        Every field can be overridden with its upper-cased name
        (e.g. GLOBAL_TIMEOUT=15, DYNAMIC_WAIT_ENABLED=false), or with the
        name listed in ENV_ALIASES. Keyword overrides win over the environment.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Explicit field values

        Returns:
            Config instance
        """
        if environ is None:
            environ = os.environ

        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_ALIASES.get(f.name, f.name.upper()))
            if raw is None or f.name == 'success_indicators':
                continue
            values[f.name] = _coerce(raw, f.default)

        values.update(overrides)
        return cls(**values)


def _coerce(raw: str, default):
    """Convert an environment string to the type of the field default."""
    if isinstance(default, bool):
        return raw.strip().lower() in ('1', 'true', 'yes', 'on')
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
