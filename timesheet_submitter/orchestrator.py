"""
Submission orchestration.

Ties the pieces together for one run: pick the pending entries, route
them to their quarter's form, log in, fill and submit each entry through
the retry ladder, and record the result in the store.

The run is strictly sequential on a single page.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .config import Config
from .errors import BotNavigationError, LocatorNotFound, SubmitterError
from .form_interactor import FormInteractor
from .logging_utils import get_logger, log_error, log_section, log_step, log_success, log_warning
from .login import LoginManager
from .models import FieldSpec, FormTarget, QuarterWindow, RunSummary, TimesheetEntry
from .playwright_client import FormBrowser
from .quarters import (
    DEFAULT_QUARTER_WINDOWS,
    build_form_target,
    get_quarter_by_id,
    get_quarter_for_date,
    group_entries_by_quarter,
    validate_quarter_availability,
)
from .retry_ladder import RetryLadder
from .selectors import FIELD_DEFINITIONS, FIELD_ORDER, REQUIRED_FIELDS, get_tool_locator
from .store import TimesheetStore
from .submission_monitor import SubmissionMonitor
from .time_utils import format_hours, iso_to_form_date, TimeParseError
from .waiting import wait_for_element

logger = get_logger()


def build_field_values(entry: TimesheetEntry) -> Dict[str, str]:
    """
    Map an entry onto form field keys.

    Example:
        >>> build_field_values(TimesheetEntry('2025-01-15', 540, 630, 'P', 'T'))['hours']
        '1.5'
    """
    try:
        form_date = iso_to_form_date(entry.date)
    except TimeParseError:
        form_date = ''
    return {
        'project_code': entry.project or '',
        'date': form_date,
        'hours': format_hours(entry.hours),
        'tool': entry.tool or '',
        'task_description': entry.task_description or '',
        'detail_code': entry.charge_code or '',
    }


def field_specs_for(entry: TimesheetEntry,
                    definitions: Optional[Dict[str, FieldSpec]] = None) -> Dict[str, FieldSpec]:
    """Field table for an entry, with the project-specific tool locator applied."""
    specs = dict(definitions if definitions is not None else FIELD_DEFINITIONS)
    tool_locator = get_tool_locator(entry.project)
    if tool_locator and 'tool' in specs:
        specs['tool'] = replace(specs['tool'], locator=tool_locator)
    return specs


def validate_entry(entry: TimesheetEntry, window: Optional[QuarterWindow] = None,
                   definitions: Optional[Dict[str, FieldSpec]] = None) -> List[str]:
    """
    Check an entry before touching the page.

    Covers the entry's own range rules, required fields, each field's
    validation predicate, and (when a window is given) that the entry's
    date actually belongs to that window's form.

    Returns:
        List of problems (empty when the entry can be submitted)
    """
    problems = entry.validate()
    values = build_field_values(entry)
    specs = field_specs_for(entry, definitions)

    for key in REQUIRED_FIELDS:
        if not values.get(key):
            problems.append(f"Missing required field: {key}")

    for key, value in values.items():
        spec = specs.get(key)
        if spec is None or not value:
            continue
        if not spec.validation(value):
            problems.append(spec.error_message(value))

    if window is not None and get_quarter_for_date(entry.date, [window]) is None:
        problems.append(
            f"Entry date {entry.date} does not belong to {window.id} "
            f"({window.start_date} to {window.end_date})"
        )

    return problems


class SubmissionOrchestrator:
    """
    Runs a submission pass over the store's pending entries.

    Args:
        config: Application configuration
        store: Store handle supplying entries and recording results
        windows: Quarter window table
        credentials: Login values keyed by value_key ("email", "password")
        browser_factory: Callable returning an async context manager with
            ``page`` and ``take_screenshot()`` (defaults to FormBrowser)
        interactor: Field filler (built from config if None)
        login_manager: Login flow (built from config if None)
        sleep: Async sleep used between retry levels
    """

    def __init__(self, config: Config, store: TimesheetStore,
                 windows: Sequence[QuarterWindow] = DEFAULT_QUARTER_WINDOWS,
                 credentials: Optional[Dict[str, str]] = None,
                 browser_factory: Callable = FormBrowser,
                 interactor: Optional[FormInteractor] = None,
                 login_manager: Optional[LoginManager] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config
        self.store = store
        self.windows = list(windows)
        self.credentials = dict(credentials or {})
        self.browser_factory = browser_factory
        self.interactor = interactor or FormInteractor(
            element_wait=config.element_wait_settings(),
            option_wait=config.wait_settings(),
        )
        self.login_manager = login_manager or LoginManager.from_config(config)
        self.sleep = sleep

    def plan(self, entries: Sequence[TimesheetEntry],
             quarter_ids: Optional[Sequence[str]] = None) -> Dict[str, List[TimesheetEntry]]:
        """Group entries by quarter, optionally keeping only some quarters."""
        grouped = group_entries_by_quarter(entries, self.windows)
        if quarter_ids:
            wanted = set(quarter_ids)
            grouped = {qid: group for qid, group in grouped.items() if qid in wanted}
        return grouped

    async def run(self, entries: Optional[Sequence[TimesheetEntry]] = None,
                  quarter_ids: Optional[Sequence[str]] = None) -> RunSummary:
        """
        Submit entries (the store's pending entries by default).

        Returns:
            Run summary

        Raises:
            LocatorNotFound: If the field table is misconfigured
            BotNavigationError: If the form cannot be opened
            LoginStepTimeout: If a mandatory login step fails
        """
        if entries is None:
            entries = self.store.get_pending_entries()

        summary = RunSummary(total=len(entries))
        log_section(f"SUBMITTING {len(entries)} ENTRIES")

        routable = group_entries_by_quarter(entries, self.windows)
        routed_count = sum(len(group) for group in routable.values())
        summary.unroutable = len(entries) - routed_count
        if summary.unroutable:
            for entry in entries:
                problem = validate_quarter_availability(entry.date, self.windows)
                if problem:
                    log_warning(f"Entry {entry.id} ({entry.date}) left pending: {problem}")

        grouped = self.plan(entries, quarter_ids)
        planned = sum(len(group) for group in grouped.values())
        summary.skipped = routed_count - planned

        if self.config.dry_run:
            for quarter_id, group in grouped.items():
                logger.info(f"{quarter_id}: {len(group)} entries would be submitted")
            summary.skipped += planned
            return summary

        if not grouped:
            log_warning("Nothing to submit")
            return summary

        async with self.browser_factory(self.config) as browser:
            logged_in = False
            for quarter_id, group in grouped.items():
                if summary.stopped_early:
                    summary.skipped += len(group)
                    continue

                window = get_quarter_by_id(quarter_id, self.windows)
                target = build_form_target(window)
                log_step(f"{window.name}: {len(group)} entries")

                for entry in group:
                    if summary.stopped_early:
                        summary.skipped += 1
                        continue

                    if not logged_in:
                        await self.login_manager.login(browser.page, target.base_url, self.credentials)
                        logged_in = True
                    else:
                        await self._open_form(browser.page, target)

                    ok = await self._process_entry(browser, entry, window, target, summary)
                    if not ok and self.config.stop_on_row_failure:
                        log_warning("Stopping run after failed entry (stop_on_row_failure)")
                        summary.stopped_early = True

        return summary

    async def _open_form(self, page: Page, target: FormTarget):
        """Load a fresh form and wait until its first field is visible."""
        await self.login_manager.navigate(page, target.base_url)
        first = FIELD_DEFINITIONS[FIELD_ORDER[0]].locator
        if not await wait_for_element(page, first, self.config.element_wait_settings()):
            raise BotNavigationError(f"Form did not load at {target.base_url}")

    async def _fill_entry(self, page: Page, entry: TimesheetEntry):
        values = build_field_values(entry)
        specs = field_specs_for(entry)
        for key in FIELD_ORDER:
            spec = specs[key]
            value = values.get(key, '')
            if not value and spec.optional:
                continue
            await self.interactor.fill_field(page, spec, value)

    async def _process_entry(self, browser, entry: TimesheetEntry, window: QuarterWindow,
                             target: FormTarget, summary: RunSummary) -> bool:
        """
        Fill and submit one entry, recording the result.

        Returns:
            True if the entry was submitted (or filled, in fill-only mode)
        """
        page = browser.page
        label = f"{entry.id}:{entry.date}:{entry.project}"

        problems = validate_entry(entry, window)
        if problems:
            reason = "; ".join(problems)
            log_error(f"Entry {label} rejected: {reason}")
            self._mark_failed(entry, reason, summary)
            return False

        try:
            if not self.config.submit_after_filling:
                await self._fill_entry(page, entry)
                summary.filled += 1
                log_success(f"Entry {label} filled (not submitted)")
                return True

            monitor = SubmissionMonitor.from_config(self.config, target)
            ladder = RetryLadder(
                fill=lambda: self._fill_entry(page, entry),
                submit=lambda: monitor.submit(page),
                quick_delay=self.config.quick_retry_delay,
                refill_delay=self.config.full_refill_delay,
                sleep=self.sleep,
            )
            outcome = await ladder.run(label)
        except LocatorNotFound:
            # Configuration error: abort the run, the entry stays as it was
            raise
        except (SubmitterError, PlaywrightError) as e:
            log_error(f"Entry {label} failed: {e}")
            self._mark_failed(entry, str(e), summary)
            await self._recover(browser, entry, target)
            return False

        if outcome.submitted:
            if entry.id is not None:
                self.store.mark_submitted([entry.id])
            summary.record_success(window.id)
            log_success(f"Entry {label} submitted")
            return True

        reason = outcome.last_error or "Submission could not be verified"
        log_error(f"Entry {label} failed after {len(outcome.attempts)} attempt(s): {reason}")
        self._mark_failed(entry, reason, summary)
        await self._recover(browser, entry, target)
        return False

    def _mark_failed(self, entry: TimesheetEntry, reason: str, summary: RunSummary):
        summary.record_failure(entry.id, reason)
        if entry.id is not None:
            self.store.mark_failed([entry.id], reason)

    async def _recover(self, browser, entry: TimesheetEntry, target: FormTarget):
        """Capture a screenshot if configured, then reload the form."""
        if self.config.screenshot_dir:
            stamp = datetime.now().strftime('%Y%m%d-%H%M%S')
            path = Path(self.config.screenshot_dir) / f"entry-{entry.id}-{stamp}.png"
            await browser.take_screenshot(str(path))
        try:
            await self.login_manager.navigate(browser.page, target.base_url)
        except BotNavigationError as e:
            log_error(f"Recovery navigation failed: {e}")
            raise


def run_submission(config: Config, store: TimesheetStore,
                   windows: Sequence[QuarterWindow] = DEFAULT_QUARTER_WINDOWS,
                   credentials: Optional[Dict[str, str]] = None,
                   quarter_ids: Optional[Sequence[str]] = None) -> RunSummary:
    """
    Run a complete submission pass (synchronous entry point).

    Args:
        config: Application configuration
        store: Store handle
        windows: Quarter window table
        credentials: Login values
        quarter_ids: Restrict the run to these quarters

    Returns:
        Run summary
    """
    orchestrator = SubmissionOrchestrator(config, store, windows, credentials)
    return asyncio.run(orchestrator.run(quarter_ids=quarter_ids))
