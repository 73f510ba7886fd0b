"""
Submission verification.

SubmissionMonitor clicks the form's submit control and decides whether the
submission actually went through, using two channels:

- network: a response in the success status range whose URL matches one of
  the form's submission patterns, optionally with a success phrase or a
  submission id in its body
- DOM: a visible success phrase on the page

URL patterns use a simplified matcher: ``*`` characters are stripped and
the remainder must appear somewhere in the URL. This is looser than a real
glob (``**host/**`` matches any URL on the host) and is a known limitation.
"""

import json
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page, Response

from .config import Config, WaitSettings
from .errors import SubmitControlNotFound
from .logging_utils import get_logger, log_event
from .models import FormTarget, SubmissionOutcome
from .selectors import CORRELATION_HEADERS, get_submit_selectors
from .waiting import wait_with

logger = get_logger()

_SUBMISSION_ID_RE = re.compile(r'"submissionId"\s*:\s*"([^"]+)"', re.IGNORECASE)
_TOKEN_RE = re.compile(r'"token"\s*:\s*"([^"]+)"', re.IGNORECASE)


def matches_url_pattern(url: str, patterns: Iterable[str]) -> bool:
    """
    Check a URL against wildcard patterns (substring match after stripping ``*``).

    Examples:
        >>> matches_url_pattern('https://forms.example.test/api/submit/abc', ['**/api/submit/abc'])
        True
        >>> matches_url_pattern('https://cdn.example.test/app.js', ['**/api/submit/**'])
        False
    """
    for pattern in patterns:
        needle = pattern.replace('*', '')
        if needle and needle in url:
            return True
    return False


@dataclass
class RecordedResponse:
    """A response that matched the success criteria."""
    url: str
    status: int
    body: Optional[str] = None


def _parse_json_object(body: str) -> Optional[dict]:
    text = body.strip()
    if not (text.startswith('{') and text.endswith('}')):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


class ResponseRecorder:
    """
    Records matching responses while the context is open.

    The listener is attached on entry and removed on exit, whatever the
    outcome, so one recorder covers exactly one submit attempt.

    Example:
        >>> async with ResponseRecorder(page, patterns) as recorder:
        ...     await button.click()
        ...     ...
        >>> recorder.matched
    """

    def __init__(self, page: Page, url_patterns: Sequence[str],
                 min_status: int = 200, max_status: int = 299):
        self.page = page
        self.url_patterns = list(url_patterns)
        self.min_status = min_status
        self.max_status = max_status
        self.matched: List[RecordedResponse] = []
        self.observed = 0
        self.submission_ids: List[str] = []
        self.tokens: List[str] = []
        self.correlation_ids: List[str] = []
        self._handler = self._on_response

    async def __aenter__(self) -> 'ResponseRecorder':
        self.page.on('response', self._handler)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.page.remove_listener('response', self._handler)

    async def _on_response(self, response: Response):
        self.observed += 1
        url = response.url
        status = response.status

        if not (self.min_status <= status <= self.max_status):
            return
        if not matches_url_pattern(url, self.url_patterns):
            return

        body = None
        try:
            body = await response.text()
        except PlaywrightError as e:
            logger.debug(f"Could not read submission response body ({url}): {e}")

        self._collect_correlation_id(response)
        if body:
            self._collect_ids(body)

        # Appended last so a waiter never sees a response before its ids
        self.matched.append(RecordedResponse(url=url, status=status, body=body))

    def _collect_correlation_id(self, response: Response):
        for headers in (response.headers, response.request.headers):
            for name in CORRELATION_HEADERS:
                value = headers.get(name)
                if value:
                    self.correlation_ids.append(str(value))
                    return

    def _collect_ids(self, body: str):
        parsed = _parse_json_object(body)
        if parsed is not None:
            submission_id = parsed.get('submissionId')
            token = parsed.get('token')
            if isinstance(submission_id, str) and submission_id:
                self.submission_ids.append(submission_id)
            if isinstance(token, str) and token:
                self.tokens.append(token)
            return

        match = _SUBMISSION_ID_RE.search(body)
        if match:
            self.submission_ids.append(match.group(1))
        match = _TOKEN_RE.search(body)
        if match:
            self.tokens.append(match.group(1))


def evaluate_submission(matched: Sequence[RecordedResponse],
                        dom_success: bool,
                        submission_ids: Sequence[str] = (),
                        tokens: Sequence[str] = (),
                        correlation_ids: Sequence[str] = (),
                        content_validation: bool = True,
                        indicators: Sequence[str] = ()) -> SubmissionOutcome:
    """
    Decide whether a submit attempt succeeded.

    - A DOM success indicator alone is enough.
    - Without a matching response the attempt failed.
    - With content validation disabled, a matching response is enough.
    - Otherwise a response body must contain a success phrase, or a
      submission id must have been parsed. Tokens are carried along for
      diagnostics but never confirm a submission.
    """
    base = dict(
        matched_responses=len(matched),
        correlation_ids=list(correlation_ids),
        submission_ids=list(submission_ids),
        tokens=list(tokens),
    )

    if dom_success:
        return SubmissionOutcome(success=True, method='dom', **base)

    if not matched:
        return SubmissionOutcome(success=False, **base)

    if not content_validation:
        return SubmissionOutcome(success=True, method='network', **base)

    lowered = [i.lower() for i in indicators]
    body_has_indicator = any(
        r.body and any(i in r.body.lower() for i in lowered)
        for r in matched
    )
    if body_has_indicator or submission_ids:
        return SubmissionOutcome(success=True, method='network', **base)

    return SubmissionOutcome(success=False, **base)


class SubmissionMonitor:
    """
    Clicks the submit control and verifies the submission.

    Args:
        url_patterns: Success URL patterns for the current form
        indicators: Success phrases (DOM text and response bodies)
        verify_wait: Backoff settings for verification
        detection_wait: Backoff settings for finding the submit control
        selectors: Submit control selectors, primary first
        min_status: Lowest success status
        max_status: Highest success status
        content_validation: Require a phrase or submission id in the body
        require_enabled: Skip disabled controls
        aria_disabled_check: Skip controls with aria-disabled set
    """

    def __init__(self, url_patterns: Sequence[str], indicators: Sequence[str],
                 verify_wait: WaitSettings, detection_wait: WaitSettings,
                 selectors: Optional[Sequence[str]] = None,
                 min_status: int = 200, max_status: int = 299,
                 content_validation: bool = True,
                 require_enabled: bool = True,
                 aria_disabled_check: bool = True):
        self.url_patterns = list(url_patterns)
        self.indicators = list(indicators)
        self.verify_wait = verify_wait
        self.detection_wait = detection_wait
        self.selectors = list(selectors) if selectors else get_submit_selectors()
        self.min_status = min_status
        self.max_status = max_status
        self.content_validation = content_validation
        self.require_enabled = require_enabled
        self.aria_disabled_check = aria_disabled_check

    @classmethod
    def from_config(cls, config: Config, target: FormTarget) -> 'SubmissionMonitor':
        """Build a monitor for one form target."""
        detection = config.element_wait_settings()
        return cls(
            url_patterns=target.success_url_patterns,
            indicators=config.success_indicators,
            verify_wait=config.verify_wait_settings(),
            detection_wait=WaitSettings(
                base_timeout=detection.base_timeout,
                max_timeout=config.submit_detection_timeout,
                multiplier=detection.multiplier,
                enabled=detection.enabled,
            ),
            min_status=config.submit_success_min_status,
            max_status=config.submit_success_max_status,
            content_validation=config.response_content_validation,
            require_enabled=config.submit_button_require_enabled,
            aria_disabled_check=config.aria_disabled_check,
        )

    async def _eligible(self, locator: Locator) -> bool:
        try:
            if await locator.count() == 0:
                return False
            candidate = locator.first
            if not await candidate.is_visible():
                return False
            if self.require_enabled and not await candidate.is_enabled():
                return False
            if self.aria_disabled_check:
                aria_disabled = await candidate.get_attribute('aria-disabled')
                if aria_disabled and aria_disabled != 'false':
                    return False
        except PlaywrightError:
            return False
        return True

    async def find_submit_button(self, page: Page) -> Optional[Locator]:
        """
        Find the first eligible submit control, in selector priority order.

        Returns:
            Locator of the control, or None if none became eligible in time
        """
        found: List[Locator] = []

        async def scan() -> bool:
            for selector in self.selectors:
                locator = page.locator(selector)
                if await self._eligible(locator):
                    logger.debug(f"Found submit button: {selector}")
                    found.append(locator.first)
                    return True
            return False

        await wait_with(scan, self.detection_wait, operation="submit button")
        if not found:
            logger.warning(f"Could not find submit button ({len(self.selectors)} selectors tried)")
            return None
        return found[0]

    async def check_dom_indicators(self, page: Page) -> bool:
        """Check whether any success phrase is visible on the page."""
        for indicator in self.indicators:
            try:
                if await page.locator(f"text={indicator}").first.is_visible():
                    logger.debug(f"DOM success indicator visible: {indicator}")
                    return True
            except PlaywrightError:
                continue
        return False

    async def submit_form(self, page: Page) -> SubmissionOutcome:
        """
        Click the submit control and verify the submission.

        Raises:
            SubmitControlNotFound: If no eligible submit control was found
        """
        async with ResponseRecorder(page, self.url_patterns,
                                    self.min_status, self.max_status) as recorder:
            button = await self.find_submit_button(page)
            if button is None:
                raise SubmitControlNotFound(len(self.selectors))

            await button.click()

            dom_success = False

            async def confirmed() -> bool:
                nonlocal dom_success
                if recorder.matched:
                    return True
                dom_success = await self.check_dom_indicators(page)
                return dom_success

            if not await wait_with(confirmed, self.verify_wait, operation="submission verification"):
                logger.debug(f"Verification timed out ({recorder.observed} response(s) observed)")

            outcome = evaluate_submission(
                recorder.matched,
                dom_success,
                submission_ids=recorder.submission_ids,
                tokens=recorder.tokens,
                correlation_ids=recorder.correlation_ids,
                content_validation=self.content_validation,
                indicators=self.indicators,
            )

        log_event(
            'submit_verified' if outcome.success else 'submit_unverified',
            logger=logger,
            method=outcome.method or 'none',
            responses=outcome.matched_responses,
            submission_ids=len(outcome.submission_ids),
            tokens=len(outcome.tokens),
        )
        return outcome

    async def submit(self, page: Page) -> bool:
        """Click the submit control; True if the submission was confirmed."""
        outcome = await self.submit_form(page)
        return outcome.success
