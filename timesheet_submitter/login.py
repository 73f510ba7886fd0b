"""
Login flow for the form's single sign-on.

The flow is an ordered list of LoginStep records (see selectors.LOGIN_STEPS).
Each step waits for its element first; an optional step whose element never
shows up is skipped, a mandatory one aborts the login.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .config import Config, WaitSettings
from .errors import BotNavigationError, LoginStepTimeout, SubmitterError
from .logging_utils import get_logger, log_step, log_success, log_warning, redact
from .selectors import LOGIN_STEPS, LoginStep
from .waiting import wait_for_element, wait_for_page_load

logger = get_logger()


class LoginManager:
    """
    Navigates to the form and runs the login steps.

    Args:
        steps: Ordered login steps
        element_wait: Backoff settings for step elements
        navigation_timeout_ms: Playwright timeout for each navigation attempt
        max_attempts: Navigation attempts before giving up
        backoff: Fixed delay between navigation attempts (seconds)
        sleep: Async sleep function
    """

    def __init__(self, steps: Sequence[LoginStep] = LOGIN_STEPS,
                 element_wait: Optional[WaitSettings] = None,
                 navigation_timeout_ms: int = 30000,
                 max_attempts: int = 3,
                 backoff: float = 1.0,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.steps = list(steps)
        self.element_wait = element_wait or WaitSettings()
        self.navigation_timeout_ms = navigation_timeout_ms
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.sleep = sleep

    @classmethod
    def from_config(cls, config: Config, steps: Sequence[LoginStep] = LOGIN_STEPS) -> 'LoginManager':
        return cls(
            steps=steps,
            element_wait=config.element_wait_settings(),
            navigation_timeout_ms=config.navigation_timeout,
            max_attempts=config.login_max_attempts,
            backoff=config.login_backoff,
        )

    async def navigate(self, page: Page, url: str):
        """
        Open the form URL, retrying failed navigations.

        Raises:
            BotNavigationError: If every attempt failed
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                await page.goto(url, timeout=self.navigation_timeout_ms,
                                wait_until='domcontentloaded')
                logger.debug(f"Navigated to {url} (attempt {attempt})")
                return
            except PlaywrightError as e:
                last_error = e
                log_warning(f"Navigation attempt {attempt}/{self.max_attempts} failed: {e}")
                if attempt < self.max_attempts:
                    await self.sleep(self.backoff)

        raise BotNavigationError(
            f"Failed to open {url} after {self.max_attempts} attempt(s): {last_error}"
        ) from last_error

    async def login(self, page: Page, url: str, credentials: Dict[str, str]):
        """
        Navigate to the form and run every login step.

        Args:
            page: Browser page
            url: Form URL
            credentials: Values for input steps, keyed by value_key

        Raises:
            BotNavigationError: If the form cannot be opened
            LoginStepTimeout: If a mandatory step's element never appears
            SubmitterError: If an input step has no credential value
        """
        log_step(f"Logging in via {url}")
        await self.navigate(page, url)

        for step in self.steps:
            await self.run_step(page, step, credentials)

        log_success("Login complete")

    async def run_step(self, page: Page, step: LoginStep, credentials: Dict[str, str]) -> bool:
        """
        Run one login step.

        Returns:
            True if the step ran, False if an optional step was skipped
        """
        state = step.wait_condition if step.action == 'wait' else 'visible'
        present = await wait_for_element(page, step.locator, self.element_wait, state)
        if not present:
            if step.optional:
                logger.debug(f"Optional login step skipped: {step.name}")
                return False
            raise LoginStepTimeout(step.name, step.locator)

        if step.action == 'wait':
            return True

        target = page.locator(step.locator).first

        if step.action == 'input':
            value = credentials.get(step.value_key or '')
            if value is None:
                raise SubmitterError(f"No credential '{step.value_key}' for login step '{step.name}'")
            logger.debug(f"{step.name}: entering {redact(value, step.sensitive)}")
            await target.fill(value)
            return True

        if step.action == 'click':
            try:
                await target.click()
            except PlaywrightError as e:
                if not step.optional:
                    raise
                logger.debug(f"Optional click '{step.name}' failed: {e}")
                return False
            if step.expects_navigation:
                await wait_for_page_load(page, self.element_wait)
            return True

        raise ValueError(f"Unknown login action '{step.action}' in step '{step.name}'")
