"""
Tests for navigation and the login step sequence.
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from fakes import FakeClock, FakePage
from timesheet_submitter.config import Config, WaitSettings
from timesheet_submitter.errors import BotNavigationError, LoginStepTimeout, SubmitterError
from timesheet_submitter.login import LoginManager
from timesheet_submitter.selectors import FIELD_DEFINITIONS, LOGIN_STEPS, LoginStep

FAST = WaitSettings(base_timeout=0.01, max_timeout=0.05, multiplier=1.5)
FORM_URL = 'https://forms.example.test/b/form/abc'
CREDENTIALS = {'email': 'worker@example.test', 'password': 'hunter2'}


def _manager(steps=LOGIN_STEPS, clock=None, **kwargs):
    clock = clock or FakeClock()
    return LoginManager(steps=steps, element_wait=FAST, sleep=clock.sleep, **kwargs)


class TestNavigate:
    """Tests for LoginManager.navigate()."""

    def test_success_first_try(self):
        """Test a working navigation needs one attempt."""
        page = FakePage()

        asyncio.run(_manager().navigate(page, FORM_URL))

        assert page.url == FORM_URL
        assert page.calls == [('goto', FORM_URL)]

    def test_retries_with_fixed_backoff(self):
        """Test failed navigations are retried after a fixed delay."""
        page = FakePage()
        page.goto_errors = [PlaywrightError('net::ERR_CONNECTION_RESET')]
        clock = FakeClock()

        asyncio.run(_manager(clock=clock, backoff=1.0).navigate(page, FORM_URL))

        assert page.url == FORM_URL
        assert clock.sleeps == [1.0]

    def test_gives_up_after_max_attempts(self):
        """Test BotNavigationError after every attempt failed."""
        page = FakePage()
        page.goto_errors = [PlaywrightError('timeout')] * 3
        clock = FakeClock()

        with pytest.raises(BotNavigationError):
            asyncio.run(_manager(clock=clock, max_attempts=3).navigate(page, FORM_URL))

        assert len(page.calls) == 3
        assert clock.sleeps == [1.0, 1.0]


class TestRunStep:
    """Tests for individual login steps."""

    def test_optional_wait_is_skipped(self):
        """Test an optional step whose element never appears is skipped."""
        step = LoginStep('Prompt', 'wait', '#prompt', optional=True)

        assert asyncio.run(_manager().run_step(FakePage(), step, CREDENTIALS)) is False

    def test_mandatory_wait_aborts(self):
        """Test a mandatory step whose element never appears raises."""
        step = LoginStep('Password', 'wait', '#password')

        with pytest.raises(LoginStepTimeout) as exc_info:
            asyncio.run(_manager().run_step(FakePage(), step, CREDENTIALS))

        assert exc_info.value.step_name == 'Password'

    def test_input_uses_credential(self):
        """Test input steps fill the value named by value_key."""
        page = FakePage()
        page.add('#email')
        step = LoginStep('Email', 'input', '#email', value_key='email', sensitive=True)

        assert asyncio.run(_manager().run_step(page, step, CREDENTIALS)) is True
        assert page.calls == [('fill', '#email', 'worker@example.test')]

    def test_missing_credential(self):
        """Test an input step without its credential fails loudly."""
        page = FakePage()
        page.add('#password')
        step = LoginStep('Password', 'input', '#password', value_key='password', sensitive=True)

        with pytest.raises(SubmitterError):
            asyncio.run(_manager().run_step(page, step, {'email': 'x'}))

    def test_sensitive_values_are_never_logged(self, log_records):
        """Test sensitive inputs are redacted in every log record."""
        page = FakePage()
        page.add('#password')
        step = LoginStep('Password', 'input', '#password', value_key='password', sensitive=True)

        asyncio.run(_manager().run_step(page, step, CREDENTIALS))

        messages = [r.getMessage() for r in log_records]
        assert any('***' in m for m in messages)
        assert not any('hunter2' in m for m in messages)

    def test_optional_click_failure_is_skipped(self):
        """Test a failing optional click does not abort the login."""
        page = FakePage()
        page.add('#stay', click_error=PlaywrightError('intercepted'))
        step = LoginStep('Stay Signed In No', 'click', '#stay', optional=True)

        assert asyncio.run(_manager().run_step(page, step, CREDENTIALS)) is False

    def test_mandatory_click_failure_propagates(self):
        """Test a failing mandatory click is raised."""
        page = FakePage()
        page.add('#go', click_error=PlaywrightError('intercepted'))
        step = LoginStep('Go', 'click', '#go')

        with pytest.raises(PlaywrightError):
            asyncio.run(_manager().run_step(page, step, CREDENTIALS))

    def test_unknown_action(self):
        """Test a misconfigured step is rejected."""
        page = FakePage()
        page.add('#x')

        with pytest.raises(ValueError):
            asyncio.run(_manager().run_step(page, LoginStep('Odd', 'hover', '#x'), CREDENTIALS))


class TestLogin:
    """Tests for the full login sequence."""

    def _sso_page(self):
        page = FakePage()
        for selector in ('#i0116', '#idSIButton9', '#passwordInput', '#submitButton'):
            page.add(selector)
        page.add(FIELD_DEFINITIONS['project_code'].locator)
        return page

    def test_login_skips_absent_optional_steps(self):
        """Test the default flow with only the mandatory screens present."""
        page = self._sso_page()

        asyncio.run(_manager().login(page, FORM_URL, CREDENTIALS))

        assert page.calls == [
            ('goto', FORM_URL),
            ('fill', '#i0116', 'worker@example.test'),
            ('click', '#idSIButton9'),
            ('fill', '#passwordInput', 'hunter2'),
            ('click', '#submitButton'),
        ]

    def test_login_aborts_without_form(self):
        """Test login fails when the form never becomes ready."""
        page = self._sso_page()
        page.remove(FIELD_DEFINITIONS['project_code'].locator)

        with pytest.raises(LoginStepTimeout) as exc_info:
            asyncio.run(_manager().login(page, FORM_URL, CREDENTIALS))

        assert exc_info.value.step_name == 'Wait for Form Page Ready'

    def test_from_config(self):
        """Test config values flow into the manager."""
        config = Config(login_max_attempts=5, login_backoff=0.5, global_timeout=4.0,
                        navigation_timeout=12000)

        manager = LoginManager.from_config(config)

        assert manager.max_attempts == 5
        assert manager.backoff == 0.5
        assert manager.element_wait.max_timeout == 4.0
        assert manager.navigation_timeout_ms == 12000
