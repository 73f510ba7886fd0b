"""
Tests for the exponential-backoff waiter and element waits.
"""

import asyncio

from fakes import FakeClock, FakePage
from timesheet_submitter.config import WaitSettings
from timesheet_submitter.waiting import (
    element_in_state,
    first_visible,
    wait_for_dropdown_options,
    wait_for_element,
    wait_for_page_load,
    wait_until,
)

FAST = WaitSettings(base_timeout=0.01, max_timeout=0.05, multiplier=1.5)


def _true_after(polls_needed):
    calls = {'n': 0}

    def condition():
        calls['n'] += 1
        return calls['n'] >= polls_needed

    return condition, calls


class TestWaitUntil:
    """Tests for wait_until()."""

    def test_returns_true_after_n_polls(self):
        """Test the waiter polls until the condition holds."""
        clock = FakeClock()
        condition, calls = _true_after(3)

        result = asyncio.run(wait_until(condition, base_timeout=0.25, max_timeout=2.0,
                                        multiplier=2.0, clock=clock, sleep=clock.sleep))

        assert result is True
        assert calls['n'] == 3
        assert clock.sleeps == [0.25, 0.5]
        assert clock.now < 2.0

    def test_immediate_success_does_not_sleep(self):
        """Test a condition already true returns without sleeping."""
        clock = FakeClock()

        result = asyncio.run(wait_until(lambda: True, clock=clock, sleep=clock.sleep))

        assert result is True
        assert clock.sleeps == []

    def test_always_false_spends_whole_budget(self):
        """Test the waiter gives up only once the budget has elapsed."""
        clock = FakeClock()
        condition, calls = _true_after(100)

        result = asyncio.run(wait_until(condition, base_timeout=0.25, max_timeout=2.0,
                                        multiplier=2.0, clock=clock, sleep=clock.sleep))

        assert result is False
        assert clock.now >= 2.0
        assert clock.sleeps == [0.25, 0.5, 1.0, 0.25]
        assert calls['n'] == 4

    def test_sleep_never_overshoots_remaining_budget(self):
        """Test the last sleep is clamped to the remaining budget."""
        clock = FakeClock()

        asyncio.run(wait_until(lambda: False, base_timeout=0.2, max_timeout=10.0,
                               multiplier=1.2, clock=clock, sleep=clock.sleep))

        assert abs(clock.now - 10.0) < 1e-9
        assert clock.sleeps[0] == 0.2
        assert abs(clock.sleeps[1] - 0.24) < 1e-9

    def test_disabled_sleeps_once_and_evaluates_once(self):
        """Test disabled backoff falls back to one fixed sleep."""
        clock = FakeClock()
        condition, calls = _true_after(2)

        result = asyncio.run(wait_until(condition, base_timeout=0.25, enabled=False,
                                        clock=clock, sleep=clock.sleep))

        assert result is False
        assert calls['n'] == 1
        assert clock.sleeps == [0.25]

    def test_async_condition(self):
        """Test coroutine conditions are awaited."""
        clock = FakeClock()
        polls = []

        async def condition():
            polls.append(1)
            return len(polls) == 2

        result = asyncio.run(wait_until(condition, base_timeout=0.25, max_timeout=2.0,
                                        clock=clock, sleep=clock.sleep))

        assert result is True
        assert len(polls) == 2


class TestWaitSettings:
    """Tests for WaitSettings."""

    def test_bounded_caps_budget_and_base(self):
        """Test bounded() never raises a budget, only lowers it."""
        settings = WaitSettings(base_timeout=2.0, max_timeout=10.0, multiplier=1.5)

        bounded = settings.bounded(1.0)

        assert bounded.max_timeout == 1.0
        assert bounded.base_timeout == 1.0
        assert bounded.multiplier == 1.5
        assert WaitSettings(max_timeout=0.5).bounded(1.0).max_timeout == 0.5


class TestElementWaits:
    """Tests for element state checks against a fake page."""

    def test_element_in_state(self):
        """Test visible, hidden and attached states."""
        page = FakePage()
        page.add('#shown')
        page.add('#hidden', visible=False)

        assert asyncio.run(element_in_state(page, '#shown', 'visible'))
        assert not asyncio.run(element_in_state(page, '#hidden', 'visible'))
        assert asyncio.run(element_in_state(page, '#hidden', 'attached'))
        assert asyncio.run(element_in_state(page, '#hidden', 'hidden'))
        assert asyncio.run(element_in_state(page, '#missing', 'hidden'))
        assert not asyncio.run(element_in_state(page, '#missing', 'visible'))

    def test_wait_for_element_times_out(self):
        """Test a missing element yields False instead of raising."""
        page = FakePage()

        assert asyncio.run(wait_for_element(page, '#missing', FAST)) is False

    def test_wait_for_element_sees_late_element(self):
        """Test an element appearing during the wait is found."""
        page = FakePage()
        element = page.add('#late', visible=False)

        async def scenario():
            async def reveal():
                await asyncio.sleep(0.01)
                element.visible = True

            task = asyncio.create_task(reveal())
            found = await wait_for_element(page, '#late', WaitSettings(0.005, 1.0, 1.2))
            await task
            return found

        assert asyncio.run(scenario()) is True

    def test_wait_for_page_load(self):
        """Test readyState polling."""
        page = FakePage()
        assert asyncio.run(wait_for_page_load(page, FAST)) is True

        page.ready_state = 'loading'
        assert asyncio.run(wait_for_page_load(page, FAST)) is False

    def test_first_visible_respects_priority(self):
        """Test the first visible selector in list order wins."""
        page = FakePage()
        page.add('.option')
        page.add('li')

        assert asyncio.run(first_visible(page, ['[role="option"]', 'li', '.option'])) == 'li'
        assert asyncio.run(first_visible(page, ['#none'])) is None

    def test_dropdown_option_wait_is_capped(self):
        """Test the option wait never exceeds one second."""
        page = FakePage()

        async def scenario():
            loop = asyncio.get_running_loop()
            started = loop.time()
            result = await wait_for_dropdown_options(
                page, ['li'], WaitSettings(base_timeout=0.05, max_timeout=30.0, multiplier=2.0)
            )
            return result, loop.time() - started

        result, elapsed = asyncio.run(scenario())

        assert result is False
        assert elapsed < 2.0
