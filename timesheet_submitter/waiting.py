"""
Bounded exponential-backoff waiting.

Every wait in the pipeline goes through wait_until(), which polls a
condition with growing sleeps until it holds or the budget runs out. A
timed-out wait returns False; deciding whether that is fatal is up to the
caller.
"""

import asyncio
import inspect
import time
from typing import Awaitable, Callable, Iterable, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .config import WaitSettings
from .logging_utils import get_logger

logger = get_logger()

Condition = Callable[[], Union[bool, Awaitable[bool]]]


async def _evaluate(condition: Condition) -> bool:
    result = condition()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


async def wait_until(
    condition: Condition,
    base_timeout: float = 0.2,
    max_timeout: float = 10.0,
    multiplier: float = 1.2,
    enabled: bool = True,
    operation: str = "operation",
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> bool:
    """
    Poll a condition with exponential backoff.

    After each false poll the waiter sleeps ``current`` seconds, then sets
    ``current = min(current * multiplier, remaining)``. With backoff
    disabled it sleeps ``base_timeout`` once and evaluates once.

    Args:
        condition: Sync or async callable returning a truthy value when done
        base_timeout: First sleep (seconds)
        max_timeout: Total budget (seconds)
        multiplier: Growth factor of the sleep
        enabled: Whether backoff polling is enabled
        operation: Name used in debug logs
        clock: Monotonic clock (seconds)
        sleep: Async sleep function

    Returns:
        True as soon as the condition holds, False once the budget is spent
    """
    if not enabled:
        await sleep(base_timeout)
        return await _evaluate(condition)

    start = clock()
    current = base_timeout
    polls = 0

    while clock() - start < max_timeout:
        polls += 1
        if await _evaluate(condition):
            logger.debug(f"{operation}: condition met after {polls} poll(s)")
            return True
        await sleep(current)
        remaining = max(0.0, max_timeout - (clock() - start))
        current = min(current * multiplier, remaining)

    logger.debug(f"{operation}: timed out after {max_timeout:.1f}s ({polls} poll(s))")
    return False


async def wait_with(condition: Condition, settings: WaitSettings,
                    operation: str = "operation") -> bool:
    """Run wait_until() with a WaitSettings bundle."""
    return await wait_until(
        condition,
        base_timeout=settings.base_timeout,
        max_timeout=settings.max_timeout,
        multiplier=settings.multiplier,
        enabled=settings.enabled,
        operation=operation,
    )


async def element_in_state(page: Page, selector: str, state: str = 'visible') -> bool:
    """
    Check an element state once without waiting.

    Selector errors and detached frames count as "not in state".
    """
    try:
        locator = page.locator(selector)
        count = await locator.count()
        if state == 'attached':
            return count > 0
        if state == 'hidden':
            return count == 0 or not await locator.first.is_visible()
        if count == 0:
            return False
        return await locator.first.is_visible()
    except PlaywrightError:
        return False


async def wait_for_element(page: Page, selector: str, settings: WaitSettings,
                           state: str = 'visible') -> bool:
    """
    Wait for an element to reach a state ("visible", "hidden" or "attached").

    Returns:
        True if the element reached the state within the budget
    """
    return await wait_with(
        lambda: element_in_state(page, selector, state),
        settings,
        operation=f"element {state} ({selector})",
    )


async def wait_for_page_load(page: Page, settings: WaitSettings) -> bool:
    """Wait until document.readyState is "complete"."""
    async def loaded() -> bool:
        try:
            return await page.evaluate("document.readyState") == 'complete'
        except PlaywrightError:
            return False

    return await wait_with(loaded, settings, operation="page load")


async def first_visible(page: Page, selectors: Iterable[str]) -> Optional[str]:
    """Return the first selector with a visible match, in priority order."""
    for selector in selectors:
        if await element_in_state(page, selector, 'visible'):
            return selector
    return None


async def wait_for_dropdown_options(page: Page, selectors: Iterable[str],
                                    settings: WaitSettings) -> bool:
    """
    Wait for at least one visible dropdown option.

    The wait is bounded to one second regardless of the configured budget.
    """
    selectors = list(selectors)

    async def any_option() -> bool:
        return await first_visible(page, selectors) is not None

    return await wait_with(any_option, settings.bounded(1.0), operation="dropdown options")
