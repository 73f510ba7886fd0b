"""
In-memory stand-ins for Playwright's async Page, Locator and Response.

Elements are registered per selector string; a locator matches only the
exact selector it was created with. Only the calls the submitter makes are
implemented.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError


@dataclass
class FakeElement:
    visible: bool = True
    enabled: bool = True
    attributes: Dict[str, str] = field(default_factory=dict)
    value: str = ''
    on_click: Optional[Callable[[], Any]] = None
    on_press: Optional[Callable[[str], Any]] = None
    press_error: Optional[Exception] = None
    click_error: Optional[Exception] = None


class FakeLocator:
    def __init__(self, page: 'FakePage', selector: str, index: Optional[int] = None):
        self.page = page
        self.selector = selector
        self.index = index

    def _elements(self) -> List[FakeElement]:
        return self.page.elements.get(self.selector, [])

    def _element(self) -> Optional[FakeElement]:
        elements = self._elements()
        return elements[self.index or 0] if elements else None

    @property
    def first(self) -> 'FakeLocator':
        return FakeLocator(self.page, self.selector, 0)

    async def count(self) -> int:
        return len(self._elements())

    async def is_visible(self) -> bool:
        element = self._element()
        return bool(element and element.visible)

    async def is_enabled(self) -> bool:
        element = self._element()
        return bool(element and element.enabled)

    async def get_attribute(self, name: str, timeout: Optional[float] = None) -> Optional[str]:
        element = self._element()
        if element is None:
            raise PlaywrightError(f"Timeout waiting for {self.selector}")
        return element.attributes.get(name)

    async def input_value(self) -> str:
        return self._element().value

    async def fill(self, value: str):
        self.page.calls.append(('fill', self.selector, value))
        self._element().value = value

    async def press_sequentially(self, text: str):
        self.page.calls.append(('type', self.selector, text))
        self._element().value = text

    async def press(self, key: str):
        element = self._element()
        self.page.calls.append(('press', self.selector, key))
        if element.press_error is not None:
            raise element.press_error
        if element.on_press is not None:
            await _maybe_await(element.on_press(key))

    async def click(self):
        element = self._element()
        if element is None:
            raise PlaywrightError(f"No element for {self.selector}")
        self.page.calls.append(('click', self.selector))
        if element.click_error is not None:
            raise element.click_error
        if element.on_click is not None:
            await _maybe_await(element.on_click())


async def _maybe_await(value):
    if inspect.isawaitable(value):
        await value


class FakeRequest:
    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self.headers = headers or {}


class FakeResponse:
    def __init__(self, url: str, status: int = 200, body: Optional[str] = '',
                 headers: Optional[Dict[str, str]] = None,
                 request_headers: Optional[Dict[str, str]] = None):
        self.url = url
        self.status = status
        self._body = body
        self.headers = headers or {}
        self.request = FakeRequest(request_headers)

    async def text(self) -> str:
        if self._body is None:
            raise PlaywrightError("Response body is unavailable")
        return self._body


class FakePage:
    def __init__(self, url: str = 'about:blank'):
        self.url = url
        self.elements: Dict[str, List[FakeElement]] = {}
        self.listeners: Dict[str, List[Callable]] = {}
        self.calls: List[tuple] = []
        self.goto_errors: List[Exception] = []
        self.ready_state = 'complete'

    def add(self, selector: str, element: Optional[FakeElement] = None, **kwargs) -> FakeElement:
        element = element or FakeElement(**kwargs)
        self.elements.setdefault(selector, []).append(element)
        return element

    def remove(self, selector: str):
        self.elements.pop(selector, None)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def on(self, event: str, handler: Callable):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable):
        self.listeners[event].remove(handler)

    async def emit_response(self, response: FakeResponse):
        for handler in list(self.listeners.get('response', [])):
            await _maybe_await(handler(response))

    async def goto(self, url: str, timeout: Optional[float] = None, wait_until: Optional[str] = None):
        self.calls.append(('goto', url))
        if self.goto_errors:
            raise self.goto_errors.pop(0)
        self.url = url

    async def evaluate(self, expression: str):
        if expression == 'document.readyState':
            return self.ready_state
        return None


class FakeBrowser:
    """Async context manager matching FormBrowser's surface."""

    def __init__(self, page: FakePage):
        self.page = page
        self.screenshots: List[str] = []
        self.entered = False
        self.exited = False

    def __call__(self, config):
        return self

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited = True

    async def take_screenshot(self, path: str) -> bool:
        self.screenshots.append(path)
        return True


class FakeClock:
    """Monotonic clock advanced only by the paired sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


async def no_sleep(seconds: float):
    return None
