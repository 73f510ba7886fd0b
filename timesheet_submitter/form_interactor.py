"""
Field interaction for the timesheet form.

FormInteractor fills one field at a time: wait for it, type the value,
commit the selection when the widget is a dropdown, and report the field's
validity state. It never retries; the orchestrator owns retries.
"""

from enum import Enum
from typing import Callable, Collection, Dict, Iterable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from .config import WaitSettings
from .errors import DropdownCommitFailed, ElementNotVisible, LocatorNotFound
from .logging_utils import get_logger, log_event, redact
from .models import FieldSpec
from .selectors import DROPDOWN_COMMIT_KEY, DROPDOWN_OPTION_SELECTORS, VALIDATED_FIELDS
from .waiting import wait_for_dropdown_options, wait_for_element

logger = get_logger()

EventCallback = Callable[[str, Dict[str, str]], None]


class WidgetKind(Enum):
    """How a field's value is committed."""
    TEXT = 'text'
    DROPDOWN = 'dropdown'


def classify_widget(explicit_type: Optional[str] = None,
                    aria_haspopup: Optional[str] = None,
                    role: Optional[str] = None,
                    aria_expanded: Optional[str] = None) -> WidgetKind:
    """
    Classify a field widget from its configured type and ARIA attributes.

    An explicit type wins: "dropdown" or "select" is a dropdown, any other
    explicit type is text. Without one, the field is a dropdown when
    aria-haspopup mentions "listbox", role mentions "combobox", or
    aria-expanded is present at all.

    Examples:
        >>> classify_widget('dropdown')
        <WidgetKind.DROPDOWN: 'dropdown'>
        >>> classify_widget(role='combobox')
        <WidgetKind.DROPDOWN: 'dropdown'>
        >>> classify_widget(aria_haspopup='dialog')
        <WidgetKind.TEXT: 'text'>
    """
    if explicit_type:
        if explicit_type.lower() in ('dropdown', 'select'):
            return WidgetKind.DROPDOWN
        return WidgetKind.TEXT

    if 'listbox' in (aria_haspopup or '').lower():
        return WidgetKind.DROPDOWN
    if 'combobox' in (role or '').lower():
        return WidgetKind.DROPDOWN
    if aria_expanded:
        return WidgetKind.DROPDOWN
    return WidgetKind.TEXT


async def _read_attribute(field: Locator, name: str, timeout: float) -> Optional[str]:
    try:
        return await field.get_attribute(name, timeout=timeout)
    except PlaywrightError:
        return None


class FormInteractor:
    """
    Fills individual form fields.

    Args:
        element_wait: Backoff settings for field visibility
        option_wait: Backoff settings for dropdown options (capped at 1s)
        attribute_timeout_ms: Playwright timeout for attribute reads
        validated_fields: Field keys whose aria-invalid state is inspected
        option_selectors: Dropdown option patterns, highest priority first
    """

    def __init__(self, element_wait: WaitSettings, option_wait: WaitSettings,
                 attribute_timeout_ms: float = 1000,
                 validated_fields: Collection[str] = VALIDATED_FIELDS,
                 option_selectors: Iterable[str] = DROPDOWN_OPTION_SELECTORS):
        self.element_wait = element_wait
        self.option_wait = option_wait
        self.attribute_timeout_ms = attribute_timeout_ms
        self.validated_fields = frozenset(validated_fields)
        self.option_selectors = list(option_selectors)

    def _emit(self, on_event: Optional[EventCallback], event: str, **fields: str):
        log_event(event, logger=logger, **fields)
        if on_event is not None:
            on_event(event, fields)

    async def fill_field(self, page: Page, spec: FieldSpec, value: str,
                         on_event: Optional[EventCallback] = None) -> WidgetKind:
        """
        Fill one field.

        Args:
            page: Page holding the form
            spec: Field specification
            value: Value to enter
            on_event: Optional callback receiving (event, fields) progress events

        Returns:
            The widget kind the field was handled as

        Raises:
            LocatorNotFound: If the spec has no locator
            ElementNotVisible: If the field does not become visible in time
            DropdownCommitFailed: If the selection could not be committed
        """
        if not spec.locator:
            raise LocatorNotFound(spec.label or spec.key)

        shown = redact(value, sensitive=False)
        self._emit(on_event, 'fill_start', field=spec.key, value=shown)

        visible = await wait_for_element(page, spec.locator, self.element_wait, 'visible')
        if not visible:
            raise ElementNotVisible(spec.key, spec.locator, self.element_wait.max_timeout)

        field = page.locator(spec.locator).first
        await field.fill('')
        if spec.inject_value:
            await field.fill(str(value))
        else:
            # Key events let type-ahead widgets filter their options
            await field.press_sequentially(str(value))
        self._emit(on_event, 'text_filled', field=spec.key, value=shown)

        kind = await self._classify(spec, field)
        if kind is WidgetKind.DROPDOWN:
            await self._commit_dropdown(page, spec, field)
            self._emit(on_event, 'dropdown_handled', field=spec.key)

        if spec.key in self.validated_fields:
            await self._check_validation(spec, field)

        self._emit(on_event, 'fill_complete', field=spec.key, widget=kind.value)
        return kind

    async def _classify(self, spec: FieldSpec, field: Locator) -> WidgetKind:
        if spec.type:
            return classify_widget(spec.type)

        timeout = self.attribute_timeout_ms
        kind = classify_widget(
            aria_haspopup=await _read_attribute(field, 'aria-haspopup', timeout),
            role=await _read_attribute(field, 'role', timeout),
            aria_expanded=await _read_attribute(field, 'aria-expanded', timeout),
        )
        logger.debug(f"Field '{spec.key}' classified as {kind.value}")
        return kind

    async def _commit_dropdown(self, page: Page, spec: FieldSpec, field: Locator):
        ready = await wait_for_dropdown_options(page, self.option_selectors, self.option_wait)
        if not ready:
            logger.debug(f"No dropdown options became visible for '{spec.key}'")

        try:
            await field.press(DROPDOWN_COMMIT_KEY)
        except PlaywrightError as e:
            raise DropdownCommitFailed(spec.key, e) from e

    async def _check_validation(self, spec: FieldSpec, field: Locator):
        aria_invalid = await _read_attribute(field, 'aria-invalid', self.attribute_timeout_ms)
        if aria_invalid and aria_invalid != 'false':
            logger.warning(f"Field '{spec.key}' shows invalid state (aria-invalid={aria_invalid})")
