"""
Step interpreter: maps declarative test steps onto browser calls.

Placeholders of the form ``{{key}}`` are resolved against the merged test
data (step data over case data); unknown keys are left verbatim.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Any

import structlog

from browserqa.errors import (
    AssertionFailedError,
    InvalidAssertionError,
    SelectorRequiredError,
    UnsupportedActionError,
)
from browserqa.models import StepAction, TestStep
from browserqa.runner.elements import ElementInteractor, ElementOptions

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = structlog.get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"

URL_PREFIX = "url:"
TITLE_PREFIX = "title:"


def merge_test_data(
    case_data: dict[str, Any] | None,
    step_data: dict[str, Any] | None,
) -> dict[str, Any]:
    """Merge step data over case data; the step wins on key collisions."""
    return {**(case_data or {}), **(step_data or {})}


def resolve_placeholders(value: str, data: dict[str, Any]) -> str:
    """Substitute ``{{key}}`` with ``data[key]``, keeping unknown placeholders."""

    def replacer(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in data:
            return str(data[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replacer, value)


class StepInterpreter:
    """
    Executes one test step against a page.

    The page is passed per call and never stored, so each running case owns
    its session handle.
    """

    # Actions that must name a target element
    ELEMENT_ACTIONS: frozenset[StepAction] = frozenset({
        StepAction.CLICK,
        StepAction.FILL,
        StepAction.TYPE,
        StepAction.SELECT,
        StepAction.WAIT_FOR_ELEMENT,
        StepAction.HOVER,
    })

    def __init__(
        self,
        interactor: ElementInteractor,
        navigation_timeout: int = 30000,
    ) -> None:
        self._interactor = interactor
        self._navigation_timeout = navigation_timeout
        self._log = logger.bind(component="step_interpreter")

    async def perform_action(
        self,
        page: Page,
        step: TestStep,
        merged_data: dict[str, Any],
    ) -> None:
        """
        Perform ``step`` on ``page``.

        Raises:
            UnsupportedActionError: The action is not a StepAction
            SelectorRequiredError: An element action has no selector
            AutomationError: Any interaction or assertion failure
        """
        try:
            action = StepAction(step.action)
        except ValueError:
            raise UnsupportedActionError(step.action) from None

        selector = resolve_placeholders(step.element, merged_data) if step.element else None
        if action in self.ELEMENT_ACTIONS and not selector:
            raise SelectorRequiredError(action.value)

        self._log.debug("Performing action", step=step.step, action=action, selector=selector)

        match action:
            case StepAction.NAVIGATE:
                url = resolve_placeholders(step.expected, merged_data)
                await page.goto(url, timeout=self._navigation_timeout)

            case StepAction.CLICK:
                await self._interactor.smart_click(page, selector)

            case StepAction.FILL:
                text = resolve_placeholders(step.expected, merged_data)
                await self._interactor.smart_fill(page, selector, text)

            case StepAction.TYPE:
                text = resolve_placeholders(step.expected, merged_data)
                await self._interactor.type_text(page, selector, text)

            case StepAction.SELECT:
                option = resolve_placeholders(step.expected, merged_data)
                await self._interactor.smart_select(page, selector, option)

            case StepAction.WAIT:
                raw = resolve_placeholders(step.expected, merged_data).strip()
                try:
                    wait_ms = int(raw)
                except ValueError:
                    raise ValueError(
                        f"wait expects a duration in milliseconds, got {raw!r}"
                    ) from None
                await asyncio.sleep(max(wait_ms, 0) / 1000)

            case StepAction.WAIT_FOR_ELEMENT:
                await self._interactor.wait_for_element(
                    page, selector, ElementOptions(wait_for_visible=True)
                )

            case StepAction.WAIT_FOR_NAVIGATION:
                await self._interactor.wait_for_network_idle(page, self._navigation_timeout)

            case StepAction.ASSERT:
                await self.perform_assertion(page, step, merged_data)

            case StepAction.SCROLL:
                if selector:
                    await page.locator(selector).scroll_into_view_if_needed()
                else:
                    await page.evaluate(SCROLL_TO_BOTTOM_JS)

            case StepAction.HOVER:
                await self._interactor.smart_hover(page, selector)

            case StepAction.KEY_PRESS:
                key = resolve_placeholders(step.expected, merged_data)
                await page.keyboard.press(key)

    async def perform_assertion(
        self,
        page: Page,
        step: TestStep,
        merged_data: dict[str, Any],
    ) -> None:
        """
        Check an element state or text, the page URL or the page title.

        With an element: ``visible`` / ``hidden`` wait for that state, any
        other value is compared to the trimmed text content. Without one the
        expected value must start with ``url:`` or ``title:``.

        Raises:
            AssertionFailedError: Actual and expected differ
            InvalidAssertionError: No element and no recognised prefix
        """
        expected = resolve_placeholders(step.expected, merged_data)

        if step.element:
            locator = page.locator(resolve_placeholders(step.element, merged_data))

            if expected == "visible":
                await locator.wait_for(state="visible")
            elif expected == "hidden":
                await locator.wait_for(state="hidden")
            else:
                await locator.wait_for()
                actual = await locator.text_content()
                if (actual or "").strip() != expected:
                    raise AssertionFailedError(f'Expected "{expected}" but got "{actual}"')
            return

        if expected.startswith(URL_PREFIX):
            expected_url = expected[len(URL_PREFIX):]
            current_url = page.url
            if expected_url not in current_url:
                raise AssertionFailedError(
                    f'Expected URL to contain "{expected_url}" but got "{current_url}"'
                )
        elif expected.startswith(TITLE_PREFIX):
            expected_title = expected[len(TITLE_PREFIX):]
            actual_title = await page.title()
            if expected_title not in actual_title:
                raise AssertionFailedError(
                    f'Expected title to contain "{expected_title}" but got "{actual_title}"'
                )
        else:
            raise InvalidAssertionError(
                f'Assertion "{expected}" needs an element or a "url:" / "title:" prefix'
            )
