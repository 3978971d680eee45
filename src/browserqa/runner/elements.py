"""
Element interaction layer.

Resolves selectors to Playwright locators, waits for readiness and performs
interactions with fallbacks:
- Click: plain click, then scroll + forced click, then a DOM-level click
- Fill: clear, write, read back and compare
- Select: by option value, then by visible label
- Probes (exists/visible/enabled) never raise

Every interaction is wrapped in the configured retry policy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from browserqa.config import DEFAULT_UTILS_CONFIG, UtilsConfig
from browserqa.errors import (
    ElementNotFoundError,
    ElementNotInteractableError,
    OptionNotFoundError,
    ValidationError,
)
from browserqa.models import PerformanceMetrics
from browserqa.runner.retry import retry_async
from browserqa.utils import timestamp_slug

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DOM_CLICK_JS = """
(selector) => {
    const element = document.querySelector(selector);
    if (!element) {
        return false;
    }
    element.click();
    return true;
}
"""

SELECT_BY_LABEL_JS = """
(select, label) => {
    const option = Array.from(select.options).find((opt) => opt.text.trim() === label);
    if (!option) {
        return false;
    }
    select.value = option.value;
    select.dispatchEvent(new Event('input', { bubbles: true }));
    select.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""

NAVIGATION_TIMING_JS = """
() => {
    const nav = performance.getEntriesByType('navigation')[0];
    const resources = performance.getEntriesByType('resource');
    return {
        navigation: nav ? {
            loadStart: nav.loadEventStart,
            loadEnd: nav.loadEventEnd,
            domContentLoaded: nav.domContentLoadedEventEnd,
            domComplete: nav.domComplete,
        } : {},
        resources: resources.map((r) => ({
            name: r.name,
            startTime: r.startTime,
            endTime: r.startTime + r.duration,
            transferSize: r.transferSize || 0,
        })),
    };
}
"""

CORE_WEB_VITALS_JS = """
(windowMs) => new Promise((resolve) => {
    const vitals = {};
    const supported = (typeof PerformanceObserver !== 'undefined'
        && PerformanceObserver.supportedEntryTypes) || [];

    if (supported.includes('largest-contentful-paint')) {
        new PerformanceObserver((list) => {
            const entries = list.getEntries();
            if (entries.length > 0) {
                vitals.lcp = entries[entries.length - 1].startTime;
            }
        }).observe({ type: 'largest-contentful-paint', buffered: true });
    }

    if (supported.includes('first-input')) {
        new PerformanceObserver((list) => {
            const entries = list.getEntries();
            if (entries.length > 0) {
                vitals.fid = entries[0].processingStart - entries[0].startTime;
            }
        }).observe({ type: 'first-input', buffered: true });
    }

    if (supported.includes('layout-shift')) {
        let cls = 0;
        new PerformanceObserver((list) => {
            for (const entry of list.getEntries()) {
                if (!entry.hadRecentInput) {
                    cls += entry.value;
                }
            }
            vitals.cls = cls;
        }).observe({ type: 'layout-shift', buffered: true });
    }

    setTimeout(() => resolve(vitals), windowMs);
})
"""


@dataclass
class ElementOptions:
    """Per-call element interaction options."""

    wait_for_visible: bool = False
    wait_for_enabled: bool = False
    timeout: int | None = None
    force: bool | None = None
    position: dict[str, float] | None = None


class ElementInteractor:
    """
    Wait-then-act helpers over a Playwright page.

    The page handle is passed to every call; the interactor holds no session
    state, so one instance can serve concurrently running cases.
    """

    # Pause after scrolling an element into view before the forced click
    SCROLL_SETTLE_SECONDS: float = 0.5
    # Pause between clearing and filling an input
    FILL_SETTLE_SECONDS: float = 0.1
    # Timeout of the element_exists probe
    PROBE_TIMEOUT_MS: int = 1000
    # Observation window for Core Web Vitals
    VITALS_WINDOW_MS: int = 1000

    def __init__(self, config: UtilsConfig | None = None) -> None:
        self._config = config or DEFAULT_UTILS_CONFIG
        self._log = logger.bind(component="element_interactor")

    @property
    def config(self) -> UtilsConfig:
        return self._config

    async def _retry(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        return await retry_async(operation, self._config.retry, description=description)

    def _timeout(self, options: ElementOptions) -> int:
        if options.timeout is not None:
            return options.timeout
        return self._config.default_wait_timeout

    # ── Waiting ───────────────────────────────────────────────────────────────

    async def wait_for_element(
        self,
        page: Page,
        selector: str,
        options: ElementOptions | None = None,
    ) -> Locator:
        """
        Wait until ``selector`` is attached (or visible) and return its locator.

        Raises:
            ElementNotFoundError: The selector never reached the state in time
            ElementNotInteractableError: ``wait_for_enabled`` was requested and
                the element stayed disabled
        """
        options = options or ElementOptions()
        timeout = self._timeout(options)
        state = "visible" if options.wait_for_visible else "attached"
        locator = page.locator(selector)

        async def wait() -> None:
            await locator.wait_for(state=state, timeout=timeout)
            if options.wait_for_enabled and not await locator.is_enabled():
                raise ElementNotInteractableError(f"Element not enabled: {selector}")

        try:
            await self._retry(wait, f"wait_for_element {selector}")
        except ElementNotInteractableError:
            raise
        except Exception as e:
            raise ElementNotFoundError(
                f"Element not found: {selector} (waited {timeout}ms for {state})"
            ) from e

        return locator

    async def wait_for_elements(
        self,
        page: Page,
        selectors: list[str],
        options: ElementOptions | None = None,
    ) -> list[Locator]:
        """Wait for several selectors concurrently."""
        return list(
            await asyncio.gather(
                *(self.wait_for_element(page, selector, options) for selector in selectors)
            )
        )

    async def wait_for_element_to_disappear(
        self,
        page: Page,
        selector: str,
        timeout: int = 10000,
    ) -> None:
        await page.locator(selector).wait_for(state="detached", timeout=timeout)

    async def get_all_elements(
        self,
        page: Page,
        selector: str,
        options: ElementOptions | None = None,
    ) -> list[Locator]:
        locator = await self.wait_for_element(page, selector, options)
        count = await locator.count()
        return [locator.nth(i) for i in range(count)]

    async def wait_for_network_idle(self, page: Page, timeout: int = 30000) -> None:
        await page.wait_for_load_state("networkidle", timeout=timeout)

    # ── Interactions ──────────────────────────────────────────────────────────

    async def smart_click(
        self,
        page: Page,
        selector: str,
        options: ElementOptions | None = None,
    ) -> None:
        """Click with fallbacks: plain, scrolled + forced, then DOM-level."""
        options = options or ElementOptions()
        locator = await self.wait_for_element(page, selector, options)
        timeout = self._timeout(options)

        click_kwargs: dict[str, Any] = {"timeout": timeout}
        if options.force is not None:
            click_kwargs["force"] = options.force
        if options.position is not None:
            click_kwargs["position"] = options.position

        async def click() -> None:
            try:
                await locator.click(**click_kwargs)
                return
            except Exception as e:
                self._log.warning(
                    "Normal click failed, trying alternatives",
                    selector=selector,
                    error=str(e),
                )

            await locator.scroll_into_view_if_needed()
            await asyncio.sleep(self.SCROLL_SETTLE_SECONDS)

            try:
                await locator.click(force=True, timeout=timeout)
            except Exception as e:
                self._log.warning(
                    "Forced click failed, using DOM click",
                    selector=selector,
                    error=str(e),
                )
                await self._dom_click(page, selector)

        await self._retry(click, f"click {selector}")

    async def _dom_click(self, page: Page, selector: str) -> None:
        clicked = await page.evaluate(DOM_CLICK_JS, selector)
        if not clicked:
            raise ElementNotFoundError(f"Element not found: {selector}")

    async def smart_fill(
        self,
        page: Page,
        selector: str,
        text: str,
        options: ElementOptions | None = None,
    ) -> None:
        """
        Clear the input, write ``text`` and verify it reads back unchanged.

        Raises:
            ValidationError: The input value differs from ``text`` after writing
        """
        locator = await self.wait_for_element(page, selector, options)

        async def fill() -> None:
            await locator.clear()
            await asyncio.sleep(self.FILL_SETTLE_SECONDS)
            await locator.fill(text)

            actual = await locator.input_value()
            if actual != text:
                raise ValidationError(
                    f'Text input validation failed. Expected: "{text}", Actual: "{actual}"'
                )

        await self._retry(fill, f"fill {selector}")

    async def type_text(
        self,
        page: Page,
        selector: str,
        text: str,
        options: ElementOptions | None = None,
    ) -> None:
        """Type ``text`` key by key without clearing or validating."""
        locator = await self.wait_for_element(page, selector, options)
        await self._retry(lambda: locator.press_sequentially(text), f"type {selector}")

    async def smart_select(
        self,
        page: Page,
        selector: str,
        value: str | list[str],
        options: ElementOptions | None = None,
    ) -> None:
        """
        Select by option value, falling back to the option's visible label.

        Raises:
            OptionNotFoundError: Neither a value nor a trimmed label matched
        """
        options = options or ElementOptions()
        locator = await self.wait_for_element(page, selector, options)
        timeout = self._timeout(options)
        label = value[0] if isinstance(value, list) else value

        async def select() -> None:
            try:
                await locator.select_option(value=value, timeout=timeout)
            except Exception as e:
                self._log.debug(
                    "Select by value failed, trying label",
                    selector=selector,
                    value=value,
                    error=str(e),
                )
                await self._select_by_label(locator, label)

        await self._retry(select, f"select {selector}")

    async def _select_by_label(self, locator: Locator, label: str) -> None:
        found = await locator.evaluate(SELECT_BY_LABEL_JS, label)
        if not found:
            raise OptionNotFoundError(f'Option with label "{label}" not found')

    async def smart_hover(
        self,
        page: Page,
        selector: str,
        options: ElementOptions | None = None,
    ) -> None:
        options = options or ElementOptions()
        locator = await self.wait_for_element(page, selector, options)
        timeout = self._timeout(options)

        async def hover() -> None:
            await locator.scroll_into_view_if_needed()
            await locator.hover(timeout=timeout)

        await self._retry(hover, f"hover {selector}")

    async def drag_and_drop(
        self,
        page: Page,
        source_selector: str,
        target_selector: str,
        options: ElementOptions | None = None,
    ) -> None:
        """Drag ``source_selector`` onto ``target_selector`` once both are ready."""
        options = options or ElementOptions()
        source = await self.wait_for_element(page, source_selector, options)
        target = await self.wait_for_element(page, target_selector, options)
        timeout = self._timeout(options)

        await self._retry(
            lambda: source.drag_to(target, timeout=timeout),
            f"drag {source_selector} to {target_selector}",
        )

    async def upload_file(
        self,
        page: Page,
        selector: str,
        file_paths: str | list[str],
        options: ElementOptions | None = None,
    ) -> None:
        locator = await self.wait_for_element(page, selector, options)
        await self._retry(
            lambda: locator.set_input_files(file_paths),
            f"upload {selector}",
        )

    # ── Reading ───────────────────────────────────────────────────────────────

    async def get_element_text(
        self,
        page: Page,
        selector: str,
        options: ElementOptions | None = None,
    ) -> str:
        """
        Text of an element: text content, then inner text, then input value.

        Returns the first non-empty trimmed value, or an empty string.
        """
        locator = await self.wait_for_element(page, selector, options)

        async def read() -> str:
            text = await locator.text_content()
            if not text or not text.strip():
                text = await locator.inner_text()
            if not text or not text.strip():
                try:
                    text = await locator.input_value()
                except Exception:
                    # Not a form control
                    text = ""
            return (text or "").strip()

        return await self._retry(read, f"read text {selector}")

    async def get_element_attribute(
        self,
        page: Page,
        selector: str,
        attribute: str,
        options: ElementOptions | None = None,
    ) -> str | None:
        locator = await self.wait_for_element(page, selector, options)
        return await locator.get_attribute(attribute)

    async def element_exists(self, page: Page, selector: str) -> bool:
        """Best-effort probe; any error means the element does not exist."""
        try:
            await page.locator(selector).wait_for(state="attached", timeout=self.PROBE_TIMEOUT_MS)
            return True
        except Exception:
            return False

    async def is_element_visible(self, page: Page, selector: str) -> bool:
        try:
            return await page.locator(selector).is_visible()
        except Exception:
            return False

    async def is_element_enabled(self, page: Page, selector: str) -> bool:
        try:
            return await page.locator(selector).is_enabled()
        except Exception:
            return False

    # ── Capture ───────────────────────────────────────────────────────────────

    async def take_screenshot(
        self,
        page: Page,
        selector: str | None = None,
        filename: str | None = None,
    ) -> str:
        """
        Capture an element or the whole page as PNG.

        Returns:
            Path the screenshot was written to
        """
        path = filename or f"screenshot-{timestamp_slug()}.png"
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        if selector:
            await page.locator(selector).screenshot(path=path, type="png")
        else:
            await page.screenshot(
                path=path,
                full_page=self._config.screenshots.full_page,
                type="png",
            )
        return path

    async def get_performance_metrics(self, page: Page) -> PerformanceMetrics:
        """
        Navigation timing, resource timing and best-effort Core Web Vitals.

        Vitals are observed for ``VITALS_WINDOW_MS``; a vital stays None when
        the browser lacks the matching observer.
        """
        timing = await page.evaluate(NAVIGATION_TIMING_JS)
        vitals = await page.evaluate(CORE_WEB_VITALS_JS, self.VITALS_WINDOW_MS)
        return PerformanceMetrics.model_validate({**timing, "coreWebVitals": vitals or {}})

    async def execute_script(self, page: Page, script: str, arg: Any = None) -> Any:
        return await page.evaluate(script, arg)
