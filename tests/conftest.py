"""Pytest fixtures for browserqa tests."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from browserqa.config import RetryPolicy, ScreenshotPolicy, UtilsConfig
from browserqa.events import EventDispatcher, ExecutionListener
from browserqa.models import TestCase, TestStep
from browserqa.reporting.aggregator import ResultAggregator
from browserqa.runner.elements import DOM_CLICK_JS, SELECT_BY_LABEL_JS, ElementInteractor
from browserqa.runner.executor import TEST_LOGS_JS, TestExecutor
from browserqa.runner.interpreter import StepInterpreter


class PlaywrightError(Exception):
    """Stand-in for playwright's driver error."""


# ── In-memory page ────────────────────────────────────────────────────────────

@dataclass
class FakeElement:
    """State of one element addressed by a selector."""

    text: str = ""
    value: str = ""
    visible: bool = True
    enabled: bool = True
    options: list[tuple[str, str]] = field(default_factory=list)
    selected: str | None = None
    # Plain clicks are intercepted (overlay)
    blocked: bool = False
    # Forced clicks fail too
    force_blocked: bool = False
    # Fill drops the last character
    truncates_input: bool = False
    # Clicking closes the page
    crashes_page: bool = False
    attributes: dict[str, str] = field(default_factory=dict)
    uploaded: list[str] = field(default_factory=list)


class FakeKeyboard:
    def __init__(self, page: FakePage) -> None:
        self._page = page

    async def press(self, key: str) -> None:
        self._page.calls.append(("press", key))


class FakeLocator:
    """Subset of playwright's Locator backed by FakePage.elements."""

    def __init__(self, page: FakePage, selector: str) -> None:
        self._page = page
        self.selector = selector

    def _element(self) -> FakeElement:
        self._page.ensure_open()
        element = self._page.elements.get(self.selector)
        if element is None:
            raise PlaywrightError(f"Timeout exceeded waiting for locator('{self.selector}')")
        return element

    async def wait_for(self, state: str = "visible", timeout: float | None = None) -> None:
        self._page.ensure_open()
        self._page.calls.append(("wait_for", self.selector, state))
        element = self._page.elements.get(self.selector)
        match state:
            case "attached":
                ok = element is not None
            case "visible":
                ok = element is not None and element.visible
            case "hidden":
                ok = element is None or not element.visible
            case "detached":
                ok = element is None
            case _:
                ok = False
        if not ok:
            raise PlaywrightError(
                f"Timeout {timeout}ms exceeded waiting for locator('{self.selector}') to be {state}"
            )

    async def is_enabled(self) -> bool:
        return self._element().enabled

    async def is_visible(self) -> bool:
        return self._element().visible

    async def count(self) -> int:
        return 1 if self.selector in self._page.elements else 0

    def nth(self, index: int) -> FakeLocator:
        return self

    async def click(self, force: bool = False, **kwargs: Any) -> None:
        element = self._element()
        self._page.calls.append(("click", self.selector, force))
        if element.crashes_page:
            self._page.closed = True
            raise PlaywrightError("Target page, context or browser has been closed")
        if element.blocked and not force:
            raise PlaywrightError("Element is intercepted by another element")
        if element.force_blocked and force:
            raise PlaywrightError("Element is not attached to the DOM")
        self._page.clicked.append(self.selector)

    async def scroll_into_view_if_needed(self) -> None:
        self._page.calls.append(("scroll_into_view", self.selector))

    async def hover(self, **kwargs: Any) -> None:
        self._element()
        self._page.calls.append(("hover", self.selector))

    async def clear(self) -> None:
        self._element().value = ""

    async def fill(self, text: str) -> None:
        element = self._element()
        element.value = text[:-1] if element.truncates_input else text

    async def press_sequentially(self, text: str) -> None:
        self._element().value += text

    async def input_value(self) -> str:
        return self._element().value

    async def text_content(self) -> str | None:
        return self._element().text

    async def inner_text(self) -> str:
        return self._element().text

    async def get_attribute(self, name: str) -> str | None:
        return self._element().attributes.get(name)

    async def drag_to(self, target: FakeLocator, **kwargs: Any) -> None:
        self._element()
        target._element()
        self._page.calls.append(("drag_to", self.selector, target.selector))

    async def set_input_files(self, files: str | list[str], **kwargs: Any) -> None:
        element = self._element()
        element.uploaded = [files] if isinstance(files, str) else list(files)

    async def select_option(self, value: Any = None, **kwargs: Any) -> list[str]:
        element = self._element()
        for option_value, _ in element.options:
            if option_value == value:
                element.selected = option_value
                return [option_value]
        raise PlaywrightError(f"No option with value {value!r}")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        element = self._element()
        if script == SELECT_BY_LABEL_JS:
            for option_value, label in element.options:
                if label.strip() == str(arg).strip():
                    element.selected = option_value
                    return True
            return False
        return None

    async def screenshot(self, path: str, **kwargs: Any) -> bytes:
        Path(path).write_bytes(b"\x89PNG")
        return b"\x89PNG"


class FakePage:
    """Subset of playwright's Page with observable state."""

    def __init__(self) -> None:
        self.url = "about:blank"
        self.page_title = ""
        self.elements: dict[str, FakeElement] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.clicked: list[str] = []
        self.test_logs: list[str] = []
        self.evaluate_results: dict[str, Any] = {}
        self.screenshot_delay = 0.0
        self.screenshot_error: Exception | None = None
        self.closed = False
        self.video = None
        self.keyboard = FakeKeyboard(self)

    def add(self, selector: str, **state: Any) -> FakeElement:
        element = FakeElement(**state)
        self.elements[selector] = element
        return element

    def ensure_open(self) -> None:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def goto(self, url: str, timeout: float | None = None, **kwargs: Any) -> None:
        self.ensure_open()
        self.calls.append(("goto", url, timeout))
        self.url = url

    async def title(self) -> str:
        self.ensure_open()
        return self.page_title

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.ensure_open()
        self.calls.append(("evaluate", script, arg))
        if script == DOM_CLICK_JS:
            if arg not in self.elements:
                return False
            self.clicked.append(arg)
            return True
        if script == TEST_LOGS_JS:
            return list(self.test_logs)
        return self.evaluate_results.get(script)

    async def wait_for_load_state(self, state: str = "load", timeout: float | None = None) -> None:
        self.calls.append(("wait_for_load_state", state))

    async def screenshot(self, path: str, full_page: bool = False, **kwargs: Any) -> bytes:
        if self.screenshot_delay:
            await asyncio.sleep(self.screenshot_delay)
        if self.screenshot_error is not None:
            raise self.screenshot_error
        self.calls.append(("screenshot", path, full_page))
        Path(path).write_bytes(b"\x89PNG")
        return b"\x89PNG"

    def set_default_timeout(self, timeout: float) -> None:
        self.calls.append(("set_default_timeout", timeout))

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


# ── Listeners ─────────────────────────────────────────────────────────────────

class RecordingListener(ExecutionListener):
    """Records every event as ``(hook, event)``."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def hooks(self) -> list[str]:
        return [hook for hook, _ in self.events]

    def on_test_start(self, event: Any) -> None:
        self.events.append(("test_start", event))

    def on_step_complete(self, event: Any) -> None:
        self.events.append(("step_complete", event))

    def on_test_complete(self, event: Any) -> None:
        self.events.append(("test_complete", event))

    def on_test_failure(self, event: Any) -> None:
        self.events.append(("test_failure", event))

    def on_suite_start(self, event: Any) -> None:
        self.events.append(("suite_start", event))

    def on_suite_complete(self, event: Any) -> None:
        self.events.append(("suite_complete", event))


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def no_settle_delays(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove fixed pauses from element interactions."""
    monkeypatch.setattr(ElementInteractor, "SCROLL_SETTLE_SECONDS", 0)
    monkeypatch.setattr(ElementInteractor, "FILL_SETTLE_SECONDS", 0)


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def utils_config() -> UtilsConfig:
    """Fast config: short timeouts, one immediate retry."""
    return UtilsConfig(
        default_wait_timeout=100,
        retry=RetryPolicy(max_retries=1, delay=0),
    )


@pytest.fixture
def interactor(utils_config: UtilsConfig) -> ElementInteractor:
    return ElementInteractor(utils_config)


@pytest.fixture
def interpreter(interactor: ElementInteractor) -> StepInterpreter:
    return StepInterpreter(interactor, navigation_timeout=5000)


@pytest.fixture
def recorder() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def events(recorder: RecordingListener) -> EventDispatcher:
    return EventDispatcher([recorder])


@pytest.fixture
def aggregator(events: EventDispatcher) -> ResultAggregator:
    return ResultAggregator(events)


@pytest.fixture
def isolated_pages() -> list[FakePage]:
    """Pages handed out by the mock session's isolated_page()."""
    return []


@pytest.fixture
def session(page: FakePage, isolated_pages: list[FakePage]) -> MagicMock:
    """Mock BrowserSession serving the fake page."""
    mock = MagicMock()
    mock.require_page.return_value = page

    @contextlib.asynccontextmanager
    async def isolated_page() -> AsyncIterator[FakePage]:
        fresh = FakePage()
        isolated_pages.append(fresh)
        try:
            yield fresh
        finally:
            await fresh.close()

    mock.isolated_page = isolated_page
    return mock


@pytest.fixture
def executor(
    session: MagicMock,
    interpreter: StepInterpreter,
    aggregator: ResultAggregator,
    events: EventDispatcher,
    interactor: ElementInteractor,
    tmp_path: Path,
) -> TestExecutor:
    return TestExecutor(
        session=session,
        interpreter=interpreter,
        aggregator=aggregator,
        events=events,
        interactor=interactor,
        screenshots=ScreenshotPolicy(),
        artifact_dir=tmp_path / "artifacts",
    )


@pytest.fixture
def make_case() -> Callable[..., TestCase]:
    """
    Build a TestCase from ``(action, element, expected)`` tuples.

    Steps are numbered from 1 in the given order.
    """

    def factory(
        case_id: str,
        *steps: tuple[str, str | None, str],
        **fields: Any,
    ) -> TestCase:
        return TestCase(
            id=case_id,
            title=fields.pop("title", case_id),
            steps=[
                TestStep(step=i, action=action, element=element, expected=expected)
                for i, (action, element, expected) in enumerate(steps, start=1)
            ],
            **fields,
        )

    return factory


@pytest.fixture
def sample_cases_yaml() -> str:
    """Sample test case file in YAML."""
    return '''
testCases:
  - id: TC-LOGIN-001
    moduleId: auth
    title: Login with valid credentials
    priority: HIGH
    testData:
      username: alice
      baseUrl: https://example.com
    steps:
      - step: 1
        action: navigate
        expected: "{{baseUrl}}/login"
      - step: 2
        action: fill
        element: "#username"
        expected: "{{username}}"
      - step: 3
        action: click
        element: "button[type='submit']"
      - step: 4
        action: assert
        expected: "url:/dashboard"
  - id: TC-LOGIN-002
    title: Disabled scenario
    status: DISABLED
    steps: []
'''
