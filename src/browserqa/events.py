"""
Execution events and listeners.

Listeners are invoked synchronously, in registration order, at fixed points:
case start, step complete, case complete, case failure, suite start and
suite complete. A listener that raises is logged and skipped; it never
changes the outcome of a test.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from browserqa.models import StepResult, TestResult, TestSummary

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TestStartEvent:
    __test__ = False

    test_id: str


@dataclass(frozen=True)
class StepCompleteEvent:
    test_id: str
    step_result: StepResult


@dataclass(frozen=True)
class TestCompleteEvent:
    __test__ = False

    test_id: str
    result: TestResult


@dataclass(frozen=True)
class TestFailureEvent:
    __test__ = False

    test_id: str
    error: str


@dataclass(frozen=True)
class SuiteStartEvent:
    suite_id: str


@dataclass(frozen=True)
class SuiteCompleteEvent:
    suite_id: str
    summary: TestSummary


class ExecutionListener:
    """Base listener; override the hooks you need."""

    def on_test_start(self, event: TestStartEvent) -> None:
        pass

    def on_step_complete(self, event: StepCompleteEvent) -> None:
        pass

    def on_test_complete(self, event: TestCompleteEvent) -> None:
        pass

    def on_test_failure(self, event: TestFailureEvent) -> None:
        pass

    def on_suite_start(self, event: SuiteStartEvent) -> None:
        pass

    def on_suite_complete(self, event: SuiteCompleteEvent) -> None:
        pass


class CallbackListener(ExecutionListener):
    """
    Adapt plain callbacks to the listener interface.

    Usage:
        listener = CallbackListener(
            on_test_failure=lambda test_id, error: print(test_id, error),
        )
    """

    def __init__(
        self,
        on_test_start: Callable[[str], Any] | None = None,
        on_test_complete: Callable[[str, TestResult], Any] | None = None,
        on_test_failure: Callable[[str, str], Any] | None = None,
        on_suite_start: Callable[[str], Any] | None = None,
        on_suite_complete: Callable[[str, TestSummary], Any] | None = None,
    ) -> None:
        self._on_test_start = on_test_start
        self._on_test_complete = on_test_complete
        self._on_test_failure = on_test_failure
        self._on_suite_start = on_suite_start
        self._on_suite_complete = on_suite_complete

    def on_test_start(self, event: TestStartEvent) -> None:
        if self._on_test_start:
            self._on_test_start(event.test_id)

    def on_test_complete(self, event: TestCompleteEvent) -> None:
        if self._on_test_complete:
            self._on_test_complete(event.test_id, event.result)

    def on_test_failure(self, event: TestFailureEvent) -> None:
        if self._on_test_failure:
            self._on_test_failure(event.test_id, event.error)

    def on_suite_start(self, event: SuiteStartEvent) -> None:
        if self._on_suite_start:
            self._on_suite_start(event.suite_id)

    def on_suite_complete(self, event: SuiteCompleteEvent) -> None:
        if self._on_suite_complete:
            self._on_suite_complete(event.suite_id, event.summary)


class EventDispatcher:
    """Fan events out to registered listeners."""

    def __init__(self, listeners: list[ExecutionListener] | None = None) -> None:
        self._listeners: list[ExecutionListener] = list(listeners or [])
        self._log = logger.bind(component="event_dispatcher")

    @property
    def listeners(self) -> list[ExecutionListener]:
        return list(self._listeners)

    def add_listener(self, listener: ExecutionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ExecutionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def test_started(self, test_id: str) -> None:
        self._emit("on_test_start", TestStartEvent(test_id=test_id))

    def step_completed(self, test_id: str, step_result: StepResult) -> None:
        self._emit("on_step_complete", StepCompleteEvent(test_id=test_id, step_result=step_result))

    def test_completed(self, test_id: str, result: TestResult) -> None:
        self._emit("on_test_complete", TestCompleteEvent(test_id=test_id, result=result))

    def test_failed(self, test_id: str, error: str) -> None:
        self._emit("on_test_failure", TestFailureEvent(test_id=test_id, error=error))

    def suite_started(self, suite_id: str) -> None:
        self._emit("on_suite_start", SuiteStartEvent(suite_id=suite_id))

    def suite_completed(self, suite_id: str, summary: TestSummary) -> None:
        self._emit("on_suite_complete", SuiteCompleteEvent(suite_id=suite_id, summary=summary))

    def _emit(self, hook: str, event: Any) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(event)
            except Exception as e:
                self._log.warning(
                    "Listener raised, continuing",
                    hook=hook,
                    listener=type(listener).__name__,
                    error=str(e),
                )
